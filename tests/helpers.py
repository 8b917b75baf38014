"""
Test doubles, row factories and a thread runner shared by the test modules.
"""
import fnmatch
import itertools
import threading
from datetime import date, datetime, timedelta
from decimal import Decimal

import redis

from backoffice.extensions import db
from backoffice.models import (
    User, RoleType, Course, Batch, BatchStatus, Enrollment, EnrollmentStatus,
    Payment, PaymentStatus, Registration, RegistrationStatus
)


class FakeRedis:
    """In-memory stand-in for the redis client used by CacheService."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.fail = False
        self.lock = threading.Lock()

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis unavailable")

    def get(self, key):
        self._check()
        with self.lock:
            return self.store.get(key)

    def set(self, key, value):
        self._check()
        with self.lock:
            self.store[key] = value
        return True

    def setex(self, key, ttl, value):
        self._check()
        with self.lock:
            self.store[key] = value
            self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        with self.lock:
            for key in keys:
                if self.store.pop(key, None) is not None:
                    removed += 1
                self.ttls.pop(key, None)
        return removed

    def scan_iter(self, match=None, count=None):
        self._check()
        with self.lock:
            keys = list(self.store)
        return [key for key in keys if match is None or fnmatch.fnmatchcase(key, match)]


class Factory:
    """Creates committed rows for tests."""

    _seq = itertools.count(1)

    def __init__(self, session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def user(self, role=RoleType.STUDENT, name=None):
        n = next(self._seq)
        return self._save(User(
            email=f"user{n}@example.edu",
            name=name or f"User {n}",
            role=role
        ))

    def course(self, title='Python Programming'):
        return self._save(Course(title=title))

    def batch(self, course=None, capacity=30, status=BatchStatus.UPCOMING, start_date=None,
              deleted=False, name=None):
        course = course or self.course()
        n = next(self._seq)
        return self._save(Batch(
            course_id=course.id,
            name=name or f"Batch {n}",
            start_date=start_date or date.today() + timedelta(days=30),
            capacity=capacity,
            status=status,
            deleted_at=datetime.now() if deleted else None
        ))

    def enrollment(self, student=None, batch=None, status=EnrollmentStatus.ACTIVE,
                   payment_status=PaymentStatus.PENDING):
        student = student or self.user()
        batch = batch or self.batch()
        return self._save(Enrollment(
            student_id=student.id,
            batch_id=batch.id,
            status=status,
            payment_status=payment_status,
            enrolled_at=datetime.now() if status == EnrollmentStatus.ACTIVE else None
        ))

    def payment(self, enrollment=None, amount='1500.00', transaction_id=None, status=PaymentStatus.PENDING):
        enrollment = enrollment or self.enrollment(status=EnrollmentStatus.PENDING)
        n = next(self._seq)
        return self._save(Payment(
            enrollment_id=enrollment.id,
            student_id=enrollment.student_id,
            amount=Decimal(amount),
            transaction_id=transaction_id or f"TXN{n:06d}",
            payment_method='UPI',
            status=status
        ))

    def registration(self, student=None, course=None, status=RegistrationStatus.PENDING,
                     batch_preference=None):
        student = student or self.user()
        course = course or self.course()
        return self._save(Registration(
            student_id=student.id,
            course_id=course.id,
            batch_preference=batch_preference,
            documents={'id_proof': 'docs/id.pdf'},
            status=status
        ))


def run_concurrently(app, count, target):
    """
    Run ``target(index)`` on ``count`` threads, each inside its own app context.

    Returns:
        list: per-thread ('ok', result) or ('error', exception)
    """
    results = [None] * count
    barrier = threading.Barrier(count)

    def worker(index):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = ('ok', target(index))
            except Exception as e:
                results[index] = ('error', e)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results
