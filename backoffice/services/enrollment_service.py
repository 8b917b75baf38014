# services/enrollment_service.py
"""
Enrollment creation and the batch capacity invariant.

Capacity is always checked against a locked batch row, in the same
transaction that inserts the enrollment, so concurrent enrollers cannot
both take the last seat.
"""

import logging
from datetime import datetime

from sqlalchemy import func

from backoffice.errors import NotFoundError, CapacityExceededError, AlreadyEnrolledError
from backoffice.models.course import Batch
from backoffice.models.enrollment import Enrollment, EnrollmentStatus
from backoffice.models.payment import PaymentStatus
from backoffice.services.audit_service import AuditService
from backoffice.utils.transactions import run_in_transaction


class EnrollmentService:
    """Stateless enrollment operations taking an explicit session."""

    logger = logging.getLogger('enrollment_service')

    @staticmethod
    def lock_batch(session, batch_id):
        """Load a live batch with a row lock, or raise NotFoundError."""
        batch = (
            session.query(Batch)
            .filter(Batch.id == batch_id, Batch.deleted_at.is_(None))
            .with_for_update()
            .first()
        )
        if not batch:
            raise NotFoundError('Batch not found', batch_id=batch_id)
        return batch

    @staticmethod
    def enrolled_count(session, batch_id):
        return (
            session.query(func.count(Enrollment.id))
            .filter(Enrollment.batch_id == batch_id)
            .scalar()
        )

    @staticmethod
    def has_capacity(session, batch):
        return EnrollmentService.enrolled_count(session, batch.id) < batch.capacity

    @staticmethod
    def check_capacity(session, batch):
        """
        Assert the batch has a free seat.

        Must run after ``lock_batch`` in the same transaction.

        Returns:
            tuple: (enrolled, capacity)
        """
        enrolled = EnrollmentService.enrolled_count(session, batch.id)
        if enrolled >= batch.capacity:
            raise CapacityExceededError(
                'Batch is already full',
                batch_id=batch.id, enrolled=enrolled, capacity=batch.capacity
            )
        return enrolled, batch.capacity

    @staticmethod
    def insert_enrollment(session, student_id, batch, status=EnrollmentStatus.ACTIVE,
                          payment_status=PaymentStatus.PENDING):
        """
        Capacity- and duplicate-checked insert into a locked batch.
        Caller owns the transaction and the audit entry.
        """
        EnrollmentService.check_capacity(session, batch)

        existing = (
            session.query(Enrollment.id)
            .filter_by(student_id=student_id, batch_id=batch.id)
            .first()
        )
        if existing:
            raise AlreadyEnrolledError(student_id=student_id, batch_id=batch.id)

        enrollment = Enrollment(
            student_id=student_id,
            batch_id=batch.id,
            status=status,
            payment_status=payment_status,
            enrolled_at=datetime.now() if status == EnrollmentStatus.ACTIVE else None
        )
        session.add(enrollment)
        session.flush()
        return enrollment

    @staticmethod
    def enroll(session, student_id, batch_id, actor_id, status=EnrollmentStatus.ACTIVE):
        """
        Manually enroll a student into a batch.

        Raises:
            NotFoundError: batch missing or soft-deleted
            CapacityExceededError: batch is full
            AlreadyEnrolledError: student already holds an enrollment in the batch

        Returns:
            dict: the created enrollment
        """

        def work(tx):
            batch = EnrollmentService.lock_batch(tx, batch_id)
            enrollment = EnrollmentService.insert_enrollment(tx, student_id, batch, status=status)
            AuditService.record(
                tx, actor_id, 'ENROLLMENT_CREATED', 'enrollment', enrollment.id,
                new_value={
                    'student_id': student_id,
                    'batch_id': batch_id,
                    'status': enrollment.status,
                    'payment_status': enrollment.payment_status
                }
            )
            return enrollment.to_dict()

        result = run_in_transaction(session, work)
        EnrollmentService.logger.info(
            f"Student {student_id} enrolled in batch {batch_id} by {actor_id} (enrollment {result['id']})"
        )
        return result
