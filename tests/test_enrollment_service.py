import pytest

from backoffice.errors import AlreadyEnrolledError, CapacityExceededError, NotFoundError
from backoffice.extensions import db
from backoffice.models import AuditLog, Enrollment, EnrollmentStatus
from backoffice.services.enrollment_service import EnrollmentService
from tests.helpers import Factory, run_concurrently


def test_enroll_creates_active_enrollment(session, factory, admin, student):
    batch = factory.batch(capacity=2)

    result = EnrollmentService.enroll(session, student.id, batch.id, admin.id)

    assert result['status'] == 'ACTIVE'
    assert result['payment_status'] == 'PENDING'
    assert result['enrolled_at'] is not None

    entry = session.query(AuditLog).filter_by(entity='enrollment', entity_id=result['id']).one()
    assert entry.action == 'ENROLLMENT_CREATED'
    assert entry.new_value['batch_id'] == batch.id


def test_pending_enrollment_has_no_enrolled_at(session, factory, admin, student):
    batch = factory.batch()

    result = EnrollmentService.enroll(session, student.id, batch.id, admin.id, status=EnrollmentStatus.PENDING)

    assert result['status'] == 'PENDING'
    assert result['enrolled_at'] is None


def test_full_batch_rejects_enrollment(session, factory, admin, student):
    batch = factory.batch(capacity=1)
    factory.enrollment(batch=batch)

    with pytest.raises(CapacityExceededError) as exc_info:
        EnrollmentService.enroll(session, student.id, batch.id, admin.id)

    assert exc_info.value.details == {'batch_id': batch.id, 'enrolled': 1, 'capacity': 1}
    assert session.query(AuditLog).count() == 0


def test_duplicate_enrollment(session, factory, admin, student):
    batch = factory.batch()
    EnrollmentService.enroll(session, student.id, batch.id, admin.id)

    with pytest.raises(AlreadyEnrolledError):
        EnrollmentService.enroll(session, student.id, batch.id, admin.id)


def test_deleted_batch_is_not_found(session, factory, admin, student):
    batch = factory.batch(deleted=True)

    with pytest.raises(NotFoundError):
        EnrollmentService.enroll(session, student.id, batch.id, admin.id)


def test_check_capacity_reports_usage(session, factory):
    batch = factory.batch(capacity=3)
    factory.enrollment(batch=batch)
    factory.enrollment(batch=batch, status=EnrollmentStatus.PENDING)

    assert EnrollmentService.check_capacity(session, batch) == (2, 3)


def test_concurrent_enrollments_never_exceed_capacity(concurrent_app):
    factory = Factory(db.session)
    admin = factory.user()
    batch = factory.batch(capacity=3)
    students = [factory.user() for _ in range(4)]
    admin_id, batch_id = admin.id, batch.id
    student_ids = [s.id for s in students]
    db.session.remove()

    results = run_concurrently(
        concurrent_app, len(student_ids),
        lambda index: EnrollmentService.enroll(db.session, student_ids[index], batch_id, admin_id)
    )

    successes = [value for outcome, value in results if outcome == 'ok']
    errors = [value for outcome, value in results if outcome == 'error']
    assert len(successes) == 3
    assert len(errors) == 1
    assert isinstance(errors[0], CapacityExceededError)
    assert db.session.query(Enrollment).filter_by(batch_id=batch_id).count() == 3
