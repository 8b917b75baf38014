# services/registration_service.py
"""
Student registration approval workflow.

A registration advances PENDING -> ACADEMIC_REVIEWED -> FINANCIAL_VERIFIED
-> APPROVED, or moves to REJECTED from any non-terminal step. Each step is
one transaction: lock the row, check the exact predecessor state, check the
decision, write the step fields plus one audit entry and one notification.
"""

import logging
from collections import namedtuple
from datetime import datetime

from backoffice.errors import (
    NotFoundError, InvalidSequenceError, InvalidStatusError, NoBatchAvailableError
)
from backoffice.models.course import Batch, BatchStatus
from backoffice.models.enrollment import EnrollmentStatus
from backoffice.models.notification import NotificationType
from backoffice.models.payment import PaymentStatus
from backoffice.models.registration import Registration, RegistrationStatus
from backoffice.services.audit_service import AuditService
from backoffice.services.enrollment_service import EnrollmentService
from backoffice.services.notification_service import NotificationService
from backoffice.utils.transactions import run_in_transaction

ReviewStep = namedtuple('ReviewStep', 'name predecessor forward actor_field timestamp_field sequence_message')

ACADEMIC_REVIEW = ReviewStep(
    'academic_review', RegistrationStatus.PENDING, RegistrationStatus.ACADEMIC_REVIEWED,
    'academic_reviewed_by', 'academic_reviewed_at',
    'Registration must be pending to be academically reviewed'
)
FINANCIAL_VERIFICATION = ReviewStep(
    'financial_verification', RegistrationStatus.ACADEMIC_REVIEWED, RegistrationStatus.FINANCIAL_VERIFIED,
    'financial_verified_by', 'financial_verified_at',
    'Registration must be academic reviewed first'
)
FINAL_APPROVAL = ReviewStep(
    'final_approval', RegistrationStatus.FINANCIAL_VERIFIED, RegistrationStatus.APPROVED,
    'approved_by', 'approved_at',
    'Registration must be financial verified first'
)

STEP_ACTIONS = {
    RegistrationStatus.ACADEMIC_REVIEWED: 'REGISTRATION_ACADEMIC_REVIEWED',
    RegistrationStatus.FINANCIAL_VERIFIED: 'REGISTRATION_FINANCIAL_VERIFIED',
    RegistrationStatus.APPROVED: 'REGISTRATION_APPROVED',
    RegistrationStatus.REJECTED: 'REGISTRATION_REJECTED',
}


def _coerce_decision(decision):
    try:
        return RegistrationStatus(decision)
    except ValueError:
        raise InvalidStatusError(f'Unknown registration status: {decision}')


class RegistrationService:
    """Stateless registration workflow taking an explicit session."""

    logger = logging.getLogger('registration_service')

    @staticmethod
    def submit(session, student_id, course_id, documents, batch_preference=None):
        """Submit a new registration in PENDING state."""

        def work(tx):
            registration = Registration(
                student_id=student_id,
                course_id=course_id,
                batch_preference=batch_preference,
                documents=documents,
                status=RegistrationStatus.PENDING
            )
            tx.add(registration)
            tx.flush()
            return registration.to_dict()

        result = run_in_transaction(session, work)
        RegistrationService.logger.info(f"New registration {result['id']} submitted by {student_id}")
        return result

    @staticmethod
    def get_registration(session, registration_id):
        registration = session.get(Registration, registration_id)
        if not registration:
            raise NotFoundError('Registration not found', registration_id=registration_id)
        return registration.to_dict()

    @staticmethod
    def list_registrations(session, status=None):
        query = session.query(Registration)
        if status:
            query = query.filter(Registration.status == _coerce_decision(status))
        registrations = query.order_by(Registration.created_at.desc()).all()
        return [registration.to_dict() for registration in registrations]

    @staticmethod
    def academic_review(session, registration_id, actor_id, decision, notes=None):
        """Step 1: performed by staff or admin."""
        return RegistrationService._review(session, ACADEMIC_REVIEW, registration_id, actor_id, decision, notes)

    @staticmethod
    def financial_verify(session, registration_id, actor_id, decision, notes=None):
        """Step 2: performed by finance staff or admin."""
        return RegistrationService._review(session, FINANCIAL_VERIFICATION, registration_id, actor_id,
                                           decision, notes)

    @staticmethod
    def final_approve(session, registration_id, actor_id, decision, notes=None):
        """
        Step 3: performed by admin.

        Approval also resolves a batch and creates an ACTIVE enrollment in the
        same transaction. If no batch can take the student the whole step
        aborts with NoBatchAvailableError and the registration keeps its
        FINANCIAL_VERIFIED state.

        Returns:
            dict: {'registration': ..., 'enrollment': ... or None}
        """
        return RegistrationService._review(session, FINAL_APPROVAL, registration_id, actor_id, decision, notes)

    @staticmethod
    def _review(session, step, registration_id, actor_id, decision, notes):

        def work(tx):
            registration = (
                tx.query(Registration)
                .filter_by(id=registration_id)
                .with_for_update()
                .first()
            )
            if not registration:
                raise NotFoundError('Registration not found', registration_id=registration_id)

            if registration.status != step.predecessor:
                raise InvalidSequenceError(
                    step.sequence_message,
                    current_status=registration.status.value,
                    required_status=step.predecessor.value
                )

            status = _coerce_decision(decision)
            if status not in (step.forward, RegistrationStatus.REJECTED):
                raise InvalidStatusError(
                    f'Invalid status for {step.name.replace("_", " ")}',
                    allowed=[step.forward.value, RegistrationStatus.REJECTED.value]
                )

            old_status = registration.status
            now = datetime.now()

            enrollment = None
            if status == RegistrationStatus.APPROVED:
                enrollment = RegistrationService._create_enrollment(tx, registration)

            registration.status = status
            setattr(registration, step.actor_field, actor_id)
            setattr(registration, step.timestamp_field, now)
            if notes is not None:
                registration.admin_notes = notes

            new_value = {
                'status': status,
                step.actor_field: actor_id,
                step.timestamp_field: now,
            }
            if enrollment is not None:
                new_value['enrollment_id'] = enrollment.id
                new_value['batch_id'] = enrollment.batch_id

            AuditService.record(
                tx, actor_id, STEP_ACTIONS[status], 'registration', registration.id,
                old_value={'status': old_status}, new_value=new_value
            )
            RegistrationService._notify(tx, registration, status, notes)

            tx.flush()
            result = registration.to_dict()
            if step is FINAL_APPROVAL:
                return {
                    'registration': result,
                    'enrollment': enrollment.to_dict() if enrollment is not None else None
                }
            return result

        result = run_in_transaction(session, work)
        RegistrationService.logger.info(
            f"Registration {registration_id} {step.name} completed by {actor_id}: {_coerce_decision(decision).value}"
        )
        return result

    @staticmethod
    def _create_enrollment(tx, registration):
        batch = RegistrationService._resolve_batch(tx, registration)
        if batch is None:
            raise NoBatchAvailableError(
                'No valid batch found for this course. Please assign one manually.',
                course_id=registration.course_id
            )

        # Financial verification is the payment gate on this path
        return EnrollmentService.insert_enrollment(
            tx, registration.student_id, batch,
            status=EnrollmentStatus.ACTIVE,
            payment_status=PaymentStatus.APPROVED
        )

    @staticmethod
    def _resolve_batch(tx, registration):
        """
        Prefer the requested batch when it belongs to the course and has room,
        else the earliest-starting UPCOMING batch of the course with room.
        Every candidate is locked before its capacity is read.
        """
        if registration.batch_preference:
            preferred = (
                tx.query(Batch)
                .filter(Batch.id == registration.batch_preference,
                        Batch.course_id == registration.course_id,
                        Batch.deleted_at.is_(None))
                .with_for_update()
                .first()
            )
            if preferred and EnrollmentService.has_capacity(tx, preferred):
                return preferred

        candidates = (
            tx.query(Batch)
            .filter(Batch.course_id == registration.course_id,
                    Batch.status == BatchStatus.UPCOMING,
                    Batch.deleted_at.is_(None))
            .order_by(Batch.start_date.asc())
            .with_for_update()
            .all()
        )
        for batch in candidates:
            if EnrollmentService.has_capacity(tx, batch):
                return batch
        return None

    @staticmethod
    def _notify(tx, registration, decision, notes):
        if decision == RegistrationStatus.REJECTED:
            message = 'Your registration has been rejected.'
            if notes:
                message += f' Reason: {notes}'
            NotificationService.enqueue(tx, registration.student_id, 'Registration Rejected', message,
                                        type=NotificationType.ERROR)
        elif decision == RegistrationStatus.APPROVED:
            NotificationService.enqueue(tx, registration.student_id, 'Registration Approved',
                                        'Your registration has been approved and you are now enrolled.',
                                        type=NotificationType.SUCCESS)
        else:
            label = decision.value.replace('_', ' ').lower()
            NotificationService.enqueue(tx, registration.student_id, 'Registration Updated',
                                        f'Your registration is now {label}.')
