# services/payment_service.py
"""
Payment upload and the approve/reject workflow.

approve/reject run in three phases:
  1. idempotency lookup (a hit returns the stored result, nothing else runs)
  2. one transaction: lock the payment, require PENDING, update payment and
     enrollment, write the audit entry and the student notification
  3. after commit: cache invalidation, invoice generation (approve only),
     then the result is stored under the idempotency key
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from backoffice.errors import (
    NotFoundError, ForbiddenError, AlreadyProcessedError, DuplicateTransactionError, InvalidStatusError,
    ValidationError
)
from backoffice.extensions import cache_service, post_commit
from backoffice.models.enrollment import Enrollment, EnrollmentStatus
from backoffice.models.notification import NotificationType
from backoffice.models.payment import Payment, PaymentStatus
from backoffice.services.audit_service import AuditService
from backoffice.services.idempotency_service import IdempotencyCache
from backoffice.services.invoice_service import InvoiceService
from backoffice.services.notification_service import NotificationService
from backoffice.utils.post_commit import Priority
from backoffice.utils.transactions import run_in_transaction

idempotency = IdempotencyCache(cache_service)


def _parse_amount(amount):
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError('Invalid amount format', amount=amount)
    if not value.is_finite() or value <= 0:
        raise ValidationError('Amount must be greater than zero', amount=amount)
    return value.quantize(Decimal('0.01'))


class PaymentService:
    """Stateless payment workflow taking an explicit session."""

    logger = logging.getLogger('payment_service')

    @staticmethod
    def submit_payment(session, enrollment_id, student_id, amount, transaction_id, screenshot_ref=None,
                       payment_method=None, phone_number=None, notes=None):
        """
        Record a payment proof uploaded by a student.

        Raises:
            NotFoundError: enrollment missing
            ForbiddenError: enrollment belongs to another student
            DuplicateTransactionError: transaction_id already used
        """
        amount = _parse_amount(amount)

        def work(tx):
            enrollment = tx.get(Enrollment, enrollment_id)
            if not enrollment:
                raise NotFoundError('Enrollment not found', enrollment_id=enrollment_id)
            if enrollment.student_id != student_id:
                raise ForbiddenError('You can only upload payments for your own enrollments')

            duplicate = tx.query(Payment.id).filter_by(transaction_id=transaction_id).first()
            if duplicate:
                raise DuplicateTransactionError(transaction_id=transaction_id)

            payment = Payment(
                enrollment_id=enrollment_id,
                student_id=student_id,
                amount=amount,
                transaction_id=transaction_id,
                screenshot_ref=screenshot_ref,
                payment_method=payment_method,
                phone_number=phone_number,
                notes=notes,
                status=PaymentStatus.PENDING
            )
            tx.add(payment)
            tx.flush()
            return payment.to_dict()

        try:
            result = run_in_transaction(session, work)
        except IntegrityError:
            # Lost the race on the unique transaction_id
            if session.query(Payment.id).filter_by(transaction_id=transaction_id).first():
                raise DuplicateTransactionError(transaction_id=transaction_id)
            raise

        cache_service.invalidate_pattern(f"{cache_service.PREFIX_ENROLLMENT}{enrollment_id}*")
        PaymentService.logger.info(
            f"Payment {result['id']} uploaded by {student_id} for enrollment {enrollment_id}"
        )
        return result

    @staticmethod
    def get_payment(session, payment_id):
        payment = session.get(Payment, payment_id)
        if not payment:
            raise NotFoundError('Payment not found', payment_id=payment_id)

        result = payment.to_dict()
        result['invoice'] = payment.invoice.to_dict() if payment.invoice else None
        return result

    @staticmethod
    def list_payments(session, status=None, student_id=None, enrollment_id=None, page=1, page_size=20):
        """List payments newest first with pagination metadata."""
        query = session.query(Payment)
        if status:
            try:
                query = query.filter(Payment.status == PaymentStatus(status))
            except ValueError:
                raise InvalidStatusError(f'Unknown payment status: {status}')
        if student_id:
            query = query.filter(Payment.student_id == student_id)
        if enrollment_id:
            query = query.filter(Payment.enrollment_id == enrollment_id)

        page = max(int(page), 1)
        page_size = max(int(page_size), 1)
        total = query.count()
        payments = (
            query.order_by(Payment.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            'payments': [payment.to_dict() for payment in payments],
            'pagination': {
                'page': page,
                'page_size': page_size,
                'total': total,
                'total_pages': (total + page_size - 1) // page_size
            }
        }

    @staticmethod
    def approve(session, payment_id, actor_id, idempotency_key=None):
        """
        Approve a pending payment and activate its enrollment.

        Returns:
            dict: {'payment': ..., 'enrollment': ...}
        """
        cached = idempotency.check(idempotency_key)
        if cached is not None:
            return cached

        result = PaymentService._decide(session, payment_id, actor_id, PaymentStatus.APPROVED)

        post_commit.submit(
            'invoice', InvoiceService.generate_after_approval, payment_id, actor_id,
            priority=Priority.HIGH
        )

        idempotency.store(idempotency_key, result)
        return result

    @staticmethod
    def reject(session, payment_id, actor_id, reason, idempotency_key=None):
        """
        Reject a pending payment with a reason.

        Returns:
            dict: {'payment': ..., 'enrollment': ...}
        """
        cached = idempotency.check(idempotency_key)
        if cached is not None:
            return cached

        result = PaymentService._decide(session, payment_id, actor_id, PaymentStatus.REJECTED, reason)

        idempotency.store(idempotency_key, result)
        return result

    @staticmethod
    def _decide(session, payment_id, actor_id, decision, reason=None):
        def work(tx):
            payment = (
                tx.query(Payment)
                .filter_by(id=payment_id)
                .with_for_update()
                .first()
            )
            if not payment:
                raise NotFoundError('Payment not found', payment_id=payment_id)

            if payment.status != PaymentStatus.PENDING:
                raise AlreadyProcessedError(
                    f'Payment already {payment.status.value.lower()}',
                    payment_id=payment_id, status=payment.status.value
                )

            enrollment = payment.enrollment
            old_value = {
                'status': payment.status,
                'approved_by': payment.approved_by,
                'approved_at': payment.approved_at,
                'rejected_reason': payment.rejected_reason,
            }
            now = datetime.now()

            payment.status = decision
            payment.approved_by = actor_id
            payment.approved_at = now
            if decision == PaymentStatus.REJECTED:
                payment.rejected_reason = reason
                enrollment.payment_status = PaymentStatus.REJECTED
            else:
                enrollment.payment_status = PaymentStatus.APPROVED
                enrollment.status = EnrollmentStatus.ACTIVE
                enrollment.enrolled_at = now

            AuditService.record(
                tx, actor_id,
                'PAYMENT_APPROVED' if decision == PaymentStatus.APPROVED else 'PAYMENT_REJECTED',
                'payment', payment.id,
                old_value=old_value,
                new_value={
                    'status': decision,
                    'approved_by': actor_id,
                    'approved_at': now,
                    'rejected_reason': payment.rejected_reason,
                }
            )

            course_title = enrollment.batch.course.title
            if decision == PaymentStatus.APPROVED:
                NotificationService.enqueue(
                    tx, payment.student_id, 'Payment Approved',
                    f'Your payment of {payment.amount} for {course_title} has been approved.',
                    type=NotificationType.SUCCESS
                )
            else:
                NotificationService.enqueue(
                    tx, payment.student_id, 'Payment Rejected',
                    f'Your payment of {payment.amount} for {course_title} has been rejected. Reason: {reason}',
                    type=NotificationType.ERROR
                )

            tx.flush()
            return {'payment': payment.to_dict(), 'enrollment': enrollment.to_dict()}

        result = run_in_transaction(session, work)

        enrollment_id = result['enrollment']['id']
        cache_service.invalidate_pattern(f"{cache_service.PREFIX_ENROLLMENT}{enrollment_id}*")
        cache_service.invalidate_pattern(f"{cache_service.PREFIX_PAYMENT}{payment_id}*")

        PaymentService.logger.info(
            f"Payment {payment_id} {decision.value.lower()} by {actor_id}"
        )
        return result
