from flask import Blueprint, jsonify, request
from flask_login import current_user

from backoffice.controllers import json_body, pagination_args
from backoffice.errors import ForbiddenError
from backoffice.extensions import db
from backoffice.models.user import RoleType
from backoffice.services.payment_service import PaymentService
from backoffice.utils.auth import role_required, login_required_json

payments_bp = Blueprint('payments', __name__)

PAYMENT_REVIEW_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.STAFF)


@payments_bp.route('', methods=['POST'])
@login_required_json
def upload_payment():
    """Record a payment proof for one of the current user's enrollments"""
    data = json_body('enrollment_id', 'amount', 'transaction_id')
    payment = PaymentService.submit_payment(
        db.session,
        enrollment_id=data['enrollment_id'],
        student_id=current_user.id,
        amount=data['amount'],
        transaction_id=data['transaction_id'],
        screenshot_ref=data.get('screenshot_ref'),
        payment_method=data.get('payment_method'),
        phone_number=data.get('phone_number'),
        notes=data.get('notes')
    )
    return jsonify({'success': True, 'payment': payment}), 201


@payments_bp.route('', methods=['GET'])
@login_required_json
def list_payments():
    """Staff see every payment; students only their own"""
    page, page_size = pagination_args()
    student_id = request.args.get('student_id') if current_user.is_staff() else current_user.id

    result = PaymentService.list_payments(
        db.session,
        status=request.args.get('status'),
        student_id=student_id,
        enrollment_id=request.args.get('enrollment_id'),
        page=page,
        page_size=page_size
    )
    return jsonify({'success': True, **result})


@payments_bp.route('/<payment_id>', methods=['GET'])
@login_required_json
def get_payment(payment_id):
    payment = PaymentService.get_payment(db.session, payment_id)
    if not current_user.is_staff() and payment['student_id'] != current_user.id:
        raise ForbiddenError('You can only view your own payments')
    return jsonify({'success': True, 'payment': payment})


@payments_bp.route('/<payment_id>/approve', methods=['POST'])
@role_required(*PAYMENT_REVIEW_ROLES)
def approve_payment(payment_id):
    result = PaymentService.approve(
        db.session, payment_id, current_user.id,
        idempotency_key=request.headers.get('Idempotency-Key')
    )
    return jsonify({'success': True, **result})


@payments_bp.route('/<payment_id>/reject', methods=['POST'])
@role_required(*PAYMENT_REVIEW_ROLES)
def reject_payment(payment_id):
    data = json_body('reason')
    result = PaymentService.reject(
        db.session, payment_id, current_user.id, data['reason'],
        idempotency_key=request.headers.get('Idempotency-Key')
    )
    return jsonify({'success': True, **result})
