from flask import Blueprint, jsonify, request
from flask_login import current_user

from backoffice.controllers import json_body
from backoffice.errors import ForbiddenError
from backoffice.extensions import db
from backoffice.models.user import RoleType
from backoffice.services.registration_service import RegistrationService
from backoffice.utils.auth import role_required, staff_required, login_required_json

registrations_bp = Blueprint('registrations', __name__)

REVIEW_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.TEACHER, RoleType.STAFF)
FINANCE_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.STAFF)
ADMIN_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN)


@registrations_bp.route('', methods=['POST'])
@login_required_json
def submit_registration():
    """Submit a registration for the current user"""
    data = json_body('course_id', 'documents')
    registration = RegistrationService.submit(
        db.session,
        student_id=current_user.id,
        course_id=data['course_id'],
        documents=data['documents'],
        batch_preference=data.get('batch_preference')
    )
    return jsonify({'success': True, 'registration': registration}), 201


@registrations_bp.route('', methods=['GET'])
@staff_required
def list_registrations():
    registrations = RegistrationService.list_registrations(db.session, status=request.args.get('status'))
    return jsonify({'success': True, 'registrations': registrations})


@registrations_bp.route('/<registration_id>', methods=['GET'])
@login_required_json
def get_registration(registration_id):
    registration = RegistrationService.get_registration(db.session, registration_id)
    if not current_user.is_staff() and registration['student_id'] != current_user.id:
        raise ForbiddenError('You can only view your own registrations')
    return jsonify({'success': True, 'registration': registration})


@registrations_bp.route('/<registration_id>/academic-review', methods=['PATCH'])
@role_required(*REVIEW_ROLES)
def academic_review(registration_id):
    data = json_body('status')
    registration = RegistrationService.academic_review(
        db.session, registration_id, current_user.id, data['status'], data.get('notes')
    )
    return jsonify({'success': True, 'registration': registration})


@registrations_bp.route('/<registration_id>/financial-verify', methods=['PATCH'])
@role_required(*FINANCE_ROLES)
def financial_verify(registration_id):
    data = json_body('status')
    registration = RegistrationService.financial_verify(
        db.session, registration_id, current_user.id, data['status'], data.get('notes')
    )
    return jsonify({'success': True, 'registration': registration})


@registrations_bp.route('/<registration_id>/final-approve', methods=['PATCH'])
@role_required(*ADMIN_ROLES)
def final_approve(registration_id):
    """Final approval; an APPROVED decision also creates the enrollment"""
    data = json_body('status')
    result = RegistrationService.final_approve(
        db.session, registration_id, current_user.id, data['status'], data.get('notes')
    )
    return jsonify({'success': True, **result})
