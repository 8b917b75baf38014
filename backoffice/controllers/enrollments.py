from flask import Blueprint, jsonify
from flask_login import current_user

from backoffice.controllers import json_body
from backoffice.errors import ValidationError
from backoffice.extensions import db
from backoffice.models.enrollment import EnrollmentStatus
from backoffice.models.user import RoleType
from backoffice.services.enrollment_service import EnrollmentService
from backoffice.utils.auth import role_required

enrollments_bp = Blueprint('enrollments', __name__)


@enrollments_bp.route('', methods=['POST'])
@role_required(RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.STAFF)
def create_enrollment():
    """Manually enroll a student into a batch"""
    data = json_body('student_id', 'batch_id')
    try:
        status = EnrollmentStatus(data.get('status', EnrollmentStatus.ACTIVE.value))
    except ValueError:
        raise ValidationError(f"Unknown enrollment status: {data.get('status')}")

    enrollment = EnrollmentService.enroll(
        db.session, data['student_id'], data['batch_id'], current_user.id, status=status
    )
    return jsonify({'success': True, 'enrollment': enrollment}), 201
