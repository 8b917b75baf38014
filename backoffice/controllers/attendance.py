from flask import Blueprint, jsonify, request
from flask_login import current_user

from backoffice.controllers import json_body
from backoffice.errors import ValidationError
from backoffice.extensions import db
from backoffice.models.user import RoleType
from backoffice.services.attendance_service import AttendanceService
from backoffice.utils.auth import role_required

attendance_bp = Blueprint('attendance', __name__)

ATTENDANCE_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.TEACHER)


@attendance_bp.route('', methods=['POST'])
@role_required(*ATTENDANCE_ROLES)
def mark_attendance():
    data = json_body('batch_id', 'student_id', 'date', 'status')
    attendance = AttendanceService.mark_one(
        db.session,
        batch_id=data['batch_id'],
        student_id=data['student_id'],
        day=data['date'],
        status=data['status'],
        marked_by=current_user.id,
        notes=data.get('notes')
    )
    return jsonify({'success': True, 'attendance': attendance}), 201


@attendance_bp.route('/bulk', methods=['POST'])
@role_required(*ATTENDANCE_ROLES)
def bulk_mark_attendance():
    """Mark the batch roster for a date, skipping students already marked"""
    data = json_body('batch_id', 'date', 'status')
    student_ids = data.get('student_ids')
    if student_ids is not None and not isinstance(student_ids, list):
        raise ValidationError('student_ids must be a list')

    result = AttendanceService.mark_bulk(
        db.session,
        batch_id=data['batch_id'],
        day=data['date'],
        status=data['status'],
        marked_by=current_user.id,
        student_ids=student_ids,
        notes=data.get('notes')
    )
    return jsonify({
        'success': True,
        'message': f"Attendance marked for {result['marked']} students",
        **result
    }), 201


@attendance_bp.route('/<attendance_id>', methods=['PUT'])
@role_required(*ATTENDANCE_ROLES)
def update_attendance(attendance_id):
    data = json_body('status')
    attendance = AttendanceService.update_attendance(
        db.session, attendance_id, data['status'], data.get('notes')
    )
    return jsonify({'success': True, 'attendance': attendance})


@attendance_bp.route('/batch/<batch_id>', methods=['GET'])
@role_required(*ATTENDANCE_ROLES)
def batch_attendance(batch_id):
    day = request.args.get('date')
    if not day:
        raise ValidationError('date query parameter is required')
    return jsonify({'success': True, **AttendanceService.get_batch_attendance(db.session, batch_id, day)})
