# services/attendance_service.py
"""
Attendance marking for a batch.

Bulk marking resolves the roster, subtracts the students already marked for
the day and inserts only the remainder, so it can be called again for the
same date to fill gaps.
"""

import logging
from datetime import date, datetime

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from backoffice.errors import (
    NotFoundError, NotEnrolledError, AlreadyMarkedError, AllAlreadyMarkedError, NoStudentsError,
    ValidationError
)
from backoffice.models.attendance import Attendance, AttendanceStatus
from backoffice.models.course import Batch
from backoffice.models.enrollment import Enrollment, EnrollmentStatus
from backoffice.utils.transactions import run_in_transaction


def parse_date(value):
    """Accept a date, a datetime or an ISO 'YYYY-MM-DD' string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError('Invalid date format, expected YYYY-MM-DD', date=value)


def parse_status(value):
    try:
        return AttendanceStatus(value)
    except ValueError:
        raise ValidationError(f'Unknown attendance status: {value}',
                              allowed=[s.value for s in AttendanceStatus])


def _live_batch(session, batch_id):
    batch = (
        session.query(Batch)
        .filter(Batch.id == batch_id, Batch.deleted_at.is_(None))
        .first()
    )
    if not batch:
        raise NotFoundError('Batch not found', batch_id=batch_id)
    return batch


class AttendanceService:
    """Stateless attendance operations taking an explicit session."""

    logger = logging.getLogger('attendance_service')

    @staticmethod
    def mark_one(session, batch_id, student_id, day, status, marked_by, notes=None):
        """
        Mark attendance for one student.

        Raises:
            NotFoundError: batch missing or soft-deleted
            NotEnrolledError: student has no enrollment in the batch
            AlreadyMarkedError: a record exists for the student, batch and date
        """
        day = parse_date(day)
        status = parse_status(status)

        def work(tx):
            _live_batch(tx, batch_id)

            enrollment = (
                tx.query(Enrollment.id)
                .filter_by(student_id=student_id, batch_id=batch_id)
                .first()
            )
            if not enrollment:
                raise NotEnrolledError(student_id=student_id, batch_id=batch_id)

            existing = (
                tx.query(Attendance.id)
                .filter_by(student_id=student_id, batch_id=batch_id, date=day)
                .first()
            )
            if existing:
                raise AlreadyMarkedError(student_id=student_id, date=day.isoformat())

            attendance = Attendance(
                batch_id=batch_id,
                student_id=student_id,
                date=day,
                status=status,
                marked_by=marked_by,
                notes=notes
            )
            tx.add(attendance)
            tx.flush()
            return attendance.to_dict()

        try:
            result = run_in_transaction(session, work)
        except IntegrityError:
            # A concurrent request inserted the same record first
            raise AlreadyMarkedError(student_id=student_id, date=day.isoformat())

        AttendanceService.logger.info(
            f"Attendance marked for {student_id} in batch {batch_id} on {day}: {status.value}"
        )
        return result

    @staticmethod
    def mark_bulk(session, batch_id, day, status, marked_by, student_ids=None, notes=None):
        """
        Mark attendance for the active roster of a batch, skipping students
        already marked for the day.

        Args:
            student_ids: optional subset; intersected with ACTIVE enrollments

        Raises:
            NotFoundError: batch missing or soft-deleted
            NoStudentsError: no active enrolled student matches
            AllAlreadyMarkedError: every resolved student is already marked

        Returns:
            dict: {'marked': int, 'skipped': int, 'total': int}
        """
        day = parse_date(day)
        status = parse_status(status)

        def work(tx):
            _live_batch(tx, batch_id)

            roster_query = (
                tx.query(Enrollment.student_id)
                .filter(Enrollment.batch_id == batch_id, Enrollment.status == EnrollmentStatus.ACTIVE)
            )
            if student_ids:
                roster_query = roster_query.filter(Enrollment.student_id.in_(student_ids))
            roster = {row.student_id for row in roster_query.all()}

            if not roster:
                raise NoStudentsError('No enrolled students found', batch_id=batch_id)

            already_marked = {
                row.student_id for row in (
                    tx.query(Attendance.student_id)
                    .filter(Attendance.batch_id == batch_id,
                            Attendance.date == day,
                            Attendance.student_id.in_(roster))
                    .all()
                )
            }

            to_mark = sorted(roster - already_marked)
            if not to_mark:
                raise AllAlreadyMarkedError(
                    'Attendance already marked for all students',
                    batch_id=batch_id, date=day.isoformat(),
                    marked=0, skipped=len(already_marked), total=len(roster)
                )

            tx.execute(insert(Attendance), [
                {
                    'batch_id': batch_id,
                    'student_id': student_id,
                    'date': day,
                    'status': status,
                    'marked_by': marked_by,
                    'notes': notes,
                }
                for student_id in to_mark
            ])

            return {'marked': len(to_mark), 'skipped': len(already_marked), 'total': len(roster)}

        try:
            result = run_in_transaction(session, work)
        except IntegrityError:
            # Another marker won part of the roster; recompute the difference once
            result = run_in_transaction(session, work)

        AttendanceService.logger.info(
            f"Bulk attendance for batch {batch_id} on {day} by {marked_by}: "
            f"{result['marked']} marked, {result['skipped']} skipped"
        )
        return result

    @staticmethod
    def update_attendance(session, attendance_id, status, notes=None):
        status = parse_status(status)

        def work(tx):
            attendance = (
                tx.query(Attendance)
                .filter_by(id=attendance_id)
                .with_for_update()
                .first()
            )
            if not attendance:
                raise NotFoundError('Attendance record not found', attendance_id=attendance_id)

            attendance.status = status
            if notes is not None:
                attendance.notes = notes
            tx.flush()
            return attendance.to_dict()

        result = run_in_transaction(session, work)
        AttendanceService.logger.info(f"Attendance {attendance_id} updated to {status.value}")
        return result

    @staticmethod
    def get_batch_attendance(session, batch_id, day):
        """Roster of ACTIVE students with their record for the day and a summary."""
        day = parse_date(day)
        batch = _live_batch(session, batch_id)

        enrollments = (
            session.query(Enrollment)
            .filter(Enrollment.batch_id == batch_id, Enrollment.status == EnrollmentStatus.ACTIVE)
            .all()
        )
        records = session.query(Attendance).filter_by(batch_id=batch_id, date=day).all()
        by_student = {record.student_id: record for record in records}

        students = []
        for enrollment in enrollments:
            record = by_student.get(enrollment.student_id)
            student = enrollment.student
            students.append({
                'student_id': enrollment.student_id,
                'name': student.name if student else None,
                'email': student.email if student else None,
                'attendance': record.to_dict() if record else None
            })

        marked = [by_student[s['student_id']] for s in students if s['attendance']]
        return {
            'batch': {
                'id': batch.id,
                'name': batch.name,
                'course': batch.course.title if batch.course else None
            },
            'date': day.isoformat(),
            'students': students,
            'summary': {
                'total': len(students),
                'present': sum(1 for r in marked if r.status == AttendanceStatus.PRESENT),
                'absent': sum(1 for r in marked if r.status == AttendanceStatus.ABSENT),
                'late': sum(1 for r in marked if r.status == AttendanceStatus.LATE),
                'unmarked': len(students) - len(marked)
            }
        }

    @staticmethod
    def attendance_stats(session, student_id, batch_id=None, start=None, end=None):
        query = session.query(Attendance.status).filter(Attendance.student_id == student_id)
        if batch_id:
            query = query.filter(Attendance.batch_id == batch_id)
        if start:
            query = query.filter(Attendance.date >= parse_date(start))
        if end:
            query = query.filter(Attendance.date <= parse_date(end))

        statuses = [row.status for row in query.all()]
        total = len(statuses)
        present = statuses.count(AttendanceStatus.PRESENT)

        return {
            'total': total,
            'present': present,
            'absent': statuses.count(AttendanceStatus.ABSENT),
            'late': statuses.count(AttendanceStatus.LATE),
            'percentage': round(present / total * 100, 2) if total else 0
        }
