# models/attendance.py
import enum

from sqlalchemy import Index, UniqueConstraint

from backoffice.extensions import db
from .base import BaseModel, enum_column


class AttendanceStatus(str, enum.Enum):
    PRESENT = 'PRESENT'
    ABSENT = 'ABSENT'
    LATE = 'LATE'


class Attendance(BaseModel):
    __tablename__ = 'attendance'

    batch_id = db.Column(db.String(36), db.ForeignKey('batches.id'), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    status = enum_column(AttendanceStatus, nullable=False)
    marked_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Relationships
    batch = db.relationship('Batch')
    student = db.relationship('User', foreign_keys=[student_id])

    __table_args__ = (
        # One record per student, batch and day
        UniqueConstraint('student_id', 'batch_id', 'date', name='uq_attendance_student_batch_date'),
        Index('idx_attendance_batch_date', 'batch_id', 'date'),
        Index('idx_attendance_student_date', 'student_id', 'date'),
    )

    def __repr__(self):
        return f'<Attendance {self.student_id} {self.date} {self.status.value if self.status else None}>'
