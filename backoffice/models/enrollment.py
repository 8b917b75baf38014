# models/enrollment.py
import enum

from sqlalchemy import Index, UniqueConstraint

from backoffice.extensions import db
from .base import BaseModel, enum_column
from .payment import PaymentStatus


class EnrollmentStatus(str, enum.Enum):
    """Enrollment status values."""
    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class Enrollment(BaseModel):
    """A student's seat in a batch."""

    __tablename__ = 'enrollments'

    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    batch_id = db.Column(db.String(36), db.ForeignKey('batches.id'), nullable=False, index=True)
    status = enum_column(EnrollmentStatus, nullable=False, default=EnrollmentStatus.PENDING)
    payment_status = enum_column(PaymentStatus, nullable=False, default=PaymentStatus.PENDING)
    enrolled_at = db.Column(db.DateTime, nullable=True)

    student = db.relationship('User', foreign_keys=[student_id])
    batch = db.relationship('Batch', back_populates='enrollments')
    payments = db.relationship('Payment', back_populates='enrollment', lazy='dynamic')

    __table_args__ = (
        UniqueConstraint('student_id', 'batch_id', name='uq_enrollment_student_batch'),
        Index('idx_enrollment_batch_status', 'batch_id', 'status'),
    )

    def __repr__(self):
        return f'<Enrollment {self.student_id} in {self.batch_id} ({self.status.value if self.status else None})>'
