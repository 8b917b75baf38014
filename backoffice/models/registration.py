# models/registration.py
import enum

from sqlalchemy import Index

from backoffice.extensions import db
from .base import BaseModel, enum_column


class RegistrationStatus(str, enum.Enum):
    """Registration review states, in workflow order."""
    PENDING = 'PENDING'
    ACADEMIC_REVIEWED = 'ACADEMIC_REVIEWED'
    FINANCIAL_VERIFIED = 'FINANCIAL_VERIFIED'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class Registration(BaseModel):
    """Student registration request moving through a 3-step review."""

    __tablename__ = 'registrations'

    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('courses.id'), nullable=False, index=True)
    batch_preference = db.Column(db.String(36), nullable=True)
    documents = db.Column(db.JSON, nullable=True)
    status = enum_column(RegistrationStatus, nullable=False, default=RegistrationStatus.PENDING)

    academic_reviewed_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    academic_reviewed_at = db.Column(db.DateTime, nullable=True)
    financial_verified_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    financial_verified_at = db.Column(db.DateTime, nullable=True)
    approved_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)

    student = db.relationship('User', foreign_keys=[student_id])
    course = db.relationship('Course')

    __table_args__ = (
        Index('idx_registration_status_created', 'status', 'created_at'),
    )

    def __repr__(self):
        return f'<Registration {self.id} - {self.status.value if self.status else None}>'
