# models/course.py
import enum

from sqlalchemy import Index

from backoffice.extensions import db
from .base import BaseModel, enum_column


class BatchStatus(str, enum.Enum):
    UPCOMING = 'UPCOMING'
    ONGOING = 'ONGOING'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class Course(BaseModel):
    __tablename__ = 'courses'

    title = db.Column(db.String(200), nullable=False)
    deleted_at = db.Column(db.DateTime, nullable=True)

    batches = db.relationship('Batch', back_populates='course', lazy='dynamic')

    def __repr__(self):
        return f'<Course {self.title}>'


class Batch(BaseModel):
    __tablename__ = 'batches'

    course_id = db.Column(db.String(36), db.ForeignKey('courses.id'), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=30)
    status = enum_column(BatchStatus, nullable=False, default=BatchStatus.UPCOMING)
    deleted_at = db.Column(db.DateTime, nullable=True)

    course = db.relationship('Course', back_populates='batches')
    enrollments = db.relationship('Enrollment', back_populates='batch', lazy='dynamic')

    __table_args__ = (
        # Batch resolution for registration approval: earliest upcoming per course
        Index('idx_batch_course_status_start', 'course_id', 'status', 'start_date'),
    )

    def __repr__(self):
        return f'<Batch {self.name} ({self.status.value if self.status else None})>'
