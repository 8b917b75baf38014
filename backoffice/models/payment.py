# models/payment.py
import enum

from sqlalchemy import Index

from backoffice.extensions import db
from .base import BaseModel, enum_column


class PaymentStatus(str, enum.Enum):
    """Payment status values, shared by Enrollment.payment_status."""
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'
    PARTIAL = 'PARTIAL'


class Payment(BaseModel):
    """Payment proof uploaded by a student, decided once by staff."""

    __tablename__ = 'payments'

    enrollment_id = db.Column(db.String(36), db.ForeignKey('enrollments.id'), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    transaction_id = db.Column(db.String(100), unique=True, nullable=False)
    screenshot_ref = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    phone_number = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = enum_column(PaymentStatus, nullable=False, default=PaymentStatus.PENDING)

    approved_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_reason = db.Column(db.Text, nullable=True)

    enrollment = db.relationship('Enrollment', back_populates='payments')
    student = db.relationship('User', foreign_keys=[student_id])
    invoice = db.relationship('Invoice', back_populates='payment', uselist=False)

    __table_args__ = (
        Index('idx_payment_status_created', 'status', 'created_at'),
    )

    def __repr__(self):
        return f'<Payment {self.transaction_id} ({self.status.value if self.status else None})>'


class Invoice(BaseModel):
    """Invoice artifact attached to an approved payment."""

    __tablename__ = 'invoices'

    payment_id = db.Column(db.String(36), db.ForeignKey('payments.id'), unique=True, nullable=False)
    invoice_number = db.Column(db.String(30), unique=True, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    pdf_path = db.Column(db.String(255), nullable=False)
    generated_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    generated_at = db.Column(db.DateTime, nullable=False, index=True)

    payment = db.relationship('Payment', back_populates='invoice')

    def __repr__(self):
        return f'<Invoice {self.invoice_number}>'
