# models/__init__.py
from .base import BaseModel
from .user import User, RoleType, STAFF_ROLES
from .course import Course, Batch, BatchStatus
from .payment import Payment, PaymentStatus, Invoice
from .enrollment import Enrollment, EnrollmentStatus
from .registration import Registration, RegistrationStatus
from .attendance import Attendance, AttendanceStatus
from .audit import AuditLog
from .notification import Notification, NotificationType

__all__ = [
    'BaseModel',
    'User',
    'RoleType',
    'STAFF_ROLES',
    'Course',
    'Batch',
    'BatchStatus',
    'Payment',
    'PaymentStatus',
    'Invoice',
    'Enrollment',
    'EnrollmentStatus',
    'Registration',
    'RegistrationStatus',
    'Attendance',
    'AttendanceStatus',
    'AuditLog',
    'Notification',
    'NotificationType'
]
