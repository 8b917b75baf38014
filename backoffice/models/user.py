# models/user.py
import enum

from flask_login import UserMixin
from sqlalchemy import Index

from backoffice.extensions import db
from .base import BaseModel, enum_column


class RoleType(str, enum.Enum):
    """Role types resolved for the acting user."""
    SUPER_ADMIN = 'SUPER_ADMIN'
    ADMIN = 'ADMIN'
    TEACHER = 'TEACHER'
    STAFF = 'STAFF'
    STUDENT = 'STUDENT'


STAFF_ROLES = (RoleType.SUPER_ADMIN, RoleType.ADMIN, RoleType.TEACHER, RoleType.STAFF)


class User(UserMixin, BaseModel):
    """Actor referenced by workflow records. Credentials live elsewhere."""

    __tablename__ = 'users'

    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    role = enum_column(RoleType, nullable=False, default=RoleType.STUDENT)
    is_active_account = db.Column('is_active', db.Boolean, default=True, nullable=False)

    __table_args__ = (
        Index('idx_users_role', 'role'),
    )

    @property
    def is_active(self):
        return self.is_active_account

    def has_any_role(self, roles):
        return self.role in roles

    def is_staff(self):
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f'<User {self.email} ({self.role.value if self.role else None})>'
