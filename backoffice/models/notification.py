# models/notification.py
import enum

from sqlalchemy import Index

from backoffice.extensions import db
from .base import BaseModel, enum_column


class NotificationType(str, enum.Enum):
    INFO = 'INFO'
    SUCCESS = 'SUCCESS'
    WARNING = 'WARNING'
    ERROR = 'ERROR'


class Notification(BaseModel):
    """In-app notification row, dispatched by the notification module."""

    __tablename__ = 'notifications'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    type = enum_column(NotificationType, nullable=False, default=NotificationType.INFO)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('idx_notification_user_read', 'user_id', 'is_read'),
    )

    def __repr__(self):
        return f'<Notification {self.title} -> {self.user_id}>'
