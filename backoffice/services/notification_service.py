# services/notification_service.py
from backoffice.models.notification import Notification, NotificationType


class NotificationService:
    """Queues in-app notifications in the caller's transaction."""

    @staticmethod
    def enqueue(session, user_id, title, message, type=NotificationType.INFO):
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message
        )
        session.add(notification)
        return notification
