from sqlalchemy.orm import Session
from lucia_hrms.models.notification import Notification


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: str = None
    ) -> Notification:
        """
        Queue a notification in the caller's transaction.
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            link=link
        )
        db.add(notification)
        db.flush()
        return notification

    @staticmethod
    def notify_user(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: str = None
    ):
        """
        Standardized notification trigger.
        """
        return NotificationService.create_notification(db, user_id, title, message, type, link)
