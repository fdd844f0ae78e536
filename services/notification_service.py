# Notification Service for Collab Marketplace
# Provides centralized notification creation and management

from sqlalchemy.orm import Session
from typing import Optional, List
from enum import Enum

from database.models import utcnow
from database.marketplace_models import Notification


class NotificationType(str, Enum):
    """Notification types emitted by the negotiation core."""
    OFFER_RECEIVED = "offer_received"
    APPLICATION_RECEIVED = "application_received"
    OFFER_ACCEPTED = "offer_accepted"
    OFFER_DECLINED = "offer_declined"
    OFFER_COUNTERED = "offer_countered"
    OFFER_INFO_REQUESTED = "offer_info_requested"
    OFFER_RESUBMITTED = "offer_resubmitted"
    OFFER_WITHDRAWN = "offer_withdrawn"
    OFFER_COMPLETED = "offer_completed"
    REVIEW_AVAILABLE = "review_available"
    CONTENT_FLAGGED = "content_flagged"
    SYSTEM = "system"


# Titles per transition target; the message body names the offer
_STATUS_NOTIFICATIONS = {
    "accepted": (NotificationType.OFFER_ACCEPTED, "Offer Accepted! ✅"),
    "declined": (NotificationType.OFFER_DECLINED, "Offer Declined"),
    "counter": (NotificationType.OFFER_COUNTERED, "Counter Offer Received"),
    "info_requested": (NotificationType.OFFER_INFO_REQUESTED, "More Information Requested"),
    "pending": (NotificationType.OFFER_RESUBMITTED, "Offer Updated"),
    "withdrawn": (NotificationType.OFFER_WITHDRAWN, "Offer Withdrawn"),
    "completed": (NotificationType.OFFER_COMPLETED, "Collaboration Completed! 🎉"),
}


class NotificationService:
    """
    Service for creating and managing user notifications.
    Notifications are added to the caller's session; the caller commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        type: NotificationType | str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        """
        Create a new notification for a user.

        Args:
            user_id: The user to notify
            type: Notification type (use NotificationType enum)
            title: Short notification title
            message: Full notification message
            action_url: Optional URL for the notification action
            data: Optional additional data as JSON

        Returns:
            The created Notification object
        """
        if isinstance(type, NotificationType):
            type_value = type.value
        else:
            try:
                type_value = NotificationType(type).value
            except ValueError:
                type_value = NotificationType.SYSTEM.value

        notification = Notification(
            user_id=user_id,
            type=type_value,
            title=title,
            message=message,
            action_url=action_url,
            data=data or {},
        )
        self.db.add(notification)
        self.db.flush()  # Get the ID without committing
        return notification

    def create_batch(
        self,
        user_ids: List[str],
        type: NotificationType | str,
        title: str,
        message: str,
        action_url: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> List[Notification]:
        """Create the same notification for several users."""
        return [
            self.create(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                action_url=action_url,
                data=data,
            )
            for user_id in user_ids
        ]

    def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 20, offset: int = 0) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """
        Mark a notification as read.

        Returns:
            True if notification was marked read, False if not found
        """
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if notification:
            notification.read = True
            notification.read_at = utcnow()
            return True
        return False

    def mark_all_read(self, user_id: str) -> int:
        """
        Mark all notifications as read for a user.

        Returns:
            Number of notifications marked as read
        """
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False  # noqa: E712
        ).update({
            "read": True,
            "read_at": utcnow()
        }, synchronize_session=False)

    def get_unread_count(self, user_id: str) -> int:
        """Get unread notification count for a user."""
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False  # noqa: E712
        ).count()

    # =========================================================================
    # OFFER NOTIFICATION HELPERS
    # =========================================================================

    def notify_offer_received(self, recipient_id: str, offer_id: str, title: str, kind: str, rate: float, currency: str):
        """Notify the counterparty that a new offer or application arrived."""
        if kind == "application":
            type_, heading = NotificationType.APPLICATION_RECEIVED, "New Application! 📩"
        else:
            type_, heading = NotificationType.OFFER_RECEIVED, "New Collaboration Offer! 🎯"
        return self.create(
            user_id=recipient_id,
            type=type_,
            title=heading,
            message=f"'{title}' for {currency} {rate:,.0f}",
            action_url=f"/offers/{offer_id}",
            data={"offer_id": offer_id, "rate": rate, "currency": currency},
        )

    def notify_offer_status(self, recipient_id: str, offer_id: str, title: str, new_status: str, reason: Optional[str] = None):
        """Notify the counterparty about an offer status change."""
        type_, heading = _STATUS_NOTIFICATIONS.get(new_status, (NotificationType.SYSTEM, "Offer Updated"))
        message = f"'{title}' is now {new_status.replace('_', ' ')}"
        if reason:
            message = f"{message}: {reason}"
        return self.create(
            user_id=recipient_id,
            type=type_,
            title=heading,
            message=message,
            action_url=f"/offers/{offer_id}",
            data={"offer_id": offer_id, "status": new_status, "reason": reason},
        )

    def notify_review_available(self, participant_ids: List[str], offer_id: str, title: str):
        """Both sides of a completed collaboration may now leave a review."""
        return self.create_batch(
            user_ids=participant_ids,
            type=NotificationType.REVIEW_AVAILABLE,
            title="Leave a Review ⭐",
            message=f"'{title}' is complete. Rate your partner.",
            action_url=f"/offers/{offer_id}/review",
            data={"offer_id": offer_id},
        )

    def notify_content_flagged(self, owner_id: str, content_type: str, content_id: str):
        """Tell the author their content is waiting for manual review."""
        return self.create(
            user_id=owner_id,
            type=NotificationType.CONTENT_FLAGGED,
            title="Under Review",
            message=f"Your {content_type} was sent for manual review before it is published.",
            data={"content_type": content_type, "content_id": content_id},
        )


# Convenience function to get service
def get_notification_service(db: Session) -> NotificationService:
    """Get NotificationService instance."""
    return NotificationService(db)
