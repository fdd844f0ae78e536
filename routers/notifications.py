# Notifications Router for Collab Marketplace
# In-app notifications emitted by offer transitions and moderation

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from auth.dependencies import get_current_user
from database.config import get_db
from database.models import UserProfile
from schemas.marketplace import NotificationResponse
from services.notification_service import get_notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    db: Session = Depends(get_db),
    current_user: UserProfile = Depends(get_current_user),
    unread_only: bool = Query(False, description="Only return unread notifications"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """
    Get user's notifications.
    """
    service = get_notification_service(db)
    offset = (page - 1) * limit
    return service.list_for_user(current_user.user_id, unread_only=unread_only, limit=limit, offset=offset)


@router.get("/unread-count")
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: UserProfile = Depends(get_current_user),
):
    return {"unread_count": get_notification_service(db).get_unread_count(current_user.user_id)}


@router.patch("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Mark a notification as read.
    """
    service = get_notification_service(db)
    if not service.mark_read(notification_id, current_user.user_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    return {"message": "Notification marked as read"}


@router.patch("/read-all")
async def mark_all_as_read(
    db: Session = Depends(get_db),
    current_user: UserProfile = Depends(get_current_user),
):
    count = get_notification_service(db).mark_all_read(current_user.user_id)
    db.commit()
    return {"message": f"Marked {count} notifications as read"}
