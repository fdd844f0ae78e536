# Shared router dependencies
# Builds per-request services around the process-wide collaborators stored
# on app.state at startup.

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database.config import get_db
from services.campaign_service import CampaignService
from services.chat_service import ChatService
from services.moderation_service import ContentFilterGate
from services.notification_service import get_notification_service
from services.offer_service import OfferService


def get_chat_service(request: Request, db: Session = Depends(get_db)) -> ChatService:
    state = request.app.state
    return ChatService(
        db,
        hub=state.hub,
        rate_limiter=state.rate_limiter,
        delivery_queue=state.delivery_queue,
    )


def get_campaign_service(request: Request, db: Session = Depends(get_db)) -> CampaignService:
    return CampaignService(db, moderation=ContentFilterGate(db), view_cache=request.app.state.view_cache)


def get_offer_service(
    db: Session = Depends(get_db),
    chat: ChatService = Depends(get_chat_service),
) -> OfferService:
    return OfferService(
        db,
        chat=chat,
        moderation=ContentFilterGate(db),
        notifications=get_notification_service(db),
    )
