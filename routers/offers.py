# Offers Router for Collab Marketplace
# Offer/application lifecycle between advertisers and influencers

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from auth.dependencies import get_current_user
from database.models import UserProfile
from routers.deps import get_offer_service
from schemas.marketplace import (
    OfferCreate,
    OfferHistoryResponse,
    OfferRespond,
    OfferResponse,
    OfferResubmit,
)
from services.offer_service import OfferService

router = APIRouter(prefix="/offers", tags=["Offers"])


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    offer_data: OfferCreate,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Send an offer (advertiser) or an application (either side).
    """
    offer = await service.create_offer(current_user.user_id, offer_data)
    return OfferResponse.from_offer(offer)


@router.get("", response_model=List[OfferResponse])
async def list_offers(
    status_filter: Optional[str] = Query(None, alias="status"),
    role: Optional[str] = Query(None, description="influencer or advertiser"),
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    offers = await service.list_offers(current_user.user_id, status=status_filter, role=role)
    return [OfferResponse.from_offer(o) for o in offers]


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: str,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    offer = await service.get_offer(offer_id, current_user.user_id)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/respond", response_model=OfferResponse)
async def respond_to_offer(
    offer_id: str,
    body: OfferRespond,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Accept, decline, counter or request more information.
    """
    offer = await service.respond(offer_id, current_user.user_id, body.status, body.reason)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/resubmit", response_model=OfferResponse)
async def resubmit_offer(
    offer_id: str,
    changes: OfferResubmit,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    offer = await service.resubmit(offer_id, current_user.user_id, changes)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/withdraw", response_model=OfferResponse)
async def withdraw_offer(
    offer_id: str,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    offer = await service.withdraw(offer_id, current_user.user_id)
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/complete", response_model=OfferResponse)
async def complete_offer(
    offer_id: str,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    offer = await service.complete(offer_id, current_user.user_id)
    return OfferResponse.from_offer(offer)


@router.get("/{offer_id}/history", response_model=List[OfferHistoryResponse])
async def get_offer_history(
    offer_id: str,
    service: OfferService = Depends(get_offer_service),
    current_user: UserProfile = Depends(get_current_user),
):
    return await service.get_history(offer_id, current_user.user_id)
