# Campaigns Router for Collab Marketplace
# Campaign creation, the campaign query surface, matching and view tracking

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from auth.dependencies import get_current_user, get_optional_current_user
from auth.decorators import require_user_type
from config.app_config import CAMPAIGN_SEARCH_LIMIT, MATCH_RESULT_LIMIT
from database.config import get_db
from database.models import UserProfile, UserType
from routers.deps import get_campaign_service
from schemas.marketplace import (
    CampaignCreate,
    CampaignResponse,
    CampaignSearchParams,
    CandidateSort,
    InfluencerCardResponse,
    MatchResponse,
)
from services.campaign_service import CampaignService
from services.matching_service import find_matching_influencers, sort_candidates

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


# ============================================================================
# ADVERTISER ENDPOINTS
# ============================================================================

@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    campaign_data: CampaignCreate,
    service: CampaignService = Depends(get_campaign_service),
    current_user: UserProfile = Depends(require_user_type(UserType.ADVERTISER)),
):
    """
    Create a campaign. Title and description are screened by moderation;
    flagged campaigns are created with moderation_status=pending.
    """
    return await service.create_campaign(current_user.user_id, campaign_data)


@router.delete("/{campaign_id}", response_model=CampaignResponse)
async def delete_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
    current_user: UserProfile = Depends(get_current_user),
):
    return await service.delete_campaign(campaign_id, current_user.user_id)


@router.get("/{campaign_id}/matches", response_model=MatchResponse)
async def get_campaign_matches(
    campaign_id: str,
    sort_by: Optional[CandidateSort] = Query(None, description="Re-sort candidates, highest first"),
    limit: int = Query(MATCH_RESULT_LIMIT, ge=1, le=MATCH_RESULT_LIMIT),
    db: Session = Depends(get_db),
    current_user: UserProfile = Depends(get_current_user),
):
    """
    Influencer cards matching the campaign's targeting preferences.
    An empty list comes with expand_criteria=true.
    """
    candidates = await find_matching_influencers(db, campaign_id, limit=limit)
    candidates = sort_candidates(candidates, sort_by.value if sort_by else None)
    return MatchResponse(
        campaign_id=campaign_id,
        candidates=[InfluencerCardResponse.model_validate(c) for c in candidates],
        expand_criteria=not candidates,
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.get("", response_model=List[CampaignResponse])
async def search_campaigns(
    status_filter: Optional[str] = Query(None, alias="status"),
    platform: Optional[str] = Query(None),
    min_budget: Optional[int] = Query(None, ge=0),
    max_budget: Optional[int] = Query(None, ge=0),
    search: Optional[str] = Query(None, description="Matches title, brand or description"),
    limit: int = Query(CAMPAIGN_SEARCH_LIMIT, ge=1, le=CAMPAIGN_SEARCH_LIMIT),
    service: CampaignService = Depends(get_campaign_service),
):
    params = CampaignSearchParams(
        status=status_filter,
        platform=platform,
        min_budget=min_budget,
        max_budget=max_budget,
        search=search,
        limit=limit,
    )
    return await service.search_campaigns(params)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
):
    return await service.get_campaign(campaign_id)


@router.post("/{campaign_id}/view")
async def track_campaign_view(
    campaign_id: str,
    service: CampaignService = Depends(get_campaign_service),
    current_user: Optional[UserProfile] = Depends(get_optional_current_user),
):
    """Record an impression. Repeat views inside the dedup window are not counted."""
    viewer_id = current_user.user_id if current_user else None
    counted = await service.track_view(campaign_id, viewer_id)
    return {"counted": counted}
