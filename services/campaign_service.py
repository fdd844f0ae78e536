# Campaign Service for Collab Marketplace
# Campaign creation with moderation, the campaign query surface and
# deduplicated view tracking.

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.app_config import CAMPAIGN_SEARCH_LIMIT
from database.models import utcnow
from database.marketplace_models import Campaign, CampaignPlatform, ModerationStatusDB
from schemas.marketplace import CampaignCreate, CampaignSearchParams, CampaignStatus
from services.errors import NotFoundError, PermissionDeniedError, StoreUnavailable, ValidationError
from services.moderation_service import ModerationGate
from services.notification_service import NotificationService
from services.rate_limit import ViewDedupCache

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def validate_campaign_data(advertiser_id: Optional[str], data: CampaignCreate, now=None) -> List[str]:
    """Collect every violated campaign rule."""
    errors = []
    now = now or utcnow()

    if not advertiser_id:
        errors.append("Advertiser ID is required")
    if not (data.title or "").strip():
        errors.append("Campaign title is required")
    elif len(data.title.strip()) < 3:
        errors.append("Campaign title must be at least 3 characters")
    if not (data.brand or "").strip():
        errors.append("Brand name is required")
    if data.description is not None and len(data.description.strip()) < 10:
        errors.append("Campaign description must be at least 10 characters")

    if data.budget:
        if data.budget.min < 0 or data.budget.max < 0:
            errors.append("Budget amounts cannot be negative")
        if data.budget.min > data.budget.max:
            errors.append("Minimum budget cannot be greater than maximum budget")

    if data.preferences:
        if not data.preferences.platforms:
            errors.append("At least one platform must be selected")
        if not data.preferences.content_types:
            errors.append("At least one content type must be selected")
        size = data.preferences.audience_size
        if size and size.min is not None and size.max is not None and size.min > size.max:
            errors.append("Minimum audience size cannot be greater than maximum audience size")

    if data.timeline and data.timeline.start and data.timeline.end:
        start = _naive_utc(data.timeline.start)
        end = _naive_utc(data.timeline.end)
        if start >= end:
            errors.append("End date must be after start date")
        if start < now:
            errors.append("Start date cannot be in the past")

    return errors


class CampaignService:
    """Campaign operations. Construct per request with a session."""

    def __init__(
        self,
        db: Session,
        moderation: Optional[ModerationGate] = None,
        view_cache: Optional[ViewDedupCache] = None,
    ):
        self.db = db
        self.moderation = moderation or ModerationGate()
        self.view_cache = view_cache
        self.notifications = NotificationService(db)

    async def create_campaign(self, advertiser_id: str, data: CampaignCreate) -> Campaign:
        errors = validate_campaign_data(advertiser_id, data)
        if errors:
            raise ValidationError(errors)

        budget = data.budget
        preferences = data.preferences
        campaign = Campaign(
            advertiser_id=advertiser_id,
            title=data.title.strip(),
            brand=data.brand.strip(),
            description=data.description,
            budget_min=budget.min if budget else 0,
            budget_max=budget.max if budget else 0,
            budget_currency=budget.currency if budget else "USD",
            preferences=preferences.model_dump(mode="json") if preferences else None,
            timeline=data.timeline.model_dump(mode="json") if data.timeline else None,
            status=data.status.value,
            enable_chat=data.enable_chat,
            moderation_status=ModerationStatusDB.PENDING.value,
        )
        if preferences:
            campaign.platforms = [CampaignPlatform(platform=p) for p in dict.fromkeys(preferences.platforms)]

        try:
            self.db.add(campaign)
            self.db.flush()

            content = f"{campaign.title} {campaign.description or ''}"
            campaign.moderation_status = await self.moderation.submit("campaign", campaign.id, content)
            if campaign.moderation_status == ModerationStatusDB.PENDING.value:
                self.notifications.notify_content_flagged(advertiser_id, "campaign", campaign.id)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create campaign: {e}")
            raise StoreUnavailable("Failed to create campaign") from e

        self.db.refresh(campaign)
        logger.info(f"Campaign {campaign.id} created by {advertiser_id} (moderation: {campaign.moderation_status})")
        return campaign

    async def get_campaign(self, campaign_id: str) -> Campaign:
        try:
            campaign = self.db.get(Campaign, campaign_id)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Failed to load campaign {campaign_id}") from e
        if campaign is None or campaign.is_deleted:
            raise NotFoundError("Campaign", campaign_id)
        return campaign

    async def search_campaigns(self, params: CampaignSearchParams) -> List[Campaign]:
        query = self.db.query(Campaign).filter(
            Campaign.is_deleted == False,  # noqa: E712
            Campaign.moderation_status.in_([ModerationStatusDB.APPROVED.value, ModerationStatusDB.PENDING.value]),
        )

        if params.status and params.status != "all":
            query = query.filter(Campaign.status == params.status)

        if params.platform and params.platform != "all":
            query = query.filter(Campaign.platforms.any(CampaignPlatform.platform == params.platform))

        if params.min_budget is not None:
            query = query.filter(Campaign.budget_min >= params.min_budget)

        if params.max_budget is not None:
            query = query.filter(Campaign.budget_max <= params.max_budget)

        if params.search:
            pattern = f"%{params.search.strip()}%"
            query = query.filter(or_(
                Campaign.title.ilike(pattern),
                Campaign.brand.ilike(pattern),
                Campaign.description.ilike(pattern),
            ))

        limit = min(params.limit or CAMPAIGN_SEARCH_LIMIT, CAMPAIGN_SEARCH_LIMIT)
        try:
            return query.order_by(Campaign.created_at.desc()).limit(limit).all()
        except SQLAlchemyError as e:
            logger.error(f"Campaign search failed: {e}")
            raise StoreUnavailable("Campaign search failed") from e

    async def delete_campaign(self, campaign_id: str, actor_id: str) -> Campaign:
        """Explicit delete by the owner. The row stays for the offers that reference it."""
        campaign = await self.get_campaign(campaign_id)
        if campaign.advertiser_id != actor_id:
            raise PermissionDeniedError("Only the campaign owner can delete it")

        campaign.is_deleted = True
        if campaign.status not in (CampaignStatus.COMPLETED.value, CampaignStatus.CANCELLED.value):
            campaign.status = CampaignStatus.CANCELLED.value
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"Failed to delete campaign {campaign_id}") from e
        logger.info(f"Campaign {campaign_id} deleted by {actor_id}")
        return campaign

    async def track_view(self, campaign_id: str, viewer_id: Optional[str]) -> bool:
        """Count an impression once per viewer per dedup window. Returns True if counted."""
        campaign = await self.get_campaign(campaign_id)
        if viewer_id and viewer_id == campaign.advertiser_id:
            return False
        if self.view_cache is not None and viewer_id and not self.view_cache.first_seen(campaign_id, viewer_id):
            return False

        try:
            self.db.query(Campaign).filter(Campaign.id == campaign_id).update(
                {Campaign.metrics_impressions: Campaign.metrics_impressions + 1},
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable(f"Failed to record view for campaign {campaign_id}") from e
        return True
