# Matching Engine
# Turns a campaign's targeting preferences into a bounded list of active
# influencer cards. No ranking beyond store order; callers may re-sort.

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, Query, joinedload

from config.app_config import MATCH_RESULT_LIMIT
from database.marketplace_models import Campaign, InfluencerCard, InfluencerCardCountry
from services.errors import MatchQueryFailed, NotFoundError

logger = logging.getLogger(__name__)


def build_match_query(db: Session, preferences: Optional[dict]) -> Query:
    """AND-combine one predicate per non-empty preference."""
    preferences = preferences or {}
    query = db.query(InfluencerCard).options(joinedload(InfluencerCard.countries)).filter(
        InfluencerCard.is_active == True  # noqa: E712
    )

    platforms = preferences.get("platforms") or []
    if platforms:
        query = query.filter(InfluencerCard.platform.in_(platforms))

    audience_size = preferences.get("audience_size") or {}
    if audience_size.get("min") is not None:
        query = query.filter(InfluencerCard.followers >= audience_size["min"])
    if audience_size.get("max") is not None:
        query = query.filter(InfluencerCard.followers <= audience_size["max"])

    # Non-empty intersection, not subset
    countries = (preferences.get("demographics") or {}).get("countries") or []
    if countries:
        query = query.filter(InfluencerCard.countries.any(InfluencerCardCountry.country.in_(countries)))

    return query


async def find_matching_influencers(db: Session, campaign_id: str, limit: int = MATCH_RESULT_LIMIT) -> List[InfluencerCard]:
    """
    Return up to ``limit`` active cards satisfying every targeting preference
    of the campaign.

    An empty list means nothing matched (the caller should widen the
    criteria). Store failures raise MatchQueryFailed, never an empty list.
    """
    try:
        campaign = db.get(Campaign, campaign_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load campaign {campaign_id} for matching: {e}")
        raise MatchQueryFailed(f"Could not load campaign {campaign_id}") from e

    if campaign is None or campaign.is_deleted:
        raise NotFoundError("Campaign", campaign_id)

    try:
        candidates = build_match_query(db, campaign.preferences).limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Matching query failed for campaign {campaign_id}: {e}")
        raise MatchQueryFailed(f"Matching query failed for campaign {campaign_id}") from e

    logger.info(f"Matching for campaign {campaign_id} found {len(candidates)} candidates")
    return candidates


_SORT_KEYS = {
    "followers": lambda card: card.followers or 0,
    "engagement": lambda card: card.engagement_rate or 0.0,
    "rating": lambda card: card.rating or 0.0,
}


def sort_candidates(candidates: List[InfluencerCard], sort_by: Optional[str]) -> List[InfluencerCard]:
    """Client-side re-sort, highest first. Unknown or empty keys keep store order."""
    key = _SORT_KEYS.get(sort_by or "")
    if key is None:
        return list(candidates)
    return sorted(candidates, key=key, reverse=True)
