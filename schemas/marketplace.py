# Pydantic Schemas for Collab Marketplace
# Organized in a modular structure for maintainability
#
# Request schemas are deliberately lenient: business rules are checked by the
# services so that every violated rule is reported together.

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from schemas.metadata import MessageMetadata


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTER = "counter"
    INFO_REQUESTED = "info_requested"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"


class OfferKind(str, Enum):
    OFFER = "offer"
    APPLICATION = "application"


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


class CandidateSort(str, Enum):
    FOLLOWERS = "followers"
    ENGAGEMENT = "engagement"
    RATING = "rating"


# ============================================================================
# CAMPAIGN SCHEMAS
# ============================================================================

class BudgetRange(BaseModel):
    min: int = 0
    max: int = 0
    currency: str = "USD"


class AudienceSize(BaseModel):
    min: Optional[int] = None
    max: Optional[int] = None


class Demographics(BaseModel):
    age_range: Optional[List[int]] = None  # [min_age, max_age]
    genders: List[str] = []
    countries: List[str] = []


class CampaignPreferences(BaseModel):
    """Targeting criteria used by the matching engine."""
    platforms: List[str] = []
    content_types: List[str] = []
    audience_size: Optional[AudienceSize] = None
    demographics: Optional[Demographics] = None


class TimelineDeliverable(BaseModel):
    type: str
    due_date: Optional[datetime] = None
    completed: bool = False


class CampaignTimeline(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    deliverables: List[TimelineDeliverable] = []


class CampaignCreate(BaseModel):
    """Schema for creating a campaign."""
    title: Optional[str] = None
    brand: Optional[str] = None
    description: Optional[str] = None
    budget: Optional[BudgetRange] = None
    preferences: Optional[CampaignPreferences] = None
    timeline: Optional[CampaignTimeline] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    enable_chat: bool = False


class CampaignSearchParams(BaseModel):
    """Campaign query surface filters."""
    status: Optional[str] = None
    platform: Optional[str] = None
    min_budget: Optional[int] = None
    max_budget: Optional[int] = None
    search: Optional[str] = None
    limit: int = 50


class CampaignMetrics(BaseModel):
    applicants: int = 0
    accepted: int = 0
    impressions: int = 0
    engagement: int = 0


class CampaignResponse(BaseModel):
    """Schema for campaign response."""
    id: str
    advertiser_id: str
    title: str
    brand: str
    description: Optional[str]
    budget: BudgetRange
    preferences: Optional[CampaignPreferences]
    timeline: Optional[CampaignTimeline]
    status: str
    moderation_status: str
    enable_chat: bool = False
    metrics: CampaignMetrics
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class InfluencerCardResponse(BaseModel):
    """Candidate card returned by matching."""
    id: str
    user_id: str
    platform: str
    followers: int
    average_views: Optional[int] = 0
    engagement_rate: Optional[float] = 0.0
    top_countries: List[str] = []
    audience_demographics: Optional[dict] = None
    service_pricing: Optional[list] = None
    rating: Optional[float] = 0.0
    is_active: bool = True

    class Config:
        from_attributes = True


class MatchResponse(BaseModel):
    campaign_id: str
    candidates: List[InfluencerCardResponse]
    # True when nothing matched: the caller should widen the criteria
    expand_criteria: bool = False


# ============================================================================
# OFFER SCHEMAS
# ============================================================================

class OfferCreate(BaseModel):
    """Schema for creating an offer or application."""
    influencer_id: Optional[str] = None
    advertiser_id: Optional[str] = None
    campaign_id: Optional[str] = None
    influencer_card_id: Optional[str] = None
    kind: str = OfferKind.OFFER.value
    title: Optional[str] = None
    description: Optional[str] = None
    proposed_rate: Optional[float] = None
    currency: str = "USD"
    deliverables: List[str] = []
    timeline: Optional[str] = None
    terms: Optional[str] = None


class OfferRespond(BaseModel):
    status: str
    reason: Optional[str] = Field(None, max_length=1000)


class OfferResubmit(BaseModel):
    """Changes applied when sending a countered offer back to pending."""
    proposed_rate: Optional[float] = None
    deliverables: Optional[List[str]] = None
    timeline: Optional[str] = None
    terms: Optional[str] = None
    description: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=1000)


class OfferMetadata(BaseModel):
    view_count: int = 0
    message_count: int = 0


class OfferResponse(BaseModel):
    """Offer/application record shape."""
    id: str
    influencer_id: str
    advertiser_id: str
    campaign_id: Optional[str] = None
    influencer_card_id: Optional[str] = None
    kind: str
    initiated_by: str
    title: Optional[str] = None
    description: Optional[str] = None
    proposed_rate: float
    currency: str
    deliverables: List[str] = []
    timeline: str
    terms: Optional[str] = None
    status: OfferStatus
    moderation_status: str
    metadata: OfferMetadata
    created_at: datetime
    responded_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_offer(cls, offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            influencer_id=offer.influencer_id,
            advertiser_id=offer.advertiser_id,
            campaign_id=offer.campaign_id,
            influencer_card_id=offer.influencer_card_id,
            kind=offer.kind,
            initiated_by=offer.initiated_by,
            title=offer.title,
            description=offer.description,
            proposed_rate=offer.proposed_rate,
            currency=offer.currency,
            deliverables=offer.deliverables or [],
            timeline=offer.timeline,
            terms=offer.terms,
            status=offer.status,
            moderation_status=offer.moderation_status,
            metadata=OfferMetadata(**offer.metadata_counts),
            created_at=offer.created_at,
            responded_at=offer.responded_at,
            completed_at=offer.completed_at,
        )


class OfferHistoryResponse(BaseModel):
    id: int
    offer_id: str
    previous_status: Optional[str]
    new_status: str
    changed_by: str
    reason: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# CHAT SCHEMAS
# ============================================================================

class SendMessageRequest(BaseModel):
    receiver_id: Optional[str] = None
    content: Optional[str] = None
    message_type: str = MessageType.TEXT.value
    correlation_id: Optional[str] = Field(None, max_length=64)


class MarkReadRequest(BaseModel):
    message_ids: List[str] = []


class ChatMessageResponse(BaseModel):
    """Chat message record shape."""
    id: str
    sender_id: str
    receiver_id: str
    content: str
    type: MessageType
    timestamp: datetime
    is_read: bool = False
    correlation_id: Optional[str] = None
    metadata: Optional[MessageMetadata] = None

    @classmethod
    def from_message(cls, message) -> "ChatMessageResponse":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            type=message.message_type,
            timestamp=message.timestamp,
            is_read=bool(message.is_read),
            correlation_id=message.correlation_id,
            metadata=message.metadata_json,
        )


class ChatSummary(BaseModel):
    """One row of the chat list: the latest message with a counterparty."""
    user_id: str
    full_name: Optional[str] = None
    last_message: str
    last_message_time: datetime
    unread_count: int = 0


class ConnectionStatusResponse(BaseModel):
    state: ConnectionState
    queued_messages: int = 0


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class NotificationResponse(BaseModel):
    """Schema for notification response."""
    id: str
    type: str
    title: str
    message: Optional[str] = None
    action_url: Optional[str] = None
    data: Optional[dict] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
