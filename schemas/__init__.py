# Schemas module for Collab Marketplace
# Organizes all Pydantic schemas in a modular structure

from schemas.marketplace import (
    # Enums
    CampaignStatus,
    OfferStatus,
    OfferKind,
    MessageType,
    ConnectionState,
    CandidateSort,

    # Campaign schemas
    BudgetRange,
    AudienceSize,
    Demographics,
    CampaignPreferences,
    CampaignTimeline,
    CampaignCreate,
    CampaignSearchParams,
    CampaignResponse,
    InfluencerCardResponse,
    MatchResponse,

    # Offer schemas
    OfferCreate,
    OfferRespond,
    OfferResubmit,
    OfferResponse,
    OfferHistoryResponse,

    # Chat schemas
    SendMessageRequest,
    MarkReadRequest,
    ChatMessageResponse,
    ChatSummary,
    ConnectionStatusResponse,

    # Notification schemas
    NotificationResponse,
)

from schemas.metadata import (
    OfferEventMetadata,
    FilterMatch,
    FilterMatchEvidence,
    OpaqueMetadata,
    MessageMetadata,
    ModerationEvidence,
)

__all__ = [
    "CampaignStatus", "OfferStatus", "OfferKind", "MessageType", "ConnectionState", "CandidateSort",
    "BudgetRange", "AudienceSize", "Demographics", "CampaignPreferences", "CampaignTimeline",
    "CampaignCreate", "CampaignSearchParams", "CampaignResponse", "InfluencerCardResponse", "MatchResponse",
    "OfferCreate", "OfferRespond", "OfferResubmit", "OfferResponse", "OfferHistoryResponse",
    "SendMessageRequest", "MarkReadRequest", "ChatMessageResponse", "ChatSummary", "ConnectionStatusResponse",
    "NotificationResponse",
    "OfferEventMetadata", "FilterMatch", "FilterMatchEvidence", "OpaqueMetadata", "MessageMetadata",
    "ModerationEvidence",
]
