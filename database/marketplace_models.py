# Marketplace Database Models for Collab Marketplace
# Campaigns, influencer cards, collaboration offers, chat and moderation records.
# Import these in addition to the base models in database/models.py

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, Boolean, Float, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

# Use the same Base from existing models
from database.models import Base, generate_uuid, utcnow


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatusDB(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ModerationStatusDB(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OfferStatusDB(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTER = "counter"
    INFO_REQUESTED = "info_requested"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"


class OfferKindDB(str, enum.Enum):
    OFFER = "offer"              # Advertiser-initiated proposal
    APPLICATION = "application"  # Participant-initiated (either side)


class MessageTypeDB(str, enum.Enum):
    TEXT = "text"
    SYSTEM = "system"


# ============================================================================
# CAMPAIGN
# ============================================================================

class Campaign(Base):
    """Advertiser campaigns with targeting preferences.

    Metrics counters are non-decreasing and only written by the system
    (offer lifecycle transitions and view tracking).
    """
    __tablename__ = "campaigns"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    advertiser_id = Column(String(36), ForeignKey("user_profiles.user_id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=False)
    description = Column(Text)

    # Budget
    budget_min = Column(Integer, default=0)
    budget_max = Column(Integer, default=0)
    budget_currency = Column(String(3), default="USD")

    # Targeting: {platforms, content_types, audience_size {min, max}, demographics {age_range, genders, countries}}
    preferences = Column(JSON)
    # {start, end, deliverables: [{type, due_date, completed}]}
    timeline = Column(JSON)

    status = Column(String(20), default=CampaignStatusDB.DRAFT.value, nullable=False)
    moderation_status = Column(String(20), default=ModerationStatusDB.PENDING.value, nullable=False)
    enable_chat = Column(Boolean, default=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Metrics
    metrics_applicants = Column(Integer, default=0, nullable=False)
    metrics_accepted = Column(Integer, default=0, nullable=False)
    metrics_impressions = Column(Integer, default=0, nullable=False)
    metrics_engagement = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    platforms = relationship("CampaignPlatform", back_populates="campaign", cascade="all, delete-orphan")
    offers = relationship("Offer", back_populates="campaign")

    @property
    def budget(self):
        return {"min": self.budget_min, "max": self.budget_max, "currency": self.budget_currency}

    @property
    def metrics(self):
        return {
            "applicants": self.metrics_applicants,
            "accepted": self.metrics_accepted,
            "impressions": self.metrics_impressions,
            "engagement": self.metrics_engagement,
        }


class CampaignPlatform(Base):
    """One row per targeted platform, so platform membership is a plain SQL predicate."""
    __tablename__ = "campaign_platforms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)

    campaign = relationship("Campaign", back_populates="platforms")


# ============================================================================
# INFLUENCER CARD
# ============================================================================

class InfluencerCard(Base):
    """Published profile fragment that campaigns are matched against."""
    __tablename__ = "influencer_cards"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("user_profiles.user_id", ondelete="CASCADE"), nullable=False, index=True)

    platform = Column(String(50), nullable=False)

    # Reach
    followers = Column(Integer, default=0, nullable=False)
    average_views = Column(Integer, default=0)
    engagement_rate = Column(Float, default=0.0)

    # {top_countries: [...], age_groups: {...}, gender_split: {...}}
    audience_demographics = Column(JSON)
    # [{content_type, price, currency}]
    service_pricing = Column(JSON)

    rating = Column(Float, default=0.0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    countries = relationship("InfluencerCardCountry", back_populates="card", cascade="all, delete-orphan")

    @property
    def reach(self):
        return {
            "followers": self.followers,
            "average_views": self.average_views,
            "engagement_rate": self.engagement_rate,
        }

    @property
    def top_countries(self):
        return [c.country for c in self.countries]


class InfluencerCardCountry(Base):
    """Audience top-country rows, so country intersection is a SQL EXISTS."""
    __tablename__ = "influencer_card_countries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(String(36), ForeignKey("influencer_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    country = Column(String(100), nullable=False)

    card = relationship("InfluencerCard", back_populates="countries")


# ============================================================================
# OFFER / APPLICATION
# ============================================================================

class Offer(Base):
    """Collaboration offer or application between an influencer and an advertiser.

    Never hard-deleted: terminal offers are kept for audit and reviews.
    Status and timeline columns are only written by OfferService transitions.
    """
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    influencer_id = Column(String(36), ForeignKey("user_profiles.user_id"), nullable=False, index=True)
    advertiser_id = Column(String(36), ForeignKey("user_profiles.user_id"), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=True, index=True)
    influencer_card_id = Column(String(36), ForeignKey("influencer_cards.id"), nullable=True)

    kind = Column(String(20), default=OfferKindDB.OFFER.value, nullable=False)
    initiated_by = Column(String(36), nullable=False)

    # Details
    title = Column(String(255))
    description = Column(Text)
    proposed_rate = Column(Float, nullable=False)
    currency = Column(String(3), default="USD")
    deliverables = Column(JSON)  # ["1 post", "2 stories"]
    timeline = Column(String(255), nullable=False)  # "2 weeks"
    terms = Column(Text)

    status = Column(String(20), default=OfferStatusDB.PENDING.value, nullable=False)
    moderation_status = Column(String(20), default=ModerationStatusDB.PENDING.value, nullable=False)

    # Metadata
    view_count = Column(Integer, default=0, nullable=False)
    message_count = Column(Integer, default=0, nullable=False)

    # Review eligibility (set by the reviews module once completed)
    influencer_reviewed = Column(Boolean, default=False)
    advertiser_reviewed = Column(Boolean, default=False)

    # Timeline
    created_at = Column(DateTime, default=utcnow, nullable=False)
    responded_at = Column(DateTime)
    accepted_at = Column(DateTime)
    completed_at = Column(DateTime)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    campaign = relationship("Campaign", back_populates="offers")
    history = relationship("OfferStatusHistory", back_populates="offer", order_by="OfferStatusHistory.id")

    @property
    def metadata_counts(self):
        return {"view_count": self.view_count, "message_count": self.message_count}

    def counterparty_of(self, user_id):
        return self.advertiser_id if user_id == self.influencer_id else self.influencer_id


class OfferStatusHistory(Base):
    """Audit trail of offer status changes."""
    __tablename__ = "offer_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    offer_id = Column(String(36), ForeignKey("offers.id"), nullable=False, index=True)
    previous_status = Column(String(20))
    new_status = Column(String(20), nullable=False)
    changed_by = Column(String(36), nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    offer = relationship("Offer", back_populates="history")


# ============================================================================
# CHAT
# ============================================================================

class ChatMessage(Base):
    """Chat messages between two participants.

    Append-only: only the read flag is ever updated. ``seq`` is the
    persistence order; ``id`` is the public identifier.
    """
    __tablename__ = "chat_messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, default=generate_uuid)
    sender_id = Column(String(36), nullable=False, index=True)
    receiver_id = Column(String(36), nullable=False, index=True)
    conversation_key = Column(String(80), nullable=False)

    content = Column(Text, nullable=False)
    message_type = Column(String(20), default=MessageTypeDB.TEXT.value, nullable=False)
    correlation_id = Column(String(64))
    metadata_json = Column(JSON)  # Tagged union, see schemas.metadata

    is_read = Column(Boolean, default=False, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_conversation", "conversation_key", "seq"),
        # A retried write of the same draft must not produce a second row
        UniqueConstraint("sender_id", "correlation_id", name="uq_chat_messages_sender_correlation"),
    )


# ============================================================================
# NOTIFICATION
# ============================================================================

class Notification(Base):
    """User notifications."""
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)

    type = Column(String(50), nullable=False)  # offer_accepted, review_available, etc.
    title = Column(String(200), nullable=False)
    message = Column(Text)
    action_url = Column(String(500))
    data = Column(JSON)  # Additional context (offer_id, campaign_id, ...)

    read = Column(Boolean, default=False)
    read_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)


# ============================================================================
# MODERATION
# ============================================================================

class ContentFilter(Base):
    """Pattern-based content filter used by the moderation gate."""
    __tablename__ = "content_filters"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    filter_name = Column(String(100), nullable=False)
    pattern = Column(String(500), nullable=False)
    is_regex = Column(Boolean, default=True)
    severity = Column(Integer, default=1)  # 1-5
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


class ModerationQueueItem(Base):
    """Content waiting for manual review."""
    __tablename__ = "moderation_queue"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    content_type = Column(String(50), nullable=False)  # offer, campaign
    content_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), default=ModerationStatusDB.PENDING.value, nullable=False)
    auto_flagged = Column(Boolean, default=False)
    priority = Column(Integer, default=1)
    evidence = Column(JSON)  # Tagged union, see schemas.metadata
    moderated_by = Column(String(36))
    moderated_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
