# Database Models for Collab Marketplace

from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid
import enum

Base = declarative_base()

def generate_uuid():
    return str(uuid.uuid4())

def utcnow():
    """Naive UTC timestamp with microsecond precision (column values are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enums
class UserType(str, enum.Enum):
    INFLUENCER = "influencer"
    ADVERTISER = "advertiser"
    ADMIN = "admin"


# Models
class UserProfile(Base):
    """Basic profile owned by the surrounding profile module.

    Only the fields the negotiation core reads are mapped here.
    """
    __tablename__ = "user_profiles"

    user_id = Column(String(36), primary_key=True, default=generate_uuid)
    user_type = Column(String(20), nullable=False, default=UserType.INFLUENCER.value)
    full_name = Column(String(255))
    username = Column(String(100))
    basic_info_complete = Column(Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def is_advertiser(self):
        return self.user_type == UserType.ADVERTISER.value

    @property
    def is_influencer(self):
        return self.user_type == UserType.INFLUENCER.value
