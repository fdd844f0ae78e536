# Services Module for Collab Marketplace
# Contains business logic services

from services.notification_service import NotificationService, NotificationType, get_notification_service
from services.campaign_service import CampaignService
from services.chat_service import ChatService, conversation_key
from services.offer_service import OfferService
from services.matching_service import find_matching_influencers, sort_candidates

__all__ = [
    'NotificationService',
    'NotificationType',
    'get_notification_service',
    'CampaignService',
    'ChatService',
    'conversation_key',
    'OfferService',
    'find_matching_influencers',
    'sort_candidates',
]
