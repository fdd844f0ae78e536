# Marketplace Routers Module
# Exports all modular API routers for the marketplace

from routers.campaigns import router as campaigns_router
from routers.offers import router as offers_router
from routers.chat import router as chat_router
from routers.notifications import router as notifications_router

__all__ = [
    'campaigns_router',
    'offers_router',
    'chat_router',
    'notifications_router',
]
