# FastAPI Server for Collab Marketplace
# Wires the negotiation core (campaigns, offers, chat, notifications) into
# one app and maps domain errors to HTTP responses.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.app_config import (
    CAMPAIGN_VIEW_DEDUP_SECONDS,
    CHAT_RATE_LIMIT_MAX,
    CHAT_RATE_LIMIT_WINDOW_SECONDS,
    RATE_LIMIT_WARNING_SECONDS,
)
from database.config import SessionLocal, init_db
from routers import campaigns_router, chat_router, notifications_router, offers_router
from services.delivery_queue import DeliveryQueue
from services.errors import DeliveryDelayed, MarketplaceError, RateLimitExceeded
from services.rate_limit import SlidingWindowRateLimiter, ViewDedupCache
from services.realtime import RealtimeHub

logger = logging.getLogger(__name__)


def configure_state(app: FastAPI, session_factory=SessionLocal):
    """Process-wide collaborators shared by every request."""
    app.state.hub = RealtimeHub()
    app.state.rate_limiter = SlidingWindowRateLimiter(CHAT_RATE_LIMIT_MAX, CHAT_RATE_LIMIT_WINDOW_SECONDS)
    app.state.view_cache = ViewDedupCache(CAMPAIGN_VIEW_DEDUP_SECONDS)
    app.state.delivery_queue = DeliveryQueue(app.state.hub, session_factory=session_factory)


app = FastAPI(
    title="Collab Marketplace API",
    description="Influencer/advertiser matching, offer negotiation and chat",
    version="1.0.0"
)
configure_state(app)


@app.on_event("startup")
def startup_event():
    # Initialize database tables using SQLAlchemy create_all
    init_db()
    logger.info("Collab Marketplace API started")


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.delivery_queue.stop()
    app.state.hub.close()


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    body = exc.to_dict()
    if isinstance(exc, RateLimitExceeded):
        # Clients show the warning for this long, then clear it
        body["warning_ttl"] = RATE_LIMIT_WARNING_SECONDS
        logger.info(f"Rate limit hit by {exc.sender_id}, retry after {exc.retry_after:.1f}s")
        return JSONResponse(status_code=exc.status_code, content=body, headers={"Retry-After": str(int(exc.retry_after) + 1)})
    if isinstance(exc, DeliveryDelayed):
        body["state"] = request.app.state.delivery_queue.state_for(exc.draft.sender_id).value
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body)


# CORS Setup - Allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Required when using "*"
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# ROUTERS
# ============================================================================
app.include_router(campaigns_router)
app.include_router(offers_router)
app.include_router(chat_router)
app.include_router(notifications_router)


@app.get("/health")
async def health(request: Request):
    return {"status": "ok", "delivery": request.app.state.delivery_queue.state.value}
