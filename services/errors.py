# Error taxonomy for the negotiation core
# Routers map these to HTTP responses in server.py; services never return
# an empty success in place of a store failure.

from typing import List, Optional


class MarketplaceError(Exception):
    """Base class for all domain errors raised by the services."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "detail": self.message}


class ValidationError(MarketplaceError):
    """Pre-write, user-correctable input errors. Carries every violated rule."""

    status_code = 422

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "detail": self.message, "errors": self.errors}


class ProfileIncompleteError(ValidationError):
    """Sender's basic profile information is not filled in."""

    def __init__(self, user_id: str):
        super().__init__(["Complete your basic profile information before sending messages"])
        self.user_id = user_id


class InvalidTransitionError(MarketplaceError):
    """State-machine precondition violated. Nothing was written."""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None, requested: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status
        self.requested = requested


class NotFoundError(MarketplaceError):
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDeniedError(MarketplaceError):
    status_code = 403


class RateLimitExceeded(MarketplaceError):
    """Sender exceeded the per-window message budget. Transient."""

    status_code = 429

    def __init__(self, sender_id: str, retry_after: float):
        super().__init__("Rate limit exceeded. Please wait before sending more messages.")
        self.sender_id = sender_id
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retry_after"] = round(self.retry_after, 2)
        return data


class DeliveryDelayed(MarketplaceError):
    """Store could not confirm the write; the message was queued for retry."""

    status_code = 202

    def __init__(self, draft):
        super().__init__("Message queued due to delivery delay")
        self.draft = draft

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["correlation_id"] = self.draft.correlation_id
        return data


class StoreUnavailable(MarketplaceError):
    """Infrastructure failure in the record store. Not user-correctable."""

    status_code = 503


class MatchQueryFailed(StoreUnavailable):
    """The matching query itself failed (never reported as an empty match)."""
