# Auth module for Collab Marketplace
# Bearer-token identity and user-type checks for the HTTP surface

from auth.dependencies import (
    create_access_token,
    decode_access_token,
    get_current_user,
    get_optional_current_user,
    get_websocket_user,
)

from auth.decorators import (
    AuthError,
    require_user_type,
)

__all__ = [
    # Dependencies
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "get_optional_current_user",
    "get_websocket_user",

    # Decorators
    "AuthError",
    "require_user_type",
]
