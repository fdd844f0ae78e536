# Authorization dependencies for Collab Marketplace

from fastapi import HTTPException, status, Depends

from database.models import UserProfile, UserType
from auth.dependencies import get_current_user


class AuthError(HTTPException):
    """Custom exception for authentication/authorization errors."""

    def __init__(self, detail: str, status_code: int = status.HTTP_403_FORBIDDEN):
        super().__init__(status_code=status_code, detail=detail)


def require_user_type(*allowed_types: UserType):
    """
    Dependency that requires the user to be one of the specified types.

    Usage:
        @router.post("/campaigns")
        async def create_campaign(
            user: UserProfile = Depends(require_user_type(UserType.ADVERTISER))
        ):
            ...
    """
    async def dependency(current_user: UserProfile = Depends(get_current_user)) -> UserProfile:
        # Admin can access everything
        if current_user.user_type == UserType.ADMIN.value:
            return current_user

        if current_user.user_type not in {t.value for t in allowed_types}:
            allowed_names = ", ".join(t.value for t in allowed_types)
            raise AuthError(detail=f"This endpoint requires user type: {allowed_names}")

        return current_user

    return dependency
