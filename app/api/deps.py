from typing import Optional

from fastapi import Depends, Header

from app.core.config import Settings, get_settings
from app.core.errors import AccessDenied, AuthenticationError
from app.db.firestore import get_db
from app.models.user import CurrentUser
from app.services.access import AuthorizationResolver
from app.services.admin_requests import AdminRequestService
from app.services.admins import AdminGrantService
from app.services.catalog import BookingStore, EventStore
from app.services.session import AuthSessionService, verify_token


def user_from_token(token: str) -> CurrentUser:
    claims = verify_token(token)
    return CurrentUser(
        uid=claims["uid"],
        email=claims.get("email"),
        is_anonymous=claims.get("firebase", {}).get("sign_in_provider") == "anonymous",
        name=claims.get("name"),
    )


async def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    """
    Verifies the Firebase Bearer Token. Roles are never read from the token;
    they are resolved from Firestore by AuthorizationResolver.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid Authorization header")
    return user_from_token(authorization.split("Bearer ", 1)[1])


async def get_registered_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Signed-in user with an email account (guests excluded)."""
    if user.is_anonymous or not user.email:
        raise AccessDenied("Sign in with an email account to continue")
    return user


def get_resolver(db=Depends(get_db), settings: Settings = Depends(get_settings)) -> AuthorizationResolver:
    return AuthorizationResolver(db, settings)


def get_request_service(db=Depends(get_db), resolver=Depends(get_resolver)) -> AdminRequestService:
    return AdminRequestService(db, resolver)


def get_grant_service(db=Depends(get_db), resolver=Depends(get_resolver)) -> AdminGrantService:
    return AdminGrantService(db, resolver)


def get_event_store(db=Depends(get_db), settings: Settings = Depends(get_settings),
                    resolver=Depends(get_resolver)) -> EventStore:
    return EventStore(db, settings, resolver)


def get_booking_store(db=Depends(get_db), settings: Settings = Depends(get_settings),
                      resolver=Depends(get_resolver)) -> BookingStore:
    return BookingStore(db, settings, resolver)


def get_session_service(settings: Settings = Depends(get_settings)) -> AuthSessionService:
    return AuthSessionService(settings)
