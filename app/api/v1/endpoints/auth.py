import logging

from fastapi import APIRouter, BackgroundTasks, Depends, WebSocket

from app.api.deps import (
    get_current_user, get_request_service, get_resolver, get_session_service,
)
from app.api.websockets import authenticate_socket, stream_to_socket
from app.core.config import Settings, get_settings
from app.db.firestore import get_db
from app.models.admin import AdminRegistration
from app.models.user import AuthSession, CurrentUser, LoginPayload, RefreshPayload
from app.services.access import AccessWatcher, AuthorizationResolver
from app.services.admin_requests import AdminRequestService
from app.services.notifications import notify_super_admins_of_request
from app.services.session import AuthSessionService

logger = logging.getLogger("darbar.auth")

router = APIRouter()

# --- SESSION ---

@router.post("/login", response_model=AuthSession)
async def login(payload: LoginPayload, sessions: AuthSessionService = Depends(get_session_service)):
    """Email/password sign-in. Bad credentials come back as a 401 with a displayable message."""
    return sessions.sign_in_with_password(payload.email, payload.password)

@router.post("/guest", response_model=AuthSession)
async def continue_as_guest(sessions: AuthSessionService = Depends(get_session_service)):
    return sessions.sign_in_anonymously()

@router.post("/refresh", response_model=AuthSession)
async def restore_session(payload: RefreshPayload, sessions: AuthSessionService = Depends(get_session_service)):
    """Restores a persisted session from its refresh token."""
    return sessions.restore(payload.refresh_token)

@router.post("/logout")
async def logout(current_user: CurrentUser = Depends(get_current_user),
                 sessions: AuthSessionService = Depends(get_session_service)):
    sessions.sign_out(current_user.uid)
    return {"message": "Signed out"}

# --- PROFILE & ACCESS ---

@router.get("/me")
async def read_users_me(current_user: CurrentUser = Depends(get_current_user),
                        resolver: AuthorizationResolver = Depends(get_resolver)):
    """Returns the current user's identity and what they may access."""
    return {**current_user.model_dump(), "access": resolver.resolve_state(current_user)}

@router.websocket("/access/ws")
async def access_updates(websocket: WebSocket, token: str, db=Depends(get_db),
                         settings: Settings = Depends(get_settings)):
    """Pushes the caller's access state every time their grants or admin request change."""
    await websocket.accept()
    user = await authenticate_socket(websocket, token)
    if user is None:
        return
    resolver = AuthorizationResolver(db, settings)
    await stream_to_socket(websocket, lambda push: AccessWatcher(resolver, user, push), f"access:{user.uid}")

# --- ADMIN REGISTRATION ---

@router.post("/register")
async def register_for_admin(payload: AdminRegistration, background_tasks: BackgroundTasks,
                             sessions: AuthSessionService = Depends(get_session_service),
                             requests_service: AdminRequestService = Depends(get_request_service),
                             db=Depends(get_db), settings: Settings = Depends(get_settings)):
    """
    Public endpoint: creates the account and files its admin request.
    Super admins are emailed in the background.
    """
    uid = sessions.create_account(payload.email, payload.password)
    user = CurrentUser(uid=uid, email=payload.email.lower())
    request, created = await requests_service.submit_request(user, payload)

    if created:
        background_tasks.add_task(notify_super_admins_of_request, db, settings, request)

    return {"message": "Registration submitted. Await super admin approval.", "uid": uid}
