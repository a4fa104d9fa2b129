import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, WebSocket, status

from app.api.deps import (
    get_booking_store, get_current_user, get_event_store, get_grant_service,
    get_request_service, get_resolver,
)
from app.api.websockets import CLOSE, authenticate_socket, stream_to_socket
from app.core.errors import backend_error
from app.core.rbac import Action, check_permission
from app.db.firestore import get_db
from app.models.admin import AdminGrant, AdminRequest, ApprovalPayload, InvitePayload, RoleUpdate
from app.models.catalog import (
    Booking, BookingStatus, BookingStatusUpdate, BookingVisibilityUpdate, Event, EventIn, EventUpdate,
)
from app.models.user import CurrentUser
from app.services.access import AuthorizationResolver
from app.services.admin_requests import AdminRequestService
from app.services.admins import AdminGrantService
from app.services.audit import recent_activity
from app.services.catalog import BookingStore, EventStore, GuardedBookingsWatcher

# Setup Logging
logger = logging.getLogger("darbar.admin")
router = APIRouter()

# --- 1. AUDIT LOGS ---
@router.get("/audit-logs")
async def get_audit_logs(limit: int = 50, user: CurrentUser = Depends(get_current_user),
                         resolver: AuthorizationResolver = Depends(get_resolver), db=Depends(get_db)):
    """Fetches system activity logs (Super Admin Only)."""
    resolver.require(user, Action.VIEW_AUDIT_LOG)
    try:
        return recent_activity(db, limit)
    except Exception as e:
        raise backend_error(e, "Audit fetch")

# --- 2. ADMIN REQUESTS (Super Admin) ---
@router.get("/requests", response_model=List[AdminRequest])
async def list_pending_requests(user: CurrentUser = Depends(get_current_user),
                                service: AdminRequestService = Depends(get_request_service)):
    """Pending registrations, newest first."""
    return service.list_pending(user)

@router.post("/requests/{request_id}/approve", response_model=AdminRequest)
async def approve_request(request_id: str, payload: ApprovalPayload = ApprovalPayload(),
                          user: CurrentUser = Depends(get_current_user),
                          service: AdminRequestService = Depends(get_request_service)):
    return await service.approve(request_id, payload.role, user)

@router.post("/requests/{request_id}/reject", response_model=AdminRequest)
async def reject_request(request_id: str, user: CurrentUser = Depends(get_current_user),
                         service: AdminRequestService = Depends(get_request_service)):
    return await service.reject(request_id, user)

# --- 3. ADMIN GRANTS ---
@router.get("/admins")
async def list_admins(user: CurrentUser = Depends(get_current_user),
                      service: AdminGrantService = Depends(get_grant_service)):
    """Grants keyed by UID and by email (Super Admin Only)."""
    return service.list_admins(user)

@router.post("/admins/invite")
async def invite_admin(payload: InvitePayload, user: CurrentUser = Depends(get_current_user),
                       service: AdminGrantService = Depends(get_grant_service)):
    """Invite by email (recommended) or directly by UID. Invites always grant plain admin."""
    return await service.invite(user, email=payload.email, uid=payload.uid)

@router.put("/admins/{kind}/{key}/role", response_model=AdminGrant)
async def update_admin_role(kind: str, key: str, payload: RoleUpdate,
                            user: CurrentUser = Depends(get_current_user),
                            service: AdminGrantService = Depends(get_grant_service)):
    """`kind` is `uid` or `email`."""
    return await service.set_role(user, kind, key, payload.role)

@router.delete("/admins/{kind}/{key}")
async def remove_admin(kind: str, key: str, user: CurrentUser = Depends(get_current_user),
                       service: AdminGrantService = Depends(get_grant_service)):
    await service.remove(user, kind, key)
    return {"message": "Admin removed"}

# --- 4. EVENTS ---
@router.post("/events", response_model=Event, status_code=status.HTTP_201_CREATED)
async def create_event(payload: EventIn, user: CurrentUser = Depends(get_current_user),
                       events: EventStore = Depends(get_event_store)):
    return await events.create(user, payload)

@router.put("/events/{event_id}", response_model=Event)
async def update_event(event_id: str, payload: EventUpdate, user: CurrentUser = Depends(get_current_user),
                       events: EventStore = Depends(get_event_store)):
    return await events.update(user, event_id, payload)

@router.delete("/events/{event_id}")
async def delete_event(event_id: str, user: CurrentUser = Depends(get_current_user),
                       events: EventStore = Depends(get_event_store)):
    await events.delete(user, event_id)
    return {"message": "Event deleted"}

# --- 5. BOOKINGS ---
@router.get("/bookings", response_model=List[Booking])
async def list_bookings(status: Optional[BookingStatus] = None, user: CurrentUser = Depends(get_current_user),
                        bookings: BookingStore = Depends(get_booking_store)):
    """All bookings, newest first, optionally filtered by status."""
    return bookings.list(user, status)

@router.patch("/bookings/{booking_id}/status", response_model=Booking)
async def update_booking_status(booking_id: str, payload: BookingStatusUpdate,
                                user: CurrentUser = Depends(get_current_user),
                                bookings: BookingStore = Depends(get_booking_store)):
    return await bookings.set_status(user, booking_id, payload.status)

@router.patch("/bookings/{booking_id}/visibility", response_model=Booking)
async def update_booking_visibility(booking_id: str, payload: BookingVisibilityUpdate,
                                    user: CurrentUser = Depends(get_current_user),
                                    bookings: BookingStore = Depends(get_booking_store)):
    """Promotes a booking into (or out of) the public event feed."""
    return await bookings.set_show_as_event(user, booking_id, payload.show_as_event)

@router.delete("/bookings/{booking_id}")
async def delete_booking(booking_id: str, user: CurrentUser = Depends(get_current_user),
                         bookings: BookingStore = Depends(get_booking_store)):
    await bookings.delete(user, booking_id)
    return {"message": "Booking deleted"}

@router.websocket("/bookings/ws")
async def booking_updates(websocket: WebSocket, token: str,
                          resolver: AuthorizationResolver = Depends(get_resolver),
                          bookings: BookingStore = Depends(get_booking_store)):
    """Live booking list for the dashboard. Closes with 1008 once the caller loses booking access."""
    await websocket.accept()
    user = await authenticate_socket(websocket, token)
    if user is None:
        return
    if not check_permission(resolver.resolve_user(user).role, Action.MANAGE_BOOKINGS):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await stream_to_socket(
        websocket,
        lambda push: GuardedBookingsWatcher(resolver, bookings, user, push, lambda: push(CLOSE)),
        "admin bookings",
    )
