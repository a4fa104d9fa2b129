"""
Events and bookings, both scoped under the application namespace.

Events are public and admin-written. Bookings belong to the user who submitted
them but only admins change their status or promote them into the public feed.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

from firebase_admin import firestore

from app.core.config import Settings
from app.core.errors import NotFoundError, backend_error
from app.core.rbac import Action, check_permission, effective_role
from app.db.collections import bookings_path, events_path
from app.db.subscriptions import Subscription
from app.models.catalog import (
    Booking, BookingIn, BookingStatus, Event, EventIn, EventUpdate, FeedItem,
)
from app.models.user import CurrentUser
from app.services.access import AccessWatcher, AuthorizationResolver
from app.services.audit import log_activity

logger = logging.getLogger("darbar.catalog")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(booking: Booking):
    created = booking.created_at
    if created is None:
        return _EPOCH
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def to_event(doc) -> Event:
    return Event.model_validate({**(doc.to_dict() or {}), "id": doc.id})


def to_booking(doc) -> Booking:
    return Booking.model_validate({**(doc.to_dict() or {}), "id": doc.id})


def event_feed_item(event: Event) -> FeedItem:
    return FeedItem(id=event.id, kind="event", title=event.title, date=event.date,
                    description=event.description or "")


def booking_feed_item(booking: Booking) -> FeedItem:
    return FeedItem(
        id=booking.id,
        kind="booking",
        title=f"{booking.type or 'Booking'} - {booking.name}",
        date=booking.date,
        description=booking.note or "Booking request",
    )


def merge_feed(events: List[Event], bookings: List[Booking]) -> List[FeedItem]:
    """Public feed sorted by date ascending. Sorting is stable, so events precede bookings on the same day."""
    items = [event_feed_item(e) for e in events] + [booking_feed_item(b) for b in bookings if b.show_as_event]
    return sorted(items, key=lambda item: item.date or "")


class EventStore:
    def __init__(self, db, settings: Settings, resolver: AuthorizationResolver):
        self.db = db
        self.resolver = resolver
        self.path = events_path(settings.app_id)

    def collection(self):
        return self.db.collection(self.path)

    def ordered(self):
        return self.collection().order_by("date", direction="ASCENDING")

    def list(self) -> List[Event]:
        try:
            return [to_event(doc) for doc in self.ordered().stream()]
        except Exception as e:
            raise backend_error(e, "Loading events")

    def _existing(self, event_id: str):
        ref = self.collection().document(event_id)
        try:
            snap = ref.get()
        except Exception as e:
            raise backend_error(e, f"Reading event {event_id}")
        if not snap.exists:
            raise NotFoundError("Event not found")
        return ref

    async def create(self, actor: CurrentUser, payload: EventIn) -> Event:
        level = self.resolver.require(actor, Action.MANAGE_EVENTS)
        try:
            _, ref = self.collection().add(payload.model_dump())
        except Exception as e:
            raise backend_error(e, "Creating event")
        await log_activity(self.db, actor, level.role, "CREATE_EVENT", ref.id, payload.title)
        return Event(id=ref.id, **payload.model_dump())

    async def update(self, actor: CurrentUser, event_id: str, payload: EventUpdate) -> Event:
        level = self.resolver.require(actor, Action.MANAGE_EVENTS)
        ref = self._existing(event_id)
        changes = payload.model_dump(exclude_none=True)
        try:
            if changes:
                ref.update(changes)
            updated = to_event(ref.get())
        except Exception as e:
            raise backend_error(e, f"Updating event {event_id}")
        await log_activity(self.db, actor, level.role, "UPDATE_EVENT", event_id, ", ".join(sorted(changes)))
        return updated

    async def delete(self, actor: CurrentUser, event_id: str):
        level = self.resolver.require(actor, Action.MANAGE_EVENTS)
        ref = self._existing(event_id)
        try:
            ref.delete()
        except Exception as e:
            raise backend_error(e, f"Deleting event {event_id}")
        await log_activity(self.db, actor, level.role, "DELETE_EVENT", event_id)


class BookingStore:
    def __init__(self, db, settings: Settings, resolver: AuthorizationResolver):
        self.db = db
        self.resolver = resolver
        self.path = bookings_path(settings.app_id)

    def collection(self):
        return self.db.collection(self.path)

    def ordered(self):
        return self.collection().order_by("createdAt", direction="DESCENDING")

    def promoted(self):
        return self.collection().where("showAsEvent", "==", True)

    async def create(self, user: CurrentUser, payload: BookingIn) -> Booking:
        """Anyone signed in, guests included, may request a booking."""
        data = payload.model_dump(mode="json")
        data.update({
            "userId": user.uid,
            "status": BookingStatus.PENDING.value,
            "showAsEvent": False,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        try:
            _, ref = self.collection().add(data)
            booking = to_booking(ref.get())
        except Exception as e:
            raise backend_error(e, "Submitting booking")
        logger.info(f"Booking {booking.id} ({booking.type}) submitted by {user.uid}")
        return booking

    def list(self, actor: CurrentUser, status: Optional[BookingStatus] = None) -> List[Booking]:
        self.resolver.require(actor, Action.MANAGE_BOOKINGS)
        try:
            bookings = [to_booking(doc) for doc in self.ordered().stream()]
        except Exception as e:
            raise backend_error(e, "Loading bookings")
        if status is not None:
            bookings = [b for b in bookings if b.status == status]
        return bookings

    def list_for_user(self, user: CurrentUser) -> List[Booking]:
        try:
            docs = self.collection().where("userId", "==", user.uid).stream()
            bookings = [to_booking(doc) for doc in docs]
        except Exception as e:
            raise backend_error(e, "Loading your bookings")
        return sorted(bookings, key=_created_key, reverse=True)

    def promoted_bookings(self) -> List[Booking]:
        try:
            return [to_booking(doc) for doc in self.promoted().stream()]
        except Exception as e:
            raise backend_error(e, "Loading promoted bookings")

    async def _patch(self, actor: CurrentUser, booking_id: str, changes: dict, action: str) -> Booking:
        level = self.resolver.require(actor, Action.MANAGE_BOOKINGS)
        ref = self.collection().document(booking_id)
        try:
            if not ref.get().exists:
                raise NotFoundError("Booking not found")
            ref.update(changes)
            booking = to_booking(ref.get())
        except NotFoundError:
            raise
        except Exception as e:
            raise backend_error(e, f"Updating booking {booking_id}")
        await log_activity(self.db, actor, level.role, action, booking_id, str(changes))
        return booking

    async def set_status(self, actor: CurrentUser, booking_id: str, status: BookingStatus) -> Booking:
        return await self._patch(actor, booking_id, {"status": status.value}, "UPDATE_BOOKING_STATUS")

    async def set_show_as_event(self, actor: CurrentUser, booking_id: str, show: bool) -> Booking:
        return await self._patch(actor, booking_id, {"showAsEvent": show}, "TOGGLE_BOOKING_EVENT")

    async def delete(self, actor: CurrentUser, booking_id: str):
        level = self.resolver.require(actor, Action.MANAGE_BOOKINGS)
        ref = self.collection().document(booking_id)
        try:
            if not ref.get().exists:
                raise NotFoundError("Booking not found")
            ref.delete()
        except NotFoundError:
            raise
        except Exception as e:
            raise backend_error(e, f"Deleting booking {booking_id}")
        await log_activity(self.db, actor, level.role, "DELETE_BOOKING", booking_id)


def public_feed(events: EventStore, bookings: BookingStore) -> List[FeedItem]:
    return merge_feed(events.list(), bookings.promoted_bookings())


# --- Live views ---

class FeedWatcher:
    """Pushes the merged public feed whenever an event or a promoted booking changes."""

    def __init__(self, events: EventStore, bookings: BookingStore, listener: Callable[[List[FeedItem]], None]):
        self._listener = listener
        self._lock = threading.Lock()
        self._events: Optional[List[Event]] = None
        self._bookings: Optional[List[Booking]] = None
        self._subscriptions = [
            Subscription(events.ordered(), self._on_events),
            Subscription(bookings.promoted(), self._on_bookings),
        ]

    def _on_events(self, snapshots):
        events = [to_event(doc) for doc in snapshots]
        with self._lock:
            self._events = events
            self._publish()

    def _on_bookings(self, snapshots):
        bookings = [to_booking(doc) for doc in snapshots]
        with self._lock:
            self._bookings = bookings
            self._publish()

    def _publish(self):
        # Caller holds the lock, so feeds go out in the order their snapshots arrived
        if self._events is None or self._bookings is None:
            return
        self._listener(merge_feed(self._events, self._bookings))

    def cancel(self):
        for subscription in self._subscriptions:
            subscription.cancel()


class BookingsWatcher:
    """Pushes the admin booking list, newest first, on every change."""

    def __init__(self, bookings: BookingStore, listener: Callable[[List[Booking]], None]):
        self._subscription = Subscription(
            bookings.ordered(),
            lambda snapshots: listener([to_booking(doc) for doc in snapshots]),
        )

    def cancel(self):
        self._subscription.cancel()


class GuardedBookingsWatcher:
    """
    BookingsWatcher that lives only as long as `user` may manage bookings.
    Access is re-resolved on every change to the user's grants; once it is
    lost the booking listener is torn down and `on_revoked` is called.
    """

    def __init__(self, resolver: AuthorizationResolver, bookings: BookingStore, user: CurrentUser,
                 listener: Callable[[List[Booking]], None], on_revoked: Callable[[], None]):
        self._uid = user.uid
        self._on_revoked = on_revoked
        self._bookings: Optional[BookingsWatcher] = None
        self._revoked = False
        self._access = AccessWatcher(resolver, user, self._on_access)
        if not self._revoked:
            self._bookings = BookingsWatcher(bookings, listener)

    def _on_access(self, state):
        if self._revoked or check_permission(effective_role(state.is_admin, state.is_super_admin),
                                             Action.MANAGE_BOOKINGS):
            return
        self._revoked = True
        logger.info(f"Booking feed closed for {self._uid}: access revoked")
        if self._bookings is not None:
            self._bookings.cancel()
        self._on_revoked()

    def cancel(self):
        self._access.cancel()
        if self._bookings is not None:
            self._bookings.cancel()
