import logging
from typing import List

from fastapi import APIRouter, Depends, WebSocket

from app.api.deps import get_booking_store, get_event_store
from app.api.websockets import stream_to_socket
from app.models.catalog import FeedItem
from app.services.catalog import BookingStore, EventStore, FeedWatcher, public_feed

logger = logging.getLogger("darbar.events")

router = APIRouter()


@router.get("", response_model=List[FeedItem])
async def list_public_feed(events: EventStore = Depends(get_event_store),
                           bookings: BookingStore = Depends(get_booking_store)):
    """Upcoming events and promoted bookings, oldest date first."""
    return public_feed(events, bookings)


@router.websocket("/ws")
async def public_feed_updates(websocket: WebSocket,
                              events: EventStore = Depends(get_event_store),
                              bookings: BookingStore = Depends(get_booking_store)):
    await websocket.accept()
    await stream_to_socket(websocket, lambda push: FeedWatcher(events, bookings, push), "public feed")
