from typing import List

from fastapi import APIRouter, Depends

from app.api.deps import get_booking_store, get_current_user
from app.models.catalog import Booking, BookingIn
from app.models.user import CurrentUser
from app.services.catalog import BookingStore

router = APIRouter()


@router.post("", response_model=Booking, status_code=201)
async def request_booking(payload: BookingIn, user: CurrentUser = Depends(get_current_user),
                          bookings: BookingStore = Depends(get_booking_store)):
    """Books a service or the hall. The committee confirms or rejects it later."""
    return await bookings.create(user, payload)


@router.get("/mine", response_model=List[Booking])
async def my_bookings(user: CurrentUser = Depends(get_current_user),
                      bookings: BookingStore = Depends(get_booking_store)):
    return bookings.list_for_user(user)
