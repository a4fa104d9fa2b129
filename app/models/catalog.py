from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookingType(str, Enum):
    LANGAR_SEVA = "Langar Seva"      # Sponsor a Langar meal
    AKHAND_PATH = "Akhand Path"      # Book Akhand Path Sahib
    ANAND_KARAJ = "Anand Karaj"      # Wedding ceremony
    HALL_BOOKING = "Hall Booking"    # General event / function


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


def _calendar_date(value: str) -> str:
    # Stored as plain YYYY-MM-DD strings so lexical order is date order
    if len(value) != 10:
        raise ValueError("Dates must be YYYY-MM-DD")
    datetime.strptime(value, "%Y-%m-%d")
    return value


class EventIn(BaseModel):
    title: str = Field(..., min_length=1)
    date: str
    description: str = ""

    @field_validator("date")
    @classmethod
    def check_date(cls, v):
        return _calendar_date(v)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    date: Optional[str] = None
    description: Optional[str] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, v):
        return _calendar_date(v) if v is not None else v


class Event(BaseModel):
    id: str
    title: str = ""
    date: str = ""
    description: str = ""


class BookingIn(BaseModel):
    type: BookingType = BookingType.LANGAR_SEVA
    name: str = Field(..., min_length=1)
    date: str
    phone: str = Field(..., min_length=1)
    people: int = Field(..., ge=1)
    note: Optional[str] = ""

    @field_validator("date")
    @classmethod
    def check_date(cls, v):
        return _calendar_date(v)


class Booking(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    id: str
    type: str = BookingType.LANGAR_SEVA.value
    name: str = ""
    date: str = ""
    phone: str = ""
    people: int = 0
    note: Optional[str] = ""
    user_id: Optional[str] = Field(None, alias="userId")
    status: BookingStatus = BookingStatus.PENDING
    show_as_event: bool = Field(False, alias="showAsEvent")
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingVisibilityUpdate(BaseModel):
    show_as_event: bool = Field(..., alias="showAsEvent")

    model_config = ConfigDict(populate_by_name=True)


class FeedItem(BaseModel):
    """One entry of the public feed: a native event or a promoted booking."""
    id: str
    kind: Literal["event", "booking"]
    title: str
    date: str
    description: str = ""
