from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.core.time_utils import utc_now


class BookingStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class BookingSource(str, Enum):
    CALENDLY = "calendly"
    ADMIN = "admin"
    SYSTEM = "system"  # gerado pelo agendamento recorrente


class LocationType(str, Enum):
    ONLINE = "online"
    IN_PERSON = "in-person"


class CancelledBy(str, Enum):
    USER = "User"
    ADMIN = "Admin"


class Booking(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)

    event_start_time: datetime = Field(index=True)
    event_end_time: datetime = Field(index=True)
    event_name: str = "Session"

    source: str = Field(default=BookingSource.ADMIN.value, index=True)
    status: str = Field(default=BookingStatus.ACTIVE.value, index=True)

    location_type: str = LocationType.ONLINE.value
    in_person_location: Optional[str] = None

    # descritor recorrente (só em bookings gerados pelo sistema)
    recurring_series_id: Optional[str] = Field(default=None, index=True)
    recurring_interval: Optional[str] = None
    recurring_day: Optional[int] = None
    recurring_time: Optional[str] = None

    # calendly
    scheduled_event_uri: Optional[str] = Field(default=None, index=True)
    cancel_url: Optional[str] = None
    reschedule_url: Optional[str] = None

    cancellation_reason: Optional[str] = None
    cancellation_date: Optional[datetime] = None
    cancelled_by: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now, index=True)


class BookingCreate(SQLModel):
    user_id: int
    event_start_time: datetime
    event_end_time: datetime
    location_type: LocationType = LocationType.ONLINE
    in_person_location: Optional[str] = None
    event_name: str = "Session"


class CancelRequest(SQLModel):
    reason: str = "No reason provided"
