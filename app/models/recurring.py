from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.core.time_utils import utc_now

from app.models.booking import LocationType


class RecurringInterval(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class RecurringSchedule(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True, unique=True)
    series_id: str = Field(index=True)

    interval: str
    # 0=domingo ... 6=sábado
    day_of_week: int
    time_of_day: str  # "HH:MM", horário local da clínica

    location_type: str = LocationType.ONLINE.value
    in_person_location: Optional[str] = None

    next_buffer_refresh: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class RecurringCreate(SQLModel):
    interval: RecurringInterval
    day_of_week: int = Field(ge=0, le=6)
    time_of_day: str
    location_type: LocationType = LocationType.ONLINE
    in_person_location: Optional[str] = None
