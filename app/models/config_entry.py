from typing import Any, Optional
from datetime import datetime
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

from app.core.time_utils import utc_now


class ConfigEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    key: str = Field(index=True, unique=True)
    value: Any = Field(sa_column=Column(JSON, nullable=False))

    display_name: str
    description: Optional[str] = None
    editable: bool = True

    updated_at: datetime = Field(default_factory=utc_now)


class ConfigUpdate(SQLModel):
    value: Any
