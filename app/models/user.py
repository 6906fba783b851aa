from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.core.time_utils import utc_now


class UserBase(SQLModel):
    name: str
    email: str = Field(index=True, unique=True)
    role: str = "user"  # "admin" ou "user"
    account_type: str = "domestic"  # domestic | international


class User(UserBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    password_hash: str
    created_at: datetime = Field(default_factory=utc_now)


class UserCreate(SQLModel):
    name: str
    email: str
    password: str
    account_type: str = "domestic"


class UserRead(UserBase):
    id: int
