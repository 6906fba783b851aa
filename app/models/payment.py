from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.core.time_utils import utc_now


class TransactionStatus(str, Enum):
    NOT_INITIATED = "Not Initiated"
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUND_REQUESTED = "Refund Requested"
    REFUNDED = "Refunded"
    CANCELLED = "Cancelled"


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    booking_id: int = Field(foreign_key="booking.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    transaction_reference_number: Optional[str] = None  # T-xxxxx

    amount: float
    currency: str = "PKR"

    transaction_status: str = Field(default=TransactionStatus.NOT_INITIATED.value, index=True)

    created_at: datetime = Field(default_factory=utc_now)
    payment_completed_date: Optional[datetime] = None
    refund_requested_date: Optional[datetime] = None
    payment_refunded_date: Optional[datetime] = None


class PaymentStatusUpdate(SQLModel):
    transaction_status: TransactionStatus


class RefundRequest(SQLModel):
    booking_id: int
    payment_id: int
