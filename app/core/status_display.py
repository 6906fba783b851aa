from enum import Enum
from typing import NamedTuple, Optional


class StatusDisplay(NamedTuple):
    icon: str
    text: str
    color: str


NEUTRAL_ICON = "BiInfoCircle"
NEUTRAL_COLOR = "text-gray-600 bg-gray-100"

PAYMENT_STATUS_DISPLAY = {
    "Completed": StatusDisplay("BiCheckCircle", "Completed", "text-green-600 bg-green-100"),
    "Pending": StatusDisplay("BiLoaderAlt", "Pending", "text-yellow-600 bg-yellow-100"),
    "Failed": StatusDisplay("BiXCircle", "Failed", "text-red-600 bg-red-100"),
    "Refunded": StatusDisplay("BiInfoCircle", "Refunded", "text-blue-600 bg-blue-100"),
    "Partially Refunded": StatusDisplay("BiInfoCircle", "Partially Refunded", "text-indigo-600 bg-indigo-100"),
    "Not Initiated": StatusDisplay("BiInfoCircle", "Not Initiated", NEUTRAL_COLOR),
    "Cancelled": StatusDisplay("BiXCircle", "Cancelled", "text-red-600 bg-red-100"),
    "Refund Requested": StatusDisplay("BiInfoCircle", "Refund Requested", "text-purple-600 bg-purple-100"),
}

BOOKING_STATUS_DISPLAY = {
    "Active": StatusDisplay("BiCalendarCheck", "Active", "text-green-600 bg-green-100"),
    "Completed": StatusDisplay("BiCheckCircle", "Completed", "text-blue-600 bg-blue-100"),
    "Cancelled": StatusDisplay("BiXCircle", "Cancelled", "text-red-600 bg-red-100"),
}


def _lookup(table, status) -> StatusDisplay:
    if isinstance(status, Enum):
        status = status.value
    if isinstance(status, str) and status in table:
        return table[status]
    # status desconhecido: mantém o texto, ícone/cor neutros
    text = status if isinstance(status, str) and status else "N/A"
    return StatusDisplay(NEUTRAL_ICON, text, NEUTRAL_COLOR)


def get_status_display(transaction_status: Optional[str]) -> StatusDisplay:
    return _lookup(PAYMENT_STATUS_DISPLAY, transaction_status)


def get_booking_status_display(status: Optional[str]) -> StatusDisplay:
    return _lookup(BOOKING_STATUS_DISPLAY, status)
