"""Formatação de datas/horários e helpers de fuso.

Todas as funções de formatação são totais: entrada vazia ou inválida
retorna um valor padrão em vez de levantar exceção.
"""
from datetime import datetime, timezone, tzinfo
from numbers import Number
from typing import Any, Dict, Optional


DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

INTERVAL_DISPLAY = {
    "weekly": "Every week",
    "biweekly": "Every 2 weeks",
    "monthly": "Every month",
}


def utc_now() -> datetime:
    """UTC atual, sem tzinfo (formato usado no banco)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    # naive = já está em UTC
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """datetime, string ISO ou epoch em ms -> datetime UTC naive. Inválido -> None."""
    try:
        if isinstance(value, datetime):
            return to_naive_utc(value)
        if isinstance(value, str):
            return to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        if isinstance(value, Number) and not isinstance(value, bool):
            return to_naive_utc(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
    except (ValueError, OverflowError, OSError):
        return None
    return None


def format_time_12hour(time24: Optional[str]) -> str:
    """'14:30' -> '2:30 PM'. Retorna '' para entrada vazia ou inválida."""
    if not time24 or not isinstance(time24, str):
        return ""

    parts = time24.split(":")
    if len(parts) < 2:
        return ""

    try:
        hour = int(parts[0])
    except ValueError:
        return ""

    ampm = "PM" if hour >= 12 else "AM"
    hour12 = hour % 12 or 12
    return f"{hour12}:{parts[1]} {ampm}"


def get_day_name(day_num: Any) -> str:
    """0=Sunday ... 6=Saturday, qualquer outro valor vira 'Unknown'."""
    if isinstance(day_num, bool) or not isinstance(day_num, int):
        return "Unknown"
    if 0 <= day_num < len(DAY_NAMES):
        return DAY_NAMES[day_num]
    return "Unknown"


def get_interval_display(interval: Any) -> Any:
    if isinstance(interval, str):
        return INTERVAL_DISPLAY.get(interval, interval)
    return interval


def format_date_time(value: Any, tz: Optional[tzinfo] = None) -> Dict[str, str]:
    """Separa um datetime em {'date': 'June 5, 2024', 'time': '02:30 PM'}."""
    if not value:
        return {"date": "-", "time": "-"}

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return {"date": "-", "time": "-"}

    if not isinstance(value, datetime):
        return {"date": "-", "time": "-"}

    if tz is not None:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(tz)

    return {
        "date": f"{value:%B} {value.day}, {value.year}",
        "time": value.strftime("%I:%M %p"),
    }


def format_amount(amount: Any) -> Any:
    if isinstance(amount, Number) and not isinstance(amount, bool):
        # 8000.0 -> "8,000"
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        return f"{amount:,}"
    return amount
