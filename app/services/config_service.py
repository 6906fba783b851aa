"""Configurações globais editáveis pelo admin (preço da sessão, prazo de
cancelamento, ...), guardadas na tabela ConfigEntry."""
import logging
from typing import Any, Optional

from sqlmodel import Session, select

from app.config import ADMIN_EMAIL, DEFAULT_NOTICE_PERIOD_DAYS, MAX_NOTICE_PERIOD_DAYS
from app.core.time_utils import utc_now
from app.models.config_entry import ConfigEntry

logger = logging.getLogger(__name__)

NOTICE_PERIOD_KEY = "noticePeriod"
SESSION_PRICE_KEY = "sessionPrice"
INTL_SESSION_PRICE_KEY = "intlSessionPrice"

DEFAULT_CONFIG = [
    {
        "key": SESSION_PRICE_KEY,
        "value": 8000,
        "display_name": "Session Price",
        "description": "Price per session in PKR",
    },
    {
        "key": INTL_SESSION_PRICE_KEY,
        "value": 40,
        "display_name": "International Session Price",
        "description": "Price per session in USD for international clients",
    },
    {
        "key": "adminEmail",
        "value": ADMIN_EMAIL,
        "display_name": "Admin Email",
        "description": "Admin email for system notifications",
    },
    {
        "key": "maxBookings",
        "value": 3,
        "display_name": "Maximum Bookings",
        "description": "Maximum number of active bookings allowed at a time.",
    },
    {
        "key": NOTICE_PERIOD_KEY,
        "value": DEFAULT_NOTICE_PERIOD_DAYS,
        "display_name": "Cancellation Notice Period",
        "description": (
            "The notice period for cancellations in days. Cancellations made "
            "earlier than this are eligible for a refund."
        ),
    },
]


class ConfigError(Exception):
    pass


def initialize_config(session: Session) -> int:
    """Cria as chaves padrão que ainda não existem. Retorna quantas criou."""
    created = 0
    for item in DEFAULT_CONFIG:
        existing = session.exec(
            select(ConfigEntry).where(ConfigEntry.key == item["key"])
        ).first()
        if existing:
            continue
        session.add(ConfigEntry(**item))
        created += 1
        logger.info("Initializing config key: %s", item["key"])

    if created:
        session.commit()
    return created


def get_entry(session: Session, key: str):
    return session.exec(select(ConfigEntry).where(ConfigEntry.key == key)).first()


def get_value(session: Session, key: str, default: Any = None) -> Any:
    entry = get_entry(session, key)
    if entry is None:
        return default
    return entry.value


def set_value(session: Session, key: str, value: Any) -> ConfigEntry:
    entry = get_entry(session, key)

    if entry is None:
        logger.warning("Attempted to update non-existent config key: %s. Creating it.", key)
        entry = ConfigEntry(
            key=key,
            value=value,
            display_name=key[:1].upper() + key[1:],
            description=f"Auto-generated for key {key}",
        )
    elif not entry.editable:
        raise ConfigError(f"Config key '{key}' is not editable")
    else:
        entry.value = value
        entry.updated_at = utc_now()

    session.add(entry)
    session.commit()
    session.refresh(entry)
    logger.info("Config key %s updated", key)
    return entry


def parse_notice_period(value: Any) -> Optional[int]:
    """Inteiro (não bool) entre 0 e MAX_NOTICE_PERIOD_DAYS, senão None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int):
        return None
    if not 0 <= value <= MAX_NOTICE_PERIOD_DAYS:
        return None
    return value


def get_notice_period(session: Session) -> int:
    raw = get_value(session, NOTICE_PERIOD_KEY)
    days = parse_notice_period(raw)
    if days is None:
        logger.warning(
            "Notice period config missing or invalid (%r), using default of %s days",
            raw,
            DEFAULT_NOTICE_PERIOD_DAYS,
        )
        return DEFAULT_NOTICE_PERIOD_DAYS
    return days


def get_session_price(session: Session, account_type: str = "domestic"):
    """Retorna (preço, moeda) de acordo com o tipo de conta."""
    if account_type == "international":
        return get_value(session, INTL_SESSION_PRICE_KEY), "USD"
    return get_value(session, SESSION_PRICE_KEY), "PKR"
