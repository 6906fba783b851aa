"""Agendamentos recorrentes: projeção das próximas sessões e manutenção do
buffer de bookings futuros (por padrão 2 meses à frente)."""
import calendar
import logging
import re
import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import List, NamedTuple, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import or_
from sqlmodel import Session, select

from app.config import (
    PRACTICE_TIMEZONE,
    RECURRING_BUFFER_MONTHS,
    RECURRING_REFRESH_THRESHOLD_WEEKS,
    SESSION_LENGTH_MINUTES,
)
from app.core.time_utils import to_naive_utc, utc_now
from app.models.booking import Booking, BookingSource, BookingStatus, CancelledBy
from app.models.recurring import RecurringInterval, RecurringSchedule
from app.models.user import User
from app.services import config_service, lifecycle

logger = logging.getLogger(__name__)

TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
STOP_REASON = "Recurring schedule stopped"


class BufferRefreshResult(NamedTuple):
    created: List[Booking]
    skipped: int
    next_refresh: Optional[datetime]


def _tz(tz=None):
    return tz or ZoneInfo(PRACTICE_TIMEZONE)


def _to_local(dt: datetime, tz) -> datetime:
    """UTC naive -> horário local naive (wall clock)."""
    return dt.replace(tzinfo=timezone.utc).astimezone(tz).replace(tzinfo=None)


def _to_utc(local: datetime, tz) -> datetime:
    return local.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def add_months(d, months: int):
    """Soma meses mantendo o dia, limitado ao último dia do mês."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return d.replace(year=year, month=month, day=day)


def parse_time_of_day(value: str) -> time:
    match = TIME_OF_DAY_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def next_occurrence(last: datetime, interval: str, tz=None) -> datetime:
    """Próxima sessão depois de `last` (UTC naive), no relógio local."""
    tz = _tz(tz)
    local = _to_local(last, tz)

    if interval == RecurringInterval.WEEKLY.value:
        local = local + timedelta(weeks=1)
    elif interval == RecurringInterval.BIWEEKLY.value:
        local = local + timedelta(weeks=2)
    else:
        local = add_months(local, 1)

    return _to_utc(local, tz)


def first_occurrence(day_of_week: int, time_of_day: str, now: Optional[datetime] = None, tz=None) -> datetime:
    """Primeira sessão a partir de `now` no dia da semana (0=domingo) e horário dados."""
    tz = _tz(tz)
    now = to_naive_utc(now) if now is not None else utc_now()
    local_now = _to_local(now, tz)

    # date.weekday(): 0=segunda; aqui 0=domingo
    target_weekday = (day_of_week - 1) % 7
    days_ahead = (target_weekday - local_now.weekday()) % 7
    day: date = local_now.date() + timedelta(days=days_ahead)

    candidate = datetime.combine(day, parse_time_of_day(time_of_day))
    if candidate <= local_now:
        candidate += timedelta(weeks=1)

    return _to_utc(candidate, tz)


def calculate_next_refresh_date(last_booking_start: datetime) -> datetime:
    return last_booking_start - timedelta(weeks=RECURRING_REFRESH_THRESHOLD_WEEKS)


def get_schedule(session: Session, user_id: int) -> Optional[RecurringSchedule]:
    return session.exec(
        select(RecurringSchedule).where(RecurringSchedule.user_id == user_id)
    ).first()


def _last_series_booking(session: Session, series_id: str) -> Optional[Booking]:
    return session.exec(
        select(Booking)
        .where(Booking.recurring_series_id == series_id)
        .order_by(Booking.event_start_time.desc())
    ).first()


# =========================
# BUFFER
# =========================

def refresh_buffer(
    session: Session,
    schedule: RecurringSchedule,
    now: Optional[datetime] = None,
    tz=None,
) -> BufferRefreshResult:
    """Gera os bookings da série até `RECURRING_BUFFER_MONTHS` à frente.

    Horários em conflito com outro booking não cancelado são pulados.
    """
    now = to_naive_utc(now) if now is not None else utc_now()
    user = session.get(User, schedule.user_id)
    if user is None:
        raise lifecycle.BookingStateError(f"User {schedule.user_id} not found")

    amount, currency = config_service.get_session_price(session, user.account_type)
    if amount is None:
        logger.error("Session price not configured. Cannot refresh buffer for user %s", user.id)
        raise config_service.ConfigError("Session price not configured")

    last = _last_series_booking(session, schedule.series_id)
    if last is None:
        cursor = first_occurrence(schedule.day_of_week, schedule.time_of_day, now, tz)
    else:
        cursor = next_occurrence(last.event_start_time, schedule.interval, tz)

    # mantém o ritmo da série mesmo se o último booking já passou
    while cursor <= now:
        cursor = next_occurrence(cursor, schedule.interval, tz)

    buffer_end = add_months(now, RECURRING_BUFFER_MONTHS)
    length = timedelta(minutes=SESSION_LENGTH_MINUTES)

    created: List[Booking] = []
    skipped = 0
    last_start = last.event_start_time if last else None

    while cursor < buffer_end:
        try:
            booking = lifecycle.create_booking(
                session,
                user,
                cursor,
                cursor + length,
                amount=amount,
                currency=currency,
                source=BookingSource.SYSTEM.value,
                location_type=schedule.location_type,
                in_person_location=schedule.in_person_location,
                event_name="Recurring Session",
                commit=False,
                recurring_series_id=schedule.series_id,
                recurring_interval=schedule.interval,
                recurring_day=schedule.day_of_week,
                recurring_time=schedule.time_of_day,
            )
            created.append(booking)
        except lifecycle.BookingConflict:
            logger.warning("Conflict detected for %s. Skipping slot.", cursor.isoformat())
            skipped += 1

        last_start = cursor
        cursor = next_occurrence(cursor, schedule.interval, tz)

    schedule.next_buffer_refresh = calculate_next_refresh_date(last_start) if last_start else None
    session.add(schedule)
    session.commit()

    for booking in created:
        session.refresh(booking)

    logger.info(
        "Buffer refresh for user %s: %d created, %d skipped",
        user.id,
        len(created),
        skipped,
    )
    return BufferRefreshResult(created, skipped, schedule.next_buffer_refresh)


def refresh_due_buffers(session: Session, now: Optional[datetime] = None) -> int:
    """Atualiza o buffer de toda série cuja data de refresh já chegou."""
    now = to_naive_utc(now) if now is not None else utc_now()
    due = session.exec(
        select(RecurringSchedule).where(
            or_(
                RecurringSchedule.next_buffer_refresh.is_(None),
                RecurringSchedule.next_buffer_refresh <= now,
            )
        )
    ).all()

    refreshed = 0
    for schedule in due:
        try:
            refresh_buffer(session, schedule, now)
            refreshed += 1
        except (config_service.ConfigError, lifecycle.BookingStateError) as e:
            logger.error("Failed to refresh buffer for user %s: %s", schedule.user_id, e)
    return refreshed


# =========================
# INÍCIO / FIM DA RECORRÊNCIA
# =========================

def start_recurring(
    session: Session,
    user: User,
    interval: str,
    day_of_week: int,
    time_of_day: str,
    location_type: str,
    in_person_location: Optional[str] = None,
    now: Optional[datetime] = None,
    tz=None,
) -> BufferRefreshResult:
    interval = RecurringInterval(interval).value
    if not 0 <= day_of_week <= 6:
        raise ValueError("day_of_week must be between 0 and 6")
    parse_time_of_day(time_of_day)

    if get_schedule(session, user.id) is not None:
        stop_recurring(session, user, now)

    schedule = RecurringSchedule(
        user_id=user.id,
        series_id=uuid.uuid4().hex,
        interval=interval,
        day_of_week=day_of_week,
        time_of_day=time_of_day,
        location_type=location_type,
        in_person_location=in_person_location,
    )
    session.add(schedule)
    session.commit()
    session.refresh(schedule)
    logger.info("Recurring %s schedule started for user %s", interval, user.id)

    return refresh_buffer(session, schedule, now, tz)


def stop_recurring(session: Session, user: User, now: Optional[datetime] = None) -> int:
    """Remove a série e cancela os bookings futuros dela. Retorna quantos cancelou."""
    now = to_naive_utc(now) if now is not None else utc_now()
    schedule = get_schedule(session, user.id)
    if schedule is None:
        return 0

    notice_period = config_service.get_notice_period(session)
    future = session.exec(
        select(Booking).where(
            Booking.recurring_series_id == schedule.series_id,
            Booking.status == BookingStatus.ACTIVE.value,
            Booking.event_start_time > now,
        )
    ).all()

    for booking in future:
        lifecycle.cancel_booking(
            session,
            booking,
            STOP_REASON,
            CancelledBy.ADMIN.value,
            notice_period,
            now,
            commit=False,
        )

    session.delete(schedule)
    session.commit()
    logger.info("Recurring schedule stopped for user %s, %d bookings cancelled", user.id, len(future))
    return len(future)
