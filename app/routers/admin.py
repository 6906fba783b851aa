import logging
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from app.config import MAX_NOTICE_PERIOD_DAYS
from app.core.security import get_current_admin
from app.core.time_utils import utc_now
from app.database import get_session
from app.models.booking import (
    Booking,
    BookingCreate,
    BookingSource,
    BookingStatus,
    CancelledBy,
    CancelRequest,
)
from app.models.config_entry import ConfigEntry, ConfigUpdate
from app.models.payment import Payment, TransactionStatus
from app.models.recurring import RecurringCreate
from app.models.user import User
from app.routers.bookings import booking_view
from app.services import config_service, lifecycle, recurring


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


def _get_booking(session: Session, booking_id: int) -> Booking:
    booking = session.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# =========================
# BOOKINGS
# =========================
@router.get("/bookings")
def list_bookings(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    source: Optional[str] = None,
    user_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    query = select(Booking)
    if status_filter:
        query = query.where(Booking.status == status_filter)
    if source:
        query = query.where(Booking.source == source)
    if user_id:
        query = query.where(Booking.user_id == user_id)

    bookings = session.exec(query.order_by(Booking.event_start_time.desc())).all()

    booking_ids = [b.id for b in bookings]
    payments = session.exec(select(Payment).where(Payment.booking_id.in_(booking_ids))).all() if booking_ids else []
    payment_map = {p.booking_id: p for p in payments}

    return [booking_view(b, payment_map.get(b.id)) for b in bookings]


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    session: Session = Depends(get_session),
):
    user = _get_user(session, payload.user_id)

    amount, currency = config_service.get_session_price(session, user.account_type)
    if amount is None:
        logger.error("Session price not configured")
        raise HTTPException(status_code=500, detail="Session price not configured")

    try:
        booking = lifecycle.create_booking(
            session,
            user,
            payload.event_start_time,
            payload.event_end_time,
            amount=amount,
            currency=currency,
            source=BookingSource.ADMIN.value,
            location_type=payload.location_type.value,
            in_person_location=payload.in_person_location,
            event_name=payload.event_name,
        )
    except lifecycle.BookingStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except lifecycle.BookingConflict as e:
        raise HTTPException(status_code=409, detail=str(e))

    return booking_view(booking, lifecycle.get_payment_for_booking(session, booking.id))


@router.patch("/bookings/{booking_id}/cancel")
def cancel_booking(
    booking_id: int,
    payload: Optional[CancelRequest] = None,
    session: Session = Depends(get_session),
):
    booking = _get_booking(session, booking_id)

    # bookings do calendly são cancelados pelo próprio calendly
    if booking.source not in (BookingSource.ADMIN.value, BookingSource.SYSTEM.value):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot cancel {booking.source} booking via admin panel",
        )

    notice_period = config_service.get_notice_period(session)
    try:
        result = lifecycle.cancel_booking(
            session,
            booking,
            payload.reason if payload else CancelRequest().reason,
            CancelledBy.ADMIN.value,
            notice_period,
        )
    except lifecycle.BookingStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = booking_view(result.booking, result.payment, notice_period)
    data["cancellation"] = result.assessment._asdict()
    return data


@router.patch("/bookings/{booking_id}/complete")
def complete_booking(
    booking_id: int,
    session: Session = Depends(get_session),
):
    booking = _get_booking(session, booking_id)
    try:
        booking = lifecycle.complete_booking(session, booking)
    except lifecycle.BookingStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return booking_view(booking, lifecycle.get_payment_for_booking(session, booking.id))


@router.post("/bookings/complete-expired")
def complete_expired_bookings(session: Session = Depends(get_session)):
    return {"updated": lifecycle.complete_expired_bookings(session)}


# =========================
# RECORRÊNCIA
# =========================
@router.put("/users/{user_id}/recurring")
def set_recurring(
    user_id: int,
    payload: RecurringCreate,
    session: Session = Depends(get_session),
):
    user = _get_user(session, user_id)

    try:
        result = recurring.start_recurring(
            session,
            user,
            payload.interval.value,
            payload.day_of_week,
            payload.time_of_day,
            payload.location_type.value,
            payload.in_person_location,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except config_service.ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "created": len(result.created),
        "skipped": result.skipped,
        "next_buffer_refresh": result.next_refresh,
    }


@router.delete("/users/{user_id}/recurring")
def stop_recurring(
    user_id: int,
    session: Session = Depends(get_session),
):
    user = _get_user(session, user_id)
    if recurring.get_schedule(session, user.id) is None:
        raise HTTPException(status_code=404, detail="User has no recurring schedule")

    cancelled = recurring.stop_recurring(session, user)
    return {"cancelled": cancelled}


@router.post("/recurring/maintain-buffer")
def trigger_buffer_maintenance(session: Session = Depends(get_session)):
    logger.info("Manual buffer maintenance triggered by admin")
    return {"refreshed": recurring.refresh_due_buffers(session)}


@router.post("/recurring/{user_id}/refresh-buffer")
def trigger_user_buffer_refresh(
    user_id: int,
    session: Session = Depends(get_session),
):
    schedule = recurring.get_schedule(session, user_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="User not found or not in recurring mode")

    try:
        result = recurring.refresh_buffer(session, schedule)
    except config_service.ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "created": len(result.created),
        "skipped": result.skipped,
        "next_buffer_refresh": result.next_refresh,
    }


# =========================
# CONFIGURAÇÕES
# =========================
@router.get("/config")
def list_config(session: Session = Depends(get_session)):
    return session.exec(select(ConfigEntry).order_by(ConfigEntry.key)).all()


@router.put("/config/{key}")
def update_config(
    key: str,
    payload: ConfigUpdate,
    session: Session = Depends(get_session),
):
    value = payload.value
    if key == config_service.NOTICE_PERIOD_KEY:
        value = config_service.parse_notice_period(value)
        if value is None:
            raise HTTPException(
                status_code=400,
                detail=f"noticePeriod must be a whole number of days between 0 and {MAX_NOTICE_PERIOD_DAYS}",
            )

    try:
        return config_service.set_value(session, key, value)
    except config_service.ConfigError as e:
        raise HTTPException(status_code=403, detail=str(e))


# =========================
# DASHBOARD
# =========================
def _day_bounds(d: date):
    start = datetime.combine(d, time(0, 0))
    end = start + timedelta(days=1)
    return start, end


@router.get("/summary")
def dashboard_summary(
    day: Optional[date] = None,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    now = utc_now()
    start, end = _day_bounds(day or now.date())

    bookings = session.exec(
        select(Booking).where(
            Booking.event_start_time >= start,
            Booking.event_start_time < end,
        )
    ).all()
    by_status = Counter([b.status for b in bookings])
    by_source = Counter([b.source for b in bookings])

    payments = session.exec(select(Payment)).all()
    payments_by_status = Counter([p.transaction_status for p in payments])

    # receita: só pagamentos concluídos, agrupados por moeda
    revenue: Dict[str, float] = {}
    for p in payments:
        if p.transaction_status == TransactionStatus.COMPLETED.value:
            revenue[p.currency] = round(revenue.get(p.currency, 0.0) + float(p.amount), 2)

    upcoming = session.exec(
        select(Booking)
        .where(Booking.status == BookingStatus.ACTIVE.value, Booking.event_start_time > now)
        .order_by(Booking.event_start_time)
        .limit(5)
    ).all()

    return {
        "day": start.date().isoformat(),
        "total_bookings": len(bookings),
        "status": dict(by_status),
        "source": dict(by_source),
        "payments": dict(payments_by_status),
        "refunds_pending": payments_by_status.get(TransactionStatus.REFUND_REQUESTED.value, 0),
        "revenue_completed": revenue,
        "upcoming": [
            {"id": b.id, "user_id": b.user_id, "event_start_time": b.event_start_time.isoformat()}
            for b in upcoming
        ],
    }
