import logging
from datetime import datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlmodel import Session, select

from app.config import CALENDLY_CONSULTATION_EVENT, CALENDLY_SESSION_URL, PRACTICE_TIMEZONE
from app.core.refunds import cancellation_deadline
from app.core.security import ROLE_ADMIN, get_current_user
from app.core.status_display import get_booking_status_display, get_status_display
from app.core.time_utils import (
    format_amount,
    format_date_time,
    format_time_12hour,
    get_day_name,
    get_interval_display,
    parse_timestamp,
    to_naive_utc,
    utc_now,
)
from app.database import get_session
from app.models.booking import Booking, BookingSource, BookingStatus, CancelledBy, CancelRequest
from app.models.payment import Payment
from app.models.user import User
from app.services import config_service, lifecycle


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def booking_view(booking: Booking, payment: Optional[Payment], notice_period: Optional[int] = None) -> Dict:
    """Booking + dados do pagamento + textos de exibição."""
    data = booking.model_dump()
    data["status_display"] = get_booking_status_display(booking.status)._asdict()
    data["start_display"] = format_date_time(booking.event_start_time, ZoneInfo(PRACTICE_TIMEZONE))

    if booking.recurring_series_id:
        data["recurring"] = {
            "interval": booking.recurring_interval,
            "interval_display": get_interval_display(booking.recurring_interval),
            "day": booking.recurring_day,
            "day_name": get_day_name(booking.recurring_day),
            "time": booking.recurring_time,
            "time_display": format_time_12hour(booking.recurring_time),
        }

    if payment is not None:
        data["payment_id"] = payment.id
        data["amount"] = payment.amount
        data["currency"] = payment.currency
        data["amount_display"] = f"{payment.currency} {format_amount(payment.amount)}"
        data["transaction_status"] = payment.transaction_status
        data["payment_display"] = get_status_display(payment.transaction_status)._asdict()

    if notice_period is not None:
        deadline = cancellation_deadline(booking.event_start_time, notice_period)
        data["refund_deadline"] = deadline
    return data


def _get_owned_booking(session: Session, booking_id: int, current_user: User) -> Booking:
    booking = session.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    if current_user.role != ROLE_ADMIN and booking.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed")
    return booking


# =========================
# MEUS BOOKINGS ATIVOS
# =========================
@router.get("/")
def get_my_bookings(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> List[Dict]:
    bookings = session.exec(
        select(Booking)
        .where(
            Booking.user_id == current_user.id,
            Booking.status == BookingStatus.ACTIVE.value,
            Booking.event_end_time > utc_now(),
        )
        .order_by(Booking.event_start_time)
    ).all()

    payments = session.exec(select(Payment).where(Payment.user_id == current_user.id)).all()
    payment_map = {p.booking_id: p for p in payments}
    notice_period = config_service.get_notice_period(session)

    return [booking_view(b, payment_map.get(b.id), notice_period) for b in bookings]


# =========================
# LINK DE AGENDAMENTO (CALENDLY)
# =========================
@router.get("/link")
def get_new_booking_link(current_user: User = Depends(get_current_user)):
    link = f"{CALENDLY_SESSION_URL}?utm_source=dashboard&utm_content={current_user.id}"
    return {"link": link}


@router.get("/{booking_id}")
def get_booking(
    booking_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    booking = _get_owned_booking(session, booking_id, current_user)
    payment = lifecycle.get_payment_for_booking(session, booking.id)
    return booking_view(booking, payment, config_service.get_notice_period(session))


# =========================
# CANCELAR (USUÁRIO)
# - reembolso só se cancelado antes do prazo configurado
# =========================
@router.patch("/{booking_id}/cancel")
def cancel_my_booking(
    booking_id: int,
    payload: Optional[CancelRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    booking = _get_owned_booking(session, booking_id, current_user)

    if booking.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed")

    notice_period = config_service.get_notice_period(session)

    try:
        result = lifecycle.cancel_booking(
            session,
            booking,
            payload.reason if payload else CancelRequest().reason,
            CancelledBy.USER.value,
            notice_period,
        )
    except lifecycle.BookingStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = booking_view(result.booking, result.payment, notice_period)
    data["cancellation"] = result.assessment._asdict()
    return data


# =========================
# WEBHOOK CALENDLY
# =========================
def _parse_calendly_time(value: str) -> datetime:
    return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


@router.post("/calendly")
def handle_calendly_webhook(
    body: Dict = Body(...),
    session: Session = Depends(get_session),
):
    event = body.get("event")
    payload = body.get("payload") or {}
    scheduled = payload.get("scheduled_event") or {}

    event_uri = scheduled.get("uri")
    event_name = scheduled.get("name")

    if not event_uri or event not in ("invitee.created", "invitee.canceled"):
        raise HTTPException(status_code=400, detail="Unsupported webhook payload")

    if event_name == CALENDLY_CONSULTATION_EVENT:
        logger.info("Consultation event %s ignored (%s)", event_uri, event)
        return {"status": "ignored"}

    existing = session.exec(
        select(Booking).where(Booking.scheduled_event_uri == event_uri)
    ).first()

    if event == "invitee.canceled":
        if not existing:
            logger.info("No booking found for eventURI: %s", event_uri)
            return {"status": "ignored"}
        if existing.status != BookingStatus.ACTIVE.value:
            return {"status": "ignored"}

        cancellation = payload.get("cancellation") or {}
        cancelled_by = CancelledBy.USER.value if cancellation.get("canceler_type") == "user" else CancelledBy.ADMIN.value
        created_at = cancellation.get("created_at")
        cancelled_at = parse_timestamp(created_at) if created_at else None
        if created_at and cancelled_at is None:
            logger.warning("Invalid cancellation created_at %r for %s, using current time", created_at, event_uri)

        lifecycle.cancel_booking(
            session,
            existing,
            cancellation.get("reason") or "Cancelled via Calendly",
            cancelled_by,
            config_service.get_notice_period(session),
            cancelled_at,
        )
        return {"status": "cancelled", "booking_id": existing.id}

    # invitee.created
    if existing:
        logger.info("Booking already exists for eventURI: %s. Skipping creation.", event_uri)
        return {"status": "ignored", "booking_id": existing.id}

    user_id = (payload.get("tracking") or {}).get("utm_content")
    user = session.get(User, int(user_id)) if str(user_id or "").isdigit() else None
    if not user:
        logger.warning("No user found with utm_content: %s", user_id)
        return {"status": "ignored"}

    amount, currency = config_service.get_session_price(session, user.account_type)
    if amount is None:
        logger.error("Session price not found in config. Aborting booking creation.")
        raise HTTPException(status_code=503, detail="Session price not configured")

    try:
        booking = lifecycle.create_booking(
            session,
            user,
            _parse_calendly_time(scheduled["start_time"]),
            _parse_calendly_time(scheduled["end_time"]),
            amount=amount,
            currency=currency,
            source=BookingSource.CALENDLY.value,
            event_name=event_name or "Session",
            scheduled_event_uri=event_uri,
            cancel_url=payload.get("cancel_url"),
            reschedule_url=payload.get("reschedule_url"),
            check_conflict=False,
        )
    except (KeyError, ValueError):
        raise HTTPException(status_code=400, detail="Invalid event times")
    except lifecycle.BookingStateError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"status": "created", "booking_id": booking.id}
