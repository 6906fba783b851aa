"""Ciclo de vida de bookings e pagamentos.

Booking: Active -> Completed | Cancelled (ambos terminais).
Payment: Refund Requested / Refunded só depois de Completed.
"""
import logging
import secrets
import string
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlmodel import Session, select

from app.core.refunds import assess_cancellation, CancellationAssessment
from app.core.time_utils import to_naive_utc, utc_now
from app.models.booking import Booking, BookingSource, BookingStatus, LocationType
from app.models.payment import Payment, TransactionStatus
from app.models.user import User

logger = logging.getLogger(__name__)


class BookingStateError(Exception):
    pass


class PaymentStateError(Exception):
    pass


class BookingConflict(Exception):
    def __init__(self, message: str, existing: Optional[Booking] = None):
        super().__init__(message)
        self.existing = existing


class RefundNotAllowed(Exception):
    pass


class CancellationResult(NamedTuple):
    booking: Booking
    payment: Optional[Payment]
    assessment: CancellationAssessment


TS = TransactionStatus

PAYMENT_TRANSITIONS = {
    TS.NOT_INITIATED.value: {TS.PENDING.value, TS.COMPLETED.value, TS.FAILED.value, TS.CANCELLED.value},
    TS.PENDING.value: {TS.COMPLETED.value, TS.FAILED.value, TS.CANCELLED.value},
    TS.FAILED.value: {TS.PENDING.value, TS.COMPLETED.value, TS.CANCELLED.value},
    TS.COMPLETED.value: {TS.REFUND_REQUESTED.value, TS.REFUNDED.value},
    TS.REFUND_REQUESTED.value: {TS.REFUNDED.value},
    TS.REFUNDED.value: set(),
    TS.CANCELLED.value: set(),
}

# pagamento ainda em aberto: cancelar o booking cancela o pagamento
OPEN_PAYMENT_STATUSES = {TS.NOT_INITIATED.value, TS.PENDING.value, TS.FAILED.value}


def generate_transaction_reference() -> str:
    alphabet = string.ascii_letters + string.digits
    return "T-" + "".join(secrets.choice(alphabet) for _ in range(5))


def get_payment_for_booking(session: Session, booking_id: int) -> Optional[Payment]:
    return session.exec(select(Payment).where(Payment.booking_id == booking_id)).first()


def find_conflict(session: Session, start: datetime, end: datetime) -> Optional[Booking]:
    return session.exec(
        select(Booking).where(
            Booking.status != BookingStatus.CANCELLED.value,
            Booking.event_start_time < end,
            Booking.event_end_time > start,
        )
    ).first()


# =========================
# CRIAÇÃO
# =========================

def create_booking(
    session: Session,
    user: User,
    start: datetime,
    end: datetime,
    amount: float,
    currency: str = "PKR",
    source: str = BookingSource.ADMIN.value,
    location_type: str = LocationType.ONLINE.value,
    in_person_location: Optional[str] = None,
    event_name: str = "Session",
    commit: bool = True,
    check_conflict: bool = True,
    **extra,
) -> Booking:
    """Cria um booking Active com o pagamento 'Not Initiated' vinculado.

    Com `check_conflict=False` o horário é gravado mesmo sobrepondo outro
    booking (a agenda externa já confirmou o horário); a sobreposição só é logada.
    """
    start = to_naive_utc(start)
    end = to_naive_utc(end)

    if end <= start:
        raise BookingStateError("event_end_time must be after event_start_time")

    existing = find_conflict(session, start, end)
    if existing and check_conflict:
        raise BookingConflict("There is a conflicting booking. Please cancel that booking first.", existing)
    if existing:
        logger.warning(
            "Booking for user %s overlaps booking %s (%s - %s), creating anyway",
            user.id,
            existing.id,
            start,
            end,
        )

    booking = Booking(
        user_id=user.id,
        event_start_time=start,
        event_end_time=end,
        event_name=event_name,
        source=source,
        status=BookingStatus.ACTIVE.value,
        location_type=location_type,
        in_person_location=in_person_location if location_type == LocationType.IN_PERSON.value else None,
        **extra,
    )
    session.add(booking)
    session.flush()

    payment = Payment(
        booking_id=booking.id,
        user_id=user.id,
        amount=amount,
        currency=currency,
        transaction_reference_number=generate_transaction_reference(),
        transaction_status=TS.NOT_INITIATED.value,
    )
    session.add(payment)

    if commit:
        session.commit()
        session.refresh(booking)

    logger.info("Booking %s created for user %s (%s)", booking.id, user.id, source)
    return booking


# =========================
# PAGAMENTO
# =========================

def transition_payment(
    session: Session,
    payment: Payment,
    new_status: str,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Payment:
    try:
        new_status = TransactionStatus(new_status).value
    except ValueError:
        raise PaymentStateError(f"Unknown transaction status '{new_status}'")
    current = payment.transaction_status

    if new_status == current:
        return payment

    if new_status not in PAYMENT_TRANSITIONS.get(current, set()):
        raise PaymentStateError(f"Cannot change payment from '{current}' to '{new_status}'")

    now = to_naive_utc(now) if now is not None else utc_now()
    payment.transaction_status = new_status

    if new_status == TS.COMPLETED.value:
        payment.payment_completed_date = now
    elif new_status == TS.REFUND_REQUESTED.value:
        payment.refund_requested_date = now
    elif new_status == TS.REFUNDED.value:
        payment.payment_refunded_date = now

    session.add(payment)
    if commit:
        session.commit()
        session.refresh(payment)

    logger.info("Payment %s: %s -> %s", payment.id, current, new_status)
    return payment


# =========================
# CANCELAMENTO
# =========================

def cancel_booking(
    session: Session,
    booking: Booking,
    reason: str,
    cancelled_by: str,
    notice_period_days: int,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> CancellationResult:
    """Cancela um booking Active.

    Pagamento concluído + dentro do prazo -> 'Refund Requested'.
    Pagamento concluído + fora do prazo -> inalterado.
    Pagamento em aberto -> 'Cancelled'.
    """
    if booking.status != BookingStatus.ACTIVE.value:
        raise BookingStateError(f"Booking is already {booking.status.lower()}")

    now = to_naive_utc(now) if now is not None else utc_now()
    payment = get_payment_for_booking(session, booking.id)

    assessment = assess_cancellation(
        booking.event_start_time,
        payment.transaction_status if payment else None,
        notice_period_days,
        now,
    )

    booking.status = BookingStatus.CANCELLED.value
    booking.cancellation_reason = reason
    booking.cancellation_date = now
    booking.cancelled_by = cancelled_by
    session.add(booking)

    if payment is not None:
        if assessment.is_refund_eligible:
            transition_payment(session, payment, TS.REFUND_REQUESTED.value, now, commit=False)
        elif payment.transaction_status in OPEN_PAYMENT_STATUSES:
            transition_payment(session, payment, TS.CANCELLED.value, now, commit=False)
        elif payment.transaction_status == TS.COMPLETED.value:
            logger.info(
                "Late cancellation of booking %s: payment %s stays Completed",
                booking.id,
                payment.id,
            )

    if commit:
        session.commit()
        session.refresh(booking)
        if payment is not None:
            session.refresh(payment)

    logger.info(
        "Booking %s cancelled by %s (%s, %s)",
        booking.id,
        cancelled_by,
        "late" if assessment.is_late else "in time",
        "unpaid" if assessment.is_unpaid else "paid",
    )
    return CancellationResult(booking, payment, assessment)


def request_refund(
    session: Session,
    booking: Booking,
    payment: Payment,
    notice_period_days: int,
    now: Optional[datetime] = None,
) -> Payment:
    if payment.booking_id != booking.id:
        raise RefundNotAllowed("Payment does not belong to this booking")

    if payment.transaction_status != TS.COMPLETED.value:
        raise RefundNotAllowed("Refunds can only be processed for completed payments")

    now = to_naive_utc(now) if now is not None else utc_now()
    assessment = assess_cancellation(
        booking.event_start_time, payment.transaction_status, notice_period_days, now
    )
    if not assessment.is_refund_eligible:
        raise RefundNotAllowed(
            f"Refunds can only be processed if cancellation is made more than "
            f"{notice_period_days} days before the booking start time"
        )

    return transition_payment(session, payment, TS.REFUND_REQUESTED.value, now)


# =========================
# CONCLUSÃO
# =========================

def complete_booking(session: Session, booking: Booking) -> Booking:
    if booking.status != BookingStatus.ACTIVE.value:
        raise BookingStateError(f"Cannot complete a booking that is {booking.status.lower()}")

    booking.status = BookingStatus.COMPLETED.value
    session.add(booking)
    session.commit()
    session.refresh(booking)
    logger.info("Booking %s completed", booking.id)
    return booking


def complete_expired_bookings(session: Session, now: Optional[datetime] = None) -> int:
    """Marca como Completed todo booking Active cuja sessão já terminou."""
    now = to_naive_utc(now) if now is not None else utc_now()

    expired: List[Booking] = session.exec(
        select(Booking).where(
            Booking.status == BookingStatus.ACTIVE.value,
            Booking.event_end_time < now,
        )
    ).all()

    for booking in expired:
        booking.status = BookingStatus.COMPLETED.value
        session.add(booking)

    if expired:
        session.commit()
        logger.info("Updated %d bookings to Completed", len(expired))
    return len(expired)
