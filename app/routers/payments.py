from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from app.database import get_session
from app.models.booking import Booking
from app.models.payment import Payment, PaymentStatusUpdate, RefundRequest
from app.models.user import User
from app.core.security import get_current_admin, get_current_user
from app.core.status_display import get_status_display
from app.core.time_utils import format_amount
from app.services import config_service, lifecycle


router = APIRouter(prefix="/payments", tags=["payments"])


def payment_view(payment: Payment):
    data = payment.model_dump()
    data["status_display"] = get_status_display(payment.transaction_status)._asdict()
    data["amount_display"] = f"{payment.currency} {format_amount(payment.amount)}"
    return data


# =========================
# MEUS PAGAMENTOS
# =========================
@router.get("/")
def get_my_payments(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    payments = session.exec(
        select(Payment)
        .where(Payment.user_id == current_user.id)
        .order_by(Payment.created_at.desc())
    ).all()
    return [payment_view(p) for p in payments]


# =========================
# PEDIDO DE REEMBOLSO
# =========================
@router.post("/refund")
def refund_request(
    payload: RefundRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    payment = session.get(Payment, payload.payment_id)
    booking = session.get(Booking, payload.booking_id)

    if not payment or not booking:
        raise HTTPException(status_code=404, detail="Booking or payment not found")

    if booking.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not allowed")

    try:
        payment = lifecycle.request_refund(
            session,
            booking,
            payment,
            config_service.get_notice_period(session),
        )
    except lifecycle.RefundNotAllowed as e:
        raise HTTPException(status_code=400, detail=str(e))

    return payment_view(payment)


# =========================
# ALTERAR STATUS (ADMIN)
# =========================
@router.patch("/{payment_id}/status")
def update_payment_status(
    payment_id: int,
    payload: PaymentStatusUpdate,
    session: Session = Depends(get_session),
    current_admin: User = Depends(get_current_admin),
):
    payment = session.get(Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    try:
        payment = lifecycle.transition_payment(session, payment, payload.transaction_status.value)
    except lifecycle.PaymentStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return payment_view(payment)
