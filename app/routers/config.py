from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from app.core.security import get_current_user
from app.database import get_session
from app.models.user import User
from app.services import config_service


router = APIRouter(prefix="/config", tags=["config"])


@router.get("/sessionPrice")
def get_session_price(session: Session = Depends(get_session)):
    price = config_service.get_value(session, config_service.SESSION_PRICE_KEY)
    if price is None:
        raise HTTPException(status_code=503, detail="Session price not configured")
    return {"sessionPrice": price}


@router.get("/noticePeriod")
def get_notice_period(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return {"noticePeriod": config_service.get_notice_period(session)}
