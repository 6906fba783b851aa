from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from app.database import get_session
from app.models.user import User, UserCreate
from app.core.security import ROLE_USER, get_current_user, get_password_hash
from app.core.time_utils import format_time_12hour, get_day_name, get_interval_display
from app.services import recurring

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", status_code=201)
def create_user(user: UserCreate, session: Session = Depends(get_session)):

    existing_user = session.exec(
        select(User).where(User.email == user.email)
    ).first()

    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    hashed_password = get_password_hash(user.password)

    # admin só via seed, nunca pelo cadastro público
    db_user = User(
        name=user.name,
        email=user.email,
        password_hash=hashed_password,
        role=ROLE_USER,
        account_type=user.account_type,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)

    return {
    "id": db_user.id,
    "name": db_user.name,
    "email": db_user.email
}


@router.get("/me")
def get_my_data(current_user: User = Depends(get_current_user)):
    return {
        "id": current_user.id,
        "name": current_user.name,
        "email": current_user.email,
        "role": current_user.role,
        "account_type": current_user.account_type,
    }


@router.get("/me/recurring")
def get_my_recurring_booking(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    schedule = recurring.get_schedule(session, current_user.id)
    if not schedule:
        return {"state": False}

    return {
        "state": True,
        "interval": schedule.interval,
        "interval_display": get_interval_display(schedule.interval),
        "day": schedule.day_of_week,
        "day_name": get_day_name(schedule.day_of_week),
        "time": schedule.time_of_day,
        "time_display": format_time_12hour(schedule.time_of_day),
        "location_type": schedule.location_type,
        "in_person_location": schedule.in_person_location,
    }
