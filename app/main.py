import logging

from fastapi import FastAPI
from sqlmodel import Session

from app.config import LOG_LEVEL
from app.database import create_db_and_tables, engine
from app.routers import admin, auth, bookings, config, payments, users
from app.services import config_service

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Therapy Booking API")
app.include_router(users.router)
app.include_router(auth.router)
app.include_router(bookings.router)
app.include_router(payments.router)
app.include_router(config.router)
app.include_router(admin.router)


@app.on_event("startup")
def on_startup():
    create_db_and_tables()
    with Session(engine) as session:
        config_service.initialize_config(session)

@app.get("/")
def root():
    return {"message": "Therapy booking API running"}
