import logging

from sqlmodel import Session, SQLModel, create_engine

from app.config import DATABASE_URL

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)


def create_db_and_tables():
    # registers every table on SQLModel.metadata
    from app.models import booking, config_entry, payment, recurring, user  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ready")


def get_session():
    with Session(engine) as session:
        yield session
