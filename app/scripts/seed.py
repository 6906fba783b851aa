import logging
import secrets

from sqlmodel import Session, select

from app.config import ADMIN_EMAIL, ADMIN_PASSWORD
from app.core.security import ROLE_ADMIN, get_password_hash
from app.database import create_db_and_tables, engine
from app.models.user import User
from app.services import config_service

logger = logging.getLogger(__name__)


def main():
    create_db_and_tables()

    with Session(engine) as session:
        # 1) admin
        admin = session.exec(select(User).where(User.email == ADMIN_EMAIL)).first()
        if admin:
            if admin.role != ROLE_ADMIN:
                raise RuntimeError(f"User {ADMIN_EMAIL} exists but role != 'admin'")
            logger.info("Admin %s already exists", ADMIN_EMAIL)
        else:
            password = ADMIN_PASSWORD or secrets.token_urlsafe(12)
            session.add(
                User(
                    name="Admin",
                    email=ADMIN_EMAIL,
                    role=ROLE_ADMIN,
                    password_hash=get_password_hash(password),
                )
            )
            session.commit()
            logger.info("Admin %s created", ADMIN_EMAIL)
            if not ADMIN_PASSWORD:
                print(f"Generated admin password: {password}")

        # 2) configurações padrão (não sobrescreve as existentes)
        created = config_service.initialize_config(session)
        logger.info("%d config keys created", created)

    print("Seed done")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
