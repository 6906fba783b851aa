import os
from pathlib import Path

from dotenv import load_dotenv

# carrega .env da raiz do projeto
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking.db")

# JWT
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

# fuso horário em que a clínica agenda as sessões
PRACTICE_TIMEZONE = os.getenv("PRACTICE_TIMEZONE", "Asia/Karachi")

# usado só quando a config noticePeriod não existe ou é inválida
DEFAULT_NOTICE_PERIOD_DAYS = int(os.getenv("DEFAULT_NOTICE_PERIOD_DAYS", "2"))
MAX_NOTICE_PERIOD_DAYS = int(os.getenv("MAX_NOTICE_PERIOD_DAYS", "365"))

SESSION_LENGTH_MINUTES = int(os.getenv("SESSION_LENGTH_MINUTES", "50"))
RECURRING_BUFFER_MONTHS = int(os.getenv("RECURRING_BUFFER_MONTHS", "2"))
RECURRING_REFRESH_THRESHOLD_WEEKS = int(os.getenv("RECURRING_REFRESH_THRESHOLD_WEEKS", "6"))

CALENDLY_SESSION_URL = os.getenv("CALENDLY_SESSION_URL", "https://calendly.com/practice/session")
CALENDLY_CONSULTATION_EVENT = os.getenv("CALENDLY_CONSULTATION_EVENT", "15 Minute Consultation")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
