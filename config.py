# Configuration settings for the Hospital Scope API
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# JWT Configuration
SECRET_KEY = os.getenv("JWT_SECRET", "hospital-secret-key")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Database Configuration
DATABASE_PATH = os.getenv("DATABASE_PATH", "hospital.db")

# Seeded super admin account
SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "superadmin@moh.gov")
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD", "ChangeMeNow_2025!")

# Regions a patient, facility or region admin may belong to
VALID_REGIONS = [
    "addis ababa",
    "oromia",
    "amhara",
    "tigray",
    "snnp",
    "somali",
    "benishangul-gumuz",
    "gambela",
    "harari",
    "afar",
    "dire dawa",
]

# API Configuration
API_TITLE = "Hospital Scope API"
API_VERSION = "1.0.0"
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class Settings:
    """Everything the application needs, handed to ``create_app`` explicitly."""

    secret_key: str = SECRET_KEY
    algorithm: str = ALGORITHM
    access_token_expire_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES
    refresh_token_expire_days: int = REFRESH_TOKEN_EXPIRE_DAYS
    database_path: str = DATABASE_PATH
    superadmin_email: str = SUPERADMIN_EMAIL
    superadmin_password: str = SUPERADMIN_PASSWORD


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        secret_key=os.getenv("JWT_SECRET", SECRET_KEY),
        algorithm=os.getenv("JWT_ALGORITHM", ALGORITHM),
        access_token_expire_minutes=int(
            os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(ACCESS_TOKEN_EXPIRE_MINUTES))
        ),
        refresh_token_expire_days=int(
            os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", str(REFRESH_TOKEN_EXPIRE_DAYS))
        ),
        database_path=os.getenv("DATABASE_PATH", DATABASE_PATH),
        superadmin_email=os.getenv("SUPERADMIN_EMAIL", SUPERADMIN_EMAIL),
        superadmin_password=os.getenv("SUPERADMIN_PASSWORD", SUPERADMIN_PASSWORD),
    )
