# examtrack/settings.py
from pathlib import Path
import os
from dotenv import load_dotenv

load_dotenv()

def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}

def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    val = os.getenv(name)
    if not val:
        return default or []
    return [v.strip() for v in val.split(",") if v.strip()]

def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default

BASE_DIR = Path(__file__).resolve().parent.parent  # .../examtrack project root
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")  # override via ENV/.env
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60)

DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'examtrack.db'}")
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads")))
MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)

# Security & networking
CORS_ORIGINS = _env_list("CORS_ORIGINS", default=["*"])  # e.g. "http://localhost:3000,https://example.com"
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", default=["*"])
ENABLE_HTTPS_REDIRECT = _env_bool("ENABLE_HTTPS_REDIRECT", False)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Tracking policy
HISTORY_WINDOW_MINUTES = _env_int("HISTORY_WINDOW_MINUTES", 15)  # tail of the task window kept in history
DEFAULT_GEOFENCE_RADIUS = _env_int("DEFAULT_GEOFENCE_RADIUS", 100)  # meters
DEFAULT_EXPECTED_TRAVEL_MINUTES = _env_int("DEFAULT_EXPECTED_TRAVEL_MINUTES", 30)
LOCATION_MIN_INTERVAL_SECONDS = _env_int("LOCATION_MIN_INTERVAL_SECONDS", 0)  # 0 disables the socket rate limit

# Bootstrap account created on startup when missing
SUPERADMIN_PHONE = os.getenv("SUPERADMIN_PHONE", "9000000000")
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD", "Admin123!")
SUPERADMIN_NAME = os.getenv("SUPERADMIN_NAME", "Super Admin")
