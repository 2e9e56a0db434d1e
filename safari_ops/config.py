import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(exist_ok=True)

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{DATA_DIR / 'safari_ops.db'}"
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# JWT / Auth
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production-use-a-random-64-char-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "480"))  # 8 hours

# Default admin account (created on first startup)
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@safari-ops.local")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

# Attendance rules: arrivals at or after this local hour are late
LATE_THRESHOLD_HOUR = int(os.getenv("LATE_THRESHOLD_HOUR", "9"))
STANDARD_WORKDAY_HOURS = float(os.getenv("STANDARD_WORKDAY_HOURS", "8"))
