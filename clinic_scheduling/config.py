import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

# Appointment timestamps are stored as naive local times in this zone
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

# Working hours used when a doctor profile leaves them blank
DEFAULT_AVAILABLE_FROM = os.getenv("DEFAULT_AVAILABLE_FROM", "09:00")
DEFAULT_AVAILABLE_TO = os.getenv("DEFAULT_AVAILABLE_TO", "17:00")

# Lunch break window, never bookable. Set both to "" to disable.
LUNCH_BREAK_START = os.getenv("LUNCH_BREAK_START", "12:00")
LUNCH_BREAK_END = os.getenv("LUNCH_BREAK_END", "13:00")

# Billing
INVOICE_TAX_RATE = float(os.getenv("INVOICE_TAX_RATE", "0.10"))
INVOICE_CURRENCY = os.getenv("INVOICE_CURRENCY", "USD")

# What happens to a PENDING invoice when its appointment is cancelled / no-show:
# retain, void_on_cancel, void_on_cancel_or_no_show
INVOICE_CANCELLATION_POLICY = os.getenv("INVOICE_CANCELLATION_POLICY", "void_on_cancel")

# Transient storage failures are retried this many times before giving up
BOOKING_MAX_RETRIES = int(os.getenv("BOOKING_MAX_RETRIES", "1"))

# Rate limiting for the booking endpoint
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "30"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))

# Frontend origins allowed by CORS (comma separated)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
