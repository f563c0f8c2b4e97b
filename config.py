import os
from datetime import timedelta
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# 1. Load environment variables from .env file
load_dotenv()

# 2. Get the URL. If it's not found, raise an error to fail fast.
DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError("DATABASE_URL is not set. Please check your .env file.")

SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("1", "true", "yes")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Only addresses under this domain may book or check in
ORG_EMAIL_DOMAIN = os.environ.get("ORG_EMAIL_DOMAIN", "alumni.esade.edu").lstrip("@")

# Every stored instant is wall-clock time in this zone
TIMEZONE = ZoneInfo(os.environ.get("BOOKING_TIMEZONE", "Europe/Madrid"))

# 3. Booking policy
OPEN_HOUR = 8
CLOSE_HOUR = 22  # last slot is 21:00-22:00
MAX_DURATION_HOURS = 3
BOOKING_HORIZON_DAYS = 30

CHECK_IN_OPENS_BEFORE = timedelta(minutes=5)
CHECK_IN_CLOSES_AFTER = timedelta(minutes=15)
