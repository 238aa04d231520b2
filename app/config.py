"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).

Organization-level booking policy (schedule, tiers, prime-time band) is
not configured here: it lives in per-organization configuration records
loaded by ``app.services.org_config``.  The values below only provide the
defaults that loader falls back to when a record omits a policy field.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "court_reservations.db"))

# ── JWT ───────────────────────────────────────────────────────────────────

JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-secret-change-me-in-production")
JWT_ALGORITHM: str = "HS256"

# ── Reservations ──────────────────────────────────────────────────────────

# How many times a booking is re-admitted after losing the per-day
# version swap before it is rejected as a slot conflict.
RESERVE_MAX_RETRIES: int = int(os.getenv("RESERVE_MAX_RETRIES", "3"))

# ── Booking policy defaults ───────────────────────────────────────────────

DEFAULT_SLOT_GRANULARITY_MINUTES: int = int(
    os.getenv("DEFAULT_SLOT_GRANULARITY_MINUTES", "60")
)

# Prime time is an hour band, both ends inclusive (17 → 17:00–21:59).
DEFAULT_PRIME_TIME_START_HOUR: int = int(os.getenv("DEFAULT_PRIME_TIME_START_HOUR", "17"))
DEFAULT_PRIME_TIME_END_HOUR: int = int(os.getenv("DEFAULT_PRIME_TIME_END_HOUR", "21"))

# Fixed late-cancellation fee in cents ($10).
LATE_CANCELLATION_FEE_CENTS: int = int(os.getenv("LATE_CANCELLATION_FEE_CENTS", "1000"))

DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
