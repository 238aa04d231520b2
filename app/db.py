"""
SQLite database layer using aiosqlite.

Stores organizations, courts, members, memberships and bookings.
Tables are created automatically on first connect.

Reservations follow a single-writer-per-slot contract: every
(resource, date) pair has a version row.  A caller reads a snapshot
(version + confirmed bookings), makes its admission decision, and then
calls ``atomic_reserve`` with the version it saw.  The insert only
happens if the version is unchanged, in the same transaction that bumps
it; otherwise the caller must re-read and decide again.

The member's daily quota spans every court of the organization, so each
(member, organization, date) triple carries a version of its own, read
with the booking count and swapped in the same transaction.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping
from uuid import uuid4

import aiosqlite

from app.config import DB_PATH
from app.models import (
    BookingInterval,
    BookingStatus,
    DayHours,
    Interval,
    Member,
    Membership,
    OrganizationConfig,
    Resource,
    Weekday,
)
from app.services.membership import normalize_member, normalize_membership
from app.services.org_config import config_to_record, load_organization_config, normalize_hours

logger = logging.getLogger(__name__)

# ── Module-level connection ───────────────────────────────────────────────

_db: aiosqlite.Connection | None = None

# Serializes transactions on the shared connection so that two coroutines
# never interleave statements inside one transaction.
_write_lock: asyncio.Lock | None = None


async def init_db() -> None:
    """Open the database and create tables if they don't exist."""
    global _db, _write_lock
    db_path = Path(DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(db_path))
    _db.row_factory = aiosqlite.Row  # dict-like rows
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA foreign_keys=ON")

    await _db.executescript(_SCHEMA)
    await _db.commit()
    _write_lock = asyncio.Lock()
    logger.info("Database initialized at %s", db_path)


async def close_db() -> None:
    """Close the database connection."""
    global _db, _write_lock
    if _db is not None:
        await _db.close()
        _db = None
        _write_lock = None
        logger.info("Database connection closed")


def get_db() -> aiosqlite.Connection:
    """Return the active database connection (must call init_db first)."""
    assert _db is not None, "Database not initialized — call init_db() first"
    return _db


def _lock() -> asyncio.Lock:
    assert _write_lock is not None, "Database not initialized — call init_db() first"
    return _write_lock


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS organizations (
    id              TEXT PRIMARY KEY,
    config_json     TEXT NOT NULL,  -- validated OrganizationConfig
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS resources (
    id              TEXT PRIMARY KEY,
    org_id          TEXT NOT NULL,
    label           TEXT NOT NULL,
    surface         TEXT NOT NULL,
    indoor          INTEGER NOT NULL DEFAULT 0,
    active          INTEGER NOT NULL DEFAULT 1,
    hours_json      TEXT,           -- JSON object: weekday → {open, close, closed}
    created_at      TEXT NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_resources_org ON resources(org_id);

CREATE TABLE IF NOT EXISTS members (
    id              TEXT PRIMARY KEY,
    email           TEXT,
    organization_ids TEXT NOT NULL  -- JSON array of org ids
);

CREATE TABLE IF NOT EXISTS memberships (
    user_id         TEXT NOT NULL,
    org_id          TEXT NOT NULL,
    tier            TEXT NOT NULL,
    status          TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    PRIMARY KEY (user_id, org_id)
);

CREATE TABLE IF NOT EXISTS resource_days (
    resource_id     TEXT NOT NULL,
    booking_date    TEXT NOT NULL,
    version         INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (resource_id, booking_date)
);

CREATE TABLE IF NOT EXISTS member_days (
    owner_id        TEXT NOT NULL,
    org_id          TEXT NOT NULL,
    booking_date    TEXT NOT NULL,
    version         INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (owner_id, org_id, booking_date)
);

CREATE TABLE IF NOT EXISTS bookings (
    id              TEXT PRIMARY KEY,
    org_id          TEXT NOT NULL,
    resource_id     TEXT NOT NULL,
    booking_date    TEXT NOT NULL,
    start_time      TEXT NOT NULL,  -- HH:MM
    end_time        TEXT NOT NULL,  -- HH:MM, exclusive
    owner_id        TEXT NOT NULL,
    status          TEXT NOT NULL,
    price           INTEGER NOT NULL DEFAULT 0,
    currency        TEXT NOT NULL,
    guest_count     INTEGER NOT NULL DEFAULT 0,
    refund_eligible INTEGER,
    cancellation_fee INTEGER,
    created_at      TEXT NOT NULL,
    canceled_at     TEXT
);

CREATE INDEX IF NOT EXISTS idx_bookings_day ON bookings(resource_id, booking_date, status);
CREATE INDEX IF NOT EXISTS idx_bookings_owner ON bookings(owner_id, org_id, booking_date, status);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def _bool_or_none(value: int | None) -> bool | None:
    return None if value is None else bool(value)


def _hours_to_json(hours: Mapping[Weekday, DayHours] | None) -> str | None:
    if not hours:
        return None
    return json.dumps({
        Weekday(day).value: entry.model_dump(mode="json") for day, entry in hours.items()
    })


def _row_to_resource(row: aiosqlite.Row) -> Resource:
    hours = json.loads(row["hours_json"]) if row["hours_json"] else {}
    return Resource(
        id=row["id"],
        org_id=row["org_id"],
        label=row["label"],
        surface=row["surface"],
        indoor=bool(row["indoor"]),
        active=bool(row["active"]),
        hours_overrides=hours,
    )


def _row_to_booking(row: aiosqlite.Row) -> BookingInterval:
    return BookingInterval(
        id=row["id"],
        org_id=row["org_id"],
        resource_id=row["resource_id"],
        booking_date=row["booking_date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        owner_id=row["owner_id"],
        status=row["status"],
        price=row["price"],
        currency=row["currency"],
        guest_count=row["guest_count"],
        refund_eligible=_bool_or_none(row["refund_eligible"]),
        cancellation_fee=row["cancellation_fee"],
        created_at=row["created_at"],
        canceled_at=row["canceled_at"],
    )


# ══════════════════════════════════════════════════════════════════════════
#                    ORGANIZATION REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def upsert_organization(config: OrganizationConfig) -> None:
    """Store (or replace) an organization's validated configuration."""
    db = get_db()
    async with _lock():
        await db.execute(
            """
            INSERT INTO organizations (id, config_json, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                config_json = excluded.config_json, updated_at = excluded.updated_at
            """,
            (config.id, json.dumps(config_to_record(config)), _now_iso()),
        )
        await db.commit()


async def get_organization(org_id: str) -> OrganizationConfig | None:
    """
    Fetch an organization's configuration.

    Raises ``ConfigurationError`` if the stored record no longer
    validates; callers must not evaluate bookings for it.
    """
    db = get_db()
    async with db.execute(
        "SELECT config_json FROM organizations WHERE id = ?", (org_id,)
    ) as cur:
        row = await cur.fetchone()
    if row is None:
        return None
    return load_organization_config(json.loads(row["config_json"]))


# ══════════════════════════════════════════════════════════════════════════
#                    RESOURCE REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def create_resource(
    org_id: str,
    label: str,
    *,
    resource_id: str | None = None,
    surface: str = "hard",
    indoor: bool = False,
    active: bool = True,
    hours_overrides: Mapping[str, Any] | None = None,
) -> Resource:
    """Insert a new court and return it."""
    db = get_db()
    resource = Resource(
        id=resource_id or str(uuid4()),
        org_id=org_id,
        label=label,
        surface=surface,
        indoor=indoor,
        active=active,
        hours_overrides=normalize_hours(hours_overrides, org_id),
    )
    async with _lock():
        await db.execute(
            """
            INSERT INTO resources
                (id, org_id, label, surface, indoor, active, hours_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                resource.id, resource.org_id, resource.label, resource.surface,
                int(resource.indoor), int(resource.active),
                _hours_to_json(resource.hours_overrides),
                _now_iso(),
            ),
        )
        await db.commit()
    return resource


async def get_resource(resource_id: str) -> Resource | None:
    db = get_db()
    async with db.execute(
        "SELECT * FROM resources WHERE id = ?", (resource_id,)
    ) as cur:
        row = await cur.fetchone()
    return _row_to_resource(row) if row else None


async def list_resources(org_id: str, *, active: bool | None = None) -> list[Resource]:
    """List an organization's courts, optionally only (in)active ones."""
    db = get_db()
    sql = "SELECT * FROM resources WHERE org_id = ?"
    params: list = [org_id]
    if active is not None:
        sql += " AND active = ?"
        params.append(int(active))
    sql += " ORDER BY label"

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_resource(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════════
#                    MEMBER & MEMBERSHIP REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def upsert_member(
    user_id: str,
    *,
    email: str | None = None,
    organizations: str | Iterable[str] | None = None,
) -> Member:
    """Store a member; *organizations* may be a single id or a list of ids."""
    db = get_db()
    member = normalize_member(user_id, email, organizations)
    async with _lock():
        await db.execute(
            """
            INSERT INTO members (id, email, organization_ids) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                email = excluded.email, organization_ids = excluded.organization_ids
            """,
            (member.id, member.email, json.dumps(sorted(member.organization_ids))),
        )
        await db.commit()
    return member


async def get_member(user_id: str) -> Member | None:
    db = get_db()
    async with db.execute("SELECT * FROM members WHERE id = ?", (user_id,)) as cur:
        row = await cur.fetchone()
    if row is None:
        return None
    return normalize_member(row["id"], row["email"], json.loads(row["organization_ids"]))


async def set_membership(
    user_id: str,
    org_id: str,
    raw: Mapping[str, Any] | None,
) -> Membership | None:
    """
    Store a membership document in normalized form.

    Accepts both ``{"tier": ...}`` and the legacy ``{"plan": {"tier": ...}}``
    shapes.  A document without a tier removes the membership.
    """
    db = get_db()
    membership = normalize_membership(user_id, org_id, raw)
    async with _lock():
        if membership is None:
            await db.execute(
                "DELETE FROM memberships WHERE user_id = ? AND org_id = ?",
                (user_id, org_id),
            )
        else:
            await db.execute(
                """
                INSERT INTO memberships (user_id, org_id, tier, status, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, org_id) DO UPDATE SET
                    tier = excluded.tier, status = excluded.status,
                    updated_at = excluded.updated_at
                """,
                (user_id, org_id, membership.tier, membership.status, _now_iso()),
            )
        await db.commit()
    return membership


async def get_membership(user_id: str, org_id: str) -> Membership | None:
    db = get_db()
    async with db.execute(
        "SELECT * FROM memberships WHERE user_id = ? AND org_id = ?",
        (user_id, org_id),
    ) as cur:
        row = await cur.fetchone()
    if row is None:
        return None
    return Membership(
        user_id=row["user_id"],
        org_id=row["org_id"],
        tier=row["tier"],
        status=row["status"],
    )


# ══════════════════════════════════════════════════════════════════════════
#                    BOOKING REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DaySnapshot:
    """Confirmed bookings of one resource on one date, at a given version."""
    resource_id: str
    booking_date: date
    version: int
    bookings: list[BookingInterval] = field(default_factory=list)


async def get_day_snapshot(resource_id: str, booking_date: date) -> DaySnapshot:
    """
    Read the day's version, then its confirmed bookings.

    The version is read first: a reservation committed in between makes
    the snapshot look older than it is, which only costs a retry.
    """
    db = get_db()
    async with _lock():
        async with db.execute(
            "SELECT version FROM resource_days WHERE resource_id = ? AND booking_date = ?",
            (resource_id, booking_date.isoformat()),
        ) as cur:
            row = await cur.fetchone()
        version = row["version"] if row else 0

        async with db.execute(
            """
            SELECT * FROM bookings
            WHERE resource_id = ? AND booking_date = ? AND status = ?
            ORDER BY start_time
            """,
            (resource_id, booking_date.isoformat(), BookingStatus.CONFIRMED.value),
        ) as cur:
            rows = await cur.fetchall()

    return DaySnapshot(
        resource_id=resource_id,
        booking_date=booking_date,
        version=version,
        bookings=[_row_to_booking(r) for r in rows],
    )


async def get_confirmed_bookings(resource_id: str, booking_date: date) -> list[BookingInterval]:
    """Confirmed bookings of one resource on one date, ordered by start."""
    snapshot = await get_day_snapshot(resource_id, booking_date)
    return snapshot.bookings


async def get_user_booking_count(user_id: str, org_id: str, booking_date: date) -> int:
    """How many confirmed bookings the user holds in the organization on that date."""
    db = get_db()
    async with db.execute(
        """
        SELECT COUNT(*) AS n FROM bookings
        WHERE owner_id = ? AND org_id = ? AND booking_date = ? AND status = ?
        """,
        (user_id, org_id, booking_date.isoformat(), BookingStatus.CONFIRMED.value),
    ) as cur:
        row = await cur.fetchone()
    return row["n"]


@dataclass(frozen=True)
class MemberDay:
    """A member's confirmed booking count in one organization on one date."""
    owner_id: str
    org_id: str
    booking_date: date
    version: int
    bookings: int


async def get_member_day(user_id: str, org_id: str, booking_date: date) -> MemberDay:
    """Read the member's day version, then the booking count it guards."""
    db = get_db()
    day = booking_date.isoformat()
    async with _lock():
        async with db.execute(
            "SELECT version FROM member_days WHERE owner_id = ? AND org_id = ? AND booking_date = ?",
            (user_id, org_id, day),
        ) as cur:
            row = await cur.fetchone()
        version = row["version"] if row else 0
        count = await get_user_booking_count(user_id, org_id, booking_date)

    return MemberDay(
        owner_id=user_id,
        org_id=org_id,
        booking_date=booking_date,
        version=version,
        bookings=count,
    )


async def atomic_reserve(
    *,
    org_id: str,
    resource_id: str,
    booking_date: date,
    interval: Interval,
    owner_id: str,
    expected_version: int,
    price: int,
    currency: str,
    guest_count: int = 0,
    expected_member_version: int | None = None,
) -> BookingInterval | None:
    """
    Insert a confirmed booking if the day is still at *expected_version*.

    With *expected_member_version*, the owner's day in the organization
    must also be unchanged since their booking count was read.  Both
    versions are bumped on success.

    Returns the new booking, or None when another reservation for the
    same resource and date (or by the same owner that day) was committed
    since the snapshot was read.
    """
    db = get_db()
    booking_id = str(uuid4())
    day = booking_date.isoformat()
    now = _now_iso()

    async with _lock():
        try:
            await db.execute(
                "INSERT OR IGNORE INTO resource_days (resource_id, booking_date, version) "
                "VALUES (?, ?, 0)",
                (resource_id, day),
            )
            cur = await db.execute(
                """
                UPDATE resource_days SET version = version + 1
                WHERE resource_id = ? AND booking_date = ? AND version = ?
                """,
                (resource_id, day, expected_version),
            )
            if cur.rowcount != 1:
                await db.rollback()
                logger.info(
                    "Reservation on %s/%s lost the version swap (expected %d)",
                    resource_id, day, expected_version,
                )
                return None

            await db.execute(
                "INSERT OR IGNORE INTO member_days (owner_id, org_id, booking_date, version) "
                "VALUES (?, ?, ?, 0)",
                (owner_id, org_id, day),
            )
            sql = (
                "UPDATE member_days SET version = version + 1 "
                "WHERE owner_id = ? AND org_id = ? AND booking_date = ?"
            )
            params: tuple = (owner_id, org_id, day)
            if expected_member_version is not None:
                sql += " AND version = ?"
                params += (expected_member_version,)
            cur = await db.execute(sql, params)
            if cur.rowcount != 1:
                await db.rollback()
                logger.info(
                    "Reservation by %s in %s on %s lost the member version swap (expected %d)",
                    owner_id, org_id, day, expected_member_version,
                )
                return None

            await db.execute(
                """
                INSERT INTO bookings (
                    id, org_id, resource_id, booking_date, start_time, end_time,
                    owner_id, status, price, currency, guest_count, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    booking_id, org_id, resource_id, day,
                    _hhmm(interval.start), _hhmm(interval.end),
                    owner_id, BookingStatus.CONFIRMED.value,
                    price, currency, guest_count, now,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    return await get_booking(booking_id)


async def get_booking(booking_id: str) -> BookingInterval | None:
    db = get_db()
    async with db.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_booking(row) if row else None


async def list_user_bookings(
    user_id: str,
    org_id: str,
    *,
    status: BookingStatus | None = None,
) -> list[BookingInterval]:
    """A member's bookings in an organization, soonest first."""
    db = get_db()
    sql = "SELECT * FROM bookings WHERE owner_id = ? AND org_id = ?"
    params: list = [user_id, org_id]
    if status is not None:
        sql += " AND status = ?"
        params.append(status.value)
    sql += " ORDER BY booking_date, start_time"

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def cancel_booking(
    booking_id: str,
    *,
    refund_eligible: bool,
    cancellation_fee: int,
) -> BookingInterval | None:
    """
    Move a booking from confirmed to canceled, recording its terms.

    Idempotent: canceling an already canceled booking changes nothing
    and returns it with the terms recorded the first time.  Returns None
    if the booking does not exist.
    """
    db = get_db()
    async with _lock():
        cur = await db.execute(
            """
            UPDATE bookings
            SET status = ?, refund_eligible = ?, cancellation_fee = ?, canceled_at = ?
            WHERE id = ? AND status = ?
            """,
            (
                BookingStatus.CANCELED.value, int(refund_eligible), cancellation_fee,
                _now_iso(), booking_id, BookingStatus.CONFIRMED.value,
            ),
        )
        await db.commit()

    if cur.rowcount == 0:
        logger.info("Booking %s was not confirmed; cancel is a no-op", booking_id)
    return await get_booking(booking_id)
