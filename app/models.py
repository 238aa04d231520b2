"""Pydantic models for the court reservation service."""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.config import (
    DEFAULT_PRIME_TIME_END_HOUR,
    DEFAULT_PRIME_TIME_START_HOUR,
    DEFAULT_SLOT_GRANULARITY_MINUTES,
    DEFAULT_TIMEZONE,
    LATE_CANCELLATION_FEE_CENTS,
)
from app.engine.errors import ErrorKind


# ── Calendar ──────────────────────────────────────────────────────────────


class Weekday(str, Enum):
    """Day of week; declaration order matches ``date.weekday()``."""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


class DayHours(BaseModel):
    """Open/close window for one weekday (or one resolved date)."""
    model_config = ConfigDict(frozen=True)

    open: Optional[time] = Field(None, description="Opening time")
    close: Optional[time] = Field(None, description="Closing time")
    closed: bool = Field(default=False, description="Whether the day is closed")

    @model_validator(mode="after")
    def _check_window(self) -> "DayHours":
        if self.closed:
            return self
        if self.open is None or self.close is None:
            raise ValueError("open and close are required unless the day is closed")
        if self.open >= self.close:
            raise ValueError(f"open ({self.open}) must be before close ({self.close})")
        return self


class WeeklySchedule(BaseModel):
    """Organization operating hours. Every weekday must be present."""
    model_config = ConfigDict(frozen=True)

    monday: DayHours
    tuesday: DayHours
    wednesday: DayHours
    thursday: DayHours
    friday: DayHours
    saturday: DayHours
    sunday: DayHours

    def for_weekday(self, weekday: Weekday) -> DayHours:
        return getattr(self, weekday.value)


# ── Resources ─────────────────────────────────────────────────────────────


class Resource(BaseModel):
    """A bookable court."""
    id: str = Field(..., description="Unique resource identifier")
    org_id: str = Field(..., description="Owning organization")
    label: str = Field(..., description="Display label, e.g. 'Court 1'")
    surface: str = Field(default="hard", description="Court surface type")
    indoor: bool = Field(default=False, description="Whether the court is indoor")
    active: bool = Field(default=True, description="Whether the court can be booked")
    hours_overrides: Dict[Weekday, DayHours] = Field(
        default_factory=dict,
        description="Per-weekday hours that replace the organization schedule",
    )


# ── Membership & tier policy ──────────────────────────────────────────────


class TierPrivileges(BaseModel):
    """
    The policy bundle a membership tier grants.

    Every field is required: a record with a missing field fails
    validation instead of being completed from defaults.  Durations are
    in hours, money in cents.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    max_days_in_advance: int = Field(..., ge=0)
    max_bookings_per_day: int = Field(..., ge=0)
    min_booking_duration: float = Field(..., gt=0)
    max_booking_duration: float = Field(..., gt=0)
    price_per_hour: int = Field(..., ge=0)
    allow_prime_time_booking: bool
    allow_weekend_booking: bool
    priority_booking: bool
    cancellation_window_hours: float = Field(..., ge=0)
    allow_free_cancellation: bool
    allow_guests: bool
    max_guests_per_booking: int = Field(..., ge=0)
    discount_percentage: int = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def _check_duration_bounds(self) -> "TierPrivileges":
        if self.min_booking_duration > self.max_booking_duration:
            raise ValueError(
                f"min_booking_duration ({self.min_booking_duration}h) exceeds "
                f"max_booking_duration ({self.max_booking_duration}h)"
            )
        return self


class BookingPolicy(BaseModel):
    """Organization-wide constants used by the policy engine."""
    model_config = ConfigDict(frozen=True)

    slot_granularity_minutes: int = Field(
        default=DEFAULT_SLOT_GRANULARITY_MINUTES, gt=0, le=1440,
    )
    prime_time_start_hour: int = Field(default=DEFAULT_PRIME_TIME_START_HOUR, ge=0, le=23)
    prime_time_end_hour: int = Field(default=DEFAULT_PRIME_TIME_END_HOUR, ge=0, le=23)
    weekend_days: frozenset[Weekday] = Field(
        default=frozenset({Weekday.SATURDAY, Weekday.SUNDAY}),
    )
    late_cancellation_fee: int = Field(default=LATE_CANCELLATION_FEE_CENTS, ge=0)
    timezone: str = Field(default=DEFAULT_TIMEZONE)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone {value!r}") from None
        return value

    @model_validator(mode="after")
    def _check_prime_band(self) -> "BookingPolicy":
        if self.prime_time_start_hour > self.prime_time_end_hour:
            raise ValueError("prime_time_start_hour must not be after prime_time_end_hour")
        return self

    def is_prime_time(self, start: time) -> bool:
        return self.prime_time_start_hour <= start.hour <= self.prime_time_end_hour

    def is_weekend(self, day: date) -> bool:
        return Weekday.of(day) in self.weekend_days


class OrganizationConfig(BaseModel):
    """Everything the engine needs to know about one organization."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    currency: str = "USD"
    schedule: WeeklySchedule
    policy: BookingPolicy = Field(default_factory=BookingPolicy)
    tiers: Dict[str, TierPrivileges] = Field(default_factory=dict)


class Membership(BaseModel):
    """A member's tier within one organization (normalized shape)."""
    user_id: str
    org_id: str
    tier: str
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class Member(BaseModel):
    """A person who can hold memberships."""
    id: str
    email: Optional[str] = None
    organization_ids: frozenset[str] = Field(default_factory=frozenset)


# ── Bookings ──────────────────────────────────────────────────────────────


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELED = "canceled"


class Interval(BaseModel):
    """A half-open time interval ``[start, end)`` on one calendar day."""
    model_config = ConfigDict(frozen=True)

    start: time
    end: time


class BookingInterval(BaseModel):
    """A reservation of one resource on one date."""
    id: str = Field(..., description="Unique booking identifier")
    org_id: str
    resource_id: str
    booking_date: date
    start_time: time
    end_time: time
    owner_id: str
    status: BookingStatus = BookingStatus.CONFIRMED
    price: int = Field(default=0, ge=0, description="Amount charged, in cents")
    currency: str = "USD"
    guest_count: int = Field(default=0, ge=0)
    refund_eligible: Optional[bool] = Field(None, description="Set when canceled")
    cancellation_fee: Optional[int] = Field(None, description="Set when canceled, in cents")
    created_at: datetime
    canceled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_order(self) -> "BookingInterval":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start_time, end=self.end_time)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)


class BookingRequest(BaseModel):
    """One admission attempt. Built per request and discarded afterwards."""
    model_config = ConfigDict(frozen=True)

    resource_id: str
    booking_date: date
    start_time: time
    duration_minutes: int
    guest_count: int = 0
    requester_id: str
    tier: str
    privileges: TierPrivileges


class ValidationResult(BaseModel):
    """Outcome of an admission decision."""
    valid: bool
    reason: Optional[ErrorKind] = None
    message: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def accept(cls, warnings: Optional[List[str]] = None) -> "ValidationResult":
        return cls(valid=True, warnings=list(warnings or []))

    @classmethod
    def reject(cls, reason: ErrorKind, message: str) -> "ValidationResult":
        return cls(valid=False, reason=reason, message=message)


class PriceQuote(BaseModel):
    """Charge for a booking, all amounts in cents."""
    model_config = ConfigDict(frozen=True)

    original: int
    discount_amount: int
    final: int


class CancellationDecision(BaseModel):
    """Terms under which a confirmed booking may be canceled."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    refund_eligible: bool
    fee: int = Field(default=0, description="Late-cancellation fee, in cents")
    message: Optional[str] = None


# ── API ───────────────────────────────────────────────────────────────────


class BookingCreate(BaseModel):
    """Request body for creating a booking."""
    resource_id: str = Field(..., description="Court to book")
    booking_date: date = Field(..., description="Calendar date (YYYY-MM-DD)")
    start_time: time = Field(..., description="Start time (HH:MM)")
    duration_minutes: int = Field(..., description="Length of the booking in minutes")
    guest_count: int = Field(default=0, ge=0, description="Guests joining the member")


class BookingResponse(BaseModel):
    """A newly admitted booking."""
    booking: BookingInterval
    quote: PriceQuote
    warnings: List[str] = Field(default_factory=list)


class CancellationResponse(BaseModel):
    """Cancellation outcome (or preview)."""
    booking: BookingInterval
    decision: CancellationDecision
    already_canceled: bool = False


class SlotAvailability(BaseModel):
    """One candidate slot on a resource's day grid."""
    start_time: time
    end_time: time
    status: str = Field(..., description="free, booked or restricted")
    price: Optional[int] = Field(None, description="Price for one slot, in cents")


class AvailabilityResponse(BaseModel):
    """A resource's slot grid for one date."""
    org_id: str
    resource_id: str
    booking_date: date
    closed: bool
    open: Optional[time] = None
    close: Optional[time] = None
    date_selectable: bool = Field(..., description="Whether the caller's tier can book this date")
    slots: List[SlotAvailability] = Field(default_factory=list)


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int


class BookingListResponse(BaseModel):
    items: List[BookingInterval]
    meta: PaginationMeta


class UserInfo(BaseModel):
    """The authenticated member."""
    user_id: str = Field(..., description="Member identifier (JWT subject)")
    issued_at: datetime = Field(..., description="When the session was issued")


class Error(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Health status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Current timestamp")
