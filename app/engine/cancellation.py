"""
Cancellation policy evaluation.

Members can always cancel.  What changes with notice is the money: inside
the tier's cancellation window the booking is no longer refundable and,
unless the tier grants free cancellation, the late fee applies.
"""

from __future__ import annotations

from datetime import datetime

from app.config import LATE_CANCELLATION_FEE_CENTS
from app.models import CancellationDecision, TierPrivileges


def hours_until(start: datetime, now: datetime) -> float:
    return (start - now).total_seconds() / 3600


def evaluate_cancellation(
    booking_start: datetime,
    now: datetime,
    privileges: TierPrivileges,
    late_fee: int = LATE_CANCELLATION_FEE_CENTS,
) -> CancellationDecision:
    """Decide the refund and fee for canceling a booking that starts at *booking_start*.

    Pure: the same inputs always give the same decision.  The caller
    performs the actual ``confirmed → canceled`` transition.
    """
    window = privileges.cancellation_window_hours
    if hours_until(booking_start, now) < window:
        fee = 0 if privileges.allow_free_cancellation else late_fee
        return CancellationDecision(
            allowed=True,
            refund_eligible=False,
            fee=fee,
            message=(
                f"Cancellations require {window:g}h notice. "
                + ("Late cancellation fee applies." if fee else "No fee applies.")
            ),
        )

    return CancellationDecision(allowed=True, refund_eligible=True, fee=0)
