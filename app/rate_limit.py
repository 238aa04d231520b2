"""
Rate limiting configuration using slowapi.

  • booking – 10/min (booking creation – each attempt takes a write transaction)
  • everything else falls under the limiter's default of 60/min

The limiter keys on client IP by default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["60/minute"])

# Named rate strings for use in @limiter.limit() decorators
BOOKING = "10/minute"    # booking creation
