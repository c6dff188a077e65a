"""Scheduling domain - availability, slots and credit-backed bookings"""

from .router import router

__all__ = ["router"]
