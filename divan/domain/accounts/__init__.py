"""Accounts domain - registration, login and email verification"""

from .router import router

__all__ = ["router"]
