"""Notifications domain - the in-app inbox"""

from .router import router

__all__ = ["router"]
