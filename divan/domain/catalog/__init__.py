"""Catalog domain - session packages offered by the professional"""

from .router import public_router, router

__all__ = ["router", "public_router"]
