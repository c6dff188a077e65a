"""Payments domain - orders, PIX/card settlement and session credits"""

from .router import router

__all__ = ["router"]
