"""Sessions domain - video/chat rooms and clinical notes"""

from .router import router

__all__ = ["router"]
