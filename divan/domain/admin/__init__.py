"""Admin domain - professional management of client profiles"""

from .router import router

__all__ = ["router"]
