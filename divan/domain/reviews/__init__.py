"""Reviews domain - client ratings of completed sessions"""

from .router import public_router, router

__all__ = ["router", "public_router"]
