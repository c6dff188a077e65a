"""
Authorization policy
One place that answers "may this caller do this action on this resource?"
Used by the navigation gateway, the auth dependencies and every ownership check.
"""

import logging
from typing import Any, Optional

from .errors import Forbidden, Unauthorized
from .models import (
    Appointment,
    BlogPost,
    Notification,
    Order,
    Product,
    Profile,
    Review,
    SessionNotes,
)

logger = logging.getLogger(__name__)

PROFESSIONAL_AREA = "professional_area"
ADMIN_AREA = "admin_area"
CLIENT_AREA = "client_area"
ACCOUNT = "account"


def _is_active_professional(caller: Profile) -> bool:
    return caller.is_professional and caller.status == "active"


def authorize(caller: Optional[Profile], resource: Any, action: str = "view") -> bool:
    """Return True when caller may perform action on resource; deny on anything unknown"""
    if caller is None or caller.is_blocked_or_deleted:
        return False

    # Unverified accounts may only see their own account state
    if resource == ACCOUNT:
        return True
    if not caller.is_email_verified:
        return False

    if resource in (PROFESSIONAL_AREA, ADMIN_AREA):
        return _is_active_professional(caller)

    if resource == CLIENT_AREA:
        return caller.status == "active"

    if isinstance(resource, Appointment):
        participants = (resource.user_id, resource.professional_id)
        if action in ("view", "participate", "cancel", "reschedule"):
            return caller.id in participants
        if action in ("write_notes", "update_status"):
            return caller.id == resource.professional_id and _is_active_professional(caller)
        if action == "review":
            return caller.id == resource.user_id
        return False

    if isinstance(resource, SessionNotes):
        return caller.id == resource.professional_id and _is_active_professional(caller)

    if isinstance(resource, Order):
        if action == "view":
            return caller.id in (resource.user_id, resource.professional_id)
        if action == "validate":
            return caller.id == resource.professional_id and _is_active_professional(caller)
        if action == "cancel":
            return caller.id == resource.user_id
        return False

    if isinstance(resource, Notification):
        return caller.id == resource.user_id

    if isinstance(resource, Product):
        if action == "view":
            return True
        return caller.id == resource.professional_id and _is_active_professional(caller)

    if isinstance(resource, BlogPost):
        return caller.id == resource.author_id and _is_active_professional(caller)

    if isinstance(resource, Review):
        return caller.id == resource.professional_id and _is_active_professional(caller)

    logger.warning(f"⚠️ No policy for resource {type(resource).__name__}/{action}, denying")
    return False


def enforce(caller: Optional[Profile], resource: Any, action: str = "view") -> None:
    """Raise Unauthorized/Forbidden unless authorize() allows the action"""
    if caller is None:
        raise Unauthorized()
    if not authorize(caller, resource, action):
        raise Forbidden()
