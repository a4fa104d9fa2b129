from enum import Enum
from typing import Dict, List, Optional

from app.models.admin import Role

# --- 1. Define the Actions (Privileges) ---
class Action(str, Enum):
    VIEW_DASHBOARD = "view_dashboard"
    MANAGE_EVENTS = "manage_events"
    MANAGE_BOOKINGS = "manage_bookings"
    INVITE_ADMIN = "invite_admin"
    REMOVE_ADMIN = "remove_admin"
    REVIEW_REQUESTS = "review_requests"
    MANAGE_ADMINS = "manage_admins"
    GRANT_SUPER_ADMIN = "grant_super_admin"
    VIEW_AUDIT_LOG = "view_audit_log"

# --- 2. The "Constitution" (Role -> Allowed Actions) ---
RBAC_POLICY: Dict[Role, List[Action]] = {

    # Super Admin: Can do absolutely everything
    Role.SUPER_ADMIN: list(Action),

    # Admin: Runs day-to-day operations, cannot review requests or promote
    Role.ADMIN: [
        Action.VIEW_DASHBOARD,
        Action.MANAGE_EVENTS,
        Action.MANAGE_BOOKINGS,
        Action.INVITE_ADMIN,
        Action.REMOVE_ADMIN,
    ],
}


def effective_role(is_admin: bool, is_super_admin: bool) -> Optional[Role]:
    if is_super_admin:
        return Role.SUPER_ADMIN
    if is_admin:
        return Role.ADMIN
    return None


def check_permission(role: Optional[str], action: Action) -> bool:
    """Helper function to check if a role is allowed to perform an action."""
    # Unknown or missing roles get nothing
    allowed_actions = RBAC_POLICY.get(role, [])
    return action in allowed_actions
