"""Firestore collection paths.

Grant and request collections live at the root. Events and bookings are
scoped under the application namespace so several site instances can share
one project.
"""

ADMINS = "admins"
ADMINS_BY_EMAIL = "admins_by_email"
ADMIN_REQUESTS = "admin_requests"
AUDIT_LOGS = "audit_logs"


def events_path(app_id: str) -> str:
    return f"artifacts/{app_id}/public/data/events"


def bookings_path(app_id: str) -> str:
    return f"artifacts/{app_id}/public/data/bookings"


def email_key(email: str) -> str:
    """Document id used in admins_by_email."""
    return email.strip().lower()
