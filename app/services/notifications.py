import logging
from typing import List

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.core.config import Settings
from app.core.errors import NotificationError
from app.db.collections import ADMINS, ADMINS_BY_EMAIL
from app.models.admin import AdminRequest, Role

logger = logging.getLogger("darbar.notifications")

REQUEST_SUBJECT = "New admin request from {who}"
REQUEST_BODY = (
    "A new admin registration request was submitted.\n\n"
    "Name: {first} {last}\n"
    "Email: {email}\n"
    "Please review in the Admin Panel."
)


def super_admin_recipients(db) -> List[str]:
    """Emails of every super admin grant, uid-keyed grants first, without duplicates."""
    emails = []
    for doc in db.collection(ADMINS).where("role", "==", Role.SUPER_ADMIN.value).stream():
        email = (doc.to_dict() or {}).get("email")
        if email:
            emails.append(email.lower())

    # admins_by_email ids are the addresses themselves
    for doc in db.collection(ADMINS_BY_EMAIL).where("role", "==", Role.SUPER_ADMIN.value).stream():
        emails.append(doc.id)

    return list(dict.fromkeys(emails))


def send_email(settings: Settings, recipients: List[str], subject: str, body: str):
    """
    Sends ONE message addressed to all recipients through the SendGrid v3 API.
    """
    if not settings.sendgrid_api_key:
        raise NotificationError("SENDGRID_API_KEY is not configured")

    # A single personalization: one message, every recipient on the To line
    message = Mail(
        from_email=settings.sendgrid_from,
        to_emails=recipients,
        subject=subject,
        plain_text_content=body,
    )
    try:
        response = SendGridAPIClient(settings.sendgrid_api_key).send(message)
    except Exception as e:
        raise NotificationError(f"SendGrid request failed: {e}")

    if response.status_code >= 400:
        raise NotificationError(f"SendGrid returned {response.status_code}: {response.body}")


async def notify_super_admins_of_request(db, settings: Settings, request: AdminRequest):
    """
    Emails every super admin about a new admin request. Best effort: failures
    are logged and never reach the requester.
    """
    try:
        recipients = super_admin_recipients(db)
        if not recipients:
            logger.info(f"No super admins to notify about request {request.uid}")
            return

        subject = REQUEST_SUBJECT.format(who=request.email or request.uid)
        body = REQUEST_BODY.format(
            first=request.first_name or "",
            last=request.last_name or "",
            email=request.email or "",
        )
        send_email(settings, recipients, subject, body)
        logger.info(f"Notified {len(recipients)} super admin(s) about request {request.uid}")
    except Exception as e:
        logger.error(f"Failed to notify super admins about request {request.uid}: {e}")
