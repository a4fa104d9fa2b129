import sys
import os
import logging
from datetime import date

# Add the parent directory to the path so we can import our models
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from firebase_admin import firestore

from app.core.config import get_settings
from app.core.logging_config import setup_logging
from app.db.collections import ADMINS, ADMINS_BY_EMAIL, email_key, events_path
from app.db.firestore import get_db
from app.models.admin import Role
from app.models.catalog import EventIn

logger = setup_logging()

def seed_platform(super_admin_uid: str, super_admin_email: str):
    logger.info("Starting Darbar Platform seeding...")
    db = get_db()
    settings = get_settings()

    # 1. First Super Admin
    # Note: The uid must match the account in Firebase Auth.
    grant = {
        "role": Role.SUPER_ADMIN.value,
        "email": email_key(super_admin_email),
        "invitedBy": "seed",
        "createdAt": firestore.SERVER_TIMESTAMP,
    }
    db.collection(ADMINS).document(super_admin_uid).set(grant)
    db.collection(ADMINS_BY_EMAIL).document(email_key(super_admin_email)).set(grant)
    logger.info(f"Super Admin granted: {super_admin_email}")

    # 2. A first public event
    event = EventIn(
        title="Sukhmani Sahib Path",
        date=date.today().isoformat(),
        description="Weekly path followed by Langar.",
    )
    _, ref = db.collection(events_path(settings.app_id)).add(event.model_dump())
    logger.info(f"Sample event created: {ref.id}")

if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: python scripts/seed_data.py <super-admin-uid> <super-admin-email>")
        sys.exit(1)
    seed_platform(sys.argv[1], sys.argv[2])
