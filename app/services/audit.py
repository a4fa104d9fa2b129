from datetime import datetime
from typing import Optional
import logging

from firebase_admin import firestore

from app.db.collections import AUDIT_LOGS
from app.models.user import CurrentUser

logger = logging.getLogger("darbar.audit")

async def log_activity(db, actor: CurrentUser, actor_role: Optional[str], action: str, target_id: str, details: str = ""):
    """
    Logs an event to the 'audit_logs' collection in Firestore.
    """
    try:
        entry = {
            "timestamp": firestore.SERVER_TIMESTAMP,
            "actor_uid": actor.uid,
            "actor_email": actor.email,
            "actor_role": getattr(actor_role, "value", actor_role),
            "action": action,
            "target_id": target_id,
            "details": details
        }
        db.collection(AUDIT_LOGS).add(entry)
    except Exception as e:
        logger.error(f"Failed to write audit log: {e}")

def recent_activity(db, limit: int = 50):
    """Latest audit entries, newest first, with JSON-friendly timestamps."""
    docs = db.collection(AUDIT_LOGS)\
             .order_by("timestamp", direction="DESCENDING")\
             .limit(limit)\
             .stream()

    logs = []
    for doc in docs:
        d = doc.to_dict()
        if isinstance(d.get("timestamp"), datetime):
            d["timestamp"] = d["timestamp"].isoformat()
        logs.append(d)
    return logs
