import logging
import os
import firebase_admin
from firebase_admin import credentials, firestore
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("darbar.db")

PROJECT_ID = os.getenv("GCP_PROJECT_ID")
SA_KEY_PATH = os.getenv("GOOGLE_APPLICATION_CREDENTIALS")

_client = None


def initialize_app():
    if not firebase_admin._apps:
        # 1. Local Dev: Use Key File if it exists
        if SA_KEY_PATH and os.path.exists(SA_KEY_PATH):
            cred = credentials.Certificate(SA_KEY_PATH)
            firebase_admin.initialize_app(cred, {'projectId': PROJECT_ID})
            logger.info(f"Connected to Firebase (Key): {PROJECT_ID}")

        # 2. Production (Cloud Run): Use Default Identity
        else:
            firebase_admin.initialize_app(options={'projectId': PROJECT_ID})
            logger.info(f"Connected to Firebase (ADC): {PROJECT_ID}")


def get_db():
    """FastAPI dependency returning the shared Firestore client, created on first use."""
    global _client
    if _client is None:
        initialize_app()
        _client = firestore.client()
    return _client
