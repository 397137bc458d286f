import json
import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore

logger = logging.getLogger("travel_planner.firebase")

DEFAULT_CREDENTIALS_PATH = "config/serviceAccountKey.json"

_db = None


def get_db():
    global _db
    if _db:
        return _db

    try:
        # Deployed environments provide the service account as JSON
        if "FIREBASE_SERVICE_ACCOUNT" in os.environ:
            cred_dict = json.loads(os.environ["FIREBASE_SERVICE_ACCOUNT"])
            cred = credentials.Certificate(cred_dict)
        else:
            path = os.environ.get("FIREBASE_CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH)
            cred = credentials.Certificate(path)

        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        logger.info("Firestore client initialised")
        return _db

    except Exception as e:
        raise RuntimeError(f"Firebase init failed: {e}")
