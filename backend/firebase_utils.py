"""Firebase credential loading and client initialisation."""
import os
import json
import logging
from typing import Dict, Any

import firebase_admin
from flask import current_app
from firebase_admin import credentials, firestore

logger = logging.getLogger(__name__)


def get_firebase_credentials() -> Dict[str, Any]:
    """
    Load Firebase credentials from environment variables or file.

    Checked in order:
    1. FIREBASE_CREDENTIALS_JSON - JSON string or path to JSON file
    2. FIREBASE_CREDENTIALS_PATH - path to service account JSON file
    3. GOOGLE_APPLICATION_CREDENTIALS - path to service account JSON file
    4. Individual environment variables (FIREBASE_PROJECT_ID, etc.)

    Raises:
        ValueError: If no valid credentials are found
    """
    creds_json = os.getenv('FIREBASE_CREDENTIALS_JSON')
    if creds_json:
        try:
            return json.loads(creds_json)
        except json.JSONDecodeError:
            if os.path.exists(creds_json):
                with open(creds_json, 'r') as f:
                    return json.load(f)

    for env_name in ('FIREBASE_CREDENTIALS_PATH', 'GOOGLE_APPLICATION_CREDENTIALS'):
        path = os.getenv(env_name)
        if path and os.path.exists(path):
            with open(path, 'r') as f:
                return json.load(f)

    if os.getenv('FIREBASE_PROJECT_ID') and os.getenv('FIREBASE_PRIVATE_KEY'):
        return {
            "type": "service_account",
            "project_id": os.getenv('FIREBASE_PROJECT_ID'),
            "private_key_id": os.getenv('FIREBASE_PRIVATE_KEY_ID'),
            "private_key": os.getenv('FIREBASE_PRIVATE_KEY', '').replace('\\n', '\n'),
            "client_email": os.getenv('FIREBASE_CLIENT_EMAIL'),
            "client_id": os.getenv('FIREBASE_CLIENT_ID'),
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_x509_cert_url": os.getenv('FIREBASE_CLIENT_CERT_URL'),
            "universe_domain": "googleapis.com"
        }

    raise ValueError(
        "Firebase credentials not found. Please set one of:\n"
        "1. FIREBASE_CREDENTIALS_JSON (JSON string or path to JSON file)\n"
        "2. FIREBASE_CREDENTIALS_PATH (path to service account JSON file)\n"
        "3. GOOGLE_APPLICATION_CREDENTIALS (path to service account JSON file)\n"
        "4. Individual env vars (FIREBASE_PROJECT_ID, FIREBASE_PRIVATE_KEY, etc.)"
    )


def init_firebase():
    """Initialise the Firebase app and return a Firestore client.

    Uses the emulators when FIRESTORE_EMULATOR_HOST or
    FIREBASE_AUTH_EMULATOR_HOST is set, service-account credentials otherwise.
    Credential problems raise ValueError.
    """
    firestore_emulator = os.getenv("FIRESTORE_EMULATOR_HOST")
    auth_emulator = os.getenv("FIREBASE_AUTH_EMULATOR_HOST")

    if not firebase_admin._apps:
        if firestore_emulator or auth_emulator:
            project_id = os.getenv("GCLOUD_PROJECT") or "demo-no-project"
            os.environ.setdefault("GCLOUD_PROJECT", project_id)
            firebase_admin.initialize_app(options={'projectId': project_id})
            logger.info("Firebase initialized for EMULATOR use (firestore=%s, auth=%s)",
                        firestore_emulator, auth_emulator)
        else:
            cred = credentials.Certificate(get_firebase_credentials())
            firebase_admin.initialize_app(cred)
            logger.info("Firebase initialized (CLOUD MODE)")

    return firestore.client()


def get_db():
    """Firestore client owned by the running app"""
    return current_app.extensions["firestore"]


def get_store():
    return current_app.extensions["hierarchy_store"]


def get_hierarchy_service():
    return current_app.extensions["hierarchy_service"]
