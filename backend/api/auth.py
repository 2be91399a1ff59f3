"""
Authentication endpoints for Firebase Auth integration.
Registration creates the Firebase Auth account and the Firestore profile;
login exchanges email/password for a Firebase ID token.
"""
import logging
from datetime import datetime, timezone

import requests
from flask import current_app, request, jsonify
from firebase_admin import auth
from google.cloud.firestore_v1.base_query import FieldFilter

from . import auth_bp
from backend.firebase_utils import get_db
from backend.middleware.error_middleware import ErrorHandler
from backend.models.user_model import ROLE_COMPANY_ADMIN, ROLE_SUPER_ADMIN, public_profile
from backend.services.validation_service import ValidationService

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"


def now_utc():
    return datetime.now(timezone.utc)


def get_user_by_email(db, email: str):
    q = db.collection("users").where(filter=FieldFilter("email", "==", email)).limit(1).stream()
    for d in q:
        return d
    return None


def sign_in_with_password(email: str, password: str):
    """Verify credentials against the Firebase Auth REST API.

    Returns (firebase_data, error_message); exactly one is None. Transport
    failures and unreadable error bodies raise requests.RequestException.
    """
    api_key = current_app.config.get("FIREBASE_WEB_API_KEY")
    if not api_key:
        raise RuntimeError("FIREBASE_WEB_API_KEY is not configured")

    resp = requests.post(
        f"{SIGN_IN_URL}?key={api_key}",
        json={"email": email, "password": password, "returnSecureToken": True},
        timeout=10,
    )
    if resp.ok:
        return resp.json(), None

    try:
        error_message = (resp.json().get("error") or {}).get("message", "")
    except ValueError as e:
        # e.g. an HTML error page from a proxy in front of the auth service
        logger.error("Unreadable sign-in response (HTTP %s)", resp.status_code)
        raise requests.HTTPError(f"Sign-in failed with HTTP {resp.status_code}", response=resp) from e
    if "USER_DISABLED" in error_message:
        return None, "This account has been disabled"
    return None, "Invalid credentials"


@auth_bp.post("/register")
def register_user():
    """
    Register a user with Firebase Authentication and create the profile.
    Expected payload: {email, password, name, role, company_id}
    Returns: {user: {...}, firebaseToken: "..."}
    """
    db = get_db()
    payload = request.get_json(force=True, silent=True) or {}

    result = ValidationService.validate_user_data(payload)
    if not result["valid"]:
        return ErrorHandler.handle_validation_error(result)
    data = result["data"]

    if get_user_by_email(db, data.email):
        return jsonify({"error": "User already exists"}), 400

    if data.role == ROLE_SUPER_ADMIN:
        existing = db.collection("users").where(filter=FieldFilter("role", "==", ROLE_SUPER_ADMIN)).limit(1).stream()
        if list(existing):
            return jsonify({"error": "A super admin already exists"}), 403
    else:
        company_doc = db.collection("companies").document(data.company_id).get()
        if not company_doc.exists:
            return jsonify({"error": "Company not found"}), 400
        if data.role == ROLE_COMPANY_ADMIN and (company_doc.to_dict() or {}).get("admin_id"):
            return jsonify({"error": "Company already has an admin"}), 400

    try:
        firebase_user = auth.create_user(email=data.email, password=data.password, display_name=data.name)
    except auth.EmailAlreadyExistsError:
        return jsonify({"error": "User already exists"}), 400
    except ValueError as e:
        return jsonify({"error": f"Invalid input: {str(e)}"}), 400

    uid = firebase_user.uid
    user_doc = {
        "user_id": uid,
        "name": data.name,
        "email": data.email,
        "role": data.role,
        "company_id": data.company_id,
        "hierarchy_level_id": None,
        "reports_to": None,
        "phone": "",
        "bio": "",
        "avatar": "",
        "created_at": now_utc(),
        "updated_at": now_utc(),
    }
    try:
        db.collection("users").document(uid).set(user_doc)
        if data.role == ROLE_COMPANY_ADMIN:
            db.collection("companies").document(data.company_id).update({"admin_id": uid})
    except Exception:
        # Do not leave an auth account without a profile behind
        auth.delete_user(uid)
        raise

    custom_token = auth.create_custom_token(uid)
    if isinstance(custom_token, bytes):
        custom_token = custom_token.decode("utf-8")

    logger.info("Registered %s user %s", data.role, uid)
    return jsonify({"user": public_profile(uid, user_doc), "firebaseToken": custom_token}), 201


@auth_bp.post("/login")
def login_user():
    """
    Login with email and password.
    Expected payload: {email: "...", password: "..."}
    Returns: {user: {...}, firebaseToken: "..."}
    """
    db = get_db()
    payload = request.get_json(force=True, silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or not password:
        return jsonify({"error": "Please provide email and password"}), 400

    try:
        firebase_data, error = sign_in_with_password(email, password)
    except requests.RequestException as e:
        logger.error("Authentication service error: %s", e)
        return jsonify({"error": "Authentication service unavailable"}), 503
    if error:
        return jsonify({"error": error}), 401

    user_id = firebase_data.get("localId")
    user_doc = db.collection("users").document(user_id).get()
    if not user_doc.exists:
        return jsonify({"error": "Invalid credentials"}), 401

    return jsonify({
        "user": public_profile(user_id, user_doc.to_dict()),
        "firebaseToken": firebase_data.get("idToken"),
    }), 200


@auth_bp.post("/verify")
def verify_token():
    """
    Verify a Firebase token and return user data.
    Expected payload: {firebase_token: "..."}
    Returns: {user: {...}, valid: true}
    """
    db = get_db()
    payload = request.get_json(force=True, silent=True) or {}

    firebase_token = (payload.get("firebase_token") or "").strip()
    if not firebase_token:
        return jsonify({"error": "Firebase token is required", "valid": False}), 400

    try:
        decoded_token = auth.verify_id_token(firebase_token)
    except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, ValueError):
        return jsonify({"error": "Invalid or expired token", "valid": False}), 401

    user_id = decoded_token.get("uid")
    user_doc = db.collection("users").document(user_id).get()
    if not user_doc.exists:
        return jsonify({"error": "User not found", "valid": False}), 404

    return jsonify({"user": public_profile(user_id, user_doc.to_dict()), "valid": True}), 200
