from datetime import datetime, timezone

import requests
from flask import request, jsonify
from firebase_admin import auth
from google.cloud.firestore_v1.base_query import FieldFilter

from . import users_bp
from .auth import get_user_by_email, sign_in_with_password
from backend.firebase_utils import get_db, get_store
from backend.middleware.auth_middleware import AuthMiddleware, RoleMiddleware
from backend.models.user_model import ROLE_COMPANY_ADMIN, ROLE_EMPLOYEE, public_profile
from backend.services.validation_service import ValidationService


def now_utc():
    return datetime.now(timezone.utc)


def _level_summary(store, level_id, company_id):
    level = store.get_hierarchy_level(level_id) if level_id else None
    if level is None or level.company_id != company_id:
        return None
    return {"level_id": level.id, "name": level.name, "rank": level.rank}


def _user_summary(db, user_id):
    if not user_id:
        return None
    doc = db.collection("users").document(user_id).get()
    if not doc.exists:
        return None
    data = doc.to_dict() or {}
    return {"user_id": user_id, "name": data.get("name"), "email": data.get("email")}


@users_bp.get("/profile")
@AuthMiddleware.verify_token
def get_user_profile():
    db = get_db()
    current = AuthMiddleware.get_current_user()
    profile = public_profile(current["user_id"], current)

    company_id = current.get("company_id")
    if company_id:
        company_doc = db.collection("companies").document(company_id).get()
        if company_doc.exists:
            profile["company"] = {"company_id": company_id, "name": (company_doc.to_dict() or {}).get("name")}
    profile["hierarchy_level"] = _level_summary(get_store(), current.get("hierarchy_level_id"), company_id)
    profile["reports_to_user"] = _user_summary(db, current.get("reports_to"))
    return jsonify(profile), 200


@users_bp.patch("/profile")
@AuthMiddleware.verify_token
def update_profile():
    db = get_db()
    current = AuthMiddleware.get_current_user()
    payload = request.get_json(force=True, silent=True) or {}

    updates = {}
    for key in ("name", "phone", "bio"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            updates[key] = value.strip()
    if "name" in updates:
        check = ValidationService.validate_name(updates["name"])
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400

    if updates:
        updates["updated_at"] = now_utc()
        db.collection("users").document(current["user_id"]).update(updates)
    doc = db.collection("users").document(current["user_id"]).get()
    return jsonify(public_profile(current["user_id"], doc.to_dict())), 200


@users_bp.patch("/profile/password")
@AuthMiddleware.verify_token
def change_password():
    current = AuthMiddleware.get_current_user()
    payload = request.get_json(force=True, silent=True) or {}

    current_password = payload.get("currentPassword") or payload.get("current_password") or ""
    new_password = payload.get("newPassword") or payload.get("new_password") or ""
    check = ValidationService.validate_password(new_password)
    if not check["valid"]:
        return jsonify({"error": check["error"]}), 400

    try:
        _, error = sign_in_with_password(current.get("email"), current_password)
    except requests.RequestException:
        return jsonify({"error": "Authentication service unavailable"}), 503
    if error:
        return jsonify({"error": "Current password is incorrect"}), 400

    auth.update_user(current["user_id"], password=new_password)
    return jsonify({"message": "Password changed successfully"}), 200


@users_bp.get("/employees")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_COMPANY_ADMIN)
def get_company_employees():
    db = get_db()
    store = get_store()
    company_id = AuthMiddleware.get_current_user().get("company_id")

    q = (
        db.collection("users")
        .where(filter=FieldFilter("company_id", "==", company_id))
        .where(filter=FieldFilter("role", "==", ROLE_EMPLOYEE))
    )
    employees = []
    for d in q.stream():
        data = d.to_dict() or {}
        profile = public_profile(d.id, data)
        profile["hierarchy_level"] = _level_summary(store, data.get("hierarchy_level_id"), company_id)
        profile["reports_to_user"] = _user_summary(db, data.get("reports_to"))
        employees.append(profile)
    employees.sort(key=lambda e: e.get("name") or "")
    return jsonify(employees), 200


@users_bp.patch("/<user_id>")
@AuthMiddleware.verify_token
def update_user(user_id):
    db = get_db()
    current = AuthMiddleware.get_current_user()
    payload = request.get_json(force=True, silent=True) or {}

    user_ref = db.collection("users").document(user_id)
    user_doc = user_ref.get()
    if not user_doc.exists:
        return jsonify({"error": "User not found"}), 404
    user_data = user_doc.to_dict() or {}

    is_admin = current.get("role") == ROLE_COMPANY_ADMIN and current.get("company_id") == user_data.get("company_id")
    if not is_admin and current["user_id"] != user_id:
        return jsonify({"error": "Not authorized to update this user"}), 403

    updates = {}
    name = payload.get("name")
    if name:
        check = ValidationService.validate_name(name)
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400
        updates["name"] = check["value"]

    email = payload.get("email")
    if email:
        check = ValidationService.validate_email(email)
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400
        if check["value"] != user_data.get("email"):
            if get_user_by_email(db, check["value"]):
                return jsonify({"error": "Email already exists"}), 409
            auth.update_user(user_id, email=check["value"])
            updates["email"] = check["value"]

    if is_admin:
        level_id = payload.get("hierarchy_level_id")
        if level_id:
            level = get_store().get_hierarchy_level(level_id)
            if level is None or level.company_id != user_data.get("company_id"):
                return jsonify({"error": "Hierarchy level not found in this company"}), 400
            # A user holds exactly one level; assigning replaces the old one
            updates["hierarchy_level_id"] = level_id

        reports_to = payload.get("reports_to")
        if reports_to:
            if reports_to == user_id:
                return jsonify({"error": "A user cannot report to themselves"}), 400
            manager_doc = db.collection("users").document(reports_to).get()
            if not manager_doc.exists or (manager_doc.to_dict() or {}).get("company_id") != user_data.get("company_id"):
                return jsonify({"error": "reports_to user not found in this company"}), 400
            updates["reports_to"] = reports_to

    if updates:
        updates["updated_at"] = now_utc()
        user_ref.update(updates)
    return jsonify(public_profile(user_id, user_ref.get().to_dict())), 200
