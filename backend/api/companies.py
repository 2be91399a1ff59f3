import logging
from datetime import datetime, timezone

from flask import request, jsonify
from firebase_admin import auth

from . import companies_bp
from .auth import get_user_by_email
from backend.firebase_utils import get_db
from backend.middleware.auth_middleware import AuthMiddleware, RoleMiddleware
from backend.models.user_model import ROLE_COMPANY_ADMIN, ROLE_SUPER_ADMIN
from backend.services.validation_service import ValidationService

logger = logging.getLogger(__name__)


def now_utc():
    return datetime.now(timezone.utc)


def _user_summary(db, user_id):
    if not user_id:
        return None
    doc = db.collection("users").document(user_id).get()
    if not doc.exists:
        return None
    data = doc.to_dict() or {}
    return {"user_id": user_id, "name": data.get("name"), "email": data.get("email")}


def company_to_json(d, admin=None):
    data = d.to_dict() or {}
    out = {
        "company_id": d.id,
        "name": data.get("name"),
        "description": data.get("description"),
        "admin_id": data.get("admin_id"),
        "active": data.get("active", True),
    }
    for key in ("created_at", "updated_at"):
        v = data.get(key)
        out[key] = v.isoformat() if hasattr(v, "isoformat") else v
    if admin is not None:
        out["admin"] = admin
    return out


@companies_bp.post("/with-admin")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_SUPER_ADMIN)
def create_company_with_admin():
    """Create a company and its admin account in one step"""
    db = get_db()
    payload = request.get_json(force=True, silent=True) or {}

    name = (payload.get("name") or "").strip()
    description = (payload.get("description") or "").strip()
    admin = payload.get("admin") or {}
    if not name or not admin.get("name") or not admin.get("email") or not admin.get("password"):
        return jsonify({
            "error": "Please provide all required fields: company name, admin name, email, and password"
        }), 400

    email_check = ValidationService.validate_email(admin.get("email"))
    if not email_check["valid"]:
        return jsonify({"error": email_check["error"]}), 400
    password_check = ValidationService.validate_password(admin.get("password"))
    if not password_check["valid"]:
        return jsonify({"error": password_check["error"]}), 400
    admin_email = email_check["value"]

    if get_user_by_email(db, admin_email):
        return jsonify({"error": "Admin email already exists"}), 400

    try:
        firebase_user = auth.create_user(
            email=admin_email, password=admin["password"], display_name=admin["name"].strip()
        )
    except auth.EmailAlreadyExistsError:
        return jsonify({"error": "Admin email already exists"}), 400

    company_ref = db.collection("companies").document()
    admin_ref = db.collection("users").document(firebase_user.uid)
    company_doc = {
        "name": name,
        "description": description,
        "admin_id": firebase_user.uid,
        "active": True,
        "created_at": now_utc(),
        "updated_at": now_utc(),
    }
    admin_doc = {
        "user_id": firebase_user.uid,
        "name": admin["name"].strip(),
        "email": admin_email,
        "role": ROLE_COMPANY_ADMIN,
        "company_id": company_ref.id,
        "hierarchy_level_id": None,
        "reports_to": None,
        "phone": "",
        "bio": "",
        "avatar": "",
        "created_at": now_utc(),
        "updated_at": now_utc(),
    }

    batch = db.batch()
    batch.set(company_ref, company_doc)
    batch.set(admin_ref, admin_doc)
    try:
        batch.commit()
    except Exception:
        logger.error("Failed to create company %s; removing auth user %s", name, firebase_user.uid)
        auth.delete_user(firebase_user.uid)
        raise

    return jsonify({
        "message": "Company and admin created successfully",
        "company": {
            "id": company_ref.id,
            "name": name,
            "description": description,
            "admin": {"id": firebase_user.uid, "name": admin_doc["name"], "email": admin_email},
        },
    }), 201


@companies_bp.post("")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_SUPER_ADMIN)
def create_company():
    db = get_db()
    payload = request.get_json(force=True, silent=True) or {}
    name = (payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Company name is required"}), 400

    ref = db.collection("companies").document()
    ref.set({
        "name": name,
        "description": (payload.get("description") or "").strip(),
        "admin_id": None,
        "active": True,
        "created_at": now_utc(),
        "updated_at": now_utc(),
    })
    return jsonify(company_to_json(ref.get())), 201


@companies_bp.get("")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_SUPER_ADMIN)
def get_companies():
    db = get_db()
    out = []
    for d in db.collection("companies").stream():
        out.append(company_to_json(d, admin=_user_summary(db, (d.to_dict() or {}).get("admin_id"))))
    return jsonify(out), 200


@companies_bp.get("/stats")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_SUPER_ADMIN)
def get_company_stats():
    db = get_db()
    companies = list(db.collection("companies").stream())
    active = [c for c in companies if (c.to_dict() or {}).get("active", True)]
    total_users = sum(1 for _ in db.collection("users").stream())
    return jsonify({
        "totalCompanies": len(companies),
        "activeCompanies": len(active),
        "totalUsers": total_users,
    }), 200


@companies_bp.get("/<company_id>")
@AuthMiddleware.verify_token
def get_company(company_id):
    db = get_db()
    current = AuthMiddleware.get_current_user()
    if current.get("role") != ROLE_SUPER_ADMIN and current.get("company_id") != company_id:
        return jsonify({"error": "Company not found"}), 404

    doc = db.collection("companies").document(company_id).get()
    if not doc.exists:
        return jsonify({"error": "Company not found"}), 404
    return jsonify(company_to_json(doc, admin=_user_summary(db, (doc.to_dict() or {}).get("admin_id")))), 200
