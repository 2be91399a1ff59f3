from datetime import datetime, timezone

from flask import current_app, request, jsonify

from . import hierarchy_bp
from backend.firebase_utils import get_db, get_store
from backend.middleware.auth_middleware import AuthMiddleware, RoleMiddleware
from backend.middleware.error_middleware import ErrorHandler
from backend.models.hierarchy_model import HierarchyLevel, default_permissions
from backend.models.user_model import ROLE_COMPANY_ADMIN
from backend.services.hierarchy_service import validate_level_placement
from backend.services.validation_service import ValidationService


def now_utc():
    return datetime.now(timezone.utc)


def level_to_json(level: HierarchyLevel, levels=None):
    out = {
        "level_id": level.id,
        "company_id": level.company_id,
        "name": level.name,
        "rank": level.rank,
        "max_tasks_per_day": level.max_tasks_per_day,
        "reports_to_level_id": level.reports_to_level_id,
        "department_scope": level.department_scope,
        "permissions": level.permissions,
    }
    for key in ("created_at", "updated_at"):
        v = getattr(level, key)
        out[key] = v.isoformat() if hasattr(v, "isoformat") else v
    if levels is not None:
        parent = levels.get(level.reports_to_level_id) if level.reports_to_level_id else None
        out["reports_to"] = None if parent is None else {
            "level_id": parent.id, "name": parent.name, "rank": parent.rank,
        }
    return out


@hierarchy_bp.post("")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_COMPANY_ADMIN)
def create_hierarchy_level():
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    payload = request.get_json(force=True, silent=True) or {}

    result = ValidationService.validate_level_data(
        payload, default_max_tasks=current_app.config["DEFAULT_MAX_TASKS_PER_DAY"]
    )
    if not result["valid"]:
        return ErrorHandler.handle_validation_error(result)
    data = result["data"]

    levels = get_store().list_hierarchy_levels(company_id)
    validate_level_placement(levels, company_id, data.rank, data.reports_to_level_id)

    permissions = default_permissions()
    permissions.update(data.permissions)
    ref = db.collection("hierarchy_levels").document()
    level = HierarchyLevel(
        id=ref.id,
        company_id=company_id,
        name=data.name,
        rank=data.rank,
        max_tasks_per_day=data.max_tasks_per_day,
        reports_to_level_id=data.reports_to_level_id,
        department_scope=data.department_scope,
        permissions=permissions,
        created_at=now_utc(),
        updated_at=now_utc(),
    )
    ref.set(level.to_dict())
    return jsonify(level_to_json(level)), 201


@hierarchy_bp.get("")
@AuthMiddleware.verify_token
def get_company_hierarchy():
    company_id = AuthMiddleware.get_current_user().get("company_id")
    if not company_id:
        return jsonify({"error": "Company ID not found"}), 400

    levels = get_store().list_hierarchy_levels(company_id)
    ordered = sorted(levels.values(), key=lambda lv: (not lv.has_valid_rank, lv.rank or 0, lv.name))
    return jsonify([level_to_json(lv, levels) for lv in ordered]), 200


@hierarchy_bp.put("/<level_id>")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_COMPANY_ADMIN)
def update_hierarchy_level(level_id):
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    payload = request.get_json(force=True, silent=True) or {}

    level = get_store().get_hierarchy_level(level_id)
    if level is None:
        return jsonify({"error": "Hierarchy level not found"}), 404
    if level.company_id != company_id:
        return jsonify({"error": "Not authorized to modify this hierarchy"}), 403

    # Merge the edit over the stored level and re-validate the whole record
    merged = {
        "name": payload.get("name") or level.name,
        "rank": payload.get("rank", level.rank),
        "max_tasks_per_day": payload.get("max_tasks_per_day", level.max_tasks_per_day),
        "department_scope": payload.get("department_scope", level.department_scope),
        "permissions": {**level.permissions, **(payload.get("permissions") or {})},
        "reports_to_level_id": (
            payload.get("reports_to_level_id") if "reports_to_level_id" in payload else level.reports_to_level_id
        ),
    }
    result = ValidationService.validate_level_data(merged)
    if not result["valid"]:
        return ErrorHandler.handle_validation_error(result)
    data = result["data"]

    levels = get_store().list_hierarchy_levels(company_id)
    validate_level_placement(levels, company_id, data.rank, data.reports_to_level_id, level_id=level_id)

    level.name = data.name
    level.rank = data.rank
    level.max_tasks_per_day = data.max_tasks_per_day
    level.department_scope = data.department_scope
    level.permissions = {**default_permissions(), **data.permissions}
    level.reports_to_level_id = data.reports_to_level_id
    level.updated_at = now_utc()

    db.collection("hierarchy_levels").document(level_id).set(level.to_dict())
    return jsonify(level_to_json(level)), 200
