import logging
from collections import defaultdict
from datetime import datetime, timezone

from flask import request, jsonify
from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from . import tasks_bp
from .notifications import notify_safely
from backend.firebase_utils import get_db, get_store, get_hierarchy_service
from backend.middleware.auth_middleware import AuthMiddleware, RoleMiddleware
from backend.middleware.error_middleware import ErrorHandler
from backend.models.hierarchy_model import DEPARTMENTS
from backend.models.task_model import (
    REPORT_SUBMITTED, STATUS_UPDATED, TASK_CREATED, TASK_PRIORITIES, TASK_UPDATED,
    task_to_json,
)
from backend.models.user_model import ROLE_COMPANY_ADMIN, user_ref
from backend.services.validation_service import ValidationService
from backend.utils.validators import Helpers

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
RECENT_TASKS = 5


def now_utc():
    return datetime.now(timezone.utc)


def _created_key(d):
    return (d.to_dict() or {}).get("created_at") or EPOCH


def _newest_first(docs):
    return sorted(docs, key=_created_key, reverse=True)


def _company_tasks(db, company_id):
    return list(db.collection("tasks").where(filter=FieldFilter("company_id", "==", company_id)).stream())


def _current_user():
    current = AuthMiddleware.get_current_user()
    return get_store().get_user(current["user_id"])


def _load_task(db, task_id, company_id):
    """Return (ref, snapshot) for a task of ``company_id`` or (None, None)"""
    ref = db.collection("tasks").document(task_id)
    doc = ref.get()
    if not doc.exists or (doc.to_dict() or {}).get("company_id") != company_id:
        return None, None
    return ref, doc


def _date_range_args():
    """Optional startDate/endDate query args; returns (start, end, error)"""
    start_raw = request.args.get("startDate")
    end_raw = request.args.get("endDate")
    if not start_raw or not end_raw:
        return None, None, None
    start = Helpers.parse_timestamp(start_raw)
    end = Helpers.parse_timestamp(end_raw)
    if start is None or end is None:
        return None, None, "startDate and endDate must be ISO-8601 dates"
    return start, end, None


def _history_entry(action, user_id, new_status=None):
    return {"action": action, "performed_by": user_id, "new_status": new_status, "timestamp": now_utc()}


@tasks_bp.post("")
@AuthMiddleware.verify_token
def create_task():
    """Assign a new task down the hierarchy.

    The assigner must strictly outrank the assignee and the assignee must
    still have room in today's quota.
    """
    db = get_db()
    store = get_store()
    service = get_hierarchy_service()
    payload = request.get_json(force=True, silent=True) or {}

    result = ValidationService.validate_task_data(payload)
    if not result["valid"]:
        return ErrorHandler.handle_validation_error(result)
    data = result["data"]

    assigner = _current_user()
    assignee = store.get_user(data.assigned_to_id)
    if assignee is None or assignee.company_id != assigner.company_id:
        return jsonify({"error": "Assignee not found"}), 404

    if not assigner.hierarchy_level_id or not assignee.hierarchy_level_id:
        return jsonify({"error": "Both assigner and assignee must have hierarchy levels assigned"}), 400

    if not service.can_assign(assigner.hierarchy_level_id, assignee.hierarchy_level_id, assigner.company_id):
        return jsonify({"error": "You cannot assign tasks to employees at the same or higher level"}), 403

    assignee_level = store.get_hierarchy_level(assignee.hierarchy_level_id)
    if assignee_level is None or not service.check_daily_quota(assignee.id, assignee_level):
        return jsonify({"error": "Daily task limit exceeded for this user"}), 400

    reviewers = []
    for reviewer_id in data.reviewers:
        reviewer = store.get_user(reviewer_id)
        if reviewer is None or reviewer.company_id != assigner.company_id:
            return jsonify({"error": f"Reviewer '{reviewer_id}' not found"}), 400
        reviewers.append(user_ref(reviewer.id, {"name": reviewer.name, "email": reviewer.email}))

    task_ref = db.collection("tasks").document()
    task_doc = {
        "title": data.title,
        "description": data.description,
        "company_id": assigner.company_id,
        "assigned_to": user_ref(assignee.id, {"name": assignee.name, "email": assignee.email}),
        "assigned_by": user_ref(assigner.id, {"name": assigner.name, "email": assigner.email}),
        "status": "pending",
        "priority": data.priority,
        "due_date": data.due_date,
        "category": data.category,
        "estimated_hours": data.estimated_hours,
        "actual_hours": None,
        "subtasks": data.subtasks,
        "reviewers": reviewers,
        "updates": [],
        "reports": [],
        "comments": [],
        "history": [_history_entry(TASK_CREATED, assigner.id, "pending")],
        "created_at": now_utc(),
        "updated_at": now_utc(),
    }
    task_ref.set(task_doc)
    task_body = {"task_id": task_ref.id, **task_doc}
    logger.info("Task %s assigned to %s by %s", task_ref.id, assignee.id, assigner.id)

    notify_safely(
        db, assignee.id, "TASK_ASSIGNED",
        f"You have been assigned a new task: {data.title}",
        title="New Task Assigned", task=task_body, from_user_id=assigner.id,
        priority=data.priority, send_email=True,
    )
    for reviewer in reviewers:
        notify_safely(
            db, reviewer["user_id"], "REVIEW_REQUESTED",
            f"You have been assigned as a reviewer for task: {data.title}",
            title="Review Requested", task=task_body, from_user_id=assigner.id,
        )

    return jsonify(task_to_json(task_ref.get())), 201


@tasks_bp.get("")
@AuthMiddleware.verify_token
def get_tasks():
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    docs = _newest_first(_company_tasks(db, company_id))
    return jsonify([task_to_json(d) for d in docs]), 200


@tasks_bp.get("/hierarchy")
@AuthMiddleware.verify_token
def get_tasks_by_hierarchy():
    """Tasks assigned to the caller or to anyone below the caller's level"""
    predicate = get_hierarchy_service().visible_task_filter(AuthMiddleware.get_current_user()["user_id"])
    docs = _newest_first(get_store().list_tasks(predicate))
    return jsonify([task_to_json(d) for d in docs]), 200


@tasks_bp.get("/analytics")
@AuthMiddleware.verify_token
@RoleMiddleware.require_roles(ROLE_COMPANY_ADMIN)
def get_task_analytics():
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    start, end, error = _date_range_args()
    if error:
        return jsonify({"error": error}), 400

    tasks = [d.to_dict() or {} for d in _company_tasks(db, company_id)]
    if start is not None:
        tasks = [t for t in tasks if t.get("created_at") and start <= t["created_at"] <= end]

    by_status = defaultdict(int)
    by_priority = defaultdict(int)
    by_category = defaultdict(int)
    for t in tasks:
        by_status[t.get("status", "pending")] += 1
        by_priority[t.get("priority", "medium")] += 1
        by_category[t.get("category") or "uncategorized"] += 1

    completed = [t for t in tasks if t.get("status") == "completed"]
    durations = [
        (t["updated_at"] - t["created_at"]).total_seconds()
        for t in completed if t.get("updated_at") and t.get("created_at")
    ]
    avg_seconds = sum(durations) / (len(durations) or 1)
    total = len(tasks)

    return jsonify({
        "totalTasks": total,
        "completedTasks": by_status["completed"],
        "pendingTasks": by_status["pending"],
        "inProgressTasks": by_status["in_progress"],
        "underReviewTasks": by_status["under_review"],
        "tasksByPriority": dict(by_priority),
        "tasksByCategory": dict(by_category),
        "avgCompletionTime": round(avg_seconds / 86400),
        "completionRate": (len(completed) / total) * 100 if total else 0,
    }), 200


@tasks_bp.get("/department/<dept>")
@AuthMiddleware.verify_token
def get_tasks_by_department(dept):
    if dept not in DEPARTMENTS:
        return jsonify({"error": f"Unknown department: {dept}"}), 400

    db = get_db()
    store = get_store()
    company_id = AuthMiddleware.get_current_user().get("company_id")

    level_ids = {
        lv.id for lv in store.list_hierarchy_levels(company_id).values() if dept in lv.department_scope
    }
    member_ids = {u.id for u in store.list_users_in_company(company_id) if u.hierarchy_level_id in level_ids}

    docs = [
        d for d in _company_tasks(db, company_id)
        if ((d.to_dict() or {}).get("assigned_to") or {}).get("user_id") in member_ids
    ]
    return jsonify([task_to_json(d) for d in _newest_first(docs)]), 200


@tasks_bp.get("/timeline")
@AuthMiddleware.verify_token
def get_task_timeline():
    """Company tasks grouped by due date (YYYY-MM-DD)"""
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    start, end, error = _date_range_args()
    if error:
        return jsonify({"error": error}), 400

    tasks = []
    for d in _company_tasks(db, company_id):
        data = d.to_dict() or {}
        due = data.get("due_date")
        if due is None:
            continue
        if start is not None and not (start <= due <= end):
            continue
        tasks.append((due, d.id, data))
    tasks.sort(key=lambda item: item[0])

    timeline = defaultdict(list)
    for due, task_id, data in tasks:
        timeline[due.date().isoformat()].append({
            "task_id": task_id,
            "title": data.get("title"),
            "status": data.get("status"),
            "priority": data.get("priority"),
            "due_date": due.isoformat(),
        })
    return jsonify(dict(timeline)), 200


@tasks_bp.get("/stats")
@AuthMiddleware.verify_token
def get_company_task_stats():
    db = get_db()
    company_id = AuthMiddleware.get_current_user().get("company_id")
    if not company_id:
        return jsonify({"error": "Company ID not found"}), 400

    docs = _company_tasks(db, company_id)
    tasks = [d.to_dict() or {} for d in docs]
    total = len(tasks)

    def count(field, value):
        return sum(1 for t in tasks if t.get(field) == value)

    completed = count("status", "completed")
    return jsonify({
        "totalTasks": total,
        "completedTasks": completed,
        "pendingTasks": count("status", "pending"),
        "inProgressTasks": count("status", "in_progress"),
        "tasksByPriority": {p: count("priority", p) for p in TASK_PRIORITIES},
        "completionRate": (completed / total) * 100 if total else 0,
        "recentTasks": [task_to_json(d) for d in _newest_first(docs)[:RECENT_TASKS]],
    }), 200


@tasks_bp.get("/<task_id>")
@AuthMiddleware.verify_token
def get_task_by_id(task_id):
    db = get_db()
    user = _current_user()
    _, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404
    if not get_hierarchy_service().can_access_task(user, doc.to_dict() or {}):
        return jsonify({"error": "You do not have permission to access this task"}), 403
    return jsonify(task_to_json(doc)), 200


@tasks_bp.put("/<task_id>")
@AuthMiddleware.verify_token
def update_task(task_id):
    """Post a progress update and optionally change status, priority or due date"""
    db = get_db()
    user = _current_user()
    payload = request.get_json(force=True, silent=True) or {}

    ref, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404
    data = doc.to_dict() or {}
    if not get_hierarchy_service().can_access_task(user, data):
        return jsonify({"error": "You do not have permission to access this task"}), 403

    updates = {"updated_at": now_utc()}
    history = []

    status = payload.get("status")
    if status:
        check = ValidationService.validate_status(status)
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400
        updates["status"] = check["value"]
        history.append(_history_entry(STATUS_UPDATED, user.id, check["value"]))

    priority = payload.get("priority")
    if priority:
        check = ValidationService.validate_priority(priority)
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400
        updates["priority"] = check["value"]

    due_date = payload.get("due_date")
    if due_date:
        check = ValidationService.validate_datetime(due_date, "Due date")
        if not check["valid"]:
            return jsonify({"error": check["error"]}), 400
        updates["due_date"] = check["value"]

    content = (payload.get("content") or "").strip()
    if content:
        updates["updates"] = firestore.ArrayUnion([
            {"content": content, "updated_by": user.id, "timestamp": now_utc()}
        ])
    history.append(_history_entry(TASK_UPDATED, user.id, updates.get("status")))
    updates["history"] = firestore.ArrayUnion(history)
    ref.update(updates)

    task_body = {"task_id": task_id, **data, **{k: v for k, v in updates.items() if k in ("status", "priority", "due_date")}}
    notify_safely(
        db, (data.get("assigned_to") or {}).get("user_id"), "TASK_UPDATED",
        f"Task updated: {data.get('title')}",
        title="Task Updated", task=task_body, from_user_id=user.id, priority=task_body.get("priority"),
    )
    return jsonify(task_to_json(ref.get())), 200


@tasks_bp.patch("/<task_id>/status")
@AuthMiddleware.verify_token
def update_task_status(task_id):
    db = get_db()
    user = _current_user()
    payload = request.get_json(force=True, silent=True) or {}

    check = ValidationService.validate_status(payload.get("status"))
    if not check["valid"]:
        return jsonify({"error": check["error"]}), 400
    status = check["value"]

    ref, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404
    data = doc.to_dict() or {}
    if not get_hierarchy_service().can_access_task(user, data):
        return jsonify({"error": "You do not have permission to access this task"}), 403

    ref.update({
        "status": status,
        "updated_at": now_utc(),
        "history": firestore.ArrayUnion([_history_entry(STATUS_UPDATED, user.id, status)]),
    })

    task_body = {"task_id": task_id, **data, "status": status}
    notify_safely(
        db, (data.get("assigned_to") or {}).get("user_id"), "TASK_UPDATED",
        f"Task status updated to {status}: {data.get('title')}",
        title="Task Status Updated", task=task_body, from_user_id=user.id, priority=data.get("priority"),
    )
    if status == "completed":
        notify_safely(
            db, (data.get("assigned_by") or {}).get("user_id"), "TASK_COMPLETED",
            f"Task completed: {data.get('title')}",
            title="Task Completed", task=task_body, from_user_id=user.id,
        )
    return jsonify(task_to_json(ref.get())), 200


@tasks_bp.post("/<task_id>/reports")
@AuthMiddleware.verify_token
def submit_task_report(task_id):
    db = get_db()
    user = _current_user()
    payload = request.get_json(force=True, silent=True) or {}

    content = (payload.get("content") or "").strip()
    if not content:
        return jsonify({"error": "Report content is required"}), 400

    ref, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404
    data = doc.to_dict() or {}
    if (data.get("assigned_to") or {}).get("user_id") != user.id:
        return jsonify({"error": "Only assigned user can submit report"}), 403

    report = {
        "content": content,
        "reported_by": user.id,
        "status": "submitted",
        "review_comments": None,
        "reported_at": now_utc(),
    }
    ref.update({
        "reports": firestore.ArrayUnion([report]),
        "status": "under_review",
        "updated_at": now_utc(),
        "history": firestore.ArrayUnion([_history_entry(REPORT_SUBMITTED, user.id, "under_review")]),
    })

    notify_safely(
        db, (data.get("assigned_by") or {}).get("user_id"), "TASK_REPORT_SUBMITTED",
        f"New report submitted for task \"{data.get('title')}\"",
        title="Report Submitted", task={"task_id": task_id, **data}, from_user_id=user.id,
    )
    return jsonify(task_to_json(ref.get())), 200


@tasks_bp.post("/<task_id>/comments")
@AuthMiddleware.verify_token
def add_comment(task_id):
    db = get_db()
    user = _current_user()
    payload = request.get_json(force=True, silent=True) or {}

    content = (payload.get("content") or "").strip()
    if not content:
        return jsonify({"error": "Comment content is required"}), 400

    ref, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404
    data = doc.to_dict() or {}
    if not get_hierarchy_service().can_access_task(user, data):
        return jsonify({"error": "You do not have permission to access this task"}), 403

    ref.update({
        "comments": firestore.ArrayUnion([
            {"user": user_ref(user.id, {"name": user.name, "email": user.email}),
             "content": content, "created_at": now_utc()}
        ]),
        "updated_at": now_utc(),
    })

    assignee_id = (data.get("assigned_to") or {}).get("user_id")
    if assignee_id != user.id:
        notify_safely(
            db, assignee_id, "COMMENT_ADDED",
            f"{user.name or 'Someone'} commented on task: {data.get('title')}",
            title="New Comment", task={"task_id": task_id, **data}, from_user_id=user.id,
        )
    return jsonify(task_to_json(ref.get())), 200


@tasks_bp.delete("/<task_id>")
@AuthMiddleware.verify_token
def delete_task(task_id):
    db = get_db()
    user = _current_user()
    ref, doc = _load_task(db, task_id, user.company_id)
    if doc is None:
        return jsonify({"error": "Task not found"}), 404

    assigner_id = ((doc.to_dict() or {}).get("assigned_by") or {}).get("user_id")
    if not user.is_company_admin and assigner_id != user.id:
        return jsonify({"error": "Only the assigner or a company admin can delete this task"}), 403

    ref.delete()
    logger.info("Task %s deleted by %s", task_id, user.id)
    return jsonify({"message": "Task deleted successfully"}), 200
