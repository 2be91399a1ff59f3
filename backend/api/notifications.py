import logging
from datetime import datetime, timezone

from flask import request, jsonify
from google.cloud.firestore_v1.base_query import FieldFilter

from . import notifications_bp
from backend.email_utils import send_email as send_email_util, render_task_email
from backend.firebase_utils import get_db
from backend.middleware.auth_middleware import AuthMiddleware

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = [
    "TASK_ASSIGNED",
    "TASK_UPDATED",
    "TASK_COMPLETED",
    "COMMENT_ADDED",
    "REVIEW_REQUESTED",
    "DEADLINE_APPROACHING",
    "TASK_OVERDUE",
    "MENTION",
    "TASK_REPORT_SUBMITTED",
]

NOTIFICATION_LIMIT = 50


def now_utc():
    return datetime.now(timezone.utc)


def notification_to_json(d):
    data = d.to_dict() or {}
    created_at = data.get("created_at")
    return {
        "notification_id": d.id,
        "user_id": data.get("user_id"),
        "type": data.get("type"),
        "title": data.get("title"),
        "message": data.get("message"),
        "task_id": data.get("task_id"),
        "from_user_id": data.get("from_user_id"),
        "priority": data.get("priority", "medium"),
        "read": data.get("read", False),
        "email_sent": data.get("email_sent", False),
        "created_at": created_at.isoformat() if hasattr(created_at, "isoformat") else created_at,
    }


def create_notification(db, user_id: str, notification_type: str, message: str, title: str = None,
                        task: dict = None, from_user_id: str = None, priority: str = "medium",
                        send_email: bool = False):
    """Create an in-app notification and optionally email the recipient.

    ``task`` is the task body including ``task_id``; it selects the email
    template. Returns the notification document id, or None when there is
    no recipient.
    """
    if not user_id:
        return None
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    notif = {
        "user_id": user_id,
        "type": notification_type,
        "title": title,
        "message": message,
        "task_id": (task or {}).get("task_id"),
        "from_user_id": from_user_id,
        "priority": priority or "medium",
        "read": False,
        "email_sent": False,
        "created_at": now_utc(),
    }
    ref = db.collection("notifications").document()
    ref.set(notif)

    if send_email:
        user_doc = db.collection("users").document(user_id).get()
        user_email = (user_doc.to_dict() or {}).get("email") if user_doc.exists else None
        if user_email:
            subject, body = render_task_email(notification_type, task or {}, title or "", message)
            if send_email_util(user_email, subject, body):
                ref.update({"email_sent": True})

    return ref.id


def notify_safely(db, *args, **kwargs):
    """create_notification that logs instead of failing the surrounding request"""
    try:
        return create_notification(db, *args, **kwargs)
    except Exception as e:
        logger.warning("Failed to create notification: %s", e)
        return None


def _own_notification_or_none(db, notification_id, user_id):
    ref = db.collection("notifications").document(notification_id)
    doc = ref.get()
    if not doc.exists or (doc.to_dict() or {}).get("user_id") != user_id:
        return None, None
    return ref, doc


@notifications_bp.get("")
@AuthMiddleware.verify_token
def get_notifications():
    db = get_db()
    user_id = AuthMiddleware.get_current_user()["user_id"]
    q = db.collection("notifications").where(filter=FieldFilter("user_id", "==", user_id))
    docs = list(q.stream())

    def _key(d):
        v = (d.to_dict() or {}).get("created_at")
        return v.isoformat() if hasattr(v, "isoformat") else (v or "")

    docs.sort(key=_key, reverse=True)
    return jsonify([notification_to_json(d) for d in docs[:NOTIFICATION_LIMIT]]), 200


@notifications_bp.put("/mark-all-read")
@AuthMiddleware.verify_token
def mark_all_as_read():
    db = get_db()
    user_id = AuthMiddleware.get_current_user()["user_id"]
    q = (
        db.collection("notifications")
        .where(filter=FieldFilter("user_id", "==", user_id))
        .where(filter=FieldFilter("read", "==", False))
    )
    updated = 0
    for d in q.stream():
        d.reference.update({"read": True})
        updated += 1
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200


@notifications_bp.put("/<notification_id>/read")
@AuthMiddleware.verify_token
def mark_as_read(notification_id):
    db = get_db()
    user_id = AuthMiddleware.get_current_user()["user_id"]
    ref, doc = _own_notification_or_none(db, notification_id, user_id)
    if ref is None:
        return jsonify({"error": "Notification not found"}), 404
    ref.update({"read": True})
    return jsonify(notification_to_json(ref.get())), 200


@notifications_bp.delete("/<notification_id>")
@AuthMiddleware.verify_token
def delete_notification(notification_id):
    db = get_db()
    user_id = AuthMiddleware.get_current_user()["user_id"]
    ref, _ = _own_notification_or_none(db, notification_id, user_id)
    if ref is None:
        return jsonify({"error": "Notification not found"}), 404
    ref.delete()
    return jsonify({"message": "Notification deleted"}), 200
