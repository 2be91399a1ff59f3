from unittest.mock import Mock

import pytest

from backend.api import notifications as notifications_module
from backend.email_utils import render_task_email

from .helpers import auth_headers


@pytest.fixture
def inbox(db):
    ids = [
        notifications_module.create_notification(db, "alex", "TASK_ASSIGNED", "First", title="t1"),
        notifications_module.create_notification(db, "alex", "TASK_UPDATED", "Second", title="t2"),
        notifications_module.create_notification(db, "mike", "TASK_COMPLETED", "Mine", title="t3"),
    ]
    return ids


def test_list_own_notifications(client, inbox):
    res = client.get("/api/notifications", headers=auth_headers("alex"))
    assert res.status_code == 200
    messages = sorted(n["message"] for n in res.get_json())
    assert messages == ["First", "Second"]


def test_mark_as_read(client, db, inbox):
    res = client.put(f"/api/notifications/{inbox[0]}/read", headers=auth_headers("alex"))
    assert res.status_code == 200
    assert res.get_json()["read"] is True


def test_cannot_touch_someone_elses_notification(client, db, inbox):
    assert client.put(f"/api/notifications/{inbox[2]}/read", headers=auth_headers("alex")).status_code == 404
    assert client.delete(f"/api/notifications/{inbox[2]}", headers=auth_headers("alex")).status_code == 404
    assert inbox[2] in db.docs("notifications")


def test_mark_all_read(client, db, inbox):
    res = client.put("/api/notifications/mark-all-read", headers=auth_headers("alex"))
    assert res.get_json()["updated"] == 2
    states = {k: v["read"] for k, v in db.docs("notifications").items()}
    assert states == {inbox[0]: True, inbox[1]: True, inbox[2]: False}


def test_delete(client, db, inbox):
    res = client.delete(f"/api/notifications/{inbox[0]}", headers=auth_headers("alex"))
    assert res.status_code == 200
    assert inbox[0] not in db.docs("notifications")


def test_unknown_type_is_rejected(db):
    with pytest.raises(ValueError):
        notifications_module.create_notification(db, "alex", "PARTY", "hi")


def test_notify_safely_swallows_failures(db, caplog):
    assert notifications_module.notify_safely(db, "alex", "PARTY", "hi") is None
    assert "Failed to create notification" in caplog.text


def test_email_sent_flag(db, monkeypatch):
    send = Mock(return_value=True)
    monkeypatch.setattr(notifications_module, "send_email_util", send)
    task = {"task_id": "t1", "title": "Fix it", "priority": "high", "description": "d"}
    notif_id = notifications_module.create_notification(
        db, "alex", "TASK_ASSIGNED", "Assigned", task=task, send_email=True
    )
    to, subject, body = send.call_args[0]
    assert to == "alex@example.com"
    assert subject == "New Task Assigned: Fix it"
    assert "/tasks/t1" in body
    assert db.docs("notifications")[notif_id]["email_sent"] is True


def test_generic_email_template():
    subject, body = render_task_email("MENTION", {}, "", "You were mentioned")
    assert subject == "Mention"
    assert body == "You were mentioned"
