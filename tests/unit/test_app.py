from unittest.mock import MagicMock

from backend import email_utils
from backend.app import create_app
from backend.config.settings import Settings
from backend.firebase_utils import get_hierarchy_service, get_store
from backend.services.firestore_store import FirestoreStore
from backend.services.hierarchy_service import HierarchyAuthorizationService

from .fakes import FakeFirestore


def test_health(client):
    res = client.get("/")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_unknown_route_is_json_404(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.get_json()["code"] == "NOT_FOUND"


def test_invalid_bearer_token(app, client, monkeypatch):
    from backend.middleware import auth_middleware

    def reject(token):
        raise ValueError("bad token")

    monkeypatch.setattr(auth_middleware.firebase_auth, "verify_id_token", reject)
    res = client.get("/api/tasks", headers={"Authorization": "Bearer junk"})
    assert res.status_code == 401


def test_token_for_deleted_profile(client):
    res = client.get("/api/tasks", headers={"Authorization": "Bearer ghost"})
    assert res.status_code == 401


def test_services_are_injected_per_app():
    db = FakeFirestore()
    app = create_app(db=db)
    with app.app_context():
        assert isinstance(get_store(), FirestoreStore)
        assert get_store().db is db
        assert isinstance(get_hierarchy_service(), HierarchyAuthorizationService)
        assert get_hierarchy_service().store is get_store()


def test_config_override():
    app = create_app(db=FakeFirestore(), config={"FIREBASE_WEB_API_KEY": "abc"})
    assert app.config["FIREBASE_WEB_API_KEY"] == "abc"
    assert app.config["DEFAULT_MAX_TASKS_PER_DAY"] == Settings.DEFAULT_MAX_TASKS_PER_DAY


def test_send_email_skipped_without_smtp():
    assert email_utils.send_email("a@example.com", "s", "b") is False


def test_send_email_uses_smtp(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_USER", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "pw")
    server = MagicMock()
    smtp = MagicMock()
    smtp.return_value.__enter__.return_value = server
    monkeypatch.setattr(email_utils.smtplib, "SMTP", smtp)

    assert email_utils.send_email("a@example.com", "Subject", "Body") is True
    smtp.assert_called_once_with("smtp.example.com", 587, timeout=10)
    server.login.assert_called_once_with("mailer", "pw")
    sent = server.send_message.call_args[0][0]
    assert sent["To"] == "a@example.com"
