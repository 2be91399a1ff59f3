from datetime import datetime, timezone
from unittest.mock import Mock

from backend.api import auth as auth_module
from backend.api import users as users_module

from .helpers import add_task, auth_headers


def test_profile_includes_level_company_and_manager(client):
    res = client.get("/api/users/profile", headers=auth_headers("alex"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["user_id"] == "alex"
    assert body["company"] == {"company_id": "acme", "name": "Acme"}
    assert body["hierarchy_level"] == {"level_id": "associate", "name": "Associate", "rank": 3}
    assert body["reports_to_user"]["user_id"] == "mike"


def test_update_own_profile(client, db):
    res = client.patch("/api/users/profile", json={"name": "Alexandra", "bio": "Hi", "role": "company_admin"},
                       headers=auth_headers("alex"))
    assert res.status_code == 200
    stored = db.docs("users")["alex"]
    assert stored["name"] == "Alexandra"
    assert stored["bio"] == "Hi"
    assert stored["role"] == "employee"


def test_employees_listing_is_admin_only(client):
    assert client.get("/api/users/employees", headers=auth_headers("mike")).status_code == 403
    res = client.get("/api/users/employees", headers=auth_headers("admin"))
    names = [e["name"] for e in res.get_json()]
    assert names == sorted(names)
    assert "Admin" not in names
    alex = next(e for e in res.get_json() if e["user_id"] == "alex")
    assert alex["hierarchy_level"]["rank"] == 3


def test_admin_assigns_level(client, db):
    res = client.patch("/api/users/nora", json={"hierarchy_level_id": "associate", "reports_to": "mike"},
                       headers=auth_headers("admin"))
    assert res.status_code == 200
    stored = db.docs("users")["nora"]
    assert stored["hierarchy_level_id"] == "associate"
    assert stored["reports_to"] == "mike"


def test_level_reassignment_changes_visibility(client, db):
    add_task(db, "alex", datetime.now(timezone.utc), assigner="mike")
    before = client.get("/api/tasks/hierarchy", headers=auth_headers("mike")).get_json()
    assert len(before) == 1

    client.patch("/api/users/alex", json={"hierarchy_level_id": "director"}, headers=auth_headers("admin"))
    after = client.get("/api/tasks/hierarchy", headers=auth_headers("mike")).get_json()
    assert after == []


def test_level_from_other_company_rejected(client):
    res = client.patch("/api/users/nora", json={"hierarchy_level_id": "globex-boss"}, headers=auth_headers("admin"))
    assert res.status_code == 400


def test_employee_cannot_change_own_level(client, db):
    res = client.patch("/api/users/alex", json={"hierarchy_level_id": "director", "name": "Alex B"},
                       headers=auth_headers("alex"))
    assert res.status_code == 200
    stored = db.docs("users")["alex"]
    assert stored["hierarchy_level_id"] == "associate"
    assert stored["name"] == "Alex B"


def test_cannot_edit_other_user(client):
    res = client.patch("/api/users/mona", json={"name": "Nope"}, headers=auth_headers("mike"))
    assert res.status_code == 403


def test_duplicate_email(client):
    res = client.patch("/api/users/alex", json={"email": "mike@example.com"}, headers=auth_headers("alex"))
    assert res.status_code == 409


def test_email_change_updates_auth(client, db, monkeypatch):
    update_user = Mock()
    monkeypatch.setattr(users_module.auth, "update_user", update_user)
    res = client.patch("/api/users/alex", json={"email": "alex.b@example.com"}, headers=auth_headers("alex"))
    assert res.status_code == 200
    update_user.assert_called_once_with("alex", email="alex.b@example.com")
    assert db.docs("users")["alex"]["email"] == "alex.b@example.com"


def test_change_password(client, monkeypatch):
    monkeypatch.setattr(users_module, "sign_in_with_password", lambda email, pw: ({"localId": "alex"}, None))
    update_user = Mock()
    monkeypatch.setattr(users_module.auth, "update_user", update_user)
    res = client.patch("/api/users/profile/password", json={"currentPassword": "old-pass", "newPassword": "new-pass"},
                       headers=auth_headers("alex"))
    assert res.status_code == 200
    update_user.assert_called_once_with("alex", password="new-pass")


def test_change_password_wrong_current(client, monkeypatch):
    monkeypatch.setattr(users_module, "sign_in_with_password", lambda email, pw: (None, "Invalid credentials"))
    res = client.patch("/api/users/profile/password", json={"currentPassword": "bad", "newPassword": "new-pass"},
                       headers=auth_headers("alex"))
    assert res.status_code == 400


def test_sign_in_uses_configured_key(app, monkeypatch):
    response = Mock(ok=True)
    response.json.return_value = {"localId": "alex", "idToken": "tok"}
    post = Mock(return_value=response)
    monkeypatch.setattr(auth_module.requests, "post", post)
    with app.app_context():
        data, error = auth_module.sign_in_with_password("alex@example.com", "pw")
    assert error is None
    assert data["idToken"] == "tok"
    assert post.call_args[0][0].endswith("?key=test-key")
