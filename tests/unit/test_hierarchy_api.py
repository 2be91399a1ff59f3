import pytest

from .helpers import COMPANY, auth_headers


class TestCreateLevel:
    def test_admin_creates_level(self, client, db):
        res = client.post("/api/hierarchy", json={
            "name": "Intern", "rank": 4, "max_tasks_per_day": 3,
            "reports_to_level_id": "associate", "department_scope": ["Sales"],
            "permissions": {"can_create_tasks": True},
        }, headers=auth_headers("admin"))
        assert res.status_code == 201
        body = res.get_json()
        assert body["company_id"] == COMPANY
        assert body["permissions"]["can_create_tasks"] is True
        assert body["permissions"]["can_manage_users"] is False
        assert db.docs("hierarchy_levels")[body["level_id"]]["rank"] == 4

    def test_default_quota_comes_from_config(self, app, client, db):
        app.config["DEFAULT_MAX_TASKS_PER_DAY"] = 3
        res = client.post("/api/hierarchy", json={"name": "Intern", "rank": 4}, headers=auth_headers("admin"))
        assert res.status_code == 201
        body = res.get_json()
        assert body["max_tasks_per_day"] == 3
        assert db.docs("hierarchy_levels")[body["level_id"]]["max_tasks_per_day"] == 3

    def test_employee_cannot_create(self, client):
        res = client.post("/api/hierarchy", json={"name": "X", "rank": 4}, headers=auth_headers("dana"))
        assert res.status_code == 403

    def test_parent_must_outrank(self, client):
        res = client.post("/api/hierarchy", json={
            "name": "Peer", "rank": 2, "reports_to_level_id": "manager",
        }, headers=auth_headers("admin"))
        assert res.status_code == 400
        assert res.get_json()["code"] == "VALIDATION_ERROR"

    def test_parent_from_other_company(self, client):
        res = client.post("/api/hierarchy", json={
            "name": "Spy", "rank": 5, "reports_to_level_id": "globex-boss",
        }, headers=auth_headers("admin"))
        assert res.status_code == 400

    @pytest.mark.parametrize("body", [
        {"rank": 2},
        {"name": "X", "rank": 0},
        {"name": "X", "rank": 2, "max_tasks_per_day": -1},
        {"name": "X", "rank": 2, "department_scope": ["Legal"]},
    ])
    def test_invalid_body(self, client, body):
        res = client.post("/api/hierarchy", json=body, headers=auth_headers("admin"))
        assert res.status_code == 400


class TestListLevels:
    def test_sorted_by_rank_with_parent(self, client):
        res = client.get("/api/hierarchy", headers=auth_headers("alex"))
        assert res.status_code == 200
        levels = res.get_json()
        assert [lv["name"] for lv in levels] == ["Director", "Manager", "Associate"]
        assert levels[0]["reports_to"] is None
        assert levels[2]["reports_to"] == {"level_id": "manager", "name": "Manager", "rank": 2}


class TestUpdateLevel:
    def test_update_quota_and_name(self, client, db):
        res = client.put("/api/hierarchy/associate", json={"name": "Analyst", "max_tasks_per_day": 0},
                         headers=auth_headers("admin"))
        assert res.status_code == 200
        stored = db.docs("hierarchy_levels")["associate"]
        assert stored["name"] == "Analyst"
        assert stored["max_tasks_per_day"] == 0
        assert stored["rank"] == 3
        assert stored["reports_to_level_id"] == "manager"

    def test_quota_edit_takes_effect_immediately(self, client):
        client.put("/api/hierarchy/associate", json={"max_tasks_per_day": 0}, headers=auth_headers("admin"))
        res = client.post("/api/tasks", json={
            "title": "Something", "description": "d", "assigned_to_id": "alex",
            "due_date": "2030-01-01T00:00:00Z", "category": "c", "estimated_hours": 1,
        }, headers=auth_headers("mike"))
        assert res.status_code == 400

    def test_rank_change_cannot_strand_children(self, client):
        res = client.put("/api/hierarchy/manager", json={"rank": 3}, headers=auth_headers("admin"))
        assert res.status_code == 400

    def test_cycle_rejected(self, client):
        res = client.put("/api/hierarchy/director", json={"rank": 9, "reports_to_level_id": "associate"},
                         headers=auth_headers("admin"))
        assert res.status_code == 400

    def test_other_company_level(self, client):
        res = client.put("/api/hierarchy/globex-boss", json={"name": "Mine"}, headers=auth_headers("admin"))
        assert res.status_code == 403

    def test_missing_level(self, client):
        res = client.put("/api/hierarchy/nope", json={"name": "Mine"}, headers=auth_headers("admin"))
        assert res.status_code == 404
