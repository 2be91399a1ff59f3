"""Seed data builders shared by the unit tests."""
from datetime import datetime, timezone

COMPANY = "acme"
OTHER_COMPANY = "globex"

SEEDED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def user_doc(name, role="employee", company_id=COMPANY, level_id=None, reports_to=None):
    return {
        "user_id": name,
        "name": name.title(),
        "email": f"{name}@example.com",
        "role": role,
        "company_id": company_id,
        "hierarchy_level_id": level_id,
        "reports_to": reports_to,
        "created_at": SEEDED_AT,
        "updated_at": SEEDED_AT,
    }


def level_doc(name, rank, quota, company_id=COMPANY, reports_to=None, departments=None):
    return {
        "company_id": company_id,
        "name": name,
        "rank": rank,
        "max_tasks_per_day": quota,
        "reports_to_level_id": reports_to,
        "department_scope": departments or [],
        "permissions": {},
    }


def add_task(db, assignee, created_at, company_id=COMPANY, assigner="dana", **extra):
    data = {
        "title": f"Task for {assignee}",
        "description": "Seeded",
        "company_id": company_id,
        "assigned_to": {"user_id": assignee, "name": assignee.title(), "email": f"{assignee}@example.com"},
        "assigned_by": {"user_id": assigner, "name": assigner.title(), "email": f"{assigner}@example.com"},
        "status": "pending",
        "priority": "medium",
        "category": "ops",
        "created_at": created_at,
        "updated_at": created_at,
    }
    data.update(extra)
    return db.add("tasks", data)


def auth_headers(uid):
    # The test app accepts the caller's uid as its bearer token
    return {"Authorization": f"Bearer {uid}"}
