from typing import Dict, Any

TASK_STATUSES = ['pending', 'in_progress', 'under_review', 'completed']
TASK_PRIORITIES = ['low', 'medium', 'high']

# History actions
TASK_CREATED = 'TASK_CREATED'
STATUS_UPDATED = 'STATUS_UPDATED'
TASK_UPDATED = 'TASK_UPDATED'
REPORT_SUBMITTED = 'REPORT_SUBMITTED'


def _iso(value):
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return value


def _iso_items(items, *keys):
    out = []
    for item in items or []:
        item = dict(item)
        for key in keys:
            if key in item:
                item[key] = _iso(item[key])
        out.append(item)
    return out


def task_to_json(d) -> Dict[str, Any]:
    data = d.to_dict() or {}
    return {
        "task_id": d.id,
        "title": data.get("title"),
        "description": data.get("description"),
        "company_id": data.get("company_id"),
        "status": data.get("status", "pending"),
        "priority": data.get("priority", "medium"),
        "due_date": _iso(data.get("due_date")),
        "category": data.get("category"),
        "estimated_hours": data.get("estimated_hours"),
        "actual_hours": data.get("actual_hours"),
        "assigned_to": data.get("assigned_to"),
        "assigned_by": data.get("assigned_by"),
        "subtasks": data.get("subtasks", []),
        "reviewers": data.get("reviewers", []),
        "updates": _iso_items(data.get("updates"), "timestamp"),
        "reports": _iso_items(data.get("reports"), "reported_at"),
        "comments": _iso_items(data.get("comments"), "created_at"),
        "history": _iso_items(data.get("history"), "timestamp"),
        "created_at": _iso(data.get("created_at")),
        "updated_at": _iso(data.get("updated_at")),
    }
