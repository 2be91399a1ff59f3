from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

DEPARTMENTS = ['IT', 'HR', 'Finance', 'Operations', 'Marketing', 'Sales']

PERMISSION_FLAGS = [
    'can_create_tasks',
    'can_assign_tasks',
    'can_edit_tasks',
    'can_delete_tasks',
    'can_view_reports',
    'can_manage_users',
]

DEFAULT_MAX_TASKS_PER_DAY = 10


def default_permissions() -> Dict[str, bool]:
    return {flag: False for flag in PERMISSION_FLAGS}


def _as_int(value, default=None) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class HierarchyLevel:
    """One organizational level of a company.

    Lower ``rank`` means more authority: rank 1 outranks rank 2.
    """
    id: str
    company_id: str
    name: str
    rank: Optional[int]
    max_tasks_per_day: int = DEFAULT_MAX_TASKS_PER_DAY
    reports_to_level_id: Optional[str] = None
    department_scope: List[str] = field(default_factory=list)
    permissions: Dict[str, bool] = field(default_factory=default_permissions)
    created_at: Any = None
    updated_at: Any = None

    def outranks(self, other: "HierarchyLevel") -> bool:
        """True if this level sits strictly above ``other``"""
        return self.rank < other.rank

    @property
    def has_valid_rank(self) -> bool:
        """Stored documents may lack a usable rank; such levels never resolve"""
        return self.rank is not None and self.rank >= 1

    @classmethod
    def from_dict(cls, level_id: str, data: Dict[str, Any]) -> "HierarchyLevel":
        permissions = default_permissions()
        permissions.update(data.get('permissions') or {})
        return cls(
            id=level_id,
            company_id=data.get('company_id'),
            name=data.get('name', ''),
            rank=_as_int(data.get('rank')),
            max_tasks_per_day=_as_int(data.get('max_tasks_per_day'), DEFAULT_MAX_TASKS_PER_DAY),
            reports_to_level_id=data.get('reports_to_level_id'),
            department_scope=list(data.get('department_scope') or []),
            permissions=permissions,
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Firestore document body (the id lives on the document itself)"""
        return {
            'company_id': self.company_id,
            'name': self.name,
            'rank': self.rank,
            'max_tasks_per_day': self.max_tasks_per_day,
            'reports_to_level_id': self.reports_to_level_id,
            'department_scope': list(self.department_scope),
            'permissions': dict(self.permissions),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
