from dataclasses import dataclass
from typing import Dict, Any, Optional

ROLE_SUPER_ADMIN = 'super_admin'
ROLE_COMPANY_ADMIN = 'company_admin'
ROLE_EMPLOYEE = 'employee'

VALID_ROLES = [ROLE_SUPER_ADMIN, ROLE_COMPANY_ADMIN, ROLE_EMPLOYEE]


@dataclass
class User:
    """A user profile as the hierarchy services see it"""
    id: str
    company_id: Optional[str]
    role: str
    name: str = ''
    email: str = ''
    hierarchy_level_id: Optional[str] = None
    reports_to: Optional[str] = None

    @property
    def is_company_admin(self) -> bool:
        return self.role == ROLE_COMPANY_ADMIN

    @classmethod
    def from_dict(cls, user_id: str, data: Dict[str, Any]) -> "User":
        return cls(
            id=user_id,
            company_id=data.get('company_id'),
            role=data.get('role') or ROLE_EMPLOYEE,
            name=data.get('name', ''),
            email=data.get('email', ''),
            hierarchy_level_id=data.get('hierarchy_level_id'),
            reports_to=data.get('reports_to'),
        )


def user_ref(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Embedded {user_id, name, email} reference stored on tasks"""
    data = data or {}
    return {
        'user_id': user_id,
        'name': data.get('name'),
        'email': data.get('email'),
    }


def public_profile(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data or {})
    data['user_id'] = user_id
    for key in ('created_at', 'updated_at'):
        value = data.get(key)
        if hasattr(value, 'isoformat'):
            data[key] = value.isoformat()
    return data
