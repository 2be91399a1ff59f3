"""
Centralized Input Validation Service
Turns loosely-typed request bodies into explicit input records
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
import re

from backend.models.hierarchy_model import DEPARTMENTS, PERMISSION_FLAGS, DEFAULT_MAX_TASKS_PER_DAY
from backend.models.task_model import TASK_PRIORITIES, TASK_STATUSES
from backend.models.user_model import VALID_ROLES


@dataclass
class CreateTaskInput:
    title: str
    description: str
    assigned_to_id: str
    due_date: datetime
    category: str
    estimated_hours: float
    priority: str = 'medium'
    subtasks: List[Dict[str, Any]] = field(default_factory=list)
    reviewers: List[str] = field(default_factory=list)


@dataclass
class HierarchyLevelInput:
    name: str
    rank: int
    max_tasks_per_day: int = DEFAULT_MAX_TASKS_PER_DAY
    reports_to_level_id: Optional[str] = None
    department_scope: List[str] = field(default_factory=list)
    permissions: Dict[str, bool] = field(default_factory=dict)


@dataclass
class RegisterInput:
    email: str
    password: str
    name: str
    role: str
    company_id: Optional[str] = None


class ValidationService:
    """Centralized validation service for all inputs"""

    # Constants
    MIN_PASSWORD_LENGTH = 6
    MAX_PASSWORD_LENGTH = 128
    MIN_NAME_LENGTH = 2
    MAX_NAME_LENGTH = 100
    MIN_TASK_TITLE_LENGTH = 3
    MAX_TASK_TITLE_LENGTH = 200
    MAX_TASK_DESCRIPTION_LENGTH = 5000

    @staticmethod
    def validate_email(email: str) -> Dict[str, Any]:
        """Validate email format with detailed error message"""
        if not email or not isinstance(email, str):
            return {'valid': False, 'error': 'Email is required'}

        email = email.strip().lower()
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

        if not re.match(pattern, email):
            return {'valid': False, 'error': 'Invalid email format'}

        if len(email) > 254:  # RFC 5321 limit
            return {'valid': False, 'error': 'Email is too long'}

        return {'valid': True, 'value': email}

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        if not password or not isinstance(password, str):
            return {'valid': False, 'error': 'Password is required'}

        if len(password) < ValidationService.MIN_PASSWORD_LENGTH:
            return {'valid': False, 'error': f'Password must be at least {ValidationService.MIN_PASSWORD_LENGTH} characters'}

        if len(password) > ValidationService.MAX_PASSWORD_LENGTH:
            return {'valid': False, 'error': f'Password must be less than {ValidationService.MAX_PASSWORD_LENGTH} characters'}

        return {'valid': True, 'value': password}

    @staticmethod
    def validate_name(name: str) -> Dict[str, Any]:
        if not name or not isinstance(name, str):
            return {'valid': False, 'error': 'Name is required'}

        name = name.strip()

        if len(name) < ValidationService.MIN_NAME_LENGTH:
            return {'valid': False, 'error': f'Name must be at least {ValidationService.MIN_NAME_LENGTH} characters'}

        if len(name) > ValidationService.MAX_NAME_LENGTH:
            return {'valid': False, 'error': f'Name must be less than {ValidationService.MAX_NAME_LENGTH} characters'}

        return {'valid': True, 'value': name}

    @staticmethod
    def validate_role(role: str) -> Dict[str, Any]:
        if not role or not isinstance(role, str):
            return {'valid': False, 'error': 'Role is required'}

        role = role.strip().lower()

        if role not in VALID_ROLES:
            return {'valid': False, 'error': 'Invalid role'}

        return {'valid': True, 'value': role}

    @staticmethod
    def validate_status(status: str) -> Dict[str, Any]:
        if not status or not isinstance(status, str):
            return {'valid': False, 'error': 'Status is required'}

        status = status.strip().lower()

        if status not in TASK_STATUSES:
            return {'valid': False, 'error': f'Status must be one of: {", ".join(TASK_STATUSES)}'}

        return {'valid': True, 'value': status}

    @staticmethod
    def validate_priority(priority: str) -> Dict[str, Any]:
        if not isinstance(priority, str) or priority.strip().lower() not in TASK_PRIORITIES:
            return {'valid': False, 'error': f'Priority must be one of: {", ".join(TASK_PRIORITIES)}'}
        return {'valid': True, 'value': priority.strip().lower()}

    @staticmethod
    def validate_datetime(value: Any, label: str = 'Date') -> Dict[str, Any]:
        """Parse an ISO-8601 string; naive values are taken as UTC"""
        if not value or not isinstance(value, str):
            return {'valid': False, 'error': f'{label} is required'}
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return {'valid': False, 'error': f'{label} must be an ISO-8601 date'}
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return {'valid': True, 'value': parsed}

    @staticmethod
    def validate_non_negative_int(value: Any, label: str) -> Dict[str, Any]:
        if isinstance(value, bool):
            return {'valid': False, 'error': f'{label} must be a whole number'}
        try:
            number = int(value)
        except (ValueError, TypeError):
            return {'valid': False, 'error': f'{label} must be a whole number'}
        if number != value and str(number) != str(value).strip():
            return {'valid': False, 'error': f'{label} must be a whole number'}
        if number < 0:
            return {'valid': False, 'error': f'{label} must not be negative'}
        return {'valid': True, 'value': number}

    @staticmethod
    def validate_departments(departments: Any) -> Dict[str, Any]:
        if departments is None:
            return {'valid': True, 'value': []}
        if not isinstance(departments, list):
            return {'valid': False, 'error': 'department_scope must be a list'}
        unknown = [d for d in departments if d not in DEPARTMENTS]
        if unknown:
            return {'valid': False, 'error': f'Unknown departments: {", ".join(map(str, unknown))}'}
        return {'valid': True, 'value': list(dict.fromkeys(departments))}

    @staticmethod
    def validate_permissions(permissions: Any) -> Dict[str, Any]:
        if permissions is None:
            return {'valid': True, 'value': {}}
        if not isinstance(permissions, dict):
            return {'valid': False, 'error': 'permissions must be an object'}
        unknown = [k for k in permissions if k not in PERMISSION_FLAGS]
        if unknown:
            return {'valid': False, 'error': f'Unknown permissions: {", ".join(unknown)}'}
        return {'valid': True, 'value': {k: bool(v) for k, v in permissions.items()}}

    @staticmethod
    def validate_task_data(task_data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a task creation body into a CreateTaskInput"""
        errors = []

        title = (task_data.get('title') or '').strip() if isinstance(task_data.get('title'), str) else ''
        if len(title) < ValidationService.MIN_TASK_TITLE_LENGTH:
            errors.append(f'Task title must be at least {ValidationService.MIN_TASK_TITLE_LENGTH} characters')
        elif len(title) > ValidationService.MAX_TASK_TITLE_LENGTH:
            errors.append(f'Task title must be less than {ValidationService.MAX_TASK_TITLE_LENGTH} characters')

        description = task_data.get('description')
        if not isinstance(description, str) or not description.strip():
            errors.append('Task description is required')
        elif len(description) > ValidationService.MAX_TASK_DESCRIPTION_LENGTH:
            errors.append('Task description is too long')

        assigned_to_id = task_data.get('assigned_to_id') or task_data.get('assigned_to')
        if not isinstance(assigned_to_id, str) or not assigned_to_id.strip():
            errors.append('assigned_to_id is required')

        due = ValidationService.validate_datetime(task_data.get('due_date'), 'Due date')
        if not due['valid']:
            errors.append(due['error'])

        category = task_data.get('category')
        if not isinstance(category, str) or not category.strip():
            errors.append('Category is required')

        estimated_hours = task_data.get('estimated_hours')
        try:
            estimated_hours = float(estimated_hours)
            if estimated_hours < 0:
                errors.append('Estimated hours must not be negative')
        except (ValueError, TypeError):
            errors.append('Estimated hours must be a number')

        priority = ValidationService.validate_priority(task_data.get('priority') or 'medium')
        if not priority['valid']:
            errors.append(priority['error'])

        subtasks = []
        for s in task_data.get('subtasks') or []:
            if not isinstance(s, dict):
                continue
            st_title = (s.get('title') or '').strip()
            if not st_title:
                continue
            subtasks.append({'title': st_title, 'completed': False, 'due_date': s.get('due_date')})

        reviewers = []
        for r in task_data.get('reviewers') or []:
            reviewer_id = r.get('user') if isinstance(r, dict) else r
            if isinstance(reviewer_id, str) and reviewer_id.strip():
                reviewers.append(reviewer_id.strip())

        if errors:
            return {'valid': False, 'errors': errors}

        return {'valid': True, 'data': CreateTaskInput(
            title=title,
            description=description.strip(),
            assigned_to_id=assigned_to_id.strip(),
            due_date=due['value'],
            category=category.strip(),
            estimated_hours=estimated_hours,
            priority=priority['value'],
            subtasks=subtasks,
            reviewers=reviewers,
        )}

    @staticmethod
    def validate_level_data(level_data: Dict[str, Any],
                            default_max_tasks: int = DEFAULT_MAX_TASKS_PER_DAY) -> Dict[str, Any]:
        """Validate a hierarchy level creation body into a HierarchyLevelInput.

        ``default_max_tasks`` applies when the body has no ``max_tasks_per_day``.
        """
        errors = []

        name = level_data.get('name')
        if not isinstance(name, str) or not name.strip():
            errors.append('Level name is required')

        rank = ValidationService.validate_non_negative_int(level_data.get('rank', level_data.get('level')), 'Rank')
        if not rank['valid']:
            errors.append(rank['error'])
        elif rank['value'] < 1:
            errors.append('Rank must be at least 1')

        max_tasks = ValidationService.validate_non_negative_int(
            level_data.get('max_tasks_per_day', default_max_tasks), 'max_tasks_per_day'
        )
        if not max_tasks['valid']:
            errors.append(max_tasks['error'])

        departments = ValidationService.validate_departments(level_data.get('department_scope'))
        if not departments['valid']:
            errors.append(departments['error'])

        permissions = ValidationService.validate_permissions(level_data.get('permissions'))
        if not permissions['valid']:
            errors.append(permissions['error'])

        reports_to = level_data.get('reports_to_level_id') or level_data.get('reports_to') or None
        if reports_to is not None and not isinstance(reports_to, str):
            errors.append('reports_to_level_id must be a string')

        if errors:
            return {'valid': False, 'errors': errors}

        return {'valid': True, 'data': HierarchyLevelInput(
            name=name.strip(),
            rank=rank['value'],
            max_tasks_per_day=max_tasks['value'],
            reports_to_level_id=reports_to,
            department_scope=departments['value'],
            permissions=permissions['value'],
        )}

    @staticmethod
    def validate_user_data(user_data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a registration body into a RegisterInput"""
        errors = []
        validated_data = {}

        for key, validator in (
            ('email', ValidationService.validate_email),
            ('password', ValidationService.validate_password),
            ('name', ValidationService.validate_name),
            ('role', ValidationService.validate_role),
        ):
            result = validator(user_data.get(key, ''))
            if not result['valid']:
                errors.append(result['error'])
            else:
                validated_data[key] = result['value']

        company_id = user_data.get('company_id') or user_data.get('company')
        if validated_data.get('role') not in (None, 'super_admin') and not company_id:
            errors.append('company_id is required for this role')

        if errors:
            return {'valid': False, 'errors': errors}

        if validated_data['role'] == 'super_admin':
            company_id = None
        return {'valid': True, 'data': RegisterInput(company_id=company_id, **validated_data)}
