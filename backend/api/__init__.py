from flask import Blueprint

# Core blueprints
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")
hierarchy_bp = Blueprint("hierarchy", __name__, url_prefix="/api/hierarchy")
users_bp = Blueprint("users", __name__, url_prefix="/api/users")
tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")
notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")

# Import modules so routes attach
from . import auth  # noqa
from . import companies  # noqa
from . import hierarchy  # noqa
from . import users  # noqa
from . import tasks  # noqa
from . import notifications  # noqa

__all__ = [
    "auth_bp",
    "companies_bp",
    "hierarchy_bp",
    "users_bp",
    "tasks_bp",
    "notifications_bp",
]
