"""Firestore-backed read interface for the hierarchy services."""
import functools
import logging
from datetime import datetime
from typing import Dict, List, Optional

from google.api_core import exceptions as gexc
from google.cloud.firestore_v1.base_query import FieldFilter

from backend.models.hierarchy_model import HierarchyLevel
from backend.models.user_model import User
from backend.services.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

USERS = "users"
TASKS = "tasks"
LEVELS = "hierarchy_levels"

# Firestore 'in' filters accept a bounded number of values
IN_QUERY_CHUNK = 10

UNAVAILABLE_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.RetryError,
    ConnectionError,
    TimeoutError,
)


def chunks(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def translate_errors(operation):
    """Re-raise transport failures of the wrapped call as StoreUnavailableError"""
    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except UNAVAILABLE_ERRORS as e:
                logger.error("Firestore unavailable during %s: %s", operation, e)
                raise StoreUnavailableError(operation, e) from e
        return wrapper
    return decorator


class FirestoreStore:
    """Lookups used by HierarchyAuthorizationService and the task workflows"""

    def __init__(self, db):
        self.db = db

    @translate_errors("get_hierarchy_level")
    def get_hierarchy_level(self, level_id: str) -> Optional[HierarchyLevel]:
        if not level_id:
            return None
        doc = self.db.collection(LEVELS).document(level_id).get()
        if not doc.exists:
            return None
        return HierarchyLevel.from_dict(doc.id, doc.to_dict() or {})

    @translate_errors("list_hierarchy_levels")
    def list_hierarchy_levels(self, company_id: str) -> Dict[str, HierarchyLevel]:
        q = self.db.collection(LEVELS).where(filter=FieldFilter("company_id", "==", company_id))
        return {d.id: HierarchyLevel.from_dict(d.id, d.to_dict() or {}) for d in q.stream()}

    @translate_errors("get_user")
    def get_user(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        doc = self.db.collection(USERS).document(user_id).get()
        if not doc.exists:
            return None
        return User.from_dict(doc.id, doc.to_dict() or {})

    @translate_errors("list_users_in_company")
    def list_users_in_company(self, company_id: str) -> List[User]:
        q = self.db.collection(USERS).where(filter=FieldFilter("company_id", "==", company_id))
        return [User.from_dict(d.id, d.to_dict() or {}) for d in q.stream()]

    @translate_errors("count_tasks")
    def count_tasks(self, assigned_to: str, created_after: datetime, created_before: datetime) -> int:
        """Tasks assigned to ``assigned_to`` created within [created_after, created_before]"""
        q = (
            self.db.collection(TASKS)
            .where(filter=FieldFilter("assigned_to.user_id", "==", assigned_to))
            .where(filter=FieldFilter("created_at", ">=", created_after))
            .where(filter=FieldFilter("created_at", "<=", created_before))
        )
        return sum(1 for _ in q.stream())

    @translate_errors("list_tasks")
    def list_tasks(self, predicate) -> list:
        """Task snapshots matching a TaskQueryPredicate"""
        base = self.db.collection(TASKS).where(filter=FieldFilter("company_id", "==", predicate.company_id))
        if predicate.unrestricted:
            return list(base.stream())

        docs_by_id = {}
        for chunk in chunks(sorted(predicate.assignee_ids), IN_QUERY_CHUNK):
            q = base.where(filter=FieldFilter("assigned_to.user_id", "in", chunk))
            for d in q.stream():
                if predicate.matches(d.to_dict() or {}):
                    docs_by_id[d.id] = d
        return list(docs_by_id.values())
