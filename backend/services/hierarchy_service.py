"""
Hierarchy Authorization Service
Decides who may assign work to whom, enforces the per-level daily task quota
and scopes task listings to a user's reporting chain.

The service holds no state of its own. Every call reads the store as it is
at call time so that decisions always follow the latest hierarchy edits.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

from backend.models.hierarchy_model import HierarchyLevel
from backend.models.user_model import User
from backend.services.errors import HierarchyValidationError, NotFoundError

logger = logging.getLogger(__name__)


def local_day_bounds(as_of: datetime) -> Tuple[datetime, datetime]:
    """Return the server-local [start, end] of the calendar day containing ``as_of``.

    Naive datetimes are read as server-local time. ``end`` is one microsecond
    before the next local midnight, so both bounds are inclusive and a task
    created exactly at midnight falls into the day that starts there.
    """
    local = as_of.astimezone()
    day_start = datetime(local.year, local.month, local.day)
    start = day_start.astimezone()
    end = (day_start + timedelta(days=1)).astimezone() - timedelta(microseconds=1)
    return start, end


@dataclass(frozen=True)
class TaskQueryPredicate:
    """Scope of tasks a user is allowed to list.

    ``unrestricted`` matches every task of ``company_id``; otherwise only tasks
    assigned to one of ``assignee_ids`` (inside the same company) match.
    """
    company_id: Optional[str]
    unrestricted: bool = False
    assignee_ids: FrozenSet[str] = field(default_factory=frozenset)

    def matches(self, task: Dict[str, Any]) -> bool:
        if task.get("company_id") != self.company_id:
            return False
        if self.unrestricted:
            return True
        assignee = (task.get("assigned_to") or {}).get("user_id")
        return assignee in self.assignee_ids


class HierarchyAuthorizationService:
    """Assignment, quota and visibility rules over a hierarchy store.

    The store must provide ``get_hierarchy_level``, ``get_user``,
    ``count_tasks`` and ``list_users_in_company``. Lookups that find nothing
    return ``None``; a store that cannot be reached raises
    ``StoreUnavailableError``, which propagates to the caller.
    """

    def __init__(self, store):
        self.store = store

    def _resolve_level(self, level_id: Optional[str], company_id: Optional[str]) -> Optional[HierarchyLevel]:
        if not level_id:
            return None
        level = self.store.get_hierarchy_level(level_id)
        if level is None:
            return None
        if not level.has_valid_rank:
            logger.warning("Hierarchy level %s has no usable rank (%r)", level_id, level.rank)
            return None
        if company_id is not None and level.company_id != company_id:
            return None
        return level

    def can_assign(self, assigner_level_id: str, assignee_level_id: str, company_id: str = None) -> bool:
        """True iff both levels resolve inside ``company_id`` and the assigner strictly outranks the assignee.

        A level that is missing or belongs to another company means "no".
        """
        assigner = self._resolve_level(assigner_level_id, company_id)
        assignee = self._resolve_level(assignee_level_id, company_id)
        if assigner is None or assignee is None:
            logger.info(
                "Assignment denied: unresolved level (assigner=%s, assignee=%s, company=%s)",
                assigner_level_id, assignee_level_id, company_id,
            )
            return False
        if assigner.company_id != assignee.company_id:
            return False
        return assigner.outranks(assignee)

    def check_daily_quota(
        self,
        assignee_user_id: str,
        assignee_level: Union[HierarchyLevel, str],
        as_of: datetime = None,
    ) -> bool:
        """True while the assignee has received fewer than ``max_tasks_per_day`` tasks today."""
        if not isinstance(assignee_level, HierarchyLevel):
            assignee_level = self._resolve_level(assignee_level, None)
            if assignee_level is None:
                return False

        limit = assignee_level.max_tasks_per_day
        if limit <= 0:
            return False

        start, end = local_day_bounds(as_of or datetime.now())
        count = self.store.count_tasks(assignee_user_id, start, end)
        if count >= limit:
            logger.info("Daily quota reached for %s (%d/%d)", assignee_user_id, count, limit)
            return False
        return True

    def visible_task_filter(self, requesting_user_id: str) -> TaskQueryPredicate:
        """Build the listing scope for ``requesting_user_id``.

        Raises NotFoundError when the requesting user does not exist.
        """
        user = self.store.get_user(requesting_user_id)
        if user is None:
            raise NotFoundError("User", requesting_user_id)

        if user.is_company_admin:
            return TaskQueryPredicate(company_id=user.company_id, unrestricted=True)

        visible = {user.id}
        own_level = self._resolve_level(user.hierarchy_level_id, user.company_id)
        if own_level is not None:
            visible.update(
                u.id for u in self.subordinates_of(own_level, self.store.list_users_in_company(user.company_id))
            )
        return TaskQueryPredicate(company_id=user.company_id, assignee_ids=frozenset(visible))

    def subordinates_of(self, level: HierarchyLevel, users: Iterable[User]):
        """Users whose level rank is strictly greater than ``level.rank``"""
        ranks: Dict[str, Optional[int]] = {}
        for other in users:
            level_id = other.hierarchy_level_id
            if not level_id:
                continue
            if level_id not in ranks:
                other_level = self._resolve_level(level_id, level.company_id)
                ranks[level_id] = other_level.rank if other_level else None
            rank = ranks[level_id]
            if rank is not None and rank > level.rank:
                yield other

    def can_access_task(self, user: User, task: Dict[str, Any]) -> bool:
        """Whether ``user`` may read or update a single task"""
        if task.get("company_id") != user.company_id:
            return False
        if user.is_company_admin:
            return True
        assignee_id = (task.get("assigned_to") or {}).get("user_id")
        if assignee_id == user.id:
            return True

        own_level = self._resolve_level(user.hierarchy_level_id, user.company_id)
        assignee = self.store.get_user(assignee_id) if assignee_id else None
        if own_level is None or assignee is None:
            return False
        assignee_level = self._resolve_level(assignee.hierarchy_level_id, user.company_id)
        if assignee_level is None:
            return False
        return own_level.outranks(assignee_level)


def validate_level_placement(
    levels: Dict[str, HierarchyLevel],
    company_id: str,
    rank: int,
    reports_to_level_id: Optional[str],
    level_id: Optional[str] = None,
) -> None:
    """Check that a level with ``rank`` may report to ``reports_to_level_id``.

    ``levels`` maps id -> level for the whole company. ``level_id`` is set when
    an existing level is being edited; its children must keep a greater rank.
    """
    if reports_to_level_id:
        if reports_to_level_id == level_id:
            raise HierarchyValidationError("A level cannot report to itself")
        parent = levels.get(reports_to_level_id)
        if parent is None or parent.company_id != company_id:
            raise HierarchyValidationError("reports_to level not found in this company")
        if not parent.has_valid_rank:
            raise HierarchyValidationError("reports_to level has no valid rank")
        if parent.rank >= rank:
            raise HierarchyValidationError(
                f"A level must report to a higher level (parent rank {parent.rank} is not above {rank})"
            )

        seen = set()
        current = parent
        while current is not None:
            if current.id == level_id or current.id in seen:
                raise HierarchyValidationError("reports_to would create a cycle")
            seen.add(current.id)
            current = levels.get(current.reports_to_level_id) if current.reports_to_level_id else None

    if level_id:
        for child in levels.values():
            if child.reports_to_level_id == level_id and child.has_valid_rank and child.rank <= rank:
                raise HierarchyValidationError(
                    f"Level '{child.name}' reports to this level and must keep a greater rank than {rank}"
                )
