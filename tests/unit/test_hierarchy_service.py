from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from google.api_core import exceptions as gexc

from backend.models.hierarchy_model import HierarchyLevel
from backend.services.errors import NotFoundError, StoreUnavailableError
from backend.services.firestore_store import FirestoreStore
from backend.services.hierarchy_service import (
    HierarchyAuthorizationService,
    TaskQueryPredicate,
    local_day_bounds,
)

from .helpers import COMPANY, OTHER_COMPANY, add_task, level_doc, user_doc


def local(*args):
    """Aware datetime for a wall-clock time in the server's zone"""
    return datetime(*args).astimezone()


# --- can_assign ---------------------------------------------------------------

def test_manager_can_assign_to_associate(service):
    assert service.can_assign("manager", "associate", COMPANY) is True


def test_same_rank_cannot_assign(service):
    assert service.can_assign("manager", "manager", COMPANY) is False


def test_director_and_manager_only_downwards(service):
    assert service.can_assign("director", "manager", COMPANY) is True
    assert service.can_assign("manager", "director", COMPANY) is False


def test_director_can_assign_across_two_ranks(service):
    assert service.can_assign("director", "associate", COMPANY) is True


def test_missing_level_denies_without_raising(service):
    assert service.can_assign("manager", "does-not-exist", COMPANY) is False
    assert service.can_assign("does-not-exist", "associate", COMPANY) is False
    assert service.can_assign(None, "associate", COMPANY) is False


def test_cross_company_levels_deny(service):
    assert service.can_assign("globex-boss", "associate", COMPANY) is False
    assert service.can_assign("globex-boss", "associate", OTHER_COMPANY) is False
    # Without an explicit company both levels still have to share one
    assert service.can_assign("globex-boss", "associate") is False


@pytest.mark.parametrize("stored_rank", [None, "senior", 0])
def test_level_without_usable_rank_denies(db, service, stored_rank):
    doc = level_doc("Ghost", 1, 5)
    if stored_rank is None:
        del doc["rank"]
    else:
        doc["rank"] = stored_rank
    db.collection("hierarchy_levels").document("ghost").set(doc)
    assert service.can_assign("ghost", "associate", COMPANY) is False
    assert service.can_assign("director", "ghost", COMPANY) is False


def test_null_quota_falls_back_to_default(db, store):
    doc = level_doc("Temp", 4, None)
    db.collection("hierarchy_levels").document("temp").set(doc)
    level = store.get_hierarchy_level("temp")
    assert level.rank == 4
    assert level.max_tasks_per_day == 10


def test_can_assign_follows_rank_edits(db, service):
    assert service.can_assign("manager", "associate", COMPANY) is True
    db.collection("hierarchy_levels").document("associate").update({"rank": 2})
    assert service.can_assign("manager", "associate", COMPANY) is False


# --- check_daily_quota --------------------------------------------------------

def test_quota_allows_exactly_n_tasks(db, service, store):
    director = store.get_hierarchy_level("director")
    as_of = local(2024, 5, 14, 15, 0)
    for i in range(director.max_tasks_per_day):
        assert service.check_daily_quota("dana", director, as_of) is True
        add_task(db, "dana", local(2024, 5, 14, 9, i))
    assert service.check_daily_quota("dana", director, as_of) is False


def test_quota_accepts_level_id(db, service):
    as_of = local(2024, 5, 14, 15, 0)
    for i in range(5):
        add_task(db, "dana", local(2024, 5, 14, 8, i))
    assert service.check_daily_quota("dana", "director", as_of) is False
    assert service.check_daily_quota("dana", "no-such-level", as_of) is False


def test_zero_quota_denies_everything(service):
    level = HierarchyLevel(id="intern", company_id=COMPANY, name="Intern", rank=9, max_tasks_per_day=0)
    assert service.check_daily_quota("alex", level, local(2024, 5, 14, 12, 0)) is False


def test_tasks_of_other_days_do_not_count(db, service, store):
    director = store.get_hierarchy_level("director")
    for i in range(5):
        add_task(db, "dana", local(2024, 5, 13, 10, i))
        add_task(db, "dana", local(2024, 5, 15, 10, i))
    assert service.check_daily_quota("dana", director, local(2024, 5, 14, 10, 0)) is True


def test_tasks_of_other_assignees_do_not_count(db, service, store):
    director = store.get_hierarchy_level("director")
    for i in range(5):
        add_task(db, "mike", local(2024, 5, 14, 10, i))
    assert service.check_daily_quota("dana", director, local(2024, 5, 14, 11, 0)) is True


def test_day_boundary_buckets(db, service):
    level = HierarchyLevel(id="one", company_id=COMPANY, name="One", rank=5, max_tasks_per_day=1)

    add_task(db, "alex", local(2024, 5, 14, 23, 59, 59))
    assert service.check_daily_quota("alex", level, local(2024, 5, 14, 12, 0)) is False
    assert service.check_daily_quota("alex", level, local(2024, 5, 15, 0, 0, 1)) is True

    add_task(db, "nora", local(2024, 5, 15, 0, 0, 0))
    assert service.check_daily_quota("nora", level, local(2024, 5, 14, 23, 59, 59)) is True
    assert service.check_daily_quota("nora", level, local(2024, 5, 15, 0, 0, 0)) is False


def test_local_day_bounds_are_inclusive():
    start, end = local_day_bounds(datetime(2024, 5, 14, 13, 30))
    assert start == local(2024, 5, 14, 0, 0)
    assert end == local(2024, 5, 15, 0, 0) - timedelta(microseconds=1)
    assert start.tzinfo is not None


# --- visible_task_filter ------------------------------------------------------

def test_admin_filter_covers_whole_company(db, service, store):
    add_task(db, "nora", local(2024, 5, 14, 9, 0))
    add_task(db, "dana", local(2024, 5, 14, 9, 0))
    add_task(db, "gus", local(2024, 5, 14, 9, 0), company_id=OTHER_COMPANY)

    predicate = service.visible_task_filter("admin")
    assert predicate.unrestricted is True
    tasks = store.list_tasks(predicate)
    assignees = sorted(t.to_dict()["assigned_to"]["user_id"] for t in tasks)
    assert assignees == ["dana", "nora"]


def test_manager_sees_self_and_subordinates_only(db, service, store):
    for uid in ("dana", "mike", "mona", "alex", "nora"):
        add_task(db, uid, local(2024, 5, 14, 9, 0))

    predicate = service.visible_task_filter("mike")
    assert predicate.assignee_ids == frozenset({"mike", "alex"})
    tasks = store.list_tasks(predicate)
    assert sorted(t.to_dict()["assigned_to"]["user_id"] for t in tasks) == ["alex", "mike"]


def test_director_sees_everyone_below(service):
    predicate = service.visible_task_filter("dana")
    assert predicate.assignee_ids == frozenset({"dana", "mike", "mona", "alex"})


def test_user_without_level_sees_only_own_tasks(service):
    predicate = service.visible_task_filter("nora")
    assert predicate.unrestricted is False
    assert predicate.assignee_ids == frozenset({"nora"})


def test_unknown_requesting_user_raises(service):
    with pytest.raises(NotFoundError):
        service.visible_task_filter("ghost")


def test_predicate_matches_company_and_assignee():
    predicate = TaskQueryPredicate(company_id=COMPANY, assignee_ids=frozenset({"alex"}))
    assert predicate.matches({"company_id": COMPANY, "assigned_to": {"user_id": "alex"}})
    assert not predicate.matches({"company_id": OTHER_COMPANY, "assigned_to": {"user_id": "alex"}})
    assert not predicate.matches({"company_id": COMPANY, "assigned_to": {"user_id": "mike"}})
    assert not predicate.matches({"company_id": COMPANY})


def test_filter_ignores_subordinate_levels_of_other_companies(db, service):
    db.add("hierarchy_levels", level_doc("Clerk", 9, 5, company_id=OTHER_COMPANY), "globex-clerk")
    db.add("users", user_doc("zed", level_id="globex-clerk"), "zed")
    assert "zed" not in service.visible_task_filter("dana").assignee_ids


# --- can_access_task ----------------------------------------------------------

def test_can_access_task(store, service):
    task = {"company_id": COMPANY, "assigned_to": {"user_id": "alex"}}
    assert service.can_access_task(store.get_user("alex"), task)
    assert service.can_access_task(store.get_user("mike"), task)
    assert service.can_access_task(store.get_user("admin"), task)
    assert not service.can_access_task(store.get_user("nora"), task)
    assert not service.can_access_task(store.get_user("gus"), task)

    peer_task = {"company_id": COMPANY, "assigned_to": {"user_id": "mona"}}
    assert not service.can_access_task(store.get_user("mike"), peer_task)


# --- store failures -----------------------------------------------------------

def _broken_db(error):
    db = Mock()
    db.collection.side_effect = error
    return db


def test_store_unavailable_propagates_from_can_assign():
    service = HierarchyAuthorizationService(FirestoreStore(_broken_db(gexc.ServiceUnavailable("down"))))
    with pytest.raises(StoreUnavailableError):
        service.can_assign("manager", "associate", COMPANY)


def test_store_timeout_propagates_from_quota_check():
    service = HierarchyAuthorizationService(FirestoreStore(_broken_db(gexc.DeadlineExceeded("slow"))))
    level = HierarchyLevel(id="l", company_id=COMPANY, name="L", rank=2, max_tasks_per_day=3)
    with pytest.raises(StoreUnavailableError) as excinfo:
        service.check_daily_quota("alex", level, local(2024, 5, 14, 12, 0))
    assert excinfo.value.operation == "count_tasks"
    assert isinstance(excinfo.value.cause, gexc.DeadlineExceeded)


def test_store_unavailable_propagates_from_visible_task_filter():
    service = HierarchyAuthorizationService(FirestoreStore(_broken_db(ConnectionError("reset"))))
    with pytest.raises(StoreUnavailableError):
        service.visible_task_filter("mike")
