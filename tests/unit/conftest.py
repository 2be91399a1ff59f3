"""Shared pytest configuration for unit tests."""
import pytest

from backend.app import create_app
from backend.middleware import auth_middleware
from backend.services.firestore_store import FirestoreStore
from backend.services.hierarchy_service import HierarchyAuthorizationService

from .fakes import FakeFirestore
from .helpers import COMPANY, OTHER_COMPANY, level_doc, user_doc


@pytest.fixture(autouse=True)
def _no_smtp(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)


@pytest.fixture
def db():
    """Firestore double seeded with two companies.

    acme: Director (rank 1, 5/day) <- Manager (rank 2, 10/day) <- Associate (rank 3, 20/day)
    """
    fake = FakeFirestore()
    fake.add("companies", {"name": "Acme", "description": "", "admin_id": "admin", "active": True}, COMPANY)
    fake.add("companies", {"name": "Globex", "description": "", "admin_id": None, "active": True}, OTHER_COMPANY)

    fake.add("hierarchy_levels", level_doc("Director", 1, 5, departments=["IT", "HR"]), "director")
    fake.add("hierarchy_levels", level_doc("Manager", 2, 10, reports_to="director", departments=["IT"]), "manager")
    fake.add("hierarchy_levels", level_doc("Associate", 3, 20, reports_to="manager", departments=["Sales"]), "associate")
    fake.add("hierarchy_levels", level_doc("Boss", 1, 5, company_id=OTHER_COMPANY), "globex-boss")

    fake.add("users", user_doc("admin", role="company_admin"), "admin")
    fake.add("users", user_doc("dana", level_id="director"), "dana")
    fake.add("users", user_doc("mike", level_id="manager", reports_to="dana"), "mike")
    fake.add("users", user_doc("mona", level_id="manager", reports_to="dana"), "mona")
    fake.add("users", user_doc("alex", level_id="associate", reports_to="mike"), "alex")
    fake.add("users", user_doc("nora"), "nora")
    fake.add("users", user_doc("gus", company_id=OTHER_COMPANY, level_id="globex-boss"), "gus")
    fake.add("users", user_doc("root", role="super_admin", company_id=None), "root")
    return fake


@pytest.fixture
def store(db):
    return FirestoreStore(db)


@pytest.fixture
def service(store):
    return HierarchyAuthorizationService(store)


@pytest.fixture
def app(db, monkeypatch):
    monkeypatch.setattr(auth_middleware.firebase_auth, "verify_id_token", lambda token: {"uid": token})
    return create_app(db=db, config={"TESTING": True, "FIREBASE_WEB_API_KEY": "test-key"})


@pytest.fixture
def client(app):
    return app.test_client()
