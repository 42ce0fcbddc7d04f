"""
Shared pytest fixtures for the Core REST API test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_example / make_item: ORM factories that bypass the lifecycle
    - auth_header: bearer-token header factory
    - fake_mongo / mirror / failing_mirror / mongo_find: mongomock document store
"""

from datetime import datetime, timedelta, timezone

import jwt
import mongomock
import pytest

from coreapi import create_app
from coreapi.core.changelog import on_create
from coreapi.core.constants import CHANGE_LOG, Status
from coreapi.models import db as _db
from coreapi.models.example import Example, ExampleItem
from coreapi.services.mirror import MirrorStore


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM factories ────────────────────────────────────────────────────────


@pytest.fixture()
def make_example():
    """Insert an Example row directly, with any starting state."""

    def _make(name="Item A", status=Status.DRAFT, lock_version=1,
              created_at="2024-01-05T10:00:00Z", created_by="system", detail=None):
        log = on_create(created_by, created_at)
        record = Example(
            name=name,
            status=int(status),
            lock_version=lock_version,
            detail_info={**(detail or {}), CHANGE_LOG: log},
        )
        _db.session.add(record)
        _db.session.commit()
        return record

    return _make


@pytest.fixture()
def make_item():
    def _make(example, name="Line 1", linked=None):
        item = ExampleItem(
            example_id=example.id,
            name=name,
            linked_example_ids=linked,
            status=int(Status.DRAFT),
            lock_version=1,
            detail_info={CHANGE_LOG: on_create("system", "2024-01-05T10:00:00Z")},
        )
        _db.session.add(item)
        _db.session.commit()
        return item

    return _make


# ── Auth ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def auth_header(app):
    """Build an ``Authorization`` header for a token signed with the test secret."""

    def _header(sub="alice", roles=(), expires_in=300, secret=None, **claims):
        now = datetime.now(timezone.utc)
        payload = {
            "sub": sub,
            "roles": list(roles),
            "iat": now,
            "exp": now + timedelta(seconds=expires_in),
            **claims,
        }
        token = jwt.encode(payload, secret or app.config["JWT_SECRET_KEY"], algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _header


# ── Document store ───────────────────────────────────────────────────────


class UnreachableCollection:
    def _fail(self, *args, **kwargs):
        raise ConnectionError("document store unreachable")

    update_one = find = count_documents = _fail


class UnreachableDatabase:
    def __getitem__(self, name):
        return UnreachableCollection()


@pytest.fixture()
def fake_mongo():
    """A mongomock database, so rendered filters run with real query semantics."""
    client = mongomock.MongoClient()
    yield client["coreapi_test"]
    client.close()


@pytest.fixture()
def mirror(fake_mongo):
    return MirrorStore(fake_mongo)


@pytest.fixture()
def failing_mirror():
    return MirrorStore(UnreachableDatabase())


@pytest.fixture()
def mongo_find(fake_mongo):
    """Run ``filter_doc`` against ``documents`` and return the matches."""

    def _find(documents, filter_doc):
        collection = fake_mongo["scratch"]
        collection.delete_many({})
        if documents:
            collection.insert_many([dict(d) for d in documents])
        return list(collection.find(filter_doc, {"_id": 0}))

    return _find
