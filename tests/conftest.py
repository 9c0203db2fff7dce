"""Shared fixtures: an app on a throwaway SQLite file, plus small factories."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import event

from app import create_app
from extensions import db
from models_content import Accident, AwarenessDocument, NearMissReport
from models_medals import Medal, UserMedal
from models_users import User

ADMIN_KEY = "test-admin-key"


# ============================================================================
# App / DB Fixtures
# ============================================================================

@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'engagement-test.db'}",
            # Threads in the concurrency tests wait on SQLite's write lock.
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
            "RATELIMIT_ENABLED": False,
            "ADMIN_API_KEY": ADMIN_KEY,
            "READ_TIMEOUT_MS": 5000,
        }
    )
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def identity_headers():
    def _headers(user_id="u1", name="Ana Souza"):
        return {"X-User-Id": user_id, "X-User-Name": name}

    return _headers


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_user(app):
    def _make(user_id="u1", name="Ana Souza", points=0, created_at=None):
        with app.app_context():
            db.session.add(
                User(
                    id=user_id,
                    name=name,
                    points=points,
                    created_at=created_at or datetime.utcnow(),
                )
            )
            db.session.commit()
        return user_id

    return _make


@pytest.fixture
def make_medal(app):
    def _make(medal_id="first-report", trigger_action="itemReported", required_count=1,
              trigger_category=None, name=None):
        with app.app_context():
            db.session.add(
                Medal(
                    id=medal_id,
                    name=name or medal_id.replace("-", " ").title(),
                    description=f"Description of {medal_id}",
                    image_src=f"/images/medals/{medal_id}.png",
                    trigger_action=trigger_action,
                    trigger_category=trigger_category,
                    required_count=required_count,
                )
            )
            db.session.commit()
        return medal_id

    return _make


@pytest.fixture
def give_medal(app):
    def _give(user_id, medal_id, date_earned=None):
        with app.app_context():
            db.session.add(UserMedal(user_id=user_id, medal_id=medal_id, date_earned=date_earned or datetime.utcnow()))
            db.session.commit()

    return _give


@pytest.fixture
def make_content(app):
    """Create ``count`` items of one kind, newest last, minutes apart from ``start``."""

    def _make(kind, count, start=None, prefix=None):
        start = start or datetime(2024, 1, 1, 8, 0, 0)
        prefix = prefix or kind
        ids = []
        with app.app_context():
            for i in range(count):
                item_id = f"{prefix}-{i}"
                ts = start + timedelta(minutes=i)
                if kind == "qa":
                    row = NearMissReport(id=item_id, title=f"Report {i}", date=ts)
                elif kind == "accident":
                    row = Accident(id=item_id, name=f"Accident {i}", created_at=ts)
                else:
                    row = AwarenessDocument(id=item_id, name=f"Awareness {i}", created_at=ts)
                db.session.add(row)
                ids.append(item_id)
            db.session.commit()
        return ids

    return _make


class QueryCounter:
    """Counts SQL statements sent to the engine while active."""

    def __init__(self, engine):
        self.engine = engine
        self.statements = []

    def _on_execute(self, conn, cursor, statement, parameters, context, executemany):
        self.statements.append(statement)

    @property
    def count(self):
        return len(self.statements)

    def __enter__(self):
        event.listen(self.engine, "before_cursor_execute", self._on_execute)
        return self

    def __exit__(self, *exc):
        event.remove(self.engine, "before_cursor_execute", self._on_execute)
        return False


@pytest.fixture
def query_counter(app_ctx):
    return lambda: QueryCounter(db.engine)
