from datetime import datetime, timedelta
from pathlib import Path
import sys
import os
from unittest.mock import patch

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Safety defaults for any app creation during test imports.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from rankvote import create_app
from rankvote.extensions import db
from rankvote.models import Ballot, NotificationChannel
from rankvote.services import contests
from rankvote.services.scheduler import ContestScheduler

ADMIN_SECRET = "test-admin-secret"
NOW = datetime(2026, 3, 2, 12, 0, 0)


class ManualTimer:
    """Stand-in for IntervalTimer; tests call ``fire`` or ``scheduler.tick`` themselves."""

    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def is_alive(self):
        return self.started and not self.cancelled

    def fire(self):
        return self.callback()


@pytest.fixture()
def app(tmp_path: Path):
    db_file = tmp_path / "test.sqlite3"
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
            "SQLALCHEMY_ENGINE_OPTIONS": {},
            "SECRET_KEY": "test-secret-key",
            "ADMIN_SECRET": ADMIN_SECRET,
            "BASE_URL": "https://votes.example.com",
            "SCHEDULER_ENABLED": False,
            "MAX_RECURRING_VOTES_PER_TICK": 10,
            "MAX_ACTIVE_RECURRING_GROUPS": 100,
        }
    )

    with app.app_context():
        driver = db.engine.url.drivername
        if driver != "sqlite":
            raise RuntimeError(
                f"Test database must be SQLite, got '{driver}'. Refusing to run destructive test setup."
            )
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def db_session(app):
    with app.app_context():
        yield db.session


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}


@pytest.fixture()
def channel(db_session):
    channel = NotificationChannel(
        name="Team hook",
        type="webhook",
        config={"url": "https://hooks.example.com/votes", "headers": {"X-Token": "abc"}},
    )
    db_session.add(channel)
    db_session.commit()
    return channel


@pytest.fixture()
def contest_factory(db_session):
    def make(
        title="Lunch Poll",
        options=("Pizza", "Tacos", "Sushi"),
        ballots=(),
        closed=False,
        now=NOW,
        **kwargs
    ):
        kwargs.setdefault("admin_secret", "contest-admin")
        kwargs.setdefault("voter_names_required", False)
        contest, _ = contests.create_contest(title, list(options), now=now, **kwargs)
        for rankings in ballots:
            db_session.add(Ballot(contest_id=contest.id, rankings=list(rankings)))
        if closed:
            contest.closed_at = now + timedelta(minutes=1)
        db_session.commit()
        return contest

    return make


@pytest.fixture()
def scheduler(app):
    return ContestScheduler(app, timer=ManualTimer, clock=lambda: NOW)


@pytest.fixture()
def post_mock():
    with patch("rankvote.services.notifications.transport.requests.post") as post:
        post.return_value.ok = True
        post.return_value.status_code = 200
        post.return_value.text = ""
        yield post
