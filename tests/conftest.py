# tests/conftest.py
from __future__ import annotations

import logging
import sys

import mongomock
import pytest
from fastapi.testclient import TestClient

from main import create_app
from settings import Settings


@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """Send test logs to stdout so they show up under pytest -s."""
    root = logging.getLogger()
    if not any(getattr(h, "stream", None) is sys.stdout for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)


class RecordingMailer:
    """Collects messages instead of sending them; addresses in ``fail_for`` raise."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.attempts = []
        self.fail_for = set(fail_for)

    def send(self, to, subject, text):
        self.attempts.append(to)
        if to in self.fail_for:
            raise RuntimeError(f"mailbox unavailable: {to}")
        self.sent.append({"to": to, "subject": subject, "text": text})

    def close(self):
        pass


@pytest.fixture
def settings():
    return Settings(mongo_uri="mongodb://localhost:27017", database_name="school_test")


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["school_test"]


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def app(settings, db, mailer):
    return create_app(settings, db=db, mailer=mailer)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_teacher(client):
    def _make(name, role="Teacher", klass="", subject="Maths", email=None):
        payload = {
            "name": name,
            "subject": subject,
            "role": role,
            "classTeacherClass": klass,
            "email": email or f"{name.lower()}@kingtech-school.org",
        }
        r = client.post("/api/teachers", json=payload)
        assert r.status_code == 201, r.text
        return r.json()

    return _make
