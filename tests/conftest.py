"""Pytest configuration for the Trip Planner API."""
from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

# Settings are read at import time, so they must be in place before any
# project module is imported.
_TMP_DIR = tempfile.mkdtemp(prefix='trip-planner-tests-')
os.environ['DATABASE_URL'] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ['JWT_SECRET_KEY'] = 'test-secret-key-that-is-long-enough-for-hs256'
os.environ['ANTHROPIC_API_KEY'] = 'test-key'
os.environ['GEMINI_API_KEY'] = 'test-key'
os.environ['ROUTING_ENABLED'] = 'false'
os.environ.pop('REDIS_URL', None)
os.environ.pop('APP_ENV', None)

# Ensure the project root is on sys.path so the top-level modules import under pytest.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import auth  # noqa: E402
import flows  # noqa: E402
from app import app  # noqa: E402
from database import SessionLocal, engine  # noqa: E402
from models import User, db  # noqa: E402

# Cheap hashes keep the suite fast.
auth.BCRYPT_ROUNDS = 4

XHR = {'X-Requested-With': 'XMLHttpRequest'}


@pytest.fixture
def client():
    """A TestClient on a freshly created schema, with limiters and caches reset."""
    db.metadata.drop_all(engine)
    db.metadata.create_all(engine)
    auth._login_attempts.clear()
    auth._user_requests.clear()
    flows.clear_cache()
    with TestClient(app, headers=XHR) as test_client:
        yield test_client


@pytest.fixture
def make_user(client):
    def _make(email='alice@example.com', name='Alice', password='correct-horse', is_active=True):
        with SessionLocal() as session:
            user = User(
                email=email,
                display_name=name,
                password_hash=auth.hash_password(password),
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            return user.id
    return _make


@pytest.fixture
def login(client):
    def _login(email='alice@example.com', password='correct-horse'):
        response = client.post('/auth/login', json={'email': email, 'password': password})
        assert response.status_code == 200, response.text
        return response.json()['user']
    return _login


@pytest.fixture
def user_client(client, make_user, login):
    """TestClient logged in as alice@example.com."""
    make_user()
    login()
    return client


@pytest.fixture
def trip(user_client):
    response = user_client.post('/trips', json={
        'destination': 'Lisbon',
        'start_date': '2025-06-01',
        'end_date': '2025-06-03',
        'purpose': 'Holiday',
        'travelers': {'men': 1, 'women': 1},
    })
    assert response.status_code == 201, response.text
    return response.json()['trip']
