"""Login, logout, session cookie and request-guard behaviour."""
from __future__ import annotations

import jwt
import pytest

import auth


def test_login_sets_cookie_and_returns_user(client, make_user):
    make_user()
    response = client.post('/auth/login', json={'email': '  Alice@Example.com ', 'password': 'correct-horse'})

    assert response.status_code == 200
    body = response.json()
    assert body['status'] == 'ok'
    assert body['user']['email'] == 'alice@example.com'
    assert 'password_hash' not in body['user']
    assert auth.COOKIE_NAME in response.cookies


def test_login_failures_share_one_message(client, make_user):
    make_user()
    make_user(email='off@example.com', is_active=False)

    wrong_password = client.post('/auth/login', json={'email': 'alice@example.com', 'password': 'nope'})
    unknown = client.post('/auth/login', json={'email': 'ghost@example.com', 'password': 'correct-horse'})
    disabled = client.post('/auth/login', json={'email': 'off@example.com', 'password': 'correct-horse'})

    for response in (wrong_password, unknown, disabled):
        assert response.status_code == 401
        assert response.json() == {'error': 'Invalid email or password'}


def test_me_requires_cookie(client):
    response = client.get('/auth/me')
    assert response.status_code == 401
    assert response.json()['error'] == 'Authentication required'


def test_me_returns_profile_and_slides_cookie(user_client):
    response = user_client.get('/auth/me')

    assert response.status_code == 200
    assert response.json()['user']['display_name'] == 'Alice'
    assert auth.COOKIE_NAME in response.cookies


def test_token_round_trip_and_tampering():
    token = auth.encode_token(42)
    assert auth.decode_token(token)['sub'] == '42'

    forged = jwt.encode({'sub': '42'}, 'some-other-secret-of-sufficient-length', algorithm='HS256')
    with pytest.raises(jwt.PyJWTError):
        auth.decode_token(forged)
    with pytest.raises(jwt.PyJWTError):
        auth.decode_token('not-a-jwt')


def test_logout_clears_cookie(user_client):
    assert user_client.post('/auth/logout').status_code == 200
    assert user_client.get('/auth/me').status_code == 401


def test_state_changing_request_needs_xhr_header(user_client):
    response = user_client.post(
        '/trips',
        json={'destination': 'Porto', 'start_date': '2025-06-01', 'end_date': '2025-06-02'},
        headers={'X-Requested-With': ''},
    )
    assert response.status_code == 403
    assert user_client.get('/trips').status_code == 200


def test_login_rate_limit_per_ip(client, make_user):
    make_user()
    for _ in range(auth.LOGIN_MAX_ATTEMPTS):
        response = client.post('/auth/login', json={'email': 'alice@example.com', 'password': 'bad'})
        assert response.status_code == 401

    blocked = client.post('/auth/login', json={'email': 'alice@example.com', 'password': 'correct-horse'})
    assert blocked.status_code == 429


def test_user_rate_limit_reports_wait_time(monkeypatch):
    monkeypatch.setitem(auth.RATE_LIMIT_RULES, 'narrative', (2, 600))
    auth._user_requests.clear()

    assert auth.check_user_rate_limit(7, 'narrative') == (True, 0)
    assert auth.check_user_rate_limit(7, 'narrative') == (True, 0)
    allowed, retry_after = auth.check_user_rate_limit(7, 'narrative')

    assert allowed is False
    assert 0 < retry_after <= 601
    # Other users and other endpoints keep their own budget
    assert auth.check_user_rate_limit(8, 'narrative')[0] is True
    assert auth.check_user_rate_limit(7, 'image')[0] is True
    auth._user_requests.clear()


def test_password_hash_round_trip():
    hashed = auth.hash_password('s3cret!')
    assert hashed != 's3cret!'
    assert auth.check_password('s3cret!', hashed)
    assert not auth.check_password('other', hashed)
    assert not auth.check_password('s3cret!', 'not-a-bcrypt-hash')
