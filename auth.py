"""
auth.py — Authentication router for Trip Planner (FastAPI)

Provides:
  - JWT helpers (encode / decode)
  - get_current_user dependency (attach to any route that needs a logged-in user)
  - Routes: POST /auth/login, POST /auth/logout, GET /auth/me
  - Login and per-user AI rate limiters

JWT lives in an httpOnly cookie called 'tp_token'.
Token TTL: 8 hours, sliding — get_current_user stores a fresh token on
request.state.slide_token and the slide_auth_cookie middleware in app.py
writes it back on the response.
"""

import os
import time
import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone, timedelta

import bcrypt
import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import get_db
from models import User
from redis_client import get_redis
from schemas import LoginRequest

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix='/auth', tags=['auth'])

# ── Constants ────────────────────────────────────────────────────────────────

COOKIE_NAME   = 'tp_token'
TOKEN_TTL_H   = 8          # hours
BCRYPT_ROUNDS = 12

_UNSAFE_METHODS = ('POST', 'PUT', 'DELETE', 'PATCH')

# ── Login rate limiting ───────────────────────────────────────────────────────
# Failed logins per IP, sliding window; Redis key ratelimit:login:{ip}.
LOGIN_MAX_ATTEMPTS   = 10
LOGIN_WINDOW_SECONDS = 300

_login_attempts: dict = defaultdict(list)
_login_lock = threading.Lock()


def _check_login_rate_limit(ip: str) -> bool:
    """False once the IP has used up its failed-login budget."""
    now = time.time()
    r = get_redis()

    if r is not None:
        try:
            key = f"ratelimit:login:{ip}"
            pipe = r.pipeline()
            pipe.zremrangebyscore(key, '-inf', now - LOGIN_WINDOW_SECONDS)
            pipe.zcard(key)
            pipe.expire(key, LOGIN_WINDOW_SECONDS)
            _, count, _ = pipe.execute()
            return count < LOGIN_MAX_ATTEMPTS
        except Exception as exc:
            logger.warning("Redis login rate-limit check error: %s — falling back", exc)

    with _login_lock:
        _login_attempts[ip] = [t for t in _login_attempts[ip] if now - t < LOGIN_WINDOW_SECONDS]
        return len(_login_attempts[ip]) < LOGIN_MAX_ATTEMPTS


def _record_login_failure(ip: str):
    now = time.time()
    r = get_redis()

    if r is not None:
        try:
            key = f"ratelimit:login:{ip}"
            pipe = r.pipeline()
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, LOGIN_WINDOW_SECONDS)
            pipe.execute()
            return
        except Exception as exc:
            logger.warning("Redis login failure record error: %s — falling back", exc)

    with _login_lock:
        _login_attempts[ip].append(now)


# ── Per-user AI rate limiting ─────────────────────────────────────────────────
# (max_requests, window_seconds) per AI flow; Redis key ratelimit:user:{id}:{flow}.
RATE_LIMIT_RULES: dict[str, tuple[int, int]] = {
    'route':     (30, 600),
    'optimize':  (10, 600),
    'narrative': (10, 600),
    'image':     (10, 600),
}

_user_requests: dict = defaultdict(list)
_user_rate_lock = threading.Lock()


def check_user_rate_limit(user_id: int, endpoint: str) -> tuple[bool, int]:
    """Record one call to an AI flow; returns (allowed, retry_after_seconds)."""
    rule = RATE_LIMIT_RULES.get(endpoint)
    if rule is None:
        return True, 0

    max_requests, window = rule
    now = time.time()
    r = get_redis()

    if r is not None:
        try:
            rkey = f"ratelimit:user:{user_id}:{endpoint}"
            pipe = r.pipeline()
            pipe.zremrangebyscore(rkey, '-inf', now - window)
            pipe.zrange(rkey, 0, -1, withscores=True)
            pipe.expire(rkey, window)
            _, entries, _ = pipe.execute()

            if len(entries) >= max_requests:
                oldest_score = min(score for _, score in entries)
                return False, int(window - (now - oldest_score)) + 1

            r.zadd(rkey, {str(now): now})
            r.expire(rkey, window)
            return True, 0
        except Exception as exc:
            logger.warning("Redis user rate-limit error: %s — falling back", exc)

    mem_key = (user_id, endpoint)
    with _user_rate_lock:
        _user_requests[mem_key] = [t for t in _user_requests[mem_key] if now - t < window]

        if len(_user_requests[mem_key]) >= max_requests:
            oldest = min(_user_requests[mem_key])
            return False, int(window - (now - oldest)) + 1

        _user_requests[mem_key].append(now)
        return True, 0


def enforce_user_rate_limit(user: User, endpoint: str) -> None:
    """Raise 429 when the user has exhausted their budget for an AI endpoint."""
    allowed, retry_after = check_user_rate_limit(user.id, endpoint)
    if not allowed:
        logger.warning('Rate limit hit: user_id=%d %s retry_after=%ds', user.id, endpoint, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f'Too many requests. Please wait {retry_after} seconds before trying again.',
        )


# ── JWT helpers ──────────────────────────────────────────────────────────────

def _secret() -> str:
    secret = os.getenv('JWT_SECRET_KEY', '')
    if not secret:
        raise RuntimeError('JWT_SECRET_KEY is not set')
    return secret


def encode_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),   # PyJWT 2.x requires sub to be a string
        'iat': now,
        'exp': now + timedelta(hours=TOKEN_TTL_H),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def decode_token(token: str) -> dict:
    """Raise jwt.PyJWTError if invalid or expired."""
    return jwt.decode(token, _secret(), algorithms=['HS256'])


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite='lax',
        secure=os.getenv('APP_ENV', 'development') == 'production',
        max_age=TOKEN_TTL_H * 3600,
        path='/',
    )


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError as exc:
        logger.warning("bcrypt check error: %s", exc)
        return False


# ── get_current_user dependency ───────────────────────────────────────────────

async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """
    Validate the JWT cookie, load the user and queue a slid token for the
    response.

    Anti-CSRF: state-changing requests must carry X-Requested-With, which a
    third-party page cannot attach to a cross-site request.
    """
    if request.method in _UNSAFE_METHODS:
        if request.headers.get('X-Requested-With') != 'XMLHttpRequest':
            raise HTTPException(status_code=403, detail='Forbidden — missing required request header')

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail='Authentication required')

    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='Session expired — please log in again')
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail='Invalid token — please log in again')

    user = await run_in_threadpool(lambda: db.get(User, int(payload['sub'])))
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail='Account not found or disabled')

    request.state.slide_token = encode_token(user.id)
    return user


# ── Routes ───────────────────────────────────────────────────────────────────

@auth_router.post('/login')
async def login(body: LoginRequest, request: Request, response: Response,
                db: Session = Depends(get_db)):
    """POST /auth/login — { email, password } → sets httpOnly cookie."""
    client_ip = request.client.host if request.client else '0.0.0.0'
    if not _check_login_rate_limit(client_ip):
        logger.warning("Login rate limit exceeded for IP %s", client_ip)
        raise HTTPException(status_code=429, detail='Too many login attempts. Please wait and try again.')

    def _authenticate():
        user = db.query(User).filter_by(email=body.email).first()
        if not user or not user.is_active:
            return None
        if not check_password(body.password, user.password_hash):
            return None
        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        return user

    user = await run_in_threadpool(_authenticate)
    if user is None:
        # Same message whether or not the e-mail exists
        _record_login_failure(client_ip)
        raise HTTPException(status_code=401, detail='Invalid email or password')

    set_auth_cookie(response, encode_token(user.id))
    logger.info("Login: user_id=%d", user.id)
    return {'status': 'ok', 'user': user.to_dict()}


@auth_router.post('/logout')
async def logout(response: Response):
    """POST /auth/logout — clears the auth cookie."""
    response.delete_cookie(COOKIE_NAME, path='/')
    return {'status': 'ok'}


@auth_router.get('/me')
async def me(current_user: User = Depends(get_current_user)):
    """GET /auth/me — returns the current user's profile."""
    return {'user': current_user.to_dict()}
