#!/usr/bin/env python3
"""
Trip Planner — Backend API (FastAPI, async)

- Routers: auth, trips, itinerary/activities, checklists
- AI routes live here: day route optimisation, whole-trip optimisation,
  trip narrative, banner image generation (flows.py does the model work)
- Pydantic v2 schemas validate every body; errors come back as {"error": ...}
- run_in_threadpool wraps synchronous SQLAlchemy calls
"""

import logging
import os
from datetime import date

from dotenv import load_dotenv

# .env must be loaded before the modules below read their settings at import time.
load_dotenv(os.path.join(os.path.dirname(__file__), '.env'), override=True)

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import flows
import routing
from auth import auth_router, enforce_user_rate_limit, get_current_user, set_auth_cookie
from checklists import checklists_router
from database import engine, get_db
from itinerary import itinerary_router
from models import User, db
from redis_client import get_redis
from store import activities_for_date, daily_plan_or_404, trip_or_404
from trips import trips_router

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
)
logger = logging.getLogger(__name__)

GENERIC_500 = 'An unexpected error occurred. Please try again.'

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title='Trip Planner API', docs_url=None, redoc_url=None)

# ── CORS ─────────────────────────────────────────────────────────────────────
_cors_origins = [
    o.strip()
    for o in os.getenv(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',')
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

# ── Security headers ──────────────────────────────────────────────────────────
@app.middleware('http')
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers['X-Content-Type-Options']  = 'nosniff'
    response.headers['X-Frame-Options']          = 'DENY'
    response.headers['Referrer-Policy']           = 'strict-origin-when-cross-origin'
    response.headers['Permissions-Policy']        = 'geolocation=(), microphone=(), camera=()'
    if os.getenv('APP_ENV') == 'production':
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ── Sliding JWT cookie ────────────────────────────────────────────────────────
@app.middleware('http')
async def slide_auth_cookie(request: Request, call_next):
    """Re-issue the auth cookie with a fresh TTL after each authenticated request."""
    response = await call_next(request)
    token = getattr(request.state, 'slide_token', None)
    if token:
        set_auth_cookie(response, token)
    return response


# ── Map errors → { "error": "..." } ───────────────────────────────────────────
# FastAPI's default shape is { "detail": ... }; the frontend expects "error".
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={'error': exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
    if message.startswith('Value error, '):
        message = message[len('Value error, '):]
    return JSONResponse(status_code=422, content={'error': message})


# ── Router registration ───────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(trips_router)
app.include_router(itinerary_router)
app.include_router(checklists_router)

# ---------------------------------------------------------------------------
# Startup / shutdown
# ---------------------------------------------------------------------------

@app.on_event('startup')
async def startup():
    routing.open_http_client()

    await run_in_threadpool(_init_db)

    r = get_redis()
    if r is not None:
        logger.warning('Redis connected and ready (cache, rate limiters active)')
    else:
        logger.warning('Redis unavailable — using in-memory fallbacks (set REDIS_URL to enable)')


@app.on_event('shutdown')
async def shutdown():
    await routing.close_http_client()


def _init_db():
    """Create any missing tables. Alembic owns schema changes after that."""
    db.metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get('/health')
async def health():
    return {'status': 'ok', 'message': f'Trip Planner API is running on {flows.PLANNER_MODEL}'}


@app.post('/trips/{trip_id}/itinerary/{day}/optimize')
async def optimize_day(
    trip_id: int,
    day: date,
    db_session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Optimise one day's route with the model and store the result on the
    daily plan. Nothing is written when the flow fails.
    """
    def _describe():
        trip = trip_or_404(db_session, trip_id, current_user)
        daily_plan_or_404(trip, day)
        activities = activities_for_date(trip, day)
        if not activities:
            raise HTTPException(status_code=400, detail='No activities planned for this day to optimise')
        return flows.describe_day(activities)

    description = await run_in_threadpool(_describe)
    enforce_user_rate_limit(current_user, 'route')

    try:
        result = await flows.optimize_day_route(description)
    except flows.FlowError as exc:
        logger.error('Route optimisation failed: trip=%d %s: %s', trip_id, day, exc)
        raise HTTPException(status_code=502, detail='Could not optimise the route. Please try again.')
    except Exception as exc:
        logger.error('Unhandled error in route optimisation: %s', exc, exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_500)

    def _store():
        plan = daily_plan_or_404(trip_or_404(db_session, trip_id, current_user), day)
        plan.optimized_route        = result.optimized_route
        plan.estimated_time_savings = result.estimated_time_savings
        plan.estimated_cost_savings = result.estimated_cost_savings
        db_session.commit()
        return plan.to_dict()

    plan = await run_in_threadpool(_store)
    logger.info('Route optimised: trip=%d %s (user_id=%d)', trip_id, day, current_user.id)
    return {'daily_plan': plan}


@app.post('/trips/{trip_id}/optimize')
async def optimize_trip(
    trip_id: int,
    db_session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Trip-wide recommendations; returned to the caller, not stored."""
    def _describe():
        trip = trip_or_404(db_session, trip_id, current_user)
        if not trip.activities:
            raise HTTPException(status_code=400, detail='Add activities to the itinerary before optimising the trip')
        return (
            trip.destination,
            trip.start_date.isoformat(),
            trip.end_date.isoformat(),
            flows.describe_trip(trip, lambda d: activities_for_date(trip, d)),
        )

    destination, start, end, description = await run_in_threadpool(_describe)
    enforce_user_rate_limit(current_user, 'optimize')

    try:
        result = await flows.optimize_full_trip(destination, start, end, description)
    except flows.FlowError as exc:
        logger.error('Trip optimisation failed: trip=%d: %s', trip_id, exc)
        raise HTTPException(status_code=502, detail='Could not optimise the trip. Please try again.')
    except Exception as exc:
        logger.error('Unhandled error in trip optimisation: %s', exc, exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_500)

    logger.info('Trip optimised: trip=%d (user_id=%d)', trip_id, current_user.id)
    return result.model_dump()


@app.post('/trips/{trip_id}/narrative')
async def trip_narrative(
    trip_id: int,
    db_session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The trip told as a story; returned, not stored."""
    def _describe():
        trip = trip_or_404(db_session, trip_id, current_user)
        details = flows.describe_trip(trip, lambda d: activities_for_date(trip, d), detailed=True)
        return details, flows.describe_preparations(trip.preparations)

    details, preparations = await run_in_threadpool(_describe)
    enforce_user_rate_limit(current_user, 'narrative')

    try:
        result = await flows.generate_trip_narrative(details, preparations)
    except flows.FlowError as exc:
        logger.error('Narrative failed: trip=%d: %s', trip_id, exc)
        raise HTTPException(status_code=502, detail='Could not write the trip narrative. Please try again.')
    except Exception as exc:
        logger.error('Unhandled error in narrative: %s', exc, exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_500)

    logger.info('Narrative generated: trip=%d (user_id=%d)', trip_id, current_user.id)
    return result.model_dump()


@app.post('/trips/{trip_id}/image')
async def generate_trip_image(
    trip_id: int,
    db_session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Generate a banner for the destination and store it on the trip."""
    destination = await run_in_threadpool(
        lambda: trip_or_404(db_session, trip_id, current_user).destination
    )
    enforce_user_rate_limit(current_user, 'image')

    try:
        image_uri = await flows.generate_trip_image(destination)
    except flows.FlowError as exc:
        logger.error('Image generation failed: trip=%d: %s', trip_id, exc)
        raise HTTPException(status_code=502, detail='Could not generate an image. Please try again.')
    except Exception as exc:
        logger.error('Unhandled error in image generation: %s', exc, exc_info=True)
        raise HTTPException(status_code=500, detail=GENERIC_500)

    def _store():
        trip = trip_or_404(db_session, trip_id, current_user)
        trip.summary_image_uri = image_uri
        db_session.commit()

    await run_in_threadpool(_store)
    logger.info('Banner generated: trip=%d (user_id=%d)', trip_id, current_user.id)
    return {'summary_image_uri': image_uri}


if __name__ == '__main__':
    import uvicorn
    uvicorn.run('app:app', host='0.0.0.0', port=int(os.getenv('PORT', 8000)), reload=True)
