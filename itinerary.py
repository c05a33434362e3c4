"""
itinerary.py — Daily plans, activities, timeline and day route (FastAPI)

Routes (all require authentication):
  GET    /trips/{id}/itinerary                     — daily plans in date order
  GET    /trips/{id}/itinerary/{date}              — {daily_plan, activities} for one day
  PUT    /trips/{id}/itinerary/{date}              — update the day's notes
  PUT    /trips/{id}/itinerary/{date}/image        — set the day image
  DELETE /trips/{id}/itinerary/{date}/image        — clear the day image
  GET    /trips/{id}/itinerary/{date}/route        — map waypoints + legs for the day
  GET    /trips/{id}/activities                    — all activities
  POST   /trips/{id}/activities                    — create an activity
  PUT    /trips/{id}/activities/{activity_id}      — full replacement
  DELETE /trips/{id}/activities/{activity_id}      — delete
  GET    /trips/{id}/timeline                      — day × type grid layout

AI optimisation of a day lives in app.py with the other AI routes.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

import routing
from auth import get_current_user
from database import get_db
from models import ACTIVITY_FIELDS, Activity, Trip, User
from schemas import ActivityIn, DailyPlanUpdate, ImageUpload
from store import activities_for_date, activity_sort_key, daily_plan_or_404, trip_or_404
from timeline import build_timeline

logger = logging.getLogger(__name__)

itinerary_router = APIRouter(prefix='/trips/{trip_id}', tags=['itinerary'])


def _activity_or_404(trip: Trip, activity_id: int) -> Activity:
    for activity in trip.activities:
        if activity.id == activity_id:
            return activity
    raise HTTPException(status_code=404, detail='Activity not found')


def _apply_activity(activity: Activity, body: ActivityIn) -> None:
    activity.type       = body.type
    activity.name       = body.name
    activity.start_date = body.start_date
    activity.end_date   = body.end_date
    for field in ACTIVITY_FIELDS:
        setattr(activity, field, getattr(body, field))


# ── Daily plans ───────────────────────────────────────────────────────────────

@itinerary_router.get('/itinerary')
async def get_itinerary(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _query():
        trip = trip_or_404(db, trip_id, current_user)
        return [p.to_dict() for p in trip.daily_plans]

    return {'itinerary': await run_in_threadpool(_query)}


@itinerary_router.get('/itinerary/{day}')
async def get_day(
    trip_id: int,
    day: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /trips/{id}/itinerary/{date} — the day's plan and the activities covering it."""
    def _query():
        trip = trip_or_404(db, trip_id, current_user)
        plan = daily_plan_or_404(trip, day)
        return {
            'daily_plan': plan.to_dict(),
            'activities': [a.to_dict() for a in activities_for_date(trip, day)],
        }

    return await run_in_threadpool(_query)


@itinerary_router.put('/itinerary/{day}')
async def update_day(
    trip_id: int,
    day: date,
    body: DailyPlanUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _update():
        plan = daily_plan_or_404(trip_or_404(db, trip_id, current_user), day)
        if 'notes' in body.model_fields_set:
            plan.notes = body.notes or ''
        db.commit()
        return plan.to_dict()

    plan = await run_in_threadpool(_update)
    logger.info("Day notes updated: trip=%d %s", trip_id, day)
    return {'daily_plan': plan}


@itinerary_router.put('/itinerary/{day}/image')
async def upload_day_image(
    trip_id: int,
    day: date,
    body: ImageUpload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _save():
        plan = daily_plan_or_404(trip_or_404(db, trip_id, current_user), day)
        plan.day_image_uri = body.image_data_uri
        db.commit()
        return plan.to_dict()

    plan = await run_in_threadpool(_save)
    logger.info("Day image uploaded: trip=%d %s", trip_id, day)
    return {'daily_plan': plan}


@itinerary_router.delete('/itinerary/{day}/image')
async def delete_day_image(
    trip_id: int,
    day: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _clear():
        plan = daily_plan_or_404(trip_or_404(db, trip_id, current_user), day)
        plan.day_image_uri = None
        db.commit()
        return plan.to_dict()

    return {'daily_plan': await run_in_threadpool(_clear)}


@itinerary_router.get('/itinerary/{day}/route')
async def get_day_route(
    trip_id: int,
    day: date,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    GET /trips/{id}/itinerary/{date}/route

    Waypoints in chronological order with straight-line legs; driving distance
    and duration are added when the routing service is enabled.
    """
    def _load():
        trip = trip_or_404(db, trip_id, current_user)
        daily_plan_or_404(trip, day)
        return activities_for_date(trip, day)

    activities = await run_in_threadpool(_load)
    route = await routing.day_route(activities)
    return {'date': day.isoformat(), **route}


# ── Activities ────────────────────────────────────────────────────────────────

@itinerary_router.get('/activities')
async def list_activities(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _query():
        trip = trip_or_404(db, trip_id, current_user)
        return [a.to_dict() for a in sorted(trip.activities, key=activity_sort_key)]

    return {'activities': await run_in_threadpool(_query)}


@itinerary_router.post('/activities', status_code=201)
async def create_activity(
    trip_id: int,
    body: ActivityIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _create():
        trip = trip_or_404(db, trip_id, current_user)
        activity = Activity(trip_id=trip.id)
        _apply_activity(activity, body)
        trip.activities.append(activity)
        db.commit()
        db.refresh(activity)
        return activity.to_dict()

    activity = await run_in_threadpool(_create)
    logger.info("Activity created: id=%d %s %r on trip %d",
                activity['id'], activity['type'], activity['name'], trip_id)
    return {'activity': activity}


@itinerary_router.put('/activities/{activity_id}')
async def update_activity(
    trip_id: int,
    activity_id: int,
    body: ActivityIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """PUT — replaces every field; omitted optional fields are cleared."""
    def _update():
        activity = _activity_or_404(trip_or_404(db, trip_id, current_user), activity_id)
        _apply_activity(activity, body)
        db.commit()
        return activity.to_dict()

    activity = await run_in_threadpool(_update)
    logger.info("Activity updated: id=%d on trip %d", activity_id, trip_id)
    return {'activity': activity}


@itinerary_router.delete('/activities/{activity_id}')
async def delete_activity(
    trip_id: int,
    activity_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _delete():
        trip = trip_or_404(db, trip_id, current_user)
        trip.activities.remove(_activity_or_404(trip, activity_id))
        db.commit()

    await run_in_threadpool(_delete)
    logger.info("Activity deleted: id=%d on trip %d", activity_id, trip_id)
    return {'status': 'ok'}


# ── Timeline ──────────────────────────────────────────────────────────────────

@itinerary_router.get('/timeline')
async def get_timeline(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _layout():
        trip = trip_or_404(db, trip_id, current_user)
        return build_timeline(trip.start_date, trip.end_date, trip.activities)

    return {'timeline': await run_in_threadpool(_layout)}
