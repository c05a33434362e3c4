"""
trips.py — Trip router for Trip Planner (FastAPI)

Routes (all require authentication, all scoped to the current user):
  GET    /trips                — list trips, newest first
  POST   /trips                — create a trip + itinerary shell, make it active
  GET    /trips/active         — the active trip, or null
  PUT    /trips/active         — select the active trip
  DELETE /trips/active         — deselect
  GET    /trips/{id}           — full trip (itinerary, activities, checklists)
  PUT    /trips/{id}           — partial update; date changes reshape the itinerary
  DELETE /trips/{id}           — delete the trip and everything under it
  GET    /trips/{id}/summary   — progress + budget overview
  PUT    /trips/{id}/image     — upload a custom banner image
  DELETE /trips/{id}/image     — remove the banner image

The /active routes are declared before /{trip_id} so they are matched first.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import get_db
from auth import get_current_user
from schemas import ActiveTripRequest, ImageUpload, TripCreate, TripUpdate
from models import Trip, User
from store import apply_date_range, build_itinerary_shell, trip_or_404, trip_summary

logger = logging.getLogger(__name__)

trips_router = APIRouter(prefix='/trips', tags=['trips'])


# ── Collection ────────────────────────────────────────────────────────────────

@trips_router.get('')
async def list_trips(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /trips — the user's trips, newest first."""
    def _query():
        trips = (db.query(Trip)
                 .filter_by(user_id=current_user.id)
                 .order_by(Trip.created_at.desc(), Trip.id.desc())
                 .all())
        return [t.to_dict() for t in trips]

    return {'trips': await run_in_threadpool(_query)}


@trips_router.post('', status_code=201)
async def create_trip(
    body: TripCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """POST /trips — create the trip with one empty daily plan per day."""
    def _create():
        trip = Trip(
            user_id            = current_user.id,
            destination        = body.destination,
            start_date         = body.start_date,
            end_date           = body.end_date,
            purpose            = body.purpose or '',
            travelers_men      = body.travelers.men,
            travelers_women    = body.travelers.women,
            travelers_children = body.travelers.children,
            travelers_seniors  = body.travelers.seniors,
        )
        trip.daily_plans = build_itinerary_shell(body.start_date, body.end_date)
        db.add(trip)
        db.flush()
        current_user.active_trip_id = trip.id
        db.commit()
        db.refresh(trip)
        return trip.to_dict(full=True)

    trip = await run_in_threadpool(_create)
    logger.info("Trip created: id=%d %r (%s..%s) by user %d",
                trip['id'], trip['destination'], trip['start_date'], trip['end_date'], current_user.id)
    return {'trip': trip}


# ── Active trip ───────────────────────────────────────────────────────────────

@trips_router.get('/active')
async def get_active_trip(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /trips/active — {trip} or {trip: null}; a stale id counts as none."""
    def _get():
        if current_user.active_trip_id is None:
            return None
        trip = db.get(Trip, current_user.active_trip_id)
        if not trip or trip.user_id != current_user.id:
            return None
        return trip.to_dict(full=True)

    return {'trip': await run_in_threadpool(_get)}


@trips_router.put('/active')
async def set_active_trip(
    body: ActiveTripRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _set():
        trip = trip_or_404(db, body.trip_id, current_user)
        current_user.active_trip_id = trip.id
        db.commit()
        return trip.to_dict(full=True)

    trip = await run_in_threadpool(_set)
    logger.info("Active trip set: id=%d for user %d", trip['id'], current_user.id)
    return {'trip': trip}


@trips_router.delete('/active')
async def clear_active_trip(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _clear():
        current_user.active_trip_id = None
        db.commit()

    await run_in_threadpool(_clear)
    return {'status': 'ok'}


# ── Single trip ───────────────────────────────────────────────────────────────

@trips_router.get('/{trip_id}')
async def get_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """GET /trips/{id} — full trip including itinerary, activities and checklists."""
    trip = await run_in_threadpool(lambda: trip_or_404(db, trip_id, current_user).to_dict(full=True))
    return {'trip': trip}


@trips_router.put('/{trip_id}')
async def update_trip(
    trip_id: int,
    body: TripUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    PUT /trips/{id} — partial update.

    Only fields present in the body are applied. When either date changes the
    itinerary is rebuilt for the new range: overlapping days keep their notes,
    route text and image; the rest are dropped or created empty.
    """
    def _update():
        trip = trip_or_404(db, trip_id, current_user)
        sent = body.model_fields_set

        if 'destination' in sent and body.destination is not None:
            trip.destination = body.destination
        if 'purpose' in sent:
            trip.purpose = body.purpose or ''
        if 'travelers' in sent and body.travelers is not None:
            trip.travelers_men      = body.travelers.men
            trip.travelers_women    = body.travelers.women
            trip.travelers_children = body.travelers.children
            trip.travelers_seniors  = body.travelers.seniors

        new_start = body.start_date if body.start_date is not None else trip.start_date
        new_end   = body.end_date if body.end_date is not None else trip.end_date
        if new_end < new_start:
            raise HTTPException(status_code=422, detail='End date cannot be before start date')
        if (new_start, new_end) != (trip.start_date, trip.end_date):
            apply_date_range(trip, new_start, new_end)

        db.commit()
        db.refresh(trip)
        return trip.to_dict(full=True)

    trip = await run_in_threadpool(_update)
    logger.info("Trip updated: id=%d by user %d", trip['id'], current_user.id)
    return {'trip': trip}


@trips_router.delete('/{trip_id}')
async def delete_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """DELETE /trips/{id} — hard delete, cascading to plans, activities and checklists."""
    def _delete():
        trip = trip_or_404(db, trip_id, current_user)
        if current_user.active_trip_id == trip.id:
            current_user.active_trip_id = None
        db.delete(trip)
        db.commit()

    await run_in_threadpool(_delete)
    logger.info("Trip deleted: id=%d by user %d", trip_id, current_user.id)
    return {'status': 'ok', 'message': f'Trip #{trip_id} deleted'}


@trips_router.get('/{trip_id}/summary')
async def get_trip_summary(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    summary = await run_in_threadpool(lambda: trip_summary(trip_or_404(db, trip_id, current_user)))
    return {'summary': summary}


# ── Banner image ──────────────────────────────────────────────────────────────

@trips_router.put('/{trip_id}/image')
async def upload_trip_image(
    trip_id: int,
    body: ImageUpload,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _save():
        trip = trip_or_404(db, trip_id, current_user)
        trip.summary_image_uri = body.image_data_uri
        db.commit()
        return trip.to_dict()

    trip = await run_in_threadpool(_save)
    logger.info("Trip banner uploaded: id=%d (%d chars)", trip_id, len(body.image_data_uri))
    return {'trip': trip}


@trips_router.delete('/{trip_id}/image')
async def delete_trip_image(
    trip_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    def _clear():
        trip = trip_or_404(db, trip_id, current_user)
        trip.summary_image_uri = None
        db.commit()
        return trip.to_dict()

    trip = await run_in_threadpool(_clear)
    logger.info("Trip banner removed: id=%d", trip_id)
    return {'trip': trip}
