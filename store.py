"""
store.py — Trip-scoped data access shared by the routers.

Every lookup goes through trip_or_404, which filters by the owning user, so a
trip id belonging to someone else behaves exactly like a missing one.
"""

import logging
from collections import Counter
from datetime import date, timedelta

from fastapi import HTTPException
from sqlalchemy.orm import Session

from models import Activity, DailyPlan, Trip, User

logger = logging.getLogger(__name__)


def trip_or_404(db: Session, trip_id: int, user: User) -> Trip:
    trip = db.get(Trip, trip_id)
    if not trip or trip.user_id != user.id:
        raise HTTPException(status_code=404, detail='Trip not found')
    return trip


def daily_plan_or_404(trip: Trip, day: date) -> DailyPlan:
    for plan in trip.daily_plans:
        if plan.date == day:
            return plan
    raise HTTPException(status_code=404, detail='Day not found in this trip')


def date_range(start: date, end: date) -> list[date]:
    """Every calendar day from start to end inclusive; empty when end < start."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def build_itinerary_shell(start: date, end: date) -> list[DailyPlan]:
    return [DailyPlan(date=day) for day in date_range(start, end)]


def apply_date_range(trip: Trip, start: date, end: date) -> None:
    """
    Move the trip to a new date range and rebuild its itinerary.

    Days present in both ranges keep their plan row untouched; days outside the
    new range are deleted; new days get an empty plan.
    """
    existing = {plan.date: plan for plan in trip.daily_plans}
    trip.start_date = start
    trip.end_date = end
    trip.daily_plans = [existing.get(day) or DailyPlan(date=day) for day in date_range(start, end)]


def activity_sort_key(activity: Activity):
    return (activity.start_date, activity.start_time or '00:00', activity.name.lower())


def activities_for_date(trip: Trip, day: date) -> list[Activity]:
    """Activities whose inclusive range contains day, by start time then name."""
    found = [a for a in trip.activities if a.covers(day)]
    return sorted(found, key=lambda a: (a.start_time or '00:00', a.name.lower()))


def total_budget(activities) -> float:
    total = 0.0
    for a in activities:
        total += (a.budget or 0) + (a.gasoline_budget or 0) + (a.tolls_budget or 0)
    return round(total, 2)


def trip_summary(trip: Trip) -> dict:
    packing = trip.packing_items
    preps   = trip.preparations
    by_type = Counter(a.type for a in trip.activities)
    return {
        'trip':        trip.to_dict(),
        'day_count':   len(trip.daily_plans),
        'packing':     {'packed': sum(1 for i in packing if i.packed), 'total': len(packing)},
        'preparations': {'completed': sum(1 for p in preps if p.completed), 'total': len(preps)},
        'activities_by_type': dict(by_type),
        'total_budget': total_budget(trip.activities),
    }
