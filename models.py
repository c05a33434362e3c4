"""
SQLAlchemy ORM models for Trip Planner.

Six models:
  User             — account that owns trips (operator creates via CLI, no self-registration)
  Trip             — destination, date range, purpose and travellers
  DailyPlan        — one row per calendar day of a trip: notes + cached AI route text
  Activity         — typed event (activity/meal/shopping/transport/lodging) over a date range
  PackingItem      — packing list entry
  PreparationItem  — pre-trip task with an optional sub-task checklist

Everything under a trip is keyed by trip_id and removed with it.

Default database: SQLite (trip_planner.db).
Production: set DATABASE_URL env var to a PostgreSQL connection string.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship


def _utcnow():
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# db is kept as a module-level name so external imports (app.py, migrations/env.py)
# can reference db.metadata for table creation.
db = declarative_base()


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(db):
    __tablename__ = 'users'

    id             = Column(Integer, primary_key=True)
    email          = Column(String(255), unique=True, nullable=False, index=True)
    display_name   = Column(String(255), nullable=False)
    password_hash  = Column(String(255), nullable=False)
    is_active      = Column(Boolean, nullable=False, default=True)
    # Plain integer, not a foreign key: trips.user_id already points the other way.
    active_trip_id = Column(Integer, nullable=True)
    created_at     = Column(DateTime, nullable=False, default=_utcnow)
    last_login_at  = Column(DateTime, nullable=True)

    def to_dict(self):
        return {
            'id':             self.id,
            'email':          self.email,
            'display_name':   self.display_name,
            'is_active':      self.is_active,
            'active_trip_id': self.active_trip_id,
            'created_at':     _iso(self.created_at),
            'last_login_at':  _iso(self.last_login_at),
        }

    def __repr__(self):
        return f'<User {self.email}>'


# ---------------------------------------------------------------------------
# Trip
# ---------------------------------------------------------------------------

class Trip(db):
    __tablename__ = 'trips'

    id          = Column(Integer, primary_key=True)
    user_id     = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    destination = Column(String(255), nullable=False)
    start_date  = Column(Date, nullable=False)
    end_date    = Column(Date, nullable=False)
    purpose     = Column(String(500), nullable=False, default='')

    # ── Travellers ───────────────────────────────────────────────────────────
    travelers_men      = Column(Integer, nullable=False, default=0)
    travelers_women    = Column(Integer, nullable=False, default=0)
    travelers_children = Column(Integer, nullable=False, default=0)
    travelers_seniors  = Column(Integer, nullable=False, default=0)

    summary_image_uri = Column(Text, nullable=True)   # data: URI, generated or uploaded
    created_at        = Column(DateTime, nullable=False, default=_utcnow)
    updated_at        = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    daily_plans  = relationship('DailyPlan', back_populates='trip', order_by='DailyPlan.date',
                                cascade='all, delete-orphan')
    activities   = relationship('Activity', back_populates='trip', order_by='Activity.id',
                                cascade='all, delete-orphan')
    packing_items = relationship('PackingItem', back_populates='trip', order_by='PackingItem.id',
                                 cascade='all, delete-orphan')
    preparations = relationship('PreparationItem', back_populates='trip',
                                order_by='PreparationItem.id', cascade='all, delete-orphan')

    @property
    def travelers(self) -> dict:
        return {
            'men':      self.travelers_men or 0,
            'women':    self.travelers_women or 0,
            'children': self.travelers_children or 0,
            'seniors':  self.travelers_seniors or 0,
        }

    def to_dict(self, full=False):
        d = {
            'id':                self.id,
            'user_id':           self.user_id,
            'destination':       self.destination,
            'start_date':        _iso(self.start_date),
            'end_date':          _iso(self.end_date),
            'purpose':           self.purpose or '',
            'travelers':         self.travelers,
            'summary_image_uri': self.summary_image_uri or None,
            'created_at':        _iso(self.created_at),
            'updated_at':        _iso(self.updated_at),
        }
        if full:
            d['itinerary']    = [p.to_dict() for p in self.daily_plans]
            d['activities']   = [a.to_dict() for a in self.activities]
            d['packing_list'] = [i.to_dict() for i in self.packing_items]
            d['preparations'] = [p.to_dict() for p in self.preparations]
        return d

    def __repr__(self):
        return f'<Trip #{self.id} {self.destination!r} {self.start_date}..{self.end_date}>'


# ---------------------------------------------------------------------------
# DailyPlan
# ---------------------------------------------------------------------------

class DailyPlan(db):
    __tablename__ = 'daily_plans'
    __table_args__ = (UniqueConstraint('trip_id', 'date', name='uq_daily_plan_trip_date'),)

    id                     = Column(Integer, primary_key=True)
    trip_id                = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    date                   = Column(Date, nullable=False)
    notes                  = Column(Text, nullable=False, default='')
    optimized_route        = Column(Text, nullable=False, default='')
    estimated_time_savings = Column(Text, nullable=False, default='')
    estimated_cost_savings = Column(Text, nullable=False, default='')
    day_image_uri          = Column(Text, nullable=True)

    trip = relationship('Trip', back_populates='daily_plans')

    def to_dict(self):
        return {
            'date':                   _iso(self.date),
            'notes':                  self.notes or '',
            'optimized_route':        self.optimized_route or '',
            'estimated_time_savings': self.estimated_time_savings or '',
            'estimated_cost_savings': self.estimated_cost_savings or '',
            'day_image_uri':          self.day_image_uri or None,
        }

    def __repr__(self):
        return f'<DailyPlan trip={self.trip_id} {self.date}>'


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

# Optional columns copied verbatim between the request schema and the row.
ACTIVITY_FIELDS = (
    'location', 'city_region', 'address', 'latitude', 'longitude',
    'origin_location', 'origin_city_region', 'origin_address',
    'origin_latitude', 'origin_longitude',
    'destination_location', 'destination_city_region', 'destination_address',
    'destination_latitude', 'destination_longitude',
    'reservation_info', 'budget', 'start_time', 'end_time', 'notes',
    'meal_type', 'cuisine_type', 'dietary_notes',
    'activity_category', 'shopping_category',
    'transportation_mode', 'gasoline_budget', 'tolls_budget',
)


class Activity(db):
    __tablename__ = 'activities'

    id         = Column(Integer, primary_key=True)
    trip_id    = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    type       = Column(String(20), nullable=False)    # activity|meal|shopping|transport|lodging
    name       = Column(String(255), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date   = Column(Date, nullable=False)

    # ── General location ─────────────────────────────────────────────────────
    location    = Column(String(255), nullable=True)
    city_region = Column(String(255), nullable=True)
    address     = Column(String(500), nullable=True)
    latitude    = Column(Float, nullable=True)
    longitude   = Column(Float, nullable=True)

    # ── Transport: origin / destination ──────────────────────────────────────
    origin_location         = Column(String(255), nullable=True)
    origin_city_region      = Column(String(255), nullable=True)
    origin_address          = Column(String(500), nullable=True)
    origin_latitude         = Column(Float, nullable=True)
    origin_longitude        = Column(Float, nullable=True)
    destination_location    = Column(String(255), nullable=True)
    destination_city_region = Column(String(255), nullable=True)
    destination_address     = Column(String(500), nullable=True)
    destination_latitude    = Column(Float, nullable=True)
    destination_longitude   = Column(Float, nullable=True)

    # ── Common ───────────────────────────────────────────────────────────────
    reservation_info = Column(String(500), nullable=True)
    budget           = Column(Float, nullable=True)
    start_time       = Column(String(5), nullable=True)   # HH:MM
    end_time         = Column(String(5), nullable=True)
    notes            = Column(Text, nullable=True)

    # ── Type-specific ────────────────────────────────────────────────────────
    meal_type           = Column(String(20), nullable=True)
    cuisine_type        = Column(String(150), nullable=True)
    dietary_notes       = Column(String(500), nullable=True)
    activity_category   = Column(String(150), nullable=True)
    shopping_category   = Column(String(150), nullable=True)
    transportation_mode = Column(String(20), nullable=True)
    gasoline_budget     = Column(Float, nullable=True)
    tolls_budget        = Column(Float, nullable=True)

    created_at = Column(DateTime, nullable=False, default=_utcnow)

    trip = relationship('Trip', back_populates='activities')

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self):
        d = {
            'id':         self.id,
            'type':       self.type,
            'name':       self.name,
            'start_date': _iso(self.start_date),
            'end_date':   _iso(self.end_date),
        }
        for field in ACTIVITY_FIELDS:
            d[field] = getattr(self, field)
        return d

    def __repr__(self):
        return f'<Activity #{self.id} {self.type} {self.name!r}>'


# ---------------------------------------------------------------------------
# Packing list
# ---------------------------------------------------------------------------

class PackingItem(db):
    __tablename__ = 'packing_items'

    id       = Column(Integer, primary_key=True)
    trip_id  = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    name     = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    priority = Column(String(10), nullable=False, default='medium')   # high | medium | low
    packed   = Column(Boolean, nullable=False, default=False)

    trip = relationship('Trip', back_populates='packing_items')

    def to_dict(self):
        return {
            'id':       self.id,
            'name':     self.name,
            'quantity': self.quantity,
            'priority': self.priority,
            'packed':   self.packed,
        }


# ---------------------------------------------------------------------------
# Preparations
# ---------------------------------------------------------------------------

class PreparationItem(db):
    __tablename__ = 'preparation_items'

    id        = Column(Integer, primary_key=True)
    trip_id   = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    name      = Column(String(255), nullable=False)
    category  = Column(String(20), nullable=False, default='other')
    due_date  = Column(Date, nullable=True)
    notes     = Column(Text, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    checklist = Column(Text, nullable=True)   # JSON [{id, text, completed}, ...]

    trip = relationship('Trip', back_populates='preparations')

    @property
    def checklist_items(self) -> list:
        return json.loads(self.checklist) if self.checklist else []

    def to_dict(self):
        return {
            'id':        self.id,
            'name':      self.name,
            'category':  self.category,
            'due_date':  _iso(self.due_date),
            'notes':     self.notes,
            'completed': self.completed,
            'checklist': self.checklist_items,
        }
