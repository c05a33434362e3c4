"""
schemas.py — Pydantic v2 request models for Trip Planner.

Validation errors return HTTP 422; the handler in app.py maps them to
{'error': '...'} so every failure has the same response shape.
"""

import base64
import binascii
import re
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

ActivityType       = Literal['activity', 'meal', 'shopping', 'transport', 'lodging']
MealType           = Literal['breakfast', 'lunch', 'dinner', 'snack', 'other']
TransportationMode = Literal['car', 'bus', 'plane', 'train', 'boat', 'walking', 'other']
PackingPriority    = Literal['high', 'medium', 'low']
PrepCategory       = Literal['bookings', 'documents', 'finances', 'health', 'home', 'vehicle', 'other']

MAX_IMAGE_BYTES = 2 * 1024 * 1024

_TIME_RE     = r'^([01]\d|2[0-3]):[0-5]\d$'
_DATA_URI_RE = re.compile(r'^data:image/(png|jpeg|webp);base64,(.+)$', re.DOTALL)


# ── Shared validator helpers ──────────────────────────────────────────────────

def _collapse(v: str | None) -> str | None:
    """Collapse all whitespace to a single space, strip ends. Empty → None."""
    if v is None:
        return None
    s = re.sub(r'\s+', ' ', str(v)).strip()
    return s or None


def _strip_only(v: str | None) -> str | None:
    """Strip leading/trailing whitespace only — preserve internal newlines. Empty → None."""
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _capitalize_first(v: str | None) -> str | None:
    if not v:
        return v
    return v[0].upper() + v[1:]


def _check_range(start: date | None, end: date | None) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError('End date cannot be before start date')


# ── Auth ──────────────────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email:    str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator('email', mode='before')
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return str(v).strip().lower()


# ── Trips ─────────────────────────────────────────────────────────────────────

class Travelers(BaseModel):
    men:      int = Field(default=0, ge=0)
    women:    int = Field(default=0, ge=0)
    children: int = Field(default=0, ge=0)
    seniors:  int = Field(default=0, ge=0)


class TripCreate(BaseModel):
    destination: str        = Field(..., min_length=2, max_length=255)
    start_date:  date
    end_date:    date
    purpose:     str | None = Field(default=None, max_length=500)
    travelers:   Travelers  = Field(default_factory=Travelers)

    @field_validator('destination', mode='before')
    @classmethod
    def collapse_destination(cls, v: str | None) -> str | None:
        return _collapse(v)

    @field_validator('purpose', mode='before')
    @classmethod
    def strip_purpose(cls, v: str | None) -> str | None:
        return _strip_only(v)

    @model_validator(mode='after')
    def dates_in_order(self) -> 'TripCreate':
        _check_range(self.start_date, self.end_date)
        return self


class TripUpdate(BaseModel):
    """All fields optional — supports partial update semantics."""
    destination: str | None       = Field(default=None, min_length=2, max_length=255)
    start_date:  date | None      = None
    end_date:    date | None      = None
    purpose:     str | None       = Field(default=None, max_length=500)
    travelers:   Travelers | None = None

    @field_validator('destination', mode='before')
    @classmethod
    def collapse_destination(cls, v: str | None) -> str | None:
        return _collapse(v)

    @field_validator('purpose', mode='before')
    @classmethod
    def strip_purpose(cls, v: str | None) -> str | None:
        return _strip_only(v)

    @model_validator(mode='after')
    def dates_in_order(self) -> 'TripUpdate':
        _check_range(self.start_date, self.end_date)
        return self


class ActiveTripRequest(BaseModel):
    trip_id: int


class ImageUpload(BaseModel):
    image_data_uri: str

    @field_validator('image_data_uri')
    @classmethod
    def valid_image(cls, v: str) -> str:
        match = _DATA_URI_RE.match(v.strip())
        if not match:
            raise ValueError('Image must be a PNG, JPEG or WEBP data URI')
        try:
            raw = base64.b64decode(match.group(2), validate=True)
        except binascii.Error:
            raise ValueError('Image data is not valid base64')
        if len(raw) > MAX_IMAGE_BYTES:
            raise ValueError('Image is too large (2 MB maximum)')
        return v.strip()


# ── Itinerary ─────────────────────────────────────────────────────────────────

class DailyPlanUpdate(BaseModel):
    """Omitted fields leave the day unchanged; null or blank notes clear them."""
    notes: str | None = Field(default=None, max_length=10000)

    @field_validator('notes', mode='before')
    @classmethod
    def strip_notes(cls, v: str | None) -> str:
        return _strip_only(v) or ''


# Type-specific fields, cleared when the activity is of another type.
_TYPE_SPECIFIC_FIELDS = {
    'meal':      ('meal_type', 'cuisine_type', 'dietary_notes'),
    'activity':  ('activity_category',),
    'shopping':  ('shopping_category',),
    'transport': ('transportation_mode', 'gasoline_budget', 'tolls_budget',
                  'origin_location', 'origin_city_region', 'origin_address',
                  'origin_latitude', 'origin_longitude',
                  'destination_location', 'destination_city_region', 'destination_address',
                  'destination_latitude', 'destination_longitude'),
}


class ActivityIn(BaseModel):
    """Create and full-replace payload for an activity."""
    type:       ActivityType
    name:       str  = Field(..., min_length=2, max_length=255)
    start_date: date
    end_date:   date

    location:    str | None   = Field(default=None, max_length=255)
    city_region: str | None   = Field(default=None, max_length=255)
    address:     str | None   = Field(default=None, max_length=500)
    latitude:    float | None = Field(default=None, ge=-90, le=90)
    longitude:   float | None = Field(default=None, ge=-180, le=180)

    origin_location:         str | None   = Field(default=None, max_length=255)
    origin_city_region:      str | None   = Field(default=None, max_length=255)
    origin_address:          str | None   = Field(default=None, max_length=500)
    origin_latitude:         float | None = Field(default=None, ge=-90, le=90)
    origin_longitude:        float | None = Field(default=None, ge=-180, le=180)
    destination_location:    str | None   = Field(default=None, max_length=255)
    destination_city_region: str | None   = Field(default=None, max_length=255)
    destination_address:     str | None   = Field(default=None, max_length=500)
    destination_latitude:    float | None = Field(default=None, ge=-90, le=90)
    destination_longitude:   float | None = Field(default=None, ge=-180, le=180)

    reservation_info: str | None   = Field(default=None, max_length=500)
    budget:           float | None = Field(default=None, ge=0)
    start_time:       str | None   = Field(default=None, pattern=_TIME_RE)
    end_time:         str | None   = Field(default=None, pattern=_TIME_RE)
    notes:            str | None   = Field(default=None, max_length=5000)

    meal_type:           MealType | None           = None
    cuisine_type:        str | None                = Field(default=None, max_length=150)
    dietary_notes:       str | None                = Field(default=None, max_length=500)
    activity_category:   str | None                = Field(default=None, max_length=150)
    shopping_category:   str | None                = Field(default=None, max_length=150)
    transportation_mode: TransportationMode | None = None
    gasoline_budget:     float | None              = Field(default=None, ge=0)
    tolls_budget:        float | None              = Field(default=None, ge=0)

    @field_validator('name', 'location', 'city_region', 'address',
                     'origin_location', 'origin_city_region', 'origin_address',
                     'destination_location', 'destination_city_region', 'destination_address',
                     'reservation_info', 'start_time', 'end_time',
                     'cuisine_type', 'dietary_notes', 'activity_category', 'shopping_category',
                     'meal_type', 'transportation_mode', mode='before')
    @classmethod
    def collapse_single_line(cls, v: str | None) -> str | None:
        return _collapse(v)

    @field_validator('notes', mode='before')
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        return _strip_only(v)

    @model_validator(mode='after')
    def consistent(self) -> 'ActivityIn':
        _check_range(self.start_date, self.end_date)
        for prefix in ('', 'origin_', 'destination_'):
            lat = getattr(self, f'{prefix}latitude')
            lng = getattr(self, f'{prefix}longitude')
            if (lat is None) != (lng is None):
                raise ValueError('Latitude and longitude must be provided together')
        for activity_type, fields in _TYPE_SPECIFIC_FIELDS.items():
            if self.type != activity_type:
                for field in fields:
                    setattr(self, field, None)
        return self


# ── Packing list ──────────────────────────────────────────────────────────────

class PackingItemCreate(BaseModel):
    name:     str             = Field(..., min_length=2, max_length=255)
    quantity: int             = Field(default=1, ge=1)
    priority: PackingPriority = 'medium'

    @field_validator('name', mode='before')
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return _capitalize_first(_collapse(v))


class PackingItemUpdate(BaseModel):
    """All fields optional — supports partial update semantics."""
    name:     str | None             = Field(default=None, min_length=2, max_length=255)
    quantity: int | None             = Field(default=None, ge=1)
    priority: PackingPriority | None = None
    packed:   bool | None            = None

    @field_validator('name', mode='before')
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return _capitalize_first(_collapse(v))


# ── Preparations ──────────────────────────────────────────────────────────────

class ChecklistEntry(BaseModel):
    id:        str | None = Field(default=None, max_length=64)
    text:      str        = Field(..., min_length=1, max_length=500)
    completed: bool       = False

    @field_validator('text', mode='before')
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return _collapse(v)


class PreparationItemCreate(BaseModel):
    name:      str                  = Field(..., min_length=2, max_length=255)
    category:  PrepCategory         = 'other'
    due_date:  date | None          = None
    notes:     str | None           = Field(default=None, max_length=5000)
    checklist: list[ChecklistEntry] = Field(default_factory=list)
    completed: bool                 = False

    @field_validator('name', mode='before')
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return _capitalize_first(_collapse(v))

    @field_validator('notes', mode='before')
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        return _strip_only(v)


class PreparationItemUpdate(BaseModel):
    """All fields optional — supports partial update semantics."""
    name:      str | None                  = Field(default=None, min_length=2, max_length=255)
    category:  PrepCategory | None         = None
    due_date:  date | None                 = None
    notes:     str | None                  = Field(default=None, max_length=5000)
    checklist: list[ChecklistEntry] | None = None
    completed: bool | None                 = None

    @field_validator('name', mode='before')
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return _capitalize_first(_collapse(v))

    @field_validator('notes', mode='before')
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        return _strip_only(v)
