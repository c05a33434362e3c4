"""
flows.py — AI flows for Trip Planner.

Four flows, each a fixed prompt template around one model call:
  optimize_day_route       — route + transport suggestions for one day
  optimize_full_trip       — trip-wide recommendations and potential issues
  generate_trip_narrative  — the trip told as a story
  generate_trip_image      — landscape banner for the destination (data URI)

Text flows go to Claude and must answer with one JSON object, validated with
a Pydantic model. The image flow goes to Gemini. Any failure raises FlowError;
callers decide what to tell the user.

Plus the plain-text itinerary descriptions the text flows are fed with.
"""

import base64
import hashlib
import json
import logging
import os
import time

import anthropic
import redis
from anthropic import AsyncAnthropic
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from pydantic import BaseModel, ValidationError

from redis_client import get_redis

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PLANNER_MODEL        = os.getenv('PLANNER_MODEL', 'claude-haiku-4-5-20251001')
IMAGE_MODEL          = os.getenv('IMAGE_MODEL', 'gemini-2.0-flash-exp')
GEMINI_API_KEY       = os.getenv('GEMINI_API_KEY', '')
AI_RESPONSE_LANGUAGE = os.getenv('AI_RESPONSE_LANGUAGE', 'English')

CACHE_TTL_SECONDS = 3600

TYPE_LABELS = {
    'activity':  'Activity',
    'meal':      'Meal',
    'shopping':  'Shopping',
    'transport': 'Transport',
    'lodging':   'Lodging',
}


class FlowError(Exception):
    """An AI flow could not produce a usable result."""


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

anthropic_client = AsyncAnthropic()

_genai_client: genai.Client | None = None


def _image_client() -> genai.Client:
    global _genai_client
    if _genai_client is None:
        if not GEMINI_API_KEY:
            raise FlowError('Image generation is not configured (GEMINI_API_KEY is not set)')
        _genai_client = genai.Client(api_key=GEMINI_API_KEY)
    return _genai_client


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------

class RouteOptimization(BaseModel):
    optimized_route:        str
    estimated_time_savings: str
    estimated_cost_savings: str


class TripOptimization(BaseModel):
    global_recommendations: str
    potential_issues:       str | None = None


class TripNarrative(BaseModel):
    narrative: str


# ---------------------------------------------------------------------------
# Cache helpers (Redis + in-memory fallback)
# ---------------------------------------------------------------------------

_cache: dict = {}


def _cache_key(*args) -> str:
    raw = json.dumps(args, sort_keys=True, default=str)
    return hashlib.md5(raw.encode()).hexdigest()


def _get_cached(key: str):
    r = get_redis()
    if r is not None:
        try:
            raw = r.get(f'cache:{key}')
            return json.loads(raw) if raw is not None else None
        except (redis.RedisError, ValueError) as exc:
            logger.warning('Redis cache GET error: %s — falling back', exc)
    entry = _cache.get(key)
    if entry and (time.time() - entry[0]) < CACHE_TTL_SECONDS:
        return entry[1]
    return None


def _set_cached(key: str, value) -> None:
    r = get_redis()
    if r is not None:
        try:
            r.setex(f'cache:{key}', CACHE_TTL_SECONDS, json.dumps(value))
            return
        except redis.RedisError as exc:
            logger.warning('Redis cache SET error: %s — falling back', exc)
    _cache[key] = (time.time(), value)


def clear_cache() -> None:
    _cache.clear()


# ---------------------------------------------------------------------------
# Itinerary descriptions
# ---------------------------------------------------------------------------

def _format_day(day) -> str:
    return day.strftime('%A, %d %B %Y')


def _location_parts(location, city_region, address) -> list[str]:
    return [p for p in (location, city_region, address) if p]


def describe_day(activities) -> str:
    """One line per activity, fields separated by '; '."""
    lines = []
    for act in activities:
        parts = [f'- Type: {TYPE_LABELS.get(act.type, act.type)}', f'Name: {act.name}']
        if act.start_time:
            parts.append(f'Start time: {act.start_time}')
        if act.end_time:
            parts.append(f'End time: {act.end_time}')

        where = _location_parts(act.location, act.city_region, act.address)
        if where:
            parts.append(f"Location: {', '.join(where)}")
        if act.latitude is not None and act.longitude is not None:
            parts.append(f'Coords: {act.latitude}, {act.longitude}')
        if act.budget:
            parts.append(f'Budget: {act.budget:g}')

        if act.type == 'transport':
            origin = _location_parts(act.origin_location, act.origin_city_region, act.origin_address)
            dest   = _location_parts(act.destination_location, act.destination_city_region,
                                     act.destination_address)
            if origin:
                parts.append(f"From: {', '.join(origin)}")
            if dest:
                parts.append(f"To: {', '.join(dest)}")
            if act.transportation_mode:
                parts.append(f'Transport mode: {act.transportation_mode}')
            if act.gasoline_budget:
                parts.append(f'Fuel budget: {act.gasoline_budget:g}')
            if act.tolls_budget:
                parts.append(f'Tolls budget: {act.tolls_budget:g}')
        elif act.type == 'meal':
            if act.meal_type:
                parts.append(f'Meal: {act.meal_type}')
            if act.cuisine_type:
                parts.append(f'Cuisine: {act.cuisine_type}')
            if act.dietary_notes:
                parts.append(f'Dietary notes: {act.dietary_notes}')
        elif act.type == 'activity' and act.activity_category:
            parts.append(f'Activity category: {act.activity_category}')
        elif act.type == 'shopping' and act.shopping_category:
            parts.append(f'Shopping category: {act.shopping_category}')

        if act.notes:
            parts.append(f'Notes: {act.notes}')
        lines.append('; '.join(parts))
    return '\n'.join(lines)


def _describe_inline(act, detailed: bool) -> str:
    desc = f'    - {TYPE_LABELS.get(act.type, act.type)}: {act.name}'
    if act.location:
        desc += f' at {act.location}'
    if act.city_region:
        desc += f', {act.city_region}'
    if act.address:
        desc += f' (Address: {act.address})'
    if detailed and act.type == 'transport':
        origin = act.origin_location or act.origin_city_region
        dest   = act.destination_location or act.destination_city_region
        if origin or dest:
            desc += f" from {origin or '?'} to {dest or '?'}"
        if act.transportation_mode:
            desc += f' by {act.transportation_mode}'
    if act.start_time:
        desc += f' starting {act.start_time}'
    if act.end_time:
        desc += f' until {act.end_time}'
    if act.budget:
        desc += f' (Budget: {act.budget:g})'
    if act.notes:
        desc += f' - Notes: {act.notes}'
    if act.reservation_info:
        desc += f' - Reservation: {act.reservation_info}'
    return desc


def describe_trip(trip, activities_for_day, detailed: bool = False) -> str:
    """
    Day-by-day description of a whole trip.

    activities_for_day(date) returns the activities covering that date. With
    detailed=True the header also lists purpose and travellers, and transport
    lines include origin, destination and mode.
    """
    text = (f'Itinerary for {trip.destination} '
            f'({_format_day(trip.start_date)} - {_format_day(trip.end_date)}):\n')
    if detailed:
        if trip.purpose:
            text += f'Purpose: {trip.purpose}\n'
        travelers = ', '.join(f'{n} {kind}' for kind, n in trip.travelers.items() if n)
        text += f"Travellers: {travelers or 'not specified'}\n"
    text += '\n'

    for plan in trip.daily_plans:
        text += f'Day: {_format_day(plan.date)}\n'
        if plan.notes:
            text += f'  Day notes: {plan.notes}\n'
        day_activities = activities_for_day(plan.date)
        if day_activities:
            text += '  Activities:\n'
            for act in day_activities:
                text += _describe_inline(act, detailed) + '\n'
        else:
            text += '  No activities planned for this day.\n'
        text += '\n'
    return text


def describe_preparations(preparations) -> str:
    if not preparations:
        return 'No preparations recorded.'

    def _line(p):
        line = f'- {p.name} ({p.category})'
        if p.due_date:
            line += f', due {p.due_date.isoformat()}'
        checklist = p.checklist_items
        if checklist:
            done = sum(1 for c in checklist if c.get('completed'))
            line += f' [{done}/{len(checklist)} sub-tasks done]'
        return line

    done    = [_line(p) for p in preparations if p.completed]
    pending = [_line(p) for p in preparations if not p.completed]
    text = 'Completed:\n' + ('\n'.join(done) if done else '- none') + '\n'
    text += 'Pending:\n' + ('\n'.join(pending) if pending else '- none')
    return text


# ---------------------------------------------------------------------------
# Model call + response parsing
# ---------------------------------------------------------------------------

def _strip_fences(raw_text: str) -> str:
    if raw_text.startswith('```'):
        parts = raw_text.split('```', 2)
        inner = parts[1] if len(parts) >= 2 else raw_text
        if inner.startswith('json'):
            inner = inner[4:]
        raw_text = inner.strip()
    return raw_text


def parse_json_object(raw_text: str, flow_name: str) -> dict:
    """Parse the model's reply as one JSON object, tolerating fences and chatter around it."""
    text = _strip_fences(raw_text.strip())
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find('{'), text.rfind('}')
        if start == -1 or end <= start:
            raise FlowError(f'{flow_name}: response contained no JSON object')
        try:
            value = json.loads(text[start:end + 1])
        except json.JSONDecodeError as exc:
            raise FlowError(f'{flow_name}: invalid JSON in response ({exc})')
    if not isinstance(value, dict):
        raise FlowError(f'{flow_name}: expected a JSON object')
    return value


async def _complete_json(flow_name: str, system_prompt: str, user_prompt: str,
                         output_model: type[BaseModel], max_tokens: int) -> BaseModel:
    try:
        message = await anthropic_client.messages.create(
            model=PLANNER_MODEL,
            max_tokens=max_tokens,
            system=system_prompt,
            messages=[{'role': 'user', 'content': user_prompt}],
        )
    except anthropic.APIError as exc:
        raise FlowError(f'{flow_name}: model request failed ({exc})') from exc

    raw_text = ''
    for block in message.content:
        block_text = getattr(block, 'text', None)
        if block_text:
            raw_text = str(block_text)
            break

    data = parse_json_object(raw_text, flow_name)
    try:
        return output_model.model_validate(data)
    except ValidationError as exc:
        raise FlowError(f'{flow_name}: response did not match the expected fields') from exc


def _language_rule() -> str:
    return f'Write every value in {AI_RESPONSE_LANGUAGE}.'


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------

async def optimize_day_route(daily_itinerary: str) -> RouteOptimization:
    """Suggest the most efficient order and transport for one day's activities."""
    key = _cache_key('route', PLANNER_MODEL, AI_RESPONSE_LANGUAGE, daily_itinerary)
    cached = _get_cached(key)
    if cached is not None:
        logger.info('Route flow: cache hit')
        return RouteOptimization.model_validate(cached)

    system_prompt = f"""You are a travel planner who specialises in daily route optimisation.
{_language_rule()}

RULES:
- Use the activities, times and locations given to suggest the most efficient order and the
  transport to use between stops. Weigh travel time, cost and convenience.
- If a place name is ambiguous (only a city name, say), pin it down — city, region, country —
  before reasoning about distances.
- A Lodging entry that repeats across consecutive days is the base of operations for those days.
- If there are too few activities to optimise (one stop, or lodging only), say so plainly in
  optimized_route and say what extra information would help. Use "Not applicable" or a short
  explanation for the two savings fields.

OUTPUT FORMAT — return EXACTLY one JSON object, no markdown:
{{
  "optimized_route": "[Suggested order of stops with transport between them]",
  "estimated_time_savings": "[Approximate time saved, or 'Not applicable']",
  "estimated_cost_savings": "[Approximate cost saved, or 'Not applicable']"
}}"""

    user_prompt = f"""Day itinerary:
{daily_itinerary}

Return the JSON object only."""

    result = await _complete_json('Route flow', system_prompt, user_prompt, RouteOptimization, 2000)
    _set_cached(key, result.model_dump())
    logger.info('Route flow: %d chars of route text', len(result.optimized_route))
    return result


async def optimize_full_trip(destination: str, start_date: str, end_date: str,
                             full_itinerary: str) -> TripOptimization:
    """Trip-wide recommendations: ordering, grouping, overloaded days, conflicts."""
    key = _cache_key('trip', PLANNER_MODEL, AI_RESPONSE_LANGUAGE, destination, start_date,
                     end_date, full_itinerary)
    cached = _get_cached(key)
    if cached is not None:
        logger.info('Trip flow: cache hit for %s', destination)
        return TripOptimization.model_validate(cached)

    system_prompt = f"""You are an expert travel planner reviewing a complete itinerary as a whole.
{_language_rule()}

CONSIDER:
- The overall flow: is there a more sensible order for places and activities across the days?
- Transport between points or cities, when the itinerary has any.
- Grouping themed or nearby activities across days.
- Days that are overloaded or empty.
- Lodging repeated on consecutive days is the base of operations for those dates.
- Conflicts or unrealistic travel times, especially long transfers between days.

Do not produce hyper-detailed advice for a single day; a separate tool does that. Keep the view
on how the days connect. A very short itinerary gets short recommendations.

OUTPUT FORMAT — return EXACTLY one JSON object, no markdown:
{{
  "global_recommendations": "[Practical, actionable suggestions for the whole trip]",
  "potential_issues": "[Significant problems found, or null if none]"
}}"""

    user_prompt = f"""Destination: {destination}
Dates: {start_date} to {end_date}

{full_itinerary}
Return the JSON object only."""

    result = await _complete_json('Trip flow', system_prompt, user_prompt, TripOptimization, 3000)
    _set_cached(key, result.model_dump())
    logger.info('Trip flow: recommendations ready for %s', destination)
    return result


async def generate_trip_narrative(full_trip_details: str, preparations_list: str) -> TripNarrative:
    """Tell the planned trip as a flowing story."""
    key = _cache_key('narrative', PLANNER_MODEL, AI_RESPONSE_LANGUAGE, full_trip_details,
                     preparations_list)
    cached = _get_cached(key)
    if cached is not None:
        logger.info('Narrative flow: cache hit')
        return TripNarrative.model_validate(cached)

    system_prompt = f"""You are a travel storyteller. Turn a trip plan into a narrative that reads well.
{_language_rule()}

STRUCTURE:
- Open with the key preparations, setting the stage for the journey.
- Introduce the destination and the travellers.
- Walk through the itinerary day by day, in order, connecting activities, transport and lodging
  naturally, as a story. Do not list events — link them.
- Friendly, upbeat tone. Short paragraphs.

OUTPUT FORMAT — return EXACTLY one JSON object, no markdown:
{{
  "narrative": "[The story, paragraphs separated by blank lines]"
}}"""

    user_prompt = f"""Preparations:
{preparations_list}

Itinerary and trip details:
{full_trip_details}
Return the JSON object only."""

    result = await _complete_json('Narrative flow', system_prompt, user_prompt, TripNarrative, 4000)
    _set_cached(key, result.model_dump())
    logger.info('Narrative flow: %d chars', len(result.narrative))
    return result


async def generate_trip_image(destination: str) -> str:
    """Generate a landscape banner for the destination; returns a data URI."""
    prompt = (
        f'Create an attractive, photo-realistic banner image in landscape orientation for a trip '
        f'to {destination}. The scene should be recognisable for the place and suit a trip '
        f'summary header. Do not put any text on the image.'
    )
    client = _image_client()
    try:
        response = await client.aio.models.generate_content(
            model=IMAGE_MODEL,
            contents=prompt,
            config=genai_types.GenerateContentConfig(response_modalities=['TEXT', 'IMAGE']),
        )
    except genai_errors.APIError as exc:
        raise FlowError(f'Image flow: model request failed ({exc})') from exc

    for candidate in response.candidates or []:
        content = getattr(candidate, 'content', None)
        for part in getattr(content, 'parts', None) or []:
            inline = getattr(part, 'inline_data', None)
            if inline and getattr(inline, 'data', None):
                mime = inline.mime_type or 'image/png'
                b64 = base64.b64encode(inline.data).decode('ascii')
                logger.info('Image flow: %s banner for %r (%d bytes)', mime, destination, len(inline.data))
                return f'data:{mime};base64,{b64}'

    raise FlowError('Image flow: the model returned no image')
