"""
routing.py — Map waypoints and leg distances for one day of a trip.

Waypoints follow the day's chronological order. Straight-line legs are always
computed; driving distance and duration come from an OSRM-compatible routing
service when ROUTING_ENABLED is set.
"""

import logging
import math
import os

import httpx

logger = logging.getLogger(__name__)

ROUTING_ENABLED = os.getenv('ROUTING_ENABLED', 'false').lower() in ('1', 'true', 'yes')
ROUTING_API_URL = os.getenv('ROUTING_API_URL', 'https://router.project-osrm.org/route/v1').rstrip('/')
ROUTING_TIMEOUT = 8   # seconds

# ---------------------------------------------------------------------------
# HTTP client singleton (opened and closed by app.py startup / shutdown)
# ---------------------------------------------------------------------------

_http_client: httpx.AsyncClient | None = None


def open_http_client() -> None:
    global _http_client
    _http_client = httpx.AsyncClient(
        timeout=ROUTING_TIMEOUT,
        headers={'User-Agent': 'TripPlanner/1.0'},
    )


async def close_http_client() -> None:
    global _http_client
    if _http_client:
        await _http_client.aclose()
    _http_client = None


# ---------------------------------------------------------------------------
# Waypoints
# ---------------------------------------------------------------------------

def _point(lat, lng, activity, role):
    return {
        'lat':         lat,
        'lng':         lng,
        'activity_id': activity.id,
        'type':        activity.type,
        'name':        activity.name,
        'role':        role,   # 'stop' | 'origin' | 'destination'
    }


def build_waypoints(activities) -> list[dict]:
    """
    Ordered map points for a set of activities.

    Transport contributes origin then destination; every other type its own
    coordinates. Activities without coordinates are skipped and consecutive
    duplicate points collapse into one.
    """
    ordered = sorted(activities, key=lambda a: (a.start_date, a.start_time or '00:00'))

    points = []
    for a in ordered:
        if a.type == 'transport':
            if a.origin_latitude is not None and a.origin_longitude is not None:
                points.append(_point(a.origin_latitude, a.origin_longitude, a, 'origin'))
            if a.destination_latitude is not None and a.destination_longitude is not None:
                points.append(_point(a.destination_latitude, a.destination_longitude, a, 'destination'))
        elif a.latitude is not None and a.longitude is not None:
            points.append(_point(a.latitude, a.longitude, a, 'stop'))

    unique = []
    for p in points:
        if unique and (unique[-1]['lat'], unique[-1]['lng']) == (p['lat'], p['lng']):
            continue
        unique.append(p)
    return unique


# ---------------------------------------------------------------------------
# Straight-line legs
# ---------------------------------------------------------------------------

def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    R = 6_371_000
    φ1, φ2 = math.radians(lat1), math.radians(lat2)
    Δφ = math.radians(lat2 - lat1)
    Δλ = math.radians(lng2 - lng1)
    a = math.sin(Δφ / 2) ** 2 + math.cos(φ1) * math.cos(φ2) * math.sin(Δλ / 2) ** 2
    return 2 * R * math.asin(math.sqrt(a))


def format_distance(metres: float) -> str:
    walk_min = max(1, round(metres / 80))
    if metres < 150:
        return f'~{round(metres / 10) * 10} m · ~{walk_min} min walk'
    if metres < 1000:
        return f'~{round(metres / 50) * 50} m · ~{walk_min} min walk'
    km = metres / 1000
    if km >= 5:
        return f'~{km:.1f} km'
    return f'~{km:.1f} km · ~{walk_min} min walk'


def build_legs(waypoints: list[dict]) -> list[dict]:
    legs = []
    for a, b in zip(waypoints, waypoints[1:]):
        metres = haversine_m(a['lat'], a['lng'], b['lat'], b['lng'])
        legs.append({
            'from':       a['name'],
            'to':         b['name'],
            'distance_m': round(metres),
            'label':      format_distance(metres),
        })
    return legs


# ---------------------------------------------------------------------------
# Driving route (async)
# ---------------------------------------------------------------------------

async def fetch_driving_route(waypoints: list[dict]) -> dict | None:
    """Ask the routing service for a driving route through all waypoints."""
    if not ROUTING_ENABLED or _http_client is None or len(waypoints) < 2:
        return None

    coords = ';'.join(f"{p['lng']},{p['lat']}" for p in waypoints)
    url = f'{ROUTING_API_URL}/driving/{coords}'
    try:
        resp = await _http_client.get(url, params={'overview': 'false'})
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            logger.warning('Routing service: unexpected response body for %d waypoints', len(waypoints))
            return None
        routes = data.get('routes') or []
        if data.get('code') != 'Ok' or not routes:
            logger.info('Routing service: no route (%s) for %d waypoints', data.get('code'), len(waypoints))
            return None
        route = routes[0]
        if not isinstance(route, dict):
            logger.warning('Routing service: unexpected route entry for %d waypoints', len(waypoints))
            return None
        logger.info('Routing service: %d waypoints → %.0f m, %.0f s',
                    len(waypoints), route.get('distance', 0), route.get('duration', 0))
        return {'distance_m': route.get('distance'), 'duration_s': route.get('duration')}
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning('Routing service error for %d waypoints: %s', len(waypoints), exc)
        return None


async def day_route(activities) -> dict:
    waypoints = build_waypoints(activities)
    return {
        'waypoints': waypoints,
        'legs':      build_legs(waypoints),
        'driving':   await fetch_driving_route(waypoints),
    }
