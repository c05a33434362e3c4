"""
timeline.py — Day × activity-type grid layout for a trip.

Each activity type gets one grid column per *track*. Activities are placed
greedily into the first track of their type that is free on every trip day
they cover, so blocks of the same type never overlap on a given day.

Grid column 1 holds the date labels; type columns start at column 2 in
TYPE_ORDER.
"""

from collections import defaultdict
from datetime import date

from store import date_range

TYPE_ORDER = ('lodging', 'transport', 'activity', 'meal', 'shopping')

FIRST_TYPE_COLUMN = 2


def _tracking_key(activity):
    duration = (activity.end_date - activity.start_date).days
    return (activity.start_date, -duration, activity.start_time or '00:00')


def assign_tracks(activities, days: list[date], types=TYPE_ORDER):
    """
    Return (assignments, max_tracks).

    assignments maps activity id → track index. max_tracks maps every type in
    `types` to the number of tracks it needs (at least 1). Activities covering
    none of `days` are left unassigned.
    """
    assignments: dict = {}
    occupied = defaultdict(set)          # (day, type) -> {track, ...}
    max_tracks: dict = {}

    for activity in sorted(activities, key=_tracking_key):
        involved = [d for d in days if activity.start_date <= d <= activity.end_date]
        if not involved:
            continue

        track = 0
        while any(track in occupied[(d, activity.type)] for d in involved):
            track += 1

        assignments[activity.id] = track
        for d in involved:
            occupied[(d, activity.type)].add(track)
        max_tracks[activity.type] = max(max_tracks.get(activity.type, 0), track + 1)

    return assignments, {t: max_tracks.get(t, 1) for t in types}


def _overlaps(activity, start: date, end: date) -> bool:
    return (activity.start_date <= activity.end_date
            and activity.start_date <= end
            and activity.end_date >= start)


def _columns(max_tracks: dict) -> list[dict]:
    columns = []
    column = FIRST_TYPE_COLUMN
    for activity_type in TYPE_ORDER:
        span = max_tracks.get(activity_type, 1)
        columns.append({'type': activity_type, 'span': span, 'column_start': column})
        column += span
    return columns


def build_timeline(start: date, end: date, activities) -> dict:
    """
    Lay out a trip's activities.

    Returns {'days', 'columns', 'blocks', 'error'} where error is None,
    'invalid_dates' or 'no_activities'.
    """
    if start > end:
        return {'days': [], 'columns': [], 'blocks': [], 'error': 'invalid_dates'}

    days = date_range(start, end)
    relevant = [a for a in activities if _overlaps(a, start, end)]
    if not relevant:
        return {
            'days':    [d.isoformat() for d in days],
            'columns': _columns({}),
            'blocks':  [],
            'error':   'no_activities',
        }

    assignments, max_tracks = assign_tracks(relevant, days)
    columns = _columns(max_tracks)
    column_start = {c['type']: c['column_start'] for c in columns}

    blocks = []
    for a in relevant:
        track = assignments.get(a.id, 0)
        first = max(a.start_date, start)
        last  = min(a.end_date, end)
        blocks.append({
            'activity_id':     a.id,
            'name':            a.name,
            'type':            a.type,
            'start_date':      a.start_date.isoformat(),
            'end_date':        a.end_date.isoformat(),
            'start_time':      a.start_time,
            'track':           track,
            'grid_column':     column_start.get(a.type, FIRST_TYPE_COLUMN) + track,
            'first_day_index': (first - start).days,
            'day_span':        (last - first).days + 1,
        })

    type_rank = {t: i for i, t in enumerate(TYPE_ORDER)}
    blocks.sort(key=lambda b: (
        type_rank.get(b['type'], len(TYPE_ORDER)),
        b['track'],
        b['start_date'],
        b['start_time'] or '00:00',
        b['name'],
    ))

    return {
        'days':    [d.isoformat() for d in days],
        'columns': columns,
        'blocks':  blocks,
        'error':   None,
    }
