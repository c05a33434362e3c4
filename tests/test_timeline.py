"""Timeline track assignment and grid layout."""
from __future__ import annotations

from datetime import date
from itertools import count
from types import SimpleNamespace
from typing import get_args

import flows
from schemas import ActivityType
from timeline import FIRST_TYPE_COLUMN, TYPE_ORDER, assign_tracks, build_timeline

_ids = count(1)


def _act(name, type_, start, end, start_time=None):
    return SimpleNamespace(
        id=next(_ids), name=name, type=type_,
        start_date=date.fromisoformat(start), end_date=date.fromisoformat(end),
        start_time=start_time,
    )


START, END = date(2025, 6, 1), date(2025, 6, 4)


def test_invalid_dates():
    result = build_timeline(END, START, [])
    assert result['error'] == 'invalid_dates'
    assert result['blocks'] == []


def test_no_relevant_activities_still_returns_days():
    outside = _act('Earlier trip', 'activity', '2025-05-01', '2025-05-02')
    inverted = _act('Broken', 'meal', '2025-06-03', '2025-06-02')
    result = build_timeline(START, END, [outside, inverted])

    assert result['error'] == 'no_activities'
    assert result['days'] == ['2025-06-01', '2025-06-02', '2025-06-03', '2025-06-04']
    assert [c['type'] for c in result['columns']] == list(TYPE_ORDER)


def test_longer_activity_claims_first_track():
    short = _act('Short', 'activity', '2025-06-02', '2025-06-02', '08:00')
    long_ = _act('Long', 'activity', '2025-06-02', '2025-06-04', '12:00')
    days = [date(2025, 6, d) for d in range(1, 5)]

    assignments, max_tracks = assign_tracks([short, long_], days)
    assert assignments[long_.id] == 0
    assert assignments[short.id] == 1
    assert max_tracks['activity'] == 2
    assert max_tracks['meal'] == 1


def test_non_overlapping_activities_share_a_track():
    first = _act('Museum', 'activity', '2025-06-01', '2025-06-01')
    second = _act('Hike', 'activity', '2025-06-02', '2025-06-03')
    days = [date(2025, 6, d) for d in range(1, 5)]

    assignments, max_tracks = assign_tracks([first, second], days)
    assert assignments[first.id] == assignments[second.id] == 0
    assert max_tracks['activity'] == 1


def test_same_type_never_shares_track_on_a_day():
    activities = [
        _act('Lunch', 'meal', '2025-06-01', '2025-06-01', '12:00'),
        _act('Dinner', 'meal', '2025-06-01', '2025-06-01', '19:00'),
        _act('Snack', 'meal', '2025-06-01', '2025-06-02', '16:00'),
        _act('Brunch', 'meal', '2025-06-02', '2025-06-02', '10:00'),
    ]
    result = build_timeline(START, END, activities)
    blocks = result['blocks']

    for day_index in range(4):
        tracks = [
            b['track'] for b in blocks
            if b['first_day_index'] <= day_index < b['first_day_index'] + b['day_span']
        ]
        assert len(tracks) == len(set(tracks))


def test_columns_and_blocks_layout():
    hotel = _act('Hotel', 'lodging', '2025-05-30', '2025-06-02')
    train = _act('Train', 'transport', '2025-06-03', '2025-06-03', '09:00')
    museum = _act('Museum', 'activity', '2025-06-01', '2025-06-01', '10:00')
    walk = _act('Walk', 'activity', '2025-06-01', '2025-06-01', '11:00')

    result = build_timeline(START, END, [walk, museum, train, hotel])
    assert result['error'] is None
    assert result['columns'] == [
        {'type': 'lodging', 'span': 1, 'column_start': FIRST_TYPE_COLUMN},
        {'type': 'transport', 'span': 1, 'column_start': 3},
        {'type': 'activity', 'span': 2, 'column_start': 4},
        {'type': 'meal', 'span': 1, 'column_start': 6},
        {'type': 'shopping', 'span': 1, 'column_start': 7},
    ]

    names = [b['name'] for b in result['blocks']]
    assert names == ['Hotel', 'Train', 'Museum', 'Walk']

    hotel_block = result['blocks'][0]
    assert hotel_block['first_day_index'] == 0
    assert hotel_block['day_span'] == 2          # clipped to the trip
    walk_block = result['blocks'][3]
    assert walk_block['track'] == 1
    assert walk_block['grid_column'] == 5


def test_every_activity_type_has_a_column_and_label():
    assert set(TYPE_ORDER) == set(get_args(ActivityType))
    assert set(flows.TYPE_LABELS) == set(get_args(ActivityType))
