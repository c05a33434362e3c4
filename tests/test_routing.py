"""Day-route waypoints, straight-line legs and the routing service call."""
from __future__ import annotations

import asyncio
from datetime import date
from types import SimpleNamespace

import httpx
import pytest

import routing


def _act(id_, name, type_='activity', start_time=None, **coords):
    fields = {
        'latitude': None, 'longitude': None,
        'origin_latitude': None, 'origin_longitude': None,
        'destination_latitude': None, 'destination_longitude': None,
    }
    fields.update(coords)
    return SimpleNamespace(id=id_, name=name, type=type_, start_date=date(2025, 6, 1),
                           start_time=start_time, **fields)


def test_waypoints_follow_time_and_transport_legs():
    activities = [
        _act(3, 'Dinner', 'meal', '20:00', latitude=41.15, longitude=-8.61),
        _act(1, 'Hotel', 'lodging', None, latitude=38.71, longitude=-9.14),
        _act(2, 'Train to Porto', 'transport', '09:00',
             origin_latitude=38.71, origin_longitude=-9.14,
             destination_latitude=41.15, destination_longitude=-8.61),
        _act(4, 'Somewhere', 'activity', '12:00'),
    ]

    points = routing.build_waypoints(activities)
    assert [(p['name'], p['role']) for p in points] == [
        ('Hotel', 'stop'),
        ('Train to Porto', 'destination'),
    ]


def test_distinct_points_kept_in_order():
    activities = [
        _act(1, 'A', start_time='09:00', latitude=38.70, longitude=-9.14),
        _act(2, 'B', start_time='10:00', latitude=38.71, longitude=-9.14),
        _act(3, 'C', start_time='11:00', latitude=38.70, longitude=-9.14),
    ]
    assert [p['name'] for p in routing.build_waypoints(activities)] == ['A', 'B', 'C']


def test_legs_have_distance_labels():
    points = [
        {'lat': 38.7000, 'lng': -9.1400, 'name': 'A'},
        {'lat': 38.7009, 'lng': -9.1400, 'name': 'B'},
        {'lat': 41.1500, 'lng': -8.6100, 'name': 'C'},
    ]
    legs = routing.build_legs(points)

    assert [(leg['from'], leg['to']) for leg in legs] == [('A', 'B'), ('B', 'C')]
    assert legs[0]['label'] == '~100 m · ~1 min walk'
    assert legs[1]['label'].endswith('km')
    assert 'walk' not in legs[1]['label']


def test_format_distance_bands():
    assert routing.format_distance(120) == '~120 m · ~2 min walk'
    assert routing.format_distance(730) == '~750 m · ~9 min walk'
    assert routing.format_distance(2400) == '~2.4 km · ~30 min walk'
    assert routing.format_distance(12_000) == '~12.0 km'


def test_driving_route_disabled_returns_none(monkeypatch):
    monkeypatch.setattr(routing, 'ROUTING_ENABLED', False)
    points = [{'lat': 1.0, 'lng': 2.0}, {'lat': 3.0, 'lng': 4.0}]
    assert asyncio.run(routing.fetch_driving_route(points)) is None


def test_driving_route_queries_service(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen['url'] = str(request.url)
        return httpx.Response(200, json={'code': 'Ok', 'routes': [{'distance': 1234.5, 'duration': 300.0}]})

    monkeypatch.setattr(routing, 'ROUTING_ENABLED', True)
    monkeypatch.setattr(routing, '_http_client', httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    points = [{'lat': 38.7, 'lng': -9.1}, {'lat': 41.1, 'lng': -8.6}]

    result = asyncio.run(routing.fetch_driving_route(points))
    assert result == {'distance_m': 1234.5, 'duration_s': 300.0}
    assert '/driving/-9.1,38.7;-8.6,41.1' in seen['url']
    assert 'overview=false' in seen['url']


def test_driving_route_service_error_is_swallowed(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text='busy')

    monkeypatch.setattr(routing, 'ROUTING_ENABLED', True)
    monkeypatch.setattr(routing, '_http_client', httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    points = [{'lat': 38.7, 'lng': -9.1}, {'lat': 41.1, 'lng': -8.6}]

    assert asyncio.run(routing.fetch_driving_route(points)) is None


@pytest.mark.parametrize('body', [
    [],
    {'code': 'Ok', 'routes': ['x']},
    'just a string',
])
def test_driving_route_malformed_body_returns_none(monkeypatch, body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    monkeypatch.setattr(routing, 'ROUTING_ENABLED', True)
    monkeypatch.setattr(routing, '_http_client', httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    points = [{'lat': 38.7, 'lng': -9.1}, {'lat': 41.1, 'lng': -8.6}]

    assert asyncio.run(routing.fetch_driving_route(points)) is None
