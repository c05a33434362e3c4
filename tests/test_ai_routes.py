"""AI endpoints: success paths, empty-input guards, failures and rate limits."""
from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

import auth
import flows


class FakeMessages:
    def __init__(self, reply):
        self.reply = reply
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        return SimpleNamespace(content=[SimpleNamespace(type='text', text=self.reply)])


@pytest.fixture
def fake_claude(monkeypatch):
    def _install(reply):
        fake = FakeMessages(reply if isinstance(reply, str) else json.dumps(reply))
        monkeypatch.setattr(flows, 'anthropic_client', SimpleNamespace(messages=fake))
        return fake
    return _install


@pytest.fixture
def castle(user_client, trip):
    response = user_client.post(f"/trips/{trip['id']}/activities", json={
        'type': 'activity', 'name': 'Castle', 'start_date': '2025-06-01', 'end_date': '2025-06-01',
        'start_time': '10:00', 'latitude': 38.7139, 'longitude': -9.1334,
    })
    return response.json()['activity']


ROUTE_REPLY = {
    'optimized_route': 'Castle first, then walk down to Baixa',
    'estimated_time_savings': '20 minutes',
    'estimated_cost_savings': 'Not applicable',
}


def test_optimize_day_stores_result(user_client, trip, castle, fake_claude):
    fake_claude(ROUTE_REPLY)

    response = user_client.post(f"/trips/{trip['id']}/itinerary/2025-06-01/optimize")
    assert response.status_code == 200
    assert response.json()['daily_plan']['optimized_route'] == ROUTE_REPLY['optimized_route']

    day = user_client.get(f"/trips/{trip['id']}/itinerary/2025-06-01").json()['daily_plan']
    assert day['estimated_time_savings'] == '20 minutes'
    assert day['estimated_cost_savings'] == 'Not applicable'


def test_optimize_empty_day_does_not_call_model(user_client, trip, fake_claude):
    fake = fake_claude(ROUTE_REPLY)

    response = user_client.post(f"/trips/{trip['id']}/itinerary/2025-06-02/optimize")
    assert response.status_code == 400
    assert fake.calls == 0


def test_optimize_day_outside_trip(user_client, trip, fake_claude):
    fake_claude(ROUTE_REPLY)
    assert user_client.post(f"/trips/{trip['id']}/itinerary/2025-09-01/optimize").status_code == 404


def test_failed_optimization_leaves_plan_intact(user_client, trip, castle, fake_claude):
    fake_claude(ROUTE_REPLY)
    user_client.post(f"/trips/{trip['id']}/itinerary/2025-06-01/optimize")
    flows.clear_cache()

    user_client.put(f"/trips/{trip['id']}/activities/{castle['id']}", json={
        'type': 'activity', 'name': 'Castle again', 'start_date': '2025-06-01', 'end_date': '2025-06-01',
    })
    fake_claude('I cannot help with that.')
    response = user_client.post(f"/trips/{trip['id']}/itinerary/2025-06-01/optimize")
    assert response.status_code == 502
    assert 'error' in response.json()

    day = user_client.get(f"/trips/{trip['id']}/itinerary/2025-06-01").json()['daily_plan']
    assert day['optimized_route'] == ROUTE_REPLY['optimized_route']


def test_optimize_trip(user_client, trip, castle, fake_claude):
    fake_claude({'global_recommendations': 'Spend day 2 in Sintra', 'potential_issues': None})

    response = user_client.post(f"/trips/{trip['id']}/optimize")
    assert response.status_code == 200
    assert response.json() == {'global_recommendations': 'Spend day 2 in Sintra', 'potential_issues': None}


def test_optimize_trip_without_activities(user_client, trip, fake_claude):
    fake = fake_claude({'global_recommendations': 'x'})
    assert user_client.post(f"/trips/{trip['id']}/optimize").status_code == 400
    assert fake.calls == 0


def test_narrative(user_client, trip, castle, fake_claude):
    fake_claude({'narrative': 'Our story begins in Lisbon.'})
    user_client.post(f"/trips/{trip['id']}/preparations", json={'name': 'Passport', 'completed': True})

    response = user_client.post(f"/trips/{trip['id']}/narrative")
    assert response.status_code == 200
    assert response.json() == {'narrative': 'Our story begins in Lisbon.'}


def test_generate_image_stores_banner(user_client, trip, monkeypatch):
    async def fake_generate(destination):
        assert destination == 'Lisbon'
        return 'data:image/png;base64,iVBORw=='

    monkeypatch.setattr(flows, 'generate_trip_image', fake_generate)

    response = user_client.post(f"/trips/{trip['id']}/image")
    assert response.status_code == 200
    assert response.json() == {'summary_image_uri': 'data:image/png;base64,iVBORw=='}
    assert user_client.get(f"/trips/{trip['id']}").json()['trip']['summary_image_uri'].startswith('data:image/png')


def test_generate_image_failure_keeps_old_banner(user_client, trip, monkeypatch):
    user_client.put(f"/trips/{trip['id']}/image", json={'image_data_uri': 'data:image/png;base64,iVBORw0KGgo='})

    async def no_image(destination):
        raise flows.FlowError('Image flow: the model returned no image')

    monkeypatch.setattr(flows, 'generate_trip_image', no_image)

    response = user_client.post(f"/trips/{trip['id']}/image")
    assert response.status_code == 502
    banner = user_client.get(f"/trips/{trip['id']}").json()['trip']['summary_image_uri']
    assert banner == 'data:image/png;base64,iVBORw0KGgo='


def test_unexpected_error_is_500(user_client, trip, castle, monkeypatch):
    async def boom(*args):
        raise RuntimeError('kaboom')

    monkeypatch.setattr(flows, 'optimize_full_trip', boom)
    response = user_client.post(f"/trips/{trip['id']}/optimize")
    assert response.status_code == 500
    assert response.json() == {'error': 'An unexpected error occurred. Please try again.'}


def test_ai_rate_limit(user_client, trip, castle, fake_claude, monkeypatch):
    monkeypatch.setitem(auth.RATE_LIMIT_RULES, 'narrative', (1, 600))
    fake_claude({'narrative': 'Once upon a time.'})

    assert user_client.post(f"/trips/{trip['id']}/narrative").status_code == 200
    limited = user_client.post(f"/trips/{trip['id']}/narrative")
    assert limited.status_code == 429
    assert 'seconds' in limited.json()['error']


def test_ai_routes_are_private(user_client, trip, castle, make_user, login, fake_claude):
    fake_claude(ROUTE_REPLY)
    make_user(email='bob@example.com', name='Bob')
    login(email='bob@example.com')

    assert user_client.post(f"/trips/{trip['id']}/itinerary/2025-06-01/optimize").status_code == 404
    assert user_client.post(f"/trips/{trip['id']}/narrative").status_code == 404
    assert user_client.post(f"/trips/{trip['id']}/image").status_code == 404
