"""
Tests for public event listings and hidden-event visibility.
"""
from datetime import datetime, timedelta

from database import UserRole
from conftest import registration_payload


def test_events_list_shows_upcoming_visible_events(client, make_event):
    make_event(title='Upcoming')
    make_event(title='Hidden', visible=False)
    make_event(title='Finished', from_time=datetime.utcnow() - timedelta(days=3))

    response = client.get('/api/events')

    assert response.status_code == 200
    assert [e['title'] for e in response.get_json()['events']] == ['Upcoming']


def test_empty_events_list_is_not_an_error(client):
    response = client.get('/api/events')

    assert response.status_code == 200
    assert response.get_json()['events'] == []


def test_include_past(client, make_event):
    make_event(title='Finished', from_time=datetime.utcnow() - timedelta(days=3))

    response = client.get('/api/events?includePast=true')

    assert [e['title'] for e in response.get_json()['events']] == ['Finished']


def test_regular_users_see_hidden_events(client, make_event, auth_headers):
    hidden = make_event(title='Hidden', visible=False)

    anonymous = client.get('/api/events').get_json()['events']
    regular = client.get('/api/events', headers=auth_headers(role=UserRole.REGULAR)).get_json()['events']

    assert anonymous == []
    assert [e['id'] for e in regular] == [hidden.id]
    assert client.get(f'/api/events/{hidden.id}').status_code == 404
    assert client.get(f'/api/events/{hidden.id}', headers=auth_headers(role=UserRole.USER)).status_code == 404


def test_event_detail_includes_registration_count(client, make_event):
    event = make_event()
    client.post('/api/registration', json=registration_payload(event.id))

    response = client.get(f'/api/events/{event.id}')

    data = response.get_json()['event']
    assert data['registrationCount'] == 1
    assert data['capacity'] == 10
    assert 'from' in data and 'to' in data


def test_latest_event_prefers_next_upcoming(client, make_event):
    make_event(title='Later', from_time=datetime.utcnow() + timedelta(days=10))
    make_event(title='Sooner', from_time=datetime.utcnow() + timedelta(days=2))

    response = client.get('/api/events/latest')

    assert response.get_json()['event']['title'] == 'Sooner'


def test_participants_hide_contact_details_from_public(client, make_event, auth_headers):
    event = make_event()
    client.post('/api/registration', json=registration_payload(event.id))

    public = client.get(f'/api/events/{event.id}/participants').get_json()
    staff = client.get(f'/api/events/{event.id}/participants',
                       headers=auth_headers(role=UserRole.MODERATOR)).get_json()

    assert public['registrationCount'] == 1
    assert 'email' not in public['registrations'][0]
    assert staff['registrations'][0]['email'] == 'alice@example.com'
    assert staff['isModerator'] is True


def test_registration_status(client, make_event, auth_headers):
    event = make_event()
    headers = auth_headers(email='alice@example.com')

    before = client.get(f'/api/events/{event.id}/registration-status', headers=headers).get_json()
    client.post('/api/registration', json=registration_payload(event.id))
    after = client.get(f'/api/events/{event.id}/registration-status', headers=headers).get_json()

    assert before['isRegistered'] is False
    assert after['isRegistered'] is True


def test_cannot_unregister_from_past_event(client, make_event, auth_headers):
    event = make_event(from_time=datetime.utcnow() - timedelta(days=2))
    client.post('/api/registration', json=registration_payload(event.id))

    response = client.post(f'/api/events/{event.id}/unregister',
                           headers=auth_headers(email='alice@example.com'))

    assert response.status_code == 400


def test_unknown_api_route_returns_json(client):
    response = client.get('/api/does-not-exist')

    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_health(client):
    assert client.get('/api/health').get_json()['status'] == 'ok'
