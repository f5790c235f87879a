"""
Tests for the admin event, registration, history, statistics and user endpoints.
"""
from datetime import datetime

import pytest

from database import Event, Registration, Payment, RegistrationHistory, RegistrationAction, UserRole, User
from conftest import registration_payload


@pytest.fixture
def moderator(auth_headers):
    return auth_headers(role=UserRole.MODERATOR)


@pytest.fixture
def admin(auth_headers):
    return auth_headers(role=UserRole.ADMIN)


def _event_body(**overrides):
    body = {
        'title': 'Werewolf',
        'description': 'Social deduction',
        'price': 120,
        'place': 'Brno',
        'capacity': 12,
        'from': '2026-12-01T18:00',
        'to': '2026-12-01T21:00',
        'visible': True,
        'bankAccountId': 'vitek',
    }
    body.update(overrides)
    return body


def test_create_event(client, db, moderator):
    response = client.post('/api/admin/events', headers=moderator, json=_event_body())

    assert response.status_code == 201
    event = response.get_json()['event']
    # 18:00 in Prague is 17:00 UTC in winter
    assert event['from'] == '2026-12-01T17:00:00'
    assert event['bankAccountId'] == 'vitek'
    history = db.query(RegistrationHistory).filter(RegistrationHistory.event_id == event['id']).one()
    assert history.action_type == RegistrationAction.EVENT_CREATED
    assert history.event_title == 'Werewolf'


def test_create_event_validation(client, moderator):
    start_after_end = client.post('/api/admin/events', headers=moderator,
                                  json=_event_body(**{'to': '2026-12-01T17:00'}))
    missing_title = client.post('/api/admin/events', headers=moderator, json=_event_body(title=''))
    bad_account = client.post('/api/admin/events', headers=moderator, json=_event_body(bankAccountId='nope'))
    bad_date = client.post('/api/admin/events', headers=moderator, json=_event_body(**{'from': 'soon'}))

    assert start_after_end.status_code == 400
    assert missing_title.status_code == 400
    assert bad_account.status_code == 400
    assert bad_date.status_code == 400


def test_update_and_delete_event(client, db, make_event, moderator):
    event = make_event()
    client.post('/api/registration', json=registration_payload(event.id))

    updated = client.put(f'/api/admin/events/{event.id}', headers=moderator, json={'capacity': 3})
    assert updated.get_json()['event']['capacity'] == 3

    deleted = client.delete(f'/api/admin/events/{event.id}', headers=moderator)
    assert deleted.status_code == 200
    db.expire_all()
    assert db.query(Event).count() == 0
    assert db.query(Registration).count() == 0
    actions = [h.action_type for h in db.query(RegistrationHistory).order_by(RegistrationHistory.id).all()]
    assert actions[-2:] == [RegistrationAction.EVENT_UPDATED, RegistrationAction.EVENT_DELETED]


def test_admin_event_list_pagination(client, make_event, moderator):
    for index in range(3):
        make_event(title=f'Event {index}')

    response = client.get('/api/admin/events?page=1&limit=2', headers=moderator)

    data = response.get_json()
    assert len(data['events']) == 2
    assert data['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'pages': 2}


def test_duplicate_event(client, make_event, moderator):
    source = make_event(title='Original', capacity=8)

    response = client.post('/api/admin/events/duplicate', headers=moderator,
                           json={'sourceEventId': source.id, 'title': 'Copy'})

    assert response.status_code == 201
    event = response.get_json()['event']
    assert event['title'] == 'Copy'
    assert event['capacity'] == 8
    assert event['id'] != source.id


def test_duplicate_missing_event(client, moderator):
    response = client.post('/api/admin/events/duplicate', headers=moderator, json={'sourceEventId': 999})

    assert response.status_code == 404


def test_admin_add_registration_ignores_capacity(client, db, make_event, moderator):
    event = make_event(capacity=1)
    client.post('/api/registration', json=registration_payload(event.id))

    response = client.post('/api/admin/registrations', headers=moderator, json=registration_payload(
        event.id, firstName='Extra', email='extra@example.com'
    ))

    assert response.status_code == 201
    assert db.query(Registration).filter(Registration.deleted == False).count() == 2  # noqa: E712


def test_admin_add_registration_rejects_duplicate(client, make_event, moderator):
    event = make_event()
    client.post('/api/registration', json=registration_payload(event.id))

    response = client.post('/api/admin/registrations', headers=moderator, json=registration_payload(event.id))

    assert response.status_code == 409


def test_duplicate_registration_to_other_event(client, db, make_event, moderator):
    source_event = make_event(title='Source')
    target_event = make_event(title='Target')
    registration_id = client.post('/api/registration',
                                  json=registration_payload(source_event.id)).get_json()['registrationId']

    response = client.post('/api/admin/registrations/duplicate', headers=moderator,
                           json={'registrationId': registration_id, 'targetEventId': target_event.id})

    assert response.status_code == 201
    assert response.get_json()['registration']['eventId'] == target_event.id
    again = client.post('/api/admin/registrations/duplicate', headers=moderator,
                        json={'registrationId': registration_id, 'targetEventId': target_event.id})
    assert again.status_code == 409


def test_update_registration(client, make_event, moderator):
    event = make_event()
    registration_id = client.post('/api/registration', json=registration_payload(event.id)).get_json()['registrationId']

    response = client.put(f'/api/admin/registrations/{registration_id}', headers=moderator,
                          json={'phoneNumber': '+420000000000', 'paymentType': 'QR'})

    data = response.get_json()['registration']
    assert data['phoneNumber'] == '+420000000000'
    assert data['paymentType'] == 'QR'


def test_moderator_delete_is_soft_and_logged(client, db, make_event, moderator):
    event = make_event()
    registration_id = client.post('/api/registration', json=registration_payload(event.id)).get_json()['registrationId']
    client.post(f'/api/admin/registrations/{registration_id}/mark-paid', headers=moderator)

    response = client.delete(f'/api/admin/registrations/{registration_id}', headers=moderator)

    assert response.status_code == 200
    db.expire_all()
    registration = db.get(Registration, registration_id)
    assert registration.deleted is True
    assert db.query(Payment).count() == 0
    last = db.query(RegistrationHistory).order_by(RegistrationHistory.id.desc()).first()
    assert last.action_type == RegistrationAction.DELETED_BY_MODERATOR
    assert client.delete(f'/api/admin/registrations/{registration_id}', headers=moderator).status_code == 404


def test_toggle_attendance(client, make_event, moderator):
    event = make_event()
    registration_id = client.post('/api/registration', json=registration_payload(event.id)).get_json()['registrationId']
    url = f'/api/admin/registrations/{registration_id}/toggle-attendance'

    assert client.post(url, headers=moderator).get_json()['attended'] is True
    assert client.post(url, headers=moderator).get_json()['attended'] is False
    assert client.post(url, headers=moderator, json={'attended': True}).get_json()['attended'] is True


def test_event_registrations_include_payment(client, make_event, moderator):
    event = make_event()
    registration_id = client.post('/api/registration', json=registration_payload(event.id)).get_json()['registrationId']
    client.post(f'/api/admin/registrations/{registration_id}/mark-paid', headers=moderator)

    response = client.get(f'/api/admin/events/{event.id}/registrations', headers=moderator)

    row = response.get_json()['registrations'][0]
    assert row['paid'] is True
    assert row['payment']['variableSymbol'].startswith('VS')


def test_history_filters(client, make_event, moderator):
    first = make_event(title='First')
    second = make_event(title='Second')
    client.post('/api/registration', json=registration_payload(first.id))
    client.post('/api/registration', json=registration_payload(second.id, firstName='Zed', email='zed@example.com'))

    by_event = client.get(f'/api/admin/history?eventId={first.id}', headers=moderator).get_json()
    by_search = client.get('/api/admin/history?search=zed', headers=moderator).get_json()

    assert [h['eventTitle'] for h in by_event['history']] == ['First']
    assert by_event['pagination']['total'] == 1
    assert [h['email'] for h in by_search['history']] == ['zed@example.com']


def test_event_stats(client, db, make_event, admin):
    event = make_event(title='March Meetup', from_time=datetime(2026, 3, 10, 18, 0))
    make_event(title='April Meetup', from_time=datetime(2026, 4, 10, 18, 0))
    attended = Registration(event_id=event.id, first_name='A', email='a@example.com', attended=True)
    paid = Registration(event_id=event.id, first_name='B', email='b@example.com')
    db.add_all([attended, paid])
    db.flush()
    db.add(Payment(registration_id=paid.id, variable_symbol='VS0007', paid=True))
    db.commit()

    response = client.get('/api/admin/event-stats?from=2026-03-01&to=2026-03-10', headers=admin)

    assert response.status_code == 200
    data = response.get_json()
    assert [e['title'] for e in data['events']] == ['March Meetup']
    assert data['events'][0]['registrations'] == 2
    assert data['events'][0]['attendees'] == 1
    assert data['events'][0]['paid'] == 1
    assert data['summary']['totalEvents'] == 1


def test_event_stats_requires_range(client, admin, moderator):
    assert client.get('/api/admin/event-stats', headers=admin).status_code == 400
    assert client.get('/api/admin/event-stats?from=2026-01-01&to=2026-02-01', headers=moderator).status_code == 403


def test_users_search_and_update(client, db, admin):
    db.add(User(email='dora@example.com', name='Dora Explorer', role=UserRole.USER))
    db.commit()

    found = client.get('/api/admin/users?search=dora', headers=admin).get_json()
    assert [u['email'] for u in found['users']] == ['dora@example.com']

    user_id = found['users'][0]['id']
    response = client.post('/api/admin/users/update-user', headers=admin,
                           json={'userId': user_id, 'name': 'Dora', 'phoneNumber': '123'})
    assert response.get_json()['user']['name'] == 'Dora'

    taken = client.post('/api/admin/users/update-user', headers=admin,
                        json={'userId': user_id, 'email': 'admin@example.com'})
    assert taken.status_code == 400


def test_history_reports_clamped_limit(client, make_event, moderator):
    event = make_event()
    client.post('/api/registration', json=registration_payload(event.id))

    response = client.get('/api/admin/history?limit=100000&offset=-5', headers=moderator)

    pagination = response.get_json()['pagination']
    assert pagination == {'total': 1, 'limit': 500, 'offset': 0}
