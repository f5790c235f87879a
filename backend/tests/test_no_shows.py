"""
Tests for no-show candidates, bulk import and fee tracking.
"""
import pytest

from database import Registration, Payment, NoShow
from no_shows import potential_no_shows, BULK_IMPORT_NOTE


@pytest.fixture
def finished_event(db, make_event):
    """Event with one attendee, one payer, one recorded no-show, one deleted and one candidate"""
    event = make_event(title='Poker Night')

    def add(first_name, **fields):
        registration = Registration(event_id=event.id, first_name=first_name, last_name='Test',
                                    email=f"{first_name.lower()}@example.com", **fields)
        db.add(registration)
        return registration

    add('Attended', attended=True)
    payer = add('Payer')
    add('Recorded')
    add('Gone', deleted=True)
    add('Candidate')
    db.flush()
    db.add(Payment(registration_id=payer.id, variable_symbol='VS1234', paid=True))
    db.add(NoShow(email='recorded@example.com', event_id=event.id, event_title=event.title,
                  event_date=event.from_time, first_name='Recorded', last_name='Test'))
    db.commit()
    return event


def test_potential_no_shows(db, finished_event):
    candidates = potential_no_shows(db, finished_event.id)

    assert [c['email'] for c in candidates] == ['candidate@example.com']


def test_unpaid_payment_row_still_counts_as_candidate(db, finished_event):
    registration = db.query(Registration).filter(Registration.first_name == 'Candidate').one()
    db.add(Payment(registration_id=registration.id, variable_symbol='VS9999', paid=False))
    db.commit()

    assert len(potential_no_shows(db, finished_event.id)) == 1


def test_potential_no_shows_is_admin_only(client, finished_event, auth_headers):
    url = f'/api/admin/events/{finished_event.id}/potential-no-shows'

    assert client.get(url, headers=auth_headers(role='MODERATOR')).status_code == 403
    response = client.get(url, headers=auth_headers(role='ADMIN'))
    assert response.status_code == 200
    assert response.get_json()['count'] == 1


def test_bulk_import_is_idempotent(client, db, finished_event, auth_headers):
    headers = auth_headers(role='ADMIN')
    candidates = client.get(f'/api/admin/events/{finished_event.id}/potential-no-shows',
                            headers=headers).get_json()['candidates']
    payload = {
        'candidates': candidates,
        'eventId': finished_event.id,
        'eventTitle': finished_event.title,
        'eventDate': finished_event.from_time.isoformat(),
    }

    first = client.post('/api/admin/no-shows/bulk-import', headers=headers, json=payload)
    second = client.post('/api/admin/no-shows/bulk-import', headers=headers, json=payload)

    assert first.get_json()['imported'] == 1
    assert second.get_json()['imported'] == 0
    db.expire_all()
    rows = db.query(NoShow).filter(NoShow.email == 'candidate@example.com').all()
    assert len(rows) == 1
    assert rows[0].notes == BULK_IMPORT_NOTE


def test_bulk_import_requires_candidates(client, auth_headers):
    response = client.post('/api/admin/no-shows/bulk-import', headers=auth_headers(role='MODERATOR'),
                           json={'candidates': [], 'eventId': 1, 'eventTitle': 'x', 'eventDate': '2025-01-01'})

    assert response.status_code == 400


def test_create_and_filter_no_shows(client, auth_headers):
    headers = auth_headers(role='ADMIN')
    body = {
        'email': 'late@example.com',
        'eventId': 7,
        'eventTitle': 'Quiz',
        'eventDate': '2025-06-01T19:00',
        'firstName': 'Late',
    }

    created = client.post('/api/admin/no-shows', headers=headers, json=body)
    assert created.status_code == 201

    unpaid = client.get('/api/admin/no-shows?feePaid=false', headers=headers).get_json()
    paid = client.get('/api/admin/no-shows?feePaid=true', headers=headers).get_json()
    assert unpaid['count'] == 1
    assert paid['count'] == 0


def test_create_no_show_requires_fields(client, auth_headers):
    response = client.post('/api/admin/no-shows', headers=auth_headers(role='ADMIN'), json={'email': 'x@example.com'})

    assert response.status_code == 400


def test_fee_paid_propagates_to_registration_payment(client, db, finished_event, auth_headers):
    headers = auth_headers(role='ADMIN')
    record = db.query(NoShow).filter(NoShow.email == 'recorded@example.com').one()

    response = client.patch(f'/api/admin/no-shows/{record.id}', headers=headers, json={'feePaid': True})

    assert response.status_code == 200
    assert response.get_json()['noShow']['paidAt'] is not None
    db.expire_all()
    registration = db.query(Registration).filter(Registration.first_name == 'Recorded').one()
    assert registration.payment is not None
    assert registration.payment.paid is True

    client.patch(f'/api/admin/no-shows/{record.id}', headers=headers, json={'feePaid': False})
    db.expire_all()
    assert registration.payment.paid is False
    assert db.get(NoShow, record.id).paid_at is None


def test_fee_paid_must_be_boolean(client, db, finished_event, auth_headers):
    record = db.query(NoShow).first()

    response = client.patch(f'/api/admin/no-shows/{record.id}', headers=auth_headers(role='ADMIN'),
                            json={'feePaid': 'yes'})

    assert response.status_code == 400


def test_delete_no_show(client, db, finished_event, auth_headers):
    record = db.query(NoShow).first()

    response = client.delete(f'/api/admin/no-shows/{record.id}', headers=auth_headers(role='ADMIN'))

    assert response.status_code == 200
    db.expire_all()
    assert db.query(NoShow).count() == 0
