"""
Tests for the participants server-sent events feed.
"""
import json

from database import Registration
from participants_stream import ParticipantEvents, format_sse, stream_participants


def _message(chunk):
    assert chunk.startswith('data: ') and chunk.endswith('\n\n')
    return json.loads(chunk[len('data: '):])


def test_format_sse():
    assert format_sse({'type': 'heartbeat'}) == 'data: {"type": "heartbeat"}\n\n'


def test_stream_for_missing_event_sends_error(client):
    response = client.get('/api/events/999/participants/stream')

    assert response.status_code == 200
    assert response.headers['Content-Type'].startswith('text/event-stream')
    assert _message(response.get_data(as_text=True)) == {'type': 'error', 'message': 'Event not found'}


def test_stream_starts_with_snapshot_and_unsubscribes(make_event):
    event = make_event(capacity=5)
    bus = ParticipantEvents()
    stream = stream_participants(event.id, False, bus=bus, poll_seconds=0.01, heartbeat_seconds=60)

    first = _message(next(stream))

    assert first['type'] == 'participants:update'
    assert first['data']['registrationCount'] == 0
    assert first['data']['capacity'] == 5
    assert bus.subscriber_count(event.id) == 1

    stream.close()
    assert bus.subscriber_count(event.id) == 0


def test_stream_pushes_update_after_change(db, make_event):
    event = make_event()
    bus = ParticipantEvents()
    stream = stream_participants(event.id, True, bus=bus, poll_seconds=0.5, heartbeat_seconds=60)
    next(stream)

    db.add(Registration(event_id=event.id, first_name='Alice', last_name='Smith', email='alice@example.com'))
    db.commit()
    bus.publish(event.id)

    update = _message(next(stream))
    stream.close()

    assert update['type'] == 'participants:update'
    assert update['data']['registrationCount'] == 1
    assert update['data']['registrations'][0]['email'] == 'alice@example.com'


def test_stream_sends_heartbeat_when_idle(make_event):
    event = make_event()
    stream = stream_participants(event.id, False, bus=ParticipantEvents(), poll_seconds=0.01, heartbeat_seconds=0)
    next(stream)

    heartbeat = _message(next(stream))
    stream.close()

    assert heartbeat == {'type': 'heartbeat'}


def test_publish_without_subscribers_is_harmless():
    bus = ParticipantEvents()
    bus.publish(1)
    q = bus.subscribe(1)
    bus.publish(1)
    bus.publish(1)

    assert q.qsize() == 1
