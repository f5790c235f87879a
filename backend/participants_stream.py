"""
GameOn Participants Stream
Server-sent events feed of an event's registrations and waiting list.

Each open stream polls the database on an interval and is woken early when a
route publishes a change for its event through the ParticipantEvents bus kept
in app.extensions['participant_events']. The bus is process-local.
"""

import json
import os
import queue
import threading
import time
import logging
from flask import current_app, has_app_context

from database import SessionLocal, Event, Registration, WaitingList

logger = logging.getLogger(__name__)

PARTICIPANTS_POLL_SECONDS = float(os.environ.get('PARTICIPANTS_POLL_SECONDS', 5))
PARTICIPANTS_HEARTBEAT_SECONDS = float(os.environ.get('PARTICIPANTS_HEARTBEAT_SECONDS', 30))

# Rows sent per list; counts always cover everything
PARTICIPANTS_LIMIT = 20

SSE_HEADERS = {
    'Content-Type': 'text/event-stream',
    'Cache-Control': 'no-cache, no-transform',
    'Connection': 'keep-alive',
    'X-Accel-Buffering': 'no',
}


def format_sse(message: dict) -> str:
    return f"data: {json.dumps(message)}\n\n"


class ParticipantEvents:
    """Fan-out of 'participants changed' signals to open streams"""

    def __init__(self):
        self._subscribers = {}
        self._lock = threading.Lock()

    def subscribe(self, event_id) -> queue.Queue:
        q = queue.Queue(maxsize=1)
        with self._lock:
            self._subscribers.setdefault(event_id, set()).add(q)
        return q

    def unsubscribe(self, event_id, q):
        with self._lock:
            subscribers = self._subscribers.get(event_id)
            if subscribers is None:
                return
            subscribers.discard(q)
            if not subscribers:
                del self._subscribers[event_id]

    def publish(self, event_id):
        with self._lock:
            subscribers = list(self._subscribers.get(event_id, ()))
        for q in subscribers:
            try:
                q.put_nowait(True)
            except queue.Full:
                # Already signalled
                pass

    def subscriber_count(self, event_id) -> int:
        with self._lock:
            return len(self._subscribers.get(event_id, ()))


def notify_participants_changed(event_id):
    """Wake streams watching an event; no-op outside an app context"""
    if not has_app_context():
        return
    bus = current_app.extensions.get('participant_events')
    if bus is not None:
        bus.publish(event_id)


def _person(row, is_moderator: bool, with_attendance: bool) -> dict:
    data = {
        'id': row.id,
        'firstName': row.first_name,
        'lastName': row.last_name,
        'createdAt': row.created_at.isoformat() if row.created_at else None,
    }
    if is_moderator:
        data['email'] = row.email
        data['paymentType'] = row.payment_type
        if with_attendance:
            data['attended'] = row.attended
    return data


def participants_snapshot(db, event_id, is_moderator: bool = False, limit: int = PARTICIPANTS_LIMIT):
    """
    Current participant lists of an event, or None when the event is missing.
    Email, payment type and attendance are only included for moderators.
    """
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        return None

    active = db.query(Registration).filter(
        Registration.event_id == event_id,
        Registration.deleted == False  # noqa: E712
    )
    waiting = db.query(WaitingList).filter(WaitingList.event_id == event_id)

    registrations = active.order_by(Registration.created_at.asc(), Registration.id.asc())
    waiting_list = waiting.order_by(WaitingList.created_at.asc(), WaitingList.id.asc())
    if limit:
        registrations = registrations.limit(limit)
        waiting_list = waiting_list.limit(limit)

    return {
        'registrations': [_person(r, is_moderator, True) for r in registrations.all()],
        'waitingList': [_person(w, is_moderator, False) for w in waiting_list.all()],
        'registrationCount': active.count(),
        'waitingListCount': waiting.count(),
        'capacity': event.capacity,
        'isModerator': is_moderator,
    }


def _load_snapshot(event_id, is_moderator):
    db = SessionLocal()
    try:
        return participants_snapshot(db, event_id, is_moderator)
    finally:
        db.close()


def stream_participants(event_id, is_moderator: bool, bus: ParticipantEvents = None,
                        poll_seconds: float = None, heartbeat_seconds: float = None,
                        clock=time.monotonic):
    """
    Generator of SSE chunks for one client.

    Sends the current lists first, then a fresh update whenever they change,
    and a heartbeat when nothing has been sent for heartbeat_seconds. Ends when
    the client disconnects (the server closes the generator).
    """
    poll_seconds = PARTICIPANTS_POLL_SECONDS if poll_seconds is None else poll_seconds
    heartbeat_seconds = PARTICIPANTS_HEARTBEAT_SECONDS if heartbeat_seconds is None else heartbeat_seconds

    try:
        snapshot = _load_snapshot(event_id, is_moderator)
    except Exception as e:
        logger.error(f"Participants stream failed for event {event_id}: {e}", exc_info=True)
        yield format_sse({'type': 'error', 'message': 'Internal server error'})
        return

    if snapshot is None:
        yield format_sse({'type': 'error', 'message': 'Event not found'})
        return

    wakeups = bus.subscribe(event_id) if bus is not None else None
    logger.info(f"Participants stream opened for event {event_id}")
    try:
        yield format_sse({'type': 'participants:update', 'data': snapshot})
        last_sent = clock()

        while True:
            if wakeups is not None:
                try:
                    wakeups.get(timeout=poll_seconds)
                except queue.Empty:
                    pass
            else:
                time.sleep(poll_seconds)

            try:
                latest = _load_snapshot(event_id, is_moderator)
            except Exception as e:
                logger.error(f"Participants stream poll failed for event {event_id}: {e}", exc_info=True)
                latest = snapshot

            if latest is None:
                yield format_sse({'type': 'error', 'message': 'Event not found'})
                return

            if latest != snapshot:
                snapshot = latest
                yield format_sse({'type': 'participants:update', 'data': snapshot})
                last_sent = clock()
            elif clock() - last_sent >= heartbeat_seconds:
                yield format_sse({'type': 'heartbeat'})
                last_sent = clock()
    finally:
        if wakeups is not None:
            bus.unsubscribe(event_id, wakeups)
        logger.info(f"Participants stream closed for event {event_id}")
