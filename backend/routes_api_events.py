"""
GameOn Flask Application - Events API Routes
Public event listings, participant lists and the caller's own event status.
"""

from flask import Blueprint, Response, jsonify, request, current_app, stream_with_context
import logging
from sqlalchemy import func

from database import get_db, Registration, WaitingList
from auth import require_auth, get_current_user
from errors import ApiError, event_not_found
from rate_limit import rate_limited
from event_service import get_event, active_counts, list_public_events, latest_event
from registration_service import unregister, leave_waiting_list
from participants_stream import (
    SSE_HEADERS, participants_snapshot, stream_participants, notify_participants_changed
)

logger = logging.getLogger(__name__)
events_api_bp = Blueprint('events_api', __name__, url_prefix='/api/events')


# ----- Events Helper -----

def _viewer_flags():
    """(can see hidden events, is moderator) for the current request"""
    user = get_current_user()
    if not user:
        return False, False
    return user.can_view_hidden_events, user.is_moderator


def get_visible_event(db, event_id, include_hidden: bool):
    """Event by id; hidden events look missing to callers who may not see them"""
    event = get_event(db, event_id)
    if not event.visible and not include_hidden:
        raise event_not_found(event_id)
    return event


# ----- Events API -----

@events_api_bp.route('', methods=['GET'])
@rate_limited('events')
def get_events():
    """Get upcoming visible events (hidden ones too for regulars and staff)"""
    try:
        include_past = request.args.get('includePast', 'false').lower() == 'true'
        include_hidden, _ = _viewer_flags()

        db = next(get_db())
        try:
            events = list_public_events(db, include_past=include_past, include_hidden=include_hidden)
            counts = active_counts(db, [e.id for e in events])

            return jsonify({
                'success': True,
                'events': [e.to_dict(registration_count=counts.get(e.id, 0)) for e in events],
                'count': len(events)
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching events: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch events'
        }), 500


@events_api_bp.route('/latest', methods=['GET'])
@rate_limited('events')
def get_latest_event():
    """Get the next upcoming event, or the most recent one when none is upcoming"""
    try:
        include_hidden, _ = _viewer_flags()

        db = next(get_db())
        try:
            event = latest_event(db, include_hidden=include_hidden)
            if not event:
                return jsonify({
                    'success': False,
                    'message': 'No events found'
                }), 404

            counts = active_counts(db, [event.id])
            return jsonify({
                'success': True,
                'event': event.to_dict(registration_count=counts.get(event.id, 0))
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching latest event: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch event'
        }), 500


@events_api_bp.route('/<int:event_id>', methods=['GET'])
@rate_limited('events')
def get_event_detail(event_id):
    """Get a single event"""
    try:
        include_hidden, _ = _viewer_flags()

        db = next(get_db())
        try:
            event = get_visible_event(db, event_id, include_hidden)
            counts = active_counts(db, [event.id])
            return jsonify({
                'success': True,
                'event': event.to_dict(registration_count=counts.get(event.id, 0))
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch event'
        }), 500


# ----- Participants -----

@events_api_bp.route('/<int:event_id>/participants', methods=['GET'])
def get_participants(event_id):
    """Registered and waiting participants; contact details for moderators only"""
    try:
        include_hidden, is_moderator = _viewer_flags()

        db = next(get_db())
        try:
            get_visible_event(db, event_id, include_hidden)
            snapshot = participants_snapshot(db, event_id, is_moderator, limit=None)
            return jsonify({
                'success': True,
                **snapshot
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching participants for event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch participants'
        }), 500


@events_api_bp.route('/<int:event_id>/participants/stream', methods=['GET'])
def stream_event_participants(event_id):
    """Server-sent events feed of the participant lists"""
    _, is_moderator = _viewer_flags()
    bus = current_app.extensions.get('participant_events')
    return Response(
        stream_with_context(stream_participants(event_id, is_moderator, bus=bus)),
        headers=SSE_HEADERS
    )


# ----- Caller's Status -----

@events_api_bp.route('/<int:event_id>/registration-status', methods=['GET'])
@require_auth
def get_registration_status(user, event_id):
    """Whether the signed-in user is registered for an event"""
    try:
        db = next(get_db())
        try:
            get_event(db, event_id)
            registrations = db.query(Registration).filter(
                Registration.event_id == event_id,
                func.lower(Registration.email) == user.email.lower(),
                Registration.deleted == False  # noqa: E712
            ).order_by(Registration.created_at.asc()).all()

            return jsonify({
                'success': True,
                'isRegistered': bool(registrations),
                'registrations': [r.to_dict() for r in registrations]
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error checking registration status for event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to check registration status'
        }), 500


@events_api_bp.route('/<int:event_id>/waitinglist-status', methods=['GET'])
@require_auth
def get_waiting_list_status(user, event_id):
    """Whether the signed-in user is on an event's waiting list"""
    try:
        db = next(get_db())
        try:
            get_event(db, event_id)
            entries = db.query(WaitingList).filter(
                WaitingList.event_id == event_id,
                func.lower(WaitingList.email) == user.email.lower()
            ).order_by(WaitingList.created_at.asc()).all()

            return jsonify({
                'success': True,
                'isOnWaitingList': bool(entries),
                'entries': [w.to_dict() for w in entries]
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error checking waiting list status for event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to check waiting list status'
        }), 500


@events_api_bp.route('/<int:event_id>/unregister', methods=['POST'])
@require_auth
def unregister_from_event(user, event_id):
    """Cancel the signed-in user's registration"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            registration = unregister(
                db, event_id, user.email,
                first_name=data.get('firstName') or user.given_name,
                last_name=data.get('lastName', user.family_name),
                user_id=user.external_id
            )
            notify_participants_changed(event_id)

            return jsonify({
                'success': True,
                'message': 'Successfully unregistered from the event',
                'registrationId': registration.id
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error unregistering from event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to unregister from event'
        }), 500


@events_api_bp.route('/<int:event_id>/leave-waitinglist', methods=['POST'])
@require_auth
def leave_event_waiting_list(user, event_id):
    """Remove the signed-in user from an event's waiting list"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            leave_waiting_list(
                db, event_id, user.email,
                first_name=data.get('firstName'),
                last_name=data.get('lastName')
            )
            notify_participants_changed(event_id)

            return jsonify({
                'success': True,
                'message': 'Successfully removed from the waiting list'
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error leaving waiting list for event {event_id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to leave waiting list'
        }), 500
