"""
GameOn Flask Application - Admin API Routes
Handles all endpoints for the admin and moderator panel.
"""

from flask import Blueprint, jsonify, request
import logging
from sqlalchemy import or_

from database import get_db, User, Registration, WaitingList, UserRole, PaymentType, RegistrationAction
from auth import require_admin, require_moderator, invalidate_user_cache
from errors import ApiError, ValidationError, NotFound
from event_service import (
    get_event, active_counts, list_admin_events, list_past_events, create_event,
    update_event, delete_event, duplicate_event, event_stats
)
from registration_service import (
    admin_add_registration, duplicate_registration, update_registration,
    delete_registration_by_moderator, set_attendance, get_registration_or_404,
    promote_from_waiting_list, remove_waiting_list_entry, validate_payment_type, mask_email
)
from registration_history import query_history, clamp_page, DEFAULT_LIMIT
from payments import set_payment_status, get_all_bank_accounts
from no_shows import (
    potential_no_shows, bulk_import, list_no_shows, create_no_show, update_no_show, delete_no_show
)
from email_config import EmailConfig
from participants_stream import notify_participants_changed

logger = logging.getLogger(__name__)
admin_api_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Invalid {name} parameter")


def _server_error(message):
    return jsonify({
        'success': False,
        'message': message
    }), 500


# ----- Access Check -----

@admin_api_bp.route('/check', methods=['GET'])
@require_moderator
def check_access(user):
    """Confirm the caller may use the admin panel"""
    return jsonify({
        'success': True,
        'role': user.role,
        'isAdmin': user.is_admin,
        'isModerator': user.is_moderator
    })


# ----- Events Management API -----

@admin_api_bp.route('/events', methods=['GET'])
@require_moderator
def get_admin_events(user):
    """All events, newest first, with active registration counts"""
    try:
        page = _int_arg('page')
        limit = _int_arg('limit')

        db = next(get_db())
        try:
            events, total = list_admin_events(db, page=page, limit=limit)
            counts = active_counts(db, [e.id for e in events])

            response = {
                'success': True,
                'events': [e.to_dict(registration_count=counts.get(e.id, 0)) for e in events]
            }
            if page and limit:
                response['pagination'] = {
                    'page': page,
                    'limit': limit,
                    'total': total,
                    'pages': (total + limit - 1) // limit
                }
            return jsonify(response)
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching admin events: {e}", exc_info=True)
        return _server_error('Failed to fetch events')


@admin_api_bp.route('/events', methods=['POST'])
@require_moderator
def create_admin_event(user):
    """Create a new event"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            event = create_event(db, data, user_id=user.external_id)
            return jsonify({
                'success': True,
                'message': 'Event created successfully',
                'event': event.to_dict(registration_count=0)
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error creating event: {e}", exc_info=True)
        return _server_error('Failed to create event')


@admin_api_bp.route('/events/past', methods=['GET'])
@require_moderator
def get_past_events(user):
    """Events that have already ended, most recent first"""
    try:
        db = next(get_db())
        try:
            events = list_past_events(db)
            counts = active_counts(db, [e.id for e in events])
            return jsonify({
                'success': True,
                'events': [e.to_dict(registration_count=counts.get(e.id, 0)) for e in events]
            })
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Error fetching past events: {e}", exc_info=True)
        return _server_error('Failed to fetch past events')


@admin_api_bp.route('/events/duplicate', methods=['POST'])
@require_moderator
def duplicate_admin_event(user):
    """Copy an event; any event fields in the body override the copy"""
    try:
        data = request.get_json(silent=True) or {}
        source_event_id = data.get('sourceEventId')
        if not source_event_id:
            return jsonify({
                'success': False,
                'message': 'sourceEventId is required'
            }), 400

        overrides = {k: v for k, v in data.items() if k != 'sourceEventId'}

        db = next(get_db())
        try:
            event = duplicate_event(db, source_event_id, overrides, user_id=user.external_id)
            return jsonify({
                'success': True,
                'message': 'Event duplicated successfully',
                'event': event.to_dict(registration_count=0)
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error duplicating event: {e}", exc_info=True)
        return _server_error('Failed to duplicate event')


@admin_api_bp.route('/events/<int:event_id>', methods=['GET'])
@require_moderator
def get_admin_event(user, event_id):
    """Get a single event, hidden or not"""
    try:
        db = next(get_db())
        try:
            event = get_event(db, event_id)
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
        return _server_error('Failed to fetch event')


@admin_api_bp.route('/events/<int:event_id>', methods=['PUT'])
@require_moderator
def update_admin_event(user, event_id):
    """Update an event"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            event = update_event(db, event_id, data, user_id=user.external_id)
            notify_participants_changed(event_id)
            return jsonify({
                'success': True,
                'message': 'Event updated successfully',
                'event': event.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to update event')


@admin_api_bp.route('/events/<int:event_id>', methods=['DELETE'])
@require_moderator
def delete_admin_event(user, event_id):
    """Delete an event with its registrations and waiting list"""
    try:
        db = next(get_db())
        try:
            delete_event(db, event_id, user_id=user.external_id)
            notify_participants_changed(event_id)
            return jsonify({
                'success': True,
                'message': 'Event deleted successfully'
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to delete event')


# ----- Registrations per Event -----

@admin_api_bp.route('/events/<int:event_id>/registrations', methods=['GET'])
@require_moderator
def get_event_registrations(user, event_id):
    """Registrations of an event with payment and attendance state"""
    try:
        include_deleted = request.args.get('includeDeleted', 'false').lower() == 'true'

        db = next(get_db())
        try:
            event = get_event(db, event_id)
            query = db.query(Registration).filter(Registration.event_id == event_id)
            if not include_deleted:
                query = query.filter(Registration.deleted == False)  # noqa: E712
            registrations = query.order_by(Registration.created_at.asc(), Registration.id.asc()).all()

            items = []
            for registration in registrations:
                item = registration.to_dict()
                item['payment'] = registration.payment.to_dict() if registration.payment else None
                items.append(item)

            return jsonify({
                'success': True,
                'event': event.to_dict(),
                'registrations': items,
                'count': sum(1 for r in registrations if not r.deleted)
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching registrations for event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to fetch registrations')


@admin_api_bp.route('/events/<int:event_id>/waitinglist', methods=['GET'])
@require_moderator
def get_event_waiting_list(user, event_id):
    """Waiting list of an event in sign-up order"""
    try:
        db = next(get_db())
        try:
            get_event(db, event_id)
            entries = db.query(WaitingList).filter(
                WaitingList.event_id == event_id
            ).order_by(WaitingList.created_at.asc(), WaitingList.id.asc()).all()

            return jsonify({
                'success': True,
                'waitingList': [w.to_dict() for w in entries],
                'count': len(entries)
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching waiting list for event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to fetch waiting list')


@admin_api_bp.route('/events/<int:event_id>/waitinglist', methods=['POST'])
@require_moderator
def promote_waiting_list_entry(user, event_id):
    """Move a waiting-list entry into the registrations and tell the participant"""
    try:
        data = request.get_json(silent=True) or {}
        entry_id = data.get('entryId')
        if not entry_id:
            return jsonify({
                'success': False,
                'message': 'entryId is required'
            }), 400

        db = next(get_db())
        try:
            event, registration, payment_type = promote_from_waiting_list(
                db, event_id, entry_id, user_id=user.external_id
            )
            notify_participants_changed(event_id)

            email_sent = False
            try:
                email_sent = EmailConfig.send_waiting_list_promotion(
                    registration.email, registration.first_name, event, payment_type
                )
            except Exception as e:
                logger.error(f"Failed to send promotion email to {mask_email(registration.email)}: {e}",
                             exc_info=True)

            return jsonify({
                'success': True,
                'message': 'Participant moved from the waiting list to registrations',
                'registration': registration.to_dict(),
                'emailSent': email_sent
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error promoting waiting list entry for event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to promote waiting list entry')


@admin_api_bp.route('/events/<int:event_id>/waitinglist/<int:entry_id>', methods=['DELETE'])
@require_moderator
def delete_waiting_list_entry(user, event_id, entry_id):
    """Remove an entry from an event's waiting list"""
    try:
        db = next(get_db())
        try:
            remove_waiting_list_entry(db, event_id, entry_id)
            notify_participants_changed(event_id)
            return jsonify({
                'success': True,
                'message': 'Waiting list entry removed'
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error removing waiting list entry {entry_id}: {e}", exc_info=True)
        return _server_error('Failed to remove waiting list entry')


@admin_api_bp.route('/events/<int:event_id>/potential-no-shows', methods=['GET'])
@require_admin
def get_potential_no_shows(user, event_id):
    """Registrants of an event who neither attended nor paid"""
    try:
        db = next(get_db())
        try:
            event = get_event(db, event_id)
            candidates = potential_no_shows(db, event_id)
            return jsonify({
                'success': True,
                'event': event.to_dict(),
                'candidates': candidates,
                'count': len(candidates)
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching potential no-shows for event {event_id}: {e}", exc_info=True)
        return _server_error('Failed to fetch potential no-shows')


# ----- Registrations Management API -----

@admin_api_bp.route('/registrations', methods=['POST'])
@require_moderator
def add_registration(user):
    """Add a participant directly, regardless of capacity"""
    try:
        data = request.get_json(silent=True) or {}
        event_id = data.get('eventId')
        if not event_id:
            return jsonify({
                'success': False,
                'message': 'eventId is required'
            }), 400

        db = next(get_db())
        try:
            registration, action = admin_add_registration(
                db, event_id,
                first_name=data.get('firstName'),
                last_name=data.get('lastName'),
                email=data.get('email'),
                phone_number=data.get('phoneNumber'),
                payment_type=data.get('paymentType', PaymentType.CASH),
                user_id=user.external_id
            )
            notify_participants_changed(registration.event_id)

            return jsonify({
                'success': True,
                'message': 'Registration reactivated' if action == RegistrationAction.REACTIVATED else 'Registration added',
                'registration': registration.to_dict(),
                'reactivated': action == RegistrationAction.REACTIVATED
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error adding registration: {e}", exc_info=True)
        return _server_error('Failed to add registration')


@admin_api_bp.route('/registrations/duplicate', methods=['POST'])
@require_moderator
def duplicate_admin_registration(user):
    """Copy a registration into another event"""
    try:
        data = request.get_json(silent=True) or {}
        registration_id = data.get('registrationId')
        target_event_id = data.get('targetEventId')
        if not registration_id or not target_event_id:
            return jsonify({
                'success': False,
                'message': 'registrationId and targetEventId are required'
            }), 400

        db = next(get_db())
        try:
            registration, action = duplicate_registration(
                db, registration_id, target_event_id, user_id=user.external_id
            )
            notify_participants_changed(registration.event_id)

            return jsonify({
                'success': True,
                'message': 'Registration duplicated',
                'registration': registration.to_dict(),
                'reactivated': action == RegistrationAction.REACTIVATED
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error duplicating registration: {e}", exc_info=True)
        return _server_error('Failed to duplicate registration')


@admin_api_bp.route('/registrations/<int:registration_id>', methods=['PUT'])
@require_moderator
def update_admin_registration(user, registration_id):
    """Edit a registration's contact details and payment type"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            registration = update_registration(db, registration_id, data)
            notify_participants_changed(registration.event_id)
            return jsonify({
                'success': True,
                'message': 'Registration updated',
                'registration': registration.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating registration {registration_id}: {e}", exc_info=True)
        return _server_error('Failed to update registration')


@admin_api_bp.route('/registrations/<int:registration_id>', methods=['DELETE'])
@require_moderator
def delete_admin_registration(user, registration_id):
    """Remove a participant from an event"""
    try:
        db = next(get_db())
        try:
            registration = delete_registration_by_moderator(db, registration_id, user_id=user.external_id)
            notify_participants_changed(registration.event_id)
            return jsonify({
                'success': True,
                'message': 'Registration deleted'
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error deleting registration {registration_id}: {e}", exc_info=True)
        return _server_error('Failed to delete registration')


@admin_api_bp.route('/registrations/<int:registration_id>/toggle-attendance', methods=['POST'])
@require_moderator
def toggle_attendance(user, registration_id):
    """Set attendance from the body's 'attended', or flip it when absent"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            attended = data.get('attended')
            if attended is None:
                attended = not get_registration_or_404(db, registration_id).attended
            elif not isinstance(attended, bool):
                raise ValidationError("attended must be a boolean")

            registration = set_attendance(db, registration_id, attended)
            notify_participants_changed(registration.event_id)
            return jsonify({
                'success': True,
                'attended': registration.attended,
                'registration': registration.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error toggling attendance for registration {registration_id}: {e}", exc_info=True)
        return _server_error('Failed to update attendance')


def _update_payment(registration_id, paid):
    db = next(get_db())
    try:
        registration = get_registration_or_404(db, registration_id)
        if paid is None:
            paid = not (registration.payment is not None and registration.payment.paid)
        elif not isinstance(paid, bool):
            raise ValidationError("paid must be a boolean")

        payment = set_payment_status(db, registration, paid)
        db.commit()
        db.refresh(payment)
        logger.info(f"Registration {registration_id} marked {'paid' if paid else 'unpaid'}")
        return jsonify({
            'success': True,
            'paid': payment.paid,
            'payment': payment.to_dict()
        })
    finally:
        db.close()


@admin_api_bp.route('/registrations/<int:registration_id>/toggle-payment', methods=['POST'])
@require_moderator
def toggle_payment(user, registration_id):
    """Set payment from the body's 'paid', or flip it when absent"""
    try:
        data = request.get_json(silent=True) or {}
        return _update_payment(registration_id, data.get('paid'))

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error toggling payment for registration {registration_id}: {e}", exc_info=True)
        return _server_error('Failed to update payment')


@admin_api_bp.route('/registrations/<int:registration_id>/mark-paid', methods=['POST'])
@require_moderator
def mark_paid(user, registration_id):
    """Mark a registration as paid"""
    try:
        return _update_payment(registration_id, True)

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error marking registration {registration_id} paid: {e}", exc_info=True)
        return _server_error('Failed to mark registration as paid')


@admin_api_bp.route('/history', methods=['GET'])
@require_moderator
def get_history(user):
    """Registration history, newest first"""
    try:
        event_id = _int_arg('eventId')
        limit, offset = clamp_page(_int_arg('limit', DEFAULT_LIMIT), _int_arg('offset', 0))
        action_type = request.args.get('actionType') or None
        search = request.args.get('search', '').strip() or None

        db = next(get_db())
        try:
            entries, total = query_history(
                db, event_id=event_id, action_type=action_type, search=search,
                limit=limit, offset=offset
            )
            return jsonify({
                'success': True,
                'history': [h.to_dict() for h in entries],
                'pagination': {
                    'total': total,
                    'limit': limit,
                    'offset': offset
                }
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching registration history: {e}", exc_info=True)
        return _server_error('Failed to fetch history')


# ----- Statistics -----

@admin_api_bp.route('/event-stats', methods=['GET'])
@require_admin
def get_event_stats(user):
    """Per-event attendance and payment figures for a date range"""
    try:
        date_from = request.args.get('from')
        date_to = request.args.get('to')
        if not date_from or not date_to:
            return jsonify({
                'success': False,
                'message': "Both 'from' and 'to' dates are required"
            }), 400

        db = next(get_db())
        try:
            stats = event_stats(db, date_from, date_to)
            return jsonify({
                'success': True,
                **stats
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error computing event stats: {e}", exc_info=True)
        return _server_error('Failed to compute event statistics')


# ----- No-Shows API -----

@admin_api_bp.route('/no-shows', methods=['GET'])
@require_admin
def get_no_shows(user):
    """No-show records, filterable by feePaid and email"""
    try:
        fee_paid = request.args.get('feePaid')
        if fee_paid is not None:
            fee_paid = fee_paid.lower() == 'true'
        email = request.args.get('email', '').strip() or None

        db = next(get_db())
        try:
            records = list_no_shows(db, fee_paid=fee_paid, email=email)
            return jsonify({
                'success': True,
                'noShows': [n.to_dict() for n in records],
                'count': len(records)
            })
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Error fetching no-shows: {e}", exc_info=True)
        return _server_error('Failed to fetch no-shows')


@admin_api_bp.route('/no-shows', methods=['POST'])
@require_admin
def add_no_show(user):
    """Record a no-show by hand"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            record = create_no_show(db, data)
            return jsonify({
                'success': True,
                'message': 'No-show recorded',
                'noShow': record.to_dict()
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error creating no-show: {e}", exc_info=True)
        return _server_error('Failed to create no-show')


@admin_api_bp.route('/no-shows/<int:no_show_id>', methods=['PATCH'])
@require_admin
def patch_no_show(user, no_show_id):
    """Update a no-show's fee status or notes"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            record = update_no_show(db, no_show_id, data)
            return jsonify({
                'success': True,
                'message': 'No-show updated',
                'noShow': record.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating no-show {no_show_id}: {e}", exc_info=True)
        return _server_error('Failed to update no-show')


@admin_api_bp.route('/no-shows/<int:no_show_id>', methods=['DELETE'])
@require_admin
def remove_no_show(user, no_show_id):
    """Delete a no-show record"""
    try:
        db = next(get_db())
        try:
            delete_no_show(db, no_show_id)
            return jsonify({
                'success': True,
                'message': 'No-show deleted'
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error deleting no-show {no_show_id}: {e}", exc_info=True)
        return _server_error('Failed to delete no-show')


@admin_api_bp.route('/no-shows/bulk-import', methods=['POST'])
@require_moderator
def bulk_import_no_shows(user):
    """Record a list of potential no-shows in one go"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            imported = bulk_import(
                db,
                data.get('candidates'),
                data.get('eventId'),
                data.get('eventTitle'),
                data.get('eventDate')
            )
            return jsonify({
                'success': True,
                'message': f"Imported {imported} no-show records",
                'imported': imported
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error bulk importing no-shows: {e}", exc_info=True)
        return _server_error('Failed to import no-shows')


# ----- Users Management API -----

@admin_api_bp.route('/users', methods=['GET'])
@require_moderator
def get_all_users(user):
    """Get all users with search and pagination"""
    try:
        search = request.args.get('search', '').strip()
        page = _int_arg('page', 1)
        per_page = _int_arg('per_page', 50)
        if page < 1 or per_page < 1:
            raise ValidationError('Invalid page or per_page parameters.')

        db = next(get_db())
        try:
            query = db.query(User)

            if search:
                search_term = f"%{search}%"
                query = query.filter(
                    or_(
                        User.name.ilike(search_term),
                        User.email.ilike(search_term)
                    )
                )

            total = query.count()
            offset = (page - 1) * per_page
            users = query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(per_page).all()

            return jsonify({
                'success': True,
                'users': [u.to_dict() for u in users],
                'pagination': {
                    'page': page,
                    'per_page': per_page,
                    'total': total,
                    'pages': (total + per_page - 1) // per_page
                }
            })

        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching users: {e}", exc_info=True)
        return _server_error('Failed to fetch users')


@admin_api_bp.route('/users/update-role', methods=['POST'])
@require_admin
def update_user_role(admin_user):
    """Change a user's role (admin only)"""
    try:
        data = request.get_json(silent=True) or {}
        user_id = data.get('userId')
        role = data.get('role')

        if not user_id or role not in UserRole.ALL:
            return jsonify({
                'success': False,
                'message': 'A userId and a valid role are required'
            }), 400

        db = next(get_db())
        try:
            target = db.query(User).filter(User.id == user_id).first()
            if not target:
                raise NotFound('User not found')

            target.role = role
            db.commit()
            db.refresh(target)
            invalidate_user_cache(target.kinde_id, target.email)
            logger.info(f"User {target.id} role changed to {role} by user {admin_user.id}")

            return jsonify({
                'success': True,
                'message': 'User role updated successfully',
                'user': target.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating user role: {e}", exc_info=True)
        return _server_error('Failed to update user role')


@admin_api_bp.route('/users/update-user', methods=['POST'])
@require_admin
def update_user(admin_user):
    """Update user details (admin only)"""
    try:
        data = request.get_json(silent=True) or {}
        user_id = data.get('userId')
        if not user_id:
            return jsonify({
                'success': False,
                'message': 'userId is required'
            }), 400

        db = next(get_db())
        try:
            target = db.query(User).filter(User.id == user_id).first()
            if not target:
                raise NotFound('User not found')

            old_email = target.email
            if 'name' in data:
                target.name = (data['name'] or '').strip() or None
            if 'phoneNumber' in data:
                target.phone_number = (data['phoneNumber'] or '').strip() or None
            if 'paymentPreference' in data:
                target.payment_preference = validate_payment_type(data['paymentPreference'])
            if 'email' in data:
                email = (data['email'] or '').strip().lower()
                if not email or '@' not in email:
                    raise ValidationError('Invalid email address')
                existing = db.query(User).filter(User.email == email, User.id != target.id).first()
                if existing:
                    raise ValidationError('Email already in use')
                target.email = email

            db.commit()
            db.refresh(target)
            invalidate_user_cache(target.kinde_id, old_email)
            invalidate_user_cache(email=target.email)

            return jsonify({
                'success': True,
                'message': 'User updated successfully',
                'user': target.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating user: {e}", exc_info=True)
        return _server_error('Failed to update user')


# ----- Bank Accounts -----

@admin_api_bp.route('/bank-accounts', methods=['GET'])
@require_moderator
def get_bank_accounts(user):
    """Bank accounts an event can collect payments into"""
    return jsonify({
        'success': True,
        'bankAccounts': get_all_bank_accounts()
    })
