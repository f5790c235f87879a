"""
GameOn Flask Application - Registration API Routes
Self-service registration and waiting-list sign-up.
"""

from flask import Blueprint, jsonify, request
import logging
from sqlalchemy import func

from database import get_db, User, Event, Registration, PaymentType
from auth import require_auth, get_current_user
from errors import ApiError, ValidationError
from rate_limit import rate_limited
from event_service import get_event
from registration_service import create_registration, add_to_waiting_list, mask_email
from email_config import EmailConfig
from participants_stream import notify_participants_changed

logger = logging.getLogger(__name__)
registration_api_bp = Blueprint('registration_api', __name__, url_prefix='/api')


def _require_event_id(data):
    event_id = data.get('eventId')
    try:
        return int(event_id)
    except (TypeError, ValueError):
        raise ValidationError("eventId is required")


def _send_confirmation(db, event_id, result):
    """Confirmation email; a failure here never fails the registration"""
    try:
        event = get_event(db, event_id)
        sent = EmailConfig.send_registration_confirmation(
            result['email'], result['firstName'], event, qr_code_data=result.get('qrCodeData')
        )
        if not sent:
            logger.warning(f"Confirmation email not sent to {mask_email(result['email'])}")
    except Exception as e:
        logger.error(f"Failed to send confirmation email: {e}", exc_info=True)


@registration_api_bp.route('/registration', methods=['POST'])
@rate_limited('registration')
def register():
    """Register for an event; a full event puts the caller on the waiting list"""
    try:
        data = request.get_json(silent=True) or {}
        event_id = _require_event_id(data)
        user = get_current_user()

        db = next(get_db())
        try:
            result = create_registration(
                db, event_id,
                first_name=data.get('firstName'),
                last_name=data.get('lastName'),
                email=data.get('email'),
                phone_number=data.get('phoneNumber'),
                payment_type=data.get('paymentType', PaymentType.CASH),
                user_id=user.external_id if user else None
            )
            notify_participants_changed(event_id)

            if result['isWaitlisted']:
                message = 'Event is full, you have been added to the waiting list'
            else:
                message = 'Registration successful'
                _send_confirmation(db, event_id, result)

            return jsonify({
                'success': True,
                'message': message,
                **result
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Registration error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Registration failed'
        }), 500


@registration_api_bp.route('/waitinglist', methods=['POST'])
@require_auth
@rate_limited('waitinglist')
def join_waiting_list(user):
    """Put the signed-in user on an event's waiting list"""
    try:
        data = request.get_json(silent=True) or {}
        event_id = _require_event_id(data)

        db = next(get_db())
        try:
            profile = db.query(User).filter(User.id == user.id).first()
            payment_type = data.get('paymentType') or (profile.payment_preference if profile else None) \
                or PaymentType.CASH

            entry = add_to_waiting_list(
                db, event_id,
                first_name=data.get('firstName') or user.given_name,
                last_name=data.get('lastName', user.family_name),
                email=user.email,
                phone_number=data.get('phoneNumber') or (profile.phone_number if profile else None),
                payment_type=payment_type,
                user_id=user.external_id
            )
            notify_participants_changed(event_id)

            return jsonify({
                'success': True,
                'message': 'Added to the waiting list',
                'entry': entry.to_dict()
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Waiting list error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to join waiting list'
        }), 500


@registration_api_bp.route('/waitinglist/guest', methods=['POST'])
@rate_limited('waitinglist')
def join_waiting_list_as_guest():
    """Waiting-list sign-up with explicit contact details"""
    try:
        data = request.get_json(silent=True) or {}
        event_id = _require_event_id(data)

        db = next(get_db())
        try:
            entry = add_to_waiting_list(
                db, event_id,
                first_name=data.get('firstName'),
                last_name=data.get('lastName'),
                email=data.get('email'),
                phone_number=data.get('phoneNumber'),
                payment_type=data.get('paymentType', PaymentType.CASH)
            )
            notify_participants_changed(event_id)

            return jsonify({
                'success': True,
                'message': 'Added to the waiting list',
                'entry': entry.to_dict()
            }), 201
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Guest waiting list error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to join waiting list'
        }), 500


@registration_api_bp.route('/registrations', methods=['GET'])
@require_auth
def get_my_registrations(user):
    """Active registrations of the signed-in user, soonest event first"""
    try:
        db = next(get_db())
        try:
            rows = db.query(Registration, Event).join(Event, Event.id == Registration.event_id).filter(
                func.lower(Registration.email) == user.email.lower(),
                Registration.deleted == False  # noqa: E712
            ).order_by(Event.from_time.asc()).all()

            registrations = []
            for registration, event in rows:
                item = registration.to_dict()
                item['event'] = event.to_dict()
                registrations.append(item)

            return jsonify({
                'success': True,
                'registrations': registrations
            })
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Error fetching registrations: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch registrations'
        }), 500
