"""
GameOn Flask Application - Auth API Routes
Session checks against the identity provider and the signed-in user's profile.
"""

from flask import Blueprint, jsonify, request
import logging

from database import get_db, User
from auth import require_auth, get_current_user, invalidate_user_cache
from errors import ApiError, NotFound
from registration_service import validate_payment_type

logger = logging.getLogger(__name__)
auth_api_bp = Blueprint('auth_api', __name__, url_prefix='/api')


def _load_profile(db, user) -> User:
    profile = db.query(User).filter(User.id == user.id).first()
    if not profile:
        raise NotFound('User not found')
    return profile


# ----- Authentication API -----

@auth_api_bp.route('/auth/validate-session', methods=['GET'])
def validate_session():
    """Report whether the request carries a valid identity token"""
    try:
        user = get_current_user()
        if not user:
            return jsonify({
                'success': True,
                'authenticated': False
            })

        return jsonify({
            'success': True,
            'authenticated': True,
            'user': {
                'id': user.id,
                'email': user.email,
                'name': user.name,
                'givenName': user.given_name,
                'familyName': user.family_name,
                'role': user.role
            }
        })

    except Exception as e:
        logger.error(f"Session validation error: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to validate session'
        }), 500


@auth_api_bp.route('/auth/check-role', methods=['GET'])
@require_auth
def check_role(user):
    """Role and derived permissions of the signed-in user"""
    resp = jsonify({
        'success': True,
        'role': user.role,
        'isAdmin': user.is_admin,
        'isModerator': user.is_moderator,
        'canViewHiddenEvents': user.can_view_hidden_events
    })
    resp.headers['Vary'] = 'Authorization'
    return resp


# ----- User Profile API -----

@auth_api_bp.route('/user/profile', methods=['GET'])
@require_auth
def get_profile(user):
    """Get current user profile"""
    try:
        db = next(get_db())
        try:
            profile = _load_profile(db, user)
            resp = jsonify({
                'success': True,
                'user': profile.to_dict()
            })
            # No caching for user profile to prevent stale data
            resp.headers['Vary'] = 'Authorization'
            return resp
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching profile for user {user.id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch profile'
        }), 500


@auth_api_bp.route('/user/profile', methods=['PUT'])
@require_auth
def update_profile(user):
    """Update user profile"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            profile = _load_profile(db, user)
            if 'name' in data:
                profile.name = (data['name'] or '').strip() or None
            if 'phoneNumber' in data:
                profile.phone_number = (data['phoneNumber'] or '').strip() or None
            if 'paymentPreference' in data:
                profile.payment_preference = validate_payment_type(data['paymentPreference'])

            db.commit()
            db.refresh(profile)
            invalidate_user_cache(profile.kinde_id, profile.email)

            return jsonify({
                'success': True,
                'message': 'Profile updated successfully',
                'user': profile.to_dict()
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating profile for user {user.id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to update profile'
        }), 500


@auth_api_bp.route('/user/payment-preference', methods=['GET'])
@require_auth
def get_payment_preference(user):
    """Payment type preselected for the user's registrations"""
    try:
        db = next(get_db())
        try:
            profile = _load_profile(db, user)
            return jsonify({
                'success': True,
                'paymentPreference': profile.payment_preference
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error fetching payment preference for user {user.id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to fetch payment preference'
        }), 500


@auth_api_bp.route('/user/payment-preference', methods=['PUT'])
@require_auth
def update_payment_preference(user):
    """Change the user's preferred payment type"""
    try:
        data = request.get_json(silent=True) or {}

        db = next(get_db())
        try:
            profile = _load_profile(db, user)
            profile.payment_preference = validate_payment_type(data.get('paymentPreference'))
            db.commit()

            return jsonify({
                'success': True,
                'message': 'Payment preference updated',
                'paymentPreference': profile.payment_preference
            })
        finally:
            db.close()

    except ApiError as e:
        return e.to_response()
    except Exception as e:
        logger.error(f"Error updating payment preference for user {user.id}: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Failed to update payment preference'
        }), 500
