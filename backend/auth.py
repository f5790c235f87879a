"""
GameOn Authentication Helpers
Identity token verification, user sync and role-based access decorators.
Login itself happens at the external identity provider; this module only
validates the tokens it issues.
"""

import jwt
import os
import logging
from functools import wraps
from flask import request
from database import get_db, User, UserRole
from cache import TTLCache
from errors import Unauthorized, Forbidden

logger = logging.getLogger(__name__)

# Identity provider configuration
IDENTITY_JWT_SECRET = os.environ.get('IDENTITY_JWT_SECRET')
IDENTITY_JWKS_URL = os.environ.get('IDENTITY_JWKS_URL')
IDENTITY_AUDIENCE = os.environ.get('IDENTITY_AUDIENCE')
IDENTITY_ISSUER = os.environ.get('IDENTITY_ISSUER')

if not IDENTITY_JWT_SECRET and not IDENTITY_JWKS_URL:
    logger.warning(
        "Neither IDENTITY_JWT_SECRET nor IDENTITY_JWKS_URL is set. "
        "All authenticated endpoints will reject requests."
    )

ROLE_CACHE_TTL_SECONDS = int(os.environ.get('ROLE_CACHE_TTL_SECONDS', 600))  # 10 minutes

# Keyed by 'id:<external id>' and 'email:<email>'
role_cache = TTLCache(ROLE_CACHE_TTL_SECONDS)

_jwks_client = None


class Identity:
    """Claims taken from a verified identity token"""

    def __init__(self, external_id: str, email: str, given_name: str = '', family_name: str = ''):
        self.external_id = external_id
        self.email = (email or '').strip().lower()
        self.given_name = given_name or ''
        self.family_name = family_name or ''

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.family_name}".strip()


class CurrentUser:
    """Authenticated caller as seen by route handlers"""

    def __init__(self, id: int, external_id: str, email: str, role: str, name: str = None,
                 given_name: str = '', family_name: str = ''):
        self.id = id
        self.external_id = external_id
        self.email = email
        self.role = role
        self.name = name
        self.given_name = given_name
        self.family_name = family_name

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_moderator(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MODERATOR)

    @property
    def can_view_hidden_events(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.MODERATOR, UserRole.REGULAR)


def _get_jwks_client():
    global _jwks_client
    if _jwks_client is None:
        _jwks_client = jwt.PyJWKClient(IDENTITY_JWKS_URL)
    return _jwks_client


def verify_token(token: str) -> dict:
    """Verify and decode an identity token"""
    options = {'verify_aud': bool(IDENTITY_AUDIENCE)}
    kwargs = {'options': options}
    if IDENTITY_AUDIENCE:
        kwargs['audience'] = IDENTITY_AUDIENCE
    if IDENTITY_ISSUER:
        kwargs['issuer'] = IDENTITY_ISSUER

    try:
        if IDENTITY_JWKS_URL:
            signing_key = _get_jwks_client().get_signing_key_from_jwt(token)
            return jwt.decode(token, signing_key.key, algorithms=['RS256'], **kwargs)
        if IDENTITY_JWT_SECRET:
            return jwt.decode(token, IDENTITY_JWT_SECRET, algorithms=['HS256'], **kwargs)
        return {'error': 'Identity provider not configured'}
    except jwt.ExpiredSignatureError:
        return {'error': 'Token expired'}
    except jwt.PyJWKClientError as e:
        logger.error(f"Failed to fetch signing key: {e}")
        return {'error': 'Invalid token'}
    except jwt.InvalidTokenError:
        return {'error': 'Invalid token'}


def get_token_from_request():
    """Extract identity token from the Authorization header or access_token cookie"""
    auth_header = request.headers.get('Authorization')
    if auth_header:
        # Format: "Bearer <token>"
        parts = auth_header.split(' ')
        if len(parts) == 2 and parts[0].lower() == 'bearer' and parts[1]:
            return parts[1]
        return None
    return request.cookies.get('access_token')


def get_identity():
    """Return the Identity behind the current request, or None"""
    token = get_token_from_request()
    if not token:
        return None

    payload = verify_token(token)
    if 'error' in payload:
        return None

    if not payload.get('sub') or not payload.get('email'):
        logger.warning("Identity token is missing 'sub' or 'email' claim")
        return None

    return Identity(
        external_id=str(payload['sub']),
        email=payload['email'],
        given_name=payload.get('given_name', ''),
        family_name=payload.get('family_name', '')
    )


def sync_user(db, identity: Identity) -> User:
    """
    Find or create the User row for an identity.

    Looks up by external id first, then by email (back-filling the external id).
    The first user ever created becomes ADMIN; later ones start as USER.
    """
    user = db.query(User).filter(User.kinde_id == identity.external_id).first()
    if user:
        return user

    user = db.query(User).filter(User.email == identity.email).first()
    if user:
        logger.info(f"Linking existing user {user.id} to external identity")
        user.kinde_id = identity.external_id
        db.commit()
        db.refresh(user)
        return user

    is_first_user = db.query(User).count() == 0
    user = User(
        kinde_id=identity.external_id,
        email=identity.email,
        name=identity.full_name or None,
        role=UserRole.ADMIN if is_first_user else UserRole.USER
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} with role {user.role}")
    return user


def _cache_keys(external_id=None, email=None):
    return (
        f"id:{external_id}" if external_id else None,
        f"email:{email.lower()}" if email else None,
    )


def invalidate_user_cache(external_id=None, email=None):
    """Drop cached role entries after a user's role or details change"""
    role_cache.invalidate(*_cache_keys(external_id, email))


def resolve_user(identity: Identity) -> CurrentUser:
    """Map an identity to its CurrentUser, using the role cache when possible"""
    id_key, email_key = _cache_keys(identity.external_id, identity.email)
    cached = role_cache.get(id_key) or role_cache.get(email_key)
    if cached is None:
        db = next(get_db())
        try:
            user = sync_user(db, identity)
            cached = {'id': user.id, 'role': user.role, 'name': user.name, 'email': user.email}
        finally:
            db.close()
        role_cache.set(id_key, cached)
        role_cache.set(email_key, cached)

    return CurrentUser(
        id=cached['id'],
        external_id=identity.external_id,
        email=cached['email'],
        role=cached['role'],
        name=cached['name'],
        given_name=identity.given_name,
        family_name=identity.family_name
    )


def get_current_user():
    """Get current authenticated user, or None for anonymous requests"""
    identity = get_identity()
    if not identity:
        return None
    return resolve_user(identity)


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if not user:
            return Unauthorized().to_response()
        return f(user, *args, **kwargs)
    return decorated_function


def require_role(*roles):
    """Decorator to require an authenticated user whose role is in roles"""
    allowed = set(roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if not user:
                return Unauthorized().to_response()
            if user.role not in allowed:
                logger.warning(f"User {user.id} with role {user.role} denied access to {request.path}")
                return Forbidden().to_response()
            return f(user, *args, **kwargs)
        return decorated_function
    return decorator


require_admin = require_role(UserRole.ADMIN)
require_moderator = require_role(UserRole.ADMIN, UserRole.MODERATOR)
