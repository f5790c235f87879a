"""
Shared fixtures: a throwaway SQLite database, the Flask test client and
identity tokens signed with a test secret.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta
from unittest.mock import patch

# Configure before any application module reads its environment
_db_dir = tempfile.mkdtemp(prefix='gameon-tests-')
os.environ['DATABASE_URL'] = f"sqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ['IDENTITY_JWT_SECRET'] = 'test-secret'
for _name in ('IDENTITY_JWKS_URL', 'IDENTITY_AUDIENCE', 'IDENTITY_ISSUER'):
    os.environ.pop(_name, None)

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..'))

import jwt
import pytest

TEST_SECRET = 'test-secret'


@pytest.fixture(scope='session')
def app():
    from app import app as flask_app
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture(autouse=True)
def clean_state(app):
    """Empty tables, rate-limit counters and the role cache before every test"""
    from database import Base, engine
    from auth import role_cache

    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
    app.extensions['rate_limiter'].reset()
    role_cache.clear()
    yield


@pytest.fixture(autouse=True)
def sent_emails():
    """SMTP is never contacted; the mock records every message"""
    with patch('email_config.EmailConfig.send_email', return_value=True) as mock_send:
        yield mock_send


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db():
    from database import SessionLocal
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_token(sub, email, given_name='', family_name='', expires_in=3600):
    payload = {
        'sub': sub,
        'email': email,
        'given_name': given_name,
        'family_name': family_name,
        'exp': datetime.utcnow() + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, TEST_SECRET, algorithm='HS256')


@pytest.fixture
def auth_headers(db):
    """
    Factory creating a user with the given role and returning request headers
    carrying its identity token.
    """
    from database import User, UserRole

    def _make(role=UserRole.USER, email=None, given_name='Test', family_name='User', sub=None):
        email = email or f"{role.lower()}@example.com"
        sub = sub or f"kp_{email.split('@')[0]}"
        user = db.query(User).filter(User.email == email).first()
        if not user:
            user = User(kinde_id=sub, email=email, name=f"{given_name} {family_name}", role=role)
            db.add(user)
            db.commit()
        token = make_token(sub, email, given_name, family_name)
        return {'Authorization': f"Bearer {token}"}

    return _make


@pytest.fixture
def make_event(db):
    """Factory for events starting tomorrow unless told otherwise"""
    from database import Event

    def _make(**overrides):
        start = overrides.pop('from_time', datetime.utcnow() + timedelta(days=1))
        fields = {
            'title': 'Board Game Night',
            'description': 'Bring your favourite game',
            'price': 150.0,
            'place': 'Prague',
            'capacity': 10,
            'from_time': start,
            'to_time': start + timedelta(hours=3),
            'visible': True,
        }
        fields.update(overrides)
        event = Event(**fields)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    return _make


def registration_payload(event_id, **overrides):
    payload = {
        'eventId': event_id,
        'firstName': 'Alice',
        'lastName': 'Smith',
        'email': 'alice@example.com',
        'phoneNumber': '+420123456789',
        'paymentType': 'CASH',
    }
    payload.update(overrides)
    return payload
