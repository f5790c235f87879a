"""
Tests for identity token checks, user sync and role-based access.
"""
from database import User, UserRole
from auth import Identity, sync_user, role_cache
from cache import TTLCache
from conftest import make_token


def test_admin_route_requires_token(client):
    response = client.get('/api/admin/events')

    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'message': 'Authentication required'}


def test_invalid_token_is_rejected(client):
    response = client.get('/api/admin/events', headers={'Authorization': 'Bearer not-a-token'})

    assert response.status_code == 401


def test_expired_token_is_rejected(client, auth_headers):
    auth_headers(role=UserRole.ADMIN, email='admin@example.com', sub='kp_admin')
    token = make_token('kp_admin', 'admin@example.com', expires_in=-60)

    response = client.get('/api/admin/events', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 401


def test_token_from_cookie(client, auth_headers):
    auth_headers(role=UserRole.MODERATOR, email='mod@example.com', sub='kp_mod')
    client.set_cookie('access_token', make_token('kp_mod', 'mod@example.com'))

    response = client.get('/api/admin/check')

    assert response.status_code == 200


def test_plain_user_is_forbidden(client, auth_headers):
    response = client.get('/api/admin/events', headers=auth_headers(role=UserRole.USER))

    assert response.status_code == 403
    assert response.get_json() == {'success': False, 'message': 'Insufficient permissions'}


def test_moderator_cannot_use_admin_only_routes(client, auth_headers):
    headers = auth_headers(role=UserRole.MODERATOR)

    assert client.get('/api/admin/events', headers=headers).status_code == 200
    assert client.get('/api/admin/no-shows', headers=headers).status_code == 403
    assert client.post('/api/admin/users/update-role', headers=headers,
                       json={'userId': 1, 'role': 'ADMIN'}).status_code == 403


def test_first_user_becomes_admin(db):
    first = sync_user(db, Identity('kp_1', 'first@example.com', 'First', 'User'))
    second = sync_user(db, Identity('kp_2', 'second@example.com', 'Second', 'User'))

    assert first.role == UserRole.ADMIN
    assert second.role == UserRole.USER
    assert first.name == 'First User'


def test_sync_user_links_existing_email(db):
    db.add(User(email='known@example.com', role=UserRole.MODERATOR))
    db.commit()

    user = sync_user(db, Identity('kp_known', 'Known@Example.com'))

    assert user.kinde_id == 'kp_known'
    assert user.role == UserRole.MODERATOR
    assert db.query(User).count() == 1


def test_new_identity_is_created_on_first_request(client, db):
    token = make_token('kp_new', 'new@example.com', 'New', 'Person')

    response = client.get('/api/user/profile', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 200
    assert response.get_json()['user']['email'] == 'new@example.com'
    assert db.query(User).filter(User.kinde_id == 'kp_new').count() == 1


def test_role_change_takes_effect_immediately(client, db, auth_headers):
    admin = auth_headers(role=UserRole.ADMIN)
    user_headers = auth_headers(role=UserRole.USER, email='player@example.com')
    assert client.get('/api/admin/check', headers=user_headers).status_code == 403

    player = db.query(User).filter(User.email == 'player@example.com').one()
    response = client.post('/api/admin/users/update-role', headers=admin,
                           json={'userId': player.id, 'role': UserRole.MODERATOR})

    assert response.status_code == 200
    assert client.get('/api/admin/check', headers=user_headers).status_code == 200


def test_update_role_rejects_unknown_role(client, db, auth_headers):
    admin = auth_headers(role=UserRole.ADMIN)
    admin_user = db.query(User).filter(User.role == UserRole.ADMIN).one()

    response = client.post('/api/admin/users/update-role', headers=admin,
                           json={'userId': admin_user.id, 'role': 'OWNER'})

    assert response.status_code == 400


def test_role_is_cached(client, db, auth_headers):
    headers = auth_headers(role=UserRole.MODERATOR, email='cached@example.com')
    client.get('/api/admin/check', headers=headers)

    # Changed behind the API's back; the cached role still applies
    user = db.query(User).filter(User.email == 'cached@example.com').one()
    user.role = UserRole.USER
    db.commit()

    assert client.get('/api/admin/check', headers=headers).status_code == 200
    role_cache.clear()
    assert client.get('/api/admin/check', headers=headers).status_code == 403


def test_check_role_reports_permissions(client, auth_headers):
    response = client.get('/api/auth/check-role', headers=auth_headers(role=UserRole.REGULAR))

    data = response.get_json()
    assert data['role'] == UserRole.REGULAR
    assert data['isModerator'] is False
    assert data['canViewHiddenEvents'] is True


def test_validate_session(client, auth_headers):
    assert client.get('/api/auth/validate-session').get_json()['authenticated'] is False

    response = client.get('/api/auth/validate-session', headers=auth_headers())
    assert response.get_json()['authenticated'] is True


def test_payment_preference_roundtrip(client, auth_headers):
    headers = auth_headers()

    assert client.put('/api/user/payment-preference', headers=headers,
                      json={'paymentPreference': 'QR'}).status_code == 200
    assert client.get('/api/user/payment-preference', headers=headers).get_json()['paymentPreference'] == 'QR'
    assert client.put('/api/user/payment-preference', headers=headers,
                      json={'paymentPreference': 'GOLD'}).status_code == 400


def test_ttl_cache_expiry():
    now = [0.0]
    cache = TTLCache(10, clock=lambda: now[0])
    cache.set('id:abc', {'role': 'ADMIN'})

    assert cache.get('id:abc') == {'role': 'ADMIN'}
    now[0] = 10.0
    assert cache.get('id:abc') is None
    assert len(cache) == 0
