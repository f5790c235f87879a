"""
Tests for the per-client sliding-window rate limiter.
"""
from rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_limiter_blocks_after_limit_and_recovers():
    clock = FakeClock()
    limiter = RateLimiter(limits={'registration': 2, 'default': 5}, window_seconds=60, clock=clock)

    assert limiter.hit('registration', '1.2.3.4').allowed
    clock.now += 10
    assert limiter.hit('registration', '1.2.3.4').remaining == 0

    blocked = limiter.hit('registration', '1.2.3.4')
    assert not blocked.allowed
    assert blocked.retry_after == 50
    assert blocked.headers()['Retry-After'] == '50'

    clock.now += 51
    assert limiter.hit('registration', '1.2.3.4').allowed


def test_limiter_tracks_clients_and_buckets_separately():
    limiter = RateLimiter(limits={'registration': 1, 'default': 1}, clock=FakeClock())

    assert limiter.hit('registration', 'a').allowed
    assert not limiter.hit('registration', 'a').allowed
    assert limiter.hit('registration', 'b').allowed
    assert limiter.hit('other', 'a').allowed


def test_registration_endpoint_returns_429(client):
    for _ in range(10):
        response = client.post('/api/registration', json={})
        assert response.status_code == 400

    response = client.post('/api/registration', json={})

    assert response.status_code == 429
    assert response.get_json()['success'] is False
    assert int(response.headers['Retry-After']) >= 1
    assert response.headers['X-RateLimit-Remaining'] == '0'


def test_forwarded_for_identifies_client(client):
    for _ in range(10):
        client.post('/api/registration', json={}, headers={'X-Forwarded-For': '10.0.0.1'})

    other = client.post('/api/registration', json={}, headers={'X-Forwarded-For': '10.0.0.2, 10.0.0.1'})

    assert other.status_code == 400


def test_limiter_forgets_idle_clients():
    clock = FakeClock()
    limiter = RateLimiter(limits={'default': 5}, window_seconds=60, clock=clock)
    for index in range(500):
        limiter.hit('default', f'10.0.{index // 256}.{index % 256}')
    assert limiter.tracked_clients() == 500

    clock.now += 61
    limiter.hit('default', 'fresh-client')

    assert limiter.tracked_clients() == 1


def test_sweep_keeps_clients_still_in_window():
    clock = FakeClock()
    limiter = RateLimiter(limits={'default': 5}, window_seconds=60, clock=clock)
    limiter.hit('default', 'old')
    clock.now += 30
    limiter.hit('default', 'recent')

    clock.now += 31
    limiter.hit('default', 'new')

    assert limiter.tracked_clients() == 2
