import pytest
from starlette.requests import Request

from shifted_app.core.ratelimit import InMemoryRateLimiter, client_ip


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    rl = InMemoryRateLimiter(limit=3, window_sec=600, clock=clock)
    assert [rl.allow("1.2.3.4").allowed for _ in range(3)] == [True, True, True]

    clock.now += 100
    blocked = rl.allow("1.2.3.4")
    assert not blocked.allowed
    assert blocked.retry_after_seconds == 500


def test_new_window_after_expiry():
    clock = FakeClock()
    rl = InMemoryRateLimiter(limit=1, window_sec=60, clock=clock)
    assert rl.allow("k").allowed
    assert not rl.allow("k").allowed

    clock.now += 60
    assert rl.allow("k").allowed
    assert not rl.allow("k").allowed


def test_keys_are_independent():
    rl = InMemoryRateLimiter(limit=1, window_sec=60, clock=FakeClock())
    assert rl.allow("a").allowed
    assert rl.allow("b").allowed
    assert not rl.allow("a").allowed


def test_expired_buckets_are_evicted():
    clock = FakeClock()
    rl = InMemoryRateLimiter(limit=5, window_sec=10, clock=clock)
    for k in ("a", "b", "c"):
        rl.allow(k)
    assert len(rl) == 3

    clock.now += 11
    rl.allow("d")
    assert len(rl) == 1


def test_rejects_bad_config():
    with pytest.raises(ValueError):
        InMemoryRateLimiter(limit=0, window_sec=10)
    with pytest.raises(ValueError):
        InMemoryRateLimiter(limit=1, window_sec=0)


def _request(headers=None, client=("10.0.0.7", 5000)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/waitlist",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_precedence():
    assert client_ip(_request({"X-Real-IP": "1.1.1.1", "X-Forwarded-For": "2.2.2.2"})) == "1.1.1.1"
    assert client_ip(_request({"X-Forwarded-For": "2.2.2.2, 3.3.3.3"})) == "2.2.2.2"
    assert client_ip(_request()) == "10.0.0.7"
    assert client_ip(_request(client=None)) == "unknown"
