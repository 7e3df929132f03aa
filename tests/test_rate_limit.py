from concurrent.futures import ThreadPoolExecutor

from ventcomfort.rate_limit import (
    Allowed,
    ClientRateState,
    Denied,
    FixedWindowRateLimiter,
    client_identifier,
)


def test_allows_up_to_max_then_denies(clock):
    limiter = FixedWindowRateLimiter(clock=clock)

    outcomes = [limiter.check("1.2.3.4") for _ in range(30)]
    assert all(isinstance(outcome, Allowed) for outcome in outcomes)

    denied = limiter.check("1.2.3.4")
    assert isinstance(denied, Denied)
    assert denied.retry_after_seconds == 60


def test_retry_after_rounds_up_and_is_at_least_one(clock):
    limiter = FixedWindowRateLimiter(clock=clock, max_requests=1)
    limiter.check("a")

    clock.advance(58.2)
    assert limiter.check("a") == Denied(retry_after_seconds=2)

    clock.advance(1.79)
    assert limiter.check("a") == Denied(retry_after_seconds=1)


def test_window_rollover_resets_count(clock):
    store = {}
    limiter = FixedWindowRateLimiter(store, clock=clock)
    for _ in range(31):
        limiter.check("a")

    clock.advance(60)
    assert isinstance(limiter.check("a"), Allowed)
    assert store["a"].count == 1
    assert store["a"].reset_at == clock.now + 60


def test_identifiers_are_counted_separately(clock):
    limiter = FixedWindowRateLimiter(clock=clock, max_requests=1)
    assert isinstance(limiter.check("a"), Allowed)
    assert isinstance(limiter.check("b"), Allowed)
    assert isinstance(limiter.check("a"), Denied)


def test_store_is_owned_by_caller(clock):
    store = {"a": ClientRateState(reset_at=clock.now + 10, count=30)}
    limiter = FixedWindowRateLimiter(store, clock=clock)
    assert isinstance(limiter.check("a"), Denied)


def test_sweep_drops_only_expired_windows(clock):
    store = {}
    limiter = FixedWindowRateLimiter(store, clock=clock)
    limiter.check("old")
    clock.advance(30)
    limiter.check("new")
    clock.advance(30)

    assert limiter.sweep() == 1
    assert list(store) == ["new"]


def test_capacity_evicts_oldest_live_window(clock):
    store = {}
    limiter = FixedWindowRateLimiter(store, clock=clock, max_entries=2)
    limiter.check("a")
    clock.advance(1)
    limiter.check("b")
    clock.advance(1)
    limiter.check("c")

    assert set(store) == {"b", "c"}


def test_client_identifier_prefers_first_forwarded_for():
    headers = {"x-forwarded-for": " 10.0.0.1 , 10.0.0.2"}
    assert client_identifier(headers, "127.0.0.1") == "10.0.0.1"


def test_client_identifier_falls_back_to_peer():
    assert client_identifier({"x-forwarded-for": "   "}, "127.0.0.1") == "127.0.0.1"
    assert client_identifier({}, None) == ""


def test_concurrent_checks_never_overshoot(clock):
    store = {}
    limiter = FixedWindowRateLimiter(store, clock=clock)

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: limiter.check("a"), range(8 * 20)))

    assert sum(isinstance(outcome, Allowed) for outcome in outcomes) == 30
    assert store["a"].count == 30
