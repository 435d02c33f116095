from chatgate.hardening import IPGate, client_key_from_request


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_requests_within_limit_are_admitted():
    gate = IPGate(max_requests=3, window_seconds=60, ban_seconds=300, clock=FakeClock())
    decisions = [gate.check_and_admit("1.2.3.4") for _ in range(3)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [2, 1, 0]


def test_request_crossing_threshold_is_rejected_and_banned():
    gate = IPGate(max_requests=10, window_seconds=60, ban_seconds=300, clock=FakeClock())
    for _ in range(10):
        assert gate.check_and_admit("ip").allowed is True
    crossing = gate.check_and_admit("ip")
    assert crossing.allowed is False
    assert crossing.banned is True
    assert crossing.reason == "rate_limited"
    assert gate.is_banned("ip") is True


def test_ban_lasts_exactly_ban_duration():
    clock = FakeClock()
    gate = IPGate(max_requests=2, window_seconds=60, ban_seconds=300, clock=clock)
    gate.check_and_admit("ip")
    gate.check_and_admit("ip")
    assert gate.check_and_admit("ip").reason == "rate_limited"

    clock.now += 299
    during = gate.check_and_admit("ip")
    assert during.allowed is False
    assert during.reason == "banned"

    clock.now += 1
    after = gate.check_and_admit("ip")
    assert after.allowed is True
    assert after.remaining == 1


def test_expired_ban_starts_fresh_window_even_if_old_window_is_live():
    clock = FakeClock()
    gate = IPGate(max_requests=2, window_seconds=600, ban_seconds=5, clock=clock)
    for _ in range(3):
        gate.check_and_admit("ip")
    clock.now += 6
    assert gate.check_and_admit("ip").allowed is True
    assert gate.check_and_admit("ip").allowed is True
    assert gate.check_and_admit("ip").allowed is False


def test_window_expiry_resets_count():
    clock = FakeClock()
    gate = IPGate(max_requests=2, window_seconds=60, ban_seconds=300, clock=clock)
    gate.check_and_admit("ip")
    gate.check_and_admit("ip")
    clock.now += 61
    decision = gate.check_and_admit("ip")
    assert decision.allowed is True
    assert decision.remaining == 1


def test_banned_client_rejected_regardless_of_other_clients():
    gate = IPGate(max_requests=1, window_seconds=60, ban_seconds=300, clock=FakeClock())
    gate.check_and_admit("a")
    gate.check_and_admit("a")
    assert gate.check_and_admit("a").allowed is False
    assert gate.check_and_admit("b").allowed is True
    assert gate.snapshot() == {"trackedClients": 1, "activeBans": 1}


def test_client_key_prefers_forwarded_for():
    headers = {"x-forwarded-for": "9.9.9.9, 10.0.0.1", "x-real-ip": "8.8.8.8"}
    assert client_key_from_request(headers, "127.0.0.1") == "9.9.9.9"
    assert client_key_from_request({"x-real-ip": "8.8.8.8"}, "127.0.0.1") == "8.8.8.8"
    assert client_key_from_request({}, "127.0.0.1") == "127.0.0.1"
    assert client_key_from_request({}, None) == "unknown"


def test_rotating_client_keys_do_not_grow_state_forever():
    clock = FakeClock()
    gate = IPGate(max_requests=10, window_seconds=60, ban_seconds=300, clock=clock, max_tracked_clients=100)
    for i in range(500):
        assert gate.check_and_admit(f"10.0.{i // 256}.{i % 256}").allowed is True
    assert gate.snapshot()["trackedClients"] == 500

    clock.now += 61
    gate.check_and_admit("203.0.113.7")
    assert gate.snapshot() == {"trackedClients": 1, "activeBans": 0}


def test_sweep_keeps_live_windows_and_bans():
    clock = FakeClock()
    gate = IPGate(max_requests=2, window_seconds=60, ban_seconds=300, clock=clock, max_tracked_clients=100)
    for i in range(150):
        gate.check_and_admit(f"old-{i}")

    clock.now += 50
    gate.check_and_admit("steady")
    gate.check_and_admit("steady")
    gate.check_and_admit("banned")
    gate.check_and_admit("banned")
    gate.check_and_admit("banned")

    clock.now += 11
    gate.check_and_admit("trigger")
    assert gate.snapshot() == {"trackedClients": 2, "activeBans": 1}
    assert gate.check_and_admit("steady").reason == "rate_limited"
    assert gate.check_and_admit("banned").reason == "banned"
