import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping


logger = logging.getLogger("chatgate")


def setup_logging() -> None:
    if logger.handlers:
        return
    logger.setLevel(logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)


def log_event(event: str, **fields: Any) -> None:
    payload = {"event": event, "ts": int(time.time())}
    payload.update(fields)
    try:
        logger.info(json.dumps(payload, ensure_ascii=True))
    except Exception:
        logger.info(f'{{"event":"{event}","ts":{int(time.time())},"log_error":true}}')


def client_key_from_request(headers: Mapping[str, str], peer_host: str | None) -> str:
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return peer_host or "unknown"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    banned: bool
    remaining: int
    # "ok" | "banned" | "rate_limited"
    reason: str = "ok"


@dataclass
class _ClientWindow:
    count: int
    reset_at: float


class IPGate:
    """Fixed-window request counter per client with temporary bans.

    A client that already used up ``max_requests`` in the current window is
    banned for ``ban_seconds`` on its next request. While banned, every request
    is rejected before any window accounting. Expired bans are dropped the next
    time the client shows up. Once more than ``max_tracked_clients`` windows are
    held, expired windows and bans of every client are swept, at most once per
    window length.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        ban_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
        max_tracked_clients: int = 10000,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.ban_seconds = ban_seconds
        self.max_tracked_clients = max_tracked_clients
        self._clock = clock
        self._windows: dict[str, _ClientWindow] = {}
        self._bans: dict[str, float] = {}
        self._next_sweep_at = 0.0
        self._lock = threading.Lock()

    def is_banned(self, key: str) -> bool:
        with self._lock:
            return self._is_banned_locked(key, self._clock())

    def _is_banned_locked(self, key: str, now: float) -> bool:
        expires_at = self._bans.get(key)
        if expires_at is None:
            return False
        if now < expires_at:
            return True
        del self._bans[key]
        return False

    def _sweep_locked(self, now: float) -> None:
        if len(self._windows) + len(self._bans) <= self.max_tracked_clients or now < self._next_sweep_at:
            return
        stale_windows = [k for k, w in self._windows.items() if now > w.reset_at]
        for k in stale_windows:
            del self._windows[k]
        stale_bans = [k for k, expires_at in self._bans.items() if now >= expires_at]
        for k in stale_bans:
            del self._bans[k]
        self._next_sweep_at = now + self.window_seconds
        log_event("gate_swept", windows=len(stale_windows), bans=len(stale_bans), tracked=len(self._windows))

    def check_and_admit(self, key: str) -> GateDecision:
        now = self._clock()
        with self._lock:
            self._sweep_locked(now)
            if self._is_banned_locked(key, now):
                return GateDecision(allowed=False, banned=True, remaining=0, reason="banned")

            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _ClientWindow(count=1, reset_at=now + self.window_seconds)
                return GateDecision(allowed=True, banned=False, remaining=self.max_requests - 1)

            if window.count >= self.max_requests:
                self._bans[key] = now + self.ban_seconds
                # The window is discarded so an expired ban starts a fresh one.
                del self._windows[key]
                log_event("client_banned", client=key, banSeconds=self.ban_seconds)
                return GateDecision(allowed=False, banned=True, remaining=0, reason="rate_limited")

            window.count += 1
            return GateDecision(allowed=True, banned=False, remaining=self.max_requests - window.count)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {"trackedClients": len(self._windows), "activeBans": len(self._bans)}
