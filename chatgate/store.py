import fnmatch
import json
import logging
import threading
import time
from typing import Any, Callable, Protocol

import httpx

from .errors import StorageError


logger = logging.getLogger("store")


class KVStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def expire(self, key: str, seconds: int) -> None: ...

    async def scan(self, cursor: str, match: str, count: int = 100) -> tuple[str, list[str]]: ...


def _encode(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _decode(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class RestKVStore:
    """Redis over HTTP (Upstash REST protocol).

    Every command is a JSON array POSTed to the base URL; the reply carries
    either ``result`` or ``error``.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_s = timeout_s
        self.transport = transport

    async def _command(self, *args: Any) -> Any:
        headers = {"Authorization": f"Bearer {self.token}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                resp = await client.post(self.base_url, headers=headers, json=[str(a) for a in args])
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("KV HTTP error %s on %s", exc.response.status_code, args[0])
            raise StorageError(f"{args[0]} failed with HTTP {exc.response.status_code}") from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.error("KV request error on %s: %s", args[0], exc)
            raise StorageError(f"{args[0]} failed: {exc}") from exc
        if isinstance(data, dict) and data.get("error"):
            raise StorageError(str(data["error"]))
        return data.get("result") if isinstance(data, dict) else None

    async def get(self, key: str) -> Any | None:
        return _decode(await self._command("GET", key))

    async def set(self, key: str, value: Any) -> None:
        await self._command("SET", key, _encode(value))

    async def expire(self, key: str, seconds: int) -> None:
        await self._command("EXPIRE", key, int(seconds))

    async def scan(self, cursor: str, match: str, count: int = 100) -> tuple[str, list[str]]:
        result = await self._command("SCAN", cursor, "MATCH", match, "COUNT", count)
        if not isinstance(result, list) or len(result) != 2:
            raise StorageError(f"unexpected SCAN reply: {result!r}")
        next_cursor, keys = result
        return str(next_cursor), [str(k) for k in (keys or [])]


class MemoryKVStore:
    """Process-local store with the same contract, for tests and single-instance runs."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _live_keys(self) -> list[str]:
        now = self._clock()
        expired = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
        for k in expired:
            del self._data[k]
        return list(self._data.keys())

    async def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._data[key]
                return None
            return _decode(raw)

    async def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = (_encode(value), None)

    async def expire(self, key: str, seconds: int) -> None:
        with self._lock:
            if key in self._data:
                raw, _ = self._data[key]
                self._data[key] = (raw, self._clock() + seconds)

    def ttl(self, key: str) -> float | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None or entry[1] is None:
                return None
            return entry[1] - self._clock()

    async def scan(self, cursor: str, match: str, count: int = 100) -> tuple[str, list[str]]:
        with self._lock:
            keys = sorted(k for k in self._live_keys() if fnmatch.fnmatchcase(k, match))
        start = int(cursor or 0)
        page = keys[start : start + count]
        next_cursor = start + count
        return ("0" if next_cursor >= len(keys) else str(next_cursor)), page
