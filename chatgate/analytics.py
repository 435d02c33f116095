import asyncio
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from .classifier import OTHER, classify
from .hardening import log_event
from .store import KVStore


ANALYTICS_TTL_SECONDS = 730 * 24 * 60 * 60
SCAN_PAGE_SIZE = 100
SCAN_MAX_ITERATIONS = 50
# Stand-in for events written before timestamps were stored.
FALLBACK_TIMESTAMP = "2025-11-01T00:00:00.000Z"

_NON_QUESTIONS = {
    "yes", "ye", "no", "ok", "okay", "thanks", "thank you",
    "nope", "yep", "yeah", "nah", "sure", "fine", "alright",
    "hello", "hi", "hey", "bye", "goodbye", "skip",
    "basic", "intermediate", "advanced", "none", "idk", "dunno",
}

_QUESTION_INDICATORS = (
    "how", "what", "when", "where", "why", "who", "which",
    "can i", "do i", "should i", "is the", "is there", "are there",
    "will", "would", "could", "does", "am i", "may i", "?",
    "tell me", "explain", "describe", "salary", "pay", "services",
    "help", "hiring", "recruiting", "talent", "candidate", "job",
)

_NUMBER_RE = re.compile(r"^\d+$")
_YEARS_RE = re.compile(r"^\d+\s*(years?|yrs?)$")


def is_actual_question(message: str) -> bool:
    text = message.lower().strip()
    if len(text) < 5:
        return False
    if text in _NON_QUESTIONS:
        return False
    if _NUMBER_RE.match(text) or _YEARS_RE.match(text):
        return False
    return any(indicator in text for indicator in _QUESTION_INDICATORS)


def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class AnalyticsReport:
    questions: list[dict[str, str]] = field(default_factory=list)
    truncated: bool = False

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def unique(self) -> int:
        return len({q["question"].lower().strip() for q in self.questions})


class AnalyticsRecorder:
    def __init__(
        self,
        store: KVStore | None,
        prefix: str = "ast",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self._clock = clock
        self._last_key_ms = 0
        self._key_lock = threading.Lock()

    def _next_key(self) -> str:
        with self._key_lock:
            now_ms = int(self._clock() * 1000)
            # Same-millisecond events would collide on the key.
            self._last_key_ms = max(now_ms, self._last_key_ms + 1)
            return f"{self.prefix}:question:{self._last_key_ms}"

    async def record(self, question: str) -> bool:
        if self.store is None:
            log_event("analytics_skipped", reason="store_not_configured")
            return False
        if not is_actual_question(question):
            log_event("analytics_skipped", reason="not_a_question", question=question[:100])
            return False

        try:
            category = classify(question)
            key = self._next_key()
            await self.store.set(
                key,
                {
                    "question": question,
                    "category": category.name,
                    "icon": category.icon,
                    "timestamp": iso_now(),
                },
            )
            await self.store.expire(key, ANALYTICS_TTL_SECONDS)
        except Exception as exc:
            log_event("analytics_error", error=str(exc), errorType=type(exc).__name__)
            return False

        log_event("analytics_logged", key=key, category=category.name)
        return True

    async def list_questions(self, max_iterations: int = SCAN_MAX_ITERATIONS) -> AnalyticsReport:
        store = self.store
        if store is None:
            raise RuntimeError("analytics store not configured")
        report = AnalyticsReport()
        cursor = "0"
        iterations = 0
        while True:
            cursor, keys = await store.scan(cursor, match=f"{self.prefix}:question:*", count=SCAN_PAGE_SIZE)
            page = await asyncio.gather(*(_safe_get(store, key) for key in keys))
            for data in page:
                if isinstance(data, dict) and data.get("question"):
                    report.questions.append(
                        {
                            "question": str(data["question"]),
                            "category": data.get("category") or OTHER.name,
                            "icon": data.get("icon") or OTHER.icon,
                            "timestamp": str(data.get("timestamp") or FALLBACK_TIMESTAMP),
                        }
                    )
            iterations += 1
            if iterations >= max_iterations:
                report.truncated = cursor != "0"
                log_event("analytics_scan_capped", iterations=iterations, truncated=report.truncated)
                break
            if cursor == "0":
                break

        report.questions.sort(key=lambda q: _sort_key(q["timestamp"]), reverse=True)
        return report


async def _safe_get(store: KVStore, key: str) -> Any | None:
    try:
        return await store.get(key)
    except Exception as exc:
        log_event("analytics_error", key=key, error=str(exc))
        return None


def _sort_key(timestamp: str) -> float:
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0
