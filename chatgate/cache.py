import re
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from .hardening import log_event


_STRIP_PUNCT_RE = re.compile(r"[?!.,]")
_WS_RE = re.compile(r"\s+")

# Tokens this short never count towards similarity.
_MIN_SHARED_TOKEN_LEN = 4


@dataclass
class CacheEntry:
    reply: str
    thread_id: str
    scroll_to_form: bool = False
    created_at: float = field(default=0.0)


def normalize_question(text: str) -> str:
    s = text.lower().strip()
    s = _STRIP_PUNCT_RE.sub("", s)
    return _WS_RE.sub(" ", s).strip()


def token_similarity(query_key: str, candidate_key: str) -> float:
    words = query_key.split(" ")
    candidate_words = candidate_key.split(" ")
    candidate_set = set(candidate_words)
    common = [w for w in words if len(w) >= _MIN_SHARED_TOKEN_LEN and w in candidate_set]
    return len(common) / max(len(words), len(candidate_words), 1)


class ResponseCache:
    """In-process answer cache keyed by normalized question.

    Entries live in an insertion-ordered mapping: eviction drops the oldest
    entry and fuzzy matching returns the oldest qualifying candidate.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_size: int = 100,
        similarity_threshold: float = 0.6,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.similarity_threshold = similarity_threshold
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, question: str) -> bool:
        return normalize_question(question) in self._entries

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at < self.ttl_seconds

    def lookup(self, question: str) -> CacheEntry | None:
        key = normalize_question(question)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_fresh(entry, now):
                log_event("cache_hit", match="exact")
                return entry

            for cached_key, cached in self._entries.items():
                if not self._is_fresh(cached, now):
                    continue
                similarity = token_similarity(key, cached_key)
                if similarity >= self.similarity_threshold:
                    log_event("cache_hit", match="fuzzy", similarity=round(similarity, 2))
                    return cached
        return None

    def store(self, question: str, entry: CacheEntry) -> CacheEntry:
        key = normalize_question(question)
        entry.created_at = self._clock()
        with self._lock:
            # Overwriting keeps the key's original position.
            self._entries[key] = entry
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
        return entry

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries.keys())
