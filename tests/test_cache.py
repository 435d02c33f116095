from chatgate.cache import CacheEntry, ResponseCache, normalize_question, token_similarity


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _entry(reply: str = "reply", thread: str = "thread_1") -> CacheEntry:
    return CacheEntry(reply=reply, thread_id=thread, scroll_to_form=False)


def test_normalize_question():
    assert normalize_question("  What   do YOU do?! ") == "what do you do"
    assert normalize_question("Hello, world.") == "hello world"


def test_exact_hit_after_normalization():
    cache = ResponseCache(clock=FakeClock())
    cache.store("What do you do?", _entry("We recruit."))
    hit = cache.lookup("  what do you DO ")
    assert hit is not None
    assert hit.reply == "We recruit."


def test_fuzzy_hit_at_threshold():
    cache = ResponseCache(similarity_threshold=0.6, clock=FakeClock())
    cache.store("recruiting services pricing timeline extra", _entry("A"))
    query = "recruiting services pricing about what"
    assert token_similarity(normalize_question(query), "recruiting services pricing timeline extra") == 0.6
    hit = cache.lookup(query)
    assert hit is not None
    assert hit.reply == "A"


def test_fuzzy_miss_just_below_threshold():
    cache = ResponseCache(similarity_threshold=0.6, clock=FakeClock())
    shared = [f"word{i:02d}" for i in range(10)]
    extra = [f"other{i:02d}" for i in range(7)]
    cache.store(" ".join(shared + extra), _entry("B"))
    query = " ".join(shared)
    similarity = token_similarity(query, " ".join(shared + extra))
    assert 0.58 < similarity < 0.6
    assert cache.lookup(query) is None


def test_short_tokens_do_not_count():
    assert token_similarity("how do i", "how do i") == 0.0
    cache = ResponseCache(clock=FakeClock())
    cache.store("how do i", _entry())
    assert cache.lookup("how do we") is None


def test_fuzzy_tie_breaks_to_oldest():
    cache = ResponseCache(clock=FakeClock())
    cache.store("hiring pricing details", _entry("old"))
    cache.store("hiring pricing details please", _entry("new"))
    hit = cache.lookup("hiring pricing details now")
    assert hit is not None
    assert hit.reply == "old"


def test_expired_entry_never_returned():
    clock = FakeClock()
    cache = ResponseCache(ttl_seconds=3600, clock=clock)
    cache.store("What do you do?", _entry())
    clock.now += 3599
    assert cache.lookup("What do you do?") is not None
    clock.now += 1
    assert cache.lookup("What do you do?") is None


def test_eviction_drops_oldest_and_keeps_newest():
    cache = ResponseCache(max_size=3, clock=FakeClock())
    for i in range(4):
        cache.store(f"question number {i}", _entry(str(i)))
    assert len(cache) == 3
    assert "question number 0" not in cache
    assert "question number 3" in cache
    assert cache.keys() == ["question number 1", "question number 2", "question number 3"]


def test_restore_keeps_insertion_position():
    cache = ResponseCache(max_size=2, clock=FakeClock())
    cache.store("first question", _entry("1"))
    cache.store("second question", _entry("2"))
    cache.store("first question", _entry("1b"))
    cache.store("third question", _entry("3"))
    assert cache.keys() == ["second question", "third question"]
