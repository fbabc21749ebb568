"""Tests for pr_insights.retrieval.cache covering expiry, keys, and directory-backed storage.

Run with coverage:
    pytest tests/test_cache.py --maxfail=1 -v --cov=pr_insights.retrieval.cache --cov-report=term-missing
"""

from requests_cache.backends.base import DictStorage

from pr_insights.retrieval import cache as cache_mod
from pr_insights.retrieval.cache import CacheStore, make_cache_key


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_returns_value_within_ttl():
    clock = FakeClock()
    store = CacheStore(ttl=60, clock=clock)
    store.set("k", {"v": 1})
    clock.now += 59
    assert store.get("k") == {"v": 1}


def test_expired_entry_is_absent_and_evicted():
    clock = FakeClock()
    store = CacheStore(ttl=60, clock=clock)
    store.set("k", "value")
    clock.now += 60
    assert store.get("k") is None
    assert len(store) == 0


def test_default_ttl_is_twenty_hours():
    assert CacheStore().ttl == 20 * 60 * 60


def test_clear_drops_everything():
    store = CacheStore()
    store.set("a", 1)
    store.set("b", 2)
    store.clear()
    assert store.get("a") is None and len(store) == 0


def test_cache_key_is_independent_of_parameter_order():
    a = make_cache_key("https://api.github.com/repos/o/r/pulls?state=all", {"page": 2, "per_page": 100})
    b = make_cache_key("https://api.github.com/repos/o/r/pulls?per_page=100&page=2", {"state": "all"})
    assert a == b


def test_cache_key_distinguishes_parameters():
    a = make_cache_key("https://api.github.com/x", {"page": 1})
    b = make_cache_key("https://api.github.com/x", {"page": 2})
    assert a != b
    assert make_cache_key("https://api.github.com/x", {"page": None}) == make_cache_key("https://api.github.com/x")


def test_export_and_import_skip_expired_entries():
    clock = FakeClock()
    store = CacheStore(ttl=100, clock=clock)
    store.set("old", 1)
    clock.now += 50
    store.set("new", 2)
    exported = store.export_entries()
    assert {e["key"] for e in exported} == {"old", "new"}

    restored = CacheStore(ttl=100, clock=clock)
    clock.now += 60  # "old" is now 110s old, "new" 60s
    loaded = restored.import_entries(exported + [{"key": "broken"}])
    assert loaded == 1
    assert restored.get("new") == 2
    assert restored.get("old") is None


def test_memory_store_uses_requests_cache_storage():
    store = CacheStore()
    assert isinstance(store._storage, DictStorage)


def test_directory_cache_survives_reopening(tmp_path, capsys):
    store = cache_mod.open_cache(str(tmp_path))
    store.set("GET https://api.github.com/x", {"payload": [1, 2]})
    store.close()
    assert (tmp_path / "http_cache.sqlite").exists()

    reopened = cache_mod.open_cache(str(tmp_path))
    assert reopened.get("GET https://api.github.com/x") == {"payload": [1, 2]}
    assert "1 entries restored" in capsys.readouterr().out
    reopened.close()


def test_reopening_drops_expired_entries(tmp_path):
    clock = FakeClock()
    store = cache_mod.open_cache(str(tmp_path), ttl=60, clock=clock)
    store.set("old", 1)
    store.close()

    clock.now += 61
    reopened = cache_mod.open_cache(str(tmp_path), ttl=60, clock=clock)
    assert len(reopened) == 0
    reopened.close()


def test_clean_cache_empties_directory_store(tmp_path, capsys):
    store = cache_mod.open_cache(str(tmp_path))
    store.set("a", 1)
    cache_mod.clean_cache(store)
    assert len(store) == 0
    store.close()

    reopened = cache_mod.open_cache(str(tmp_path))
    assert reopened.get("a") is None
    assert "[cache] cleared" in capsys.readouterr().out
    reopened.close()


def test_unreadable_entries_are_dropped():
    storage = DictStorage()
    storage["bad"] = "{not json"
    store = CacheStore(storage=storage)
    assert store.get("bad") is None
    assert len(store) == 0
