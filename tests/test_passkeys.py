"""
Passkey cache tests
"""
import json

from luukahead.client.passkeys import STORAGE_KEY, PasskeyCache


class BrokenStorage(dict):
    """Session storage that refuses writes (quota exceeded, private mode)."""

    def __setitem__(self, key, value):
        raise OSError("quota exceeded")


class TestPasskeyCache:
    """set / get / clear / clear_all"""

    def test_get_missing_returns_empty_string(self):
        assert PasskeyCache().get("p1") == ""

    def test_set_and_get(self):
        cache = PasskeyCache()
        cache.set("p1", "secret")

        assert cache.get("p1") == "secret"
        assert "p1" in cache
        assert len(cache) == 1

    def test_last_writer_wins(self):
        cache = PasskeyCache()
        cache.set("p1", "first")
        cache.set("p1", "second")

        assert cache.get("p1") == "second"

    def test_clear_single_project(self):
        cache = PasskeyCache()
        cache.set("p1", "a")
        cache.set("p2", "b")
        cache.clear("p1")
        cache.clear("never-set")

        assert cache.get("p1") == ""
        assert cache.get("p2") == "b"

    def test_clear_all_empties_cache_and_storage(self):
        storage = {}
        cache = PasskeyCache(storage)
        cache.set("p1", "a")
        cache.clear_all()

        assert cache.get("p1") == ""
        assert STORAGE_KEY not in storage


class TestPersistence:
    """Ephemeral storage write-through"""

    def test_every_mutation_is_persisted(self):
        storage = {}
        cache = PasskeyCache(storage)
        cache.set("p1", "a")

        assert json.loads(storage[STORAGE_KEY]) == [["p1", "a"]]

        cache.clear("p1")
        assert json.loads(storage[STORAGE_KEY]) == []

    def test_survives_navigation_with_same_storage(self):
        storage = {}
        PasskeyCache(storage).set("p1", "a")

        assert PasskeyCache(storage).get("p1") == "a"

    def test_corrupt_storage_loads_empty(self):
        storage = {STORAGE_KEY: "{not json"}

        assert len(PasskeyCache(storage)) == 0

    def test_unexpected_shape_loads_empty(self):
        storage = {STORAGE_KEY: json.dumps({"p1": "a"})}

        assert len(PasskeyCache(storage)) == 0

    def test_write_failure_keeps_in_memory_value(self):
        cache = PasskeyCache(BrokenStorage())
        cache.set("p1", "a")

        assert cache.get("p1") == "a"


class TestSubscribe:
    """Reactive updates"""

    def test_subscriber_sees_current_value_and_updates(self):
        cache = PasskeyCache()
        cache.set("p1", "a")
        seen = []

        unsubscribe = cache.subscribe(seen.append)
        cache.set("p2", "b")
        unsubscribe()
        cache.clear_all()

        assert seen == [{"p1": "a"}, {"p1": "a", "p2": "b"}]
