from modules.analysis_cache import AnalysisCache, build_cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_key_ignores_dict_order():
    first = build_cache_key("quant", {"a": 1, "b": [1, 2]})
    second = build_cache_key("quant", {"b": [1, 2], "a": 1})

    assert first == second
    assert first.startswith("quant:")
    assert build_cache_key("quant", {"a": 2}) != first


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = AnalysisCache(default_ttl=10, clock=clock)

    cache.set("key", {"value": 1})
    assert cache.get("key") == {"value": 1}

    clock.now += 9.9
    assert cache.get("key") == {"value": 1}

    clock.now += 0.1
    assert cache.get("key") is None
    assert len(cache) == 0


def test_explicit_ttl_overrides_default():
    clock = FakeClock()
    cache = AnalysisCache(default_ttl=10, clock=clock)

    cache.set("key", "long-lived", ttl_seconds=60)
    clock.now += 30
    assert cache.get("key") == "long-lived"


def test_non_positive_ttl_evicts():
    cache = AnalysisCache(default_ttl=10)
    cache.set("key", "value")
    cache.set("key", "ignored", ttl_seconds=0)

    assert cache.get("key") is None


def test_clear():
    cache = AnalysisCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.clear()

    assert len(cache) == 0
    assert cache.get("a") is None


def test_writes_sweep_expired_entries():
    clock = FakeClock()
    cache = AnalysisCache(default_ttl=10, clock=clock)

    for i in range(1000):
        cache.set(f"quant:{i}", i)
        clock.now += 20

    assert len(cache) <= 1


def test_sweep_keeps_live_entries():
    clock = FakeClock()
    cache = AnalysisCache(default_ttl=10, clock=clock)

    cache.set("old", 1)
    cache.set("long", 2, ttl_seconds=100)
    clock.now += 15
    cache.set("new", 3)

    assert len(cache) == 2
    assert cache.get("long") == 2
    assert cache.get("new") == 3
