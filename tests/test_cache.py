from translation_adapter.cache import ResolutionCache
from translation_adapter.models import PageMeta


def test_reads_and_writes_share_normalization():
    cache = ResolutionCache()
    cache.store_title_pairs({"new_york": "Nueva York"}, "en", "es")

    assert cache.get_title_pair("New York", "en", "es") == "Nueva York"
    assert cache.get_title_pair("  new   york ", "en", "es") == "Nueva York"
    assert cache.has_title_pair("New_York", "en", "es")


def test_language_pairs_are_separate():
    cache = ResolutionCache()
    cache.store_title_pairs({"Paris": "París"}, "en", "es")

    assert cache.get_title_pair("Paris", "en", "fr") is None
    assert not cache.has_title_pair("Paris", "en", "fr")


def test_absence_is_cached():
    cache = ResolutionCache()
    cache.store_title_pairs({"Berlin": None}, "en", "fr")

    assert cache.has_title_pair("Berlin", "en", "fr")
    assert cache.get_title_pair("Berlin", "en", "fr") is None


def test_entries_are_never_overwritten():
    cache = ResolutionCache()
    cache.store_title_pairs({"Paris": "París"}, "en", "es")
    cache.store_title_pairs({"paris": "Otra"}, "en", "es")

    assert cache.get_title_pair("Paris", "en", "es") == "París"
    assert cache.title_pairs("en", "es") == {"Paris": "París"}


def test_partition():
    cache = ResolutionCache()
    cache.store_title_pairs({"Paris": "París", "Berlin": None}, "en", "es")

    cached, uncached = cache.partition(["paris", "Berlin", "Rome", "rome"], "en", "es")

    assert cached == {"Paris": "París", "Berlin": None}
    assert uncached == ["Rome"]


def test_find_source_title():
    cache = ResolutionCache()
    cache.store_title_pairs({"Paris": "París", "Berlin": None}, "en", "es")

    assert cache.find_source_title("parís", "en", "es") == "Paris"
    assert cache.find_source_title("Roma", "en", "es") is None


def test_page_meta_and_stats():
    cache = ResolutionCache()
    meta = PageMeta(title="Paris", language="en", exists=True)
    cache.store_page_meta("paris", "en", meta)

    assert cache.get_page_meta("Paris", "en") is meta
    assert cache.get_page_meta("Paris", "fr") is None
    assert cache.stats.hits == 1
    assert cache.stats.misses == 1
    assert cache.stats.hit_rate == 0.5
    assert len(cache) == 1
