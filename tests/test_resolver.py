import asyncio

import httpx
import pytest

from translation_adapter.api_client import SiteMapper, WikiApiClient
from translation_adapter.cache import ResolutionCache
from translation_adapter.errors import WikiApiError
from translation_adapter.resolver import TitleResolver

from conftest import make_client


@pytest.mark.asyncio
async def test_batch_resolution(resolver, wiki):
    result = await resolver.resolve_titles(["Paris", "Berlin"], "en", "fr")

    assert result == {"Paris": "Paris (fr)", "Berlin": None}
    assert wiki.langlink_requests() == [("en", ["Paris", "Berlin"])]

    # Both answers are served from the cache afterwards
    assert resolver.cache.get_title_pair("Paris", "en", "fr") == "Paris (fr)"
    assert resolver.cache.has_title_pair("Berlin", "en", "fr")
    again = await resolver.resolve_titles(["Paris", "Berlin"], "en", "fr")
    assert again == result
    assert len(wiki.langlink_requests()) == 1


@pytest.mark.asyncio
async def test_request_parameters(resolver, wiki):
    await resolver.resolve_titles(["Paris"], "en", "nb")

    language, params = wiki.requests[0]
    assert language == "en"
    assert params["action"] == "query"
    assert params["formatversion"] == "2"
    assert params["lllang"] == "no"
    assert params["lllimit"] == "1"
    assert params["redirects"] == "1"


@pytest.mark.asyncio
async def test_repeated_titles_are_requested_once(resolver, wiki):
    result = await resolver.resolve_titles(["Paris", "paris", "Paris_", " Paris "], "en", "es")

    assert result == {"Paris": "París", "paris": "París", "Paris_": "París", " Paris ": "París"}
    assert wiki.langlink_requests() == [("en", ["Paris"])]


@pytest.mark.asyncio
async def test_results_use_the_spelling_asked_for(resolver):
    result = await resolver.resolve_titles(["Foo_bar", "rome"], "en", "es")

    assert result == {"Foo_bar": None, "rome": "Roma"}


@pytest.mark.asyncio
async def test_single_string_is_rejected(resolver, wiki):
    with pytest.raises(TypeError):
        await resolver.resolve_titles("Paris", "en", "es")

    assert wiki.requests == []


@pytest.mark.asyncio
async def test_redirects_map_back_to_requested_title(resolver):
    result = await resolver.resolve_titles(["Lutetia"], "en", "es")

    assert result == {"Lutetia": "París"}


@pytest.mark.asyncio
async def test_invalid_titles_are_skipped(resolver, wiki):
    result = await resolver.resolve_titles(["[[bad]]", "", "Rome"], "en", "es")

    assert result == {"Rome": "Roma"}
    assert wiki.langlink_requests() == [("en", ["Rome"])]


@pytest.mark.asyncio
async def test_large_batches_are_chunked(wiki):
    resolver = TitleResolver(make_client(wiki), ResolutionCache(), batch_limit=2)

    result = await resolver.resolve_titles(["Paris", "Berlin", "Rome", "Madrid", "Lisbon"], "en", "es")

    assert [titles for _, titles in wiki.langlink_requests()] == [
        ["Paris", "Berlin"], ["Rome", "Madrid"], ["Lisbon"],
    ]
    assert result == {"Paris": "París", "Berlin": None, "Rome": "Roma", "Madrid": None, "Lisbon": None}


@pytest.mark.asyncio
async def test_concurrent_callers_share_in_flight_lookups(resolver, wiki):
    first, second = await asyncio.gather(
        resolver.resolve_titles(["Paris", "Berlin"], "en", "es"),
        resolver.resolve_titles(["paris", "Rome"], "en", "es"),
    )

    assert first == {"Paris": "París", "Berlin": None}
    assert second == {"paris": "París", "Rome": "Roma"}
    requested = [title for _, titles in wiki.langlink_requests() for title in titles]
    assert requested.count("Paris") == 1
    assert sorted(requested) == ["Berlin", "Paris", "Rome"]


@pytest.mark.asyncio
async def test_service_failure_yields_empty_result(resolver, wiki):
    wiki.fail = True

    result = await resolver.resolve_titles(["Paris", "Berlin"], "en", "es")

    assert result == {}
    assert not resolver.cache.has_title_pair("Paris", "en", "es")

    # Nothing was cached, so a later pass asks again
    wiki.fail = False
    result = await resolver.resolve_titles(["Paris"], "en", "es")
    assert result == {"Paris": "París"}
    assert len(wiki.langlink_requests()) == 2


@pytest.mark.asyncio
async def test_malformed_response_yields_empty_result(resolver):
    def handler(request):
        return httpx.Response(200, json={"query": {"pages": "not a list"}})

    resolver.api = WikiApiClient(max_retries=1, transport=httpx.MockTransport(handler))

    assert await resolver.resolve_titles(["Paris"], "en", "es") == {}


@pytest.mark.asyncio
async def test_page_metadata(resolver, wiki):
    meta = await resolver.fetch_page_metadata("paris", "en")

    assert meta.exists
    assert meta.title == "Paris"
    assert meta.thumbnail.source == "https://img/paris.jpg"
    assert meta.thumbnail.width == 150
    assert meta.description == "Capital of France"
    _, params = wiki.requests[0]
    assert params["prop"] == "pageimages|pageprops"
    assert params["piprop"] == "thumbnail"
    assert params["ppprop"] == "wikibase-shortdesc"


@pytest.mark.asyncio
async def test_page_metadata_without_image_or_description(resolver):
    meta = await resolver.fetch_page_metadata("Rome", "en")

    assert meta.exists
    assert meta.thumbnail is None
    assert meta.description is None


@pytest.mark.asyncio
async def test_missing_page_is_cached(resolver, wiki):
    assert await resolver.fetch_page_metadata("Atlantis Nowhere", "en") is None
    assert await resolver.fetch_page_metadata("Atlantis_Nowhere", "en") is None

    assert len(wiki.requests) == 1
    assert resolver.cache.get_page_meta("Atlantis Nowhere", "en").exists is False


@pytest.mark.asyncio
async def test_concurrent_metadata_probes_share_one_request(resolver, wiki):
    results = await asyncio.gather(*(resolver.fetch_page_metadata("Paris", "en") for _ in range(3)))

    assert all(meta is not None and meta.exists for meta in results)
    assert len(wiki.requests) == 1


@pytest.mark.asyncio
async def test_failed_probe_is_not_cached(resolver, wiki):
    wiki.fail = True

    assert await resolver.fetch_page_metadata("Paris", "en") is None
    assert resolver.cache.get_page_meta("Paris", "en") is None


@pytest.mark.asyncio
async def test_client_raises_api_errors():
    def handler(request):
        return httpx.Response(200, json={"error": {"code": "badvalue", "info": "Bad value"}})

    client = WikiApiClient(max_retries=1, transport=httpx.MockTransport(handler))
    with pytest.raises(WikiApiError) as exc_info:
        await client.query("en", {"titles": "Paris"})

    assert exc_info.value.code == "badvalue"
    await client.aclose()


@pytest.mark.asyncio
async def test_client_retries_transient_errors():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"query": {"pages": []}})

    client = WikiApiClient(max_retries=3, retry_backoff=0, transport=httpx.MockTransport(handler))
    data = await client.query("en", {"titles": "Paris"})

    assert data == {"query": {"pages": []}}
    assert len(calls) == 3
    await client.aclose()


def test_site_mapper():
    mapper = SiteMapper(domain_codes={"xx": "yy"})

    assert mapper.get_api_url("en") == "https://en.wikipedia.org/w/api.php"
    assert mapper.get_api_url("be-tarask") == "https://be-x-old.wikipedia.org/w/api.php"
    assert mapper.get_wiki_domain_code("xx") == "yy"
    assert mapper.get_page_url("en", "New York City") == "https://en.wikipedia.org/wiki/New_York_City"
