"""Shared fixtures: an in-memory wiki behind httpx.MockTransport and sample articles."""

from typing import Dict, List, Optional, Tuple

import httpx
import pytest

from translation_adapter.api_client import SiteMapper, WikiApiClient
from translation_adapter.cache import ResolutionCache
from translation_adapter.markup import parse_html
from translation_adapter.resolver import TitleResolver
from translation_adapter.session import AdaptationSession


class FakeWiki:
    """Wikis of several languages answering ``action=query`` requests."""

    def __init__(self):
        self.pages: Dict[Tuple[str, str], dict] = {}
        self.redirects: Dict[Tuple[str, str], str] = {}
        self.requests: List[Tuple[str, dict]] = []
        self.fail = False

    def add_page(self, language: str, title: str, langlinks: Optional[Dict[str, str]] = None,
                 thumbnail: Optional[str] = None, description: Optional[str] = None):
        self.pages[(language, title)] = {
            "langlinks": langlinks or {}, "thumbnail": thumbnail, "description": description,
        }

    def add_redirect(self, language: str, source: str, target: str):
        self.redirects[(language, source)] = target

    def langlink_requests(self) -> List[Tuple[str, List[str]]]:
        return [
            (language, params["titles"].split("|"))
            for language, params in self.requests
            if params.get("prop") == "langlinks"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        language = request.url.host.split(".")[0]
        params = dict(request.url.params)
        self.requests.append((language, params))
        if self.fail:
            return httpx.Response(503, text="Service unavailable")

        normalized, redirects, pages = [], [], []
        seen = set()
        for title in params["titles"].split("|"):
            canonical = title.replace("_", " ")
            canonical = canonical[:1].upper() + canonical[1:]
            if canonical != title:
                normalized.append({"from": title, "to": canonical})
            target = self.redirects.get((language, canonical))
            if target:
                redirects.append({"from": canonical, "to": target})
                canonical = target
            if canonical in seen:
                continue
            seen.add(canonical)

            page = self.pages.get((language, canonical))
            if page is None:
                pages.append({"title": canonical, "missing": True})
                continue
            entry = {"title": canonical}
            if params.get("prop") == "langlinks":
                wanted = params.get("lllang")
                entry["langlinks"] = [
                    {"lang": lang, "title": linked}
                    for lang, linked in page["langlinks"].items()
                    if wanted is None or lang == wanted
                ]
            else:
                props = params.get("prop", "").split("|")
                if "pageimages" in props and page["thumbnail"]:
                    entry["thumbnail"] = {
                        "source": page["thumbnail"],
                        "width": int(params.get("pithumbsize", 0)),
                        "height": 100,
                    }
                if "pageprops" in props and page["description"]:
                    entry["pageprops"] = {"wikibase-shortdesc": page["description"]}
            pages.append(entry)

        query = {"pages": pages}
        if normalized:
            query["normalized"] = normalized
        if redirects:
            query["redirects"] = redirects
        return httpx.Response(200, json={"batchcomplete": True, "query": query})


SOURCE_HTML = """
<p id="mwA">Visit <a rel="mw:WikiLink" href="./Paris" title="Paris" data-linkid="1">Paris</a>
and <a rel="mw:WikiLink" href="./Berlin" title="Berlin" data-linkid="2">Berlin</a>
or <a rel="mw:WikiLink" href="./Atlantis_Nowhere" title="Atlantis Nowhere" data-linkid="3">Atlantis</a>.</p>
<p id="mwB">A fact<sup typeof="mw:Extension/ref" id="cite_ref-F-0"><a href="#cite_note-F">[1]</a></sup>
repeated<sup typeof="mw:Extension/ref" id="cite_ref-F-1" data-mw='{"name":"ref","body":{"html":"Footnote <b>F</b>"}}'><a href="#cite_note-F">[1]</a></sup>
twice<sup typeof="mw:Extension/ref" id="cite_ref-F-2"><a href="#cite_note-F">[1]</a></sup>.</p>
<ol typeof="mw:Extension/references" id="mwC" data-mw='{"name":"references"}'><li id="cite_note-F"><span rel="mw:referencedBy"><a href="#cite_ref-F-0">1.0</a><a href="#cite_ref-F-1">1.1</a><a href="#cite_ref-F-2">1.2</a></span> <span data-mw='{"parts":["adapted"]}'>Footnote F</span></li></ol>
"""

TARGET_HTML = """
<p id="cxmwA" data-source="mwA">Visita <a rel="mw:WikiLink" href="./Paris" title="Paris" data-linkid="1">París</a>
y <a rel="mw:WikiLink" href="./Berlin" title="Berlin" data-linkid="2">Berlín</a>
o <a rel="mw:WikiLink" href="./Atlantis_Nowhere" title="Atlantis Nowhere" data-linkid="3">Atlántida</a>.</p>
<p id="cxmwB" data-source="mwB">Un hecho<sup typeof="mw:Extension/ref" id="cite_ref-F-0"><a href="#cite_note-F">[1]</a></sup>
repetido<sup typeof="mw:Extension/ref" id="cite_ref-F-1"><a href="#cite_note-F">[1]</a></sup>
dos veces<sup typeof="mw:Extension/ref" id="cite_ref-F-2"><a href="#cite_note-F">[1]</a></sup>.</p>
"""


@pytest.fixture
def wiki():
    fake = FakeWiki()
    fake.add_page("en", "Paris", {"es": "París", "fr": "Paris (fr)"}, thumbnail="https://img/paris.jpg",
                  description="Capital of France")
    fake.add_page("en", "Berlin", {"de": "Berlin"})
    fake.add_page("en", "Rome", {"es": "Roma", "fr": "Rome"})
    fake.add_redirect("en", "Lutetia", "Paris")
    fake.add_page("es", "París", {"en": "Paris"})
    fake.add_page("es", "Roma", {"en": "Rome"})
    return fake


def make_client(wiki: FakeWiki) -> WikiApiClient:
    return WikiApiClient(
        site_mapper=SiteMapper(),
        max_retries=1,
        retry_backoff=0,
        transport=httpx.MockTransport(wiki.handler),
    )


@pytest.fixture
def resolver(wiki):
    return TitleResolver(make_client(wiki), ResolutionCache(), batch_limit=50)


@pytest.fixture
def make_session(wiki):
    """Build a session over two HTML columns talking to the fake wiki."""

    def build(source_html: str = SOURCE_HTML, target_html: str = TARGET_HTML,
              source_language: str = "en", target_language: str = "es", **kwargs):
        return AdaptationSession(
            parse_html(source_html, "source"),
            parse_html(target_html, "translation"),
            source_language,
            target_language,
            api=make_client(wiki),
            **kwargs,
        )

    return build


def find_element(tree, **attrs) -> Optional[int]:
    """First element whose attributes include all given ones (``class_`` for class)."""
    wanted = {key.rstrip("_").replace("_", "-"): value for key, value in attrs.items()}
    return tree.find_first(lambda n: all(n.get(k) == v for k, v in wanted.items()))


def find_text(tree, fragment: str) -> Optional[int]:
    """First text node containing the fragment."""
    for node_id in tree.iter_all():
        node = tree.node(node_id)
        if node.is_text and fragment in node.text:
            return node_id
    return None


def record_signals(session, *names: str) -> List[tuple]:
    """Observe the named signals of a session; each firing is appended as (name, *args)."""
    fired: List[tuple] = []
    for name in names:
        session.signals.connect(name, lambda *args, name=name: fired.append((name,) + args))
    return fired
