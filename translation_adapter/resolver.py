"""Batched, cached resolution of titles across languages."""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import httpx
from pydantic import BaseModel, Field, ValidationError

from .api_client import WikiApiClient
from .cache import ResolutionCache
from .errors import WikiApiError
from .models import PageMeta, Thumbnail
from .titles import valid_title

logger = logging.getLogger(__name__)

# Outcome of a lookup that failed and must not be reported or cached
_FAILED = object()

RESOLUTION_ERRORS = (WikiApiError, httpx.HTTPError, ValidationError)

SHORT_DESCRIPTION_PROP = "wikibase-shortdesc"


class TitleMapping(BaseModel):
    """A ``normalized`` or ``redirects`` entry of a query response."""
    from_: str = Field(alias="from")
    to: str


class LangLink(BaseModel):
    lang: str
    title: str


class PageThumbnail(BaseModel):
    source: str
    width: int = 0
    height: int = 0


class QueryPage(BaseModel):
    title: str = ""
    missing: bool = False
    invalid: bool = False
    langlinks: List[LangLink] = []
    thumbnail: Optional[PageThumbnail] = None
    pageprops: Dict[str, str] = {}


class QueryBody(BaseModel):
    normalized: List[TitleMapping] = []
    redirects: List[TitleMapping] = []
    pages: List[QueryPage] = []

    def locate(self, title: str) -> Optional[QueryPage]:
        """Follow normalization and redirects from a requested title to its page."""
        normalized = {entry.from_: entry.to for entry in self.normalized}
        redirects = {entry.from_: entry.to for entry in self.redirects}
        pages = {page.title: page for page in self.pages}

        title = normalized.get(title, title)
        title = redirects.get(title, title)
        return pages.get(title)


class QueryResponse(BaseModel):
    query: QueryBody


class TitleResolver:
    """Resolves titles to their counterparts in another language.

    Lookups for uncached titles are batched into as few requests as the
    service limit allows. Titles already being fetched by another caller are
    awaited instead of requested again. Failures never propagate: a failed
    batch simply contributes nothing, and the affected links stay unadapted.
    """

    def __init__(
        self,
        api: WikiApiClient,
        cache: ResolutionCache,
        batch_limit: int = 50,
        thumbnail_size: int = 150,
    ):
        """Initialize resolver.

        Args:
            api: Wiki API client
            cache: Session resolution cache
            batch_limit: Maximum number of titles per request
            thumbnail_size: Width of page thumbnails to ask for
        """
        if batch_limit < 1:
            raise ValueError("batch_limit must be at least 1")

        self.api = api
        self.cache = cache
        self.batch_limit = batch_limit
        self.thumbnail_size = thumbnail_size
        self._pending_pairs: Dict[Tuple[str, str, str], asyncio.Future] = {}
        self._pending_meta: Dict[Tuple[str, str], asyncio.Future] = {}

    async def resolve_titles(
        self,
        titles: Iterable[str],
        from_language: str,
        to_language: str,
    ) -> Dict[str, Optional[str]]:
        """Resolve titles written in one language to titles in another.

        Args:
            titles: Raw titles in from_language
            from_language: Language the titles are written in
            to_language: Language to find counterparts in

        Returns:
            Map from each title as given to its counterpart title, or None
            when the page has no counterpart. Invalid titles and titles whose
            lookup failed are left out.

        Raises:
            TypeError: If titles is a single string
        """
        if isinstance(titles, str):
            raise TypeError("titles must be an iterable of titles, not a string")

        keys: Dict[str, str] = {}
        for title in titles:
            key = valid_title(title)
            if key is None:
                logger.debug("Skipping invalid title %r", title)
                continue
            keys[title] = key

        results, uncached = self.cache.partition(keys.values(), from_language, to_language)

        waiting: Dict[str, asyncio.Future] = {}
        owned: Dict[str, asyncio.Future] = {}
        loop = asyncio.get_running_loop()

        # Register every owned future before the first await so concurrent
        # callers see them as in flight.
        for key in uncached:
            pending_key = (from_language, to_language, key)
            if pending_key in self._pending_pairs:
                logger.debug("Joining in-flight lookup for %r", key)
                waiting[key] = self._pending_pairs[pending_key]
            else:
                future = loop.create_future()
                self._pending_pairs[pending_key] = future
                owned[key] = future

        to_fetch = list(owned)
        chunks = [
            to_fetch[i:i + self.batch_limit]
            for i in range(0, len(to_fetch), self.batch_limit)
        ]
        if chunks:
            await asyncio.gather(*(
                self._resolve_chunk(chunk, from_language, to_language, owned)
                for chunk in chunks
            ))

        for key, future in list(owned.items()) + list(waiting.items()):
            outcome = await future
            if outcome is not _FAILED:
                results[key] = outcome

        return {title: results[key] for title, key in keys.items() if key in results}

    async def _resolve_chunk(
        self,
        chunk: List[str],
        from_language: str,
        to_language: str,
        futures: Dict[str, asyncio.Future],
    ):
        pairs = None
        try:
            pairs = await self._request_pairs(chunk, from_language, to_language)
            self.cache.store_title_pairs(pairs, from_language, to_language)
        except RESOLUTION_ERRORS as e:
            logger.warning("Error while adapting links (%s -> %s, %d titles): %s",
                           from_language, to_language, len(chunk), e)
        finally:
            for key in chunk:
                self._pending_pairs.pop((from_language, to_language, key), None)
                future = futures[key]
                if not future.done():
                    future.set_result(pairs.get(key) if pairs is not None else _FAILED)

    async def _request_pairs(
        self,
        chunk: List[str],
        from_language: str,
        to_language: str,
    ) -> Dict[str, Optional[str]]:
        lang_code = self.api.site_mapper.get_wiki_domain_code(to_language)
        data = await self.api.query(from_language, {
            "titles": "|".join(chunk),
            "prop": "langlinks",
            "lllimit": len(chunk),
            "lllang": lang_code,
            "redirects": 1,
        })
        body = QueryResponse.model_validate(data).query

        pairs: Dict[str, Optional[str]] = {}
        for key in chunk:
            page = body.locate(key)
            resolved = None
            if page is not None and not page.missing:
                for langlink in page.langlinks:
                    if langlink.lang == lang_code:
                        resolved = langlink.title
                        break
            pairs[key] = resolved

        return pairs

    async def fetch_page_metadata(self, title: str, language: str) -> Optional[PageMeta]:
        """Probe existence, thumbnail and short description of a page.

        Args:
            title: Page title
            language: Language of the wiki to probe

        Returns:
            PageMeta for an existing page, None if the page does not exist or
            the probe failed
        """
        key = valid_title(title)
        if key is None:
            return None

        meta = self.cache.get_page_meta(key, language)
        if meta is None:
            pending_key = (key, language)
            future = self._pending_meta.get(pending_key)
            if future is not None:
                meta = await future
            else:
                future = asyncio.get_running_loop().create_future()
                self._pending_meta[pending_key] = future
                try:
                    meta = await self._request_meta(key, language)
                    self.cache.store_page_meta(key, language, meta)
                except RESOLUTION_ERRORS as e:
                    logger.warning("Error while fetching page data for %r (%s): %s",
                                   key, language, e)
                finally:
                    self._pending_meta.pop(pending_key, None)
                    if not future.done():
                        future.set_result(meta)

        if meta is None or not meta.exists:
            return None
        return meta

    async def _request_meta(self, title: str, language: str) -> PageMeta:
        data = await self.api.query(language, {
            "titles": title,
            "prop": "pageimages|pageprops",
            "piprop": "thumbnail",
            "ppprop": SHORT_DESCRIPTION_PROP,
            "pithumbsize": self.thumbnail_size,
            "redirects": 1,
        })
        page = QueryResponse.model_validate(data).query.locate(title)

        if page is None or page.missing or page.invalid:
            return PageMeta(title=title, language=language, exists=False)

        thumbnail = None
        if page.thumbnail:
            thumbnail = Thumbnail(
                source=page.thumbnail.source,
                width=page.thumbnail.width,
                height=page.thumbnail.height,
            )

        return PageMeta(
            title=page.title or title,
            language=language,
            exists=True,
            thumbnail=thumbnail,
            description=page.pageprops.get(SHORT_DESCRIPTION_PROP),
        )
