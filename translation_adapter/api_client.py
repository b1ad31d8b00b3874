"""Async wiki API client with per-language site mapping."""

import asyncio
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from .errors import WikiApiError

logger = logging.getLogger(__name__)


class SiteMapper:
    """Maps language codes to wiki API and page URLs.

    Templates use ``$1`` for the wiki domain code and ``$2`` for the page title.
    """

    DEFAULT_DOMAIN_CODES = {
        "be-tarask": "be-x-old",
        "nb": "no",
        "sgs": "bat-smg",
        "vro": "fiu-vro",
        "yue": "zh-yue",
        "lzh": "zh-classical",
    }

    def __init__(
        self,
        url_template: str = "https://$1.wikipedia.org/w/api.php",
        page_url_template: str = "https://$1.wikipedia.org/wiki/$2",
        domain_codes: Optional[Dict[str, str]] = None,
    ):
        self.url_template = url_template
        self.page_url_template = page_url_template
        self.domain_codes = dict(self.DEFAULT_DOMAIN_CODES)
        if domain_codes:
            self.domain_codes.update(domain_codes)

    def get_wiki_domain_code(self, language: str) -> str:
        return self.domain_codes.get(language, language)

    def get_api_url(self, language: str) -> str:
        return self.url_template.replace("$1", self.get_wiki_domain_code(language))

    def get_page_url(self, language: str, title: str) -> str:
        page = quote(title.replace(" ", "_"), safe="/:()_,")
        return (self.page_url_template
                .replace("$1", self.get_wiki_domain_code(language))
                .replace("$2", page))


class WikiApiClient:
    """Wrapper for the wiki action API with error handling and retries."""

    def __init__(
        self,
        site_mapper: Optional[SiteMapper] = None,
        user_agent: str = "translation-adapter/0.1",
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize API client.

        Args:
            site_mapper: Language to URL mapper
            user_agent: User-Agent header sent with every request
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per request
            retry_backoff: Base delay for exponential backoff, in seconds
            transport: Optional httpx transport (used to plug in fakes)
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.site_mapper = site_mapper or SiteMapper()
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    async def query(self, language: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Run an ``action=query`` request against the wiki of a language.

        Args:
            language: Language code of the wiki to query
            params: Query parameters besides action and format

        Returns:
            Decoded JSON response

        Raises:
            WikiApiError: If the request fails after retries or the API reports an error
        """
        url = self.site_mapper.get_api_url(language)
        request_params = {
            "action": "query",
            "format": "json",
            "formatversion": "2",
        }
        request_params.update({k: v for k, v in params.items() if v is not None})

        for attempt in range(self.max_retries):
            try:
                response = await self.client.get(url, params=request_params)
                response.raise_for_status()
                data = response.json()
                break

            except (httpx.HTTPError, ValueError) as e:
                if attempt == self.max_retries - 1:
                    raise WikiApiError(f"Request to {url} failed: {e}") from e

                # Exponential backoff
                wait_time = self.retry_backoff * 2 ** attempt
                logger.warning("Wiki API error (attempt %d/%d): %s. Retrying in %.1f seconds",
                               attempt + 1, self.max_retries, e, wait_time)
                await asyncio.sleep(wait_time)

        if not isinstance(data, dict):
            raise WikiApiError(f"Unexpected response from {url}")

        if "error" in data:
            error = data["error"] if isinstance(data["error"], dict) else {}
            raise WikiApiError(
                error.get("info", "Unknown API error"),
                code=error.get("code", ""),
            )

        return data

    async def aclose(self):
        await self.client.aclose()
