"""Session-lifetime cache of title resolutions and page metadata."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from .models import PageMeta
from .titles import normalize_title

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Hit/miss counters."""
    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class ResolutionCache:
    """Append-only store of resolved titles and page metadata.

    Keys are always normalized here, so callers cannot fragment the cache by
    passing differently written forms of the same title. Once a key is
    present it keeps its first value.
    """

    def __init__(self):
        self._title_pairs: Dict[Tuple[str, str], Dict[str, Optional[str]]] = {}
        self._page_meta: Dict[Tuple[str, str], PageMeta] = {}
        self.stats = CacheStats()

    @staticmethod
    def key(title: str) -> str:
        return normalize_title(title)

    # Title pairs

    def has_title_pair(self, title: str, from_language: str, to_language: str) -> bool:
        pairs = self._title_pairs.get((from_language, to_language), {})
        return self.key(title) in pairs

    def get_title_pair(self, title: str, from_language: str, to_language: str) -> Optional[str]:
        """Get the resolved counterpart title, or None if absent or not cached."""
        pairs = self._title_pairs.get((from_language, to_language), {})
        key = self.key(title)
        if key in pairs:
            self.stats.hits += 1
            return pairs[key]
        self.stats.misses += 1
        return None

    def store_title_pairs(
        self,
        pairs: Dict[str, Optional[str]],
        from_language: str,
        to_language: str,
    ):
        """Write a batch of resolutions; None records a confirmed absence."""
        table = self._title_pairs.setdefault((from_language, to_language), {})
        for title, resolved in pairs.items():
            key = self.key(title)
            if key in table:
                if table[key] != resolved:
                    logger.debug("Keeping cached resolution for %r: %r (ignored %r)",
                                 key, table[key], resolved)
                continue
            table[key] = resolved

    def find_source_title(self, target_title: str, from_language: str, to_language: str) -> Optional[str]:
        """Reverse lookup: the source title that resolved to ``target_title``."""
        key = self.key(target_title)
        for source, resolved in self._title_pairs.get((from_language, to_language), {}).items():
            if resolved is not None and self.key(resolved) == key:
                return source
        return None

    def title_pairs(self, from_language: str, to_language: str) -> Dict[str, Optional[str]]:
        """Snapshot of all resolutions for a language pair."""
        return dict(self._title_pairs.get((from_language, to_language), {}))

    def partition(
        self,
        titles: Iterable[str],
        from_language: str,
        to_language: str,
    ) -> Tuple[Dict[str, Optional[str]], list]:
        """Split titles into (cached results, uncached keys), normalizing each once."""
        table = self._title_pairs.get((from_language, to_language), {})
        cached: Dict[str, Optional[str]] = {}
        uncached = []
        for title in titles:
            key = self.key(title)
            if key in table:
                self.stats.hits += 1
                cached[key] = table[key]
            elif key not in uncached:
                self.stats.misses += 1
                uncached.append(key)
        return cached, uncached

    # Page metadata

    def get_page_meta(self, title: str, language: str) -> Optional[PageMeta]:
        meta = self._page_meta.get((self.key(title), language))
        if meta is None:
            self.stats.misses += 1
        else:
            self.stats.hits += 1
        return meta

    def store_page_meta(self, title: str, language: str, meta: PageMeta):
        self._page_meta.setdefault((self.key(title), language), meta)

    def __len__(self) -> int:
        return sum(len(table) for table in self._title_pairs.values()) + len(self._page_meta)
