"""Data models for the adaptation engine."""

from dataclasses import dataclass, field
from typing import List, Dict, Optional
from enum import Enum


# Tree marker prepended to source identifiers on the translation side
TARGET_ID_PREFIX = "cx"


class Side(Enum):
    """Which tree an entity lives in."""
    SOURCE = "source"
    TARGET = "target"

    @property
    def other(self) -> "Side":
        return Side.TARGET if self is Side.SOURCE else Side.SOURCE

    @property
    def column(self) -> str:
        """Name of the editor column holding this side."""
        return "source" if self is Side.SOURCE else "translation"


class LinkState(Enum):
    """Adaptation state of a link.

    UNRESOLVED, ADAPTED and UNADAPTED are the adaptation states proper.
    RED_LINK and MISSING_ARTICLE are orthogonal flags reported by
    LinkEntity.states alongside them.
    """
    UNRESOLVED = "unresolved"
    ADAPTED = "adapted"
    UNADAPTED = "unadapted"
    RED_LINK = "redlink"
    MISSING_ARTICLE = "missing"


class ReferenceState(Enum):
    """Adaptation state of a reference anchor."""
    NOT_ADAPTED = "not-adapted"
    ADAPTED = "adapted"


@dataclass(frozen=True)
class Thumbnail:
    """Page image thumbnail."""
    source: str
    width: int = 0
    height: int = 0


@dataclass(frozen=True)
class PageMeta:
    """Existence, image and short description of a page in one language."""
    title: str
    language: str
    exists: bool
    thumbnail: Optional[Thumbnail] = None
    description: Optional[str] = None


@dataclass
class LinkRecord:
    """One line of the adaptation report for a link."""
    identifier: str
    source_title: Optional[str]
    target_title: Optional[str]
    state: LinkState
    red_link: bool = False
    missing_article: bool = False


@dataclass
class SectionSummary:
    """Outcome of adapting one target section."""
    section_id: Optional[str]
    restored_from_draft: bool = False
    titles_requested: int = 0
    links: List[LinkRecord] = field(default_factory=list)
    references_adapted: int = 0
    references_failed: int = 0

    def count(self, state: LinkState) -> int:
        """Count links of this section in the given state or carrying the flag."""
        if state is LinkState.RED_LINK:
            return sum(1 for link in self.links if link.red_link)
        if state is LinkState.MISSING_ARTICLE:
            return sum(1 for link in self.links if link.missing_article)
        return sum(1 for link in self.links if link.state is state)


@dataclass
class AdaptationResult:
    """Result of a whole-document adaptation run."""
    exit_code: int
    output_path: str
    report_path: str
    sections: List[SectionSummary] = field(default_factory=list)
    statistics: Dict[str, object] = field(default_factory=dict)
