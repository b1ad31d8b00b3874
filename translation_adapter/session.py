"""Editing session: the context shared by every adaptation operation."""

import itertools
import logging
import time
from typing import Callable, Dict, Optional, Tuple

from .api_client import SiteMapper, WikiApiClient
from .cache import ResolutionCache
from .content_tree import ContentTree
from .links import LinkEntity, is_wiki_link
from .models import Side, TARGET_ID_PREFIX
from .references import ReferenceEntity, is_reference
from .registry import CorrespondenceRegistry
from .resolver import TitleResolver
from .selection import TreeSelection
from .signals import SignalHub
from .titles import valid_title

logger = logging.getLogger(__name__)


class AdaptationSession:
    """State of one translation being edited.

    Holds the two content trees, the language pair, the resolution cache,
    the correspondence registries for links and references, the resolver and
    the signal hub. Created when a translation is opened, closed when the
    user leaves it; nothing here outlives the session.
    """

    def __init__(
        self,
        source_tree: ContentTree,
        target_tree: ContentTree,
        source_language: str,
        target_language: str,
        api: Optional[WikiApiClient] = None,
        resolver: Optional[TitleResolver] = None,
        site_mapper: Optional[SiteMapper] = None,
        section_provider: Optional[Callable[[int], Optional[int]]] = None,
        selection: Optional[TreeSelection] = None,
        batch_limit: int = 50,
        thumbnail_size: int = 150,
        probe_pages: bool = True,
    ):
        """Initialize session.

        Args:
            source_tree: Content tree of the source article
            target_tree: Content tree of the translation
            source_language: Language code of the source article
            target_language: Language code of the translation
            api: Wiki API client (created when neither api nor resolver is given)
            resolver: Title resolver (created over api when not given)
            site_mapper: Site mapper for a client created here
            section_provider: Maps a target section node to its source section node
            selection: Selection provider (a TreeSelection over both trees by default)
            batch_limit: Titles per resolution request
            thumbnail_size: Thumbnail width asked for in page probes
            probe_pages: Whether adaptation probes page existence
        """
        self.source_tree = source_tree
        self.target_tree = target_tree
        self.source_language = source_language
        self.target_language = target_language

        self._owns_api = api is None and resolver is None
        if resolver is not None:
            self.api = resolver.api
            self.cache = resolver.cache
            self.resolver = resolver
        else:
            self.api = api or WikiApiClient(site_mapper)
            self.cache = ResolutionCache()
            self.resolver = TitleResolver(
                self.api,
                self.cache,
                batch_limit=batch_limit,
                thumbnail_size=thumbnail_size,
            )

        self.links = CorrespondenceRegistry()
        self.references = CorrespondenceRegistry()
        self.signals = SignalHub()
        self.selection = selection or TreeSelection({
            Side.SOURCE.column: source_tree,
            Side.TARGET.column: target_tree,
        })
        self.section_provider = section_provider or self.default_source_section
        self.probe_pages = probe_pages

        self._link_nodes: Dict[Tuple[Side, int], LinkEntity] = {}
        self._reference_nodes: Dict[Tuple[Side, int], ReferenceEntity] = {}
        self._sequence = itertools.count(1)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        """End the session, dropping registries and closing a client created here."""
        self.links.clear()
        self.references.clear()
        self._link_nodes.clear()
        self._reference_nodes.clear()
        if self._owns_api:
            await self.api.aclose()

    @property
    def site_mapper(self) -> SiteMapper:
        return self.api.site_mapper

    def tree(self, side: Side) -> ContentTree:
        return self.source_tree if side is Side.SOURCE else self.target_tree

    def language(self, side: Side) -> str:
        return self.source_language if side is Side.SOURCE else self.target_language

    def page_url(self, side: Side, title: str) -> str:
        return self.site_mapper.get_page_url(self.language(side), title)

    def next_identifier(self) -> str:
        """A fresh link identifier for links made from selected text."""
        return f"{int(time.time() * 1000)}{next(self._sequence)}"

    def default_source_section(self, target_section: int) -> Optional[int]:
        """Source section named by the ``data-source`` attribute of a target section."""
        source_id = self.target_tree.node(target_section).get("data-source")
        if not source_id:
            return None
        return self.source_tree.get_element_by_id(source_id)

    def get_source_section(self, target_section: int) -> Optional[int]:
        return self.section_provider(target_section)

    # Links

    def link_for_node(self, node_id: int, side: Side) -> LinkEntity:
        """Entity bound to a link node, created and registered on first access."""
        entity = self._link_nodes.get((side, node_id))
        if entity is None:
            entity = LinkEntity.attach(self, node_id, side)
        return entity

    def bind_link(self, entity: LinkEntity):
        self._link_nodes[(entity.side, entity.node_id)] = entity
        self.links.register(entity)

    def unbind_link(self, entity: LinkEntity):
        self._link_nodes.pop((entity.side, entity.node_id), None)
        self.links.unregister(entity)

    def find_link_node(self, identifier: str, side: Side) -> Optional[int]:
        return self.tree(side).find_first(
            lambda n: is_wiki_link(n) and n.get("data-linkid") == identifier
        )

    def get_link(self, identifier: str, side: Side) -> Optional[LinkEntity]:
        """Link entity for an identifier on one side, materialized from the tree if needed."""
        entity = self.links.lookup(identifier, side)
        if entity is None:
            node_id = self.find_link_node(identifier, side)
            if node_id is not None:
                entity = self.link_for_node(node_id, side)
        return entity

    def get_corresponding_link(
        self,
        identifier: str,
        side: Side,
        title: Optional[str] = None,
    ) -> Optional[LinkEntity]:
        """Counterpart, on the other side, of the link known on ``side``.

        When the known side has no entity either, a detached one is built from
        ``title`` so a counterpart can still be derived.
        """
        known = self.get_link(identifier, side)
        if known is None:
            if title is None:
                return None
            known = LinkEntity(self, side, identifier=identifier, title=title)
        return known.get_corresponding_link()

    def link_from_text(self, text: str, side: Side = Side.TARGET) -> Optional[LinkEntity]:
        """Detached link for typed or selected text.

        Only translation text can become a link; source selections yield None.
        """
        title = valid_title(text)
        if title is None or side is not Side.TARGET:
            logger.debug("No link for %s text %r", side.value, text)
            return None
        return LinkEntity(self, Side.TARGET, identifier=self.next_identifier(), title=title)

    # References

    def reference_for_node(self, node_id: int, side: Side) -> ReferenceEntity:
        entity = self._reference_nodes.get((side, node_id))
        if entity is None:
            entity = ReferenceEntity.attach(self, node_id, side)
        return entity

    def bind_reference(self, entity: ReferenceEntity):
        self._reference_nodes[(entity.side, entity.node_id)] = entity
        self.references.register(entity)

    def unbind_reference(self, entity: ReferenceEntity):
        self._reference_nodes.pop((entity.side, entity.node_id), None)
        self.references.unregister(entity)

    def find_reference_node(self, identifier: str, side: Side) -> Optional[int]:
        element_id = identifier if side is Side.SOURCE else TARGET_ID_PREFIX + identifier
        node_id = self.tree(side).get_element_by_id(element_id)
        if node_id is None or not is_reference(self.tree(side).node(node_id)):
            return None
        return node_id

    def get_reference(self, identifier: str, side: Side) -> Optional[ReferenceEntity]:
        entity = self.references.lookup(identifier, side)
        if entity is None:
            node_id = self.find_reference_node(identifier, side)
            if node_id is not None:
                entity = self.reference_for_node(node_id, side)
        return entity
