"""Links in the source and translation columns and their adaptation."""

import logging
from typing import Optional, Set
from urllib.parse import unquote

from .content_tree import ContentNode, ContentTree
from .markup import UNADAPTED_CLASS, element_html
from .models import LinkRecord, LinkState, PageMeta, Side
from .signals import LINK_SELECTED, TRANSLATION_CHANGE
from .titles import valid_title

logger = logging.getLogger(__name__)

WIKILINK_REL = "mw:WikiLink"
SOURCE_LINK_CLASS = "cx-source-link"
TARGET_LINK_CLASS = "cx-target-link"
RED_LINK_CLASS = "new"
HIGHLIGHT_CLASS = "cx-highlight--blue"
COUNTERPART_HIGHLIGHT_CLASS = "cx-highlight--lightblue"

# Adaptation outcome -> state, for translation links
TARGET_TRANSITIONS = {
    "resolved": LinkState.ADAPTED,
    "absent": LinkState.UNADAPTED,
    "restored": LinkState.ADAPTED,
    "restored-unadapted": LinkState.UNADAPTED,
}

# Flag raised when the page probe confirms the page does not exist
MISSING_PAGE_FLAG = {
    Side.SOURCE: LinkState.RED_LINK,
    Side.TARGET: LinkState.MISSING_ARTICLE,
}


def is_wiki_link(node: ContentNode) -> bool:
    return node.tag == "a" and node.has_token("rel", WIKILINK_REL)


def link_title(node: ContentNode) -> Optional[str]:
    """Title a link points to: its title attribute, else its ``./Page`` href."""
    title = node.get("title")
    if title:
        return title
    href = node.get("href", "")
    if href.startswith("./"):
        return unquote(href[2:]).replace("_", " ") or None
    return None


class LinkEntity:
    """A link on one side of the translation.

    Source and translation links share this class and its state machine;
    ``side`` selects the side-specific behavior. An entity may be bound to a
    node of its tree or detached (known only by identifier and title).

    Translation links go through::

        UNRESOLVED -> ADAPTED     counterpart title found in the cache
        UNRESOLVED -> UNADAPTED   title resolved as absent, or its lookup failed

    RED_LINK and MISSING_ARTICLE are flags on top of that state.
    """

    def __init__(
        self,
        session,
        side: Side,
        node_id: Optional[int] = None,
        identifier: Optional[str] = None,
        title: Optional[str] = None,
    ):
        self.session = session
        self.side = side
        self.node_id = node_id
        node = self.node
        self.identifier = identifier or (node.get("data-linkid") if node is not None else None)
        self.title = title
        self.state = LinkState.UNRESOLVED
        self.red_link = False
        self.missing_article = False
        self.page: Optional[PageMeta] = None
        self._counterpart: Optional["LinkEntity"] = None

    @classmethod
    def attach(cls, session, node_id: int, side: Side) -> "LinkEntity":
        """Bind an entity to a link node and register it.

        Translation links are adapted right away when the cache already
        knows their title.
        """
        entity = cls(session, side, node_id=node_id)
        session.bind_link(entity)
        if side is Side.SOURCE:
            entity.node.add_class(SOURCE_LINK_CLASS)
        else:
            entity.adapt()
        return entity

    def __repr__(self) -> str:
        return (f"LinkEntity(side={self.side.value}, id={self.identifier!r}, "
                f"title={self.get_title()!r}, state={self.state.value})")

    @property
    def tree(self) -> ContentTree:
        return self.session.tree(self.side)

    @property
    def node(self) -> Optional[ContentNode]:
        """Bound node, or None for detached entities and removed nodes."""
        if self.node_id is None:
            return None
        node = self.tree.node(self.node_id)
        return node if node.attached else None

    @property
    def is_detached(self) -> bool:
        return self.node is None

    @property
    def language(self) -> str:
        return self.session.language(self.side)

    @property
    def states(self) -> Set[LinkState]:
        """Adaptation state plus raised flags."""
        states = {self.state}
        if self.is_red_link:
            states.add(LinkState.RED_LINK)
        if self.missing_article:
            states.add(LinkState.MISSING_ARTICLE)
        return states

    @property
    def is_red_link(self) -> bool:
        node = self.node
        return self.red_link or (node is not None and node.has_class(RED_LINK_CLASS))

    def get_title(self) -> Optional[str]:
        if self.title:
            return self.title
        node = self.node
        self.title = link_title(node) if node is not None else None
        return self.title

    def get_target_title(self) -> Optional[str]:
        """Title this link should have in the translation language."""
        title = self.get_title()
        if not title:
            return None
        key = valid_title(title)
        if key is None:
            return title
        if self.side is Side.SOURCE:
            resolved = self.session.cache.get_title_pair(
                key, self.session.source_language, self.session.target_language
            )
            if resolved:
                return valid_title(resolved) or resolved
        return key

    def page_url(self) -> Optional[str]:
        """URL of the linked page, for opening it outside the editor."""
        title = self.get_title()
        return self.session.page_url(self.side, title) if title else None

    # Adaptation

    def _transition(self, outcome: str) -> LinkState:
        self.state = TARGET_TRANSITIONS[outcome]
        return self.state

    def adapt(self, resolution_attempted: bool = False) -> LinkState:
        """Adapt a translation link to the translation language.

        Reads the resolution cache only. A title the cache knows nothing
        about leaves the link unresolved until a lookup has been attempted
        for it. Adapting an adapted link changes nothing. A link already
        carrying the translation link marker comes from a saved draft and
        keeps its title.

        Args:
            resolution_attempted: A lookup for the section's titles has run,
                so a title still missing from the cache is unadapted

        Returns:
            The resulting state
        """
        if self.side is not Side.TARGET or self.state is LinkState.ADAPTED:
            return self.state

        title = self.get_title()
        if not title:
            return self.state

        node = self.node
        if node is not None and node.has_class(TARGET_LINK_CLASS):
            if node.has_class(UNADAPTED_CLASS):
                return self._transition("restored-unadapted")
            return self._transition("restored")

        key = valid_title(title)
        cache = self.session.cache
        languages = (self.session.source_language, self.session.target_language)
        known = key is not None and cache.has_title_pair(key, *languages)
        if not known and not resolution_attempted:
            return self.state

        resolved = cache.get_title_pair(key, *languages) if known else None

        if resolved:
            self.title = resolved
            if node is not None:
                node.attrs["href"] = resolved
                node.attrs["title"] = resolved
            self._transition("resolved")
        else:
            logger.debug("No %s title for %r, link %s stays unadapted",
                         self.session.target_language, title, self.identifier)
            self._transition("absent")
            self.mark_unadapted()

        if node is not None:
            node.add_class(TARGET_LINK_CLASS)
        return self.state

    def mark_unadapted(self):
        # Unadapted links become plain text when the translation is published
        node = self.node
        if node is not None:
            node.add_class(UNADAPTED_CLASS)

    async def fetch_link_data(self) -> Optional[PageMeta]:
        """Probe the linked page in this link's language.

        A confirmed missing page marks a source link as red link and an
        adapted translation link as missing article. A failed probe changes
        nothing.

        Returns:
            Page metadata, or None if the page does not exist or the probe failed
        """
        title = self.get_title()
        if not title:
            return None

        self.page = await self.session.resolver.fetch_page_metadata(title, self.language)
        if self.page is not None:
            return self.page

        probed = self.session.cache.get_page_meta(title, self.language)
        if probed is None or probed.exists:
            return None

        flag = MISSING_PAGE_FLAG[self.side]
        if flag is LinkState.RED_LINK:
            self.make_red_link()
        elif self.state is LinkState.ADAPTED:
            self.missing_article = True
        return None

    def make_red_link(self) -> bool:
        """Mark the link as pointing to a page that does not exist yet.

        A detached translation link is first created from the saved
        translation selection, if that selection is valid.

        Returns:
            Whether the link was marked
        """
        if self.node is None and self.side is Side.TARGET:
            selection = self.session.selection.restore(Side.TARGET.column)
            if not self.session.selection.is_valid(selection):
                return False
            self.create_link()

        self.red_link = True
        node = self.node
        if node is not None:
            node.remove_class(UNADAPTED_CLASS)
            node.add_class(RED_LINK_CLASS)
        return True

    # Correspondence

    def get_corresponding_link(self) -> "LinkEntity":
        """The link on the other side with the same identifier.

        Looked up in the registry, then in the other tree; when the other
        side has no such link a detached one is synthesized. The result is
        kept on this entity.
        """
        cached = self._counterpart
        if cached is not None and cached.node is not None:
            return cached

        other = self.side.other
        found = None
        if self.identifier:
            found = self.session.get_link(self.identifier, other)

        if found is None:
            found = cached or self._synthesize_counterpart()
        elif found._counterpart is None or found._counterpart.node is None:
            found._counterpart = self

        self._counterpart = found
        return found

    def _synthesize_counterpart(self) -> "LinkEntity":
        if self.side is Side.SOURCE:
            title = self.get_target_title()
        else:
            title = self.get_title()
            key = valid_title(title) if title else None
            if key is not None:
                title = self.session.cache.find_source_title(
                    key, self.session.source_language, self.session.target_language
                ) or title

        counterpart = LinkEntity(
            self.session,
            self.side.other,
            identifier=self.identifier,
            title=title,
        )
        counterpart._counterpart = self
        return counterpart

    # Editing actions

    def create_link(self) -> Optional["LinkEntity"]:
        """Turn the saved translation selection into a translation link.

        The new link carries this link's identifier and translation title.
        Called on a source link, the created link becomes its counterpart;
        called on a detached translation link, the entity binds to it.

        Returns:
            The translation link entity, or None without a translation selection
        """
        selection_provider = self.session.selection
        selection = selection_provider.restore(Side.TARGET.column)
        if selection is None:
            return None

        target_title = self.get_target_title()
        if not target_title:
            return None
        if not self.identifier:
            self.identifier = self.session.next_identifier()

        html = element_html("a", {
            "class": TARGET_LINK_CLASS,
            "title": target_title,
            "href": target_title,
            "rel": WIKILINK_REL,
            "data-linkid": self.identifier,
        }, selection.text or target_title)

        inserted = selection_provider.paste_html(html)
        target_tree = self.session.target_tree
        node_id = next((i for i in inserted if not target_tree.node(i).is_text), None)
        if node_id is None:
            return None

        if self.side is Side.TARGET:
            self.node_id = node_id
            self.title = target_title
            self.session.bind_link(self)
            self.adapt()
            created = self
        else:
            created = self.session.link_for_node(node_id, Side.TARGET)
            created._counterpart = self
            self._counterpart = created

        section = target_tree.section_of(node_id)
        self.session.signals.fire(TRANSLATION_CHANGE, section)
        return created

    def remove_link(self) -> bool:
        """Replace a translation link by its text."""
        if self.side is not Side.TARGET or self.node is None:
            return False

        section = self.tree.section_of(self.node_id)
        self.session.unbind_link(self)
        self.tree.unwrap(self.node_id)
        self.node_id = None
        self.session.selection.restore(Side.TARGET.column)
        self.session.signals.fire(TRANSLATION_CHANGE, section)
        return True

    def highlight(self):
        """Highlight this link and, more lightly, its counterpart."""
        for tree in (self.session.source_tree, self.session.target_tree):
            tree.clear_class(HIGHLIGHT_CLASS, COUNTERPART_HIGHLIGHT_CLASS)

        node = self.node
        if node is not None:
            node.add_class(HIGHLIGHT_CLASS)
        counterpart = self.get_corresponding_link().node
        if counterpart is not None:
            counterpart.add_class(COUNTERPART_HIGHLIGHT_CLASS)

    def select(self) -> Optional["LinkEntity"]:
        """The user clicked this link.

        Clicking a source link while translation text is selected links that
        text to the source link's page.

        Returns:
            The translation link created from the selection, if any
        """
        self.session.signals.fire(LINK_SELECTED, self.identifier, self.side)
        self.highlight()
        if self.side is Side.SOURCE and self.session.selection.is_valid():
            return self.create_link()
        return None

    def to_record(self) -> LinkRecord:
        counterpart = self.get_corresponding_link()
        source, target = (self, counterpart) if self.side is Side.SOURCE else (counterpart, self)
        return LinkRecord(
            identifier=self.identifier or "",
            source_title=source.get_title(),
            target_title=target.get_title(),
            state=target.state,
            red_link=source.is_red_link or target.is_red_link,
            missing_article=target.missing_article,
        )
