"""Footnote references and their adaptation into the translation."""

import json
import logging
from typing import List, Optional

from .content_tree import ContentNode, ContentTree
from .markup import fragment_set_attribute, serialize_node
from .models import ReferenceState, Side, TARGET_ID_PREFIX
from .registry import base_identifier
from .signals import REFERENCE_SELECTED, TRANSLATION_ADD, TRANSLATION_CHANGE

logger = logging.getLogger(__name__)

REF_TYPE = "mw:Extension/ref"
REFERENCES_TYPE = "mw:Extension/references"


def is_reference(node: ContentNode) -> bool:
    return node.has_token("typeof", REF_TYPE)


def is_reference_list(node: ContentNode) -> bool:
    return node.has_token("typeof", REFERENCES_TYPE)


def _cites(node: ContentNode, reference_id: str) -> bool:
    href = node.get("href", "")
    return node.tag == "a" and (href == "#" + reference_id or href.endswith("#" + reference_id))


def _backlink(tree: ContentTree, reference_id: str) -> Optional[int]:
    """Anchor of a reference list pointing back to the reference."""
    for list_id in tree.find_all(is_reference_list):
        found = tree.find_first(lambda n: _cites(n, reference_id), under=list_id)
        if found is not None:
            return found
    return None


def reference_siblings(tree: ContentTree, reference_id: str) -> List[str]:
    """Identifiers of every anchor citing the same footnote, the reference included.

    A footnote used several times is listed once in the reference list, with
    one backlink per use. Only one of those anchors carries the footnote data,
    and not necessarily the first.
    """
    backlink = _backlink(tree, reference_id)
    if backlink is None:
        return [reference_id]

    node = tree.node(backlink)
    siblings = tree.element_children(node.parent) if node.parent is not None else [backlink]
    identifiers = []
    for sibling in siblings:
        href = tree.node(sibling).get("href", "")
        if "#" in href:
            identifiers.append(href.rsplit("#", 1)[1])
    return identifiers or [reference_id]


def get_reference_data(tree: ContentTree, reference_id: str) -> Optional[dict]:
    """Footnote data of a reference, from whichever sibling anchor carries it.

    Args:
        tree: Source content tree
        reference_id: Element id of the reference anchor

    Returns:
        Decoded ``data-mw`` holding a ``body``, or None
    """
    node_id = tree.get_element_by_id(reference_id)
    if node_id is None:
        logger.debug("Reference %s not found", reference_id)
        return None
    if not is_reference(tree.node(node_id)):
        logger.warning("Possible exploitation attempt via references. Reference %s ignored.",
                       reference_id)
        return None

    for sibling_id in reference_siblings(tree, reference_id):
        sibling = tree.get_element_by_id(sibling_id)
        if sibling is None or not is_reference(tree.node(sibling)):
            continue
        data = tree.node(sibling).data_mw()
        if data and isinstance(data.get("body"), dict):
            return data

    logger.debug("No footnote data for reference %s", reference_id)
    return None


def resolve_content(tree: ContentTree, reference_id: str) -> Optional[str]:
    """HTML content of a footnote.

    Inline ``body.html`` is used when present; otherwise the footnote text
    lives in the reference list, in the element named by ``body.id``.
    """
    data = get_reference_data(tree, reference_id)
    if data is None:
        return None
    body = data["body"]
    if body.get("html"):
        return body["html"]
    content_id = tree.get_element_by_id(body.get("id", ""))
    return serialize_node(tree, content_id) if content_id is not None else None


def adapted_annotation(tree: ContentTree, reference_id: str) -> Optional[dict]:
    """Template data of the footnote as already adapted in the reference list.

    The list item holds the backlinks and, right after them, the rendered
    footnote carrying its own ``data-mw``.
    """
    backlink = _backlink(tree, reference_id)
    if backlink is None:
        return None
    holder = tree.node(backlink).parent
    if holder is None:
        return None
    content = tree.next_element_sibling(holder)
    return tree.node(content).data_mw() if content is not None else None


def adapt_reference(session, reference_id: str) -> bool:
    """Copy the footnote data of a source reference into its translation anchor.

    Args:
        session: Adaptation session
        reference_id: Source identifier of the reference

    Returns:
        Whether the translation anchor received the footnote data
    """
    source_tree = session.source_tree
    data = get_reference_data(source_tree, reference_id)
    if data is None:
        return False

    target_id = session.find_reference_node(reference_id, Side.TARGET)
    if target_id is None:
        logger.debug("Reference %s has no translation anchor", reference_id)
        return False

    body = dict(data["body"])
    annotation = adapted_annotation(source_tree, reference_id)
    if annotation is not None and body.get("html"):
        body["html"] = fragment_set_attribute(body["html"], "data-mw", json.dumps(annotation))

    payload = dict(data, body=body)
    session.target_tree.node(target_id).attrs["data-mw"] = json.dumps(payload)
    ensure_reference_list(session)
    return True


def ensure_reference_list(session) -> List[int]:
    """Add the reference list sections to the translation if none is there yet.

    Returns:
        Ids of the sections added to the translation tree
    """
    source_tree = session.source_tree
    target_tree = session.target_tree
    if target_tree.find_first(is_reference_list) is not None:
        return []

    added = []
    # Articles may group notes and references in separate lists
    for list_id in source_tree.find_all(is_reference_list):
        node = source_tree.node(list_id)
        section_id = list_id if node.parent is None else node.parent
        source_section_id = source_tree.node(section_id).get("id")

        if source_section_id and target_tree.find_first(
            lambda n: n.get("data-source") == source_section_id
        ) is not None:
            continue

        copy_id = target_tree.copy_subtree(source_tree, section_id)
        copy = target_tree.node(copy_id)
        if source_section_id:
            copy.attrs["id"] = TARGET_ID_PREFIX + source_section_id
            copy.attrs["data-source"] = source_section_id
        added.append(copy_id)
        session.signals.fire(TRANSLATION_ADD, source_section_id, "reference")

    if added:
        logger.info("Added %d reference list section(s) to the translation", len(added))
    return added


class ReferenceEntity:
    """A reference anchor on one side of the translation.

    Translation anchors carry the source identifier in ``data-sourceid``
    and an element id made of the tree marker and that identifier.
    """

    def __init__(self, session, side: Side, node_id: Optional[int], identifier: Optional[str]):
        self.session = session
        self.side = side
        self.node_id = node_id
        self.identifier = identifier
        self.state = ReferenceState.NOT_ADAPTED

    @classmethod
    def attach(cls, session, node_id: int, side: Side) -> "ReferenceEntity":
        node = session.tree(side).node(node_id)
        identifier = node.get("id")
        if side is Side.TARGET:
            identifier = node.get("data-sourceid") or (
                base_identifier(identifier, side) if identifier else None
            )
        entity = cls(session, side, node_id, identifier)
        session.bind_reference(entity)
        return entity

    def __repr__(self) -> str:
        return f"ReferenceEntity(side={self.side.value}, id={self.identifier!r}, state={self.state.value})"

    @property
    def tree(self) -> ContentTree:
        return self.session.tree(self.side)

    @property
    def node(self) -> Optional[ContentNode]:
        if self.node_id is None:
            return None
        node = self.tree.node(self.node_id)
        return node if node.attached else None

    def get_reference_data(self) -> Optional[dict]:
        if not self.identifier:
            return None
        return get_reference_data(self.session.source_tree, self.identifier)

    def resolve_content(self) -> Optional[str]:
        if not self.identifier:
            return None
        return resolve_content(self.session.source_tree, self.identifier)

    def adapt(self) -> ReferenceState:
        if self.identifier and adapt_reference(self.session, self.identifier):
            self.state = ReferenceState.ADAPTED
        return self.state

    def get_corresponding_reference(self) -> "ReferenceEntity":
        """The anchor on the other side, or a detached one if there is none."""
        other = self.side.other
        found = self.session.get_reference(self.identifier, other) if self.identifier else None
        if found is None:
            found = ReferenceEntity(self.session, other, None, self.identifier)
        return found

    def select(self):
        """The user clicked this reference."""
        self.session.signals.fire(REFERENCE_SELECTED, self.identifier, self.side)

    def add_reference(self) -> Optional["ReferenceEntity"]:
        """Insert a copy of this source reference at the translation selection.

        Returns:
            The translation reference, or None without a source anchor or
            translation selection
        """
        node = self.node
        if self.side is not Side.SOURCE or node is None or not self.identifier:
            return None

        selection_provider = self.session.selection
        if selection_provider.restore(Side.TARGET.column) is None:
            return None

        clone = ContentTree()
        clone_id = clone.copy_subtree(self.tree, self.node_id)
        clone.node(clone_id).attrs.update({
            "id": TARGET_ID_PREFIX + self.identifier,
            "data-sourceid": self.identifier,
            "contenteditable": "false",
        })

        inserted = selection_provider.paste_html(serialize_node(clone, clone_id))
        target_tree = self.session.target_tree
        node_id = next((i for i in inserted if not target_tree.node(i).is_text), None)
        if node_id is None:
            return None

        created = self.session.reference_for_node(node_id, Side.TARGET)
        created.adapt()
        ensure_reference_list(self.session)
        self.session.signals.fire(TRANSLATION_CHANGE, target_tree.section_of(node_id))
        return created

    def remove_reference(self) -> bool:
        """Remove this reference from the translation."""
        if self.side is not Side.TARGET or self.node is None:
            return False
        section = self.tree.section_of(self.node_id)
        self.session.unbind_reference(self)
        self.tree.remove(self.node_id)
        self.node_id = None
        self.session.signals.fire(TRANSLATION_CHANGE, section)
        return True
