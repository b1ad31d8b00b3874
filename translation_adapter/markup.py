"""HTML loading and serialization of content trees."""

import logging
from html import escape
from typing import Dict, Iterator, List, Optional

import lxml.html
from lxml import etree

from .content_tree import ContentTree

logger = logging.getLogger(__name__)

UNADAPTED_CLASS = "cx-target-link-unadapted"


def _is_element(item) -> bool:
    # Comments and processing instructions have a callable tag
    return isinstance(item, etree._Element) and isinstance(item.tag, str)


def _container(html: str):
    """Element whose children are the top-level items of the markup."""
    if "<body" in html.lower():
        body = lxml.html.document_fromstring(html).find("body")
        if body is not None:
            return body
    return lxml.html.fragment_fromstring(html, create_parent="div")


def _items(html: str) -> Iterator:
    """Top-level elements and text runs of the markup, in order."""
    if not html.strip():
        return
    container = _container(html)
    if container.text:
        yield container.text
    for child in container:
        if _is_element(child):
            yield child
        if child.tail:
            yield child.tail


def _append_element(tree: ContentTree, element, parent: Optional[int], index: Optional[int] = None) -> int:
    node_id = tree.add_element(element.tag, dict(element.attrib), parent, index)
    if element.text:
        tree.add_text(element.text, node_id)
    for child in element:
        if _is_element(child):
            _append_element(tree, child, node_id)
        if child.tail:
            tree.add_text(child.tail, node_id)
    return node_id


def parse_html(html: str, name: str = "") -> ContentTree:
    """Parse column HTML into a content tree.

    A full document contributes the children of its body; a fragment
    contributes its top-level elements. Blank top-level text is dropped.

    Args:
        html: Markup of the column
        name: Tree name used in logs

    Returns:
        ContentTree whose roots are the sections
    """
    tree = ContentTree(name)
    for item in _items(html):
        if isinstance(item, str):
            if item.strip():
                tree.add_text(item)
        else:
            _append_element(tree, item, None)

    logger.debug("Parsed %s tree: %d sections, %d nodes", name or "content", len(tree.roots), len(tree))
    return tree


def insert_html(tree: ContentTree, html: str, parent: Optional[int], index: Optional[int]) -> List[int]:
    """Parse a fragment and insert its top-level nodes at a position.

    Returns:
        Ids of the inserted top-level nodes, in order
    """
    inserted = []
    position = index
    for item in _items(html):
        if isinstance(item, str):
            node_id = tree.add_text(item, parent, position)
        else:
            node_id = _append_element(tree, item, parent, position)
        inserted.append(node_id)
        if position is not None:
            position += 1
    return inserted


def _build_element(tree: ContentTree, node_id: int):
    node = tree.node(node_id)
    element = etree.Element(node.tag)
    for name, value in node.attrs.items():
        element.set(name, value)
    last = None
    for child_id in node.children:
        child = tree.node(child_id)
        if child.is_text:
            if last is None:
                element.text = (element.text or "") + child.text
            else:
                last.tail = (last.tail or "") + child.text
        else:
            last = _build_element(tree, child_id)
            element.append(last)
    return element


def _element_html(element) -> str:
    # tostring() includes the tail, which belongs to the parent
    tail, element.tail = element.tail, None
    try:
        return lxml.html.tostring(element, encoding="unicode")
    finally:
        element.tail = tail


def serialize_node(tree: ContentTree, node_id: int) -> str:
    """Outer HTML of a node."""
    node = tree.node(node_id)
    if node.is_text:
        return escape(node.text, quote=False)
    return _element_html(_build_element(tree, node_id))


def serialize(tree: ContentTree) -> str:
    """HTML of the whole tree, sections separated by newlines."""
    return "\n".join(serialize_node(tree, root) for root in tree.roots)


def element_html(tag: str, attrs: Dict[str, str], text: str = "") -> str:
    """Markup of a single element with text content."""
    element = etree.Element(tag)
    for name, value in attrs.items():
        element.set(name, value)
    element.text = text
    return _element_html(element)


def fragment_set_attribute(html: str, name: str, value: str) -> str:
    """Set an attribute on every top-level element of an HTML fragment.

    Top-level text is kept unchanged.
    """
    parts = []
    for item in _items(html):
        if isinstance(item, str):
            parts.append(escape(item, quote=False))
        else:
            item.set(name, value)
            parts.append(_element_html(item))
    return "".join(parts)


def prepare_for_publish(tree: ContentTree) -> int:
    """Convert every unadapted link to plain text.

    Returns:
        Number of links converted
    """
    unadapted = tree.find_all(lambda n: n.tag == "a" and n.has_class(UNADAPTED_CLASS))
    for node_id in unadapted:
        tree.unwrap(node_id)
    if unadapted:
        logger.info("Converted %d unadapted link(s) to plain text", len(unadapted))
    return len(unadapted)
