"""Identifier-indexed content trees.

A tree is an arena of nodes addressed by integer ids. Top-level nodes are the
sections of a column. Nodes are never moved between arenas; copying a subtree
into another tree creates new nodes there.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ContentNode:
    """An element or a text run."""
    id: int
    tag: Optional[str] = None  # None for text nodes
    attrs: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    children: List[int] = field(default_factory=list)
    parent: Optional[int] = None
    attached: bool = True

    @property
    def is_text(self) -> bool:
        return self.tag is None

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(name, default)

    @property
    def classes(self) -> List[str]:
        return self.attrs.get("class", "").split()

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def add_class(self, *names: str):
        classes = self.classes
        for name in names:
            if name not in classes:
                classes.append(name)
        self.attrs["class"] = " ".join(classes)

    def remove_class(self, *names: str):
        classes = [c for c in self.classes if c not in names]
        if classes:
            self.attrs["class"] = " ".join(classes)
        else:
            self.attrs.pop("class", None)

    def has_token(self, attr: str, token: str) -> bool:
        """Whether a space-separated attribute (rel, typeof) holds the token."""
        return token in self.attrs.get(attr, "").split()

    def data_mw(self) -> Optional[dict]:
        """Decode the ``data-mw`` JSON attribute.

        Returns None when absent or malformed; malformed data is logged.
        """
        raw = self.attrs.get("data-mw")
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed data-mw on node %s", self.attrs.get("id", self.id))
            return None
        return data if isinstance(data, dict) else None


class ContentTree:
    """An ordered forest of content nodes."""

    def __init__(self, name: str = ""):
        self.name = name
        self.nodes: List[ContentNode] = []
        self.roots: List[int] = []

    def __len__(self) -> int:
        return sum(1 for node in self.nodes if node.attached)

    def node(self, node_id: int) -> ContentNode:
        return self.nodes[node_id]

    # Construction

    def _insert(self, node: ContentNode, parent: Optional[int], index: Optional[int]) -> int:
        self.nodes.append(node)
        siblings = self.roots if parent is None else self.nodes[parent].children
        node.parent = parent
        if index is None:
            siblings.append(node.id)
        else:
            siblings.insert(index, node.id)
        return node.id

    def add_element(
        self,
        tag: str,
        attrs: Optional[Dict[str, str]] = None,
        parent: Optional[int] = None,
        index: Optional[int] = None,
    ) -> int:
        node = ContentNode(id=len(self.nodes), tag=tag, attrs=dict(attrs or {}))
        return self._insert(node, parent, index)

    def add_text(self, text: str, parent: Optional[int] = None, index: Optional[int] = None) -> int:
        node = ContentNode(id=len(self.nodes), text=text)
        return self._insert(node, parent, index)

    def copy_subtree(
        self,
        source: "ContentTree",
        node_id: int,
        parent: Optional[int] = None,
        index: Optional[int] = None,
    ) -> int:
        """Copy a subtree of another tree into this one, returning the new root id."""
        original = source.node(node_id)
        if original.is_text:
            return self.add_text(original.text, parent, index)
        new_id = self.add_element(original.tag, original.attrs, parent, index)
        for child in original.children:
            self.copy_subtree(source, child, new_id)
        return new_id

    # Navigation

    def siblings_of(self, node_id: int) -> List[int]:
        parent = self.nodes[node_id].parent
        return self.roots if parent is None else self.nodes[parent].children

    def element_children(self, node_id: int) -> List[int]:
        return [c for c in self.nodes[node_id].children if not self.nodes[c].is_text]

    def next_element_sibling(self, node_id: int) -> Optional[int]:
        siblings = self.siblings_of(node_id)
        position = siblings.index(node_id)
        for candidate in siblings[position + 1:]:
            if not self.nodes[candidate].is_text:
                return candidate
        return None

    def ancestors(self, node_id: int) -> Iterator[int]:
        parent = self.nodes[node_id].parent
        while parent is not None:
            yield parent
            parent = self.nodes[parent].parent

    def section_of(self, node_id: int) -> int:
        """Top-level section containing the node."""
        top = node_id
        for ancestor in self.ancestors(node_id):
            top = ancestor
        return top

    def iter_subtree(self, node_id: int) -> Iterator[int]:
        """Node and all its descendants in document order."""
        stack = [node_id]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self.nodes[current].children))

    def iter_all(self) -> Iterator[int]:
        for root in list(self.roots):
            yield from self.iter_subtree(root)

    def find_all(
        self,
        predicate: Callable[[ContentNode], bool],
        under: Optional[int] = None,
    ) -> List[int]:
        ids = self.iter_all() if under is None else self.iter_subtree(under)
        return [i for i in ids if not self.nodes[i].is_text and predicate(self.nodes[i])]

    def find_first(
        self,
        predicate: Callable[[ContentNode], bool],
        under: Optional[int] = None,
    ) -> Optional[int]:
        ids = self.iter_all() if under is None else self.iter_subtree(under)
        for i in ids:
            if not self.nodes[i].is_text and predicate(self.nodes[i]):
                return i
        return None

    def get_element_by_id(self, element_id: str) -> Optional[int]:
        """Attached element whose ``id`` attribute equals element_id."""
        if not element_id:
            return None
        return self.find_first(lambda n: n.attrs.get("id") == element_id)

    def text_content(self, node_id: int) -> str:
        return "".join(
            self.nodes[i].text for i in self.iter_subtree(node_id) if self.nodes[i].is_text
        )

    # Mutation

    def remove(self, node_id: int):
        """Detach a node and its subtree."""
        self.siblings_of(node_id).remove(node_id)
        for i in self.iter_subtree(node_id):
            self.nodes[i].attached = False
        self.nodes[node_id].parent = None

    def unwrap(self, node_id: int) -> int:
        """Replace an element by a text node holding its text content."""
        siblings = self.siblings_of(node_id)
        position = siblings.index(node_id)
        text = self.text_content(node_id)
        parent = self.nodes[node_id].parent
        self.remove(node_id)
        return self.add_text(text, parent, position)

    def clear_class(self, *names: str):
        """Remove classes from every element of the tree."""
        for i in self.iter_all():
            node = self.nodes[i]
            if not node.is_text and any(name in node.classes for name in names):
                node.remove_class(*names)
