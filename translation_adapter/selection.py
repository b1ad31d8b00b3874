"""Text selection over the two columns."""

from dataclasses import dataclass
from typing import Dict, List, Optional

from .content_tree import ContentTree
from .links import TARGET_LINK_CLASS
from .markup import insert_html


@dataclass
class Selection:
    """A range inside one text node."""
    column: str
    node_id: int
    start: int
    end: int
    text: str


class TreeSelection:
    """Selection provider backed by the column content trees.

    Keeps the current selection plus the last selection saved per column, so
    an action started from a card can put the selection back before editing.
    """

    def __init__(self, trees: Dict[str, ContentTree]):
        """Initialize provider.

        Args:
            trees: Content trees keyed by column name ("source", "translation")
        """
        self.trees = trees
        self._current: Optional[Selection] = None
        self._saved: Dict[str, Selection] = {}

    def select(self, column: str, node_id: int, start: int = 0, end: Optional[int] = None) -> Selection:
        """Select a range of a text node and remember it for the column."""
        node = self.trees[column].node(node_id)
        if not node.is_text:
            raise ValueError(f"Node {node_id} is not a text node")
        if end is None:
            end = len(node.text)
        if not 0 <= start <= end <= len(node.text):
            raise ValueError(f"Invalid range {start}:{end} for node {node_id}")

        selection = Selection(column, node_id, start, end, node.text[start:end])
        self._current = selection
        self._saved[column] = selection
        return selection

    def get(self) -> Optional[Selection]:
        return self._current

    def restore(self, column: str) -> Optional[Selection]:
        """Make the last selection saved for a column current again."""
        saved = self._saved.get(column)
        if saved is not None:
            self._current = saved
        return saved

    def clear(self):
        self._current = None

    def is_valid(self, selection: Optional[Selection] = None) -> bool:
        """Whether the selection can be turned into a link or receive markup.

        Only non-empty selections in editable translation text qualify, and
        never the text of an existing translation link.
        """
        selection = selection or self._current
        if selection is None or not selection.text:
            return False
        if selection.column != "translation":
            return False

        tree = self.trees[selection.column]
        node = tree.node(selection.node_id)
        if not node.attached or node.text[selection.start:selection.end] != selection.text:
            return False

        for ancestor_id in tree.ancestors(selection.node_id):
            ancestor = tree.node(ancestor_id)
            if ancestor.get("contenteditable") == "false":
                return False
            if ancestor.has_class(TARGET_LINK_CLASS):
                return False

        return True

    def paste_html(self, html: str) -> List[int]:
        """Replace the current selection with markup.

        Returns:
            Ids of the inserted top-level nodes; empty when nothing is selected
        """
        selection = self._current
        if selection is None:
            return []

        tree = self.trees[selection.column]
        node = tree.node(selection.node_id)
        before = node.text[:selection.start]
        after = node.text[selection.end:]
        position = tree.siblings_of(selection.node_id).index(selection.node_id)

        node.text = before
        inserted = insert_html(tree, html, node.parent, position + 1)
        if after:
            tree.add_text(after, node.parent, position + 1 + len(inserted))
        if not before:
            tree.remove(selection.node_id)

        self._current = None
        self._saved.pop(selection.column, None)
        return inserted
