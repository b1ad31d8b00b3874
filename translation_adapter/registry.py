"""Identifier-based correspondence between source and target entities."""

from typing import Dict, Optional

from .models import Side, TARGET_ID_PREFIX


def base_identifier(identifier: str, side: Side) -> str:
    """Strip the tree marker from a target-side identifier."""
    if side is Side.TARGET and identifier.startswith(TARGET_ID_PREFIX):
        return identifier[len(TARGET_ID_PREFIX):]
    return identifier


class CorrespondenceRegistry:
    """Bidirectional index ``identifier -> {source entity, target entity}``.

    Entities register themselves when they are bound to a tree node. Entities
    must expose ``identifier`` (the base identifier) and ``side``.
    """

    def __init__(self):
        self._entries: Dict[str, Dict[Side, object]] = {}

    def register(self, entity):
        if not entity.identifier:
            return
        self._entries.setdefault(entity.identifier, {})[entity.side] = entity

    def unregister(self, entity):
        entry = self._entries.get(entity.identifier)
        if entry and entry.get(entity.side) is entity:
            del entry[entity.side]
            if not entry:
                del self._entries[entity.identifier]

    def lookup(self, identifier: str, side: Side):
        """Entity registered for a base identifier on one side, or None."""
        entry = self._entries.get(identifier, {})
        return entry.get(side)

    def counterpart(self, entity) -> Optional[object]:
        entry = self._entries.get(entity.identifier, {})
        return entry.get(entity.side.other)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self):
        self._entries.clear()
