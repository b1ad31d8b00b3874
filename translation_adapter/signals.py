"""Named hooks exchanged with the editor and presentation layers."""

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

# A target section is ready for adaptation: (target_section_id)
TRANSLATION_POST_MT = "translation-post-mt"
# A link was selected: (identifier, side)
LINK_SELECTED = "link-selected"
# A reference was selected: (source_identifier, side)
REFERENCE_SELECTED = "reference-selected"
# All links and references of a section are adapted: (target_section_id, summary)
ADAPTATION_COMPLETE = "adaptation-complete"
# A section must be added to the translation: (source_section_id, kind)
TRANSLATION_ADD = "translation-add"
# A translated section changed through an engine action: (target_section_id)
TRANSLATION_CHANGE = "translation-change"


class SignalHub:
    """Fire-and-observe hooks.

    Observers are called in registration order. An observer that raises is
    logged and does not stop the others.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)

    def connect(self, name: str, handler: Callable):
        self._handlers[name].append(handler)

    def disconnect(self, name: str, handler: Callable):
        if handler in self._handlers.get(name, []):
            self._handlers[name].remove(handler)

    def fire(self, name: str, *args):
        for handler in list(self._handlers.get(name, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Observer of %s failed", name)
