"""Translation Adapter.

Adapts the links and references of a translated wiki article to the
translation language.
"""

from .coordinator import AdaptationCoordinator
from .main import ContentAdapter
from .models import AdaptationResult, LinkState, ReferenceState, Side
from .session import AdaptationSession

__version__ = "0.1.0"
__all__ = [
    "AdaptationCoordinator",
    "AdaptationResult",
    "AdaptationSession",
    "ContentAdapter",
    "LinkState",
    "ReferenceState",
    "Side",
]
