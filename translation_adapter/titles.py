"""Page title normalization.

Every cache read, cache write and batch lookup goes through
:func:`normalize_title`. The rules follow the wiki's own title handling:
underscores and spaces are equivalent, runs of whitespace collapse, the
fragment is not part of the title, and the first letter of the page name is
uppercased.
"""

import re
from typing import Optional

from .errors import InvalidTitleError


# Characters the wiki never accepts in a title
ILLEGAL_CHARS = re.compile(r"[<>\[\]|{}]")

WHITESPACE = re.compile(r"[\s_]+")

# Page names are limited to this many bytes of UTF-8, namespace excluded
MAX_TITLE_BYTES = 255

# Canonical namespace names, keyed by lowercase name or alias
NAMESPACES = {
    "talk": "Talk",
    "user": "User",
    "user talk": "User talk",
    "project": "Wikipedia",
    "wikipedia": "Wikipedia",
    "wp": "Wikipedia",
    "file": "File",
    "image": "File",
    "mediawiki": "MediaWiki",
    "template": "Template",
    "help": "Help",
    "category": "Category",
    "portal": "Portal",
    "special": "Special",
}


def _check_length(name: str, raw: str):
    if len(name.encode("utf-8")) > MAX_TITLE_BYTES:
        raise InvalidTitleError(f"Title longer than {MAX_TITLE_BYTES} bytes: {raw[:40]!r}")


def _upper_first(text: str) -> str:
    if not text:
        return text
    return text[0].upper() + text[1:]


def normalize_title(raw: str, capitalize: bool = True) -> str:
    """Map a raw title to its canonical comparison key.

    Args:
        raw: Title as written in markup, a search box or a selection
        capitalize: Apply the first-letter uppercase rule

    Returns:
        Canonical title text

    Raises:
        InvalidTitleError: If nothing usable remains, illegal characters are
            present or the page name is too long
    """
    if raw is None:
        raise InvalidTitleError("Title is missing")

    title = raw.split("#", 1)[0]
    title = WHITESPACE.sub(" ", title).strip()
    title = title.lstrip(":").strip()

    if not title:
        raise InvalidTitleError(f"Empty title: {raw!r}")
    if ILLEGAL_CHARS.search(title):
        raise InvalidTitleError(f"Illegal characters in title: {raw!r}")

    prefix, sep, rest = title.partition(":")
    namespace = NAMESPACES.get(prefix.strip().lower()) if sep else None
    if namespace:
        rest = rest.strip()
        if not rest:
            raise InvalidTitleError(f"Namespace without page name: {raw!r}")
        _check_length(rest, raw)
        return f"{namespace}:{_upper_first(rest) if capitalize else rest}"

    _check_length(title, raw)
    return _upper_first(title) if capitalize else title


def valid_title(text: Optional[str]) -> Optional[str]:
    """Get a normalized title from free text, or None if it cannot be a title."""
    if text is None:
        return None
    try:
        return normalize_title(text.strip())
    except InvalidTitleError:
        return None
