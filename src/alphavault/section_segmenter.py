"""8-K Item segmenter — bounds extraction to one "Item X.XX" section.

Current reports are organised by numbered items ("Item 1.01", "Item 5.02" …).
Field extraction for an item runs only inside that item's span so that
values cannot bleed in from neighbouring items.

Algorithm (stateless, single pass):
  1.  Find the first case-insensitive "Item <number>" heading.
  2.  From the end of that heading, search for the next generic
      "Item N.NN" heading.
  3.  Return the text from the heading up to (not including) the next
      heading, or at most ``cap`` characters if there is none.

Only the first occurrence of an item number is used.  Repeated headings
and item references quoted inside exhibits are not disambiguated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Patterns
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_SECTION_CAP = 5000
DEFAULT_EXCERPT_LENGTH = 2000

# Generic heading: "Item 2.01", "ITEM 5.02." …
_ANY_ITEM_RE = re.compile(r"Item\s+\d+\.\d+", re.IGNORECASE)

# Heading with the rest of its line: number, separator, description
_ITEM_LINE_RE = re.compile(
    r"Item\s+(\d+\.\d+)"                 # capture item number
    r"[.:\s\-–—]*"                     # separator
    r"([^\n]*)",                          # rest of line
    re.IGNORECASE,
)


def _item_re(item_number: str) -> re.Pattern[str]:
    """Heading regex for one item; "1.01" does not match "1.011"."""
    return re.compile(rf"Item\s+{re.escape(item_number)}\b", re.IGNORECASE)


# ═══════════════════════════════════════════════════════════════════════════
#  Headings
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ItemHeading:
    """An "Item N.NN" heading found in the filing text."""

    item_number: str
    description: str


def find_item_headings(text: str) -> list[ItemHeading]:
    """Every item heading in document order (repeats included)."""
    if not text:
        return []
    return [
        ItemHeading(m.group(1), m.group(2).strip())
        for m in _ITEM_LINE_RE.finditer(text)
    ]


def item_present(text: str, item_number: str) -> bool:
    """True if an "Item <number>" heading occurs anywhere in the text."""
    return bool(text) and _item_re(item_number).search(text) is not None


# ═══════════════════════════════════════════════════════════════════════════
#  Section extraction
# ═══════════════════════════════════════════════════════════════════════════

def extract_item_section(
    text: str,
    item_number: str,
    cap: int = DEFAULT_SECTION_CAP,
) -> str:
    """Text of one item: from its heading up to the next item heading.

    Returns "" when the item is absent.  Without a following heading the
    span is truncated at ``cap`` characters.
    """
    if not text:
        return ""
    start = _item_re(item_number).search(text)
    if not start:
        return ""

    nxt = _ANY_ITEM_RE.search(text, start.end())
    if nxt:
        return text[start.start():nxt.start()]

    log.debug("Item %s has no following heading, capping at %d chars", item_number, cap)
    return text[start.start():start.start() + cap]


def extract_item_excerpt(
    text: str,
    item_number: str,
    length: int = DEFAULT_EXCERPT_LENGTH,
) -> str:
    """Heading plus the next ``length`` characters, ignoring item boundaries."""
    if not text:
        return ""
    start = _item_re(item_number).search(text)
    if not start:
        return ""
    return text[start.start():start.end() + length]
