"""Turn raw OCR text from a bank/inventory screenshot into item candidates.

Each line is run through a fixed priority list of extraction strategies
(highest priority first):
1. quantity_first - ``1.2K x Dragon bones``
2. name_first     - ``Dragon bones x 1.2K``
3. name_only      - ``Dragon bones`` (implicit quantity 1)

The first strategy that matches wins. Lines where a quantity was located
score higher because a number next to a name is strong evidence the line
is an item slot rather than interface noise.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from ..models import RecognizedCandidate
from .quantity import parse_quantity

logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 3
MIN_NAME_LENGTH = 3

QUANTITY_FIRST_CONFIDENCE = 0.7
NAME_FIRST_CONFIDENCE = 0.6
NAME_ONLY_CONFIDENCE = 0.4


@dataclass(frozen=True)
class LineMatch:
    """Raw pieces of a line as located by one extraction strategy."""

    name: str
    quantity: int
    confidence: float
    strategy: str


# ---------------------------------------------------------------------------
# Pattern matchers (compiled once)
# ---------------------------------------------------------------------------

_QTY = r"\d[\d,]*(?:\.\d+)?\s?[kmb]?"

_QUANTITY_FIRST_RE = re.compile(
    rf"^(?P<qty>{_QTY})\s*[x×]?\s+(?P<name>.+)$",
    re.IGNORECASE,
)

_NAME_FIRST_RE = re.compile(
    rf"^(?P<name>.+?)\s+[x×]?\s*(?P<qty>{_QTY})$",
    re.IGNORECASE,
)

_DISALLOWED_CHARS_RE = re.compile(r"[^A-Za-z0-9\s\-'()]")
_WHITESPACE_RE = re.compile(r"\s+")

_BARE_NUMBER_RE = re.compile(r"^[\d\s]+$")
_TAB_LABEL_RE = re.compile(r"^tab\s*\d+$", re.IGNORECASE)

# Structural interface labels that show up in bank and inventory captures
_NOISE_WORDS = frozenset({
    "bank",
    "inventory",
    "equipment",
    "total",
    "price",
    "value",
    "quantity",
    "search",
    "tab",
    "deposit",
    "withdraw",
    "settings",
    "close",
    "item",
    "items",
    "name",
    "grand exchange",
})


# ---------------------------------------------------------------------------
# Extraction strategies
# ---------------------------------------------------------------------------

def quantity_first(line: str) -> Optional[LineMatch]:
    match = _QUANTITY_FIRST_RE.match(line)
    if not match:
        return None
    return LineMatch(
        name=match.group("name"),
        quantity=parse_quantity(match.group("qty")),
        confidence=QUANTITY_FIRST_CONFIDENCE,
        strategy="quantity_first",
    )


def name_first(line: str) -> Optional[LineMatch]:
    match = _NAME_FIRST_RE.match(line)
    if not match:
        return None
    return LineMatch(
        name=match.group("name"),
        quantity=parse_quantity(match.group("qty")),
        confidence=NAME_FIRST_CONFIDENCE,
        strategy="name_first",
    )


def name_only(line: str) -> Optional[LineMatch]:
    return LineMatch(
        name=line,
        quantity=1,
        confidence=NAME_ONLY_CONFIDENCE,
        strategy="name_only",
    )


EXTRACTION_STRATEGIES: tuple[Callable[[str], Optional[LineMatch]], ...] = (
    quantity_first,
    name_first,
    name_only,
)


# ---------------------------------------------------------------------------
# Name cleanup
# ---------------------------------------------------------------------------

def sanitize_name(raw: str) -> str:
    """Keep letters, digits, whitespace, hyphens, apostrophes and parentheses.

    Idempotent: sanitizing an already sanitized name returns it unchanged.
    """
    cleaned = _DISALLOWED_CHARS_RE.sub("", raw)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def is_noise(name: str) -> bool:
    """True for names that are interface chrome rather than items."""
    if len(name) < MIN_NAME_LENGTH:
        return True
    lowered = name.lower()
    if lowered in _NOISE_WORDS:
        return True
    return bool(_BARE_NUMBER_RE.match(name) or _TAB_LABEL_RE.match(name))


def extract_line(line: str) -> Optional[LineMatch]:
    """Run the strategies against one trimmed line; None if it is noise."""
    for strategy in EXTRACTION_STRATEGIES:
        found = strategy(line)
        if found is None:
            continue
        name = sanitize_name(found.name)
        if is_noise(name):
            logger.debug("Discarding noise line %r (%s)", line, found.strategy)
            return None
        return LineMatch(name, found.quantity, found.confidence, found.strategy)
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_lines(raw_text: str) -> Iterator[RecognizedCandidate]:
    """Yield item candidates from OCR text in source line order.

    This is a generator: it can be consumed once. Wrap it in ``list()`` to
    keep the results.
    """
    for raw_line in (raw_text or "").splitlines():
        line = raw_line.strip()
        if len(line) < MIN_LINE_LENGTH:
            continue
        found = extract_line(line)
        if found is None:
            continue
        yield RecognizedCandidate(
            name=found.name,
            quantity=found.quantity,
            confidence=found.confidence,
        )
