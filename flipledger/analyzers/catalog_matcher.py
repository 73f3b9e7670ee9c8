"""Resolve recognized item names against the live item catalog.

The catalog search itself is an injected collaborator (``search_fn``) that
owns ranking, transport and timeouts. This module only decides how much to
trust the top result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from ..models import CatalogMatch, MatchedCandidate, RecognizedCandidate

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Sequence[Any]]

EXACT_MATCH_SCORE = 1.0
CONTAINMENT_SCORE = 0.9
MIN_SIMILARITY = 0.3


def name_similarity(a: str, b: str) -> float:
    """Score how alike two item names are, between 0.3 and 1.0.

    Exact (case-insensitive) equality scores 1.0, containment either way
    scores 0.9, otherwise a Dice coefficient over whitespace tokens is used,
    floored so a weak match is never reported as zero.
    """
    left = a.strip().lower()
    right = b.strip().lower()
    if left == right:
        return EXACT_MATCH_SCORE
    if left and right and (left in right or right in left):
        return CONTAINMENT_SCORE

    tokens_a = set(left.split())
    tokens_b = set(right.split())
    if not tokens_a or not tokens_b:
        return MIN_SIMILARITY
    common = tokens_a & tokens_b
    overlap = 2 * len(common) / (len(tokens_a) + len(tokens_b))
    return max(overlap, MIN_SIMILARITY)


def _top_result(results: Optional[Iterable[Any]]) -> Optional[CatalogMatch]:
    """First conforming entry of a search result list."""
    for payload in results or ():
        match = CatalogMatch.from_payload(payload)
        if match is not None:
            return match
        logger.debug("Skipping non-conforming catalog entry: %r", payload)
    return None


def find_top_match(query: str, search_fn: SearchFn) -> Optional[CatalogMatch]:
    """Top conforming catalog hit for query; search failures yield None."""
    try:
        return _top_result(search_fn(query))
    except Exception as e:
        logger.warning("Catalog search failed for %r: %s", query, e)
        return None


def match_candidates(
    candidates: Iterable[RecognizedCandidate],
    search_fn: SearchFn,
) -> list[MatchedCandidate]:
    """Look up every candidate in the catalog, preserving input order.

    A failed or empty lookup degrades to an unmatched candidate with zero
    confidence and never aborts the rest of the batch.
    """
    # Per-batch memo so duplicate lines in one screenshot cost a single lookup
    seen: dict[str, Optional[CatalogMatch]] = {}
    matched: list[MatchedCandidate] = []

    for candidate in candidates:
        key = candidate.name.strip().lower()
        if key not in seen:
            seen[key] = find_top_match(candidate.name, search_fn)
        match = seen[key]

        if match is None:
            matched.append(MatchedCandidate(candidate, None, 0.0))
            continue

        similarity = name_similarity(candidate.name, match.name)
        matched.append(MatchedCandidate(
            candidate=candidate,
            match=match,
            match_confidence=similarity * candidate.confidence,
        ))

    logger.info(
        "Matched %d/%d candidates against the catalog",
        sum(1 for m in matched if m.match is not None), len(matched),
    )
    return matched
