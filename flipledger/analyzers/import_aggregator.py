"""Merge matched screenshot candidates into a review-ready import list."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, Optional, Sequence

from ..models import CatalogMatch, HoldingRecord, ImportCandidate, MatchedCandidate

logger = logging.getLogger(__name__)

MATCH_SELECT_THRESHOLD = 0.5
EXTRACTION_SELECT_THRESHOLD = 0.7

PriceSource = Callable[[CatalogMatch], int]


class ImportValidationError(ValueError):
    """Raised when a confirmed import has nothing eligible to persist."""


def _catalog_price(match: CatalogMatch) -> int:
    return match.price or 0


def is_preselected(matched: MatchedCandidate) -> bool:
    """A strong extraction or a strong name match is enough, given a match exists."""
    if matched.match is None:
        return False
    return (
        matched.match_confidence > MATCH_SELECT_THRESHOLD
        or matched.candidate.confidence > EXTRACTION_SELECT_THRESHOLD
    )


def _merge(existing: ImportCandidate, incoming: ImportCandidate) -> ImportCandidate:
    """Fold a duplicate catalog hit into the first occurrence."""
    candidate = replace(
        existing.candidate,
        quantity=existing.candidate.quantity + incoming.candidate.quantity,
        confidence=max(existing.candidate.confidence, incoming.candidate.confidence),
    )
    return replace(
        existing,
        candidate=candidate,
        match_confidence=max(existing.match_confidence, incoming.match_confidence),
        selected=existing.selected or incoming.selected,
    )


def build_import_candidates(
    matched: Iterable[MatchedCandidate],
    default_price_source: Optional[PriceSource] = None,
) -> list[ImportCandidate]:
    """Build the review list, one row per resolved catalog item.

    Unmatched candidates are kept (deselected, price 0) so the user can see
    what was recognized. Candidates resolving to the same catalog id are
    merged into the first occurrence with their quantities summed.
    """
    price_source = default_price_source or _catalog_price
    results: list[ImportCandidate] = []
    by_catalog_id: dict[int, int] = {}

    for item in matched:
        suggested = price_source(item.match) if item.match is not None else 0
        row = ImportCandidate(
            candidate=item.candidate,
            match=item.match,
            match_confidence=item.match_confidence,
            selected=is_preselected(item),
            suggested_buy_price=max(int(suggested or 0), 0),
            category_id=None,
        )

        if item.match is None:
            results.append(row)
            continue

        idx = by_catalog_id.get(item.match.id)
        if idx is None:
            by_catalog_id[item.match.id] = len(results)
            results.append(row)
        else:
            logger.debug("Merging duplicate catalog item %d (%s)", item.match.id, item.match.name)
            results[idx] = _merge(results[idx], row)

    return results


def overall_confidence(matched: Sequence[MatchedCandidate]) -> float:
    """Mean extraction confidence of a batch, 0 when nothing was found."""
    if not matched:
        return 0.0
    return sum(m.candidate.confidence for m in matched) / len(matched)


def select_for_submission(candidates: Iterable[ImportCandidate]) -> list[HoldingRecord]:
    """Convert the user's reviewed selection into holdings to persist.

    Raises ImportValidationError if no candidate is both selected and matched.
    """
    holdings = [
        HoldingRecord(
            item_id=c.match.id,
            item_name=c.match.name,
            item_icon=c.match.icon,
            quantity=c.candidate.quantity,
            avg_buy_price=c.suggested_buy_price,
            category_id=c.category_id,
        )
        for c in candidates
        if c.selected and c.match is not None
    ]
    if not holdings:
        raise ImportValidationError("No items to import")
    return holdings
