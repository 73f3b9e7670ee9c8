"""Screenshot import pipeline: extraction -> catalog matching -> review list.

Collaborators are injected:
    search_fn(query) -> list of catalog entries (CatalogMatch or dict)
    ocr_fn(image_bytes) -> (raw_text, confidence)
    sink(list[HoldingRecord]) -> Any    # persistence
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from .analyzers.catalog_matcher import SearchFn, match_candidates
from .analyzers.import_aggregator import (
    PriceSource,
    build_import_candidates,
    overall_confidence,
    select_for_submission,
)
from .config import DEFAULT_VISION_MODEL
from .extraction.screenshot_extractor import (
    ExtractionResult,
    extract_items_from_screenshot,
    extract_items_from_text,
)
from .models import HoldingRecord, ImportCandidate

logger = logging.getLogger(__name__)

OcrFn = Callable[[bytes], tuple[str, Any]]
HoldingsSink = Callable[[list[HoldingRecord]], Any]


@dataclass
class ImportPreview:
    """What the review screen shows after a screenshot upload."""

    candidates: list[ImportCandidate] = field(default_factory=list)
    raw_text: str = ""
    overall_confidence: float = 0.0
    method: str = "ai"
    error: Optional[str] = None


def _build_preview(
    extraction: ExtractionResult,
    search_fn: SearchFn,
    default_price_source: Optional[PriceSource],
) -> ImportPreview:
    matched = match_candidates(extraction.candidates, search_fn)
    return ImportPreview(
        candidates=build_import_candidates(matched, default_price_source),
        raw_text=extraction.raw_text,
        overall_confidence=overall_confidence(matched),
        method=extraction.method,
        error=extraction.error,
    )


def preview_text_import(
    raw_text: str,
    search_fn: SearchFn,
    ocr_confidence: Any = 1.0,
    default_price_source: Optional[PriceSource] = None,
) -> ImportPreview:
    """Build a review list from text already produced by an OCR engine."""
    extraction = extract_items_from_text(raw_text, ocr_confidence)
    return _build_preview(extraction, search_fn, default_price_source)


def preview_screenshot_import(
    image_bytes: bytes,
    search_fn: SearchFn,
    ocr_fn: Optional[OcrFn] = None,
    *,
    api_key: Optional[str] = None,
    model: str = DEFAULT_VISION_MODEL,
    default_price_source: Optional[PriceSource] = None,
) -> ImportPreview:
    """Build a review list from an uploaded screenshot.

    Claude Vision is tried first; if it is unavailable or fails and an OCR
    collaborator was supplied, the OCR text path is used instead.
    """
    extraction = extract_items_from_screenshot(image_bytes, api_key=api_key, model=model)

    if not extraction.success and ocr_fn is not None:
        logger.warning("Vision failed, falling back to OCR: %s", extraction.error)
        try:
            raw_text, confidence = ocr_fn(image_bytes)
        except Exception as e:
            logger.warning("OCR fallback failed: %s", e)
            return ImportPreview(method="ocr", error=str(e))
        extraction = extract_items_from_text(raw_text, confidence)

    preview = _build_preview(extraction, search_fn, default_price_source)
    logger.info(
        "Screenshot import preview: %d candidates via %s (overall confidence %.2f)",
        len(preview.candidates), preview.method, preview.overall_confidence,
    )
    return preview


def confirm_import(candidates: Iterable[ImportCandidate], sink: HoldingsSink) -> list[HoldingRecord]:
    """Persist the selected, matched candidates.

    Raises ImportValidationError before touching the sink when nothing is eligible.
    """
    holdings = select_for_submission(candidates)
    sink(holdings)
    logger.info("Imported %d holdings from screenshot", len(holdings))
    return holdings
