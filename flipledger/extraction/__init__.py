"""Screenshot extraction boundary: vision and OCR output normalized into candidates."""

from .screenshot_extractor import (
    ExtractionResult,
    detect_media_type,
    extract_items_from_screenshot,
    extract_items_from_text,
    normalize_confidence,
    normalize_vision_items,
)

__all__ = [
    "ExtractionResult",
    "detect_media_type",
    "extract_items_from_screenshot",
    "extract_items_from_text",
    "normalize_confidence",
    "normalize_vision_items",
]
