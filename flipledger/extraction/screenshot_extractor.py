"""Extract item stacks from bank/inventory screenshots.

Two sources feed the same candidate shape:
- Claude Vision, which returns loosely structured JSON
- a plain OCR engine, whose raw text goes through the line parser

Both are normalized here, at the boundary, so nothing downstream has to
care which one produced a candidate.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import anthropic

from ..config import DEFAULT_VISION_MODEL
from ..models import RecognizedCandidate
from ..parsers.quantity import parse_quantity
from ..parsers.text_lines import parse_lines

logger = logging.getLogger(__name__)

DEFAULT_ITEM_CONFIDENCE = 0.5

EXTRACTION_PROMPT = """\
You are identifying items from a RuneScape 3 (RS3) bank or inventory screenshot.

Screenshot characteristics:
- Items appear in a grid of slots
- Each slot shows an item icon with a quantity overlay (usually in the corner)
- Quantities may be abbreviated: K = thousands, M = millions, B = billions
- Stackable items show one slot with a large number; others repeat across slots

For each unique item, extract:
- name: the official RS3 item name (e.g. "Rune platebody", "Dragon bones")
- quantity: total quantity as a full number ("12.5K" becomes 12500)
- confidence: 0 to 1, how sure you are of the identification
- notes: optional, only for uncertain identifications

Return ONLY valid JSON in this exact format, no other text:
{
    "items": [
        {"name": "Dragon bones", "quantity": 1200, "confidence": 0.95, "notes": null}
    ]
}

Rules:
- Do NOT guess items that aren't visible
- If the screenshot doesn't show items, return {"items": []}
"""


@dataclass
class ExtractionResult:
    """Candidates recognized from one screenshot, plus what produced them."""

    candidates: list[RecognizedCandidate] = field(default_factory=list)
    raw_text: str = ""
    success: bool = True
    method: str = "ai"  # "ai" | "ocr"
    ocr_confidence: Optional[float] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def normalize_confidence(value: Any, default: float = DEFAULT_ITEM_CONFIDENCE) -> float:
    """Clamp a confidence into 0..1, accepting either a 0..1 or 0..100 scale."""
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return default
    if conf != conf:  # NaN
        return default
    if conf > 1.0:
        conf /= 100.0
    return min(max(conf, 0.0), 1.0)


def normalize_vision_items(payload: Any) -> list[RecognizedCandidate]:
    """Coerce a vision response (``{"items": [...]}``) into candidates.

    Entries without a usable name are dropped; everything else gets a safe
    default rather than being rejected.
    """
    if isinstance(payload, dict):
        items = payload.get("items")
    else:
        items = payload
    if not isinstance(items, list):
        return []

    candidates: list[RecognizedCandidate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name") or "").strip()
        if not name:
            continue
        notes = item.get("notes")
        candidates.append(RecognizedCandidate(
            name=name,
            quantity=parse_quantity(item.get("quantity")),
            confidence=normalize_confidence(item.get("confidence")),
            notes=str(notes) if notes else None,
        ))
    return candidates


def detect_media_type(image_bytes: bytes) -> str:
    """Sniff the image format from magic bytes, defaulting to PNG."""
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    if image_bytes[:2] == b"\x89P":
        return "image/png"
    if image_bytes[:2] == b"GI":
        return "image/gif"
    if image_bytes[:2] == b"RI":
        return "image/webp"
    return "image/png"


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip().rsplit("```", 1)[0]
    return cleaned.strip()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_items_from_screenshot(
    image_bytes: bytes,
    media_type: Optional[str] = None,
    api_key: Optional[str] = None,
    model: str = DEFAULT_VISION_MODEL,
) -> ExtractionResult:
    """Identify items in a screenshot using Claude Vision.

    Never raises: a missing key, an API error or an unparseable response all
    come back as ``success=False`` so the caller can fall back to OCR.
    """
    if not api_key:
        return ExtractionResult(success=False, error="ANTHROPIC_API_KEY is not set")

    media_type = media_type or detect_media_type(image_bytes)
    base64_image = base64.standard_b64encode(image_bytes).decode("utf-8")

    try:
        client = anthropic.Anthropic(api_key=api_key)
        response = client.messages.create(
            model=model,
            max_tokens=4096,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": base64_image,
                            },
                        },
                        {"type": "text", "text": EXTRACTION_PROMPT},
                    ],
                }
            ],
        )
        response_text = response.content[0].text
    except Exception as e:
        logger.warning("Vision extraction failed: %s", e)
        return ExtractionResult(success=False, error=str(e))

    cleaned = _strip_code_fences(response_text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("Failed to parse Vision response: %s", cleaned[:200])
        return ExtractionResult(
            raw_text=response_text,
            success=False,
            error=f"Failed to parse response: {cleaned[:200]}",
        )

    candidates = normalize_vision_items(payload)
    logger.info("Vision identified %d items", len(candidates))
    return ExtractionResult(candidates=candidates, raw_text=response_text, method="ai")


def extract_items_from_text(raw_text: str, ocr_confidence: Any = None) -> ExtractionResult:
    """Run OCR output through the line parser.

    ``ocr_confidence`` is the engine's overall score on either a 0..1 or a
    0..100 scale; it is reported, not folded into per-line confidences.
    """
    candidates = list(parse_lines(raw_text))
    return ExtractionResult(
        candidates=candidates,
        raw_text=raw_text or "",
        method="ocr",
        ocr_confidence=normalize_confidence(ocr_confidence, default=0.0),
    )
