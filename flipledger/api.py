"""FastAPI surface for flip economics, screenshot import and trading profiles.

The catalog search, OCR engine and holdings store are injected through
``create_app`` so the service never reaches for global state.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .analyzers.catalog_matcher import SearchFn
from .analyzers.import_aggregator import ImportValidationError
from .analyzers.trading_profile import synthesize
from .config import Settings, load_settings
from .models import CatalogMatch, ImportCandidate, RecognizedCandidate, Trade
from .narrative.recommender import HistoryFn, generate_recommendations
from .pipeline import (
    HoldingsSink,
    ImportPreview,
    OcrFn,
    confirm_import,
    preview_screenshot_import,
    preview_text_import,
)
from .tax import calculate_flip

logger = logging.getLogger(__name__)


# ─── Request models ──────────────────────────────────────────────────────────


class TaxRequest(BaseModel):
    sell_price: int
    buy_price: int
    quantity: int = 1
    item_id: Optional[int] = None
    item_name: Optional[str] = None


class TextImportRequest(BaseModel):
    raw_text: str
    ocr_confidence: float = 1.0


class ConfirmItem(BaseModel):
    item_id: Optional[int] = None
    item_name: str
    item_icon: Optional[str] = None
    quantity: int = Field(ge=1)
    avg_buy_price: int = Field(ge=0)
    category_id: Optional[str] = None
    selected: bool = True


class ConfirmRequest(BaseModel):
    items: list[ConfirmItem]


class TradeIn(BaseModel):
    item_name: str
    buy_price: int
    quantity: int
    bought_at: datetime
    sell_price: Optional[int] = None
    sold_at: Optional[datetime] = None
    item_id: Optional[int] = None
    strategy_tag: Optional[str] = None
    is_members: bool = True
    deleted_at: Optional[datetime] = None

    def to_trade(self) -> Trade:
        return Trade(**self.model_dump())


class TradesRequest(BaseModel):
    trades: list[TradeIn]
    now: Optional[datetime] = None


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _candidate_out(c: ImportCandidate) -> dict[str, Any]:
    return {
        "original": asdict(c.candidate),
        "match": asdict(c.match) if c.match is not None else None,
        "match_confidence": round(c.match_confidence, 4),
        "selected": c.selected,
        "suggested_buy_price": c.suggested_buy_price,
        "category_id": c.category_id,
    }


def _preview_out(preview: ImportPreview) -> dict[str, Any]:
    return {
        "items": [_candidate_out(c) for c in preview.candidates],
        "raw_text": preview.raw_text,
        "overall_confidence": round(preview.overall_confidence, 4),
        "method": preview.method,
        "error": preview.error,
    }


def _to_candidate(item: ConfirmItem) -> ImportCandidate:
    match = None
    if item.item_id is not None:
        match = CatalogMatch(id=item.item_id, name=item.item_name, icon=item.item_icon)
    return ImportCandidate(
        candidate=RecognizedCandidate(name=item.item_name, quantity=item.quantity, confidence=1.0),
        match=match,
        match_confidence=1.0 if match else 0.0,
        selected=item.selected,
        suggested_buy_price=item.avg_buy_price,
        category_id=item.category_id,
    )


# ─── App factory ─────────────────────────────────────────────────────────────


def create_app(
    search_fn: SearchFn,
    holdings_sink: HoldingsSink,
    ocr_fn: Optional[OcrFn] = None,
    history_fn: Optional[HistoryFn] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
    logger.info(
        "[STARTUP] Env check: ANTHROPIC_API_KEY=%s, OCR fallback=%s",
        "set" if settings.anthropic_api_key else "missing",
        "enabled" if ocr_fn else "disabled",
    )

    app = FastAPI(
        title="FlipLedger",
        description="Grand Exchange flip economics and screenshot import",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "vision": bool(settings.anthropic_api_key)}

    @app.post("/tax")
    def tax(req: TaxRequest) -> dict[str, Any]:
        result = calculate_flip(
            req.sell_price, req.buy_price, req.quantity,
            item_id=req.item_id, item_name=req.item_name,
        )
        return asdict(result)

    @app.post("/import/text")
    def import_text(req: TextImportRequest) -> dict[str, Any]:
        preview = preview_text_import(req.raw_text, search_fn, req.ocr_confidence)
        return _preview_out(preview)

    @app.post("/import/screenshot")
    async def import_screenshot(screenshot: UploadFile = File(...)) -> dict[str, Any]:
        image_bytes = await screenshot.read()
        if not image_bytes:
            raise HTTPException(status_code=400, detail="No screenshot uploaded")
        preview = preview_screenshot_import(
            image_bytes,
            search_fn,
            ocr_fn,
            api_key=settings.anthropic_api_key,
            model=settings.vision_model,
        )
        return _preview_out(preview)

    @app.post("/import/confirm", status_code=201)
    def import_confirm(req: ConfirmRequest) -> list[dict[str, Any]]:
        try:
            holdings = confirm_import([_to_candidate(i) for i in req.items], holdings_sink)
        except ImportValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return [asdict(h) for h in holdings]

    @app.post("/profile")
    def profile(req: TradesRequest) -> dict[str, Any]:
        return asdict(synthesize([t.to_trade() for t in req.trades], now=req.now))

    @app.post("/recommendations")
    def recommendations(req: TradesRequest) -> list[dict[str, Any]]:
        trades = [t.to_trade() for t in req.trades]
        recs = generate_recommendations(
            synthesize(trades, now=req.now),
            trades,
            search_fn,
            api_key=settings.anthropic_api_key,
            model=settings.recommendation_model,
            history_fn=history_fn,
        )
        return [asdict(r) for r in recs]

    return app
