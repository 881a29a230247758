# src/llm/models.py — v2
"""Remote-tier types: the raw provider response and its decoding.

Providers are asked for JSON; decoding into payload models lives here so
every adapter shares the same tolerance rules (numeric strings, float
quantities, snake_case keys from older prompts).
"""

from __future__ import annotations

import json
import math
from typing import Any

from pydantic import BaseModel

from stockscan.core.models import ControlSheetRow, ScannedItem, ScannedTransactionData


class RemoteResponse(BaseModel):
    """Normalized response from any remote provider."""

    content: str
    model: str
    provider: str
    latency_ms: int
    input_tokens: int = 0
    output_tokens: int = 0
    raw_response: Any = None


class RemoteResponseError(ValueError):
    """The provider answered with something that is not the expected JSON."""


def _load_json(content: str) -> Any:
    text = content.strip()
    # Some models wrap JSON in a markdown fence.
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise RemoteResponseError(f"Remote response is not valid JSON: {e}") from e


def _as_quantity(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return abs(int(number))


def decode_transaction(content: str) -> ScannedTransactionData:
    """Decode a transaction extraction; a missing items list means no data."""
    data = _load_json(content)
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        return ScannedTransactionData()

    items: list[ScannedItem] = []
    for raw in data["items"]:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("itemName") or raw.get("name") or "").strip()
        quantity = _as_quantity(raw.get("quantity"))
        if not name or quantity == 0:
            continue
        item_type = str(raw.get("itemType") or "").upper()
        if item_type not in ("CHAPA", "MODULO"):
            item_type = "CHAPA" if "chapa" in name.lower() else "MODULO"
        items.append(ScannedItem(item_name=name, quantity=quantity, item_type=item_type))

    destination = data.get("destination")
    return ScannedTransactionData(
        destination=(str(destination).strip() or None) if destination else None,
        items=items,
    )


def decode_control_sheet(content: str) -> list[ControlSheetRow]:
    """Decode a control-sheet extraction into rows, skipping incomplete ones."""
    data = _load_json(content)
    if isinstance(data, dict):
        data = data.get("rows", [])
    if not isinstance(data, list):
        raise RemoteResponseError("Control sheet response must be a JSON array")

    rows: list[ControlSheetRow] = []
    for raw in data:
        if not isinstance(raw, dict):
            continue
        date = raw.get("deliveryDate") or raw.get("fecha_entrega")
        model = raw.get("model") or raw.get("modelo")
        quantity = _as_quantity(raw.get("quantity", raw.get("cantidad_kits")))
        if not date or not model or quantity == 0:
            continue
        destination = raw.get("destination") or raw.get("destino")
        rows.append(
            ControlSheetRow(
                delivery_date=str(date).strip(),
                destination=str(destination).strip() if destination else None,
                model=str(model).strip(),
                quantity=quantity,
            )
        )
    return rows
