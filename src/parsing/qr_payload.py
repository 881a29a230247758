# src/parsing/qr_payload.py — v1
"""Decoders for the text embedded in document QR codes.

Transaction QR codes carry either JSON
``{"destination": ..., "items": [{"itemName"|"name", "quantity", "itemType"}]}``
or plain ``name:qty`` entries separated by newlines or ';'. Control-sheet
QR codes carry a JSON array of ``{deliveryDate, destination, model, quantity}``.
Both return None when the text is not a usable payload.
"""

from __future__ import annotations

import json
import math
import logging
import re

from stockscan.core.models import ControlSheetRow, ScannedItem, ScannedTransactionData
from stockscan.parsing.local_parser import detect_item_type

logger = logging.getLogger(__name__)

_ENTRY_SEPARATOR = re.compile(r"\n|;")
_FIELD_SEPARATOR = re.compile(r"[:|,]")
_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def _to_quantity(value: object) -> int:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    # json accepts Infinity, NaN and 1e999
    if not math.isfinite(number):
        return 0
    return int(number)


def _transaction_from_json(parsed: object) -> ScannedTransactionData | None:
    if not isinstance(parsed, dict) or not isinstance(parsed.get("items"), list):
        return None
    items: list[ScannedItem] = []
    for raw in parsed["items"]:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("itemName") or raw.get("name") or "").strip()
        quantity = _to_quantity(raw.get("quantity", 0))
        if not name or quantity <= 0:
            continue
        item_type = "CHAPA" if raw.get("itemType") == "CHAPA" else "MODULO"
        items.append(ScannedItem(item_name=name, quantity=quantity, item_type=item_type))
    destination = parsed.get("destination")
    return ScannedTransactionData(
        destination=str(destination) if destination else None,
        items=items,
    )


def _transaction_from_lines(raw: str) -> ScannedTransactionData | None:
    items: list[ScannedItem] = []
    for segment in _ENTRY_SEPARATOR.split(raw):
        segment = segment.strip()
        if not segment:
            continue
        fields = [f.strip() for f in _FIELD_SEPARATOR.split(segment)]
        if len(fields) < 2 or not fields[0]:
            continue
        match = _LEADING_INT.match(fields[1])
        if match is None:
            continue
        quantity = int(match.group(1))
        if quantity <= 0:
            continue
        items.append(
            ScannedItem(
                item_name=fields[0],
                quantity=quantity,
                item_type=detect_item_type(fields[0]),
            )
        )
    if not items:
        return None
    return ScannedTransactionData(destination=None, items=items)


def parse_qr_transaction(raw: str) -> ScannedTransactionData | None:
    """Decode a transaction QR payload (JSON, else name:qty lines)."""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return _transaction_from_lines(raw)
    return _transaction_from_json(parsed)


def parse_qr_control(raw: str) -> list[ControlSheetRow] | None:
    """Decode a control-sheet QR payload (JSON array only)."""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Control QR payload is not JSON")
        return None
    if not isinstance(parsed, list):
        return None
    rows: list[ControlSheetRow] = []
    for raw_row in parsed:
        if not isinstance(raw_row, dict):
            continue
        date = raw_row.get("deliveryDate")
        model = str(raw_row.get("model") or "").strip()
        quantity = _to_quantity(raw_row.get("quantity", 0))
        if not date or not model or quantity <= 0:
            continue
        destination = raw_row.get("destination")
        rows.append(
            ControlSheetRow(
                delivery_date=str(date),
                destination=str(destination) if destination else None,
                model=model,
                quantity=quantity,
            )
        )
    return rows
