# src/parsing/normalization.py — v1
"""Item and partner name normalization.

Applied to every tier's output before it is cached, so QR, OCR and remote
results for the same article end up with the same spelling.
"""

from __future__ import annotations

import re
import unicodedata

from stockscan.core.models import (
    ControlSheetRow,
    ScannedItem,
    ScannedTransactionData,
    ScanPayload,
)

# Common OCR misreads of model codes.
TOKEN_CORRECTIONS: dict[str, str] = {
    "LM200": "LM200",
    "CM200": "LM200",
    "IM200": "LM200",
}

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_TOKEN_SEPARATORS = re.compile(r"[\s_-]+")


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value.strip())


def remove_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _correct_token(token: str) -> str:
    sanitized = _NON_ALNUM.sub("", token).upper()
    return TOKEN_CORRECTIONS.get(sanitized, token)


def _format_token(token: str) -> str:
    if not token:
        return token
    if any(ch.isdigit() for ch in token):
        return _correct_token(_TOKEN_SEPARATORS.sub("", token).upper())
    if len(token) <= 3:
        return token.upper()
    return token[0].upper() + token[1:].lower()


def normalize_item_name(raw: str) -> str:
    """Canonical display form of an article name.

    Tokens with digits are upper-cased and de-hyphenated ("lm-200" -> "LM200"),
    short words are upper-cased ("hex" -> "HEX"), longer words capitalized.
    """
    tokens = [t for t in collapse_whitespace(raw).split(" ") if t]
    return " ".join(_correct_token(_format_token(t)) for t in tokens)


def canonical_item_key(raw: str) -> str:
    """Comparison key: no diacritics, no punctuation, upper case."""
    return _NON_ALNUM.sub("", remove_diacritics(raw)).upper()


def are_item_names_equivalent(a: str, b: str) -> bool:
    return canonical_item_key(a) == canonical_item_key(b)


def normalize_partner_name(raw: str) -> str:
    return collapse_whitespace(raw)


def normalize_transaction(data: ScannedTransactionData) -> ScannedTransactionData:
    """Normalize names and merge duplicate articles, summing quantities."""
    merged: dict[str, ScannedItem] = {}
    for item in data.items:
        name = normalize_item_name(item.item_name)
        key = canonical_item_key(name)
        if key in merged:
            merged[key].quantity += item.quantity
        else:
            merged[key] = ScannedItem(
                item_name=name, quantity=item.quantity, item_type=item.item_type
            )
    return ScannedTransactionData(
        destination=normalize_partner_name(data.destination) if data.destination else None,
        items=list(merged.values()),
    )


def normalize_control_rows(rows: list[ControlSheetRow]) -> list[ControlSheetRow]:
    return [
        ControlSheetRow(
            delivery_date=row.delivery_date,
            destination=normalize_partner_name(row.destination) if row.destination else None,
            model=normalize_item_name(row.model),
            quantity=row.quantity,
        )
        for row in rows
    ]


def normalize_payload(payload: ScanPayload) -> ScanPayload:
    if isinstance(payload, ScannedTransactionData):
        return normalize_transaction(payload)
    return normalize_control_rows(payload)
