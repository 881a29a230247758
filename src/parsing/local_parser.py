# src/parsing/local_parser.py — v1
"""Heuristic parser turning raw OCR text into structured items or rows.

Transaction mode (INCOME/OUTCOME):
  - a destination line contains "destino", "señor(es)" or "sr."; the text
    after the keyword is the partner name and the line yields no item
  - any other line: noise is stripped, the last integer is the quantity
    (absolute value) and what remains is the item name (min. 3 chars)

Control-sheet mode (CONTROL):
  - a row needs a date (d/m, d/m/yy or d/m/yyyy) and a trailing integer
  - the rest splits into destination and model by " - ", by a run of two or
    more spaces, or (3+ words with a real word in them) by taking the last
    two words as the model
  - rows without a destination inherit the last one seen above them

The parser never raises: lines that do not qualify are skipped and an empty
result is a valid answer.
"""

from __future__ import annotations

import re

from stockscan.core.models import (
    ControlSheetRow,
    DocumentType,
    ItemType,
    ScannedItem,
    ScannedTransactionData,
    ScanPayload,
)

_NOISE = re.compile(r"[^A-Za-z0-9ÁÉÍÓÚÜÑáéíóúüñ/\-\s]")
_DESTINATION = re.compile(r"destino|señor(?:es)?|\bsra?\.", re.IGNORECASE)
_DESTINATION_PREFIX = re.compile(
    r"^.*?(?:destino|señor(?:es)?|\bsra?\.)\s*:?\s*", re.IGNORECASE
)
_ITEM_QUANTITY = re.compile(r"(-?\d{1,5})(?!.*\d)")
_ROW_QUANTITY = re.compile(r"(\d{1,5})(?!.*\d)")
_DATE = re.compile(r"\d{1,2}/\d{1,2}(?:/\d{2,4})?")
_WIDE_GAP = re.compile(r"\s{2,}")
_WORD = re.compile(r"[^\W\d_]{3,}")

_MIN_NAME_LENGTH = 3
_MIN_ROW_LENGTH = 5


def clean_line(line: str) -> str:
    """Drop everything except letters, digits, '/', '-' and whitespace."""
    return _NOISE.sub("", line).strip()


def split_lines(text: str) -> list[str]:
    return [line.strip() for line in re.split(r"\r?\n", text) if line.strip()]


def detect_item_type(name: str) -> ItemType:
    if "chapa" in name.lower():
        return "CHAPA"
    return "MODULO"


def _blank(text: str, span: tuple[int, int]) -> str:
    start, end = span
    return text[:start] + " " * (end - start) + text[end:]


def _collapse(text: str) -> str:
    return " ".join(text.split())


def is_destination_line(line: str) -> bool:
    return bool(_DESTINATION.search(line))


def extract_destination(lines: list[str]) -> str | None:
    """Partner name from the first destination line, if any."""
    for line in lines:
        if is_destination_line(line):
            value = _collapse(_DESTINATION_PREFIX.sub("", line, count=1))
            return value or None
    return None


def parse_item_line(raw_line: str) -> ScannedItem | None:
    line = clean_line(raw_line)
    match = _ITEM_QUANTITY.search(line)
    if match is None:
        return None
    quantity = abs(int(match.group(1)))
    if quantity == 0:
        return None
    name = _collapse(_blank(line, match.span(1)))
    if len(name) < _MIN_NAME_LENGTH:
        return None
    return ScannedItem(item_name=name, quantity=quantity, item_type=detect_item_type(name))


def parse_transaction_text(text: str) -> ScannedTransactionData:
    """Parse OCR text of a delivery note or invoice."""
    lines = split_lines(text)
    if not lines:
        return ScannedTransactionData()
    items: list[ScannedItem] = []
    for line in lines:
        if is_destination_line(line):
            continue
        item = parse_item_line(line)
        if item is not None:
            items.append(item)
    return ScannedTransactionData(destination=extract_destination(lines), items=items)


def _split_destination_model(remainder: str) -> tuple[str | None, str]:
    if " - " in remainder:
        destination, _, model = remainder.partition(" - ")
        return _collapse(destination) or None, _collapse(model)

    segments = [s for s in _WIDE_GAP.split(remainder) if s.strip()]
    if len(segments) >= 2:
        return _collapse(segments[0]), _collapse(" ".join(segments[1:]))

    words = remainder.split()
    if len(words) >= 3 and _WORD.search(remainder):
        return " ".join(words[:-2]), " ".join(words[-2:])

    return None, _collapse(remainder)


def parse_control_line(raw_line: str) -> tuple[str, str | None, str, int] | None:
    """(date, destination or None, model, quantity) for a qualifying line."""
    line = clean_line(raw_line)
    if len(line) < _MIN_ROW_LENGTH:
        return None
    date_match = _DATE.search(line)
    if date_match is None:
        return None
    rest = _blank(line, date_match.span())
    quantity_match = _ROW_QUANTITY.search(rest)
    if quantity_match is None:
        return None
    remainder = _blank(rest, quantity_match.span(1)).strip()
    if not remainder:
        return None
    destination, model = _split_destination_model(remainder)
    if not model:
        return None
    return date_match.group(0), destination, model, abs(int(quantity_match.group(1)))


def parse_control_text(text: str) -> list[ControlSheetRow]:
    """Parse OCR text of a control sheet, carrying destinations forward."""
    rows: list[ControlSheetRow] = []
    last_destination: str | None = None
    for line in split_lines(text):
        parsed = parse_control_line(line)
        if parsed is None:
            continue
        date, destination, model, quantity = parsed
        if destination:
            last_destination = destination
        else:
            destination = last_destination
        rows.append(
            ControlSheetRow(
                delivery_date=date,
                destination=destination,
                model=model,
                quantity=quantity,
            )
        )
    return rows


def parse_text(text: str, doc_type: DocumentType) -> ScanPayload:
    """Dispatch on document type."""
    if doc_type == "CONTROL":
        return parse_control_text(text)
    return parse_transaction_text(text)
