# tests/unit/llm/test_models.py — v1
"""Tests for llm/models.py — decoding provider JSON into payloads."""

from __future__ import annotations

import json

import pytest

from stockscan.llm.models import RemoteResponseError, decode_control_sheet, decode_transaction


class TestDecodeTransaction:
    def test_items_and_destination(self):
        content = json.dumps({
            "destination": "  Acme SA ",
            "items": [
                {"itemName": "Chapa MRZ", "quantity": "15", "itemType": "chapa"},
                {"name": "Modulo LM200", "quantity": -3.0},
                {"itemName": "Chapa lisa", "quantity": 2},
                {"itemName": "", "quantity": 4},
                {"itemName": "Tornillo", "quantity": 0},
                "garbage",
            ],
        })
        data = decode_transaction(content)
        assert data.destination == "Acme SA"
        assert [(i.item_name, i.quantity, i.item_type) for i in data.items] == [
            ("Chapa MRZ", 15, "CHAPA"),
            ("Modulo LM200", 3, "MODULO"),
            ("Chapa lisa", 2, "CHAPA"),
        ]

    def test_missing_items_is_empty(self):
        data = decode_transaction('{"destination": "Acme"}')
        assert data.items == []
        assert data.destination is None

    def test_blank_destination(self):
        assert decode_transaction('{"destination": "   ", "items": []}').destination is None

    def test_markdown_fence(self):
        content = '```json\n{"items": [{"itemName": "LM200", "quantity": 1}]}\n```'
        assert decode_transaction(content).items[0].item_name == "LM200"

    def test_invalid_json(self):
        with pytest.raises(RemoteResponseError, match="not valid JSON"):
            decode_transaction("Lo siento, no puedo leer el documento.")

    def test_non_finite_quantity_dropped(self):
        content = '{"items": [{"itemName": "LM200", "quantity": Infinity}, {"itemName": "LM300", "quantity": "1e999"}]}'
        assert decode_transaction(content).items == []


class TestDecodeControlSheet:
    def test_rows_object(self):
        content = json.dumps({"rows": [
            {"deliveryDate": "12/05/2024", "destination": "Maipu", "model": "LM 200", "quantity": 8},
            {"deliveryDate": "13/05/2024", "model": "LM 200", "quantity": 0},
        ]})
        rows = decode_control_sheet(content)
        assert len(rows) == 1
        assert rows[0].destination == "Maipu"

    def test_bare_list_with_spanish_keys(self):
        content = json.dumps([
            {"fecha_entrega": "12/05", "modelo": "LM 300", "cantidad_kits": "2", "destino": "Lavalle"},
        ])
        rows = decode_control_sheet(content)
        assert (rows[0].delivery_date, rows[0].model, rows[0].quantity, rows[0].destination) == (
            "12/05", "LM 300", 2, "Lavalle",
        )

    def test_not_a_list(self):
        with pytest.raises(RemoteResponseError):
            decode_control_sheet('"nada"')
