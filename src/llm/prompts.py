# src/llm/prompts.py — v1
"""Extraction prompts and JSON schemas sent to remote providers.

Prompts are in Spanish: the scanned documents are Spanish delivery notes
and control sheets, and the models read handwriting better when the
instructions match the document language.
"""

from __future__ import annotations

from typing import Any

TRANSACTION_PROMPT = """\
Analiza con extrema atención el documento adjunto (remito o factura). Presta \
especial atención a la caligrafía para interpretar correctamente números y texto.

Reglas para números escritos a mano:
- Un "9" tiene el óvalo superior cerrado. Un "2" tiene una base plana o curva abierta.
- Un "1" suele ser un trazo vertical. Un "7" normalmente tiene una línea horizontal.
- Un "0" es un óvalo completo. Un "6" tiene un bucle inferior y un trazo ascendente.

Objetivo:
1. destination: el destinatario (campos "Señor(es)", "Destino"). null si no está.
2. items: cada línea de la sección de detalle como un artículo independiente.
   - No inventes artículos. Estandariza mayúsculas y plurales ("CHAPAS" -> "Chapa").
   - itemName: nombre más específico posible (ej. "Modulo LM200", "Chapa HEX").
   - quantity: número de la columna de cantidad para esa fila.
   - itemType: "MODULO" si el nombre contiene "Modulo", "CHAPA" si contiene "Chapa".

Devuelve únicamente un objeto JSON válido { "destination": string|null, "items": [...] }.
"""

CONTROL_PROMPT = """\
Analiza la planilla de control horizontal y extrae cada fila con datos como un \
objeto dentro de un array JSON. Presta atención a la caligrafía.

Para cada fila:
- deliveryDate: fecha de la columna "FECHA ENTREGA" (DD/MM o DD/MM/YY).
- quantity: número de la columna "CANTIDAD KITS".
- model: texto de la columna "MODELO".
- destination: texto de la columna "DESTINO". Si la fila no tiene destino pero \
la anterior sí, reutiliza el mismo valor. Omite la propiedad si no existe.

No omitas filas con modelo y cantidad. Ignora "REMITO HT", "ENTREGA", "RETIRA", \
"FIRMA" y "FECHA TERMINADO". Devuelve únicamente un array JSON válido.
"""

USER_INSTRUCTION = "Analiza el documento y responde siguiendo el formato JSON solicitado."

TRANSACTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "destination": {"type": ["string", "null"]},
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "itemName": {"type": "string"},
                    "quantity": {"type": "number"},
                    "itemType": {"type": "string", "enum": ["CHAPA", "MODULO"]},
                },
                "required": ["itemName", "quantity", "itemType"],
            },
        },
    },
    "required": ["items"],
}

CONTROL_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "rows": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "deliveryDate": {"type": "string"},
                    "model": {"type": "string"},
                    "quantity": {"type": "number"},
                    "destination": {"type": ["string", "null"]},
                },
                "required": ["deliveryDate", "model", "quantity"],
            },
        },
    },
    "required": ["rows"],
}
