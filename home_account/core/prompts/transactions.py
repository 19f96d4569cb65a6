"""
Transaction extraction prompt used by ``POST /api/ai/parse``.
"""

import logging
from typing import Any, List

from pydantic import ValidationError

from home_account.core.prompts.types import ParsedTransaction

logger = logging.getLogger("home_account.prompts")


def build_transaction_parsing_prompt(text: str) -> str:
    return f"""Eres un asistente especializado en extraer transacciones financieras de texto.

Analiza el siguiente texto y extrae TODAS las transacciones que encuentres.
Devuelve un JSON con el siguiente formato:

{{
  "transactions": [
    {{
      "date": "YYYY-MM-DD",
      "description": "descripción del movimiento",
      "amount": -50.00,
      "category": "categoría si la hay",
      "subcategory": "subcategoría si la hay"
    }}
  ]
}}

REGLAS:
- Importes negativos para gastos, positivos para ingresos
- Fechas en formato ISO (YYYY-MM-DD)
- Si no hay fecha clara, usar null
- Si no hay categoría, dejar vacío
- Devuelve SOLO el JSON, sin explicaciones
- Si el texto contiene números con coma como separador decimal (ej: 50,00), conviértelos a punto (50.00)
- Si hay símbolos de moneda (€, $), ignóralos en el amount

TEXTO A ANALIZAR:
---
{text}
---"""


def parse_transactions_payload(data: Any) -> List[ParsedTransaction]:
    """
    Validate the ``transactions`` list of a parsed model reply.

    Entries that do not validate are dropped and counted in the log.
    """
    items = data.get("transactions") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []

    parsed = []
    for item in items:
        try:
            parsed.append(ParsedTransaction.model_validate(item))
        except ValidationError as e:
            logger.warning("[TransactionPrompt] Skipping invalid transaction: %s", e.errors()[:1])
    if len(parsed) < len(items):
        logger.info("[TransactionPrompt] Kept %d of %d transactions", len(parsed), len(items))
    return parsed
