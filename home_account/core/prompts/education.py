"""
Financial concept explanation prompt.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from home_account.core.ai.client import extract_json
from home_account.core.ai.errors import NoJSONFound
from home_account.core.constants import Difficulty
from home_account.core.market.types import MarketDataContext
from home_account.core.prompts.formatting import format_number
from home_account.core.prompts.types import EducationResult

logger = logging.getLogger("home_account.prompts")

# Short definitions injected when the question names a known concept
FINANCIAL_CONCEPTS = {
    "ETF": "Fondo que cotiza en bolsa como una acción, pero que contiene múltiples activos. Ejemplo: IWDA contiene acciones de todo el mundo.",
    "INDEXADO": "Estrategia de inversión que replica un índice bursátil (S&P 500, MSCI World) en lugar de intentar superarlo.",
    "DIVERSIFICACION": 'Estrategia de distribuir inversiones en diferentes activos para reducir riesgo. "No poner todos los huevos en una misma cesta".',
    "COMPOUND": "El interés compuesto es el interés sobre el interés. Hace que tu dinero crezca exponencialmente con el tiempo.",
    "VOLATILIDAD": "Medida de cuánto fluctúa el precio de un activo. Alta volatilidad = cambios de precio grandes y rápidos.",
    "CORRECCION": "Caída del 10% o más desde máximos históricos. Es normal y esperada en mercados.",
    "RESACA": "Caída fuerte tras un período de euforia. Puede ser del 20% o más.",
    "ACCION": "Participación en una empresa. Cuando compras acciones, eres propietario parcial de esa empresa.",
    "BONO": "Préstamo a una empresa o gobierno. A cambio recibes intereses periódicos.",
    "FONDO": "Vehículo que agrupa dinero de muchos inversores para comprar múltiples activos.",
    "CRIPTO": "Moneda digital descentralizada. Muy volátil, alto riesgo.",
    "REBALANCEO": "Ajuste periódico de tu cartera para mantener la distribución deseada de activos.",
    "COSTE_MEDIO": "Invertir cantidades regulares sin importar el precio, así reduces el impacto de la volatilidad.",
    "LIQUIDEZ": "Facilidad para convertir un activo en efectivo sin perder valor.",
    "EXPENSE_RATIO": "Comisión anual que cobra un fondo por gestionar tu dinero.",
    "CAPITALIZACION": "Valor total de una empresa en bolsa. Grandes caps = empresas establecidas.",
    "DOW_JONES": "Índice de 30 empresas grandes de EE.UU. Uno de los más antiguos.",
    "SP500": "Índice con las 500 empresas más grandes de EE.UU. Representa ~80% del mercado estadounidense.",
    "NASDAQ": "Índice con muchas empresas tecnológicas. Incluye las mayores tech companies.",
    "MSCI_WORLD": "Índice global con empresas de países desarrollados de todo el mundo.",
}

LEVEL_INSTRUCTIONS = {
    Difficulty.BEGINNER: "Usa ejemplos cotidianos, evita jerga técnica, explica como a un niño de 12 años.",
    Difficulty.INTERMEDIATE: "Puedes usar términos técnicos pero defínelos. Incluye ejemplos prácticos.",
    Difficulty.ADVANCED: "Asume conocimiento financiero básico. Usa terminología precisa.",
}


def get_concept_keywords() -> List[str]:
    return list(FINANCIAL_CONCEPTS)


def find_matching_concept(query: str) -> Optional[str]:
    """First known concept key contained in `query` (case-insensitive)."""
    lower = query.lower()
    for key in FINANCIAL_CONCEPTS:
        if key.lower() in lower:
            return key
    return None


def _market_section(market: Optional[MarketDataContext]) -> str:
    if market is None:
        return ""
    return (
        "# CONTEXTO ACTUAL DE MERCADO\n"
        f"- S&P 500 actual: {format_number(market.sp500.value)}\n"
        f"- Bitcoin actual: {format_number(market.btc.value)}€\n"
        f"- EUR/USD: {market.eur_usd}"
    )


def build_education_prompt(
    concept: str,
    user_level: Difficulty = Difficulty.BEGINNER,
    market: Optional[MarketDataContext] = None,
) -> str:
    level = Difficulty(user_level)
    matched = find_matching_concept(concept)
    brief = f"EXPLICACIÓN BREVE:\n{FINANCIAL_CONCEPTS[matched]}" if matched else ""

    return f"""Eres un profesor de finanzas personales. Explica el siguiente concepto financiero de forma clara y educativa.

# CONCEPTO A EXPLICAR
{concept}

{brief}

{_market_section(market)}

# NIVEL DEL USUARIO
{level.value.upper()}
{LEVEL_INSTRUCTIONS[level]}

# INSTRUCCIONES

1. **Explica el concepto** de forma clara y progresiva
2. **Usa analogías** de la vida real si es posible
3. **Da ejemplos prácticos** numéricos cuando ayude a entender
4. **Muestra las implicaciones** prácticas para sus finanzas
5. **Advierte sobre riesgos** si el concepto los tiene
6. **Sugiere temas relacionados** para aprender más

# ESTRUCTURA DE RESPUESTA

- Una frase inicial que defina el concepto
- Explicación progresiva (de simple a complejo)
- Ejemplo numérico concreto (si aplica)
- Riesgos o consideraciones importantes
- Tema relacionado para profundizar

Responde **EXCLUSIVAMENTE** con JSON válido:

```json
{{
  "concept": "Nombre del concepto",
  "summary": "Definición en una frase",
  "explanation": "Explicación detallada en 2-3 párrafos",
  "example": "Ejemplo práctico numérico o histórico",
  "risks": ["riesgo1", "riesgo2"] | [],
  "relatedConcepts": ["concepto1", "concepto2"],
  "difficulty": "beginner" | "intermediate" | "advanced",
  "timeToUnderstand": "aproximadamente cuánto tiempo para entenderlo"
}}
```

No incluyas markdown, solo JSON puro."""


def education_fallback() -> EducationResult:
    return EducationResult(
        concept="Error",
        summary="No se pudo procesar la explicación",
        explanation="Lo siento, tuve un problema explicando este concepto.",
        example="",
        risks=[],
        related_concepts=[],
        difficulty=Difficulty.BEGINNER,
        time_to_understand="N/A",
    )


def parse_education_response(text: str) -> EducationResult:
    try:
        return EducationResult.model_validate(extract_json(text))
    except (NoJSONFound, ValidationError) as e:
        logger.error("[EducationPrompt] Error parsing response: %s", e)
        return education_fallback()
