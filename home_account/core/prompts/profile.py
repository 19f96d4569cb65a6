"""
Risk profile assessment prompt.

The model compares the questionnaire answers with the account's real
transaction history and proposes conservative, balanced or dynamic.
"""

import json
import logging

from pydantic import ValidationError

from home_account.core.ai.client import extract_json
from home_account.core.ai.errors import NoJSONFound
from home_account.core.market.types import MarketDataContext
from home_account.core.prompts.formatting import format_money, format_quote
from home_account.core.prompts.types import InvestmentContext, ProfileAnswers, ProfileAssessmentResult

logger = logging.getLogger("home_account.prompts")

PROFILE_FALLBACK_WARNING = "No se pudo analizar tu perfil automáticamente. Inténtalo de nuevo más tarde."

_OUTPUT_SCHEMA = """```json
{
  "recommendedProfile": "conservative" | "balanced" | "dynamic",
  "confidence": 0.0-1.0,
  "reasoning": "Explicación detallada comparando respuestas con datos reales. Mínimo 150 caracteres.",
  "investmentPercentage": 5-45,
  "monthlyInvestable": número,
  "liquidityReserve": número,
  "historicalInsights": {
    "monthsAnalyzed": número,
    "trend": "improving" | "stable" | "declining",
    "bestMonth": "nombre del mes",
    "worstMonth": "nombre del mes",
    "savingsConsistency": "alta" | "media" | "baja"
  },
  "warnings": ["aviso importante 1", "aviso importante 2"],
  "marketContext": "Comentario breve sobre situación actual de mercados"
}
```"""


def _category_lines(categories, limit: int = 8) -> str:
    ranked = sorted(categories.items(), key=lambda item: item[1], reverse=True)[:limit]
    return "\n".join(f"- {name}: {pct}%" for name, pct in ranked)


def build_profile_assessment_prompt(
    answers: ProfileAnswers,
    context: InvestmentContext,
    market: MarketDataContext,
) -> str:
    """
    Render the profile assessment prompt.

    Args:
        answers: Questionnaire answers
        context: Account financial summary
        market: Current market snapshot

    Returns:
        Prompt text ending with the JSON schema the reply must follow
    """
    questionnaire = json.dumps(
        {
            "edad": answers.age,
            "ingresosMensuales": answers.monthly_income,
            "estabilidadLaboral": answers.job_stability,
            "tieneFondoEmergencia": answers.has_emergency_fund,
            "horizonteTemporal": answers.horizon_years,
            "reaccionCaida20": answers.reaction_to_drop,
            "experienciaInversion": answers.experience_level,
        },
        indent=2,
        ensure_ascii=False,
    )

    return f"""Eres un asesor financiero educativo basado en datos reales de la cuenta del usuario.

# CONTEXTO FINANCIERO REAL DEL USUARIO
El análisis se basa en **{context.historical_months} meses de transacciones históricas**:

**Métricas financieras:**
- Ingreso mensual promedio: {format_money(context.avg_monthly_income)}€
- Gastos mensuales promedio: {format_money(context.avg_monthly_expenses)}€
- Capacidad de ahorro mensual: {format_money(context.savings_capacity)}€ ({format_money(context.savings_rate)}%)
- Tendencia de ahorro: {context.trend} ({context.deficit_months} meses con déficit)
- Fondo de emergencia actual: {format_money(context.emergency_fund_current)}€
- Objetivo mínimo recomendado: {format_money(context.emergency_fund_goal)}€

**PRECIOS ACTUALES DE MERCADO:**
- S&P 500: {format_quote(market.sp500)}
- MSCI World: {format_quote(market.msci_world)}
- Bitcoin: {format_quote(market.btc, "€")}
- Ethereum: {format_quote(market.eth, "€")}
- EUR/USD: {market.eur_usd}

**DISTRIBUCIÓN DE GASTOS POR CATEGORÍA:**
{_category_lines(context.transaction_categories)}

# RESPUESTAS DEL CUESTIONARIO
{questionnaire}

# INSTRUCCIONES

1. **Analiza las respuestas Y los datos reales** de {context.historical_months} meses de transacciones
2. **Compara el comportamiento declarado** con los patrones reales de gasto/ahorro
3. **Determina el perfil de riesgo** más apropiado considerando:
   - Si el usuario declara ser "conservador" pero históricamente gasta más de lo que gana → warning
   - Si declara "dinámico" pero no tiene fondo de emergencia → ajustar a equilibrado
   - La capacidad de ahorro real vs declarada
4. **Justifica tu recomendación** comparando respuestas con comportamiento real
5. **Calcula el % del ahorro** que debería destinarse a inversión según el perfil
6. **Considera el contexto de mercados actuales** (mercados en máximos = más cautela)

# REGLAS DE PERFIL

| Perfil | Capacidad Ahorro | Horizonte | Reacción Caída | Inversión % Ahorro |
|--------|------------------|-----------|----------------|-------------------|
| **Conservador** | < 15% | < 3 años | Vender | 5-10% |
| **Equilibrado** | 15-25% | 3-10 años | Mantener | 15-30% |
| **Dinámico** | > 25% | > 10 años | Comprar más | 30-45% |

# IMPORTANTE

- Si tiene fondo de emergencia incompleto (< 3 meses), reducir inversión %
- Si tiene muchos meses en déficit, warning importante
- Si mercados están muy altos (S&P 500 > 5000), sugerir más cautela
- Incluir insights del historial real (mejor/peor mes)

Responde **EXCLUSIVAMENTE** con JSON válido:

{_OUTPUT_SCHEMA}

No incluyas markdown, solo el JSON puro."""


def profile_fallback() -> ProfileAssessmentResult:
    return ProfileAssessmentResult(
        recommended_profile="balanced",
        confidence=0,
        reasoning="",
        warnings=[PROFILE_FALLBACK_WARNING],
        is_fallback=True,
    )


def parse_profile_assessment_response(text: str) -> ProfileAssessmentResult:
    """
    Parse the model reply; unparseable or incomplete replies yield the
    placeholder from ``profile_fallback`` (``is_fallback`` set).
    """
    try:
        return ProfileAssessmentResult.model_validate(extract_json(text))
    except (NoJSONFound, ValidationError) as e:
        logger.error("[ProfilePrompt] Error parsing response: %s", e)
        return profile_fallback()
