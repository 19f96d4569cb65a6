"""
Investment recommendation prompt.

Unlike the other prompts there is no safe default allocation to fall back
to, so an unparseable reply raises ``RecommendationParseError``.
"""

import logging

from pydantic import ValidationError

from home_account.core.ai.client import extract_json
from home_account.core.ai.errors import AIError, NoJSONFound
from home_account.core.constants import ALLOCATION_RULES, RiskProfile
from home_account.core.market.types import MarketDataContext
from home_account.core.prompts.formatting import format_change, format_money, format_number
from home_account.core.prompts.types import InvestmentContext, RecommendationResult

logger = logging.getLogger("home_account.prompts")

DISCLAIMER = (
    "AVISO: Estas son recomendaciones genéricas basadas en tu perfil. "
    "No constituyen asesoramiento financiero. Consulta un profesional."
)


class RecommendationParseError(AIError):
    """The model reply did not contain a usable recommendation."""

    def __init__(self, message="Could not parse the investment recommendations", details=None):
        super().__init__(message, details)


def _market_row(name: str, value: float, change: float, suffix: str = "") -> str:
    return f"| {name} | {format_number(value)}{suffix} | {format_change(change)} |"


def build_recommendation_prompt(
    profile: RiskProfile,
    monthly_amount: float,
    context: InvestmentContext,
    market: MarketDataContext,
) -> str:
    """
    Render the recommendation prompt for a profile and monthly amount.

    The allocation table is computed from the profile's fixed split so the
    model only has to pick products inside each bucket.
    """
    profile = RiskProfile(profile)
    allocation = ALLOCATION_RULES[profile]
    label = profile.value.upper()

    def share(pct: float) -> str:
        return format_money(monthly_amount * pct / 100)

    return f"""Eres un asesor financiero educativo. Genera recomendaciones de inversión personalizadas basadas en el perfil y datos reales.

# PERFIL DEL USUARIO
- Perfil de riesgo: {label}
- Horizonte temporal: {context.horizon_years or 5} años
- Experiencia: {context.experience_level or "basic"}
- Porcentaje del ahorro a invertir: {context.investment_percentage or 20}%

# CONTEXTO FINANCIERO REAL
- Capacidad de ahorro mensual: {format_money(context.savings_capacity)}€
- **Monto mensual a invertir: {format_money(monthly_amount)}€**
- Fondo de emergencia: {format_money(context.emergency_fund_current)}€ / {format_money(context.emergency_fund_goal)}€ objetivo

# PRECIOS ACTUALES DE MERCADO
| Activo | Precio | Cambio 24h |
|--------|--------|------------|
{_market_row("S&P 500", market.sp500.value, market.sp500.change24h)}
{_market_row("MSCI World", market.msci_world.value, market.msci_world.change24h)}
{_market_row("Bitcoin", market.btc.value, market.btc.change24h, "€")}
{_market_row("Ethereum", market.eth.value, market.eth.change24h, "€")}
| EUR/USD | {market.eur_usd} | - |

# DISTRIBUCIÓN RECOMENDADA ({label})
| Activo | Porcentaje | Monto Mensual |
|--------|------------|---------------|
| Acciones/ETFs | {allocation["stocks"]}% | {share(allocation["stocks"])}€ |
| Renta Fija | {allocation["bonds"]}% | {share(allocation["bonds"])}€ |
| Cripto | {allocation["crypto"]}% | {share(allocation["crypto"])}€ |
| Liquidez | {allocation["cash"]}% | {share(allocation["cash"])}€ |

# INSTRUCCIONES

1. Genera **3-5 recomendaciones específicas** de productos de inversión
2. Para cada recomendación incluye:
   - Tipo (ETF, fondo, crypto, etc.)
   - Nombre/símbolo identificativo
   - Porcentaje del monto mensual
   - Importe en €
   - Razón breve pero fundamentada
   - Nivel de riesgo (low/medium/high)

3. **Productos sugeridos** (basados en precios actuales):
   - ETFs: IWDA (MSCI World), SPY (S&P 500), QQQ (NASDAQ)
   - Cripto: BTC, ETH (máximo {allocation["crypto"]}% del total)
   - Fondos: bonos europeos, fondos monetarios

4. **Consideraciones especiales**:
   - Si mercados están muy arriba, sugerir más peso en renta fija
   - Si perfil es conservador, evitar crypto o muy poco %
   - Incluir siempre alguna opción de liquidez

5. **NO proporciones recomendaciones de compra/venta específicas**, solo distribución teórica
6. **Nunca presentes rentabilidades como garantizadas**

Responde **EXCLUSIVAMENTE** con JSON válido:

```json
{{
  "recommendations": [
    {{
      "type": "ETF" | "BOND_FUND" | "CRYPTO" | "STOCK" | "SAVINGS",
      "symbol": "Símbolo o nombre corto",
      "name": "Nombre del producto",
      "percentage": 10-100,
      "amount": número,
      "currentPrice": número,
      "units": número,
      "reason": "Razón breve (máx 80 caracteres)",
      "risk": "low" | "medium" | "high"
    }}
  ],
  "totalMonthly": {format_money(monthly_amount)},
  "assetAllocation": {{
    "stocks": 0-100,
    "bonds": 0-100,
    "crypto": 0-100,
    "cash": 0-100
  }},
  "marketContext": "Comentario sobre situación actual de mercados (máx 100 caracteres)",
  "disclaimer": "{DISCLAIMER}"
}}
```

No incluyas markdown, solo JSON puro."""


def parse_recommendation_response(text: str) -> RecommendationResult:
    """
    Parse the model reply.

    A reply without a disclaimer gets the standard one.

    Raises:
        RecommendationParseError: If no valid recommendation JSON is found
    """
    try:
        data = extract_json(text)
        if isinstance(data, dict) and not data.get("disclaimer"):
            data["disclaimer"] = DISCLAIMER
        return RecommendationResult.model_validate(data)
    except (NoJSONFound, ValidationError) as e:
        logger.error("[RecommendationPrompt] Error parsing response: %s", e)
        raise RecommendationParseError(details=str(e)[:200])
