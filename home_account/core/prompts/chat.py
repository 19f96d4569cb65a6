"""
Conversational advisor prompt.

The prompt threads the most recent turns of the conversation so the model
keeps continuity across messages.
"""

import logging
from typing import Iterable, List, Mapping, Union

from pydantic import ValidationError

from home_account.core.ai.client import extract_json
from home_account.core.ai.errors import NoJSONFound
from home_account.core.constants import CHAT_PROMPT_HISTORY_TURNS, ChatRole
from home_account.core.prompts.formatting import format_money, format_quote
from home_account.core.prompts.types import ChatContext, ChatMessage, ChatResult

logger = logging.getLogger("home_account.prompts")

CHAT_FALLBACK_ANSWER = "Lo siento, tuve un problema procesando tu pregunta. ¿Puedes reformularla?"

HistoryItem = Union[ChatMessage, Mapping[str, str]]


def _as_message(item: HistoryItem) -> ChatMessage:
    if isinstance(item, ChatMessage):
        return item
    return ChatMessage(role=item["role"], content=item["content"])


def build_system_message(context: ChatContext) -> str:
    """Advisor persona, injected as the first turn of a new conversation."""
    financial = context.financial
    return f"""Eres un asistente financiero educativo llamado "Asesor de Inversión" de Home Account.

Tu rol es:
- Explicar conceptos financieros de forma clara
- Ayudar al usuario a entender su situación financiera
- Responder preguntas sobre mercados usando datos reales
- Advertir sobre riesgos sin alarmar
- Nunca dar consejos de inversión específicos ni prometer rentabilidades

Nunca:
- Prometer ganancias o predecir mercados
- Recomendar inversiones específicas sin disclaimer
- Pedir datos personales o financieros sensibles
- Emitir juicios sin tener información completa

Si no tienes información suficiente, pregunta antes de responder.

El usuario tiene acceso a:
- {financial.historical_months} meses de transacciones históricas
- Perfil de riesgo: {context.risk_profile or "sin definir"}
- Fondo de emergencia: {format_money(financial.emergency_fund_current)}€ de {format_money(financial.emergency_fund_goal)}€ objetivo"""


def with_system_message(history: Iterable[HistoryItem], context: ChatContext) -> List[ChatMessage]:
    """Prepend the system turn when the conversation has no history yet."""
    messages = [_as_message(item) for item in history]
    if not messages:
        return [ChatMessage(role=ChatRole.SYSTEM, content=build_system_message(context))]
    return messages


def build_chat_prompt(question: str, context: ChatContext, history: Iterable[HistoryItem]) -> str:
    """
    Render the chat prompt.

    Only the last 15 turns of `history` are included.
    """
    recent = [_as_message(item) for item in history][-CHAT_PROMPT_HISTORY_TURNS:]
    history_text = "\n".join(f"{m.role}: {m.content}" for m in recent)

    financial = context.financial
    market = context.market

    return f"""Eres un asistente financiero educativo. Tienes acceso al contexto de la conversación y a datos financieros reales del usuario.

# CONTEXTO FINANCIERO DEL USUARIO
- Ingreso mensual promedio: {format_money(financial.avg_monthly_income)}€
- Capacidad de ahorro: {format_money(financial.savings_capacity)}€/mes ({format_money(financial.savings_rate)}%)
- Fondo de emergencia: {format_money(financial.emergency_fund_current)}€ / {format_money(financial.emergency_fund_goal)}€ objetivo
- Período analizado: {financial.historical_months} meses
- Perfil de riesgo: {context.risk_profile or "no definido"}
- Tendencia de ahorro: {financial.trend}

# PRECIOS ACTUALES DE MERCADO
- S&P 500: {format_quote(market.sp500)}
- MSCI World: {format_quote(market.msci_world)}
- Bitcoin: {format_quote(market.btc, "€")}
- EUR/USD: {market.eur_usd}

# HISTORIAL DE LA CONVERSACIÓN (últimos mensajes)
{history_text}

# NUEVA PREGUNTA DEL USUARIO
{question}

# INSTRUCCIONES

1. **Responde en español**, de forma clara, concisa y educativa
2. **Mantén coherencia** con respuestas anteriores en el historial
3. **Usa datos reales** cuando sea relevante para la pregunta
4. **Si la pregunta es sobre mercados**, usa los precios actuales
5. **Si es sobre su situación personal**, usa los datos financieros
6. **Sé honesto**: si no sabes algo, dilo claramente
7. **Añade disclaimer** si das recomendaciones de inversión
8. **Adapta el nivel técnico** al contexto de la conversación
9. **No repitas preguntas**: si el usuario ya dio información antes, no se la vuelvas a pedir

# TIPOS DE RESPUESTA

- **Conceptos financieros**: Explica de forma simple con ejemplos
- **Recomendaciones**: Siempre con disclaimer, nunca absolutista
- **Análisis de mercado**: Basado en precios actuales, sin predicciones
- **Preguntas sobre su situación**: Usa sus datos reales

Responde **EXCLUSIVAMENTE** con JSON válido:

```json
{{
  "answer": "Tu respuesta aquí (200-500 palabras máximo, usa párrafos cortos)",
  "relatedConcepts": ["concepto1", "concepto2", "concepto3"],
  "usedMarketData": true/false,
  "usedFinancialData": true/false,
  "needsDisclaimer": true/false,
  "suggestedFollowUp": "Una pregunta de seguimiento relacionada (opcional)"
}}
```

No incluyas markdown, solo JSON puro."""


def chat_fallback() -> ChatResult:
    return ChatResult(answer=CHAT_FALLBACK_ANSWER)


def parse_chat_response(text: str) -> ChatResult:
    try:
        return ChatResult.model_validate(extract_json(text))
    except (NoJSONFound, ValidationError) as e:
        logger.error("[ChatPrompt] Error parsing response: %s", e)
        return chat_fallback()
