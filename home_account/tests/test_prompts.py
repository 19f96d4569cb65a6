"""
Tests for the prompt builders and their response parsers.
"""

import pytest

from home_account.core.constants import ChatRole, Difficulty, RiskProfile
from home_account.core.market.types import MarketDataContext, Quote
from home_account.core.prompts import (
    CHAT_FALLBACK_ANSWER,
    DISCLAIMER,
    ChatContext,
    ChatMessage,
    InvestmentContext,
    ParsedTransaction,
    ProfileAnswers,
    RecommendationParseError,
    build_chat_prompt,
    build_education_prompt,
    build_profile_assessment_prompt,
    build_recommendation_prompt,
    build_transaction_parsing_prompt,
    find_matching_concept,
    get_concept_keywords,
    parse_chat_response,
    parse_education_response,
    parse_profile_assessment_response,
    parse_recommendation_response,
    parse_transactions_payload,
    with_system_message,
)
from home_account.core.prompts.formatting import format_change, format_number, format_quote
from home_account.core.prompts.profile import PROFILE_FALLBACK_WARNING


def market_context() -> MarketDataContext:
    return MarketDataContext(
        sp500=Quote(value=5890.25, change24h=2.3),
        msci_world=Quote(value=3450.8, change24h=1.8),
        nasdaq=Quote(value=19250.5, change24h=3.1),
        btc=Quote(value=98500, change24h=-1.25),
        eth=Quote(value=3450, change24h=0),
        eur_usd=1.042,
        eur_gbp=0.862,
    )


def financial_context() -> InvestmentContext:
    return InvestmentContext(
        account_id=1,
        user_id=1,
        avg_monthly_income=3000,
        avg_monthly_expenses=2200,
        savings_capacity=800,
        savings_rate=26.67,
        emergency_fund_current=4000,
        emergency_fund_goal=13200,
        historical_months=6,
        transaction_categories={"Vivienda": 40, "Comida": 25, "Ocio": 10},
    )


def answers() -> ProfileAnswers:
    return ProfileAnswers(
        age=35,
        monthly_income=3000,
        job_stability="high",
        has_emergency_fund="partial",
        horizon_years="long",
        reaction_to_drop="hold",
        experience_level="basic",
    )


# ========================
# Formatting
# ========================


def test_format_helpers():
    assert format_number(5890.25) == "5,890.25"
    assert format_number(98500) == "98,500"
    assert format_change(2.3) == "+2.30%"
    assert format_change(-1.25) == "-1.25%"
    assert format_quote(Quote(value=98500, change24h=0), "€") == "98,500€ (+0.00%)"


# ========================
# Profile assessment
# ========================


def test_profile_answers_accept_camel_case():
    parsed = ProfileAnswers.model_validate(
        {
            "age": 40,
            "monthlyIncome": 2500,
            "jobStability": "medium",
            "hasEmergencyFund": "yes",
            "horizonYears": "short",
            "reactionToDrop": "buy_more",
            "experienceLevel": "none",
        }
    )
    assert parsed.horizon_years == "short"
    assert parsed.reaction_to_drop == "buy_more"


def test_profile_answers_reject_unknown_horizon():
    with pytest.raises(ValueError):
        ProfileAnswers.model_validate({**answers().to_dict(), "horizonYears": "forever"})


def test_build_profile_prompt_includes_real_data():
    prompt = build_profile_assessment_prompt(answers(), financial_context(), market_context())

    assert "6 meses de transacciones" in prompt
    assert "3000.00€" in prompt
    assert "5,890.25 (+2.30%)" in prompt
    assert "- Vivienda: 40%" in prompt
    assert '"horizonteTemporal": "long"' in prompt
    assert '"recommendedProfile"' in prompt


def test_parse_profile_response():
    text = """```json
{"recommendedProfile": "balanced", "confidence": 0.8, "reasoning": "Ahorro estable",
 "investmentPercentage": 20, "monthlyInvestable": 160, "liquidityReserve": 13200,
 "historicalInsights": {"monthsAnalyzed": 6, "trend": "stable"}, "warnings": []}
```"""
    result = parse_profile_assessment_response(text)

    assert result.recommended_profile == "balanced"
    assert result.confidence == 0.8
    assert result.historical_insights.months_analyzed == 6
    assert not result.is_fallback
    assert "isFallback" not in result.to_dict()


def test_parse_profile_response_fallback():
    """Test that an unparseable reply yields the balanced placeholder."""
    result = parse_profile_assessment_response("Lo siento, no puedo.")

    assert result.is_fallback
    assert result.recommended_profile == "balanced"
    assert result.confidence == 0
    assert result.warnings == [PROFILE_FALLBACK_WARNING]


# ========================
# Recommendations
# ========================


def test_build_recommendation_prompt_allocation():
    prompt = build_recommendation_prompt(RiskProfile.DYNAMIC, 500, financial_context(), market_context())

    assert "Perfil de riesgo: DYNAMIC" in prompt
    assert "| Acciones/ETFs | 70% | 350.00€ |" in prompt
    assert "| Cripto | 10% | 50.00€ |" in prompt
    assert "| Bitcoin | 98,500€ | -1.25% |" in prompt
    assert DISCLAIMER in prompt


def test_parse_recommendation_response_adds_disclaimer():
    text = """Aquí tienes:
{"recommendations": [{"type": "ETF", "symbol": "IWDA", "name": "iShares MSCI World",
  "percentage": 60, "amount": 300, "reason": "Diversificación global", "risk": "medium"}],
 "totalMonthly": 500, "assetAllocation": {"stocks": 60, "bonds": 30, "crypto": 0, "cash": 10}}"""
    result = parse_recommendation_response(text)

    assert result.disclaimer == DISCLAIMER
    assert result.total_monthly == 500
    assert result.recommendations[0].symbol == "IWDA"
    assert result.to_dict()["recommendations"][0]["currentPrice"] is None


@pytest.mark.parametrize(
    "text",
    [
        "No tengo recomendaciones.",
        '{"totalMonthly": 500}',
        '{"recommendations": [{"type": "GOLD", "symbol": "X", "name": "X", "percentage": 1, "amount": 1, "risk": "low"}], "totalMonthly": 1}',
    ],
)
def test_parse_recommendation_response_raises(text):
    """Recommendations have no safe default, so bad replies raise."""
    with pytest.raises(RecommendationParseError) as exc_info:
        parse_recommendation_response(text)
    assert exc_info.value.status_code == 502


# ========================
# Chat
# ========================


def test_with_system_message_only_for_new_conversations():
    context = ChatContext(financial=financial_context(), market=market_context(), risk_profile="balanced")

    fresh = with_system_message([], context)
    assert len(fresh) == 1
    assert fresh[0].role == ChatRole.SYSTEM.value
    assert "Perfil de riesgo: balanced" in fresh[0].content

    history = [{"role": "user", "content": "Hola"}]
    continued = with_system_message(history, context)
    assert [m.role for m in continued] == ["user"]


def test_build_chat_prompt_keeps_last_fifteen_turns():
    context = ChatContext(financial=financial_context(), market=market_context())
    history = [
        ChatMessage(role="user" if i % 2 == 0 else "assistant", content=f"turno-{i:02d}")
        for i in range(20)
    ]

    prompt = build_chat_prompt("¿Qué es un ETF?", context, history)

    assert "turno-04" not in prompt
    assert "user: turno-06" in prompt
    assert "assistant: turno-19" in prompt
    assert "Perfil de riesgo: no definido" in prompt
    assert prompt.index("turno-19") < prompt.index("¿Qué es un ETF?")


def test_parse_chat_response():
    result = parse_chat_response(
        '{"answer": "Un ETF es un fondo cotizado.", "relatedConcepts": ["Indexado"], "needsDisclaimer": true}'
    )

    assert result.answer == "Un ETF es un fondo cotizado."
    assert result.related_concepts == ["Indexado"]
    assert result.needs_disclaimer is True
    assert result.suggested_follow_up is None


def test_parse_chat_response_fallback():
    result = parse_chat_response("Respuesta sin JSON")

    assert result.answer == CHAT_FALLBACK_ANSWER
    assert result.related_concepts == []


# ========================
# Education
# ========================


def test_find_matching_concept():
    assert find_matching_concept("¿Qué es un ETF?") == "ETF"
    assert find_matching_concept("explícame la volatilidad") == "VOLATILIDAD"
    assert find_matching_concept("hipoteca") is None
    assert "SP500" in get_concept_keywords()


def test_build_education_prompt():
    prompt = build_education_prompt("¿Qué es un ETF?", Difficulty.ADVANCED, market_context())

    assert "EXPLICACIÓN BREVE:" in prompt
    assert "IWDA contiene acciones" in prompt
    assert "ADVANCED" in prompt
    assert "S&P 500 actual: 5,890.25" in prompt


def test_build_education_prompt_unknown_concept():
    prompt = build_education_prompt("hipoteca")

    assert "EXPLICACIÓN BREVE" not in prompt
    assert "BEGINNER" in prompt
    assert "CONTEXTO ACTUAL DE MERCADO" not in prompt


def test_parse_education_response():
    result = parse_education_response(
        '{"concept": "ETF", "explanation": "Fondo cotizado", "difficulty": "intermediate"}'
    )

    assert result.concept == "ETF"
    assert result.difficulty == "intermediate"


def test_parse_education_response_fallback():
    result = parse_education_response("sin json")

    assert result.concept == "Error"
    assert result.time_to_understand == "N/A"


# ========================
# Transactions
# ========================


def test_build_transaction_parsing_prompt():
    prompt = build_transaction_parsing_prompt("Mercadona 45,20€ el 3 de marzo")

    assert "Mercadona 45,20€ el 3 de marzo" in prompt
    assert '"transactions"' in prompt


@pytest.mark.parametrize(
    "raw,expected",
    [("50,00", 50.0), ("-12,5 €", -12.5), ("$7.25", 7.25), (-3, -3.0)],
)
def test_parsed_transaction_amounts(raw, expected):
    assert ParsedTransaction(description="x", amount=raw).amount == expected


def test_parse_transactions_payload_drops_invalid_entries():
    data = {
        "transactions": [
            {"date": "2024-03-03", "description": "Mercadona", "amount": "-45,20", "category": ""},
            {"amount": 5},
            {"description": "Nómina", "amount": "abc"},
        ]
    }

    parsed = parse_transactions_payload(data)

    assert len(parsed) == 1
    assert parsed[0].amount == -45.2
    assert parsed[0].category is None
    assert parse_transactions_payload(["not", "a", "dict"]) == []
    assert parse_transactions_payload({"transactions": "nope"}) == []
