"""
Prompt builders and response parsers for the investment advisor.

Each task kind has a ``build_*_prompt`` function rendering Spanish prompt text
and a ``parse_*_response`` function validating the model's JSON reply.
"""

from home_account.core.prompts.chat import (
    CHAT_FALLBACK_ANSWER,
    build_chat_prompt,
    build_system_message,
    parse_chat_response,
    with_system_message,
)
from home_account.core.prompts.education import (
    FINANCIAL_CONCEPTS,
    build_education_prompt,
    find_matching_concept,
    get_concept_keywords,
    parse_education_response,
)
from home_account.core.prompts.profile import build_profile_assessment_prompt, parse_profile_assessment_response
from home_account.core.prompts.recommendation import (
    DISCLAIMER,
    RecommendationParseError,
    build_recommendation_prompt,
    parse_recommendation_response,
)
from home_account.core.prompts.transactions import build_transaction_parsing_prompt, parse_transactions_payload
from home_account.core.prompts.types import (
    ChatContext,
    ChatMessage,
    ChatResult,
    EducationResult,
    InvestmentContext,
    ParsedTransaction,
    ProfileAnswers,
    ProfileAssessmentResult,
    RecommendationItem,
    RecommendationResult,
)

__all__ = [
    "CHAT_FALLBACK_ANSWER",
    "build_chat_prompt",
    "build_system_message",
    "parse_chat_response",
    "with_system_message",
    "FINANCIAL_CONCEPTS",
    "build_education_prompt",
    "find_matching_concept",
    "get_concept_keywords",
    "parse_education_response",
    "build_profile_assessment_prompt",
    "parse_profile_assessment_response",
    "DISCLAIMER",
    "RecommendationParseError",
    "build_recommendation_prompt",
    "parse_recommendation_response",
    "build_transaction_parsing_prompt",
    "parse_transactions_payload",
    "ChatContext",
    "ChatMessage",
    "ChatResult",
    "EducationResult",
    "InvestmentContext",
    "ParsedTransaction",
    "ProfileAnswers",
    "ProfileAssessmentResult",
    "RecommendationItem",
    "RecommendationResult",
]
