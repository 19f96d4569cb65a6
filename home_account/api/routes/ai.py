"""
AI administration endpoints.

``GET /status`` is public. Changing the active provider, testing a provider
and parsing free text into transactions require authentication.
"""

import logging
import time

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from home_account.api.auth import (
    get_current_user,
    get_provider_factory,
    get_provider_selection,
    get_settings,
    verify_csrf,
)
from home_account.api.schemas import ParseRequest, ProviderRequest
from home_account.config import PROVIDER_KINDS, ProviderSelection, Settings
from home_account.core.ai.client import AIClient, ProviderFactory, check_provider_connection, get_ai_status
from home_account.core.prompts import build_transaction_parsing_prompt, parse_transactions_payload
from home_account.db.models import User

logger = logging.getLogger("home_account.ai")

router = APIRouter()


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": message})


@router.get("/status")
async def ai_status(
    check_health: bool = Query(False, description="Also check that the Ollama server answers"),
    settings: Settings = Depends(get_settings),
    selection: ProviderSelection = Depends(get_provider_selection),
):
    """Provider configuration and the provider new requests will use."""
    return {"success": True, **await get_ai_status(settings.ai, selection, check_health=check_health)}


@router.put("/provider", dependencies=[Depends(verify_csrf)])
def set_provider(
    body: ProviderRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    selection: ProviderSelection = Depends(get_provider_selection),
):
    """Override the active provider for every following request (``none`` clears it)."""
    selection.set(body.provider)
    logger.info("User %s set AI provider override to %s", current_user.id, body.provider)
    return {
        "success": True,
        "activeProvider": AIClient(settings.ai, selection=selection).provider_name,
    }


@router.post("/test", dependencies=[Depends(verify_csrf)])
async def test_provider(
    body: ProviderRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    """Round-trip a trivial prompt through one provider."""
    if body.provider not in PROVIDER_KINDS:
        return _bad_request(f"Invalid provider. Valid: {', '.join(PROVIDER_KINDS)}")

    result = await check_provider_connection(settings.ai, body.provider, provider_factory=provider_factory)
    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result)
    return result


@router.post("/parse", dependencies=[Depends(verify_csrf)])
async def parse_transactions(
    body: ParseRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    selection: ProviderSelection = Depends(get_provider_selection),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    """
    Extract transaction candidates from free text.

    Upstream failures after retries propagate as AI errors (502/504).
    """
    if not settings.ai.enabled:
        return _bad_request("AI is disabled (AI_ENABLED=false)")

    client = AIClient(
        settings.ai,
        provider=body.provider,
        selection=selection,
        provider_factory=provider_factory,
    )
    if not client.is_available():
        return _bad_request("No AI provider available")

    start = time.monotonic()
    data = await client.send_prompt_json(build_transaction_parsing_prompt(body.text))
    transactions = parse_transactions_payload(data)
    response_time = round((time.monotonic() - start) * 1000)

    logger.info("[AI:%s] Parsed %d transactions in %dms", client.provider_name, len(transactions), response_time)
    return {
        "success": True,
        "transactions": [t.to_dict() for t in transactions],
        "provider": client.provider_name,
        "responseTime": response_time,
    }
