"""
LLM Client
Unified interface for generating quiz content via Gemini, OpenAI and Anthropic APIs
"""
import os
import logging
from typing import Optional
from enum import Enum

import httpx

logger = logging.getLogger(__name__)


class LLMProvider(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class LLMClientError(Exception):
    """Base exception for LLM client errors"""
    pass


class LLMTimeoutError(LLMClientError):
    """Raised when LLM request times out"""
    pass


class LLMAPIError(LLMClientError):
    """Raised when LLM API returns an error or an unexpected payload"""
    pass


# API Endpoints
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_API_URL = "https://api.anthropic.com/v1/messages"

# Configuration
DEFAULT_TIMEOUT = 20.0  # seconds
SYSTEM_INSTRUCTION = "Return ONLY valid JSON."

# Model defaults
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

API_KEY_ENV = {
    LLMProvider.GEMINI: "GEMINI_API_KEY",
    LLMProvider.OPENAI: "OPENAI_API_KEY",
    LLMProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
}


def _require_key(provider: LLMProvider) -> str:
    env_name = API_KEY_ENV[provider]
    api_key = os.getenv(env_name)
    if not api_key:
        raise LLMClientError(f"{env_name} environment variable not set")
    return api_key


async def _post_json(
    url: str,
    provider_name: str,
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **kwargs
) -> dict:
    """
    POST a JSON request and return the decoded body

    Transient failures are surfaced immediately; callers decide about retries.
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, **kwargs)
            response.raise_for_status()
            return response.json()

    except httpx.TimeoutException as e:
        logger.error(f"❌ {provider_name} request timed out after {timeout}s")
        raise LLMTimeoutError(f"{provider_name} request timed out: {e}")

    except httpx.HTTPStatusError as e:
        logger.error(f"❌ {provider_name} API error: {e.response.status_code}")
        raise LLMAPIError(f"{provider_name} API error: {e.response.text}")

    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"❌ {provider_name} request failed: {e}")
        raise LLMAPIError(f"{provider_name} request failed: {e}")


async def _call_gemini(prompt: str, timeout: float, transport=None) -> str:
    """Call Gemini generateContent API"""
    api_key = _require_key(LLMProvider.GEMINI)

    data = await _post_json(
        GEMINI_API_URL.format(model=GEMINI_MODEL),
        provider_name="Gemini",
        timeout=timeout,
        transport=transport,
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json={
            "systemInstruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [{"parts": [{"text": prompt}]}]
        }
    )

    try:
        content = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        logger.error(f"❌ Empty Gemini response: {data}")
        raise LLMAPIError("Empty Gemini response")

    logger.info(f"✅ Gemini response received ({len(content)} chars)")
    return content


async def _call_openai(prompt: str, timeout: float, transport=None) -> str:
    """Call OpenAI Chat Completions API"""
    api_key = _require_key(LLMProvider.OPENAI)

    data = await _post_json(
        OPENAI_API_URL,
        provider_name="OpenAI",
        timeout=timeout,
        transport=transport,
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        },
        json={
            "model": OPENAI_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_INSTRUCTION},
                {"role": "user", "content": prompt}
            ],
            "temperature": 0.7,
            "max_tokens": 4096
        }
    )

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise LLMAPIError("Unexpected OpenAI response shape")

    logger.info(f"✅ OpenAI response received ({len(content)} chars)")
    return content


async def _call_anthropic(prompt: str, timeout: float, transport=None) -> str:
    """Call Anthropic Messages API"""
    api_key = _require_key(LLMProvider.ANTHROPIC)

    data = await _post_json(
        ANTHROPIC_API_URL,
        provider_name="Anthropic",
        timeout=timeout,
        transport=transport,
        headers={
            "x-api-key": api_key,
            "Content-Type": "application/json",
            "anthropic-version": "2023-06-01"
        },
        json={
            "model": ANTHROPIC_MODEL,
            "max_tokens": 4096,
            "system": SYSTEM_INSTRUCTION,
            "messages": [{"role": "user", "content": prompt}]
        }
    )

    try:
        content = data["content"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise LLMAPIError("Unexpected Anthropic response shape")

    logger.info(f"✅ Anthropic response received ({len(content)} chars)")
    return content


async def generate_quiz(
    prompt: str,
    provider: str = "gemini",
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> str:
    """
    Generate quiz content using specified LLM provider

    Args:
        prompt: The quiz generation prompt
        provider: LLM provider - "gemini" (default), "openai" or "anthropic"
        timeout: Optional custom timeout (uses DEFAULT_TIMEOUT if not specified)
        transport: Optional httpx transport (tests inject a mock)

    Returns:
        Raw string output from the LLM (no parsing)

    Raises:
        LLMClientError: If API key is missing
        LLMTimeoutError: If request times out
        LLMAPIError: If API returns an error
        ValueError: If invalid provider specified
    """
    timeout = timeout or DEFAULT_TIMEOUT
    provider = provider.lower()

    logger.info(f"🤖 Generating quiz via {provider} (timeout: {timeout}s)")

    if provider == LLMProvider.GEMINI:
        return await _call_gemini(prompt, timeout, transport)

    elif provider == LLMProvider.OPENAI:
        return await _call_openai(prompt, timeout, transport)

    elif provider == LLMProvider.ANTHROPIC:
        return await _call_anthropic(prompt, timeout, transport)

    else:
        raise ValueError(
            f"Invalid provider: {provider}. "
            f"Supported providers: {[p.value for p in LLMProvider]}"
        )


def health_check(provider: str = "gemini") -> dict:
    """
    Check if LLM provider is configured

    Args:
        provider: LLM provider to check

    Returns:
        Health status dictionary
    """
    provider = provider.lower()

    try:
        llm_provider = LLMProvider(provider)
    except ValueError:
        return {"provider": provider, "status": "error", "message": "Invalid provider"}

    model = {
        LLMProvider.GEMINI: GEMINI_MODEL,
        LLMProvider.OPENAI: OPENAI_MODEL,
        LLMProvider.ANTHROPIC: ANTHROPIC_MODEL,
    }[llm_provider]
    configured = bool(os.getenv(API_KEY_ENV[llm_provider]))

    return {
        "provider": provider,
        "configured": configured,
        "model": model,
        "status": "ready" if configured else "not_configured"
    }
