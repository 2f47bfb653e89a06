import os
from typing import Any, Protocol, Sequence, Tuple

import httpx

from app.core.errors import UpstreamError
from app.core.types import ConversationTurn

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_CONNECT_TIMEOUT_SECONDS = float(os.getenv("LLM_CONNECT_TIMEOUT_SECONDS", "10"))
LLM_WRITE_TIMEOUT_SECONDS = float(os.getenv("LLM_WRITE_TIMEOUT_SECONDS", "30"))
LLM_POOL_TIMEOUT_SECONDS = float(os.getenv("LLM_POOL_TIMEOUT_SECONDS", "60"))
LLM_MAX_OUTPUT_TOKENS = int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "700"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def _http_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=LLM_CONNECT_TIMEOUT_SECONDS,
        read=LLM_TIMEOUT_SECONDS,
        write=LLM_WRITE_TIMEOUT_SECONDS,
        pool=LLM_POOL_TIMEOUT_SECONDS,
    )


def _resolve_model_config() -> Tuple[str, str, str]:
    provider = os.getenv("COACH_AI_PROVIDER", "openai").strip().lower()
    model = os.getenv("COACH_AI_MODEL", "").strip()
    if provider == "openai":
        key = os.getenv("OPENAI_API_KEY", "")
        model = model or "gpt-4o"
    elif provider == "gemini":
        key = os.getenv("GEMINI_API_KEY", "")
        model = model or "gemini-1.5-flash"
    else:
        raise UpstreamError(f"Unsupported AI provider: {provider}", provider=provider, model=model)
    if not key:
        raise UpstreamError("AI config missing", provider=provider, model=model)
    return provider, model, key


def build_openai_messages(
    instruction: str, turns: Sequence[ConversationTurn], user_message: str
) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": instruction}]
    messages.extend({"role": turn.role, "content": turn.text} for turn in turns)
    messages.append({"role": "user", "content": user_message})
    return messages


def build_gemini_payload(
    instruction: str, turns: Sequence[ConversationTurn], user_message: str
) -> dict[str, Any]:
    contents = [
        {"role": "user" if turn.role == "user" else "model", "parts": [{"text": turn.text}]}
        for turn in turns
    ]
    contents.append({"role": "user", "parts": [{"text": user_message}]})
    return {
        "systemInstruction": {"parts": [{"text": instruction}]},
        "contents": contents,
        "generationConfig": {
            "responseMimeType": "application/json",
            "temperature": LLM_TEMPERATURE,
            "maxOutputTokens": LLM_MAX_OUTPUT_TOKENS,
        },
    }


def _raise_for_status(response: httpx.Response, provider: str, model: str) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        detail = (exc.response.text or "").strip()[:220]
        raise UpstreamError(
            f"{provider} request failed (status={status}): {detail or 'no response body'}",
            provider=provider,
            model=model,
            status_code=status,
        ) from exc


def _openai_request(
    model: str, api_key: str, instruction: str, turns: Sequence[ConversationTurn], user_message: str
) -> str:
    payload = {
        "model": model,
        "response_format": {"type": "json_object"},
        "messages": build_openai_messages(instruction, turns, user_message),
        "temperature": LLM_TEMPERATURE,
        "max_tokens": LLM_MAX_OUTPUT_TOKENS,
    }
    response = httpx.post(
        OPENAI_CHAT_URL,
        headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        json=payload,
        timeout=_http_timeout(),
    )
    _raise_for_status(response, "openai", model)
    try:
        data = response.json()
        text = str(data["choices"][0]["message"].get("content") or "").strip()
    except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
        raise UpstreamError("OpenAI returned a malformed response envelope", provider="openai", model=model) from exc
    if not text:
        raise UpstreamError("OpenAI chat completion returned empty content", provider="openai", model=model)
    return text


def _gemini_request(
    model: str, api_key: str, instruction: str, turns: Sequence[ConversationTurn], user_message: str
) -> str:
    response = httpx.post(
        GEMINI_URL_TEMPLATE.format(model=model),
        params={"key": api_key},
        headers={"Content-Type": "application/json"},
        json=build_gemini_payload(instruction, turns, user_message),
        timeout=_http_timeout(),
    )
    _raise_for_status(response, "gemini", model)
    try:
        data = response.json()
        text = str(data["candidates"][0]["content"]["parts"][0]["text"]).strip()
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise UpstreamError("Gemini returned a malformed response envelope", provider="gemini", model=model) from exc
    if not text:
        raise UpstreamError("Gemini returned empty content", provider="gemini", model=model)
    return text


class LLMClient(Protocol):
    def complete(self, instruction: str, turns: Sequence[ConversationTurn], user_message: str) -> str:
        ...


class RealLLMClient:
    """Single-shot completion call: no retries, no streaming."""

    def complete(self, instruction: str, turns: Sequence[ConversationTurn], user_message: str) -> str:
        provider, model, api_key = _resolve_model_config()
        try:
            if provider == "openai":
                return _openai_request(model, api_key, instruction, turns, user_message)
            return _gemini_request(model, api_key, instruction, turns, user_message)
        except UpstreamError:
            raise
        except httpx.TimeoutException as exc:
            raise UpstreamError(
                f"{provider} request timed out while waiting for response.", provider=provider, model=model
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"{provider} request failed: {str(exc)[:220]}", provider=provider, model=model
            ) from exc


def get_llm_client() -> LLMClient:
    return RealLLMClient()
