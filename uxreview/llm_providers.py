from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .settings import Settings

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    pass


class CompletionProvider(Protocol):
    route_id: str

    @property
    def configured(self) -> bool: ...

    async def create_completion(self, params: dict[str, Any]) -> dict[str, Any]: ...


class OpenAICompletionProvider:
    route_id = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout_seconds: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key.strip()
        self.base_url = base_url.strip().rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAICompletionProvider":
        return cls(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def create_completion(self, params: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            raise ProviderError("OpenAI provider is not configured (missing OPENAI_API_KEY).")
        if not self.base_url.startswith("http"):
            raise ProviderError("Invalid OpenAI base URL.")

        url = _build_chat_completions_url(self.base_url)
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": "uxreview/1.0",
        }
        logger.debug("Posting completion request to %s (model=%s)", url, params.get("model"))
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, headers=headers, json=params)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"OpenAI request timed out after {self.timeout_seconds:g}s") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"HTTP request failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _extract_error_detail(response)
            raise ProviderError(f"OpenAI request failed ({response.status_code}): {detail}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(f"OpenAI response was not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProviderError("Invalid OpenAI response payload.")
        return payload


def extract_completion_text(payload: Any) -> str:
    """Text of the first choice, or an empty string when there is none."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return ""

    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks: list[str] = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str):
                chunks.append(item["text"])
        return "\n".join(chunks)
    return ""


def extract_total_tokens(payload: Any) -> int:
    if not isinstance(payload, dict):
        return 0
    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return 0
    total = usage.get("total_tokens", usage.get("totalTokens"))
    if isinstance(total, bool) or not isinstance(total, int):
        return 0
    return total


def _extract_error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        if isinstance(payload.get("error"), dict):
            message = payload["error"].get("message")
            if isinstance(message, str) and message:
                return message
        detail = payload.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    body = response.text.strip()
    return body[:300] if body else "Unknown provider error"


def _build_chat_completions_url(base_url: str) -> str:
    normalized = base_url.strip().rstrip("/")
    if normalized.endswith("/chat/completions"):
        return normalized
    return f"{normalized}/chat/completions"
