from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .analysis_schema import SCHEMA_NAME
from .llm_providers import CompletionProvider, extract_completion_text, extract_total_tokens
from .settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_FORMAT = "jpeg"
IMAGE_DETAIL = "high"


class CompletionError(RuntimeError):
    pass


class CompletionProviderError(CompletionError):
    pass


class EmptyCompletionError(CompletionError):
    pass


@dataclass(frozen=True)
class ImageReference:
    url: str
    detail: str = IMAGE_DETAIL

    def to_content_part(self) -> dict[str, Any]:
        return {
            "type": "image_url",
            "image_url": {
                "url": self.url,
                "detail": self.detail,
            },
        }


@dataclass
class ModelParameters:
    model: str
    max_completion_tokens: int | None = None
    reasoning_effort: str | None = None
    verbosity: str | None = None
    temperature: float | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        overrides: dict[str, Any] | None = None,
    ) -> "ModelParameters":
        overrides = overrides or {}
        params = cls(
            model=settings.model,
            max_completion_tokens=settings.max_completion_tokens,
            reasoning_effort=settings.reasoning_effort or None,
            verbosity=settings.verbosity or None,
        )

        model = overrides.get("model")
        if isinstance(model, str) and model.strip():
            params.model = model.strip()
        max_tokens = overrides.get("max_completion_tokens")
        if isinstance(max_tokens, int) and not isinstance(max_tokens, bool) and max_tokens > 0:
            params.max_completion_tokens = max_tokens
        for key in ("reasoning_effort", "verbosity"):
            value = overrides.get(key)
            if isinstance(value, str) and value.strip():
                setattr(params, key, value.strip())
        temperature = overrides.get("temperature")
        if isinstance(temperature, (int, float)) and not isinstance(temperature, bool):
            params.temperature = float(temperature)
        return params

    def to_request_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {"model": self.model}
        if self.max_completion_tokens is not None:
            fields["max_completion_tokens"] = self.max_completion_tokens
        if self.reasoning_effort:
            fields["reasoning_effort"] = self.reasoning_effort
        if self.verbosity:
            fields["verbosity"] = self.verbosity
        if self.temperature is not None:
            fields["temperature"] = self.temperature
        return fields


@dataclass
class CompletionOutput:
    text: str
    model_used: str
    total_tokens: int
    raw_response: Any


def resolve_image_reference(image: str, image_type: str | None = None) -> ImageReference:
    """URLs pass through; bare base64 payloads are wrapped as a data URI."""
    cleaned = image.strip()
    kind = (image_type or "").strip().lower()
    if kind == "url" or cleaned.startswith("http://") or cleaned.startswith("https://"):
        return ImageReference(url=cleaned)
    if cleaned.startswith("data:"):
        return ImageReference(url=cleaned)

    image_format = kind if kind and kind != "base64" else DEFAULT_IMAGE_FORMAT
    return ImageReference(url=f"data:image/{image_format};base64,{cleaned}")


def build_completion_params(
    *,
    schema: dict[str, Any],
    system_prompt: str,
    user_prompt: str,
    image: ImageReference,
    params: ModelParameters,
    schema_name: str = SCHEMA_NAME,
) -> dict[str, Any]:
    messages: list[dict[str, Any]] = []
    if system_prompt and system_prompt.strip():
        messages.append({"role": "system", "content": system_prompt})
    messages.append(
        {
            "role": "user",
            "content": [
                {"type": "text", "text": user_prompt},
                image.to_content_part(),
            ],
        }
    )

    request_payload: dict[str, Any] = params.to_request_fields()
    request_payload["messages"] = messages
    request_payload["response_format"] = {
        "type": "json_schema",
        "json_schema": {
            "name": schema_name,
            "schema": schema,
        },
    }
    return request_payload


class CompletionClient:
    def __init__(self, provider: CompletionProvider) -> None:
        self.provider = provider

    @property
    def configured(self) -> bool:
        return bool(getattr(self.provider, "configured", True))

    async def request_completion(
        self,
        *,
        prompt: str,
        image: ImageReference,
        schema: dict[str, Any],
        params: ModelParameters,
        system_prompt: str = "",
    ) -> CompletionOutput:
        request_payload = build_completion_params(
            schema=schema,
            system_prompt=system_prompt,
            user_prompt=prompt,
            image=image,
            params=params,
        )
        try:
            payload = await self.provider.create_completion(request_payload)
        except Exception as exc:
            logger.warning("Completion provider call failed: %s", exc)
            raise CompletionProviderError(str(exc) or exc.__class__.__name__) from exc

        text = extract_completion_text(payload)
        if not text.strip():
            raise EmptyCompletionError("Resposta vazia da IA")

        model_used = payload.get("model") if isinstance(payload.get("model"), str) else params.model
        return CompletionOutput(
            text=text,
            model_used=model_used,
            total_tokens=extract_total_tokens(payload),
            raw_response=payload,
        )
