from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import aiofiles
import httpx

from .settings import Settings

logger = logging.getLogger(__name__)

AI_CONFIG_FILENAME = "ai_config.json"
BRAND_MANUAL_FILENAME = "brand_manual.json"


class ConfigStoreError(RuntimeError):
    pass


class ConfigNotFoundError(ConfigStoreError):
    pass


@dataclass
class AIConfig:
    prompt_template: str
    system_prompt: str = ""
    api_parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "AIConfig":
        template = row.get("prompt_template")
        if not isinstance(template, str) or not template.strip():
            raise ConfigNotFoundError("Configurações da IA não encontradas")
        system_prompt = row.get("system_prompt")
        api_parameters = row.get("api_parameters")
        return cls(
            prompt_template=template,
            system_prompt=system_prompt if isinstance(system_prompt, str) else "",
            api_parameters=api_parameters if isinstance(api_parameters, dict) else {},
        )


@dataclass
class BrandManual:
    voice_principles: str
    rules: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BrandManual":
        voice_principles = row.get("voice_principles")
        rules = row.get("rules")
        if not isinstance(voice_principles, str) and not isinstance(rules, str):
            raise ConfigNotFoundError("Manual da marca não encontrado")
        return cls(
            voice_principles=voice_principles if isinstance(voice_principles, str) else "",
            rules=rules if isinstance(rules, str) else "",
        )


class ConfigStore(Protocol):
    kind: str

    async def get_ai_config(self) -> AIConfig: ...

    async def get_brand_manual(self) -> BrandManual: ...


class JsonConfigStore:
    """Configuration rows kept as two JSON files in one directory."""

    kind = "json"

    def __init__(self, *, root: Path) -> None:
        self.root = root

    async def get_ai_config(self) -> AIConfig:
        row = await self._read_row(AI_CONFIG_FILENAME, missing_message="Configurações da IA não encontradas")
        return AIConfig.from_row(row)

    async def get_brand_manual(self) -> BrandManual:
        row = await self._read_row(BRAND_MANUAL_FILENAME, missing_message="Manual da marca não encontrado")
        return BrandManual.from_row(row)

    async def _read_row(self, filename: str, *, missing_message: str) -> dict[str, Any]:
        path = self.root / filename
        if not path.exists():
            raise ConfigNotFoundError(missing_message)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as handle:
                raw = await handle.read()
        except OSError as exc:
            raise ConfigStoreError(f"Failed to read '{filename}': {exc}") from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigStoreError(f"Invalid JSON in '{filename}': {exc}") from exc
        if not isinstance(payload, dict):
            raise ConfigStoreError(f"Expected object JSON in '{filename}', got {type(payload).__name__}")
        return payload


class SupabaseConfigStore:
    """Point reads against the PostgREST endpoint of a Supabase project."""

    kind = "supabase"

    def __init__(
        self,
        *,
        url: str,
        service_key: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url.strip().rstrip("/")
        self.service_key = service_key.strip()
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def get_ai_config(self) -> AIConfig:
        row = await self._select_single(
            "ai_configs",
            "system_prompt,prompt_template,api_parameters",
            missing_message="Configurações da IA não encontradas",
        )
        return AIConfig.from_row(row)

    async def get_brand_manual(self) -> BrandManual:
        row = await self._select_single(
            "brand_manuals",
            "voice_principles,rules",
            missing_message="Manual da marca não encontrado",
        )
        return BrandManual.from_row(row)

    async def _select_single(self, table: str, columns: str, *, missing_message: str) -> dict[str, Any]:
        endpoint = f"{self.url}/rest/v1/{table}"
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(endpoint, headers=headers, params={"select": columns, "limit": "1"})
        except httpx.HTTPError as exc:
            raise ConfigStoreError(f"Configuration store request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Configuration store returned %s for %s: %s", response.status_code, table, response.text[:300])
            raise ConfigStoreError(f"Configuration store request failed ({response.status_code}) for '{table}'")
        try:
            rows = response.json()
        except ValueError as exc:
            raise ConfigStoreError(f"Configuration store returned invalid JSON for '{table}'") from exc

        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            raise ConfigNotFoundError(missing_message)
        return rows[0]


def build_config_store(settings: Settings) -> JsonConfigStore | SupabaseConfigStore:
    if settings.uses_supabase:
        return SupabaseConfigStore(
            url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
        )
    return JsonConfigStore(root=settings.config_dir)
