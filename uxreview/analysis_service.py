from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .analysis_schema import ANALYSIS_SCHEMA, ANALYSIS_SCHEMA_NODE, SCHEMA_VERSION
from .completion import (
    CompletionClient,
    CompletionProviderError,
    EmptyCompletionError,
    ModelParameters,
    resolve_image_reference,
)
from .config_store import ConfigNotFoundError, ConfigStore, ConfigStoreError
from .normalization import normalize_analysis
from .progress_stream import ProgressStream
from .prompt_builder import build_analysis_prompt, find_placeholders
from .schema_nodes import compile_schema
from .settings import Settings
from .validation import ValidationResult, validate_document

logger = logging.getLogger(__name__)

SCHEMA_VIOLATION_CODE = "LLM_SCHEMA_VIOLATION"

PROGRESS_MESSAGES = {
    "inicializando": "Iniciando análise...",
    "configuracao": "Carregando configurações...",
    "manual": "Carregando manual da marca...",
    "prompt": "Preparando análise...",
    "api": "Analisando com IA...",
    "processando": "Processando resultado...",
    "validacao": "Validando resultado...",
}


class AnalysisStepError(RuntimeError):
    def __init__(self, message: str, *, code: str, stage: str) -> None:
        super().__init__(message)
        self.code = code
        self.stage = stage


@dataclass
class AnalysisRequest:
    context: str
    job_to_be_done: str
    image: str
    image_type: str | None = None


class AnalysisOrchestrator:
    """Runs one analysis request and reports it on a :class:`ProgressStream`.

    Steps run strictly in order: configuration, brand manual, prompt, model
    call, parsing, normalization, validation. The first failure becomes the
    single terminal ``error`` event; the stream is always closed.
    """

    def __init__(
        self,
        *,
        config_store: ConfigStore,
        completion_client: CompletionClient,
        settings: Settings | None = None,
        schema: dict[str, Any] | None = None,
    ) -> None:
        self.config_store = config_store
        self.completion_client = completion_client
        self.settings = settings or Settings()
        self.schema = schema if schema is not None else ANALYSIS_SCHEMA
        self.schema_node = ANALYSIS_SCHEMA_NODE if schema is None else compile_schema(schema)

    async def run(self, request: AnalysisRequest, stream: ProgressStream) -> None:
        started = time.perf_counter()
        try:
            await self._run_steps(request, stream, started=started)
        except AnalysisStepError as exc:
            logger.warning("Analysis failed during %s (%s): %s", exc.stage, exc.code, exc)
            await stream.error(build_failure_payload(str(exc), code=exc.code))
        except Exception as exc:
            logger.exception("Unexpected analysis error")
            await stream.error(build_failure_payload(str(exc) or "Erro desconhecido", code="INTERNAL_ERROR"))
        finally:
            await stream.close()

    async def _run_steps(self, request: AnalysisRequest, stream: ProgressStream, *, started: float) -> None:
        await self._progress(stream, "inicializando")

        await self._progress(stream, "configuracao")
        try:
            ai_config = await self.config_store.get_ai_config()
        except ConfigNotFoundError as exc:
            raise AnalysisStepError(str(exc), code="CONFIG_NOT_FOUND", stage="config") from exc
        except ConfigStoreError as exc:
            raise AnalysisStepError(str(exc), code="CONFIG_UNAVAILABLE", stage="config") from exc

        await self._progress(stream, "manual")
        try:
            brand_manual = await self.config_store.get_brand_manual()
        except ConfigNotFoundError as exc:
            raise AnalysisStepError(str(exc), code="CONFIG_NOT_FOUND", stage="brand_manual") from exc
        except ConfigStoreError as exc:
            raise AnalysisStepError(str(exc), code="CONFIG_UNAVAILABLE", stage="brand_manual") from exc

        await self._progress(stream, "prompt")
        prompt = build_analysis_prompt(ai_config, brand_manual, request)
        unresolved = find_placeholders(prompt)
        if unresolved:
            logger.warning("Prompt template has unresolved placeholders: %s", ", ".join(unresolved))
        image = resolve_image_reference(request.image, request.image_type)
        params = ModelParameters.from_settings(self.settings, ai_config.api_parameters)
        logger.info("Using schema %s with model %s", SCHEMA_VERSION, params.model)

        await self._progress(stream, "api")
        try:
            completion = await self.completion_client.request_completion(
                prompt=prompt,
                image=image,
                schema=self.schema,
                params=params,
                system_prompt=ai_config.system_prompt,
            )
        except EmptyCompletionError as exc:
            raise AnalysisStepError(str(exc), code="LLM_EMPTY_RESPONSE", stage="model_call") from exc
        except CompletionProviderError as exc:
            raise AnalysisStepError(str(exc), code="LLM_PROVIDER_ERROR", stage="model_call") from exc

        await self._progress(stream, "processando")
        parsed = parse_model_output(completion.text)
        normalized = normalize_analysis(parsed)

        await self._progress(stream, "validacao")
        validation = validate_document(normalized, self.schema_node)
        if not validation.valid:
            logger.warning(
                "Model output failed schema validation with %s error(s); first: %s",
                len(validation.errors),
                validation.errors[0].path,
            )
            await stream.error(build_schema_violation_payload(validation))
            return

        self._log_analysis_metadata(
            model_used=completion.model_used,
            started=started,
            document=normalized,
            total_tokens=completion.total_tokens,
        )
        await stream.result(normalized)

    async def _progress(self, stream: ProgressStream, step: str) -> None:
        await stream.progress(step, PROGRESS_MESSAGES[step])

    def _log_analysis_metadata(
        self,
        *,
        model_used: str,
        started: float,
        document: Any,
        total_tokens: int,
    ) -> None:
        processing_ms = int((time.perf_counter() - started) * 1000)
        payload_size = len(json.dumps(document, ensure_ascii=False).encode("utf-8"))
        logger.info(
            "Analysis completed schema=%s model=%s processing_time=%sms payload_size=%s bytes tokens=%s",
            SCHEMA_VERSION,
            model_used,
            processing_ms,
            payload_size,
            total_tokens,
        )


def parse_model_output(text: str) -> Any:
    stripped = text.strip()
    fenced = re.fullmatch(r"```(?:json)?\s*(.*?)\s*```", stripped, flags=re.DOTALL | re.IGNORECASE)
    if fenced:
        stripped = fenced.group(1)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise AnalysisStepError(
            f"A IA retornou um JSON inválido: {exc.msg} (linha {exc.lineno}, coluna {exc.colno})",
            code="LLM_INVALID_JSON",
            stage="parsing",
        ) from exc


def build_failure_payload(message: str, *, code: str) -> dict[str, Any]:
    return {
        "error": "Erro na análise",
        "message": message,
        "code": code,
        "timestamp": _now_iso(),
    }


def build_schema_violation_payload(validation: ValidationResult) -> dict[str, Any]:
    return {
        "error": "Erro de validação do schema",
        "code": SCHEMA_VIOLATION_CODE,
        "details": {"errors": validation.errors_payload()},
        "schema_version": SCHEMA_VERSION,
    }


def _now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )
