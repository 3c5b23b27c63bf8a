from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .analysis_schema import AnalysisSchemaError, check_analysis_schema
from .analysis_service import AnalysisOrchestrator, AnalysisRequest
from .completion import CompletionClient
from .config_store import ConfigStore, build_config_store
from .llm_providers import OpenAICompletionProvider
from .progress_stream import ProgressStream
from .settings import Settings

logger = logging.getLogger(__name__)

CORS_ALLOW_METHODS = "POST, GET, OPTIONS"
CORS_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
REQUIRED_FIELDS_MESSAGE = "Os campos 'context', 'jobToBeDone' e 'image' são obrigatórios"


class AnalysisRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    context: str = ""
    job_to_be_done: str = Field(default="", validation_alias=AliasChoices("jobToBeDone", "jtbd", "job_to_be_done"))
    image: str = ""
    image_type: str | None = Field(default=None, validation_alias=AliasChoices("imageType", "image_type"))

    def missing_fields(self) -> list[str]:
        missing: list[str] = []
        if not self.context.strip():
            missing.append("context")
        if not self.job_to_be_done.strip():
            missing.append("jobToBeDone")
        if not self.image.strip():
            missing.append("image")
        return missing

    def to_request(self) -> AnalysisRequest:
        return AnalysisRequest(
            context=self.context,
            job_to_be_done=self.job_to_be_done,
            image=self.image,
            image_type=self.image_type.strip() if self.image_type and self.image_type.strip() else None,
        )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_cors_headers(allowed_origins: list[str], request_origin: str | None) -> dict[str, str]:
    """CORS headers for one response; the origin is echoed only when allowed."""
    headers = {
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
    }
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif request_origin and request_origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = request_origin
        headers["Vary"] = "Origin"
    return headers


def _json_error(
    error: str,
    message: str,
    status_code: int,
    *,
    headers: dict[str, str],
    **extra: object,
) -> JSONResponse:
    payload: dict[str, object] = {"error": error, "message": message}
    payload.update(extra)
    return JSONResponse(payload, status_code=status_code, headers=headers)


def create_app(
    *,
    settings: Settings | None = None,
    config_store: ConfigStore | None = None,
    completion_client: CompletionClient | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    # Fail fast on startup if the analysis schema literal is unusable.
    try:
        check_analysis_schema()
    except AnalysisSchemaError as exc:
        raise RuntimeError(f"Analysis schema validation failed during startup: {exc}") from exc

    config_store = config_store or build_config_store(settings)
    completion_client = completion_client or CompletionClient(OpenAICompletionProvider.from_settings(settings))
    orchestrator = AnalysisOrchestrator(
        config_store=config_store,
        completion_client=completion_client,
        settings=settings,
    )
    inflight: set[asyncio.Task] = set()

    allowed_origins = list(settings.cors_allow_origins)

    def cors_headers(request: Request) -> dict[str, str]:
        return build_cors_headers(allowed_origins, request.headers.get("origin"))

    app = FastAPI(title="UX Review Service", version="0.1.0")
    app.state.orchestrator = orchestrator
    app.state.analysis_tasks = inflight

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "provider_configured": completion_client.configured,
            "config_store": getattr(config_store, "kind", "custom"),
        }

    @app.post("/api/analise-ui-ux")
    @app.post("/functions/v1/analise-ui-ux")
    async def create_analysis(request: Request):
        headers = cors_headers(request)
        try:
            raw_body = await request.json()
        except ValueError:
            return _json_error(
                "Corpo da requisição inválido",
                "O corpo da requisição deve ser um JSON válido",
                400,
                headers=headers,
            )
        if not isinstance(raw_body, dict):
            return _json_error(
                "Corpo da requisição inválido",
                "O corpo da requisição deve ser um objeto JSON",
                400,
                headers=headers,
            )

        try:
            body = AnalysisRequestBody.model_validate(raw_body)
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
            return _json_error(
                "Parâmetros inválidos", REQUIRED_FIELDS_MESSAGE, 400, headers=headers, fields=fields
            )

        missing = body.missing_fields()
        if missing:
            return _json_error(
                "Parâmetros obrigatórios ausentes", REQUIRED_FIELDS_MESSAGE, 400, headers=headers, missing=missing
            )

        stream = ProgressStream()
        task = asyncio.create_task(orchestrator.run(body.to_request(), stream))
        inflight.add(task)
        task.add_done_callback(inflight.discard)
        logger.info("Analysis stream opened (image_type=%s)", body.image_type or "auto")

        return StreamingResponse(
            stream.sse(),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, **headers},
        )

    @app.options("/api/analise-ui-ux")
    @app.options("/functions/v1/analise-ui-ux")
    async def analysis_preflight(request: Request):
        return Response(status_code=204, headers=cors_headers(request))

    @app.api_route("/api/analise-ui-ux", methods=["GET", "PUT", "PATCH", "DELETE"])
    @app.api_route("/functions/v1/analise-ui-ux", methods=["GET", "PUT", "PATCH", "DELETE"])
    async def analysis_method_not_allowed(request: Request):
        return _json_error(
            "Método não permitido",
            "Esta API aceita apenas requisições POST",
            405,
            headers=cors_headers(request),
        )

    return app


_settings = Settings.from_env()
configure_logging(_settings.log_level)
app = create_app(settings=_settings)
