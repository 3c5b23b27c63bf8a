from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from uxreview.completion import CompletionClient  # noqa: E402
from uxreview.main import create_app  # noqa: E402
from uxreview.settings import Settings  # noqa: E402

ANALYSIS_PATHS = ["/api/analise-ui-ux", "/functions/v1/analise-ui-ux"]

REQUEST_BODY = {
    "context": "App de cadastro de clientes",
    "jobToBeDone": "Criar uma conta em menos de um minuto",
    "image": "https://cdn.example.test/cadastro.png",
}


def _client(config_store, provider) -> TestClient:
    app = create_app(
        settings=Settings(),
        config_store=config_store,
        completion_client=CompletionClient(provider),
    )
    return TestClient(app)


def _parse_sse(body: str) -> list[dict]:
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if not frame:
            continue
        assert frame.startswith("data: ")
        events.append(json.loads(frame[len("data: "):]))
    return events


@pytest.mark.parametrize("path", ANALYSIS_PATHS)
def test_post_streams_progress_then_result(path, fake_config_store, make_provider, valid_analysis):
    client = _client(fake_config_store, make_provider(document=valid_analysis))

    response = client.post(path, json=REQUEST_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["access-control-allow-origin"] == "*"

    events = _parse_sse(response.text)
    assert [event["type"] for event in events] == ["progress"] * 7 + ["result"]
    assert events[-1]["data"] == valid_analysis


def test_jtbd_alias_is_accepted(fake_config_store, make_provider, valid_analysis):
    provider = make_provider(document=valid_analysis)
    client = _client(fake_config_store, provider)
    body = {"context": "Checkout", "jtbd": "Pagar com Pix", "image": "AAAA", "imageType": "png"}

    response = client.post("/api/analise-ui-ux", json=body)

    assert response.status_code == 200
    assert _parse_sse(response.text)[-1]["type"] == "result"
    image_part = provider.calls[0]["messages"][1]["content"][1]
    assert image_part["image_url"]["url"] == "data:image/png;base64,AAAA"


def test_missing_image_is_rejected_without_stream(fake_config_store, make_provider, valid_analysis):
    provider = make_provider(document=valid_analysis)
    client = _client(fake_config_store, provider)
    body = {"context": "Checkout", "jobToBeDone": "Pagar com Pix"}

    response = client.post("/api/analise-ui-ux", json=body)

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/json")
    payload = response.json()
    assert payload["error"] == "Parâmetros obrigatórios ausentes"
    assert payload["missing"] == ["image"]
    assert "data:" not in response.text
    assert provider.calls == []
    assert fake_config_store.calls == []


def test_blank_fields_count_as_missing(fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.post("/api/analise-ui-ux", json={"context": "  ", "jobToBeDone": "", "image": "AAAA"})

    assert response.status_code == 400
    assert response.json()["missing"] == ["context", "jobToBeDone"]


def test_wrongly_typed_field_is_rejected(fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.post("/api/analise-ui-ux", json={**REQUEST_BODY, "context": 5})

    assert response.status_code == 400
    assert response.json()["fields"] == ["context"]


@pytest.mark.parametrize("raw_body", ["{not json", "[1, 2]"])
def test_non_object_body_is_rejected(raw_body, fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.post(
        "/api/analise-ui-ux",
        content=raw_body,
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Corpo da requisição inválido"


def test_provider_failure_is_streamed_as_error(fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(error=RuntimeError("quota exceeded")))

    response = client.post("/api/analise-ui-ux", json=REQUEST_BODY)

    assert response.status_code == 200
    events = _parse_sse(response.text)
    assert [event["type"] for event in events].count("error") == 1
    assert events[-1]["type"] == "error"
    assert "quota exceeded" in events[-1]["data"]["message"]


@pytest.mark.parametrize("path", ANALYSIS_PATHS)
def test_preflight_returns_no_content(path, fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.options(path)

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


@pytest.mark.parametrize("path", ANALYSIS_PATHS)
def test_browser_preflight_gets_empty_204(path, fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.options(
        path,
        headers={
            "Origin": "https://www.figma.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert "content-type" in response.headers["access-control-allow-headers"]


def test_configured_origins_are_echoed_only_when_allowed(fake_config_store, make_provider, valid_analysis):
    app = create_app(
        settings=Settings(cors_allow_origins=["https://www.figma.com"]),
        config_store=fake_config_store,
        completion_client=CompletionClient(make_provider(document=valid_analysis)),
    )
    client = TestClient(app)

    allowed = client.options(
        "/api/analise-ui-ux",
        headers={"Origin": "https://www.figma.com", "Access-Control-Request-Method": "POST"},
    )
    assert allowed.status_code == 204
    assert allowed.headers["access-control-allow-origin"] == "https://www.figma.com"
    assert allowed.headers["vary"] == "Origin"

    response = client.post("/api/analise-ui-ux", json=REQUEST_BODY, headers={"Origin": "https://evil.example.test"})
    assert response.status_code == 200
    assert "access-control-allow-origin" not in response.headers


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_other_methods_are_not_allowed(method, fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}"))

    response = client.request(method, "/api/analise-ui-ux")

    assert response.status_code == 405
    assert response.json() == {
        "error": "Método não permitido",
        "message": "Esta API aceita apenas requisições POST",
    }


def test_health_reports_wiring(fake_config_store, make_provider):
    client = _client(fake_config_store, make_provider(content="{}", configured=False))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "provider_configured": False, "config_store": "fake"}
