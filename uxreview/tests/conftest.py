from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from uxreview.config_store import AIConfig, BrandManual, ConfigNotFoundError  # noqa: E402

VALID_ANALYSIS: dict[str, Any] = {
    "schemaVersion": "v6",
    "pontuacaoGeral": 7.5,
    "objetivoInferido": "Concluir o cadastro para receber ofertas personalizadas.",
    "jobToBeDone": {
        "placeholderExemplo": "Quero me cadastrar rápido para ver as ofertas.",
        "avaliacao": {
            "atinge": True,
            "justificativa": "O formulário é curto e o botão está visível.",
            "sugestoes": ["Mostrar quantos passos faltam."],
        },
    },
    "tomDeVoz": {
        "nota": 8,
        "manter": [{"elemento": "Título", "motivo": "Fala direto com a pessoa usuária."}],
        "mudar": [
            {
                "elemento": "Botão secundário",
                "antes": "SUBMETER",
                "depois": "Enviar cadastro",
                "porque": "Caixa alta soa agressiva e 'submeter' é jargão.",
            }
        ],
    },
    "experiencia": {
        "nota": 6,
        "usabilidade": [
            {
                "elemento": "Campo de CPF",
                "antes": None,
                "depois": "Aplicar máscara automática",
                "porque": "Reduz erros de digitação.",
            }
        ],
        "visual": [],
        "acessibilidade": [
            {
                "elemento": "Texto de ajuda",
                "wcag": "1.4.3",
                "antes": "Cinza claro sobre branco",
                "depois": "Cinza escuro #595959",
                "porque": "Contraste abaixo de 4.5:1.",
            }
        ],
        "cta": {
            "principal": "Criar conta",
            "clareza": 9,
            "recomendacao": "Manter o verbo de ação.",
        },
    },
    "prioridadesTop3": [
        {"resumo": "Ajustar contraste do texto de ajuda", "motivo": "Falha WCAG 1.4.3."},
        {"resumo": "Trocar rótulo do botão secundário", "motivo": "Tom de voz inconsistente."},
        {"resumo": "Máscara no CPF", "motivo": "Evita erros no envio."},
    ],
}


@pytest.fixture
def valid_analysis() -> dict[str, Any]:
    return copy.deepcopy(VALID_ANALYSIS)


class FakeConfigStore:
    kind = "fake"

    def __init__(
        self,
        *,
        ai_config: AIConfig | None = None,
        brand_manual: BrandManual | None = None,
        ai_config_error: Exception | None = None,
        brand_manual_error: Exception | None = None,
    ) -> None:
        self.ai_config = ai_config or AIConfig(
            system_prompt="Você é um especialista em UX.",
            prompt_template="Contexto: {{CONTEXT}}\nJTBD: {{JTBD}}\nVoz: {{VOICE_PRINCIPLES}}\nRegras: {{RULES}}",
            api_parameters={},
        )
        self.brand_manual = brand_manual or BrandManual(
            voice_principles="Clara e próxima.",
            rules="Verbos de ação nos botões.",
        )
        self.ai_config_error = ai_config_error
        self.brand_manual_error = brand_manual_error
        self.calls: list[str] = []

    async def get_ai_config(self) -> AIConfig:
        self.calls.append("ai_config")
        if self.ai_config_error is not None:
            raise self.ai_config_error
        return self.ai_config

    async def get_brand_manual(self) -> BrandManual:
        self.calls.append("brand_manual")
        if self.brand_manual_error is not None:
            raise self.brand_manual_error
        return self.brand_manual


class FakeProvider:
    route_id = "fake"

    def __init__(
        self,
        *,
        content: str | None = None,
        document: Any = None,
        error: Exception | None = None,
        configured: bool = True,
    ) -> None:
        if content is None and document is not None:
            content = json.dumps(document, ensure_ascii=False)
        self.content = content
        self.error = error
        self.configured = configured
        self.calls: list[dict[str, Any]] = []

    async def create_completion(self, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return {
            "model": params.get("model"),
            "choices": [{"message": {"role": "assistant", "content": self.content}}],
            "usage": {"total_tokens": 1234},
        }


@pytest.fixture
def fake_config_store() -> FakeConfigStore:
    return FakeConfigStore()


@pytest.fixture
def missing_config_store() -> FakeConfigStore:
    return FakeConfigStore(ai_config_error=ConfigNotFoundError("Configurações da IA não encontradas"))


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_config_store():
    return FakeConfigStore
