from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from uxreview.analysis_service import AnalysisRequest  # noqa: E402
from uxreview.config_store import AIConfig, BrandManual  # noqa: E402
from uxreview.prompt_builder import build_analysis_prompt, build_prompt, find_placeholders  # noqa: E402


def test_every_occurrence_is_replaced():
    prompt = build_prompt("{{CONTEXT}} / {{CONTEXT}} / {{JTBD}}", {"CONTEXT": "checkout", "JTBD": "pagar"})
    assert prompt == "checkout / checkout / pagar"


def test_unknown_placeholders_are_left_verbatim():
    prompt = build_prompt("Contexto: {{CONTEXT}} Extra: {{AUDIENCE}}", {"CONTEXT": "app bancário"})
    assert prompt == "Contexto: app bancário Extra: {{AUDIENCE}}"
    assert find_placeholders(prompt) == ["AUDIENCE"]


def test_none_substitution_becomes_empty_string():
    assert build_prompt("[{{RULES}}]", {"RULES": None}) == "[]"


def test_substituted_values_are_not_expanded_again():
    prompt = build_prompt("{{CONTEXT}}|{{RULES}}", {"CONTEXT": "{{RULES}}", "RULES": "regra"})
    assert prompt == "{{RULES}}|regra"


def test_find_placeholders_returns_unique_names_in_order():
    assert find_placeholders("{{B}} {{A}} {{B}} {single} {{ A }}") == ["B", "A"]
    assert find_placeholders("") == []


def test_analysis_prompt_maps_request_and_brand_manual():
    ai_config = AIConfig(
        prompt_template="C={{CONTEXT}}; J={{JTBD}}; V={{VOICE_PRINCIPLES}}; R={{RULES}}",
    )
    brand_manual = BrandManual(voice_principles="Próxima", rules="Sem jargão")
    request = AnalysisRequest(context="Tela de login", job_to_be_done="Entrar na conta", image="abc")

    prompt = build_analysis_prompt(ai_config, brand_manual, request)

    assert prompt == "C=Tela de login; J=Entrar na conta; V=Próxima; R=Sem jargão"
