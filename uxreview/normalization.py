from __future__ import annotations

import copy
from typing import Any

from .analysis_schema import MAX_PRIORITIES, SCHEMA_VERSION, SCORE_MAXIMUM, SCORE_MINIMUM

PLACEHOLDER_PRIORITY = {
    "resumo": "Prioridade não identificada",
    "motivo": "Análise incompleta ou dados insuficientes",
}


def normalize_analysis(raw: Any) -> Any:
    """Repair a near-conformant v6 analysis before strict validation.

    Missing (absent or null) sections get minimal defaults, the priority list
    is kept between one and three entries and out-of-range scores fall back
    to 0. Values the model supplied with the wrong type are left in place for
    the validator to report. Returns a new document; input that is not a
    mapping is returned as-is.
    """
    if not isinstance(raw, dict):
        return raw

    normalized = copy.deepcopy(raw)
    normalized["schemaVersion"] = SCHEMA_VERSION

    _default_sections(normalized)
    _normalize_priorities(normalized)
    _normalize_scores(normalized)
    return normalized


def _default_job_evaluation() -> dict[str, Any]:
    return {"atinge": False, "justificativa": "", "sugestoes": []}


def _default_cta() -> dict[str, Any]:
    return {"principal": None, "clareza": 0, "recomendacao": ""}


def _default_sections(document: dict[str, Any]) -> None:
    _set_if_missing(document, "objetivoInferido", "")

    default_job = {"placeholderExemplo": "", "avaliacao": _default_job_evaluation()}
    if not _set_if_missing(document, "jobToBeDone", default_job) and isinstance(document["jobToBeDone"], dict):
        job = document["jobToBeDone"]
        _set_if_missing(job, "placeholderExemplo", "")
        if not _set_if_missing(job, "avaliacao", _default_job_evaluation()) and isinstance(job["avaliacao"], dict):
            _set_if_missing(job["avaliacao"], "sugestoes", [])

    if not _set_if_missing(document, "tomDeVoz", {"nota": 0, "manter": [], "mudar": []}) and isinstance(
        document["tomDeVoz"], dict
    ):
        voice = document["tomDeVoz"]
        _set_if_missing(voice, "manter", [])
        _set_if_missing(voice, "mudar", [])

    default_experience = {
        "nota": 0,
        "usabilidade": [],
        "visual": [],
        "acessibilidade": [],
        "cta": _default_cta(),
    }
    if not _set_if_missing(document, "experiencia", default_experience) and isinstance(
        document["experiencia"], dict
    ):
        experience = document["experiencia"]
        _set_if_missing(experience, "usabilidade", [])
        _set_if_missing(experience, "visual", [])
        _set_if_missing(experience, "acessibilidade", [])
        _set_if_missing(experience, "cta", _default_cta())


def _normalize_priorities(document: dict[str, Any]) -> None:
    priorities = document.get("prioridadesTop3")
    if priorities is None or (isinstance(priorities, list) and not priorities):
        document["prioridadesTop3"] = [dict(PLACEHOLDER_PRIORITY)]
        return
    if isinstance(priorities, list) and len(priorities) > MAX_PRIORITIES:
        document["prioridadesTop3"] = priorities[:MAX_PRIORITIES]


def _normalize_scores(document: dict[str, Any]) -> None:
    # A missing overall score is left for the validator to reject.
    if "pontuacaoGeral" in document:
        document["pontuacaoGeral"] = _clamp_score(document["pontuacaoGeral"])

    voice = document.get("tomDeVoz")
    if isinstance(voice, dict):
        voice["nota"] = _clamp_score(voice.get("nota"))

    experience = document.get("experiencia")
    if isinstance(experience, dict):
        experience["nota"] = _clamp_score(experience.get("nota"))
        cta = experience.get("cta")
        if isinstance(cta, dict):
            cta["clareza"] = _clamp_score(cta.get("clareza"))


def _clamp_score(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    # NaN compares unequal to itself
    if value != value or value < SCORE_MINIMUM or value > SCORE_MAXIMUM:
        return 0
    return value


def _set_if_missing(parent: dict[str, Any], key: str, default: Any) -> bool:
    if parent.get(key) is None:
        parent[key] = default
        return True
    return False
