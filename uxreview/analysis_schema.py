from __future__ import annotations

import copy
from typing import Any

import jsonschema

from .schema_nodes import SchemaDefinitionError, compile_schema

SCHEMA_VERSION = "v6"
SCHEMA_NAME = "analise_ui_ux_v6"
SCORE_MINIMUM = 0
SCORE_MAXIMUM = 10
MAX_PRIORITIES = 3


class AnalysisSchemaError(RuntimeError):
    pass


def _score() -> dict[str, Any]:
    return {"type": "number", "minimum": SCORE_MINIMUM, "maximum": SCORE_MAXIMUM}


def _change_item(*, with_wcag: bool = False) -> dict[str, Any]:
    properties: dict[str, Any] = {"elemento": {"type": "string"}}
    if with_wcag:
        properties["wcag"] = {"type": ["string", "null"]}
    properties.update(
        {
            "antes": {"type": ["string", "null"]},
            "depois": {"type": "string"},
            "porque": {"type": "string"},
        }
    )
    return {
        "type": "object",
        "properties": properties,
        "required": ["elemento", "depois", "porque"],
    }


ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "schemaVersion": {"type": "string", "enum": [SCHEMA_VERSION]},
        "pontuacaoGeral": _score(),
        "objetivoInferido": {"type": "string"},
        "jobToBeDone": {
            "type": "object",
            "properties": {
                "placeholderExemplo": {"type": "string"},
                "avaliacao": {
                    "type": "object",
                    "properties": {
                        "atinge": {"type": "boolean"},
                        "justificativa": {"type": "string"},
                        "sugestoes": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["atinge", "justificativa"],
                },
            },
            "required": ["placeholderExemplo", "avaliacao"],
        },
        "tomDeVoz": {
            "type": "object",
            "properties": {
                "nota": _score(),
                "manter": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "elemento": {"type": "string"},
                            "motivo": {"type": "string"},
                        },
                        "required": ["elemento", "motivo"],
                    },
                },
                "mudar": {
                    "type": "array",
                    "description": "Mudanças concretas: Mude X → Y porque Z.",
                    "items": _change_item(),
                },
            },
            "required": ["nota"],
        },
        "experiencia": {
            "type": "object",
            "description": "Usabilidade + Visual + Acessibilidade (mesma aba).",
            "properties": {
                "nota": _score(),
                "usabilidade": {"type": "array", "items": _change_item()},
                "visual": {"type": "array", "items": _change_item()},
                "acessibilidade": {
                    "type": "array",
                    "description": "Cite WCAG quando possível (ex.: 1.4.3).",
                    "items": _change_item(with_wcag=True),
                },
                "cta": {
                    "type": "object",
                    "properties": {
                        "principal": {"type": ["string", "null"]},
                        "clareza": _score(),
                        "recomendacao": {"type": "string"},
                    },
                    "required": ["clareza", "recomendacao"],
                },
            },
            "required": ["nota"],
        },
        "prioridadesTop3": {
            "type": "array",
            "minItems": 1,
            "maxItems": MAX_PRIORITIES,
            "items": {
                "type": "object",
                "properties": {
                    "resumo": {"type": "string"},
                    "motivo": {"type": "string"},
                },
                "required": ["resumo", "motivo"],
            },
        },
    },
    "required": [
        "schemaVersion",
        "pontuacaoGeral",
        "jobToBeDone",
        "tomDeVoz",
        "experiencia",
        "prioridadesTop3",
    ],
    "additionalProperties": False,
}

ANALYSIS_SCHEMA_NODE = compile_schema(ANALYSIS_SCHEMA)


def analysis_schema_copy() -> dict[str, Any]:
    return copy.deepcopy(ANALYSIS_SCHEMA)


def check_analysis_schema(schema: dict[str, Any] | None = None) -> None:
    """Fail fast when the schema literal is not a usable Draft 7 JSON Schema."""
    payload = ANALYSIS_SCHEMA if schema is None else schema
    try:
        jsonschema.Draft7Validator.check_schema(payload)
    except jsonschema.exceptions.SchemaError as exc:
        raise AnalysisSchemaError(f"Analysis schema is not a valid JSON Schema: {exc.message}") from exc
    try:
        compile_schema(payload)
    except SchemaDefinitionError as exc:
        raise AnalysisSchemaError(f"Analysis schema cannot be compiled: {exc}") from exc
