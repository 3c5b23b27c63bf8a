from __future__ import annotations

import re
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .analysis_service import AnalysisRequest
    from .config_store import AIConfig, BrandManual

PLACEHOLDER_PATTERN = re.compile(r"\{\{([A-Za-z0-9_]+)\}\}")


def build_prompt(template: str, substitutions: Mapping[str, str | None]) -> str:
    """Replace every ``{{NAME}}`` token that has a substitution.

    Tokens without a substitution are left verbatim.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in substitutions:
            return match.group(0)
        value = substitutions[name]
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template or "")


def find_placeholders(text: str) -> list[str]:
    seen: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text or ""):
        name = match.group(1)
        if name not in seen:
            seen.append(name)
    return seen


def build_analysis_prompt(
    ai_config: "AIConfig",
    brand_manual: "BrandManual",
    request: "AnalysisRequest",
) -> str:
    return build_prompt(
        ai_config.prompt_template,
        {
            "CONTEXT": request.context,
            "JTBD": request.job_to_be_done,
            "VOICE_PRINCIPLES": brand_manual.voice_principles,
            "RULES": brand_manual.rules,
        },
    )
