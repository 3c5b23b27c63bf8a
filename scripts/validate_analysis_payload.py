#!/usr/bin/env python3
"""Normalize and validate a saved model output against the v6 analysis schema."""

from __future__ import annotations

import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from uxreview.analysis_schema import ANALYSIS_SCHEMA_NODE
from uxreview.normalization import normalize_analysis
from uxreview.validation import validate_document


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print(f"Usage: {Path(argv[0]).name} <model_output.json>")
        return 2

    payload_path = Path(argv[1])
    if not payload_path.exists():
        raise FileNotFoundError(f"Missing payload file: {payload_path}")

    raw = json.loads(payload_path.read_text(encoding="utf-8"))
    normalized = normalize_analysis(raw)
    result = validate_document(normalized, ANALYSIS_SCHEMA_NODE)

    if result.valid:
        print(f"{payload_path.name}: valid")
        return 0

    print(f"{payload_path.name}: {len(result.errors)} schema violation(s)")
    for error in result.errors:
        print(f"  {error.path}: {error.message}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
