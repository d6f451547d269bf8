#!/usr/bin/env python3
"""Score a CSV of interaction signals offline.

Input columns: ``severity`` plus any of ``<source>_signal``,
``<source>_plausible`` and ``<source>_count`` (e.g. ``fdaReports_count``).
The output repeats the input with ``risk_score``, ``confidence``,
``severity_flag`` and ``risk_level`` appended.
"""
from __future__ import annotations
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from riskengine.aggregator import prepare_risk_assessment
from riskengine.config import DEFAULT_RULES, RiskRules, load_rules

_SUFFIXES = {"_signal": "signal", "_plausible": "plausible", "_count": "count"}
_TRUE = {"true", "1", "yes", "y"}
_FALSE = {"false", "0", "no", "n"}


def _flag(value: Any) -> Optional[bool]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return None


def _count(value: Any) -> Optional[float]:
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return None
    return float(number)


def row_to_raw(row: Dict[str, Any]) -> Dict[str, Any]:
    raw: Dict[str, Dict[str, Any]] = {}
    for column, value in row.items():
        for suffix, field in _SUFFIXES.items():
            if not str(column).endswith(suffix):
                continue
            key = str(column)[: -len(suffix)]
            parsed = _count(value) if field == "count" else _flag(value)
            if parsed is not None:
                raw.setdefault(key, {})[field] = parsed
    return raw


def score_frame(df: pd.DataFrame, rules: RiskRules = DEFAULT_RULES) -> pd.DataFrame:
    results = []
    for row in df.to_dict(orient="records"):
        severity = row.get("severity")
        if severity is not None and pd.isna(severity):
            severity = None
        assessment = prepare_risk_assessment(row_to_raw(row), severity=severity, rules=rules)
        results.append({
            "risk_score": assessment.risk_score,
            "confidence": assessment.confidence,
            "severity_flag": assessment.severity_flag,
            "risk_level": assessment.risk_level,
        })
    scored = pd.DataFrame(results, index=df.index, columns=["risk_score", "confidence", "severity_flag", "risk_level"])
    return pd.concat([df, scored], axis=1)


def main(input_csv="signals.csv", output_csv="scored.csv", rules_path=None) -> int:
    src = Path(input_csv)
    if not src.exists():
        print(f"[err] missing {src}")
        return 1
    rules = load_rules(rules_path) if rules_path else DEFAULT_RULES
    df = pd.read_csv(src)
    out = score_frame(df, rules)
    out.to_csv(output_csv, index=False)
    print(f"[ok] wrote {output_csv} ({len(out)} rows)")
    return 0

if __name__ == "__main__":
    raise SystemExit(main(*(sys.argv[1:4])))
