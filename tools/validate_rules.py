#!/usr/bin/env python3
from __future__ import annotations
import sys, yaml
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Defaults(_Section):
    weight: Optional[float] = Field(None, ge=0, le=1)
    score: Optional[float] = Field(None, ge=0, le=100)


class Count(_Section):
    base: Optional[float] = Field(None, ge=0, le=100)
    cap: Optional[float] = Field(None, ge=0, le=100)


class Flags(_Section):
    red: Optional[float] = Field(None, ge=0, le=100)
    yellow: Optional[float] = Field(None, ge=0, le=100)


class Confidence(_Section):
    base: Optional[float] = Field(None, ge=0, le=100)
    step: Optional[float] = Field(None, ge=0, le=100)


class Levels(_Section):
    high: Optional[float] = Field(None, ge=0, le=100)
    moderate: Optional[float] = Field(None, ge=0, le=100)


class Combined(_Section):
    scale: Optional[float] = Field(None, gt=0)


class Exposure(_Section):
    alpha: Optional[float] = Field(None, ge=0, le=1)


def _check_range(values: Dict[str, float], low: float, high: float) -> Dict[str, float]:
    for key, value in values.items():
        if not low <= value <= high:
            raise ValueError(f"{key}={value} outside [{low}, {high}]")
    return values


class RulesFile(_Section):
    weights: Dict[str, float] = Field(default_factory=dict)
    scores: Dict[str, float] = Field(default_factory=dict)
    multipliers: Dict[str, float] = Field(default_factory=dict)
    severity_scores: Dict[str, float] = Field(default_factory=dict)
    combined_weights: Dict[str, float] = Field(default_factory=dict)
    defaults: Defaults = Field(default_factory=Defaults)
    count: Count = Field(default_factory=Count)
    flags: Flags = Field(default_factory=Flags)
    confidence: Confidence = Field(default_factory=Confidence)
    levels: Levels = Field(default_factory=Levels)
    combined: Combined = Field(default_factory=Combined)
    exposure: Exposure = Field(default_factory=Exposure)

    @field_validator("weights")
    @classmethod
    def _weights_in_range(cls, v):
        return _check_range(v, 0, 1)

    @field_validator("scores", "severity_scores", "combined_weights")
    @classmethod
    def _scores_in_range(cls, v):
        return _check_range(v, 0, 100)

    @field_validator("multipliers")
    @classmethod
    def _multipliers_positive(cls, v):
        return _check_range(v, 0, 10)


def main(rules_path="data/risk_rules.yaml") -> int:
    path = Path(rules_path)
    if not path.exists():
        print(f"[err] missing {path}")
        return 1
    try:
        content = yaml.safe_load(open(path, "r", encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        print(f"[err] {path.name}: invalid YAML: {exc}")
        return 2
    if not isinstance(content, dict):
        print(f"[err] {path.name}: top level must be a mapping")
        return 2
    try:
        rules = RulesFile.model_validate(content)
    except ValidationError as exc:
        for error in exc.errors():
            loc = ".".join(str(part) for part in error["loc"])
            print(f"[err] {path.name}: {loc}: {error['msg']}")
        return 2
    if rules.flags.red is not None and rules.flags.yellow is not None and rules.flags.yellow > rules.flags.red:
        print(f"[warn] {path.name}: yellow threshold above red threshold")
    if rules.levels.high is not None and rules.levels.moderate is not None and rules.levels.moderate > rules.levels.high:
        print(f"[warn] {path.name}: moderate level above high level")
    print(f"[ok] {path} is a valid rules file")
    return 0

if __name__ == "__main__":
    raise SystemExit(main(*(sys.argv[1:2])))
