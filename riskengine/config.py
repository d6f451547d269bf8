"""Scoring rules for the interaction risk engine.

Every constant used by the normalizer, the aggregator and the alternative
strategies lives in :class:`RiskRules`.  The defaults below are hand-tuned
heuristics carried over from the consumer application; none of them has been
validated against clinical outcomes, so deployments are expected to override
them through a YAML rules file rather than by editing code.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DATA_DIR = Path(os.getenv("RISK_DATA_DIR", "data"))

DEFAULT_SOURCE_WEIGHTS: Dict[str, float] = {
    "fdaReports": 0.35,
    "openFDA": 0.35,
    "suppAI": 0.15,
    "mechanism": 0.3,
    "aiLiterature": 0.25,
    "peerReports": 0.05,
    "rxnorm": 0.2,
}

DEFAULT_SOURCE_SCORES: Dict[str, float] = {
    "fdaReports": 70,
    "openFDA": 70,
    "suppAI": 50,
    "mechanism": 60,
    "aiLiterature": 55,
    "peerReports": 40,
    "rxnorm": 65,
}

DEFAULT_SEVERITY_MULTIPLIERS: Dict[str, float] = {
    "mild": 1.0,
    "moderate": 1.25,
    "severe": 1.5,
}

DEFAULT_SEVERITY_SCORES: Dict[str, float] = {
    "severe": 80,
    "moderate": 50,
    "minor": 30,
    "unknown": 20,
    "safe": 10,
}

DEFAULT_COMBINED_WEIGHTS: Dict[str, float] = {
    "severe": 40,
    "moderate": 20,
    "minor": 10,
}


@dataclass(frozen=True)
class RiskRules:
    """Tunable parameters shared by every scoring strategy."""

    source_weights: Dict[str, float] = field(
        default_factory=lambda: DEFAULT_SOURCE_WEIGHTS.copy()
    )
    source_scores: Dict[str, float] = field(
        default_factory=lambda: DEFAULT_SOURCE_SCORES.copy()
    )
    default_weight: float = 0.2
    default_score: float = 50
    count_base: float = 40
    count_cap: float = 60
    severity_multipliers: Dict[str, float] = field(
        default_factory=lambda: DEFAULT_SEVERITY_MULTIPLIERS.copy()
    )
    red_threshold: float = 70
    yellow_threshold: float = 40
    confidence_base: float = 50
    confidence_step: float = 10
    severity_scores: Dict[str, float] = field(
        default_factory=lambda: DEFAULT_SEVERITY_SCORES.copy()
    )
    combined_weights: Dict[str, float] = field(
        default_factory=lambda: DEFAULT_COMBINED_WEIGHTS.copy()
    )
    combined_scale: float = 2.5
    high_threshold: float = 75
    moderate_threshold: float = 40
    alpha: float = 0.5

    def weight_for(self, key: str) -> float:
        return float(self.source_weights.get(key, self.default_weight))

    def score_for(self, key: str) -> float:
        return float(self.source_scores.get(key, self.default_score))

    def multiplier_for(self, severity: Any) -> float:
        return float(self.severity_multipliers.get(str(severity).lower(), 1.0))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DEFAULT_RULES = RiskRules()

# YAML section name -> RiskRules mapping field
_MAPPING_SECTIONS = {
    "weights": "source_weights",
    "scores": "source_scores",
    "multipliers": "severity_multipliers",
    "severity_scores": "severity_scores",
    "combined_weights": "combined_weights",
}

# YAML section -> {key: RiskRules scalar field}
_SCALAR_SECTIONS = {
    "defaults": {"weight": "default_weight", "score": "default_score"},
    "count": {"base": "count_base", "cap": "count_cap"},
    "flags": {"red": "red_threshold", "yellow": "yellow_threshold"},
    "confidence": {"base": "confidence_base", "step": "confidence_step"},
    "levels": {"high": "high_threshold", "moderate": "moderate_threshold"},
    "combined": {"scale": "combined_scale"},
    "exposure": {"alpha": "alpha"},
}


class DataHealthTracker:
    """Remember which rules and usage files loaded and which fell back.

    Entries are keyed by a short label (the file name) and keep the full path
    so ``/api/health`` shows exactly which file a deployment is reading.
    """

    def __init__(self) -> None:
        self._loaded: Dict[str, str] = {}
        self._failed: Dict[str, Dict[str, str]] = {}

    def record_success(self, source: str, path: Optional[str | Path] = None) -> None:
        self._failed.pop(source, None)
        self._loaded[source] = str(path) if path is not None else source

    def record_failure(
        self, source: str, error: str, path: Optional[str | Path] = None
    ) -> None:
        self._loaded.pop(source, None)
        self._failed[source] = {
            "path": str(path) if path is not None else source,
            "error": error,
        }

    def reset(self) -> None:
        self._loaded.clear()
        self._failed.clear()

    def snapshot(self) -> Dict[str, Any]:
        issues = [{"source": source, **detail} for source, detail in self._failed.items()]
        loaded = [{"source": source, "path": path} for source, path in self._loaded.items()]
        return {
            "status": "degraded" if issues else "healthy",
            "loaded": loaded,
            "issues": issues,
        }


DATA_HEALTH = DataHealthTracker()


def resolve_rules_path(path: Optional[str | Path] = None) -> Path:
    if path:
        return Path(path)
    env_path = os.getenv("RISK_RULES_PATH")
    if env_path:
        return Path(env_path)
    return DATA_DIR / "risk_rules.yaml"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _merge_rules(base: RiskRules, content: Dict[str, Any]) -> RiskRules:
    updates: Dict[str, Any] = {}

    for section, attr in _MAPPING_SECTIONS.items():
        raw = content.get(section)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"section '{section}' must be a mapping")
        merged = dict(getattr(base, attr))
        for key, value in raw.items():
            if not _is_number(value):
                raise ValueError(f"{section}.{key} must be numeric, got {value!r}")
            merged[str(key)] = float(value)
        updates[attr] = merged

    for section, fields in _SCALAR_SECTIONS.items():
        raw = content.get(section)
        if raw is None:
            continue
        if not isinstance(raw, dict):
            raise ValueError(f"section '{section}' must be a mapping")
        for key, attr in fields.items():
            if key not in raw:
                continue
            value = raw[key]
            if not _is_number(value):
                raise ValueError(f"{section}.{key} must be numeric, got {value!r}")
            updates[attr] = float(value)

    return replace(base, **updates)


def load_rules(
    path: Optional[str | Path] = None,
    health: Optional[DataHealthTracker] = None,
) -> RiskRules:
    """Load scoring rules from YAML, falling back to :data:`DEFAULT_RULES`.

    A missing or malformed file never raises; the problem is logged and
    recorded against the file name in ``health`` so ``/api/health`` reports
    the service as degraded while it keeps scoring with the defaults.
    """

    tracker = health if health is not None else DATA_HEALTH
    config_path = resolve_rules_path(path)

    if not config_path.exists():
        logger.warning("Rules config not found at %s; using defaults", config_path)
        tracker.record_failure(
            config_path.name, "missing rules config", path=config_path
        )
        return DEFAULT_RULES

    try:
        with open(config_path, encoding="utf-8") as fh:
            content = yaml.safe_load(fh) or {}
        if not isinstance(content, dict):
            raise ValueError("rules config must be a mapping at the top level")
        rules = _merge_rules(DEFAULT_RULES, content)
    except Exception as exc:
        logger.error("Failed to load rules config %s: %s", config_path, exc)
        tracker.record_failure(config_path.name, f"invalid rules config: {exc}", path=config_path)
        return DEFAULT_RULES

    tracker.record_success(config_path.name, path=config_path)
    logger.info("Loaded risk rules from %s", config_path)
    return rules
