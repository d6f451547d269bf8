"""Weighted source consensus.

Only *active* sources (``signal`` or ``plausible`` set to ``True``) count:

    raw        = sum(weight * score * severity_multiplier)
    riskScore  = min(100, round(raw))
    confidence = min(100, 50 + 10 * active_sources)

The flag is red from 70, yellow from 40 and green below.  With no active
sources the result is ``0 / 50 / green``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from riskengine.config import DEFAULT_RULES, RiskRules
from riskengine.models import (
    GREEN,
    RED,
    YELLOW,
    RiskAssessment,
    Sources,
    round_half_up,
)
from riskengine.normalizer import SEVERITY_KEY, normalize_sources, to_aggregation_severity

logger = logging.getLogger(__name__)


def severity_flag(risk_score: float, rules: RiskRules = DEFAULT_RULES) -> str:
    if risk_score >= rules.red_threshold:
        return RED
    if risk_score >= rules.yellow_threshold:
        return YELLOW
    return GREEN


def risk_level(risk_score: float, rules: RiskRules = DEFAULT_RULES) -> str:
    if risk_score >= rules.high_threshold:
        return "High"
    if risk_score >= rules.moderate_threshold:
        return "Moderate"
    return "Low"


def confidence_for(active_count: int, rules: RiskRules = DEFAULT_RULES) -> int:
    value = rules.confidence_base + rules.confidence_step * active_count
    return int(min(100, round_half_up(value)))


def calculate_risk_score(
    severity: Any, sources: Sources, rules: RiskRules = DEFAULT_RULES
) -> RiskAssessment:
    """Combine normalised sources into a single risk assessment."""

    multiplier = rules.multiplier_for(severity)
    active = [source for source in sources.values() if source.active]

    raw_score = 0.0
    for source in active:
        raw_score += source.weight * source.score * multiplier

    score = max(0, min(round_half_up(raw_score), 100))
    logger.debug(
        "Aggregated %d active sources (raw=%.3f, multiplier=%.2f)",
        len(active),
        raw_score,
        multiplier,
    )
    return RiskAssessment(
        risk_score=score,
        confidence=confidence_for(len(active), rules),
        severity_flag=severity_flag(score, rules),
        risk_level=risk_level(score, rules),
    )


def prepare_risk_assessment(
    raw: Optional[Mapping[str, Any]],
    severity: Optional[str] = None,
    rules: RiskRules = DEFAULT_RULES,
) -> RiskAssessment:
    """Normalise ``raw`` source payloads and aggregate them.

    ``severity`` may be given explicitly or inside ``raw`` under the
    ``severity`` key; the explicit argument wins.  The returned assessment
    echoes the severity and the normalised sources for display and auditing.
    """

    if severity is None and isinstance(raw, Mapping):
        severity = raw.get(SEVERITY_KEY)
    severity_label = to_aggregation_severity(severity)

    sources = normalize_sources(raw, rules)
    result = calculate_risk_score(severity_label, sources, rules)
    return RiskAssessment(
        risk_score=result.risk_score,
        confidence=result.confidence,
        severity_flag=result.severity_flag,
        risk_level=result.risk_level,
        severity=severity_label,
        sources=sources,
    )
