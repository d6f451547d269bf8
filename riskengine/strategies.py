"""Named scoring strategies.

The consumer application grew three unrelated ways of turning evidence into a
risk number.  They are kept here as explicit strategies that callers select by
intent instead of by accident:

``weighted``
    Multi-source consensus (:mod:`riskengine.aggregator`).
``severity``
    Coarse lookup from a single severity label, or a blend of severity counts
    for a multi-medication combination.
``exposure``
    Severe-event rate blended with an exposure-adjusted rate based on the
    number of real-world users (:func:`compute_exposure_risk`).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type

from riskengine.aggregator import (
    confidence_for,
    prepare_risk_assessment,
    risk_level,
    severity_flag,
)
from riskengine.config import DEFAULT_RULES, RiskRules
from riskengine.models import RiskAssessment, round_half_up

logger = logging.getLogger(__name__)


class UnknownStrategyError(KeyError):
    """Raised when a caller asks for a strategy that is not registered."""


class StrategyInputError(ValueError):
    """Raised when a strategy is missing the inputs it needs."""


@dataclass
class AssessmentContext:
    severity: Optional[str] = None
    sources: Optional[Mapping[str, Any]] = None
    interactions: Optional[Sequence[str]] = None
    total_interactions: Optional[float] = None
    severe_events: Optional[float] = None
    users: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def compute_exposure_risk(
    total_interactions: float,
    severe_events: float,
    users: Optional[float],
    alpha: float = DEFAULT_RULES.alpha,
) -> float:
    """Blend the raw severe-event rate with an exposure-adjusted rate.

    ``raw = severe_events / total_interactions`` and
    ``exposure = severe_events / users`` when ``users`` is positive, otherwise
    the raw rate is reused.  The result is ``alpha * exposure + (1 - alpha) * raw``.
    A non-positive ``total_interactions`` yields a raw rate of zero.
    """

    raw_rate = severe_events / total_interactions if total_interactions > 0 else 0.0
    exposure_rate = severe_events / users if users and users > 0 else raw_rate
    return alpha * exposure_rate + (1 - alpha) * raw_rate


class RiskStrategy(ABC):
    """Base class for every scoring strategy."""

    name: str = ""

    def __init__(self, rules: RiskRules = DEFAULT_RULES) -> None:
        self.rules = rules

    @abstractmethod
    def assess(self, context: AssessmentContext) -> RiskAssessment:
        raise NotImplementedError

    def _result(self, score: int, confidence: int, **details: Any) -> RiskAssessment:
        return RiskAssessment(
            risk_score=score,
            confidence=confidence,
            severity_flag=severity_flag(score, self.rules),
            risk_level=risk_level(score, self.rules),
            strategy=self.name,
            details=details,
        )


class WeightedSourceStrategy(RiskStrategy):
    name = "weighted"

    def assess(self, context: AssessmentContext) -> RiskAssessment:
        result = prepare_risk_assessment(
            context.sources or {}, severity=context.severity, rules=self.rules
        )
        return RiskAssessment(
            risk_score=result.risk_score,
            confidence=result.confidence,
            severity_flag=result.severity_flag,
            risk_level=result.risk_level,
            severity=result.severity,
            sources=result.sources,
            strategy=self.name,
        )


class SeverityLookupStrategy(RiskStrategy):
    name = "severity"

    def label_score(self, label: Any) -> float:
        text = str(label or "").strip().lower()
        if text == "mild":
            text = "minor"
        scores = self.rules.severity_scores
        if text in scores:
            return float(scores[text])
        return float(scores.get("unknown", 0))

    def combined_score(self, labels: Sequence[str]) -> int:
        """``min(100, weighted_counts / total * scale)`` over all interactions."""

        total = len(labels)
        if total == 0:
            return 0
        weights = self.rules.combined_weights
        weighted = 0.0
        for label in labels:
            text = str(label or "").strip().lower()
            if text == "mild":
                text = "minor"
            weighted += weights.get(text, 0)
        value = weighted / total * self.rules.combined_scale
        return max(0, min(100, round_half_up(value)))

    def assess(self, context: AssessmentContext) -> RiskAssessment:
        if context.interactions is not None:
            labels = [str(label) for label in context.interactions]
            counts: Dict[str, int] = {}
            for label in labels:
                key = label.strip().lower()
                counts[key] = counts.get(key, 0) + 1
            score = self.combined_score(labels)
            return self._result(
                score,
                confidence_for(0, self.rules),
                total=len(labels),
                counts=counts,
            )

        if context.severity is None:
            raise StrategyInputError(
                "severity strategy needs either 'severity' or 'interactions'"
            )
        score = max(0, min(100, round_half_up(self.label_score(context.severity))))
        return self._result(
            score,
            confidence_for(0, self.rules),
            label=str(context.severity).lower(),
        )


class ExposureAdjustedStrategy(RiskStrategy):
    name = "exposure"

    def assess(self, context: AssessmentContext) -> RiskAssessment:
        if context.total_interactions is None or context.severe_events is None:
            raise StrategyInputError(
                "exposure strategy needs 'total_interactions' and 'severe_events'"
            )
        rate = compute_exposure_risk(
            context.total_interactions,
            context.severe_events,
            context.users,
            alpha=self.rules.alpha,
        )
        score = max(0, min(100, round_half_up(rate * 100)))
        exposure_used = bool(context.users and context.users > 0)
        return self._result(
            score,
            confidence_for(1 if exposure_used else 0, self.rules),
            rate=rate,
            alpha=self.rules.alpha,
            exposure_adjusted=exposure_used,
        )


STRATEGIES: Dict[str, Type[RiskStrategy]] = {
    WeightedSourceStrategy.name: WeightedSourceStrategy,
    SeverityLookupStrategy.name: SeverityLookupStrategy,
    ExposureAdjustedStrategy.name: ExposureAdjustedStrategy,
}


def get_strategy(name: str, rules: RiskRules = DEFAULT_RULES) -> RiskStrategy:
    try:
        strategy_cls = STRATEGIES[str(name).strip().lower()]
    except KeyError:
        logger.debug("Unknown scoring strategy requested: %s", name)
        raise UnknownStrategyError(name) from None
    return strategy_cls(rules)
