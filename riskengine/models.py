from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

# Type aliases
Severity = Literal["mild", "moderate", "severe"]
SeverityFlag = Literal["🔴", "🟡", "🟢"]
RiskLevel = Literal["Low", "Moderate", "High"]
ConsensusSeverity = Literal["severe", "moderate", "minor", "safe", "unknown"]

RED = "🔴"
YELLOW = "🟡"
GREEN = "🟢"


def round_half_up(value: float) -> int:
    """Round ``.5`` away from zero for positive values, as the UI always did."""

    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class SourceSignal:
    """One data source's normalised contribution to an assessment."""

    signal: Optional[bool]
    plausible: Optional[bool]
    score: float
    weight: float

    @property
    def active(self) -> bool:
        return self.signal is True or self.plausible is True

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"score": self.score, "weight": self.weight}
        if self.signal is not None:
            payload["signal"] = self.signal
        if self.plausible is not None:
            payload["plausible"] = self.plausible
        return payload


Sources = Dict[str, SourceSignal]


@dataclass(frozen=True)
class RiskAssessment:
    risk_score: int
    confidence: int
    severity_flag: SeverityFlag
    risk_level: RiskLevel
    severity: Optional[Severity] = None
    sources: Optional[Sources] = None
    strategy: str = "weighted"
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "riskScore": self.risk_score,
            "confidence": self.confidence,
            "severityFlag": self.severity_flag,
            "riskLevel": self.risk_level,
            "strategy": self.strategy,
        }
        if self.sources is not None:
            payload["inputSummary"] = {
                "severity": self.severity,
                "sources": {key: src.to_dict() for key, src in self.sources.items()},
            }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


@dataclass(frozen=True)
class ConsensusResult:
    """Severity verdict reached across several interaction sources."""

    severity: ConsensusSeverity
    confidence_score: int
    description: str
    ai_validated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "confidenceScore": self.confidence_score,
            "description": self.description,
            "aiValidated": self.ai_validated,
        }
