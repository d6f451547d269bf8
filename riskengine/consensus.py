"""Multi-source severity consensus.

Each interaction source (FDA labels, OpenFDA adverse events, SUPP.AI, RxNorm,
AI literature analysis, ...) reports its own severity label.  Sources are
weighted by the quality of the evidence they carry, the weights are summed
into per-label votes and the winning label becomes the interaction severity
that :func:`riskengine.aggregator.prepare_risk_assessment` consumes.

Two guard rails apply on top of the plain vote:

* ``severe`` needs a high-confidence (weight >= 0.6) non-AI source reporting
  severe, or at least two non-AI sources reporting moderate.
* AI literature analysis alone can never make an interaction ``severe``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional, Tuple

from riskengine.models import ConsensusResult, round_half_up

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ("severe", "moderate", "minor", "safe", "unknown")

AI_LITERATURE = "AI Literature Analysis"
ADVERSE_EVENTS = "OpenFDA Adverse Events"
NO_DATA = "No Data Available"

SEVERE_EVENT_THRESHOLD = 0.05
ADVERSE_EVENT_WEIGHT = 0.95
HIGH_CONFIDENCE_WEIGHT = 0.6

# (minimum serious share, weight), checked in order
SERIOUS_SHARE_WEIGHTS = ((0.01, 0.95), (0.005, 0.8), (0.001, 0.6))
LOW_SERIOUS_SHARE_WEIGHT = 0.5

_AI_SPECIFIC = re.compile(r"interaction (mechanism|between)|directly (interacts|affects)")
_AI_STUDIES = re.compile(r"study|research|evidence|trial")
_AI_CORRELATION = re.compile(r"correlation|association|linked|may interact")
_FDA_SERIOUS = re.compile(r"contraindicated|serious|fatal|death|avoid combining|do not use")
_FDA_GENERAL = re.compile(r"caution|adverse|risk")
_DB_SPECIFIC = re.compile(r"specific interaction|directly (interacts|affects)|confirmed|verified")
_DB_HEDGED = re.compile(r"potential|possible|may|could|suggest")

HIGH_EVIDENCE_PHRASES = (
    "adverse event", "case report", "study found", "research shows",
    "clinical trial", "reported", "contraindicated", "observed", "bleeding risk",
    "mortality", "fatality", "death", "hospitalizations",
    "toxicity", "overdose", "hazardous",
)
MEDIUM_EVIDENCE_PHRASES = (
    "interaction", "effect", "impact", "influence", "change",
    "alter", "modify", "adjust", "increase", "decrease",
)
LOW_EVIDENCE_PHRASES = (
    "monitor", "may cause", "use caution",
    "general information", "labeling only", "possible",
)
NO_INTERACTION_PHRASES = (
    "no interaction", "no known", "no evidence of",
    "has not been established", "no data available",
)

WeightedSources = List[Tuple[Mapping[str, Any], float]]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _name(source: Mapping[str, Any]) -> str:
    return str(source.get("name") or "")


def _description(source: Mapping[str, Any]) -> str:
    value = source.get("description")
    return value if isinstance(value, str) else ""


def source_severity(source: Mapping[str, Any]) -> str:
    """Return the source's label as one of :data:`SEVERITY_ORDER`."""

    label = str(source.get("severity") or "").strip().lower()
    if label == "mild":
        return "minor"
    return label if label in SEVERITY_ORDER else "unknown"


def _event_data(source: Mapping[str, Any]) -> Mapping[str, Any]:
    data = source.get("eventData")
    return data if isinstance(data, Mapping) else {}


def _adverse_event_weight(source: Mapping[str, Any]) -> float:
    data = _event_data(source)
    total = _number(data.get("totalEvents"))
    if not total or total <= 0:
        return 0.0

    share = _number(data.get("seriousPercentage"))
    if not share:
        share = (_number(data.get("seriousEvents")) or 0.0) / total

    for minimum, weight in SERIOUS_SHARE_WEIGHTS:
        if share >= minimum:
            return weight
    return LOW_SERIOUS_SHARE_WEIGHT


def determine_source_weight(source: Any) -> float:
    """Weight a source by the quality of the evidence in its description."""

    if not isinstance(source, Mapping):
        return 0.0
    name = _name(source)
    desc = _description(source).lower()
    if not desc or name == NO_DATA:
        return 0.0

    if name == ADVERSE_EVENTS or "Adverse Event" in name:
        return _adverse_event_weight(source)

    if name == AI_LITERATURE:
        if _AI_SPECIFIC.search(desc):
            return 0.6
        if _AI_STUDIES.search(desc):
            return 0.5
        if _AI_CORRELATION.search(desc):
            return 0.4
        return 0.3

    if name == "FDA":
        if _FDA_SERIOUS.search(desc) or ("warning" in desc and "both" in desc):
            return 0.6
        if "warning" in desc or _FDA_GENERAL.search(desc):
            return 0.4
        return 0.2

    if name in ("SUPP.AI", "RxNorm"):
        if _DB_SPECIFIC.search(desc):
            return 0.6
        if _DB_HEDGED.search(desc):
            return 0.4
        return 0.3

    if any(phrase in desc for phrase in HIGH_EVIDENCE_PHRASES):
        return 0.6
    if any(phrase in desc for phrase in MEDIUM_EVIDENCE_PHRASES):
        return 0.5
    if any(phrase in desc for phrase in LOW_EVIDENCE_PHRASES):
        return 0.4
    if any(phrase in desc for phrase in NO_INTERACTION_PHRASES):
        # a confirmed "safe" still carries a little weight
        return 0.3 if source_severity(source) == "safe" else 0.0
    return 0.3


def has_valid_interaction_evidence(source: Any) -> bool:
    """True when a source carries enough evidence to take part in the vote."""

    if not isinstance(source, Mapping):
        return False
    has_description = len(_description(source)) > 10
    has_severity = source_severity(source) in ("severe", "moderate", "minor")
    confidence = _number(source.get("confidence"))
    total_events = _number(_event_data(source).get("totalEvents"))
    return (
        (has_description and has_severity)
        or (confidence is not None and confidence > 70)
        or (total_events is not None and total_events > 0)
    )


def process_sources_with_weights(
    sources: Iterable[Any],
) -> Tuple[WeightedSources, bool, float]:
    """Weight the usable sources.

    Returns ``(weighted_sources, ai_validated, total_weight)``.  Sources are
    visited in name order so the result does not depend on input order.  When
    no source passes :func:`has_valid_interaction_evidence` every source is
    weighted instead, so general information still yields a result.
    """

    candidates = sorted(
        (source for source in sources if isinstance(source, Mapping)), key=_name
    )
    valid = [source for source in candidates if has_valid_interaction_evidence(source)]
    to_process = valid or candidates

    weighted: WeightedSources = []
    ai_validated = False
    for source in to_process:
        if not _name(source):
            continue
        weight = determine_source_weight(source)
        if weight <= 0:
            logger.debug("Excluding source %s with zero weight", _name(source))
            continue
        weighted.append((source, weight))
        if _name(source) == AI_LITERATURE:
            ai_validated = True

    total_weight = sum(weight for _, weight in weighted)
    return weighted, ai_validated, total_weight


def process_adverse_events(adverse_events: Any) -> Optional[Tuple[float, str]]:
    """Turn aggregate adverse-event counts into an extra ``(weight, severity)`` vote."""

    if not isinstance(adverse_events, Mapping):
        return None
    event_count = _number(adverse_events.get("eventCount")) or 0.0
    if event_count <= 0:
        return None
    serious_count = _number(adverse_events.get("seriousCount")) or 0.0

    if serious_count / event_count >= SEVERE_EVENT_THRESHOLD:
        severity = "severe"
    elif serious_count > 0:
        severity = "moderate"
    elif event_count > 10:
        severity = "minor"
    else:
        severity = "safe"
    return ADVERSE_EVENT_WEIGHT, severity


def determine_final_severity(
    votes: Mapping[str, float], weighted: WeightedSources
) -> str:
    non_ai = [(source, weight) for source, weight in weighted if _name(source) != AI_LITERATURE]
    high_confidence_severe = [
        source
        for source, weight in non_ai
        if source_severity(source) == "severe" and weight >= HIGH_CONFIDENCE_WEIGHT
    ]
    moderate_sources = sum(1 for source, _ in non_ai if source_severity(source) == "moderate")

    if votes.get("severe", 0) > 0 and (high_confidence_severe or moderate_sources >= 2):
        return "severe"

    final = "unknown"
    max_vote = 0.0
    for label in SEVERITY_ORDER:
        vote = votes.get(label, 0)
        if vote > max_vote:
            max_vote = vote
            final = label

    if final == "severe" and not high_confidence_severe:
        if not any(source_severity(source) == "severe" for source, _ in non_ai):
            final = "moderate"

    if max_vote < 0.1 and weighted:
        for source, _ in non_ai:
            label = source_severity(source)
            if label != "unknown":
                final = label
                break
        if final == "unknown" and len(weighted) > 1:
            final = "moderate"

    return final


def calculate_confidence_score(
    severity: str,
    votes: Mapping[str, float],
    total_weight: float,
    weighted: WeightedSources,
    counts: Mapping[str, int],
    ai_validated: bool,
) -> int:
    primary = votes.get(severity, 0)
    score = round_half_up(primary / total_weight * 100) if total_weight > 0 else 0

    if len(weighted) >= 3:
        score += 5
    if sum(1 for count in counts.values() if count > 0) == 1 and len(weighted) > 1:
        score += 10
    if ai_validated and counts.get(severity, 0) > 1:
        score += 5
    if severity == "unknown":
        score = max(10, score - 30)
    if score < 20 and weighted:
        score = 20
    return min(100, score)


def determine_consensus_description(
    severity: str,
    confidence: int,
    sources: Iterable[Mapping[str, Any]],
    adverse_events: Optional[Mapping[str, Any]] = None,
) -> str:
    names = ", ".join(sorted(_name(s) for s in sources if _name(s) and _name(s) != NO_DATA))

    if severity == "severe":
        text = f"Severe interaction risk identified with {confidence}% confidence based on {names}."
        serious = _number((adverse_events or {}).get("seriousCount"))
        if serious:
            text += f" Real-world data shows {int(serious)} serious adverse events."
        return text
    if severity == "moderate":
        return (
            f"Moderate interaction risk identified with {confidence}% confidence based on "
            f"{names}. Monitor closely and consult a healthcare professional."
        )
    if severity == "minor":
        return (
            f"Minor interaction potential with {confidence}% confidence based on "
            f"{names}. Generally considered manageable."
        )
    if severity == "safe":
        return (
            f"Verified safe to take together with {confidence}% confidence based on "
            f"{names or 'available data'}."
        )
    return (
        f"Interaction status is uncertain ({confidence}% confidence). "
        "Limited data available. Consult a healthcare professional."
    )


def calculate_consensus_score(
    sources: Optional[Iterable[Any]],
    adverse_events: Optional[Mapping[str, Any]] = None,
) -> ConsensusResult:
    """Reach a severity verdict across ``sources`` plus optional adverse-event counts."""

    source_list = [source for source in (sources or []) if isinstance(source, Mapping)]
    if not source_list:
        return ConsensusResult(
            severity="unknown",
            confidence_score=0,
            description="No data available to determine interaction severity.",
        )

    weighted, ai_validated, total_weight = process_sources_with_weights(source_list)
    if total_weight == 0:
        return ConsensusResult(
            severity="unknown",
            confidence_score=0,
            description="Insufficient data to determine interaction severity.",
        )

    votes: Dict[str, float] = {label: 0.0 for label in SEVERITY_ORDER}
    counts: Dict[str, int] = {label: 0 for label in SEVERITY_ORDER}
    for source, weight in weighted:
        label = source_severity(source)
        votes[label] += weight
        counts[label] += 1

    adverse_vote = process_adverse_events(adverse_events)
    if adverse_vote is not None:
        weight, label = adverse_vote
        votes[label] += weight
        counts[label] += 1

    severity = determine_final_severity(votes, weighted)
    confidence = calculate_confidence_score(
        severity, votes, total_weight, weighted, counts, ai_validated
    )
    logger.debug(
        "Consensus %s at %s%% from %d weighted sources (total weight %.2f)",
        severity,
        confidence,
        len(weighted),
        total_weight,
    )
    return ConsensusResult(
        severity=severity,
        confidence_score=confidence,
        description=determine_consensus_description(
            severity, confidence, source_list, adverse_events
        ),
        ai_validated=ai_validated,
    )
