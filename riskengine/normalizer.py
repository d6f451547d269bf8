"""Turn raw, shape-varying source payloads into :class:`SourceSignal` records.

Upstream API shapers hand us loosely structured objects such as
``{"signal": True, "count": 87}`` or ``{"plausible": True}``.  Anything that is
not recognisable as a signal is dropped rather than reported, so callers can
pass partially failed lookups straight through.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional

from riskengine.config import DEFAULT_RULES, RiskRules
from riskengine.models import SourceSignal, Sources, round_half_up

logger = logging.getLogger(__name__)

SEVERITY_KEY = "severity"


def to_aggregation_severity(label: Any) -> str:
    """Map any UI severity label down to ``mild``/``moderate``/``severe``."""

    text = str(label or "").strip().lower()
    if text == "severe":
        return "severe"
    if text == "moderate":
        return "moderate"
    return "mild"


def _coerce_flag(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return value is True


def _coerce_count(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


def score_from_count(count: float, rules: RiskRules = DEFAULT_RULES) -> float:
    """Scale a raw event count into a 40-100 style score."""

    scaled = min(round_half_up(count / 2), rules.count_cap)
    score = rules.count_base + scaled
    return float(max(rules.count_base, min(score, rules.count_base + rules.count_cap)))


def normalize_source(
    key: str, raw: Any, rules: RiskRules = DEFAULT_RULES
) -> Optional[SourceSignal]:
    if not isinstance(raw, Mapping):
        return None

    signal = _coerce_flag(raw.get("signal"))
    plausible = _coerce_flag(raw.get("plausible"))
    if signal is None and plausible is None:
        return None

    count = _coerce_count(raw.get("count"))
    if count is not None:
        score = score_from_count(count, rules)
    else:
        score = rules.score_for(key)

    return SourceSignal(
        signal=signal,
        plausible=plausible,
        score=score,
        weight=rules.weight_for(key),
    )


def normalize_sources(
    raw_sources: Optional[Mapping[str, Any]], rules: RiskRules = DEFAULT_RULES
) -> Sources:
    """Normalise every recognisable source in ``raw_sources``.

    The ``severity`` key is skipped so the combined payload shape
    (severity next to the sources) can be passed unchanged.
    """

    sources: Sources = {}
    if not isinstance(raw_sources, Mapping):
        return sources

    for key, raw in raw_sources.items():
        if key == SEVERITY_KEY:
            continue
        normalised = normalize_source(str(key), raw, rules)
        if normalised is None:
            logger.debug("Skipping source %s without signal or plausibility", key)
            continue
        sources[str(key)] = normalised
    return sources


# Interaction result shaping -------------------------------------------------------------

def _iter_sources(interaction: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    raw = interaction.get("sources") or []
    if isinstance(raw, Mapping) or not isinstance(raw, Iterable) or isinstance(raw, str):
        return []
    return [item for item in raw if isinstance(item, Mapping)]


def _name(source: Mapping[str, Any]) -> str:
    return str(source.get("name") or "")


def _is_flagged(source: Mapping[str, Any]) -> bool:
    return str(source.get("severity") or "").lower() != "safe"


def _total_events(source: Optional[Mapping[str, Any]]) -> Optional[float]:
    if source is None:
        return None
    event_data = source.get("eventData")
    if not isinstance(event_data, Mapping):
        return None
    return _coerce_count(event_data.get("totalEvents"))


def _find(sources: List[Mapping[str, Any]], name: str) -> Optional[Mapping[str, Any]]:
    return next((src for src in sources if _name(src) == name), None)


def _exact(name: str):
    return lambda candidate: candidate == name


def _contains(fragment: str):
    return lambda candidate: fragment in candidate


# source key -> (flag field, name matcher)
_SOURCE_MATCHERS = {
    "fdaReports": ("signal", _exact("FDA")),
    "openFDA": ("signal", _exact("OpenFDA Adverse Events")),
    "suppAI": ("signal", _contains("AI")),
    "mechanism": ("plausible", _contains("Mechanism")),
    "aiLiterature": ("plausible", _contains("Literature")),
    "peerReports": ("signal", _contains("Report")),
}

_EVENT_SOURCES = {"fdaReports": "FDA", "openFDA": "OpenFDA Adverse Events"}


def _any_match(sources: List[Mapping[str, Any]], matcher) -> bool:
    return any(matcher(_name(src)) and _is_flagged(src) for src in sources)


def signals_from_interaction(interaction: Mapping[str, Any]) -> Dict[str, Any]:
    """Build the raw source map for a single interaction result.

    ``interaction`` follows the result shape produced by the API shapers:
    ``{"severity": ..., "sources": [{"name", "severity", "eventData"}]}``.
    A source only raises a flag when its own severity is not ``safe``.
    """

    sources = _iter_sources(interaction)
    raw: Dict[str, Any] = {
        SEVERITY_KEY: to_aggregation_severity(interaction.get("severity"))
    }
    for key, (flag, matcher) in _SOURCE_MATCHERS.items():
        entry: Dict[str, Any] = {flag: _any_match(sources, matcher)}
        if key in _EVENT_SOURCES:
            count = _total_events(_find(sources, _EVENT_SOURCES[key]))
            if count is not None:
                entry["count"] = count
        raw[key] = entry
    return raw


def combined_severity(interactions: Iterable[Mapping[str, Any]]) -> str:
    labels = {str(item.get("severity") or "").lower() for item in interactions}
    if "severe" in labels:
        return "severe"
    if "moderate" in labels:
        return "moderate"
    return "mild"


def signals_from_combination(interactions: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge several interaction results into one raw source map.

    Flags are raised when any interaction carries them, event counts are
    summed (missing counts add zero) and the worst severity wins.
    """

    items = [item for item in interactions if isinstance(item, Mapping)]
    per_item = [_iter_sources(item) for item in items]
    raw: Dict[str, Any] = {SEVERITY_KEY: combined_severity(items)}
    for key, (flag, matcher) in _SOURCE_MATCHERS.items():
        entry: Dict[str, Any] = {
            flag: any(_any_match(sources, matcher) for sources in per_item)
        }
        if key in _EVENT_SOURCES:
            entry["count"] = sum(
                _total_events(_find(sources, _EVENT_SOURCES[key])) or 0
                for sources in per_item
            )
        raw[key] = entry
    return raw
