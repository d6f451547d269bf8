import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from riskengine.aggregator import (
    calculate_risk_score,
    confidence_for,
    prepare_risk_assessment,
    risk_level,
    severity_flag,
)
from riskengine.models import SourceSignal

SEVERITIES = ["mild", "moderate", "severe"]


def src(score, weight, signal=True, plausible=None):
    return SourceSignal(signal=signal, plausible=plausible, score=score, weight=weight)


@pytest.mark.parametrize("severity", SEVERITIES)
def test_no_sources_is_low_confidence_green(severity):
    result = calculate_risk_score(severity, {})
    assert (result.risk_score, result.confidence, result.severity_flag) == (0, 50, "🟢")


def test_inactive_sources_contribute_nothing():
    result = calculate_risk_score(
        "severe", {"fdaReports": src(100, 1.0, signal=False, plausible=False)}
    )
    assert result.risk_score == 0
    assert result.confidence == 50


def test_fda_count_example():
    result = prepare_risk_assessment({"fdaReports": {"signal": True, "count": 87}}, severity="severe")
    # 0.35 * 84 * 1.5 = 44.1
    assert result.risk_score == 44
    assert result.confidence == 60
    assert result.severity_flag == "🟡"


def test_mechanism_example():
    result = prepare_risk_assessment({"mechanism": {"plausible": True}}, severity="mild")
    assert result.risk_score == 18
    assert result.confidence == 60
    assert result.severity_flag == "🟢"


def test_score_clamps_at_100():
    sources = {
        "a": src(100, 1.0),
        "b": src(100, 1.0),
        "c": src(100, 1.0, signal=None, plausible=True),
    }
    result = calculate_risk_score("severe", sources)
    assert result.risk_score == 100
    assert result.confidence == 80
    assert result.severity_flag == "🔴"


def test_confidence_caps_at_100():
    sources = {f"s{i}": src(1, 0.01) for i in range(8)}
    assert calculate_risk_score("mild", sources).confidence == 100


def test_rounding_is_half_up():
    # 0.5 * 37 * 1.0 = 18.5
    assert calculate_risk_score("mild", {"x": src(37, 0.5)}).risk_score == 19


def test_severity_ordering():
    sources = {"fdaReports": src(70, 0.35), "mechanism": src(60, 0.3, signal=None, plausible=True)}
    scores = [calculate_risk_score(sev, sources).risk_score for sev in SEVERITIES]
    assert scores == sorted(scores)


def test_adding_active_source_is_monotonic():
    base = {"suppAI": src(50, 0.15)}
    extended = {**base, "rxnorm": src(65, 0.2)}
    before = calculate_risk_score("moderate", base)
    after = calculate_risk_score("moderate", extended)
    assert after.risk_score >= before.risk_score
    assert after.confidence >= before.confidence


def test_unknown_severity_uses_unit_multiplier():
    sources = {"mechanism": src(60, 0.3, signal=None, plausible=True)}
    assert calculate_risk_score("catastrophic", sources).risk_score == 18


def test_deterministic_and_pure():
    raw = {"fdaReports": {"signal": True, "count": 20}, "suppAI": {"signal": True}}
    first = prepare_risk_assessment(raw, severity="moderate")
    second = prepare_risk_assessment(raw, severity="moderate")
    assert first == second
    assert raw == {"fdaReports": {"signal": True, "count": 20}, "suppAI": {"signal": True}}


def test_severity_read_from_raw_payload():
    raw = {"severity": "severe", "mechanism": {"plausible": True}}
    result = prepare_risk_assessment(raw)
    assert result.severity == "severe"
    assert result.risk_score == 27
    assert "severity" not in result.sources


def test_ui_labels_map_down():
    result = prepare_risk_assessment({"mechanism": {"plausible": True}}, severity="minor")
    assert result.severity == "mild"
    assert result.risk_score == 18


def test_input_summary_payload():
    result = prepare_risk_assessment(
        {"fdaReports": {"signal": True, "count": 87}, "suppAI": {"signal": False}},
        severity="severe",
    )
    payload = result.to_dict()
    assert payload["riskScore"] == 44
    assert payload["inputSummary"]["severity"] == "severe"
    assert payload["inputSummary"]["sources"]["fdaReports"] == {
        "signal": True,
        "score": 84,
        "weight": 0.35,
    }
    assert payload["inputSummary"]["sources"]["suppAI"] == {
        "signal": False,
        "score": 50,
        "weight": 0.15,
    }


@pytest.mark.parametrize(
    "score, flag", [(0, "🟢"), (39, "🟢"), (40, "🟡"), (69, "🟡"), (70, "🔴"), (100, "🔴")]
)
def test_severity_flag_thresholds(score, flag):
    assert severity_flag(score) == flag


@pytest.mark.parametrize(
    "score, level", [(0, "Low"), (39, "Low"), (40, "Moderate"), (74, "Moderate"), (75, "High")]
)
def test_risk_level_thresholds(score, level):
    assert risk_level(score) == level


def test_confidence_for_counts_active_sources():
    assert confidence_for(0) == 50
    assert confidence_for(3) == 80
    assert confidence_for(7) == 100
