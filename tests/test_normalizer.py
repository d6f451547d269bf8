import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from riskengine.config import DEFAULT_RULES, RiskRules
from riskengine.normalizer import (
    combined_severity,
    normalize_source,
    normalize_sources,
    score_from_count,
    signals_from_combination,
    signals_from_interaction,
    to_aggregation_severity,
)


def test_count_scales_score():
    sources = normalize_sources({"fdaReports": {"signal": True, "count": 87}})
    assert sources["fdaReports"].score == 84
    assert sources["fdaReports"].weight == 0.35


def test_count_rounds_half_up():
    # 85 / 2 = 42.5 rounds to 43, not to the even 42
    assert score_from_count(85) == 83


def test_count_is_capped_and_floored():
    assert score_from_count(10_000) == 100
    assert score_from_count(0) == 40
    assert score_from_count(-50) == 40


def test_default_scores_and_weights_per_source():
    raw = {
        key: {"signal": True}
        for key in ("fdaReports", "openFDA", "suppAI", "peerReports", "rxnorm")
    }
    raw["mechanism"] = {"plausible": True}
    raw["aiLiterature"] = {"plausible": True}
    sources = normalize_sources(raw)
    assert {key: src.score for key, src in sources.items()} == {
        "fdaReports": 70,
        "openFDA": 70,
        "suppAI": 50,
        "mechanism": 60,
        "aiLiterature": 55,
        "peerReports": 40,
        "rxnorm": 65,
    }
    assert {key: src.weight for key, src in sources.items()} == {
        "fdaReports": 0.35,
        "openFDA": 0.35,
        "suppAI": 0.15,
        "mechanism": 0.3,
        "aiLiterature": 0.25,
        "peerReports": 0.05,
        "rxnorm": 0.2,
    }


def test_unknown_source_uses_fallbacks():
    sources = normalize_sources({"pharmacistNotes": {"signal": True}})
    assert sources["pharmacistNotes"].score == 50
    assert sources["pharmacistNotes"].weight == 0.2


def test_sources_without_flags_are_dropped():
    sources = normalize_sources(
        {
            "fdaReports": {"count": 12},
            "suppAI": None,
            "mechanism": "plausible",
            "openFDA": {"signal": False},
            "severity": "severe",
        }
    )
    assert list(sources) == ["openFDA"]
    assert sources["openFDA"].active is False


def test_malformed_fields_degrade():
    sources = normalize_sources(
        {"fdaReports": {"signal": "yes", "count": "many"}, "openFDA": {"signal": True, "count": True}}
    )
    assert sources["fdaReports"].signal is False
    assert sources["fdaReports"].score == 70
    assert sources["openFDA"].score == 70


def test_non_mapping_input_returns_empty():
    assert normalize_sources(None) == {}
    assert normalize_sources(["fdaReports"]) == {}


def test_input_is_not_mutated():
    raw = {"fdaReports": {"signal": True, "count": 10}}
    normalize_sources(raw)
    assert raw == {"fdaReports": {"signal": True, "count": 10}}


def test_custom_rules_are_used():
    rules = RiskRules(source_weights={"suppAI": 0.9}, default_weight=0.1)
    sources = normalize_sources({"suppAI": {"signal": True}, "rxnorm": {"signal": True}}, rules)
    assert sources["suppAI"].weight == 0.9
    assert sources["rxnorm"].weight == 0.1
    assert DEFAULT_RULES.weight_for("suppAI") == 0.15


def test_to_aggregation_severity():
    assert to_aggregation_severity("severe") == "severe"
    assert to_aggregation_severity("Moderate") == "moderate"
    for label in ("minor", "safe", "unknown", "mild", None, ""):
        assert to_aggregation_severity(label) == "mild"


def _interaction(severity, *sources):
    return {"severity": severity, "sources": list(sources)}


def test_signals_from_interaction():
    raw = signals_from_interaction(
        _interaction(
            "moderate",
            {"name": "FDA", "severity": "moderate", "eventData": {"totalEvents": 87}},
            {"name": "AI Literature Analysis", "severity": "minor"},
            {"name": "RxNorm", "severity": "safe"},
        )
    )
    assert raw["severity"] == "moderate"
    assert raw["fdaReports"] == {"signal": True, "count": 87}
    assert raw["openFDA"] == {"signal": False}
    assert raw["aiLiterature"] == {"plausible": True}
    assert "rxnorm" not in raw
    assert raw["mechanism"] == {"plausible": False}


def test_rxnorm_sources_do_not_raise_a_signal():
    raw = signals_from_interaction(
        _interaction("moderate", {"name": "RxNorm", "severity": "moderate"})
    )
    assert "rxnorm" not in raw
    assert not any(entry.get("signal") for key, entry in raw.items() if key != "severity")


def test_signals_from_interaction_ignores_safe_sources():
    raw = signals_from_interaction(
        _interaction("unknown", {"name": "OpenFDA Adverse Events", "severity": "safe"})
    )
    assert raw["severity"] == "mild"
    assert raw["openFDA"]["signal"] is False


def test_signals_from_combination_sums_counts_and_takes_worst_severity():
    raw = signals_from_combination(
        [
            _interaction(
                "minor",
                {"name": "OpenFDA Adverse Events", "severity": "minor", "eventData": {"totalEvents": 10}},
            ),
            _interaction(
                "severe",
                {"name": "OpenFDA Adverse Events", "severity": "severe", "eventData": {"totalEvents": 30}},
                {"name": "Peer Report", "severity": "moderate"},
            ),
        ]
    )
    assert raw["severity"] == "severe"
    assert raw["openFDA"] == {"signal": True, "count": 40}
    assert raw["fdaReports"] == {"signal": False, "count": 0}
    assert raw["peerReports"] == {"signal": True}


def test_normalize_source_single_entry():
    assert normalize_source("openFDA", "not a mapping") is None
    assert normalize_source("openFDA", {"count": 12}) is None
    signal = normalize_source("openFDA", {"plausible": True})
    assert signal.score == 70
    assert signal.plausible is True
    assert signal.signal is None


def test_combined_severity_takes_worst_label():
    assert combined_severity([{"severity": "minor"}, {"severity": "SEVERE"}]) == "severe"
    assert combined_severity([{"severity": "moderate"}, {}]) == "moderate"
    assert combined_severity([]) == "mild"
