import os
import sys

import pandas as pd

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tools import score_batch, validate_rules


def test_row_to_raw_groups_columns():
    raw = score_batch.row_to_raw(
        {
            "severity": "severe",
            "fdaReports_signal": "true",
            "fdaReports_count": "87",
            "mechanism_plausible": False,
            "suppAI_signal": float("nan"),
        }
    )
    assert raw == {"fdaReports": {"signal": True, "count": 87.0}, "mechanism": {"plausible": False}}


def test_score_frame_appends_results():
    df = pd.DataFrame(
        [
            {"severity": "severe", "fdaReports_signal": True, "fdaReports_count": 87, "mechanism_plausible": None},
            {"severity": "mild", "fdaReports_signal": None, "fdaReports_count": None, "mechanism_plausible": True},
        ]
    )
    out = score_batch.score_frame(df)
    assert list(out["risk_score"]) == [44, 18]
    assert list(out["severity_flag"]) == ["🟡", "🟢"]
    assert "fdaReports_count" in out.columns


def test_score_batch_main_writes_csv(tmp_path):
    src = tmp_path / "signals.csv"
    src.write_text("severity,mechanism_plausible\nmild,true\n", encoding="utf-8")
    dest = tmp_path / "scored.csv"
    assert score_batch.main(str(src), str(dest)) == 0
    scored = pd.read_csv(dest)
    assert scored.loc[0, "risk_score"] == 18


def test_validate_rules_accepts_shipped_file():
    assert validate_rules.main(os.path.join(ROOT, "data", "risk_rules.yaml")) == 0


def test_validate_rules_rejects_out_of_range_weight(tmp_path, capsys):
    path = tmp_path / "rules.yaml"
    path.write_text("weights:\n  fdaReports: 1.5\n", encoding="utf-8")
    assert validate_rules.main(str(path)) == 2
    assert "fdaReports" in capsys.readouterr().out


def test_validate_rules_rejects_unknown_section(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("formula: severity * 2\n", encoding="utf-8")
    assert validate_rules.main(str(path)) == 2
