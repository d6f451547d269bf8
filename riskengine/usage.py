"""Real-world usage counts for exposure-adjusted risk.

The table is a CMS Medicare Part D style export with generic names
(``Gnrc_Name``), brand names (``Brnd_Name``) and a beneficiary total
(``Tot_Benes`` or a year-suffixed variant such as ``Tot_Benes_2022``).
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from riskengine.config import DATA_DIR, DATA_HEALTH, DataHealthTracker

logger = logging.getLogger(__name__)

GENERIC_COLUMN = "Gnrc_Name"
BRAND_COLUMN = "Brnd_Name"
USERS_PREFIX = "Tot_Benes"


def normalise_name(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(value).strip().lower())


def resolve_usage_path(path: Optional[str | Path] = None) -> Path:
    if path:
        return Path(path)
    env_path = os.getenv("RISK_USAGE_PATH")
    if env_path:
        return Path(env_path)
    return DATA_DIR / "usage.csv"


def _users_column(df: pd.DataFrame) -> Optional[str]:
    for column in df.columns:
        if str(column).strip().startswith(USERS_PREFIX):
            return column
    return None


def _sum_by_name(df: pd.DataFrame, name_column: str, users_column: str) -> Dict[str, float]:
    if name_column not in df.columns:
        return {}
    frame = df[[name_column, users_column]].dropna(subset=[name_column])
    frame = frame.assign(_key=frame[name_column].map(normalise_name))
    frame = frame[frame["_key"] != ""]
    totals = frame.groupby("_key")[users_column].sum()
    return {key: float(value) for key, value in totals.items()}


class UsageTable:
    """Beneficiary totals keyed by normalised generic and brand name."""

    def __init__(
        self,
        generic: Optional[Dict[str, float]] = None,
        brand: Optional[Dict[str, float]] = None,
    ) -> None:
        self.generic = generic or {}
        self.brand = brand or {}

    def __len__(self) -> int:
        return len(self.generic) + len(self.brand)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "UsageTable":
        df = df.rename(columns=lambda column: str(column).strip())
        users_column = _users_column(df)
        if users_column is None:
            raise ValueError(f"usage table needs a '{USERS_PREFIX}*' column")
        df[users_column] = pd.to_numeric(df[users_column], errors="coerce").fillna(0)
        return cls(
            generic=_sum_by_name(df, GENERIC_COLUMN, users_column),
            brand=_sum_by_name(df, BRAND_COLUMN, users_column),
        )

    @classmethod
    def from_csv(
        cls,
        path: Optional[str | Path] = None,
        health: Optional[DataHealthTracker] = None,
    ) -> "UsageTable":
        tracker = health if health is not None else DATA_HEALTH
        csv_path = resolve_usage_path(path)
        if not csv_path.exists():
            logger.warning("Usage data not found at %s; exposure uses raw rates", csv_path)
            tracker.record_failure(csv_path.name, "missing usage data", path=csv_path)
            return cls()
        try:
            # utf-8-sig strips the BOM CMS exports start with
            table = cls.from_frame(pd.read_csv(csv_path, encoding="utf-8-sig"))
        except Exception as exc:
            logger.error("Failed to load usage data %s: %s", csv_path, exc)
            tracker.record_failure(csv_path.name, f"invalid usage data: {exc}", path=csv_path)
            return cls()
        tracker.record_success(csv_path.name, path=csv_path)
        logger.info("Loaded usage data for %s names from %s", len(table), csv_path)
        return table

    def users_for(self, name: str) -> Optional[float]:
        """Return beneficiaries for ``name``, trying generic names before brands."""

        key = normalise_name(name)
        if not key:
            return None
        if key in self.generic:
            return self.generic[key]
        return self.brand.get(key)
