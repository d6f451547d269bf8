"""Medication and supplement interaction risk scoring."""

from riskengine.aggregator import (
    calculate_risk_score,
    prepare_risk_assessment,
    risk_level,
    severity_flag,
)
from riskengine.cache import AssessmentCache, pair_cache_key
from riskengine.config import DEFAULT_RULES, RiskRules, load_rules
from riskengine.consensus import calculate_consensus_score, determine_source_weight
from riskengine.models import ConsensusResult, RiskAssessment, SourceSignal
from riskengine.normalizer import (
    normalize_sources,
    signals_from_combination,
    signals_from_interaction,
    to_aggregation_severity,
)
from riskengine.strategies import (
    AssessmentContext,
    ExposureAdjustedStrategy,
    RiskStrategy,
    SeverityLookupStrategy,
    StrategyInputError,
    UnknownStrategyError,
    WeightedSourceStrategy,
    compute_exposure_risk,
    get_strategy,
)
from riskengine.usage import UsageTable

__all__ = [
    "AssessmentCache",
    "AssessmentContext",
    "ConsensusResult",
    "DEFAULT_RULES",
    "ExposureAdjustedStrategy",
    "RiskAssessment",
    "RiskRules",
    "RiskStrategy",
    "SeverityLookupStrategy",
    "SourceSignal",
    "StrategyInputError",
    "UnknownStrategyError",
    "UsageTable",
    "WeightedSourceStrategy",
    "calculate_consensus_score",
    "calculate_risk_score",
    "compute_exposure_risk",
    "determine_source_weight",
    "get_strategy",
    "load_rules",
    "normalize_sources",
    "pair_cache_key",
    "prepare_risk_assessment",
    "risk_level",
    "severity_flag",
    "signals_from_combination",
    "signals_from_interaction",
    "to_aggregation_severity",
]
