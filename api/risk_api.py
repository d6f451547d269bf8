import logging
import os
from dataclasses import replace
from typing import Any, Dict, Optional

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from api.models import (
    AssessRequest,
    CombinedRequest,
    ConsensusRequest,
    ExposureRequest,
    InteractionRequest,
    ScoreRequest,
)
from riskengine.aggregator import prepare_risk_assessment
from riskengine.cache import AssessmentCache, pair_cache_key
from riskengine.config import DATA_HEALTH, RiskRules, load_rules, resolve_rules_path
from riskengine.consensus import calculate_consensus_score
from riskengine.normalizer import signals_from_combination, signals_from_interaction
from riskengine.strategies import (
    AssessmentContext,
    ExposureAdjustedStrategy,
    SeverityLookupStrategy,
    StrategyInputError,
    UnknownStrategyError,
    get_strategy,
)
from riskengine.usage import UsageTable, resolve_usage_path


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Interaction Risk API",
    description="Medication and supplement interaction risk scoring API",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

Instrumentator().instrument(app).expose(app)


def reset_health_state() -> None:
    """Expose a helper for tests to reset health tracking."""

    DATA_HEALTH.reset()


def get_health_state() -> Dict[str, Any]:
    """Return the current data health snapshot."""

    return DATA_HEALTH.snapshot()


def build_cache() -> AssessmentCache:
    size = int(os.getenv("RISK_CACHE_SIZE", 256))
    ttl = float(os.getenv("RISK_CACHE_TTL", 600))
    return AssessmentCache(maxsize=size, ttl=ttl if ttl > 0 else None)


def apply_rules(path: Optional[str] = None) -> RiskRules:
    app.state.rules = load_rules(path)
    app.state.rules_path = str(resolve_rules_path(path))
    cache = getattr(app.state, "cache", None)
    if cache is not None:
        cache.clear()
    return app.state.rules


def apply_usage(path: Optional[str] = None) -> UsageTable:
    app.state.usage = UsageTable.from_csv(path)
    app.state.usage_path = str(resolve_usage_path(path))
    return app.state.usage


def load_state() -> None:
    """Load rules and usage data and build a fresh cache on ``app.state``."""

    reset_health_state()
    app.state.cache = build_cache()
    apply_rules()
    apply_usage()
    logger.info(
        "Risk API ready (rules=%s, usage names=%s, cache size=%s)",
        app.state.rules_path,
        len(app.state.usage),
        app.state.cache.maxsize,
    )


# Load rules and usage data on startup
load_state()


def _rules(request: Request) -> RiskRules:
    return request.app.state.rules


def _cache(request: Request) -> AssessmentCache:
    return request.app.state.cache


# API Routes
@app.get("/api/health")
def health(request: Request):
    """Health check endpoint."""
    snapshot = get_health_state()
    return {
        "status": snapshot.get("status", "healthy"),
        "rules_path": request.app.state.rules_path,
        "usage_names_loaded": len(request.app.state.usage),
        "cache": _cache(request).stats(),
        "loaded": snapshot.get("loaded", []),
        "issues": snapshot.get("issues", []),
    }


@app.get("/api/rules")
def get_rules(request: Request):
    """Return the scoring rules currently in effect."""
    return {"rules": _rules(request).to_dict()}


@app.post("/api/risk/assess")
def assess(payload: AssessRequest, request: Request):
    """Score normalised source signals with the weighted consensus."""
    result = prepare_risk_assessment(
        payload.raw_sources(), severity=payload.severity, rules=_rules(request)
    )
    return result.to_dict()


@app.post("/api/risk/interaction")
def assess_interaction(payload: InteractionRequest, request: Request):
    """Score a single interaction result, reusing cached results per pair."""
    interaction = payload.interaction.as_payload()
    medications = payload.medications or payload.interaction.medications
    cache = _cache(request)

    key = None
    if medications:
        key = "interaction:" + pair_cache_key(medications, interaction)
        cached = cache.get(key)
        if cached is not None:
            return {**cached, "cached": True}

    raw = signals_from_interaction(interaction)
    body = prepare_risk_assessment(raw, rules=_rules(request)).to_dict()
    if key is not None:
        cache.set(key, body)
    return {**body, "cached": False}


@app.post("/api/risk/consensus")
def assess_consensus(payload: ConsensusRequest, request: Request):
    """Reach a severity verdict across sources, then score it."""
    sources = payload.source_payloads()
    verdict = calculate_consensus_score(sources, payload.adverse_payload())
    raw = signals_from_interaction({"severity": verdict.severity, "sources": sources})
    result = prepare_risk_assessment(raw, rules=_rules(request))
    return {
        "medications": payload.medications,
        **verdict.to_dict(),
        "assessment": result.to_dict(),
    }


@app.post("/api/risk/combined")
def assess_combination(payload: CombinedRequest, request: Request):
    """Score every interaction within a multi-medication combination."""
    if len(payload.medications) <= 1 or not payload.interactions:
        return {"medications": payload.medications, "assessment": None}

    rules = _rules(request)
    interactions = [item.as_payload() for item in payload.interactions]
    if payload.strategy == SeverityLookupStrategy.name:
        context = AssessmentContext(
            interactions=[str(item.get("severity", "unknown")) for item in interactions]
        )
        result = SeverityLookupStrategy(rules).assess(context)
    else:
        result = prepare_risk_assessment(signals_from_combination(interactions), rules=rules)

    return {"medications": payload.medications, "assessment": result.to_dict()}


@app.post("/api/risk/score")
def score(payload: ScoreRequest, request: Request):
    """Score with an explicitly selected strategy."""
    try:
        strategy = get_strategy(payload.strategy, _rules(request))
    except UnknownStrategyError:
        raise HTTPException(status_code=404, detail=f"Unknown strategy: {payload.strategy}")

    context = AssessmentContext(
        severity=payload.severity,
        sources=payload.raw_sources(),
        interactions=payload.interactions,
        total_interactions=payload.total_interactions,
        severe_events=payload.severe_events,
        users=payload.users,
    )
    try:
        result = strategy.assess(context)
    except StrategyInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return result.to_dict()


@app.post("/api/risk/exposure")
def exposure(payload: ExposureRequest, request: Request):
    """Blend raw and exposure-adjusted severe-event rates."""
    rules = _rules(request)
    if payload.alpha is not None:
        rules = replace(rules, alpha=payload.alpha)

    users = payload.users
    users_source = "request" if users is not None else None
    if users is None and payload.medication:
        users = request.app.state.usage.users_for(payload.medication)
        if users is not None:
            users_source = "usage_table"
        else:
            logger.info("No usage data for %s; using raw rate", payload.medication)

    context = AssessmentContext(
        total_interactions=payload.total_interactions,
        severe_events=payload.severe_events,
        users=users,
    )
    result = ExposureAdjustedStrategy(rules).assess(context)
    return {
        "medication": payload.medication,
        "users": users,
        "users_source": users_source,
        "rate": result.details["rate"],
        "assessment": result.to_dict(),
    }


@app.delete("/api/cache")
def clear_cache(request: Request):
    """Drop every cached assessment."""
    cache = _cache(request)
    dropped = len(cache)
    cache.clear()
    logger.info("Cleared %s cached assessments", dropped)
    return {"cleared": dropped}
