from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _clean_names(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("medications must be provided as a list of strings")
    return [str(item).strip() for item in value if str(item).strip()]


# Type aliases
SeverityInput = Annotated[
    Literal["mild", "moderate", "severe", "safe", "minor", "unknown"],
    BeforeValidator(_lower),
]
SeverityText = Annotated[str, BeforeValidator(_lower)]
MedicationNames = Annotated[List[str], BeforeValidator(_clean_names)]


class RawSignal(BaseModel):
    """A source payload as shaped by the upstream API clients."""

    model_config = ConfigDict(extra="allow")

    signal: Optional[bool] = None
    plausible: Optional[bool] = None
    count: Optional[float] = None


def _dump_sources(sources: Optional[Dict[str, RawSignal]]) -> Dict[str, Dict[str, Any]]:
    if not sources:
        return {}
    return {key: value.model_dump(exclude_none=True) for key, value in sources.items()}


class AssessRequest(BaseModel):
    severity: SeverityInput
    sources: Dict[str, RawSignal] = Field(default_factory=dict)

    def raw_sources(self) -> Dict[str, Dict[str, Any]]:
        return _dump_sources(self.sources)


class EventData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    total_events: Optional[float] = Field(None, alias="totalEvents")
    serious_events: Optional[float] = Field(None, alias="seriousEvents")
    non_serious_events: Optional[float] = Field(None, alias="nonSeriousEvents")
    serious_percentage: Optional[float] = Field(None, alias="seriousPercentage")


class InteractionSource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    severity: SeverityText = "unknown"
    description: str = ""
    confidence: Optional[float] = None
    event_data: Optional[EventData] = Field(None, alias="eventData")


class InteractionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    medications: MedicationNames = Field(default_factory=list)
    severity: SeverityText = "unknown"
    sources: List[InteractionSource] = Field(default_factory=list)

    def as_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class InteractionRequest(BaseModel):
    medications: MedicationNames = Field(default_factory=list)
    interaction: InteractionResult


class CombinedRequest(BaseModel):
    medications: MedicationNames
    interactions: List[InteractionResult] = Field(default_factory=list)
    strategy: Annotated[Literal["weighted", "severity"], BeforeValidator(_lower)] = "weighted"


class ScoreRequest(BaseModel):
    """Explicit strategy selection; each strategy reads the fields it needs."""

    model_config = ConfigDict(populate_by_name=True)

    strategy: str
    severity: Optional[SeverityText] = None
    sources: Optional[Dict[str, RawSignal]] = None
    interactions: Optional[List[str]] = None
    total_interactions: Optional[float] = Field(None, ge=0, alias="totalInteractions")
    severe_events: Optional[float] = Field(None, ge=0, alias="severeEvents")
    users: Optional[float] = Field(None, ge=0)

    def raw_sources(self) -> Optional[Dict[str, Dict[str, Any]]]:
        if self.sources is None:
            return None
        return _dump_sources(self.sources)


class ExposureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_interactions: float = Field(..., ge=0, alias="totalInteractions")
    severe_events: float = Field(..., ge=0, alias="severeEvents")
    users: Optional[float] = Field(None, ge=0)
    medication: Optional[str] = None
    alpha: Optional[float] = Field(None, ge=0, le=1)


class AdverseEventCounts(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    event_count: float = Field(0, ge=0, alias="eventCount")
    serious_count: float = Field(0, ge=0, alias="seriousCount")
    common_reactions: List[str] = Field(default_factory=list, alias="commonReactions")


class ConsensusRequest(BaseModel):
    """Per-source severity reports for a single medication pair."""

    model_config = ConfigDict(populate_by_name=True)

    medications: MedicationNames = Field(default_factory=list)
    sources: List[InteractionSource] = Field(default_factory=list)
    adverse_events: Optional[AdverseEventCounts] = Field(None, alias="adverseEvents")

    def source_payloads(self) -> List[Dict[str, Any]]:
        return [source.model_dump(by_alias=True, exclude_none=True) for source in self.sources]

    def adverse_payload(self) -> Optional[Dict[str, Any]]:
        if self.adverse_events is None:
            return None
        return self.adverse_events.model_dump(by_alias=True)
