"""Pydantic schemas for connection explanations."""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any

from lifeconnections.utils.enums import (
    ConnectionCategory, ConnectionDirection, ConnectionStrength, CorrelationType, Domain,
)


class ExplanationContext(BaseModel):
    """Everything the text generator is allowed to know about one connection."""
    category: ConnectionCategory
    domain_a: Domain
    metric_a: str
    domain_b: Domain
    metric_b: str
    direction: ConnectionDirection
    strength: ConnectionStrength
    correlation_type: CorrelationType
    coefficient: float
    effect_size: float
    confidence_percent: float
    sample_size: int
    effective_sample_size: float

    # Occurrence contrast
    occurrence_metric: Optional[str] = None
    outcome_metric: Optional[str] = None
    with_without: Optional[Dict[str, Any]] = None
    percent_difference: Optional[float] = None
    best_day: Optional[Dict[str, Any]] = None
    worst_day: Optional[Dict[str, Any]] = None

    survives_confounder_control: Optional[bool] = None
    confounder_note: Optional[str] = None
    trend_direction: Optional[str] = None
    time_lag: Optional[Dict[str, Any]] = None

    @property
    def label_a(self) -> str:
        return self.metric_a.replace('_', ' ')

    @property
    def label_b(self) -> str:
        return self.metric_b.replace('_', ' ')


class GeneratedText(BaseModel):
    """Title, explanation and recommendation for one connection."""
    title: str = Field(min_length=1, max_length=200)
    explanation: str = Field(min_length=1)
    recommendation: str = Field(min_length=1)
