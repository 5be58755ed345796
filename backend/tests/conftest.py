"""
Shared fixtures for the life connections tests.

Provides:
- Daily series builders
- A synthetic user with one real activity -> sleep connection
- Stub explanation gateways and an in-memory connection store
"""

import os
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List

import numpy as np
import pytest

# Keep tests off the network before settings are loaded
os.environ["OPENAI_API_KEY"] = ""

from lifeconnections.ml.correlation.base import (
    AlignedPair, CandidatePair, DailySeries, MetricRef, PairAnalysis,
)
from lifeconnections.ml.correlation.confounder import ConfounderController
from lifeconnections.ml.correlation.rank_correlation import analyze_correlation
from lifeconnections.ml.correlation.ranking import Connection, ConnectionRanker
from lifeconnections.ml.correlation.with_without import WithWithoutComparator
from lifeconnections.schemas.connection import ExplanationContext, GeneratedText
from lifeconnections.services.explanation_service import ExternalGenerationError
from lifeconnections.utils.enums import Domain


START = date(2026, 1, 1)
DETECTED = datetime(2026, 4, 1, 4, 0, tzinfo=timezone.utc)


def daily(domain: Domain, metric: str, values, start: date = START, occurrence: bool = False) -> DailySeries:
    """DailySeries from consecutive values; None entries are missing days."""
    return DailySeries(
        domain=domain,
        metric=metric,
        values={
            start + timedelta(days=i): float(v)
            for i, v in enumerate(values)
            if v is not None
        },
        occurrence=occurrence,
    )


def make_connection(outcome: str = 'sleep_hours', occurrence: bool = True) -> Connection:
    """A fully analyzed badminton -> outcome connection over 30 alternating days."""
    days = 30
    flags = np.array([1.0, 0.0] * (days // 2))
    aligned = AlignedPair(
        dates=[START + timedelta(days=i) for i in range(days)],
        values_a=flags,
        values_b=5 + 2 * flags + 0.3 * np.sin(np.arange(days)),
    )
    result = analyze_correlation(aligned)
    result.adjusted_p = result.raw_p
    analysis = PairAnalysis(
        pair=CandidatePair(MetricRef(Domain.activity, 'badminton'), MetricRef(Domain.health, outcome), True),
        aligned=aligned,
        correlation=result,
        occurrence_a=occurrence,
    )
    analysis.confounder = ConfounderController().adjust(aligned, result.coefficient)
    analysis.with_without = WithWithoutComparator().compare(aligned, occurrence, False)
    return ConnectionRanker().to_connection(analysis, DETECTED)


@pytest.fixture
def series_factory():
    return daily


@pytest.fixture
def badminton_user() -> List[DailySeries]:
    """
    90 days where playing badminton adds ~2 hours of sleep, plus a noise metric.

    Badminton is stored the way occurrence data arrives: only days it happened.
    """
    rng = np.random.RandomState(42)
    played = rng.binomial(1, 0.5, size=90)
    sleep = 5 + 2 * played + rng.normal(0, 0.5, size=90)
    noise = rng.normal(60, 5, size=90)

    badminton = DailySeries(
        Domain.activity,
        'badminton',
        {START + timedelta(days=i): 1.0 for i, p in enumerate(played) if p},
        occurrence=True,
    )
    return [
        badminton,
        daily(Domain.health, 'sleep_hours', sleep),
        daily(Domain.health, 'resting_hr', noise),
    ]


class StubGateway:
    """Deterministic gateway that records every context it was asked about."""

    def __init__(self, fail_for: tuple = ()):
        self.fail_for = fail_for
        self.contexts: List[ExplanationContext] = []

    async def explain(self, context: ExplanationContext) -> GeneratedText:
        self.contexts.append(context)
        if context.metric_a in self.fail_for or context.metric_b in self.fail_for:
            raise ExternalGenerationError("stub failure")
        return GeneratedText(
            title=f"AI: {context.metric_a} and {context.metric_b}",
            explanation="AI explanation",
            recommendation="AI recommendation",
        )


class FailingGateway:
    async def explain(self, context: ExplanationContext) -> GeneratedText:
        raise ExternalGenerationError("service unavailable")


class FakeConnectionStore:
    """In-memory ConnectionStore."""

    def __init__(self, error: Exception = None):
        self.error = error
        self.saved: Dict = {}

    async def save_connections(self, user_id, connections) -> int:
        if self.error is not None:
            raise self.error
        self.saved.setdefault(user_id, []).extend(connections)
        return len(connections)


@pytest.fixture
def stub_gateway():
    return StubGateway()


@pytest.fixture
def gateway_factory():
    return StubGateway


@pytest.fixture
def store_factory():
    return FakeConnectionStore


@pytest.fixture
def failing_gateway():
    return FailingGateway()


@pytest.fixture
def fake_store():
    return FakeConnectionStore()
