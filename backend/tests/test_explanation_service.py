"""
Tests for explanation generation, the OpenAI gateway and template fallback.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from lifeconnections.schemas.connection import GeneratedText
from lifeconnections.services.explanation_service import (
    ExplanationService,
    ExternalGenerationError,
    OpenAIExplanationGateway,
    build_context,
    describe_connection,
    template_text,
    template_title,
)

from conftest import make_connection


class SlowGateway:
    async def explain(self, context):
        await asyncio.sleep(1)
        return GeneratedText(title="late", explanation="late", recommendation="late")


class BrokenGateway:
    async def explain(self, context):
        raise RuntimeError("unexpected")


# ─── Context and templates ────────────────────────────────────


class TestBuildContext:

    def test_occurrence_context(self):
        context = build_context(make_connection())
        assert context.occurrence_metric == 'badminton'
        assert context.outcome_metric == 'sleep_hours'
        assert context.percent_difference > 0
        assert context.best_day is not None and context.worst_day is not None
        assert context.sample_size == 30
        assert context.effective_sample_size <= 30
        assert context.correlation_type.value == 'rank'

    def test_no_occurrence(self):
        context = build_context(make_connection(occurrence=False))
        assert context.occurrence_metric is None
        assert context.with_without is None


class TestTemplates:

    def test_occurrence_title_uses_with_without(self):
        text = template_text(build_context(make_connection()))
        assert text.title == "Badminton raises your sleep hours"
        assert "On days with badminton" in text.explanation
        assert text.recommendation

    def test_correlation_title(self):
        text = template_text(build_context(make_connection(occurrence=False)))
        assert text.title == "More badminton goes with higher sleep hours"
        assert "moved together" in text.explanation

    def test_description(self):
        description = describe_connection(build_context(make_connection()))
        assert description.startswith("Badminton (activity) and sleep hours (health)")
        assert "30 days" in description

    @pytest.mark.parametrize("difference,expected", [
        (0.0, "Badminton leaves your sleep hours unchanged"),
        (-1.2, "Badminton lowers your sleep hours"),
    ])
    def test_occurrence_title_wording(self, difference, expected):
        context = build_context(make_connection())
        with_without = dict(context.with_without, absoluteDifference=difference)
        assert template_title(context.model_copy(update={'with_without': with_without})) == expected


# ─── ExplanationService ───────────────────────────────────────


class TestExplanationService:

    async def test_gateway_text_is_used(self, stub_gateway):
        connections = [make_connection()]
        await ExplanationService(gateway=stub_gateway, max_concurrent=2, timeout=1).explain_all(connections)

        connection = connections[0]
        assert connection.ai_generated
        assert connection.title == "AI: badminton and sleep_hours"
        assert connection.description.startswith("Badminton (activity)")
        assert len(stub_gateway.contexts) == 1

    async def test_failure_falls_back_to_template(self, failing_gateway):
        connection = await ExplanationService(gateway=failing_gateway, timeout=1).explain(make_connection())
        assert not connection.ai_generated
        assert connection.title == "Badminton raises your sleep hours"
        assert connection.explanation
        assert connection.recommendation

    async def test_timeout_falls_back_to_template(self):
        connection = await ExplanationService(gateway=SlowGateway(), timeout=0.05).explain(make_connection())
        assert not connection.ai_generated
        assert connection.title != "late"

    async def test_unexpected_error_falls_back(self):
        connection = await ExplanationService(gateway=BrokenGateway(), timeout=1).explain(make_connection())
        assert not connection.ai_generated

    async def test_failures_are_isolated_per_connection(self, gateway_factory):
        gateway = gateway_factory(fail_for=('resting_hr',))
        connections = [make_connection('sleep_hours'), make_connection('resting_hr')]

        await ExplanationService(gateway=gateway, max_concurrent=2, timeout=1).explain_all(connections)

        assert connections[0].ai_generated
        assert not connections[1].ai_generated
        assert connections[1].title == "Badminton raises your resting hr"

    async def test_no_gateway_uses_templates(self):
        connection = await ExplanationService(gateway=None, timeout=1).explain(make_connection())
        assert not connection.ai_generated

    async def test_zero_timeout_is_respected(self):
        service = ExplanationService(gateway=SlowGateway(), timeout=0)
        assert service.timeout == 0
        connection = await service.explain(make_connection())
        assert not connection.ai_generated

    def test_zero_concurrency_is_rejected(self, stub_gateway):
        with pytest.raises(ValueError):
            ExplanationService(gateway=stub_gateway, max_concurrent=0)


# ─── OpenAI gateway ───────────────────────────────────────────


def _client(*contents):
    responses = [
        SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=c))])
        for c in contents
    ]
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=responses)
    return client


class TestOpenAIExplanationGateway:

    async def test_three_prompts(self):
        client = _client('"Badminton adds 2h to your sleep"', "Because...", "Play more.")
        gateway = OpenAIExplanationGateway(client=client, model="gpt-4o-mini")

        text = await gateway.explain(build_context(make_connection()))

        assert text.title == "Badminton adds 2h to your sleep"
        assert text.explanation == "Because..."
        assert text.recommendation == "Play more."
        assert client.chat.completions.create.await_count == 3
        assert client.chat.completions.create.call_args.kwargs['model'] == "gpt-4o-mini"

    async def test_not_configured(self):
        gateway = OpenAIExplanationGateway(client=None)
        gateway.client = None
        with pytest.raises(ExternalGenerationError):
            await gateway.explain(build_context(make_connection()))

    async def test_api_error_is_wrapped(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=ConnectionError("network down"))
        with pytest.raises(ExternalGenerationError):
            await OpenAIExplanationGateway(client=client).explain(build_context(make_connection()))

    async def test_empty_completion(self):
        client = _client("   ", "x", "y")
        with pytest.raises(ExternalGenerationError):
            await OpenAIExplanationGateway(client=client).explain(build_context(make_connection()))
