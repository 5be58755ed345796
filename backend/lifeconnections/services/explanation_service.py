"""
Natural-language text for detected connections.

The analysis core only prepares a structured context and calls an injected
gateway. When the gateway fails or times out, deterministic template text
built from the statistics is used instead and ``ai_generated`` stays False.
"""

import asyncio
import json
import logging
from typing import List, Optional, Protocol

from openai import AsyncOpenAI

from lifeconnections.config import settings
from lifeconnections.ml.correlation.base import ConnectionAnalysisError
from lifeconnections.ml.correlation.ranking import Connection
from lifeconnections.schemas.connection import ExplanationContext, GeneratedText
from lifeconnections.utils.concurrency import run_with_concurrency_limit
from lifeconnections.utils.enums import ConnectionDirection, CorrelationType

logger = logging.getLogger(__name__)


class ExternalGenerationError(ConnectionAnalysisError):
    """The text generator failed, timed out or returned unusable output."""


class ExplanationGateway(Protocol):
    async def explain(self, context: ExplanationContext) -> GeneratedText:
        ...


def build_context(connection: Connection) -> ExplanationContext:
    metrics = connection.metrics
    analysis = connection.analysis

    occurrence_metric = outcome_metric = None
    best_day = worst_day = None
    percent_difference = None
    if analysis is not None and analysis.with_without is not None:
        if analysis.occurrence_a:
            occurrence_metric, outcome_metric = connection.metric_a, connection.metric_b
        else:
            occurrence_metric, outcome_metric = connection.metric_b, connection.metric_a
        ww = analysis.with_without
        percent_difference = ww.percent_difference
        best_day = ww.best_day.to_dict() if ww.best_day else None
        worst_day = ww.worst_day.to_dict() if ww.worst_day else None

    return ExplanationContext(
        category=connection.category,
        domain_a=connection.domain_a,
        metric_a=connection.metric_a,
        domain_b=connection.domain_b,
        metric_b=connection.metric_b,
        direction=connection.direction,
        strength=connection.strength,
        correlation_type=CorrelationType(metrics['correlationType']),
        coefficient=metrics['coefficient'],
        effect_size=connection.effect_size,
        confidence_percent=metrics['confidencePercent'],
        sample_size=metrics['sampleSize'],
        effective_sample_size=metrics['effectiveSampleSize'],
        occurrence_metric=occurrence_metric,
        outcome_metric=outcome_metric,
        with_without=connection.with_without,
        percent_difference=percent_difference,
        best_day=best_day,
        worst_day=worst_day,
        survives_confounder_control=connection.survives_confounder_control,
        confounder_note=connection.confounder_note,
        trend_direction=connection.trend_direction,
        time_lag=connection.time_lag,
    )


# Template text

def _label(metric: Optional[str]) -> str:
    return (metric or "").replace('_', ' ')


def _lag_phrase(context: ExplanationContext) -> str:
    lag = context.time_lag
    if not lag or lag.get('direction') == 'same_day':
        return ""
    days = lag['days']
    leader, follower = (
        (context.label_a, context.label_b) if lag['direction'] == 'A_leads_B'
        else (context.label_b, context.label_a)
    )
    unit = "day" if days == 1 else "days"
    return f" Changes in {leader} show up in {follower} about {days} {unit} later."


def template_title(context: ExplanationContext) -> str:
    if context.with_without and context.occurrence_metric:
        diff = context.with_without['absoluteDifference']
        occurrence = _label(context.occurrence_metric).capitalize()
        outcome = _label(context.outcome_metric)
        if diff == 0:
            return f"{occurrence} leaves your {outcome} unchanged"
        verb = "raises" if diff > 0 else "lowers"
        return f"{occurrence} {verb} your {outcome}"

    movement = "higher" if context.direction == ConnectionDirection.positive else "lower"
    return f"More {context.label_a} goes with {movement} {context.label_b}"


def template_explanation(context: ExplanationContext) -> str:
    together = (
        "moved together" if context.direction == ConnectionDirection.positive
        else "moved in opposite directions"
    )
    kind = "rank" if context.correlation_type == CorrelationType.rank else "linear"
    text = (
        f"Across {context.sample_size} days, {context.label_a} and {context.label_b} {together} "
        f"({kind} correlation {context.coefficient:+.2f}, {context.confidence_percent:.0f}% confidence)."
    )

    if context.with_without and context.occurrence_metric:
        ww = context.with_without
        text += (
            f" On days with {_label(context.occurrence_metric)}, {_label(context.outcome_metric)} "
            f"averaged {ww['withActivity']['mean']:.1f} vs {ww['withoutActivity']['mean']:.1f} without"
        )
        if context.percent_difference:
            text += f" ({context.percent_difference:+.0f}%)"
        text += "."

    text += _lag_phrase(context)

    if context.confounder_note:
        text += f" {context.confounder_note}"
    if context.trend_direction and context.trend_direction != 'stable':
        text += f" The connection has been {context.trend_direction} recently."
    return text


def template_recommendation(context: ExplanationContext) -> str:
    if context.with_without and context.occurrence_metric:
        return (
            f"Try planning {_label(context.occurrence_metric)} on days when you care about your "
            f"{_label(context.outcome_metric)}, and see whether the pattern holds."
        )
    return f"Keep an eye on how your {context.label_a} relates to your {context.label_b} over the next few weeks."


def template_text(context: ExplanationContext) -> GeneratedText:
    return GeneratedText(
        title=template_title(context),
        explanation=template_explanation(context),
        recommendation=template_recommendation(context),
    )


def describe_connection(context: ExplanationContext) -> str:
    """Short factual description; always template-built."""
    return (
        f"{context.label_a.capitalize()} ({context.domain_a.value}) and {context.label_b} "
        f"({context.domain_b.value}) show a {context.strength.value} {context.direction.value} "
        f"connection (effect size {context.effect_size:.2f}, {context.sample_size} days)."
    )


class OpenAIExplanationGateway:
    """Generates title, explanation and recommendation with three chat prompts."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        if client is None and settings.OPENAI_API_KEY:
            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.client = client
        self.model = model or settings.OPENAI_MODEL

    async def explain(self, context: ExplanationContext) -> GeneratedText:
        if not self.client:
            raise ExternalGenerationError("OpenAI client is not configured")

        facts = json.dumps(context.model_dump(mode='json'), indent=2)
        try:
            title = await self._complete(
                f"""Write a short, specific title (max 8 words) for this personal data connection.
Include a real number from the data when possible, e.g. "Badminton adds 2h to your sleep".
Return only the title.

Connection data:
{facts}""",
                max_tokens=30,
            )
            explanation = await self._complete(
                f"""You are explaining a pattern found in a user's own daily data.
Use the real numbers below (with/without averages, percent difference, best and worst days).
Mention whether the pattern holds after controlling for the weekly cycle
and whether it is strengthening or weakening. 2-3 sentences. Do not claim causation.

Connection data:
{facts}""",
                max_tokens=220,
            )
            recommendation = await self._complete(
                f"""Based on this connection, give one specific, practical recommendation (1-2 sentences).
Ground it in the with/without data when present. Do not provide medical advice.

Connection data:
{facts}""",
                max_tokens=120,
            )
            return GeneratedText(
                title=title.strip('"'),
                explanation=explanation,
                recommendation=recommendation,
            )
        except ExternalGenerationError:
            raise
        except Exception as e:
            raise ExternalGenerationError(f"OpenAI generation failed: {e}") from e

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=0.7,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ExternalGenerationError("Empty completion")
        return content.strip()


class ExplanationService:
    """
    Attaches text to connections, one gateway call per connection.

    Calls run concurrently up to ``max_concurrent``, each under ``timeout``.
    A failed call only affects its own connection.
    """

    def __init__(
        self,
        gateway: Optional[ExplanationGateway] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.gateway = gateway
        self.max_concurrent = settings.EXPLANATION_MAX_CONCURRENT if max_concurrent is None else max_concurrent
        self.timeout = settings.EXPLANATION_TIMEOUT_SECONDS if timeout is None else timeout
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

    async def explain_all(self, connections: List[Connection]) -> List[Connection]:
        await run_with_concurrency_limit(
            [lambda c=c: self.explain(c) for c in connections],
            max_concurrent=self.max_concurrent,
        )
        ai_count = sum(1 for c in connections if c.ai_generated)
        logger.info(f"Explained {len(connections)} connections ({ai_count} AI-generated)")
        return connections

    async def explain(self, connection: Connection) -> Connection:
        context = build_context(connection)
        connection.description = describe_connection(context)

        text = None
        if self.gateway is not None:
            try:
                text = await asyncio.wait_for(self.gateway.explain(context), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Explanation timed out for {connection.pair_key}, using template")
            except ExternalGenerationError as e:
                logger.warning(f"Explanation failed for {connection.pair_key}: {e}, using template")
            except Exception:
                logger.exception(f"Unexpected explanation failure for {connection.pair_key}, using template")

        connection.ai_generated = text is not None
        text = text or template_text(context)
        connection.title = text.title
        connection.explanation = text.explanation
        connection.recommendation = text.recommendation
        return connection
