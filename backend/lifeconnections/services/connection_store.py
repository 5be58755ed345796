"""
Persistence for detected connections.

Each save purges the user's expired rows and inserts the new batch in one
transaction. Transient database failures are retried with exponential
backoff; anything else, or a failure that outlasts the retries, surfaces as
PersistenceError.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import async_sessionmaker

from lifeconnections.config import settings
from lifeconnections.ml.correlation.base import ConnectionAnalysisError
from lifeconnections.ml.correlation.ranking import Connection
from lifeconnections.models.connection import LifeConnection
from lifeconnections.utils.concurrency import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class PersistenceError(ConnectionAnalysisError):
    """Connections could not be written."""


class ConnectionStore(Protocol):
    async def save_connections(self, user_id: uuid.UUID, connections: List[Connection]) -> int:
        ...


def is_transient_db_error(error: BaseException) -> bool:
    if isinstance(error, (sa_exc.OperationalError, sa_exc.TimeoutError)):
        return True
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return True
    return isinstance(error, (ConnectionError, asyncio.TimeoutError, TimeoutError))


def to_row(user_id: uuid.UUID, connection: Connection) -> LifeConnection:
    return LifeConnection(
        user_id=user_id,
        category=connection.category,
        direction=connection.direction,
        strength=connection.strength,
        domain_a=connection.domain_a,
        metric_a=connection.metric_a,
        domain_b=connection.domain_b,
        metric_b=connection.metric_b,
        metrics=connection.metrics,
        effect_size=connection.effect_size,
        sample_size=connection.metrics['sampleSize'],
        title=connection.title,
        description=connection.description,
        explanation=connection.explanation,
        recommendation=connection.recommendation,
        ai_generated=connection.ai_generated,
        time_lag=connection.time_lag,
        with_without=connection.with_without,
        survives_confounder_control=connection.survives_confounder_control,
        confounder_partial_r=connection.confounder_partial_r,
        confounder_note=connection.confounder_note,
        trend_direction=connection.trend_direction,
        data_points=connection.data_points,
        detected_at=connection.detected_at,
        expires_at=connection.expires_at,
        dismissed=connection.dismissed,
    )


class SqlAlchemyConnectionStore:
    """ConnectionStore on the ``life_connections`` table."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        if session_factory is None:
            from lifeconnections.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory
        self.retry_config = retry_config or RetryConfig(
            max_retries=settings.PERSIST_MAX_RETRIES,
            base_retry_delay=settings.PERSIST_BASE_RETRY_DELAY,
        )

    async def save_connections(
        self,
        user_id: uuid.UUID,
        connections: List[Connection],
        now: Optional[datetime] = None,
    ) -> int:
        """
        Purge expired rows for the user and insert ``connections``.

        Returns:
            Number of rows inserted

        Raises:
            PersistenceError: after retries are exhausted or on a non-transient error
        """
        now = now or datetime.now(timezone.utc)
        try:
            saved = await retry_with_backoff(
                self._save_once,
                user_id,
                connections,
                now,
                config=self.retry_config,
                is_transient=is_transient_db_error,
            )
        except Exception as e:
            logger.error(f"Failed to save {len(connections)} connections for user {user_id}: {e}")
            raise PersistenceError(f"Could not save connections for user {user_id}") from e

        logger.info(f"Saved {saved} connections for user {user_id}")
        return saved

    async def _save_once(self, user_id: uuid.UUID, connections: List[Connection], now: datetime) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                purged = await session.execute(
                    delete(LifeConnection).where(
                        LifeConnection.user_id == user_id,
                        LifeConnection.expires_at <= now,
                    )
                )
                if purged.rowcount:
                    logger.debug(f"Purged {purged.rowcount} expired connections for user {user_id}")
                session.add_all([to_row(user_id, c) for c in connections])
        return len(connections)

    async def list_active(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> List[LifeConnection]:
        """Unexpired connections for the user, strongest first."""
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as session:
            result = await session.execute(
                select(LifeConnection)
                .where(LifeConnection.user_id == user_id, LifeConnection.expires_at > now)
                .order_by(func.abs(LifeConnection.effect_size).desc())
            )
            return list(result.scalars().all())
