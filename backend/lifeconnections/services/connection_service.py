"""
Connection Service - one analysis run for one user.

This is the function an external scheduler calls per user: analyze the
daily series, explain the top connections and persist them.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from lifeconnections.config import AnalysisConfig, settings
from lifeconnections.ml.correlation.aggregator import AnalysisReport, ConnectionAnalyzer, check_cancelled
from lifeconnections.ml.correlation.base import DailySeries
from lifeconnections.ml.correlation.ranking import Connection
from lifeconnections.services.connection_store import ConnectionStore, SqlAlchemyConnectionStore
from lifeconnections.services.explanation_service import (
    ExplanationGateway, ExplanationService, OpenAIExplanationGateway,
)

logger = logging.getLogger(__name__)


class ConnectionService:
    """Service for connection detection and storage."""

    def __init__(
        self,
        store: Optional[ConnectionStore] = None,
        gateway: Optional[ExplanationGateway] = None,
        explanation_service: Optional[ExplanationService] = None,
    ):
        self._store = store
        self.explanation_service = explanation_service or ExplanationService(
            gateway=gateway if gateway is not None else OpenAIExplanationGateway()
        )

    @property
    def store(self) -> ConnectionStore:
        """Lazy-load the database store so tests can run without one."""
        if self._store is None:
            self._store = SqlAlchemyConnectionStore()
        return self._store

    async def analyze_user(
        self,
        user_id: uuid.UUID,
        series: Sequence[DailySeries],
        config: Optional[AnalysisConfig] = None,
        cancel_event: Optional[asyncio.Event] = None,
        detected_at: Optional[datetime] = None,
        save_results: bool = True,
    ) -> List[Connection]:
        """
        Run the full connection pipeline for one user.

        Args:
            user_id: User being analyzed
            series: Daily series covering the lookback window
            config: Analysis parameters; defaults come from settings
            cancel_event: Set to stop the run between stages
            detected_at: Timestamp for the new connections
            save_results: Whether to persist to the store

        Returns:
            The explained connections, strongest first

        Raises:
            AnalysisCancelledError: if cancelled between stages
            PersistenceError: if the connections could not be saved
        """
        config = config or settings.analysis_config()
        analyzer = ConnectionAnalyzer(config)

        report: AnalysisReport = await analyzer.analyze(
            series, cancel_event=cancel_event, detected_at=detected_at
        )
        logger.info(
            f"User {user_id}: {report.pairs_tested} pairs, {report.significant} significant, "
            f"{len(report.connections)} connections"
        )

        check_cancelled(cancel_event, "explanation")
        connections = await self.explanation_service.explain_all(report.connections)

        if save_results and connections:
            check_cancelled(cancel_event, "persistence")
            await self.store.save_connections(user_id, connections)

        return connections
