import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Enum, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from lifeconnections.database import Base
from lifeconnections.utils.enums import (
    ConnectionCategory, ConnectionDirection, ConnectionStrength, Domain,
)


class LifeConnection(Base):
    """
    A persisted connection between two of a user's life metrics.

    Written once per qualifying pair per analysis run and purged after
    ``expires_at``. Only ``dismissed`` is changed after insert, by the app.
    """
    __tablename__ = "life_connections"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    category: Mapped[ConnectionCategory] = mapped_column(
        Enum(ConnectionCategory, native_enum=False, length=32),
        nullable=False
    )
    direction: Mapped[ConnectionDirection] = mapped_column(
        Enum(ConnectionDirection, native_enum=False, length=16),
        nullable=False
    )
    strength: Mapped[ConnectionStrength] = mapped_column(
        Enum(ConnectionStrength, native_enum=False, length=16),
        nullable=False
    )

    # Metrics being connected
    domain_a: Mapped[Domain] = mapped_column(Enum(Domain, native_enum=False, length=16), nullable=False)
    metric_a: Mapped[str] = mapped_column(String(100), nullable=False)
    domain_b: Mapped[Domain] = mapped_column(Enum(Domain, native_enum=False, length=16), nullable=False)
    metric_b: Mapped[str] = mapped_column(String(100), nullable=False)

    # Statistics block
    metrics: Mapped[dict] = mapped_column(JSON, nullable=False)
    effect_size: Mapped[float] = mapped_column(Float, nullable=False)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False)

    # Generated text
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    recommendation: Mapped[str] = mapped_column(Text, nullable=False)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Enrichment
    time_lag: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    with_without: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    survives_confounder_control: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    confounder_partial_r: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    confounder_note: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    trend_direction: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    data_points: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Lifecycle
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    dismissed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<LifeConnection({self.domain_a.value}.{self.metric_a} <-> "
            f"{self.domain_b.value}.{self.metric_b}, d={self.effect_size:.3f})>"
        )
