"""
Staging tables for raw observations awaiting validation.

Rows start as ``pending`` and are moved exactly once to a terminal status
by the merge pipeline.
"""
import enum

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Index, Enum as SQLEnum
from sqlalchemy.sql import func
from modelboard.db.database import Base


class StagingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FLAGGED = "flagged"
    SKIPPED = "skipped"


_status_type = SQLEnum(
    StagingStatus,
    name="staging_status",
    values_callable=lambda e: [m.value for m in e],
)


class StagingBenchmark(Base):
    __tablename__ = "staging_benchmarks"

    id = Column(Integer, primary_key=True, index=True)
    source_key = Column(String(100), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)  # the source's own naming
    benchmark_key = Column(String(100), nullable=False)
    raw_score = Column(Float, nullable=True)
    scale = Column(Float, nullable=False, default=1.0)  # source-declared conversion factor
    fetched_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    status = Column(_status_type, nullable=False, default=StagingStatus.PENDING)
    validation_notes = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_staging_benchmarks_status", "status"),
        Index("idx_staging_benchmarks_processed", "processed_at"),
    )

    def __repr__(self):
        return (f"<StagingBenchmark(id={self.id}, source='{self.source_key}', model_name='{self.model_name}', "
                f"benchmark='{self.benchmark_key}', status='{self.status}')>")


class StagingPrice(Base):
    __tablename__ = "staging_prices"

    id = Column(Integer, primary_key=True, index=True)
    source_key = Column(String(100), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)
    input_price_per_1m = Column(Float, nullable=True)
    output_price_per_1m = Column(Float, nullable=True)
    fetched_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    status = Column(_status_type, nullable=False, default=StagingStatus.PENDING)
    validation_notes = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_staging_prices_status", "status"),
        Index("idx_staging_prices_processed", "processed_at"),
    )

    def __repr__(self):
        return (f"<StagingPrice(id={self.id}, source='{self.source_key}', model_name='{self.model_name}', "
                f"status='{self.status}')>")
