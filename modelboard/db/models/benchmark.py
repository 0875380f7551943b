"""
Benchmark configuration and canonical benchmark scores.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey,
    Enum as SQLEnum, UniqueConstraint, Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from modelboard.db.database import Base


class NormalizationMethod(str, enum.Enum):
    """How raw values of a benchmark are mapped onto 0-100."""
    BOUNDED = "bounded"
    PERCENTILE_RANK = "percentile_rank"


class BenchmarkCategory(Base):
    __tablename__ = "benchmark_categories"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), nullable=False, unique=True, index=True)
    label = Column(String(255), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    benchmarks = relationship(
        "BenchmarkDefinition",
        back_populates="category",
        order_by="BenchmarkDefinition.id",
    )

    def __repr__(self):
        return f"<BenchmarkCategory(key='{self.key}')>"


class BenchmarkDefinition(Base):
    """One scorable metric. Every metric belongs to exactly one category."""
    __tablename__ = "benchmark_definitions"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), nullable=False, unique=True, index=True)
    category_key = Column(String(100), ForeignKey("benchmark_categories.key"), nullable=False, index=True)
    label = Column(String(255), nullable=False)
    weight = Column(Float, nullable=False, default=1.0)
    unit = Column(String(50), nullable=False, default="%")
    higher_is_better = Column(Boolean, nullable=False, default=True)
    max_score = Column(Float, nullable=True)  # NULL for unbounded metrics (ELO, latency)
    normalization_method = Column(
        SQLEnum(NormalizationMethod, name="normalization_method",
                values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=NormalizationMethod.BOUNDED,
    )
    source = Column(String(100), nullable=True)

    category = relationship("BenchmarkCategory", back_populates="benchmarks")

    def __repr__(self):
        return f"<BenchmarkDefinition(key='{self.key}', category='{self.category_key}')>"


class BenchmarkScore(Base):
    """Canonical score: at most one row per (model, benchmark)."""
    __tablename__ = "benchmark_scores"

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    benchmark_key = Column(String(100), ForeignKey("benchmark_definitions.key"), nullable=False, index=True)
    raw_score = Column(Float, nullable=False)
    source = Column(String(100), nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    model = relationship("Model", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("model_id", "benchmark_key", name="uq_benchmark_scores_model_benchmark"),
        Index("idx_benchmark_scores_benchmark", "benchmark_key"),
    )

    def __repr__(self):
        return f"<BenchmarkScore(model_id={self.model_id}, benchmark='{self.benchmark_key}', raw_score={self.raw_score})>"
