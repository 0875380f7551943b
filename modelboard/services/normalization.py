"""
Score normalization.

Maps a raw benchmark value onto a comparable 0-100 score. Bounded metrics
scale against their theoretical maximum; unbounded ones (ELO ratings,
latency, throughput) are ranked within the current population of known
values with a mid-rank tie rule.

The population is always passed in explicitly. Scores are re-derived on
every read, because a single new observation can move every other
model's rank on that metric.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from modelboard.db.models.benchmark import NormalizationMethod

SINGLE_VALUE_SCORE = 50.0


@dataclass(frozen=True)
class BenchmarkSpec:
    """Read-only view of a benchmark definition used by the scoring code."""
    key: str
    category: str
    weight: float = 1.0
    higher_is_better: bool = True
    max_score: Optional[float] = None
    normalization_method: NormalizationMethod = NormalizationMethod.BOUNDED
    unit: str = "%"
    label: Optional[str] = None

    @classmethod
    def from_definition(cls, definition) -> "BenchmarkSpec":
        method = definition.normalization_method or NormalizationMethod.BOUNDED
        return cls(
            key=definition.key,
            category=definition.category_key,
            weight=definition.weight if definition.weight is not None else 1.0,
            higher_is_better=bool(definition.higher_is_better),
            max_score=definition.max_score,
            normalization_method=NormalizationMethod(method),
            unit=definition.unit or "",
            label=definition.label,
        )

    @property
    def effective_method(self) -> NormalizationMethod:
        """Bounded scaling needs a positive upper bound; anything else is ranked."""
        if self.normalization_method is NormalizationMethod.BOUNDED and self.max_score and self.max_score > 0:
            return NormalizationMethod.BOUNDED
        return NormalizationMethod.PERCENTILE_RANK


def bounded_score(raw_value: float, max_score: float) -> float:
    """Fraction of the theoretical maximum, capped at 100 even when a source overshoots."""
    ratio = min(raw_value / max_score, 1.0)
    return max(ratio, 0.0) * 100


def mid_rank_score(raw_value: float, population: Sequence[float]) -> float:
    """
    Rank ``raw_value`` within ``population`` on a 0-100 scale.

    Tied values share the midpoint of the positions they occupy, so
    ``20`` in ``[10, 20, 20, 30]`` scores ``(1 + 0.5) / 3 * 100 = 50``.
    """
    n = len(population)
    if n < 2:
        return SINGLE_VALUE_SCORE

    smaller = sum(1 for v in population if v < raw_value)
    ties = sum(1 for v in population if v == raw_value)
    mid_rank = smaller + max(ties - 1, 0) / 2

    score = mid_rank / (n - 1) * 100
    return min(max(score, 0.0), 100.0)


def normalize_score(raw_value: float, spec: BenchmarkSpec, population: Iterable[float]) -> float:
    """Normalize one raw value against the known values for the same metric."""
    method = spec.effective_method

    if method is NormalizationMethod.BOUNDED:
        score = bounded_score(raw_value, spec.max_score)
    elif method is NormalizationMethod.PERCENTILE_RANK:
        score = mid_rank_score(raw_value, list(population))
    else:
        raise ValueError(f"Unsupported normalization method: {method}")

    if not spec.higher_is_better:
        score = 100 - score

    return score
