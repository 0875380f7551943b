"""
Category and composite score aggregation.

A category score is the weight-normalized mean of the metrics a model
actually has. It only counts as reliable when at least half of the
category's metrics are populated; the composite is the plain mean of the
reliable categories and ignores the rest entirely.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from modelboard.services.normalization import BenchmarkSpec, normalize_score

RELIABLE_COVERAGE = 0.5

RawScores = Mapping[str, Mapping[str, float]]  # slug -> benchmark_key -> raw value
CategorySpecs = Mapping[str, Sequence[BenchmarkSpec]]  # category key -> metrics


@dataclass(frozen=True)
class CategoryResult:
    score: float
    coverage: float
    is_reliable: bool
    benchmark_count: int
    available_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "coverage": self.coverage,
            "is_reliable": self.is_reliable,
            "benchmark_count": self.benchmark_count,
            "available_count": self.available_count,
        }


@dataclass
class ModelScores:
    """Derived scores for one model. Never persisted."""
    normalized: Dict[str, Optional[float]] = field(default_factory=dict)
    category_scores: Dict[str, CategoryResult] = field(default_factory=dict)
    composite_score: float = 0.0


def category_score(benchmarks: Sequence[Any], scores: Mapping[str, Optional[float]]) -> CategoryResult:
    """
    Weighted mean of the available normalized scores in one category.

    ``benchmarks`` are anything with ``key`` and ``weight`` attributes.
    """
    total_weight = 0.0
    weighted_sum = 0.0
    available = 0

    for benchmark in benchmarks:
        value = scores.get(benchmark.key)
        if value is None:
            continue
        weighted_sum += value * benchmark.weight
        total_weight += benchmark.weight
        available += 1

    total = len(benchmarks)
    coverage = available / total if total else 0.0

    return CategoryResult(
        score=weighted_sum / total_weight if total_weight > 0 else 0.0,
        coverage=coverage,
        is_reliable=total > 0 and coverage >= RELIABLE_COVERAGE,
        benchmark_count=total,
        available_count=available,
    )


def composite_score(categories: Union[Mapping[str, CategoryResult], Iterable[CategoryResult]]) -> float:
    """Unweighted mean of reliable category scores; 0 when none is reliable."""
    results = categories.values() if isinstance(categories, Mapping) else categories
    reliable = [c.score for c in results if c.is_reliable]
    if not reliable:
        return 0.0
    return sum(reliable) / len(reliable)


def build_populations(raw_scores: RawScores, categories: CategorySpecs) -> Dict[str, List[float]]:
    """All known raw values per metric, across every model."""
    populations: Dict[str, List[float]] = {}
    for specs in categories.values():
        for spec in specs:
            populations[spec.key] = [
                benchmarks[spec.key]
                for benchmarks in raw_scores.values()
                if benchmarks.get(spec.key) is not None
            ]
    return populations


def _score_one(
    raw: Mapping[str, float],
    categories: CategorySpecs,
    populations: Mapping[str, Sequence[float]],
) -> ModelScores:
    normalized: Dict[str, Optional[float]] = {}
    for specs in categories.values():
        for spec in specs:
            value = raw.get(spec.key)
            normalized[spec.key] = (
                normalize_score(value, spec, populations.get(spec.key, ())) if value is not None else None
            )

    cat_scores = {key: category_score(specs, normalized) for key, specs in categories.items()}
    return ModelScores(
        normalized=normalized,
        category_scores=cat_scores,
        composite_score=composite_score(cat_scores),
    )


def score_models(raw_scores: RawScores, categories: CategorySpecs) -> Dict[str, ModelScores]:
    """Normalize and aggregate every model against the full population."""
    populations = build_populations(raw_scores, categories)
    return {slug: _score_one(raw, categories, populations) for slug, raw in raw_scores.items()}


def common_benchmark_keys(raw_scores: RawScores, slugs: Sequence[str], categories: CategorySpecs) -> Set[str]:
    """Metrics for which every model in ``slugs`` has a value."""
    if not slugs:
        return set()
    keys = set()
    for specs in categories.values():
        for spec in specs:
            if all(raw_scores.get(slug, {}).get(spec.key) is not None for slug in slugs):
                keys.add(spec.key)
    return keys


def score_models_comparative(
    raw_scores: RawScores,
    categories: CategorySpecs,
    slugs: Sequence[str],
) -> Dict[str, ModelScores]:
    """
    Score a comparison set using only the metrics all of them share.

    Normalization still ranks against the full population so the scale
    does not shift with the selection. Categories left without any shared
    metric are omitted from the results.
    """
    slugs = [slug for slug in dict.fromkeys(slugs) if slug in raw_scores]
    populations = build_populations(raw_scores, categories)
    shared = common_benchmark_keys(raw_scores, slugs, categories)

    restricted = {}
    for key, specs in categories.items():
        kept = [spec for spec in specs if spec.key in shared]
        if kept:
            restricted[key] = kept

    return {slug: _score_one(raw_scores[slug], restricted, populations) for slug in slugs}
