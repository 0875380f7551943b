"""
Read-side scoring over the current canonical data.

Every call takes a fresh snapshot of models, canonical scores and prices
and recomputes normalized, category and composite scores from scratch.
Nothing derived is cached or persisted.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from modelboard.db.models import BenchmarkCategory, BenchmarkScore, Model, Price
from modelboard.services.aggregation import (
    CategoryResult,
    ModelScores,
    common_benchmark_keys,
    score_models,
    score_models_comparative,
)
from modelboard.services.normalization import BenchmarkSpec
from modelboard.services.pricing import estimate_typical_query_cost, pareto_frontier
from modelboard.utils.logging import get_logger

logger = get_logger("scoring_service")

DEFAULT_PROVIDER_COLOR = "#888888"


@dataclass
class PricingInfo:
    input_per_1m: float
    output_per_1m: float
    confirmed: bool
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_per_1m": self.input_per_1m,
            "output_per_1m": self.output_per_1m,
            "confirmed": self.confirmed,
            "source": self.source,
        }


@dataclass
class ModelWithScores:
    slug: str
    name: str
    provider: str
    provider_color: str
    is_open_source: bool = False
    is_reasoning_model: bool = False
    context_window_input: Optional[int] = None
    context_window_output: Optional[int] = None
    release_date: Optional[date] = None
    tags: List[str] = field(default_factory=list)
    pricing: Optional[PricingInfo] = None
    benchmarks: Dict[str, float] = field(default_factory=dict)
    normalized_scores: Dict[str, Optional[float]] = field(default_factory=dict)
    category_scores: Dict[str, CategoryResult] = field(default_factory=dict)
    composite_score: float = 0.0

    @property
    def typical_query_cost(self) -> Optional[float]:
        if self.pricing is None:
            return None
        return estimate_typical_query_cost(
            self.pricing.input_per_1m, self.pricing.output_per_1m, self.is_reasoning_model
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "provider": self.provider,
            "provider_color": self.provider_color,
            "is_open_source": self.is_open_source,
            "is_reasoning_model": self.is_reasoning_model,
            "context_window_input": self.context_window_input,
            "context_window_output": self.context_window_output,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "tags": list(self.tags or []),
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "typical_query_cost": self.typical_query_cost,
            "benchmarks": dict(self.benchmarks),
            "normalized_scores": dict(self.normalized_scores),
            "category_scores": {key: result.to_dict() for key, result in self.category_scores.items()},
            "composite_score": self.composite_score,
        }


class ScoringService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_categories(self) -> Dict[str, List[BenchmarkSpec]]:
        """Category key -> metric specs, in display order."""
        categories = await self._category_rows()
        return {
            category.key: [BenchmarkSpec.from_definition(d) for d in category.benchmarks]
            for category in categories
        }

    async def describe_categories(self) -> List[Dict[str, Any]]:
        categories = await self._category_rows()
        return [
            {
                "key": category.key,
                "label": category.label,
                "benchmarks": [
                    {
                        "key": d.key,
                        "label": d.label,
                        "weight": d.weight,
                        "unit": d.unit,
                        "higher_is_better": d.higher_is_better,
                        "max_score": d.max_score,
                        "normalization_method": BenchmarkSpec.from_definition(d).effective_method.value,
                    }
                    for d in category.benchmarks
                ],
            }
            for category in categories
        ]

    async def _category_rows(self) -> List[BenchmarkCategory]:
        result = await self.db.execute(
            select(BenchmarkCategory)
            .options(selectinload(BenchmarkCategory.benchmarks))
            .order_by(BenchmarkCategory.sort_order, BenchmarkCategory.key)
        )
        return list(result.scalars().all())

    async def _snapshot(self):
        models_result = await self.db.execute(
            select(Model).options(selectinload(Model.provider)).order_by(Model.slug)
        )
        models = list(models_result.scalars().all())
        slug_by_id = {m.id: m.slug for m in models}

        raw_scores: Dict[str, Dict[str, float]] = {m.slug: {} for m in models}
        scores_result = await self.db.execute(
            select(BenchmarkScore.model_id, BenchmarkScore.benchmark_key, BenchmarkScore.raw_score)
        )
        for model_id, key, raw in scores_result.all():
            slug = slug_by_id.get(model_id)
            if slug is not None and raw is not None:
                raw_scores[slug][key] = raw

        prices_result = await self.db.execute(select(Price))
        prices = {
            slug_by_id[p.model_id]: PricingInfo(
                input_per_1m=p.input_price_per_1m,
                output_per_1m=p.output_price_per_1m,
                confirmed=bool(p.confirmed),
                source=p.source,
            )
            for p in prices_result.scalars().all()
            if p.model_id in slug_by_id
        }

        return models, raw_scores, prices

    def _assemble(self, model: Model, raw: Dict[str, float], scores: ModelScores,
                  pricing: Optional[PricingInfo]) -> ModelWithScores:
        provider = model.provider
        return ModelWithScores(
            slug=model.slug,
            name=model.name,
            provider=provider.slug if provider else "",
            provider_color=provider.color if provider and provider.color else DEFAULT_PROVIDER_COLOR,
            is_open_source=bool(model.is_open_source),
            is_reasoning_model=bool(model.is_reasoning_model),
            context_window_input=model.context_window_input,
            context_window_output=model.context_window_output,
            release_date=model.release_date,
            tags=list(model.tags or []),
            pricing=pricing,
            benchmarks=dict(raw),
            normalized_scores=scores.normalized,
            category_scores=scores.category_scores,
            composite_score=scores.composite_score,
        )

    async def get_models_with_scores(self) -> List[ModelWithScores]:
        """Every model with its derived scores, best composite first."""
        categories = await self.load_categories()
        models, raw_scores, prices = await self._snapshot()
        scored = score_models(raw_scores, categories)

        results = [
            self._assemble(model, raw_scores[model.slug], scored[model.slug], prices.get(model.slug))
            for model in models
        ]
        results.sort(key=lambda m: (-m.composite_score, m.slug))
        logger.debug(f"Scored {len(results)} models across {len(categories)} categories")
        return results

    async def get_model(self, slug: str) -> Optional[ModelWithScores]:
        for model in await self.get_models_with_scores():
            if model.slug == slug:
                return model
        return None

    async def compare(self, slugs: Sequence[str]) -> Dict[str, Any]:
        """
        Comparative scores for a set of models, restricted to the metrics all
        of them have. Unknown slugs are reported and left out.
        """
        categories = await self.load_categories()
        models, raw_scores, prices = await self._snapshot()
        by_slug = {m.slug: m for m in models}

        requested = list(dict.fromkeys(slugs))
        known = [slug for slug in requested if slug in by_slug]
        missing = [slug for slug in requested if slug not in by_slug]

        scored = score_models_comparative(raw_scores, categories, known)
        compared = [
            self._assemble(by_slug[slug], raw_scores[slug], scored[slug], prices.get(slug))
            for slug in known
        ]

        return {
            "models": compared,
            "shared_benchmarks": sorted(common_benchmark_keys(raw_scores, known, categories)),
            "missing": missing,
        }

    async def get_pareto_frontier(self) -> List[str]:
        return pareto_frontier(await self.get_models_with_scores())
