"""
Tests for the read-side scoring service and price helpers.
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio

from modelboard.services.pricing import avg_price_per_1m, estimate_typical_query_cost, pareto_frontier
from modelboard.services.scoring_service import ScoringService


def priced(slug, composite, input_price, output_price):
    pricing = SimpleNamespace(input_per_1m=input_price, output_per_1m=output_price)
    return SimpleNamespace(slug=slug, composite_score=composite, pricing=pricing)


class TestPricing:
    def test_typical_query_cost(self):
        assert estimate_typical_query_cost(3.0, 15.0, False) == pytest.approx((3000 + 7500) / 1_000_000)
        assert estimate_typical_query_cost(3.0, 15.0, True) == pytest.approx((3000 + 75000) / 1_000_000)

    def test_avg_price(self):
        assert avg_price_per_1m(2.0, 8.0) == 5.0

    def test_pareto_frontier(self):
        models = [
            priced("cheap", 50, 0.5, 1.5),
            priced("balanced", 70, 2.0, 8.0),
            priced("dominated", 60, 3.0, 12.0),
            priced("best", 90, 10.0, 40.0),
            SimpleNamespace(slug="unpriced", composite_score=99, pricing=None),
        ]
        assert pareto_frontier(models) == ["cheap", "balanced", "best"]

    def test_equal_models_do_not_dominate_each_other(self):
        models = [priced("a", 70, 1.0, 1.0), priced("b", 70, 1.0, 1.0)]
        assert pareto_frontier(models) == ["a", "b"]


@pytest_asyncio.fixture
async def scored_catalog(catalog, add_score, add_price):
    await add_score(catalog["claude-opus-4-5"], "gpqa", 80.0)
    await add_score(catalog["claude-opus-4-5"], "mmlu_pro", 90.0)
    await add_score(catalog["claude-opus-4-5"], "lmarena_elo", 1400.0)
    await add_score(catalog["gpt-4o"], "gpqa", 50.0)
    await add_score(catalog["gpt-4o"], "swe_bench", 40.0)
    await add_score(catalog["gpt-4o"], "lmarena_elo", 1300.0)
    await add_score(catalog["gemini-2-5-pro"], "lmarena_elo", 1350.0)
    await add_price(catalog["claude-opus-4-5"], 5.0, 25.0)
    await add_price(catalog["gpt-4o"], 2.5, 10.0)
    return catalog


class TestScoringService:
    @pytest.mark.asyncio
    async def test_models_sorted_by_composite(self, db_session, scored_catalog):
        models = await ScoringService(db_session).get_models_with_scores()

        assert [m.slug for m in models] == ["claude-opus-4-5", "gemini-2-5-pro", "gpt-4o"]

        opus = models[0]
        assert opus.provider == "anthropic"
        assert opus.provider_color == "#d97706"
        assert opus.benchmarks == {"gpqa": 80.0, "mmlu_pro": 90.0, "lmarena_elo": 1400.0}
        assert opus.category_scores["reasoning"].score == pytest.approx(85.0)
        assert opus.normalized_scores["lmarena_elo"] == pytest.approx(100.0)
        assert opus.composite_score == pytest.approx((85.0 + 100.0) / 2)
        assert opus.typical_query_cost == pytest.approx(estimate_typical_query_cost(5.0, 25.0, True))

    @pytest.mark.asyncio
    async def test_unreliable_category_is_ignored(self, db_session, scored_catalog):
        gpt = await ScoringService(db_session).get_model("gpt-4o")

        # reasoning: 1 of 2, coding: 1 of 1, arena: rank 0 of 3 values
        assert gpt.category_scores["reasoning"].is_reliable
        assert gpt.category_scores["coding"].score == pytest.approx(40.0)
        assert gpt.normalized_scores["lmarena_elo"] == pytest.approx(0.0)
        assert gpt.composite_score == pytest.approx((50.0 + 40.0 + 0.0) / 3)

    @pytest.mark.asyncio
    async def test_unknown_model(self, db_session, scored_catalog):
        assert await ScoringService(db_session).get_model("nope") is None

    @pytest.mark.asyncio
    async def test_compare_uses_shared_metrics(self, db_session, scored_catalog):
        result = await ScoringService(db_session).compare(["claude-opus-4-5", "gpt-4o", "nope"])

        assert result["shared_benchmarks"] == ["gpqa", "lmarena_elo"]
        assert result["missing"] == ["nope"]

        opus, gpt = result["models"]
        assert set(opus.category_scores) == {"reasoning", "arena"}
        assert opus.category_scores["reasoning"].score == pytest.approx(80.0)
        # Still ranked against all three arena ratings
        assert gpt.normalized_scores["lmarena_elo"] == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_pareto(self, db_session, scored_catalog):
        frontier = await ScoringService(db_session).get_pareto_frontier()
        assert set(frontier) == {"claude-opus-4-5", "gpt-4o"}

    @pytest.mark.asyncio
    async def test_describe_categories(self, db_session, catalog):
        categories = await ScoringService(db_session).describe_categories()

        assert [c["key"] for c in categories] == ["reasoning", "coding", "arena"]
        arena = categories[2]["benchmarks"][0]
        assert arena["key"] == "lmarena_elo"
        assert arena["normalization_method"] == "percentile_rank"
        assert categories[0]["benchmarks"][0]["normalization_method"] == "bounded"

    @pytest.mark.asyncio
    async def test_to_dict(self, db_session, scored_catalog):
        gemini = await ScoringService(db_session).get_model("gemini-2-5-pro")
        data = gemini.to_dict()

        assert data["pricing"] is None
        assert data["typical_query_cost"] is None
        assert data["category_scores"]["arena"]["is_reliable"] is True
        assert data["composite_score"] == pytest.approx(50.0)
