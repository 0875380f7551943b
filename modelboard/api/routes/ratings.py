"""
Read-only rating endpoints.

Scores are recomputed from canonical data on every request.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from modelboard.api.dependencies import get_db_session
from modelboard.services.scoring_service import ModelWithScores, ScoringService
from modelboard.utils.logging import get_logger

logger = get_logger("ratings_routes")

router = APIRouter(tags=["Ratings"])


class PricingModel(BaseModel):
    input_per_1m: float
    output_per_1m: float
    confirmed: bool
    source: Optional[str] = None


class CategoryScoreModel(BaseModel):
    score: float
    coverage: float
    is_reliable: bool
    benchmark_count: int
    available_count: int


class ModelScoresResponse(BaseModel):
    """A model with its raw, normalized, category and composite scores."""
    slug: str
    name: str
    provider: str
    provider_color: str
    is_open_source: bool
    is_reasoning_model: bool
    context_window_input: Optional[int] = None
    context_window_output: Optional[int] = None
    release_date: Optional[str] = None
    tags: List[str] = []
    pricing: Optional[PricingModel] = None
    typical_query_cost: Optional[float] = None
    benchmarks: Dict[str, float] = {}
    normalized_scores: Dict[str, Optional[float]] = {}
    category_scores: Dict[str, CategoryScoreModel] = {}
    composite_score: float


class BenchmarkInfoModel(BaseModel):
    key: str
    label: str
    weight: float
    unit: Optional[str] = None
    higher_is_better: bool
    max_score: Optional[float] = None
    normalization_method: str


class CategoryInfoModel(BaseModel):
    key: str
    label: str
    benchmarks: List[BenchmarkInfoModel]


class CompareResponse(BaseModel):
    models: List[ModelScoresResponse]
    shared_benchmarks: List[str]
    missing: List[str]


class ParetoResponse(BaseModel):
    frontier: List[str]


def _to_response(model: ModelWithScores) -> ModelScoresResponse:
    return ModelScoresResponse(**model.to_dict())


@router.get("/models", response_model=List[ModelScoresResponse])
async def list_models(db: AsyncSession = Depends(get_db_session)) -> List[ModelScoresResponse]:
    """All models, best composite score first."""
    models = await ScoringService(db).get_models_with_scores()
    logger.info(f"Returning {len(models)} scored models")
    return [_to_response(m) for m in models]


@router.get("/models/{slug}", response_model=ModelScoresResponse)
async def get_model(slug: str, db: AsyncSession = Depends(get_db_session)) -> ModelScoresResponse:
    model = await ScoringService(db).get_model(slug)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Model '{slug}' not found")
    return _to_response(model)


@router.get("/categories", response_model=List[CategoryInfoModel])
async def list_categories(db: AsyncSession = Depends(get_db_session)) -> List[CategoryInfoModel]:
    categories = await ScoringService(db).describe_categories()
    return [CategoryInfoModel(**c) for c in categories]


@router.get("/compare", response_model=CompareResponse)
async def compare_models(
    ids: str = Query(..., description="Comma-separated model slugs"),
    db: AsyncSession = Depends(get_db_session),
) -> CompareResponse:
    """
    Compare models on the benchmarks they all share.

    Normalization still ranks against the full population, so values are
    comparable with the main listing.
    """
    slugs = [s.strip() for s in ids.split(",") if s.strip()]
    if len(slugs) < 2:
        raise HTTPException(status_code=400, detail="Provide at least two model slugs to compare")

    result = await ScoringService(db).compare(slugs)
    if len(result["models"]) < 2:
        raise HTTPException(status_code=404, detail=f"Unknown models: {', '.join(result['missing'])}")

    return CompareResponse(
        models=[_to_response(m) for m in result["models"]],
        shared_benchmarks=result["shared_benchmarks"],
        missing=result["missing"],
    )


@router.get("/pareto", response_model=ParetoResponse)
async def get_pareto(db: AsyncSession = Depends(get_db_session)) -> ParetoResponse:
    return ParetoResponse(frontier=await ScoringService(db).get_pareto_frontier())
