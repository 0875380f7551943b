"""
Shared fixtures: an in-memory database per test and a small seeded catalog.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import modelboard.db.models  # noqa: F401
from modelboard.db.database import Base, create_optimized_async_engine
from modelboard.db.models import (
    BenchmarkCategory,
    BenchmarkDefinition,
    BenchmarkScore,
    Model,
    NormalizationMethod,
    Price,
    Provider,
)

SOURCE_PRIORITY = {
    "artificial_analysis": 3,
    "epoch_ai": 2,
    "openrouter": 2,
    "lmarena": 1,
}


@pytest_asyncio.fixture
async def engine():
    engine = create_optimized_async_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(db_session):
    """
    Three models, four metrics in three categories, no scores or prices.

    Returns slug -> model id.
    """
    anthropic = Provider(slug="anthropic", name="Anthropic", color="#d97706")
    openai = Provider(slug="openai", name="OpenAI", color="#10a37f")
    google = Provider(slug="google", name="Google", color="#4285f4")
    db_session.add_all([anthropic, openai, google])
    await db_session.flush()

    models = [
        Model(slug="claude-opus-4-5", name="Claude Opus 4.5", provider_id=anthropic.id,
              is_reasoning_model=True, context_window_input=200000, tags=["frontier"]),
        Model(slug="gpt-4o", name="GPT-4o", provider_id=openai.id),
        Model(slug="gemini-2-5-pro", name="Gemini 2.5 Pro", provider_id=google.id,
              is_reasoning_model=True),
    ]
    db_session.add_all(models)

    db_session.add_all([
        BenchmarkCategory(key="reasoning", label="Reasoning", sort_order=1),
        BenchmarkCategory(key="coding", label="Coding", sort_order=2),
        BenchmarkCategory(key="arena", label="Arena", sort_order=3),
    ])
    await db_session.flush()

    db_session.add_all([
        BenchmarkDefinition(key="gpqa", category_key="reasoning", label="GPQA Diamond",
                            weight=1.0, max_score=100),
        BenchmarkDefinition(key="mmlu_pro", category_key="reasoning", label="MMLU-Pro",
                            weight=1.0, max_score=100),
        BenchmarkDefinition(key="swe_bench", category_key="coding", label="SWE-bench Verified",
                            weight=2.0, max_score=100),
        BenchmarkDefinition(key="lmarena_elo", category_key="arena", label="LMArena ELO",
                            unit="elo", max_score=None,
                            normalization_method=NormalizationMethod.PERCENTILE_RANK),
    ])
    await db_session.commit()

    return {m.slug: m.id for m in models}


@pytest.fixture
def add_score(db_session):
    """Insert a canonical score directly, bypassing the merge."""
    async def _add(model_id, key, value, source="artificial_analysis"):
        db_session.add(BenchmarkScore(model_id=model_id, benchmark_key=key, raw_score=value, source=source))
        await db_session.commit()
    return _add


@pytest.fixture
def add_price(db_session):
    async def _add(model_id, input_price, output_price, source="openrouter"):
        db_session.add(Price(model_id=model_id, input_price_per_1m=input_price,
                             output_price_per_1m=output_price, confirmed=True, source=source))
        await db_session.commit()
    return _add


@pytest.fixture
def source_priority():
    return dict(SOURCE_PRIORITY)
