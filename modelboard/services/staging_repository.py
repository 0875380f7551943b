"""
Data access for the staged merge pipeline.

Plain CRUD over staging rows, canonical records and name mappings. No
merge decisions are made here.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Type, Union

from sqlalchemy import select, delete, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from modelboard.db.models import (
    BenchmarkDefinition,
    BenchmarkScore,
    Model,
    ModelNameMapping,
    Price,
    StagingBenchmark,
    StagingPrice,
    StagingStatus,
)
from modelboard.services.model_matching import MatchContext
from modelboard.utils.logging import get_logger

logger = get_logger("staging_repository")

StagingRow = Union[StagingBenchmark, StagingPrice]

STAGING_TABLES: Dict[str, Type] = {
    "benchmarks": StagingBenchmark,
    "prices": StagingPrice,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def staging_model(kind: str) -> Type:
    try:
        return STAGING_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown staging kind: {kind!r} (expected one of {sorted(STAGING_TABLES)})")


class StagingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    # -- identity data -------------------------------------------------

    async def model_ids_by_slug(self) -> Dict[str, int]:
        result = await self.session.execute(select(Model.slug, Model.id))
        return {slug: model_id for slug, model_id in result.all()}

    async def name_mappings(self, source_key: str) -> Dict[str, str]:
        """external_name -> slug for one source."""
        result = await self.session.execute(
            select(ModelNameMapping.external_name, Model.slug)
            .join(Model, Model.id == ModelNameMapping.model_id)
            .where(ModelNameMapping.source_key == source_key)
        )
        return {external_name: slug for external_name, slug in result.all()}

    async def load_match_context(self, source_key: str, slugs: Optional[Iterable[str]] = None) -> MatchContext:
        if slugs is None:
            slugs = (await self.model_ids_by_slug()).keys()
        mappings = await self.name_mappings(source_key)
        return MatchContext.build(slugs, mappings)

    async def record_mapping(self, source_key: str, external_name: str, model_id: int,
                             origin: str = "resolver") -> bool:
        """Insert a mapping unless one already exists for the key. Returns True when inserted."""
        result = await self.session.execute(
            select(ModelNameMapping.id).where(
                and_(
                    ModelNameMapping.source_key == source_key,
                    ModelNameMapping.external_name == external_name,
                )
            )
        )
        if result.scalar() is not None:
            return False

        self.session.add(ModelNameMapping(
            source_key=source_key,
            external_name=external_name,
            model_id=model_id,
            origin=origin,
        ))
        await self.session.flush()
        return True

    async def add_manual_mappings(self, rows: Iterable[Dict[str, str]]) -> Tuple[int, int]:
        """
        Upsert curated mappings given as ``{source_key, external_name, slug}``.

        Curated mappings may overwrite resolver-discovered ones. Returns
        ``(upserted, skipped)``; rows naming an unknown slug are skipped.
        """
        model_ids = await self.model_ids_by_slug()
        upserted = 0
        skipped = 0

        for row in rows:
            model_id = model_ids.get(row["slug"])
            if model_id is None:
                logger.warning(f"Skipping {row['external_name']} -> {row['slug']}: slug not found in models")
                skipped += 1
                continue

            result = await self.session.execute(
                select(ModelNameMapping).where(
                    and_(
                        ModelNameMapping.source_key == row["source_key"],
                        ModelNameMapping.external_name == row["external_name"],
                    )
                )
            )
            mapping = result.scalar_one_or_none()
            if mapping is None:
                self.session.add(ModelNameMapping(
                    source_key=row["source_key"],
                    external_name=row["external_name"],
                    model_id=model_id,
                    origin="manual",
                ))
            else:
                mapping.model_id = model_id
                mapping.origin = "manual"
            upserted += 1

        await self.session.flush()
        return upserted, skipped

    # -- configuration -------------------------------------------------

    async def benchmark_keys(self) -> Set[str]:
        result = await self.session.execute(select(BenchmarkDefinition.key))
        return set(result.scalars().all())

    # -- staging -------------------------------------------------------

    async def stage_benchmarks(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Insert pending benchmark observations produced by a fetcher."""
        return await self._stage(StagingBenchmark, rows)

    async def stage_prices(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Insert pending price observations produced by a fetcher."""
        return await self._stage(StagingPrice, rows)

    async def _stage(self, table: Type, rows: Iterable[Dict[str, Any]]) -> int:
        entries = [table(status=StagingStatus.PENDING, **row) for row in rows]
        self.session.add_all(entries)
        await self.session.flush()
        return len(entries)

    async def pending(self, kind: str) -> List[StagingRow]:
        table = staging_model(kind)
        result = await self.session.execute(
            select(table)
            .where(table.status == StagingStatus.PENDING)
            .order_by(table.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_staging(self, kind: str, status: Optional[StagingStatus] = None,
                           limit: int = 100) -> List[StagingRow]:
        """Staging rows for review, newest first."""
        table = staging_model(kind)
        # Status columns are updated in bulk, so refresh anything already loaded
        query = (
            select(table)
            .order_by(table.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        if status is not None:
            query = query.where(table.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def mark(self, kind: str, staging_id: int, status: StagingStatus, notes: Optional[str] = None,
                   processed_at: Optional[datetime] = None) -> bool:
        """
        Move a pending staging row to a terminal status.

        Returns False when the row is no longer pending; terminal rows are
        never transitioned again.
        """
        table = staging_model(kind)
        result = await self.session.execute(
            update(table)
            .where(and_(table.id == staging_id, table.status == StagingStatus.PENDING))
            .values(status=status, validation_notes=notes, processed_at=processed_at or utcnow())
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def purge_processed(self, days_old: int) -> Dict[str, int]:
        """Delete terminal staging rows processed more than ``days_old`` days ago."""
        cutoff = utcnow() - timedelta(days=days_old)
        counts = {}
        for kind, table in STAGING_TABLES.items():
            result = await self.session.execute(
                delete(table).where(
                    and_(
                        table.status != StagingStatus.PENDING,
                        table.processed_at < cutoff,
                    )
                ).execution_options(synchronize_session=False)
            )
            counts[kind] = result.rowcount or 0
        return counts

    # -- canonical records ---------------------------------------------

    async def get_score(self, model_id: int, benchmark_key: str) -> Optional[BenchmarkScore]:
        result = await self.session.execute(
            select(BenchmarkScore).where(
                and_(
                    BenchmarkScore.model_id == model_id,
                    BenchmarkScore.benchmark_key == benchmark_key,
                )
            )
        )
        return result.scalar_one_or_none()

    async def upsert_score(self, model_id: int, benchmark_key: str, raw_score: float,
                           source: str, recorded_at: Optional[datetime] = None) -> BenchmarkScore:
        """Last write wins on (model_id, benchmark_key)."""
        score = await self.get_score(model_id, benchmark_key)
        if score is None:
            score = BenchmarkScore(model_id=model_id, benchmark_key=benchmark_key)
            self.session.add(score)
        score.raw_score = raw_score
        score.source = source
        score.recorded_at = recorded_at or utcnow()
        await self.session.flush()
        return score

    async def get_price(self, model_id: int) -> Optional[Price]:
        result = await self.session.execute(select(Price).where(Price.model_id == model_id))
        return result.scalar_one_or_none()

    async def upsert_price(self, model_id: int, input_price: float, output_price: float,
                           source: str, confirmed: bool = True,
                           recorded_at: Optional[datetime] = None) -> Price:
        price = await self.get_price(model_id)
        if price is None:
            price = Price(model_id=model_id)
            self.session.add(price)
        price.input_price_per_1m = input_price
        price.output_price_per_1m = output_price
        price.source = source
        price.confirmed = confirmed
        price.recorded_at = recorded_at or utcnow()
        await self.session.flush()
        return price
