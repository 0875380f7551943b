"""
Staging review listing. Read-only; resolving flagged rows happens out of band.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from modelboard.api.dependencies import get_db_session
from modelboard.db.models import StagingStatus
from modelboard.services.staging_repository import STAGING_TABLES, StagingRepository
from modelboard.utils.logging import get_logger

logger = get_logger("staging_routes")

router = APIRouter(prefix="/staging", tags=["Staging"])


class StagingRowModel(BaseModel):
    """One staged observation. Benchmark-only and price-only fields are null for the other kind."""
    id: int
    source_key: str
    model_name: str
    status: StagingStatus
    validation_notes: Optional[str] = None
    fetched_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    benchmark_key: Optional[str] = None
    raw_score: Optional[float] = None
    scale: Optional[float] = None
    input_price_per_1m: Optional[float] = None
    output_price_per_1m: Optional[float] = None


@router.get("/{kind}", response_model=List[StagingRowModel])
async def list_staging(
    kind: str,
    status: Optional[StagingStatus] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db_session),
) -> List[StagingRowModel]:
    """Staging rows of one kind (``benchmarks`` or ``prices``), newest first."""
    if kind not in STAGING_TABLES:
        raise HTTPException(status_code=404, detail=f"Unknown staging kind '{kind}'")

    rows = await StagingRepository(db).list_staging(kind, status=status, limit=limit)
    logger.debug(f"Listing {len(rows)} staging {kind} rows (status={status.value if status else 'any'})")
    return [
        StagingRowModel(
            id=row.id,
            source_key=row.source_key,
            model_name=row.model_name,
            status=row.status,
            validation_notes=row.validation_notes,
            fetched_at=row.fetched_at,
            processed_at=row.processed_at,
            benchmark_key=getattr(row, "benchmark_key", None),
            raw_score=getattr(row, "raw_score", None),
            scale=getattr(row, "scale", None),
            input_price_per_1m=getattr(row, "input_price_per_1m", None),
            output_price_per_1m=getattr(row, "output_price_per_1m", None),
        )
        for row in rows
    ]
