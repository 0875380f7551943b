"""
Staged merge of freshly fetched observations into canonical records.

Per batch:

1. resolve every observation's identity and keep, per (model, metric),
   only the entry from the highest-priority source; the rest are skipped
   as superseded
2. skip entries whose model cannot be resolved or whose metric is unknown
3. flag values outside the accepted range
4. flag values drifting too far from the current canonical record
5. upsert the survivors and mark them approved

Every record ends in exactly one terminal status. Problems the pipeline
can classify never abort the batch; a storage error on one record rolls
back that record only and leaves it pending for the next run.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from modelboard.config import settings
from modelboard.db.models import StagingStatus
from modelboard.services.errors import (
    ExcessiveDrift,
    MergeError,
    OutOfRangeValue,
    StorageFailure,
    UnknownMetric,
    UnresolvedIdentity,
)
from modelboard.services.model_matching import MatchContext, MatchResult, resolve
from modelboard.services.staging_repository import StagingRepository, utcnow
from modelboard.utils.logging import get_logger

logger = get_logger("merge_pipeline")

PRICE_METRIC = "price"

T = TypeVar("T")


@dataclass(frozen=True)
class RawObservation:
    """Detached snapshot of one pending staging row."""
    id: int
    kind: str
    source_key: str
    external_name: str
    metric: str
    value: Optional[float] = None
    input_price: Optional[float] = None
    output_price: Optional[float] = None
    fetched_at: Optional[datetime] = None

    @classmethod
    def from_benchmark_row(cls, row) -> "RawObservation":
        value = row.raw_score
        if value is not None and row.scale is not None:
            value = value * row.scale
        return cls(
            id=row.id,
            kind="benchmarks",
            source_key=row.source_key,
            external_name=row.model_name,
            metric=row.benchmark_key,
            value=value,
            fetched_at=row.fetched_at,
        )

    @classmethod
    def from_price_row(cls, row) -> "RawObservation":
        return cls(
            id=row.id,
            kind="prices",
            source_key=row.source_key,
            external_name=row.model_name,
            metric=PRICE_METRIC,
            input_price=row.input_price_per_1m,
            output_price=row.output_price_per_1m,
            fetched_at=row.fetched_at,
        )


@dataclass
class MergeOutcome:
    staging_id: int
    source_key: str
    external_name: str
    metric: str
    status: StagingStatus
    reason: Optional[str] = None
    model_slug: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "staging_id": self.staging_id,
            "source_key": self.source_key,
            "external_name": self.external_name,
            "metric": self.metric,
            "status": self.status.value,
            "reason": self.reason,
            "model_slug": self.model_slug,
        }


@dataclass
class MergeReport:
    """Per-batch result: one outcome per processed record, plus records left pending by storage errors."""
    kind: str
    outcomes: List[MergeOutcome] = field(default_factory=list)
    errors: List[MergeOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    def count(self, status: StagingStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def approved(self) -> int:
        return self.count(StagingStatus.APPROVED)

    @property
    def flagged(self) -> int:
        return self.count(StagingStatus.FLAGGED)

    @property
    def skipped(self) -> int:
        return self.count(StagingStatus.SKIPPED)

    def outcome_for(self, staging_id: int) -> Optional[MergeOutcome]:
        for outcome in self.outcomes + self.errors:
            if outcome.staging_id == staging_id:
                return outcome
        return None

    def needs_review(self) -> List[MergeOutcome]:
        return [o for o in self.outcomes if o.status is not StagingStatus.APPROVED]

    def finish(self) -> "MergeReport":
        self.finished_at = utcnow()
        return self

    def summary(self) -> str:
        text = f"{self.approved} merged, {self.flagged} flagged, {self.skipped} skipped"
        if self.errors:
            text += f", {len(self.errors)} left pending after storage errors"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "approved": self.approved,
            "flagged": self.flagged,
            "skipped": self.skipped,
            "errors": [outcome.to_dict() for outcome in self.errors],
            "needs_review": [outcome.to_dict() for outcome in self.needs_review()],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def source_rank(source_key: str, priority: Mapping[str, int]) -> int:
    return priority.get(source_key, 0)


def select_by_source_priority(
    keyed_entries: Iterable[Tuple[Hashable, T]],
    priority: Mapping[str, int],
) -> Tuple[List[T], List[Tuple[T, T]]]:
    """
    Keep the highest-priority entry per group key.

    Entries need a ``source_key`` attribute. Equal priorities keep the
    earliest entry. Returns ``(winners, [(superseded, winner), ...])``.
    """
    keyed_entries = list(keyed_entries)
    best: Dict[Hashable, T] = {}

    for key, entry in keyed_entries:
        current = best.get(key)
        if current is None or source_rank(entry.source_key, priority) > source_rank(current.source_key, priority):
            best[key] = entry

    winners = list(best.values())
    winner_ids = {id(entry) for entry in winners}
    superseded = [(entry, best[key]) for key, entry in keyed_entries if id(entry) not in winner_ids]
    return winners, superseded


def check_score_range(value: Optional[float], lower: float, upper: float):
    if not _is_number(value):
        raise OutOfRangeValue(f"Score {value!r} is not a number")
    if value < lower or value > upper:
        raise OutOfRangeValue(f"Score {_fmt(value)} out of valid range [{_fmt(lower)}, {_fmt(upper)}]")


def check_score_drift(current: float, new: float, max_change: float):
    if abs(new - current) > max_change:
        raise ExcessiveDrift(
            f"Score changed {_fmt(current)} → {_fmt(new)}, exceeds {_fmt(max_change)}pt threshold"
        )


def check_price_values(input_price: Any, output_price: Any):
    problems = [
        f"{label} {value!r}"
        for label, value in (("input", input_price), ("output", output_price))
        if not _is_number(value) or value <= 0
    ]
    if problems:
        raise OutOfRangeValue(f"Price rates must be positive numbers, got {', '.join(problems)}")


def check_price_drift(current_input: float, current_output: float,
                      new_input: float, new_output: float, max_ratio: float):
    """Flag a change beyond ``max_ratio`` in either direction. Sides without a positive current rate are not compared."""
    for old, new in ((current_input, new_input), (current_output, new_output)):
        if not _is_number(old) or old <= 0:
            continue
        ratio = new / old
        if ratio > max_ratio or ratio < 1 / max_ratio:
            raise ExcessiveDrift(
                f"Price change exceeds {_fmt(max_ratio)}x threshold. "
                f"Input: {_fmt(current_input)} → {_fmt(new_input)}, "
                f"Output: {_fmt(current_output)} → {_fmt(new_output)}"
            )


class StagedMergePipeline:
    """Validates pending staging rows and promotes the good ones to canonical records."""

    def __init__(
        self,
        session: AsyncSession,
        source_priority: Optional[Mapping[str, int]] = None,
        max_score_change: Optional[float] = None,
        max_price_change_ratio: Optional[float] = None,
        score_range: Optional[Tuple[float, float]] = None,
    ):
        self.session = session
        self.repo = StagingRepository(session)
        self.source_priority = dict(
            source_priority if source_priority is not None else settings.merge_source_priority
        )
        self.max_score_change = (
            max_score_change if max_score_change is not None else settings.merge_max_score_change
        )
        self.max_price_change_ratio = (
            max_price_change_ratio if max_price_change_ratio is not None
            else settings.merge_max_price_change_ratio
        )
        self.score_range = score_range or (settings.merge_score_min, settings.merge_score_max)

        self._model_ids: Dict[str, int] = {}
        self._contexts: Dict[str, MatchContext] = {}

    async def merge_benchmarks(self) -> MergeReport:
        """Process every pending staging benchmark row."""
        report = MergeReport(kind="benchmarks")
        rows = await self.repo.pending("benchmarks")
        if not rows:
            logger.info("No pending staging benchmarks to process")
            return report.finish()

        observations = [RawObservation.from_benchmark_row(row) for row in rows]
        logger.info(f"Processing {len(observations)} pending staging benchmark records")

        await self._load_identities()
        valid_keys = await self.repo.benchmark_keys()
        matches = await self._resolve_all(observations)

        winners = await self._deduplicate(report, observations, matches)
        for obs in winners:
            await self._process(report, obs, matches[obs.id], self._validate_benchmark(valid_keys))

        logger.info(f"Benchmark merge: {report.summary()}")
        return report.finish()

    async def merge_prices(self) -> MergeReport:
        """Process every pending staging price row."""
        report = MergeReport(kind="prices")
        rows = await self.repo.pending("prices")
        if not rows:
            logger.info("No pending staging prices to process")
            return report.finish()

        observations = [RawObservation.from_price_row(row) for row in rows]
        logger.info(f"Processing {len(observations)} pending staging price records")

        await self._load_identities()
        matches = await self._resolve_all(observations)

        winners = await self._deduplicate(report, observations, matches)
        for obs in winners:
            await self._process(report, obs, matches[obs.id], self._validate_price)

        logger.info(f"Price merge: {report.summary()}")
        return report.finish()

    async def _load_identities(self):
        self._model_ids = await self.repo.model_ids_by_slug()
        self._contexts = {}

    async def _context_for(self, source_key: str) -> MatchContext:
        ctx = self._contexts.get(source_key)
        if ctx is None:
            ctx = await self.repo.load_match_context(source_key, self._model_ids.keys())
            self._contexts[source_key] = ctx
        return ctx

    async def _resolve_all(self, observations: List[RawObservation]) -> Dict[int, Optional[MatchResult]]:
        matches = {}
        for obs in observations:
            ctx = await self._context_for(obs.source_key)
            matches[obs.id] = resolve(obs.external_name, ctx)
        return matches

    async def _deduplicate(
        self,
        report: MergeReport,
        observations: List[RawObservation],
        matches: Mapping[int, Optional[MatchResult]],
    ) -> List[RawObservation]:
        """Whole-batch grouping pass; must finish before any record is validated."""

        def group_key(obs: RawObservation) -> Tuple[str, str]:
            match = matches[obs.id]
            identity = match.slug if match else f"unresolved:{obs.external_name}"
            return identity, obs.metric

        winners, superseded = select_by_source_priority(
            ((group_key(obs), obs) for obs in observations), self.source_priority
        )

        for obs, winner in superseded:
            outcome = self._outcome(obs, matches[obs.id], StagingStatus.SKIPPED,
                                    f"Superseded by higher-priority source {winner.source_key} "
                                    f"(staging #{winner.id})")
            await self._store(report, obs, outcome)

        return winners

    def _require_model(self, obs: RawObservation, match: Optional[MatchResult]) -> int:
        if match is None or match.slug not in self._model_ids:
            raise UnresolvedIdentity(f"No model match for '{obs.external_name}' from {obs.source_key}")
        return self._model_ids[match.slug]

    def _validate_benchmark(self, valid_keys):
        async def validate(obs: RawObservation, model_id: int) -> Callable[[], Awaitable[Any]]:
            if obs.metric not in valid_keys:
                raise UnknownMetric(f"Unknown benchmark key: {obs.metric}")

            check_score_range(obs.value, *self.score_range)

            current = await self.repo.get_score(model_id, obs.metric)
            if current is not None:
                check_score_drift(current.raw_score, obs.value, self.max_score_change)

            async def write():
                await self.repo.upsert_score(model_id, obs.metric, obs.value, obs.source_key)

            return write

        return validate

    async def _validate_price(self, obs: RawObservation, model_id: int) -> Callable[[], Awaitable[Any]]:
        check_price_values(obs.input_price, obs.output_price)

        current = await self.repo.get_price(model_id)
        if current is not None:
            check_price_drift(
                current.input_price_per_1m, current.output_price_per_1m,
                obs.input_price, obs.output_price,
                self.max_price_change_ratio,
            )

        async def write():
            await self.repo.upsert_price(model_id, obs.input_price, obs.output_price, obs.source_key)

        return write

    async def _process(self, report: MergeReport, obs: RawObservation,
                       match: Optional[MatchResult], validate):
        try:
            model_id = self._require_model(obs, match)
            write = await validate(obs, model_id)
        except MergeError as exc:
            await self._store(report, obs, self._outcome(obs, match, exc.status, exc.message))
            return

        outcome = self._outcome(obs, match, StagingStatus.APPROVED)
        await self._store(report, obs, outcome, write=write, match=match, model_id=model_id)

    def _outcome(self, obs: RawObservation, match: Optional[MatchResult],
                 status: StagingStatus, reason: Optional[str] = None) -> MergeOutcome:
        return MergeOutcome(
            staging_id=obs.id,
            source_key=obs.source_key,
            external_name=obs.external_name,
            metric=obs.metric,
            status=status,
            reason=reason,
            model_slug=match.slug if match else None,
        )

    async def _store(self, report: MergeReport, obs: RawObservation, outcome: MergeOutcome,
                     write: Optional[Callable[[], Awaitable[Any]]] = None,
                     match: Optional[MatchResult] = None, model_id: Optional[int] = None):
        """Apply one record's writes and status change atomically, then commit."""
        try:
            async with self.session.begin_nested():
                marked = await self.repo.mark(obs.kind, obs.id, outcome.status, outcome.reason)
                if not marked:
                    raise StorageFailure(f"Staging #{obs.id} is no longer pending")
                if write is not None:
                    await write()
                    if match is not None and match.is_discovered:
                        await self.repo.record_mapping(obs.source_key, obs.external_name, model_id)
            await self.session.commit()
        except (SQLAlchemyError, StorageFailure) as exc:
            await self.session.rollback()
            failure = exc if isinstance(exc, StorageFailure) else StorageFailure(
                f"Failed to store {obs.kind} staging #{obs.id} "
                f"({obs.external_name}/{obs.metric}): {exc}", exc
            )
            logger.warning(failure.message)
            outcome.status = StagingStatus.PENDING
            outcome.reason = failure.message
            report.errors.append(outcome)
            return

        logger.debug(f"Staging #{obs.id} {obs.external_name}/{obs.metric} -> {outcome.status.value}"
                     + (f": {outcome.reason}" if outcome.reason else ""))
        report.outcomes.append(outcome)
