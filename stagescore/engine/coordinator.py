"""Persistence of operator edits and full result resets.

Single saves and dirty-set saves run one request at a time. Resets run in
fixed-size chunks: every write of a chunk is in flight together, and the next
chunk starts only after the whole chunk has resolved.
"""

import asyncio
import time
from collections import deque
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Deque,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from loguru import logger

from stagescore.config.settings import settings
from stagescore.models.enums import Scope
from stagescore.models.results import (
    ActivityLogEntry,
    BatchResult,
    ProgressEvent,
    ResultValues,
    SaveOutcome,
)
from stagescore.models.team import Snapshot, Team
from stagescore.storage.base import RecordStore
from stagescore.utils.misc_utils import ABSENT_SCORE, chunked, effective_score, score_text

from .errors import UnknownTeamError
from .medals import classify
from .overlay import EditOverlay
from .promotion import promote

T = TypeVar("T")

ProgressCallback = Callable[[ProgressEvent], None]


class ActivityLog:
    """Bounded list of recent successful saves, newest first."""

    def __init__(self, maxlen: Optional[int] = None):
        self._entries: Deque[ActivityLogEntry] = deque(
            maxlen=maxlen or settings.activity_log_size
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ActivityLogEntry]:
        return iter(self.recent())

    def append(self, entry: ActivityLogEntry) -> None:
        self._entries.append(entry)
        logger.info(str(entry))

    def recent(self, limit: Optional[int] = None) -> List[ActivityLogEntry]:
        entries = list(reversed(self._entries))
        return entries if limit is None else entries[:limit]


class BatchCoordinator:
    """Writes resolved edits to the record store for one scope."""

    def __init__(
        self,
        store: RecordStore,
        overlay: EditOverlay,
        scope: Scope,
        snapshot: Snapshot,
        activity_log: Optional[ActivityLog] = None,
        on_saved: Optional[Callable[[SaveOutcome], None]] = None,
    ):
        self.store = store
        self.overlay = overlay
        self.scope = scope
        self.snapshot = snapshot
        self.activity_log = activity_log if activity_log is not None else ActivityLog()
        self.on_saved = on_saved

    async def _write(
        self, team_id: str, score: float, rank: str, medal: str, flag: str
    ) -> Tuple[bool, str]:
        """One scope-qualified store write. Returns (success, stage status)."""
        if self.scope == Scope.AREA:
            ok = await self.store.update_area_result(team_id, score, rank, medal)
            return bool(ok), ""
        stage_status = promote(rank, flag)
        ok = await self.store.update_cluster_result(
            team_id, score, rank, medal, flag, stage_status
        )
        return bool(ok), stage_status

    def _team(self, team_id: str) -> Team:
        team = self.snapshot.team(team_id)
        if team is None:
            raise UnknownTeamError(team_id)
        return team

    def _log_save(self, team: Team, score: float, medal: str) -> None:
        self.activity_log.append(
            ActivityLogEntry(
                team_id=team.team_id,
                team_name=team.team_name or team.team_id,
                school_name=self.snapshot.school_name(team),
                activity_name=self.snapshot.activity_name(team),
                score=score,
                medal=classify(score_text(score), medal),
                scope=self.scope,
            )
        )

    async def save_one(
        self, team_id: str, authoritative: Optional[ResultValues] = None
    ) -> SaveOutcome:
        """Persists one team's resolved values.

        On success the edit is cleared and a recent-activity entry is added.
        On failure the edit is left untouched so the operator can retry.
        """
        team = self._team(team_id)
        if authoritative is None:
            authoritative = team.scope_values(self.scope)
        values = self.overlay.resolve(team_id, authoritative)

        score = effective_score(values.score)
        rank = "" if score == ABSENT_SCORE else values.rank.strip()
        medal = values.medal
        flag = values.flag if self.scope == Scope.CLUSTER else ""

        error: Optional[str] = None
        try:
            ok, stage_status = await self._write(team_id, score, rank, medal, flag)
        except Exception as e:
            logger.exception(f"Unexpected error saving {self.scope.value} result of {team_id}: {e}")
            ok, stage_status, error = False, "", str(e)

        outcome = SaveOutcome(
            team_id=team_id,
            scope=self.scope,
            success=ok,
            score=score,
            rank=rank,
            medal=medal,
            flag=flag,
            stage_status=stage_status,
            error=None if ok else (error or "Record store rejected the write."),
        )
        if ok:
            self.overlay.clear(team_id)
            self._log_save(team, score, medal)
            self._notify(outcome)
        else:
            logger.error(f"Failed to save {self.scope.value} result of {team_id}; edit kept.")
        return outcome

    def _notify(self, outcome: SaveOutcome) -> None:
        """Reports a confirmed write. A failing callback never undoes the write."""
        if self.on_saved is None:
            return
        try:
            self.on_saved(outcome)
        except Exception as e:
            logger.exception(f"on_saved callback failed for {outcome.team_id}: {e}")

    async def save_dirty(
        self,
        visible_ids: Optional[Iterable[str]] = None,
        baseline: Optional[Mapping[str, ResultValues]] = None,
    ) -> BatchResult:
        """Saves every dirty, visible team one request at a time."""
        team_ids = sorted(self.overlay.dirty_ids(visible_ids))
        start = time.monotonic()
        succeeded = 0
        failed_ids: List[str] = []

        for team_id in team_ids:
            try:
                outcome = await self.save_one(
                    team_id, baseline.get(team_id) if baseline else None
                )
            except UnknownTeamError:
                logger.error(f"Dirty edit for unknown team {team_id} skipped.")
                failed_ids.append(team_id)
                continue
            if outcome.success:
                succeeded += 1
            else:
                failed_ids.append(team_id)

        result = BatchResult(
            attempted=len(team_ids),
            succeeded=succeeded,
            failed_ids=failed_ids,
            elapsed=time.monotonic() - start,
        )
        _log_batch("Batch save", result)
        return result

    async def _guarded(self, write: Callable[[T], Awaitable[bool]], item: T) -> bool:
        try:
            return bool(await write(item))
        except Exception as e:
            logger.exception(f"Write failed for {item!r}: {e}")
            return False

    async def run(
        self,
        items: Sequence[T],
        write: Callable[[T], Awaitable[bool]],
        concurrency: int,
        failures: Optional[List[T]] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Runs ``write`` over ``items`` in chunks of ``concurrency``.

        Yields one ProgressEvent after each chunk. A failed write never stops
        the remaining items; failed items are appended to ``failures``.
        """
        total = len(items)
        start = time.monotonic()
        current = succeeded = failed = 0

        if total == 0:
            yield ProgressEvent(current=0, total=0, succeeded=0, failed=0, elapsed=0.0)
            return

        for chunk in chunked(items, concurrency):
            results = await asyncio.gather(*(self._guarded(write, item) for item in chunk))
            for item, ok in zip(chunk, results):
                if ok:
                    succeeded += 1
                else:
                    failed += 1
                    if failures is not None:
                        failures.append(item)
            current = min(current + concurrency, total)
            yield ProgressEvent(
                current=current,
                total=total,
                succeeded=succeeded,
                failed=failed,
                elapsed=time.monotonic() - start,
            )

    async def reset(
        self,
        teams: Sequence[Team],
        chunk_size: Optional[int] = None,
        failures: Optional[List[Team]] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Blanks score, rank, medal and flag of every team in this scope.

        Cannot be cancelled once started and is not reversible.
        """
        chunk_size = chunk_size or settings.reset_chunk_size
        logger.warning(
            f"Resetting {self.scope.value} results of {len(teams)} teams "
            f"in chunks of {chunk_size}."
        )

        async def write_blank(team: Team) -> bool:
            ok, stage_status = await self._write(team.team_id, 0, "", "", "")
            if ok:
                self.overlay.clear(team.team_id)
                self._notify(
                    SaveOutcome(
                        team_id=team.team_id,
                        scope=self.scope,
                        success=True,
                        stage_status=stage_status,
                    )
                )
            return ok

        async for event in self.run(list(teams), write_blank, chunk_size, failures):
            logger.debug(f"Reset progress {event.current}/{event.total}")
            yield event

    async def reset_all(
        self,
        teams: Sequence[Team],
        chunk_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Runs a reset to completion and returns the aggregate outcome."""
        failures: List[Team] = []
        last: Optional[ProgressEvent] = None
        async for event in self.reset(teams, chunk_size, failures):
            last = event
            if on_progress is not None:
                on_progress(event)

        result = BatchResult(
            attempted=len(teams),
            succeeded=last.succeeded if last else 0,
            failed_ids=[team.team_id for team in failures],
            elapsed=last.elapsed if last else 0.0,
        )
        _log_batch("Reset", result)
        return result


def _log_batch(label: str, result: BatchResult) -> None:
    if result.status == "success":
        logger.success(f"{label}: {result.summary()} in {result.elapsed:.2f}s.")
    elif result.status == "partial":
        logger.warning(f"{label}: {result.summary()}. Failed: {result.failed_ids}")
    else:
        logger.error(f"{label}: {result.summary()}. Failed: {result.failed_ids}")
