"""Operator-facing scoring session for one activity.

The session owns one edit overlay per scope. Switching scope keeps the
edits of the scope being left, but they are never shown, ranked or saved
under the other scope. The authoritative values that edits are seeded from
are a baseline captured when the session opens, on every scope switch and on
every refresh, and updated in place after each confirmed write.
"""

from typing import AsyncIterator, Dict, List, Optional

from loguru import logger

from stagescore.models.enums import Scope
from stagescore.models.results import (
    BatchResult,
    ProgressEvent,
    ResultValues,
    SaveOutcome,
)
from stagescore.models.team import Snapshot, Team
from stagescore.storage.base import RecordStore

from .coordinator import ActivityLog, BatchCoordinator, ProgressCallback
from .errors import UnknownTeamError
from .medals import classify, display_rank
from .overlay import EditOverlay
from .ranking import RankComputer
from .selection import scope_teams, visible_teams
from .validation import validate_score


class ScoringSession:
    def __init__(
        self,
        store: RecordStore,
        snapshot: Snapshot,
        activity_id: str,
        scope: Scope = Scope.CLUSTER,
        cluster_id: Optional[str] = None,
        activity_log: Optional[ActivityLog] = None,
    ):
        self.store = store
        self.snapshot = snapshot
        self.activity_id = activity_id
        self.cluster_id = cluster_id
        self.search = ""
        self.activity_log = activity_log if activity_log is not None else ActivityLog()
        self._overlays: Dict[Scope, EditOverlay] = {s: EditOverlay() for s in Scope}
        self._scope = scope
        self._baseline: Dict[str, ResultValues] = self._capture_baseline()

    @classmethod
    async def open(
        cls,
        store: RecordStore,
        activity_id: str,
        scope: Scope = Scope.CLUSTER,
        cluster_id: Optional[str] = None,
    ) -> "ScoringSession":
        snapshot = await store.fetch_snapshot()
        return cls(store, snapshot, activity_id, scope, cluster_id)

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def overlay(self) -> EditOverlay:
        return self._overlays[self._scope]

    def _capture_baseline(self) -> Dict[str, ResultValues]:
        return {t.team_id: t.scope_values(self._scope) for t in self.snapshot.teams}

    def baseline(self, team_id: str) -> ResultValues:
        try:
            return self._baseline[team_id]
        except KeyError:
            raise UnknownTeamError(team_id) from None

    # --- Views ---

    def teams(self) -> List[Team]:
        """Every team of this activity on the current scope, ignoring search."""
        return scope_teams(self.snapshot, self.activity_id, self._scope, self.cluster_id)

    def visible_teams(self) -> List[Team]:
        return visible_teams(
            self.snapshot, self.activity_id, self._scope, self.cluster_id, self.search
        )

    def visible_ids(self) -> List[str]:
        return [t.team_id for t in self.visible_teams()]

    def resolve(self, team_id: str) -> ResultValues:
        return self.overlay.resolve(team_id, self.baseline(team_id))

    def medal_for(self, team_id: str) -> str:
        values = self.resolve(team_id)
        return classify(values.score, values.medal)

    def rank_for(self, team_id: str) -> str:
        values = self.resolve(team_id)
        return display_rank(values.score, values.rank)

    def dirty_ids(self) -> set:
        return self.overlay.dirty_ids(self.visible_ids())

    # --- Edits ---

    def set_field(self, team_id: str, field: str, value: str) -> None:
        """Records one operator change. Scores are validated, never clamped."""
        authoritative = self.baseline(team_id)
        if field == "score":
            validate_score(value)
        self.overlay.set(team_id, field, value, authoritative)

    def auto_rank(self) -> List[str]:
        computer = RankComputer(self.overlay)
        return computer.auto_rank(self.teams(), self._scope, self.snapshot, self._baseline)

    def discard(self) -> int:
        return self.overlay.discard_all()

    def switch_scope(self, scope: Scope) -> None:
        if scope == self._scope:
            return
        pending = len(self.overlay.dirty_ids())
        if pending:
            logger.warning(
                f"{pending} unsaved {self._scope.value} edits kept while switching to {scope.value}."
            )
        self._scope = scope
        self._baseline = self._capture_baseline()

    async def refresh(self) -> None:
        self.snapshot = await self.store.fetch_snapshot()
        self._baseline = self._capture_baseline()
        logger.info(f"Snapshot refreshed; {len(self.overlay)} edits still pending.")

    # --- Persistence ---

    def _apply_saved(self, outcome: SaveOutcome) -> None:
        # The write may finish after a scope switch; follow the outcome's scope
        team = self.snapshot.team(outcome.team_id)
        if team is None:
            return
        if outcome.scope == Scope.AREA:
            team.stage_info = team.stage_info.model_copy(
                update={"score": outcome.score, "rank": outcome.rank, "medal": outcome.medal}
            )
        else:
            team.score = outcome.score
            team.rank = outcome.rank
            team.medal_override = outcome.medal
            team.flag = outcome.flag
            team.stage_status = outcome.stage_status
        if outcome.scope == self._scope:
            self._baseline[team.team_id] = team.scope_values(self._scope)

    def coordinator(self) -> BatchCoordinator:
        return BatchCoordinator(
            self.store,
            self.overlay,
            self._scope,
            self.snapshot,
            self.activity_log,
            on_saved=self._apply_saved,
        )

    async def save(self, team_id: str) -> SaveOutcome:
        validate_score(self.resolve(team_id).score)
        return await self.coordinator().save_one(team_id, self.baseline(team_id))

    async def save_all(self) -> BatchResult:
        return await self.coordinator().save_dirty(self.visible_ids(), self._baseline)

    def reset_progress(self, chunk_size: Optional[int] = None) -> AsyncIterator[ProgressEvent]:
        return self.coordinator().reset(self.teams(), chunk_size)

    async def reset(
        self,
        chunk_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        return await self.coordinator().reset_all(self.teams(), chunk_size, on_progress)
