"""
Pytest configuration and shared fixtures.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pytest

from stagescore.engine.overlay import EditOverlay
from stagescore.models.team import Snapshot, Team
from stagescore.storage.base import RecordStore


def make_team(team_id: str, school_id: str = "S1", score: float = 0, **fields: Any) -> Dict[str, Any]:
    """Raw team record as the store returns it."""
    record = {
        "teamId": team_id,
        "activityId": "A1",
        "teamName": f"Team {team_id}",
        "schoolId": school_id,
        "score": score,
        "rank": "",
        "medalOverride": "",
        "flag": "",
        "stageStatus": "",
        "stageInfo": "",
    }
    record.update(fields)
    return record


def make_snapshot(teams: Iterable[Dict[str, Any]]) -> Snapshot:
    return Snapshot.model_validate(
        {
            "activities": [
                {"id": "A1", "category": "Science", "name": "Robotics"},
                {"id": "A2", "category": "Arts", "name": "Choir"},
            ],
            "clusters": [
                {"ClusterID": "C1", "ClusterName": "North"},
                {"ClusterID": "C2", "ClusterName": "South"},
            ],
            "schools": [
                {"SchoolID": "S1", "SchoolName": "Hillside School", "SchoolCluster": "C1"},
                {"SchoolID": "S2", "SchoolName": "Riverside School", "SchoolCluster": "C1"},
                {"SchoolID": "S3", "SchoolName": "Lakeside School", "SchoolCluster": "C2"},
                {"SchoolID": "S4", "SchoolName": "Unassigned School", "SchoolCluster": ""},
            ],
            "teams": list(teams),
        }
    )


@pytest.fixture
def snapshot() -> Snapshot:
    """One activity spread over two clusters plus an unclustered school."""
    return make_snapshot(
        [
            make_team("T1", "S1", 90, stageStatus="Area", stageInfo='{"score": 88, "rank": "1", "medal": ""}'),
            make_team("T2", "S2", 90),
            make_team("T3", "S1", 80),
            make_team("T4", "S2", 70),
            make_team("T5", "S3", 85, flag="TRUE", stageInfo="{oops"),
            make_team("T6", "S3", 0),
            make_team("T7", "S4", 75),
            make_team("T8", "S2", -1, rank="2"),
            make_team("X1", "S1", 95, activityId="A2"),
        ]
    )


@pytest.fixture
def overlay() -> EditOverlay:
    return EditOverlay()


class FakeRecordStore(RecordStore):
    """In-memory record store that records every write.

    ``fail_ids`` answer False, ``raise_ids`` raise. ``delay`` keeps writes
    in flight long enough to observe concurrency.
    """

    def __init__(
        self,
        snapshot: Optional[Snapshot] = None,
        fail_ids: Iterable[str] = (),
        raise_ids: Iterable[str] = (),
        delay: float = 0.0,
    ):
        snapshot = snapshot or Snapshot()
        self.teams: Dict[str, Team] = {t.team_id: t.model_copy(deep=True) for t in snapshot.teams}
        self._base = snapshot
        self.fail_ids = set(fail_ids)
        self.raise_ids = set(raise_ids)
        self.delay = delay
        self.cluster_calls: List[Tuple] = []
        self.area_calls: List[Tuple] = []
        self.events: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def fetch_snapshot(self) -> Snapshot:
        return Snapshot.model_validate(
            {
                "activities": [a.model_dump() for a in self._base.activities],
                "clusters": [c.model_dump() for c in self._base.clusters],
                "schools": [s.model_dump() for s in self._base.schools],
                "teams": [t.model_dump() for t in self.teams.values()],
            }
        )

    async def _enter(self, team_id: str) -> bool:
        self.events.append(("start", team_id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if team_id in self.raise_ids:
                raise ConnectionError(f"store unreachable for {team_id}")
            return team_id not in self.fail_ids
        finally:
            self.in_flight -= 1
            self.events.append(("end", team_id))

    async def update_cluster_result(self, team_id, score, rank, medal, flag, stage_status) -> bool:
        self.cluster_calls.append((team_id, score, rank, medal, flag, stage_status))
        if not await self._enter(team_id):
            return False
        team = self.teams[team_id]
        team.score = score
        team.rank = rank
        team.medal_override = medal
        team.flag = flag
        team.stage_status = stage_status
        return True

    async def update_area_result(self, team_id, score, rank, medal) -> bool:
        self.area_calls.append((team_id, score, rank, medal))
        if not await self._enter(team_id):
            return False
        team = self.teams[team_id]
        team.stage_info = team.stage_info.model_copy(
            update={"score": score, "rank": rank, "medal": medal}
        )
        return True

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def store(snapshot: Snapshot) -> FakeRecordStore:
    return FakeRecordStore(snapshot)
