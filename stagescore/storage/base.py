from abc import ABC, abstractmethod

from stagescore.models.team import Snapshot


class RecordStore(ABC):
    """Abstract base class for the authoritative team record store.

    Both write operations must be idempotent: repeating a call with the same
    arguments leaves the record in the same final state. Cluster and area
    results are independent and a write for one never touches the other.
    """

    @abstractmethod
    async def fetch_snapshot(self) -> Snapshot:
        """Fetch activities, teams, schools and clusters in one read."""
        pass

    @abstractmethod
    async def update_cluster_result(
        self,
        team_id: str,
        score: float,
        rank: str,
        medal: str,
        flag: str,
        stage_status: str,
    ) -> bool:
        """Write all cluster-stage fields of one team together.

        Returns:
            True when the store confirmed the write, False otherwise.
        """
        pass

    @abstractmethod
    async def update_area_result(
        self, team_id: str, score: float, rank: str, medal: str
    ) -> bool:
        """Write the area-stage score, rank and medal of one team."""
        pass

    async def close(self) -> None:
        """Release any underlying connection."""
        return None
