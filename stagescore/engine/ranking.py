"""Standard competition ranking of teams, partitioned by cluster or stage."""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from loguru import logger

from stagescore.models.enums import Scope
from stagescore.models.results import ResultValues
from stagescore.models.team import Snapshot, Team
from stagescore.utils.misc_utils import effective_score

from .overlay import EditOverlay

AREA_PARTITION = "__area__"


def partition_key(team: Team, scope: Scope, snapshot: Snapshot) -> Optional[str]:
    """Grouping key for ranking.

    Area scope ranks the whole stage together. Cluster scope ranks per cluster;
    teams whose school has no cluster share the ``None`` partition and are
    never ranked against clustered teams.
    """
    if scope == Scope.AREA:
        return AREA_PARTITION
    return snapshot.cluster_of(team)


def compute_ranks(scores: Mapping[str, float]) -> Dict[str, str]:
    """Ranks positive scores: ties share a rank, the next score skips ahead.

    ``[90, 90, 80, 70]`` ranks as ``1, 1, 3, 4``. Unscored (0) and absent (-1)
    entries get no rank at all.
    """
    ranked = sorted(
        ((team_id, score) for team_id, score in scores.items() if score > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    ranks: Dict[str, str] = {}
    previous: Optional[float] = None
    current = 0
    for index, (team_id, score) in enumerate(ranked):
        if previous is None or score < previous:
            current = index + 1
            previous = score
        ranks[team_id] = str(current)
    return ranks


class RankComputer:
    """Turns effective scores into rank edits on an overlay."""

    def __init__(self, overlay: EditOverlay):
        self.overlay = overlay

    def effective_score(self, team: Team, scope: Scope) -> float:
        edit = self.overlay.get(team.team_id)
        if edit is not None:
            return effective_score(edit.score)
        return team.stored_score(scope)

    def partition(
        self, teams: Iterable[Team], scope: Scope, snapshot: Snapshot
    ) -> Dict[Optional[str], Dict[str, float]]:
        partitions: Dict[Optional[str], Dict[str, float]] = defaultdict(dict)
        for team in teams:
            key = partition_key(team, scope, snapshot)
            partitions[key][team.team_id] = self.effective_score(team, scope)
        return partitions

    def compute(
        self, teams: Iterable[Team], scope: Scope, snapshot: Snapshot
    ) -> Dict[str, str]:
        """Rank of every rankable team, without touching the overlay."""
        ranks: Dict[str, str] = {}
        for scores in self.partition(teams, scope, snapshot).values():
            ranks.update(compute_ranks(scores))
        return ranks

    def auto_rank(
        self,
        teams: Iterable[Team],
        scope: Scope,
        snapshot: Snapshot,
        baseline: Optional[Mapping[str, ResultValues]] = None,
    ) -> List[str]:
        """Writes computed ranks into the overlay as dirty edits.

        A rank is written only when it differs from both the pending edit and
        the stored rank, so running this twice without score changes adds
        nothing the second time. Returns the ids that received a new rank.
        """
        teams = list(teams)
        by_id = {t.team_id: t for t in teams}
        partitions = self.partition(teams, scope, snapshot)

        changed: List[str] = []
        for scores in partitions.values():
            for team_id, rank in compute_ranks(scores).items():
                team = by_id[team_id]
                stored = (
                    baseline[team_id]
                    if baseline is not None and team_id in baseline
                    else team.scope_values(scope)
                )
                edit = self.overlay.get(team_id)
                if edit is not None and edit.rank == rank:
                    continue
                if stored.rank == rank:
                    continue
                self.overlay.set(team_id, "rank", rank, stored)
                changed.append(team_id)

        logger.info(
            f"Auto-rank ({scope.value}) updated {len(changed)} of {len(teams)} teams "
            f"across {len(partitions)} partitions."
        )
        return changed
