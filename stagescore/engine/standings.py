"""Read-only summaries of stored results for progress bars and leaderboards."""

from typing import Dict, Iterable, List

from pydantic import BaseModel, computed_field

from stagescore.models.enums import Medal, Scope
from stagescore.models.team import Snapshot, Team
from stagescore.utils.misc_utils import score_text

from .medals import classify


class ProgressStats(BaseModel):
    total: int
    recorded: int

    @computed_field  # type: ignore[misc]
    @property
    def percent(self) -> int:
        return round(self.recorded * 100 / self.total) if self.total else 0


class SchoolStanding(BaseModel):
    school_name: str
    gold: int = 0
    silver: int = 0
    total_score: float = 0
    entries: int = 0

    @computed_field  # type: ignore[misc]
    @property
    def average_score(self) -> float:
        return self.total_score / self.entries if self.entries else 0.0


def progress_stats(teams: Iterable[Team], scope: Scope) -> ProgressStats:
    """How many of the given teams already have a stored score."""
    teams = list(teams)
    recorded = sum(1 for t in teams if t.stored_score(scope) > 0)
    return ProgressStats(total=len(teams), recorded=recorded)


def stored_medal(team: Team, scope: Scope) -> str:
    if scope == Scope.AREA:
        return classify(score_text(team.stage_info.score), team.stage_info.medal)
    return classify(score_text(team.score), team.medal_override)


def school_leaderboard(snapshot: Snapshot, scope: Scope) -> List[SchoolStanding]:
    """Per-school medal tally over scored teams, best average first."""
    teams = snapshot.teams
    if scope == Scope.AREA:
        teams = [t for t in teams if t.area_eligible]

    standings: Dict[str, SchoolStanding] = {}
    for team in teams:
        score = team.stored_score(scope)
        if score <= 0:
            continue
        name = snapshot.school_name(team)
        standing = standings.setdefault(name, SchoolStanding(school_name=name))
        standing.total_score += score
        standing.entries += 1
        medal = stored_medal(team, scope)
        if Medal.GOLD.value in medal:
            standing.gold += 1
        elif Medal.SILVER.value in medal:
            standing.silver += 1

    return sorted(
        standings.values(), key=lambda s: (s.average_score, s.gold), reverse=True
    )
