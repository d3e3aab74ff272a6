from typing import List, Optional

from stagescore.models.enums import Scope
from stagescore.models.team import Snapshot, Team


def scope_teams(
    snapshot: Snapshot,
    activity_id: str,
    scope: Scope,
    cluster_id: Optional[str] = None,
) -> List[Team]:
    """Teams of one activity that belong on a screen of the given scope.

    Area screens show only promoted teams and nominated representatives.
    A cluster restriction applies to cluster screens only.
    """
    teams = [t for t in snapshot.teams if t.activity_id == activity_id]
    if scope == Scope.AREA:
        return [t for t in teams if t.area_eligible]
    if cluster_id:
        teams = [t for t in teams if snapshot.cluster_of(t) == cluster_id]
    return teams


def matches_search(team: Team, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    return any(
        needle in value.lower() for value in (team.team_name, team.team_id, team.school_id)
    )


def visible_teams(
    snapshot: Snapshot,
    activity_id: str,
    scope: Scope,
    cluster_id: Optional[str] = None,
    search: str = "",
) -> List[Team]:
    """Rows of a scoring screen, highest stored score first.

    Ordering uses stored scores, not pending edits, so rows stay put while an
    operator types.
    """
    teams = [
        t
        for t in scope_teams(snapshot, activity_id, scope, cluster_id)
        if matches_search(t, search)
    ]
    return sorted(teams, key=lambda t: t.stored_score(scope), reverse=True)
