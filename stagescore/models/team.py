# stagescore/models/team.py
import json
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
)

from stagescore.utils.misc_utils import parse_score, score_text

from .enums import Scope, StageStatus
from .results import ResultValues


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class AreaStageInfo(BaseModel):
    """Area-stage result of a team, carried in the store as a JSON blob."""

    model_config = ConfigDict(extra="allow")

    score: float = 0
    rank: str = ""
    medal: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> float:
        number = parse_score(value)
        return 0 if number is None else number

    @field_validator("rank", "medal", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @classmethod
    def parse(cls, raw: Any) -> "AreaStageInfo":
        """Parses the stored blob; malformed content becomes an empty result."""
        if raw is None or isinstance(raw, AreaStageInfo):
            return raw or cls()
        data = raw
        if isinstance(raw, (str, bytes)):
            if not raw.strip():
                return cls()
            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.debug(f"Unparsable stageInfo treated as empty: {e}")
                return cls()
        if not isinstance(data, dict):
            logger.debug(f"stageInfo is not an object ({type(data).__name__}), treated as empty.")
            return cls()
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Invalid stageInfo fields treated as empty: {e}")
            return cls()

    def serialize(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True), ensure_ascii=False)


class Team(BaseModel):
    """A competition entry together with its cluster- and area-stage results."""

    model_config = ConfigDict(populate_by_name=True)

    team_id: str = Field(..., alias="teamId")
    activity_id: str = Field("", alias="activityId")
    team_name: str = Field("", alias="teamName")
    school_id: str = Field("", alias="schoolId")

    # Cluster stage
    score: float = 0
    rank: str = ""
    medal_override: str = Field("", alias="medalOverride")
    flag: str = ""
    stage_status: str = Field("", alias="stageStatus")

    # Area stage
    stage_info: AreaStageInfo = Field(default_factory=AreaStageInfo, alias="stageInfo")

    last_edited_at: Optional[str] = Field(None, alias="lastEditedAt")

    @field_validator("team_id", "activity_id", "team_name", "school_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> float:
        number = parse_score(value)
        return 0 if number is None else number

    @field_validator("rank", "medal_override", "flag", "stage_status", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)

    @field_validator("stage_info", mode="before")
    @classmethod
    def _parse_stage_info(cls, value: Any) -> AreaStageInfo:
        return AreaStageInfo.parse(value)

    @property
    def is_flagged(self) -> bool:
        return self.flag.strip().upper() == "TRUE"

    @property
    def area_eligible(self) -> bool:
        """Promoted teams and nominated representatives appear on area screens."""
        return self.stage_status == StageStatus.AREA.value or self.is_flagged

    def stored_score(self, scope: Scope) -> float:
        return self.stage_info.score if scope == Scope.AREA else self.score

    def scope_values(self, scope: Scope) -> ResultValues:
        """Authoritative values for one scope, shaped like an edit."""
        if scope == Scope.AREA:
            info = self.stage_info
            return ResultValues(
                score=score_text(info.score), rank=info.rank, medal=info.medal
            )
        return ResultValues(
            score=score_text(self.score),
            rank=self.rank,
            medal=self.medal_override,
            flag=self.flag,
        )


class School(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    school_id: str = Field(..., alias="SchoolID")
    school_name: str = Field("", alias="SchoolName")
    cluster_id: str = Field("", alias="SchoolCluster")

    @field_validator("school_id", "school_name", "cluster_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class Cluster(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cluster_id: str = Field(..., alias="ClusterID")
    cluster_name: str = Field("", alias="ClusterName")


class Activity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    category: str = ""
    name: str = ""

    @field_validator("id", "category", "name", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value)


class Snapshot(BaseModel):
    """Everything the engine reads, loaded in full before it operates."""

    model_config = ConfigDict(extra="ignore")

    activities: List[Activity] = []
    teams: List[Team] = []
    schools: List[School] = []
    clusters: List[Cluster] = []

    _teams_by_id: Dict[str, Team] = PrivateAttr(default_factory=dict)
    _schools_by_key: Dict[str, School] = PrivateAttr(default_factory=dict)
    _activities_by_id: Dict[str, Activity] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._teams_by_id = {t.team_id: t for t in self.teams}
        self._activities_by_id = {a.id: a for a in self.activities}
        # Teams reference schools by id, and by name in older sheets
        for school in self.schools:
            self._schools_by_key.setdefault(school.school_name, school)
        for school in self.schools:
            self._schools_by_key[school.school_id] = school

    def team(self, team_id: str) -> Optional[Team]:
        return self._teams_by_id.get(team_id)

    def activity(self, activity_id: str) -> Optional[Activity]:
        return self._activities_by_id.get(activity_id)

    def school_of(self, team: Team) -> Optional[School]:
        return self._schools_by_key.get(team.school_id)

    def cluster_of(self, team: Team) -> Optional[str]:
        school = self.school_of(team)
        if not school or not school.cluster_id:
            return None
        return school.cluster_id

    def school_name(self, team: Team) -> str:
        school = self.school_of(team)
        return school.school_name if school and school.school_name else team.school_id

    def activity_name(self, team: Team) -> str:
        activity = self.activity(team.activity_id)
        return activity.name if activity and activity.name else team.activity_id
