from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from stagescore.utils.misc_utils import format_score

from .enums import Scope

EditField = Literal["score", "rank", "medal", "flag"]
EDIT_FIELDS = ("score", "rank", "medal", "flag")


class ResultValues(BaseModel):
    """Effective result of one team for one scope, as the operator sees it."""

    model_config = ConfigDict(frozen=True)

    score: str = ""
    rank: str = ""
    medal: str = ""
    flag: str = ""


class Edit(BaseModel):
    """A pending, not yet persisted change to one team's result."""

    score: str = ""
    rank: str = ""
    medal: str = ""
    flag: str = ""
    dirty: bool = False

    def values(self) -> ResultValues:
        return ResultValues(
            score=self.score, rank=self.rank, medal=self.medal, flag=self.flag
        )


class SaveOutcome(BaseModel):
    """Result of persisting a single team under one scope."""

    team_id: str
    scope: Scope
    success: bool
    score: float = 0
    rank: str = ""
    medal: str = ""
    flag: str = ""
    stage_status: str = ""
    error: Optional[str] = None


class BatchResult(BaseModel):
    """Aggregate outcome of a batch save or a reset."""

    attempted: int = 0
    succeeded: int = 0
    failed_ids: List[str] = []
    elapsed: float = 0.0

    @computed_field  # type: ignore[misc]
    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @computed_field  # type: ignore[misc]
    @property
    def status(self) -> Literal["success", "partial", "failed"]:
        if self.succeeded == self.attempted:
            return "success"
        if self.succeeded == 0:
            return "failed"
        return "partial"

    def summary(self) -> str:
        return f"{self.succeeded} of {self.attempted} succeeded"


class ProgressEvent(BaseModel):
    """Progress of a chunked batch after one chunk has fully resolved."""

    model_config = ConfigDict(frozen=True)

    current: int
    total: int
    succeeded: int
    failed: int
    elapsed: float

    @property
    def done(self) -> bool:
        return self.current >= self.total

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 100
        return round(self.current * 100 / self.total)


class ActivityLogEntry(BaseModel):
    """Human-readable record of one successful save."""

    team_id: str
    team_name: str
    school_name: str
    activity_name: str
    score: float
    medal: str
    scope: Scope
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        medal = f" ({self.medal})" if self.medal else ""
        return (
            f"[{self.timestamp.strftime('%H:%M:%S')}] {self.scope.value}: "
            f"{self.team_name} - {self.school_name} | {self.activity_name} | "
            f"score {format_score(self.score)}{medal}"
        )
