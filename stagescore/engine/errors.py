class StageScoreError(Exception):
    """Base exception for the scoring engine."""

    pass


class ScoreValidationError(StageScoreError, ValueError):
    """Raised before any write when an operator enters an invalid score."""

    def __init__(self, value: object, message: str = "Score must be between 0 and 100, or -1 for absent."):
        self.value = value
        super().__init__(f"{message} Got: {value!r}")


class UnknownTeamError(StageScoreError, KeyError):
    """Raised when an operation names a team that is not in the snapshot."""

    pass


class RecordStoreError(StageScoreError):
    """Transport-level failure inside a record store."""

    pass


class ConfigurationError(StageScoreError):
    """Raised when the selected record store is missing required settings."""

    pass
