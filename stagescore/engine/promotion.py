from stagescore.models.enums import StageStatus

PROMOTION_RANK = "1"
QUALIFIED_FLAG = "TRUE"


def promote(rank: str, flag: str) -> str:
    """Stage status written with a cluster-scope save.

    A cluster winner that is also its cluster's nominated representative
    moves on to the area stage. Area-scope saves never call this.
    """
    if (rank or "").strip() == PROMOTION_RANK and (flag or "").strip().upper() == QUALIFIED_FLAG:
        return StageStatus.AREA.value
    return StageStatus.NONE.value
