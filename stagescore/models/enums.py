from enum import Enum


class Scope(str, Enum):
    CLUSTER = "cluster"
    AREA = "area"


class Medal(str, Enum):
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"
    PARTICIPANT = "Participant"


class StageStatus(str, Enum):
    NONE = ""
    AREA = "Area"


class StoreBackend(str, Enum):
    WEBAPP = "webapp"
    SUPABASE = "supabase"
