# stagescore/storage/supabase_client.py
from typing import Any, Dict, List, Optional

from loguru import logger
from postgrest import APIResponse
from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client

from stagescore.config.settings import settings
from stagescore.engine.errors import ConfigurationError, RecordStoreError
from stagescore.models.team import AreaStageInfo, Snapshot

from .base import RecordStore

TEAMS_TABLE = "teams"
SNAPSHOT_TABLES = ("activities", "teams", "schools", "clusters")


async def initialize_supabase(
    url: Optional[str] = None, key: Optional[str] = None
) -> AsyncClient:
    """Creates the async Supabase client from explicit values or settings."""
    url = url or settings.supabase_url
    key = key or settings.supabase_service_key or settings.supabase_key
    if not url or not key:
        logger.critical("Supabase URL or Key not configured in settings.")
        raise ConfigurationError("Supabase configuration missing.")

    logger.debug(f"Attempting to initialize Async Supabase client with URL: {url}")
    key_snippet = f"{key[:5]}...{key[-5:]}"
    logger.debug(f"Using Supabase Key (snippet): {key_snippet}")

    client: AsyncClient = await create_async_client(url, key)
    logger.success("Async Supabase client initialized successfully.")
    return client


class SupabaseRecordStore(RecordStore):
    """Record store backed by Supabase tables.

    Cluster results live in plain columns of ``teams``. The area result is
    the JSON text column ``stage_info``, which may carry other area details,
    so area writes merge into it instead of replacing it.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(
        cls, url: Optional[str] = None, key: Optional[str] = None
    ) -> "SupabaseRecordStore":
        return cls(await initialize_supabase(url, key))

    async def _select(self, table_name: str, columns: str = "*") -> List[Dict[str, Any]]:
        try:
            response: APIResponse = await self.client.table(table_name).select(columns).execute()
        except APIError as e:
            logger.error(f"Supabase API error reading {table_name}: {e.message}")
            raise RecordStoreError(f"Could not read {table_name}") from e
        return response.data or []

    async def _update_team(self, team_id: str, data: Dict[str, Any]) -> bool:
        try:
            response: APIResponse = (
                await self.client.table(TEAMS_TABLE)
                .update(data)
                .eq("team_id", team_id)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error during async update of team {team_id}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            return False
        except Exception as e:
            logger.exception(f"An unexpected error occurred updating team {team_id}: {e}")
            return False

        if not response.data:
            logger.error(f"Update matched no team row for {team_id}.")
            return False
        return True

    async def fetch_snapshot(self) -> Snapshot:
        payload = {table: await self._select(table) for table in SNAPSHOT_TABLES}
        snapshot = Snapshot.model_validate(payload)
        logger.info(
            f"Fetched snapshot: {len(snapshot.teams)} teams, {len(snapshot.schools)} schools, "
            f"{len(snapshot.activities)} activities."
        )
        return snapshot

    async def update_cluster_result(
        self,
        team_id: str,
        score: float,
        rank: str,
        medal: str,
        flag: str,
        stage_status: str,
    ) -> bool:
        return await self._update_team(
            team_id,
            {
                "score": score,
                "rank": rank,
                "medal_override": medal,
                "flag": flag,
                "stage_status": stage_status,
            },
        )

    async def update_area_result(
        self, team_id: str, score: float, rank: str, medal: str
    ) -> bool:
        try:
            response: APIResponse = (
                await self.client.table(TEAMS_TABLE)
                .select("stage_info")
                .eq("team_id", team_id)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error reading stage_info of team {team_id}: {e.message}")
            return False

        if not response.data:
            logger.error(f"No team row for {team_id}; area result not written.")
            return False

        info = AreaStageInfo.parse(response.data[0].get("stage_info"))
        merged = info.model_copy(update={"score": score, "rank": rank, "medal": medal})
        return await self._update_team(team_id, {"stage_info": merged.serialize()})
