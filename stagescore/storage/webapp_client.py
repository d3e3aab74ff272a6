# stagescore/storage/webapp_client.py
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stagescore.config.settings import settings
from stagescore.engine.errors import RecordStoreError
from stagescore.models.team import Snapshot
from stagescore.utils.misc_utils import format_score

from .base import RecordStore

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class RetryableStatusError(RecordStoreError):
    """Raised for HTTP statuses that are worth another attempt."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Retryable HTTP status {status_code}")


class WebAppRecordStore(RecordStore):
    """Record store backed by the spreadsheet web app's action endpoints.

    Every call is a GET against the deployment URL with an ``action`` query
    parameter. Writes answer ``{"status": "success"}`` when applied.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: Optional[int] = None,
        backoff_multiplier: float = 1.0,
    ):
        self.base_url = str(base_url)
        self.max_attempts = max_attempts or settings.max_request_attempts
        self.backoff_multiplier = backoff_multiplier
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout),
            follow_redirects=True,  # Apps Script answers through a redirect
        )

    async def _request_once(self, params: Dict[str, Any]) -> httpx.Response:
        response = await self.client.get(self.base_url, params=params)
        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(
                f"Retryable status {response.status_code} for action {params.get('action')}"
            )
            raise RetryableStatusError(response.status_code)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error for action {params.get('action')}: {e.response.status_code}"
            )
            raise RecordStoreError(f"HTTP error: {e.response.status_code}") from e
        return response

    async def _make_request(self, params: Dict[str, Any]) -> httpx.Response:
        """Makes a request with exponential backoff on transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=10),
            retry=retry_if_exception_type((httpx.RequestError, RetryableStatusError)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._request_once(params)
            return response
        except httpx.RequestError as e:
            logger.error(
                f"Max retries exceeded for action {params.get('action')}: {e}"
            )
            raise RecordStoreError(
                f"Request failed after {self.max_attempts} attempts"
            ) from e

    async def _run_action(self, params: Dict[str, Any]) -> bool:
        try:
            response = await self._make_request(params)
        except RecordStoreError as e:
            logger.error(f"Action {params['action']} failed for {params.get('teamId')}: {e}")
            return False
        try:
            payload = response.json()
        except ValueError:
            logger.error(f"Action {params['action']} returned a non-JSON body.")
            return False
        if isinstance(payload, dict) and payload.get("status") == "success":
            return True
        logger.error(f"Action {params['action']} rejected for {params.get('teamId')}: {payload}")
        return False

    async def fetch_snapshot(self) -> Snapshot:
        response = await self._make_request({"action": "getData"})
        try:
            snapshot = Snapshot.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RecordStoreError("Snapshot payload could not be read") from e
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
        return await self._run_action(
            {
                "action": "updateTeamResult",
                "teamId": team_id,
                "score": format_score(score),
                "rank": rank,
                "medal": medal,
                "flag": flag,
                "stageStatus": stage_status,
            }
        )

    async def update_area_result(
        self, team_id: str, score: float, rank: str, medal: str
    ) -> bool:
        return await self._run_action(
            {
                "action": "updateAreaResult",
                "teamId": team_id,
                "score": format_score(score),
                "rank": rank,
                "medal": medal,
            }
        )

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info("Closed HTTP client for web app record store")
