"""REST client for the hosted notes backend (PostgREST + storage API)."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from goldfishsync.core.config import RemoteConfig
from goldfishsync.core.errors import NotAuthenticated
from goldfishsync.core.models import RemoteNote

logger = logging.getLogger(__name__)

# Above this many ids the filter no longer fits in the request line
MAX_ID_FILTER = 100


class RemoteNotesClient:
    """
    API client for the notes table of the hosted backend.

    One client is created per session and passed to the sync engine and the
    attachment fetcher; close it with :meth:`aclose` or use it as an async
    context manager.
    """

    def __init__(self, config: RemoteConfig, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the client.

        Args:
            config: Remote connection settings, including the session token
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.url = config.url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport)

    async def __aenter__(self) -> "RemoteNotesClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def owner_id(self) -> str:
        self._ensure_authenticated()
        return self.config.owner_id or ""

    def _ensure_authenticated(self) -> None:
        """Ensure a session is available before making API calls."""
        if not self.config.owner_id or not self.config.access_token:
            raise NotAuthenticated("Goldfish Notes sync failed - please log in")

    def _get_headers(self, prefer: str | None = None) -> dict[str, str]:
        """Get HTTP headers with authentication."""
        self._ensure_authenticated()
        headers = {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @property
    def _table_url(self) -> str:
        return f"{self.url}/rest/v1/{self.config.notes_table}"

    async def fetch_notes(self) -> list[RemoteNote]:
        """
        Fetch every live (not deleted) note of the signed-in owner.

        Raises:
            NotAuthenticated: If no session is configured
            httpx.HTTPError: If the request fails
        """
        params = {
            "select": "*",
            "user_id": f"eq.{self.owner_id}",
            "deleted_at": "is.null",
        }
        response = await self._client.get(self._table_url, params=params, headers=self._get_headers())
        response.raise_for_status()
        records = response.json() or []
        logger.info(f"Fetched {len(records)} notes from Goldfish Notes")
        return [RemoteNote.model_validate(record) for record in records]

    async def fetch_notes_by_ids(self, ids: list[str]) -> list[dict[str, Any]]:
        """Fetch raw live records for ``ids`` (all live records for large id sets)."""
        params = {
            "select": "*",
            "user_id": f"eq.{self.owner_id}",
            "deleted_at": "is.null",
        }
        if ids and len(ids) < MAX_ID_FILTER:
            params["uuid"] = f"in.({','.join(ids)})"
        response = await self._client.get(self._table_url, params=params, headers=self._get_headers())
        response.raise_for_status()
        wanted = set(ids)
        return [record for record in response.json() or [] if record.get("uuid") in wanted]

    async def upsert_notes(self, records: list[dict[str, Any]]) -> None:
        """Insert or update raw records, keyed on ``uuid``."""
        if not records:
            return
        response = await self._client.post(
            self._table_url,
            params={"on_conflict": "uuid"},
            json=records,
            headers=self._get_headers(prefer="resolution=merge-duplicates"),
        )
        response.raise_for_status()
        logger.info(f"Upserted {len(records)} notes to Goldfish Notes")

    async def mark_deleted(self, ids: list[str], when: datetime | None = None) -> None:
        """Flag notes as deleted; the backend keeps the rows."""
        if not ids:
            return
        stamp = (when or datetime.now(timezone.utc)).isoformat()
        response = await self._client.patch(
            self._table_url,
            params={"uuid": f"in.({','.join(ids)})", "user_id": f"eq.{self.owner_id}"},
            json={"deleted_at": stamp, "modified_at": stamp},
            headers=self._get_headers(),
        )
        response.raise_for_status()
        logger.info(f"Marked {len(ids)} notes as deleted in Goldfish Notes")

    async def create_empty_note(self) -> RemoteNote:
        now = datetime.now(timezone.utc).isoformat()
        record = {
            "uuid": str(uuid.uuid4()),
            "title": "",
            "content": "",
            "original_transcript": "",
            "created_at": now,
            "modified_at": now,
            "deleted_at": None,
            "user_id": self.owner_id,
        }
        response = await self._client.post(self._table_url, json=record, headers=self._get_headers())
        response.raise_for_status()
        logger.info(f"Created empty note {record['uuid']}")
        return RemoteNote.model_validate(record)

    async def fetch_attachment(self, ref: str) -> bytes:
        """
        Download an attachment stored under the owner's storage prefix.

        Raises:
            httpx.HTTPError: If the download fails
        """
        object_path = f"{self.owner_id}/{ref.lstrip('/')}"
        url = f"{self.url}/storage/v1/object/authenticated/{self.config.attachments_bucket}/{object_path}"
        response = await self._client.get(url, headers=self._get_headers())
        response.raise_for_status()
        return response.content
