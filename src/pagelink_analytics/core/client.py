"""
HTTP client for the hosted event store.

Talks to the database's REST interface (PostgREST dialect) and its auth
endpoint. Row-level security applies: queries are made with the visitor's
session token, so a session only ever sees its own workspace and documents.
"""
import logging
from datetime import datetime
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class EventStoreError(Exception):
    """The event store could not be reached or rejected a query."""
    pass


class NotAuthenticatedError(EventStoreError):
    """The session token is missing, expired or invalid."""
    pass


def _quote(value: str) -> str:
    """Quote a value for use inside a PostgREST ``or=(...)`` filter."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class EventStoreClient:
    """Client for querying analytics events and their owners."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout

    def for_session(self, access_token: str) -> "EventStoreClient":
        """A client that queries on behalf of one signed-in user."""
        return EventStoreClient(
            base_url=self.base_url,
            api_key=self.api_key,
            access_token=access_token,
            timeout=self.timeout,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    params=params,
                    json=json,
                    headers={**self._headers, **(headers or {})},
                )
        except httpx.HTTPError as e:
            raise EventStoreError(f"Event store request failed: {e}") from e

        if response.status_code == 401:
            raise NotAuthenticatedError("Session is not valid")
        if response.is_error:
            raise EventStoreError(
                f"Event store returned {response.status_code} for {method} {path}: {response.text[:200]}"
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise EventStoreError(f"Invalid JSON from event store for {what}") from e

    async def _query(self, table: str, params: list[tuple[str, str]]) -> list[dict]:
        """Select rows from a table."""
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        data = self._decode(response, table)
        if not isinstance(data, list):
            raise EventStoreError(f"Unexpected response for {table}: {type(data).__name__}")
        return data

    # =========================================================================
    # AUTH
    # =========================================================================

    async def get_user(self) -> dict[str, Any]:
        """The signed-in user for this session.

        Raises:
            NotAuthenticatedError: If there is no valid session
        """
        if not self.access_token:
            raise NotAuthenticatedError("No session token")
        response = await self._request("GET", "/auth/v1/user")
        user = self._decode(response, "user")
        if not isinstance(user, dict) or not user.get("id"):
            raise NotAuthenticatedError("Session has no user")
        return user

    async def get_workspace_id(self, user_id: str) -> str | None:
        rows = await self._query("workspaces", [
            ("select", "id"),
            ("owner_id", f"eq.{user_id}"),
            ("limit", "1"),
        ])
        return str(rows[0]["id"]) if rows else None

    # =========================================================================
    # WORKSPACE
    # =========================================================================

    async def get_workspace_events(
        self,
        workspace_id: str,
        start: datetime,
        end: datetime,
        with_names: bool = False,
    ) -> list[dict]:
        """Analytics events of a workspace between ``start`` and ``end`` inclusive.

        With ``with_names`` the asset filename, link slug and collection name
        are joined in (used by the export).
        """
        select = "*"
        if with_names:
            select = "*,asset:assets(filename),short_link:short_links(slug),collection:collections(name)"
        return await self._query("analytics_events", [
            ("select", select),
            ("workspace_id", f"eq.{workspace_id}"),
            ("created_at", f"gte.{start.isoformat()}"),
            ("created_at", f"lte.{end.isoformat()}"),
            ("order", "created_at.desc" if with_names else "created_at.asc"),
        ])

    async def get_top_assets(self, workspace_id: str, limit: int = 10) -> list[dict]:
        return await self._query("assets", [
            ("select", "id,filename,view_count,download_count"),
            ("workspace_id", f"eq.{workspace_id}"),
            ("order", "view_count.desc"),
            ("limit", str(limit)),
        ])

    async def get_top_links(self, workspace_id: str, limit: int = 10) -> list[dict]:
        return await self._query("short_links", [
            ("select", "id,slug,view_count,asset:assets(filename),collection:collections(name)"),
            ("workspace_id", f"eq.{workspace_id}"),
            ("order", "view_count.desc"),
            ("limit", str(limit)),
        ])

    async def get_top_collections(self, workspace_id: str, limit: int = 10) -> list[dict]:
        return await self._query("collections", [
            ("select", "id,name,slug,view_count"),
            ("workspace_id", f"eq.{workspace_id}"),
            ("order", "view_count.desc"),
            ("limit", str(limit)),
        ])

    # =========================================================================
    # ASSETS
    # =========================================================================

    async def get_asset(self, asset_id: str, workspace_id: str) -> dict | None:
        """An asset of the workspace, or None if it does not exist there."""
        rows = await self._query("assets", [
            ("select", "*"),
            ("id", f"eq.{asset_id}"),
            ("workspace_id", f"eq.{workspace_id}"),
            ("limit", "1"),
        ])
        return rows[0] if rows else None

    async def get_asset_events(
        self,
        asset_id: str,
        start: datetime,
        end: datetime,
    ) -> list[dict]:
        """Events of one asset, newest first."""
        return await self._query("analytics_events", [
            ("select", "*"),
            ("asset_id", f"eq.{asset_id}"),
            ("created_at", f"gte.{start.isoformat()}"),
            ("created_at", f"lte.{end.isoformat()}"),
            ("order", "created_at.desc"),
        ])

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    async def get_document(self, id_or_slug: str) -> dict | None:
        """Look a document up by id or slug."""
        quoted = _quote(id_or_slug)
        rows = await self._query("pagelink_documents", [
            ("select", "id,slug,title,view_count,user_id,ab_test_config"),
            ("or", f"(id.eq.{quoted},slug.eq.{quoted})"),
            ("limit", "1"),
        ])
        return rows[0] if rows else None

    async def get_document_events(
        self,
        document_id: str,
        start: datetime,
        end: datetime,
    ) -> list[dict]:
        return await self._query("pagelink_analytics", [
            ("select", "*"),
            ("document_id", f"eq.{document_id}"),
            ("created_at", f"gte.{start.isoformat()}"),
            ("created_at", f"lte.{end.isoformat()}"),
            ("order", "created_at.asc"),
        ])

    async def get_ab_test_events(self, document_id: str) -> list[dict]:
        return await self._query("pagelink_ab_test_events", [
            ("select", "variant_id,event_type,created_at"),
            ("document_id", f"eq.{document_id}"),
            ("order", "created_at.desc"),
        ])

    async def update_document(self, document_id: str, fields: dict[str, Any]) -> None:
        await self._request(
            "PATCH",
            "/rest/v1/pagelink_documents",
            params=[("id", f"eq.{document_id}")],
            json=fields,
            headers={"Prefer": "return=minimal"},
        )
        logger.info(f"Updated document {document_id}: {', '.join(sorted(fields))}")
