"""
Supabase REST (PostgREST) client.

Thin CRUD helpers over ``{supabase_url}/rest/v1/{table}``. Filters use the
PostgREST operator syntax, e.g. ``{"user_id": eq(uid)}``.
"""

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import httpx

from ..core.exceptions import RemoteStoreError

logger = logging.getLogger(__name__)


def eq(value: Any) -> str:
    return f"eq.{value}"


def in_(values: Iterable[Any]) -> str:
    return f"in.({','.join(str(v) for v in values)})"


class SupabaseRestClient:
    """
    Table access for the hosted database.

    Requests carry the signed-in identity's access token when one is
    available so row-level security applies server side.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        access_token: Optional[Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            url: Supabase project URL
            anon_key: Public anon key, used when nobody is signed in
            access_token: Returns the current access token, plain or awaitable
            timeout: Request timeout in seconds
        """
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.anon_key = anon_key
        self._access_token = access_token
        self.timeout = timeout

    async def _current_token(self) -> Optional[str]:
        if self._access_token is None:
            return None
        token = self._access_token()
        if inspect.isawaitable(token):
            token = await token
        return token

    def _get_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> List[Dict[str, Any]]:
        start_time = time.time()
        url = f"{self.base_url}/{table}"
        logger.debug(f"REST call starting: {method} {table} params={params}")
        headers = self._get_headers(await self._current_token())

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(
                    method, url, params=params, json=json, headers=headers
                )
        except httpx.HTTPError as e:
            logger.error(f"REST call failed: {method} {table} - {e}")
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("message") or resp.text
            except (ValueError, AttributeError):
                detail = resp.text
            logger.warning(
                f"REST call rejected: {method} {table} - {resp.status_code} {detail}",
                extra={"extra_fields": {
                    "table": table,
                    "status_code": resp.status_code,
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            raise RemoteStoreError(f"{method} {table}: {detail}", status_code=resp.status_code)

        logger.debug(
            f"REST call completed: {method} {table} - {resp.status_code} ({duration_ms:.2f}ms)"
        )
        if resp.status_code == 204 or not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError as e:
            logger.warning(f"REST call returned a non-JSON body: {method} {table}")
            raise RemoteStoreError(f"{method} {table}: unreadable response", status_code=resp.status_code) from e
        return data if isinstance(data, list) else [data]

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, str]] = None,
        order: Optional[str] = None,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        params = {"select": columns}
        params.update(filters or {})
        if order:
            params["order"] = order
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        return await self._request("POST", table, json=rows)

    async def update(self, table: str, values: Dict[str, Any], filters: Dict[str, str]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("update requires at least one filter")
        return await self._request("PATCH", table, params=filters, json=values)

    async def delete(self, table: str, filters: Dict[str, str]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        return await self._request("DELETE", table, params=filters)
