import httpx
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from timetracker.schemas.store import Filter, OrderBy, StoreError, StoreResult
from timetracker.store.base import RemoteStoreClient, TableName, table_name

log = logging.getLogger(__name__)


def _filter_param(f: Filter) -> Tuple[str, str]:
    """
    Render a Filter as a PostgREST query parameter, e.g. ('user_id', 'eq.42').
    NULL needs the `is` operator rather than `eq`.
    """
    if f.value is None:
        return f.column, "is.null" if f.op == "eq" else "not.is.null"
    if isinstance(f.value, bool):
        value = "true" if f.value else "false"
    else:
        value = str(f.value)
    return f.column, f"{f.op}.{value}"


def _order_param(order_by: Sequence[OrderBy]) -> str:
    return ",".join(f"{o.column}.{'asc' if o.ascending else 'desc'}" for o in order_by)


class PostgrestStoreClient(RemoteStoreClient):
    """
    RemoteStoreClient for a hosted Postgres exposed through PostgREST
    (the Supabase `/rest/v1` API).

    Every failure is converted into a StoreError; nothing is raised to callers.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.strip().rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
        )
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        log.info(f"PostgREST store client initialized with base URL: {self.base_url}")

    async def _request(
        self,
        method: str,
        table: TableName,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
        return_rows: bool = True,
    ) -> StoreResult:
        """
        Helper to make authenticated requests against one table.
        Maps HTTP and transport errors onto StoreError.
        """
        path = f"/{table_name(table)}"
        headers = dict(self.headers)
        if return_rows and method in ("POST", "PATCH"):
            headers["Prefer"] = "return=representation"

        try:
            log.trace(f"PostgREST {method} {path} params={params}")
            response = await self.client.request(method, path, params=params, json=json, headers=headers)
            log.trace(f"PostgREST response: {response.status_code}")
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_details = None
            try:
                error_details = e.response.json()
            except ValueError:
                pass

            if isinstance(error_details, dict):
                message = error_details.get("message") or f"HTTP {status}"
                code = error_details.get("code") or str(status)
            else:
                message = f"Store HTTP {status} error for {e.request.url}: {e.response.text}"
                code = str(status)

            log.error(f"Store {method} {path} failed ({code}): {message}")
            return StoreResult(error=StoreError(message=message, code=code, details=error_details))
        except httpx.HTTPError as e:
            log.error(f"Store {method} {path} request error: {e}")
            return StoreResult(error=StoreError(message=f"Store request failed: {e}", code="network_error"))

        if not return_rows or not response.content:
            return StoreResult()
        body = response.json()
        if isinstance(body, dict):
            body = [body]
        return StoreResult(rows=body or [])

    async def fetch_rows(
        self,
        table: TableName,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[Sequence[OrderBy]] = None,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> StoreResult:
        params = [("select", columns)]
        params.extend(_filter_param(f) for f in filters or ())
        if order_by:
            params.append(("order", _order_param(order_by)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return await self._request("GET", table, params=params)

    async def insert_rows(self, table: TableName, rows: List[Dict[str, Any]]) -> StoreResult:
        return await self._request("POST", table, json=rows)

    async def update_rows(self, table: TableName, patch: Dict[str, Any], filters: Sequence[Filter]) -> StoreResult:
        params = [_filter_param(f) for f in filters]
        return await self._request("PATCH", table, params=params, json=patch)

    async def delete_rows(self, table: TableName, filters: Sequence[Filter]) -> StoreResult:
        params = [_filter_param(f) for f in filters]
        return await self._request("DELETE", table, params=params, return_rows=False)

    async def close(self) -> None:
        await self.client.aclose()
