from __future__ import annotations

from typing import Any

import httpx


def normalize_base_url(base_url: str) -> str:
  b = (base_url or "").strip().rstrip("/")
  if not b:
    raise ValueError("baseUrl is required")
  if not (b.startswith("http://") or b.startswith("https://")):
    b = "https://" + b
  return b


class ApiError(RuntimeError):
  def __init__(self, *, status_code: int, message: str) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message


def _extract_error(payload: Any) -> str:
  if isinstance(payload, dict):
    detail = payload.get("detail")
    if isinstance(detail, str) and detail.strip():
      return detail.strip()
    if isinstance(detail, list) and detail:
      return "; ".join(str(d.get("msg", d)) if isinstance(d, dict) else str(d) for d in detail)
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:500]
  return "Request failed"


async def _request_json(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
  r = await client.request(method, path, **kwargs)
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = (r.text or "")[:800]
    raise ApiError(status_code=r.status_code, message=_extract_error(payload))
  if r.status_code == 204:
    return None
  return r.json()


def _without_none(body: dict[str, Any]) -> dict[str, Any]:
  return {k: v for k, v in body.items() if v is not None}


class TaskhiveApi:
  """Thin async wrapper over the REST surface used by :class:`BoardStore`.

  ``socket_id`` is sent as ``X-Socket-Id`` so the server leaves this client's
  own realtime connection out of the resulting broadcast.
  """

  def __init__(
    self,
    base_url: str = "http://localhost:8000",
    token: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30,
  ) -> None:
    self.token = token
    self.socket_id: str | None = None
    self._owns_client = client is None
    self._client = client or httpx.AsyncClient(
      base_url=normalize_base_url(base_url), headers={"Accept": "application/json"}, timeout=timeout
    )

  def _headers(self) -> dict[str, str]:
    h: dict[str, str] = {}
    if self.token:
      h["Authorization"] = f"Bearer {self.token}"
    if self.socket_id:
      h["X-Socket-Id"] = self.socket_id
    return h

  async def _call(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
    return await _request_json(self._client, method, path, json=json, headers=self._headers())

  async def aclose(self) -> None:
    if self._owns_client:
      await self._client.aclose()

  async def get_board(self, board_id: str) -> dict[str, Any]:
    return await self._call("GET", f"/boards/{board_id}")

  async def create_column(self, board_id: str, title: str, *, board_version: int | None = None) -> dict[str, Any]:
    return await self._call("POST", f"/boards/{board_id}/columns", _without_none({"title": title, "boardVersion": board_version}))

  async def reorder_columns(self, board_id: str, column_order: list[str], *, board_version: int | None = None) -> dict[str, Any]:
    body = _without_none({"columnOrder": list(column_order), "boardVersion": board_version})
    return await self._call("PUT", f"/boards/{board_id}/columns/reorder", body)

  async def create_task(self, board_id: str, column_id: str, title: str, **fields: Any) -> dict[str, Any]:
    return await self._call("POST", "/tasks", _without_none({"boardId": board_id, "columnId": column_id, "title": title, **fields}))

  async def move_task(
    self,
    task_id: str,
    *,
    column_id: str,
    order: int,
    source_column_id: str | None = None,
    source_index: int | None = None,
    board_version: int | None = None,
  ) -> dict[str, Any]:
    body = _without_none(
      {
        "columnId": column_id,
        "order": order,
        "sourceColumnId": source_column_id,
        "sourceIndex": source_index,
        "boardVersion": board_version,
      }
    )
    return await self._call("PUT", f"/tasks/{task_id}/move", body)

  async def delete_task(self, task_id: str) -> dict[str, Any]:
    return await self._call("DELETE", f"/tasks/{task_id}")

  async def list_comments(self, task_id: str) -> list[dict[str, Any]]:
    return await self._call("GET", f"/comments/task/{task_id}")
