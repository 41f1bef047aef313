"""HTTP client for the Haku backend REST API."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .content import ContentType
from .errors import (
    ERRORS_BY_CODE,
    AuthorizationError,
    ConflictError,
    HakuError,
    IntegrityError,
    NetworkError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS: Dict[int, type[HakuError]] = {
    400: ValidationError,
    401: AuthorizationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def error_from_response(response: httpx.Response) -> HakuError:
    """Translate an error response into the matching domain error."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("message") or body.get("detail") or response.reason_phrase
    if not isinstance(message, str):
        message = str(message)
    detail = body.get("detail") if isinstance(body.get("detail"), dict) else {}

    if response.status_code >= 500:
        return NetworkError(message, {"status_code": response.status_code})

    error_cls = _STATUS_ERRORS.get(response.status_code, ValidationError)
    if response.status_code == 409:
        known = ERRORS_BY_CODE.get(body.get("error", ""))
        if known is not None and issubclass(known, (ConflictError, IntegrityError)):
            error_cls = known
    return error_cls(message, detail)


class HakuApiClient:
    """Async client for every REST endpoint of the backend.

    Transport failures and timeouts surface as :class:`NetworkError`, error
    responses as the domain error matching their status code.

    ``on_network_status`` is told after every request whether the server was
    reachable: ``False`` for transport failures and 5xx answers, ``True``
    for anything else.
    """

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_network_status: Optional[Callable[[bool], None]] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.transport = transport
        self.on_network_status = on_network_status

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _report(self, online: bool) -> None:
        if self.on_network_status is not None:
            self.on_network_status(online)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = f"{self.api_url}/api{path}"
        merged_headers = {**self._headers(), **(headers or {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=merged_headers
                )
        except httpx.TimeoutException as exc:
            self._report(False)
            raise NetworkError(f"Request to {url} timed out", {"url": url}) from exc
        except httpx.TransportError as exc:
            self._report(False)
            raise NetworkError(f"Could not reach {self.api_url}: {exc}", {"url": url}) from exc

        self._report(response.status_code < 500)
        if response.is_error:
            error = error_from_response(response)
            logger.debug("%s %s failed with %s: %s", method, url, response.status_code, error.message)
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Session ---------------------------------------------------------------

    async def login(self, email: str) -> Dict[str, Any]:
        """Exchange an allow-listed email for a bearer token and keep it."""
        data = await self.request("POST", "/auth/token", json={"email": email})
        self.token = data["token"]
        return data

    # Files -----------------------------------------------------------------

    async def get_files(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/files")

    async def get_history(self) -> Dict[str, List[Dict[str, Any]]]:
        return await self.request("GET", "/history")

    async def get_tree(self, content_type: ContentType) -> List[Dict[str, Any]]:
        return await self.request("GET", f"/{ContentType(content_type).route}")

    async def search(self, query: str, page: int = 0) -> Dict[str, Any]:
        return await self.request("GET", "/search", params={"query": query, "page": page})

    # Inbox -----------------------------------------------------------------

    async def get_inbox(self) -> List[Dict[str, Any]]:
        return await self.request("GET", "/inbox")

    async def add_inbox_entry(self, text: str) -> Dict[str, Any]:
        return await self.request("POST", "/inbox", json={"text": text})

    async def delete_inbox_entry(self, entry_id: str) -> None:
        await self.request("DELETE", f"/inbox/{entry_id}")

    # Folders ---------------------------------------------------------------

    async def add_folder(
        self, name: str, content_type: ContentType, parent_id: Optional[str] = None
    ) -> Dict[str, Any]:
        payload = {"name": name, "type": ContentType(content_type).value, "parent_id": parent_id}
        return await self.request("POST", "/folders", json=payload)

    async def update_folder(self, folder_id: str, **changes: Any) -> Dict[str, Any]:
        return await self.request("PATCH", f"/folders/{folder_id}", json=changes)

    async def delete_folder(self, folder_id: str) -> None:
        await self.request("DELETE", f"/folders/{folder_id}")

    # Notes -----------------------------------------------------------------

    async def get_note(self, note_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/notes/{note_id}")

    async def add_note(self, name: str, folder_id: Optional[str] = None, **body: Any) -> Dict[str, Any]:
        return await self.request("POST", "/notes", json={"name": name, "folder_id": folder_id, **body})

    async def update_note(self, note_id: str, **changes: Any) -> Dict[str, Any]:
        return await self.request("PATCH", f"/notes/{note_id}", json=changes)

    async def delete_note(self, note_id: str) -> None:
        await self.request("DELETE", f"/notes/{note_id}")

    # Todos -----------------------------------------------------------------

    async def add_todo(self, name: str, folder_id: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("POST", "/todos", json={"name": name, "folder_id": folder_id})

    async def update_todo(self, todo_id: str, **changes: Any) -> Dict[str, Any]:
        return await self.request("PATCH", f"/todos/{todo_id}", json=changes)

    async def delete_todo(self, todo_id: str) -> None:
        await self.request("DELETE", f"/todos/{todo_id}")

    async def get_todo_nodes(self, todo_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/todos/{todo_id}/nodes")

    async def update_todo_nodes(self, todo_id: str, batch: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("PATCH", f"/todos/{todo_id}/nodes", json=batch)

    # Admin -----------------------------------------------------------------

    async def list_allowed_emails(self, api_key: str) -> List[Dict[str, Any]]:
        return await self.request("GET", "/admin/email", headers={"Api-Key": api_key})

    async def add_allowed_email(self, api_key: str, email: str) -> Dict[str, Any]:
        return await self.request("POST", "/admin/email", json={"email": email}, headers={"Api-Key": api_key})

    async def delete_allowed_email(self, api_key: str, email_id: int) -> None:
        await self.request("DELETE", f"/admin/email/{email_id}", headers={"Api-Key": api_key})


__all__ = ["HakuApiClient", "error_from_response"]
