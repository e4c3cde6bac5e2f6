"""Cliente de la API de directorio (usuarios, grupos, miembros, fotos).

Por qué un cliente fino sobre httpx:
- Los verbos solo necesitan unas pocas llamadas REST; un SDK completo no
  aporta nada y complica los tests.
- Traduce cualquier fallo a `RemoteError`/`RemoteTransportError`, que es lo
  único que entiende el clasificador del Core.
"""

from __future__ import annotations

from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.errors import RemoteError, RemoteTransportError

USERS_PAGE_SIZE = 500
MEMBERS_PAGE_SIZE = 200


def _segment(value: str) -> str:
    return quote(value, safe="@")


def _safe_retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def remote_error_from_response(response: httpx.Response) -> RemoteError:
    """Construye un `RemoteError` a partir de una respuesta >= 400.

    Formato esperado: `{"error": {"code", "message", "errors": [{"reason"}]}}`.
    """

    message = response.reason_phrase or f"HTTP {response.status_code}"
    reason: str | None = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = str(error.get("message") or message)
            details = error.get("errors")
            if isinstance(details, list) and details and isinstance(details[0], dict):
                reason = details[0].get("reason")
            if not reason and isinstance(error.get("status"), str):
                reason = error["status"]
        elif isinstance(error, str):
            message = str(payload.get("error_description") or error)
    return RemoteError(
        message,
        status=response.status_code,
        reason=reason,
        retry_after=_safe_retry_after_seconds(response),
    )


class DirectoryClient:
    """Llamadas REST usadas por los verbos y por el resolvedor de membresías."""

    def __init__(self, client: httpx.AsyncClient, *, customer: str = "my_customer") -> None:
        self._client = client
        self.customer = customer

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "DirectoryClient":
        return cls(build_async_client(settings, transport=transport), customer=settings.customer)

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            raise RemoteTransportError(str(exc) or type(exc).__name__) from exc
        if response.status_code >= 400:
            raise remote_error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteError(f"invalid JSON in response: {exc}", status=response.status_code) from exc

    async def _pages(self, path: str, params: dict[str, Any], items_key: str) -> AsyncIterator[list[dict[str, Any]]]:
        params = dict(params)
        while True:
            data = await self.request("GET", path, params=params) or {}
            yield list(data.get(items_key) or [])
            token = data.get("nextPageToken")
            if not token:
                return
            params["pageToken"] = token

    # ------------------------------------------------------------------
    # Miembros
    # ------------------------------------------------------------------

    async def delete_member(self, group_key: str, member_key: str) -> bool:
        await self.request("DELETE", f"/groups/{_segment(group_key)}/members/{_segment(member_key)}")
        return True

    async def get_member(self, group_key: str, member_key: str, *, fields: str = "") -> dict[str, Any]:
        params = {"fields": fields} if fields else None
        return await self.request("GET", f"/groups/{_segment(group_key)}/members/{_segment(member_key)}", params=params)

    async def has_member(self, group_key: str, member_key: str) -> bool:
        data = await self.request("GET", f"/groups/{_segment(group_key)}/hasMember/{_segment(member_key)}") or {}
        return bool(data.get("isMember"))

    async def insert_member(self, group_key: str, body: dict[str, Any], *, fields: str = "") -> dict[str, Any]:
        params = {"fields": fields} if fields else None
        return await self.request("POST", f"/groups/{_segment(group_key)}/members", params=params, json=body)

    async def patch_member(
        self,
        group_key: str,
        member_key: str,
        body: dict[str, Any],
        *,
        fields: str = "",
    ) -> dict[str, Any]:
        params = {"fields": fields} if fields else None
        return await self.request(
            "PATCH",
            f"/groups/{_segment(group_key)}/members/{_segment(member_key)}",
            params=params,
            json=body,
        )

    # ------------------------------------------------------------------
    # Usuarios
    # ------------------------------------------------------------------

    async def sign_out_user(self, user_key: str) -> bool:
        await self.request("POST", f"/users/{_segment(user_key)}/signOut")
        return True

    async def delete_user(self, user_key: str) -> bool:
        await self.request("DELETE", f"/users/{_segment(user_key)}")
        return True

    async def make_admin(self, user_key: str, status: bool) -> bool:
        await self.request("POST", f"/users/{_segment(user_key)}/makeAdmin", json={"status": status})
        return True

    async def undelete_user(self, user_key: str, org_unit_path: str) -> bool:
        await self.request("POST", f"/users/{_segment(user_key)}/undelete", json={"orgUnitPath": org_unit_path})
        return True

    async def delete_user_photo(self, user_key: str) -> bool:
        await self.request("DELETE", f"/users/{_segment(user_key)}/photos/thumbnail")
        return True

    # ------------------------------------------------------------------
    # Membresías (modo recursivo)
    # ------------------------------------------------------------------

    async def org_unit_user_pages(self, org_unit_path: str) -> AsyncIterator[list[str]]:
        params = {
            "customer": self.customer,
            "query": f"orgUnitPath='{org_unit_path}'",
            "maxResults": USERS_PAGE_SIZE,
            "fields": "users(primaryEmail),nextPageToken",
        }
        async for page in self._pages("/users", params, "users"):
            yield [u["primaryEmail"] for u in page if u.get("primaryEmail")]

    async def group_user_pages(self, group_email: str) -> AsyncIterator[list[str]]:
        params = {
            "includeDerivedMembership": "true",
            "maxResults": MEMBERS_PAGE_SIZE,
            "fields": "members(email,type),nextPageToken",
        }
        async for page in self._pages(f"/groups/{_segment(group_email)}/members", params, "members"):
            yield [m["email"] for m in page if m.get("type") == "USER" and m.get("email")]
