from __future__ import annotations

import asyncio
from typing import Any

import pytest

from core.config import AppSettings
from core.domain.errors import RemoteError
from core.domain.models import RetryPolicy
from core.services.hooks import EngineHooks


class FakeDirectory:
    """Directorio en memoria: registra llamadas y permite programar errores.

    `errors["delete_member:g1:m1"] = [RemoteError(...), ...]` hace que las
    primeras llamadas con esa clave fallen en orden.
    """

    def __init__(
        self,
        *,
        org_units: dict[str, list[list[str]]] | None = None,
        groups: dict[str, list[list[str]]] | None = None,
        errors: dict[str, list[BaseException]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.org_units = org_units or {}
        self.groups = groups or {}
        self.errors = errors or {}
        self.delay = delay
        self.calls: list[str] = []
        self.bodies: dict[str, dict[str, Any]] = {}
        self.pages_served = 0
        self.closed = False

    async def __aenter__(self) -> "FakeDirectory":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def _call(self, name: str, *keys: str, result: Any = True) -> Any:
        key = ":".join((name, *keys))
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        queue = self.errors.get(key)
        if queue:
            raise queue.pop(0)
        return result

    async def delete_member(self, group_key: str, member_key: str) -> bool:
        return await self._call("delete_member", group_key, member_key)

    async def get_member(self, group_key: str, member_key: str, *, fields: str = "") -> dict[str, Any]:
        return await self._call("get_member", group_key, member_key, result={"email": member_key, "role": "MEMBER"})

    async def has_member(self, group_key: str, member_key: str) -> bool:
        return await self._call("has_member", group_key, member_key)

    async def insert_member(self, group_key: str, body: dict[str, Any], *, fields: str = "") -> dict[str, Any]:
        self.bodies[f"insert_member:{group_key}:{body.get('email')}"] = body
        return await self._call("insert_member", group_key, str(body.get("email")), result=dict(body))

    async def patch_member(self, group_key: str, member_key: str, body: dict[str, Any], *, fields: str = "") -> dict[str, Any]:
        self.bodies[f"patch_member:{group_key}:{member_key}"] = body
        return await self._call("patch_member", group_key, member_key, result=dict(body, email=member_key))

    async def sign_out_user(self, user_key: str) -> bool:
        return await self._call("sign_out_user", user_key)

    async def delete_user(self, user_key: str) -> bool:
        return await self._call("delete_user", user_key)

    async def make_admin(self, user_key: str, status: bool) -> bool:
        return await self._call("make_admin", user_key, str(status).lower())

    async def undelete_user(self, user_key: str, org_unit_path: str) -> bool:
        return await self._call("undelete_user", user_key, org_unit_path)

    async def delete_user_photo(self, user_key: str) -> bool:
        return await self._call("delete_user_photo", user_key)

    async def org_unit_user_pages(self, org_unit_path: str):
        if org_unit_path not in self.org_units:
            raise RemoteError("Org unit not found", status=404, reason="notFound")
        for page in self.org_units[org_unit_path]:
            self.pages_served += 1
            await asyncio.sleep(0)
            yield list(page)

    async def group_user_pages(self, group_email: str):
        if group_email not in self.groups:
            raise RemoteError("Resource Not Found: groupKey", status=404, reason="notFound")
        for page in self.groups[group_email]:
            self.pages_served += 1
            await asyncio.sleep(0)
            yield list(page)


class DiagnosticLog:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def __call__(self, key: str, phase: str, text: str) -> None:
        self.lines.append(f"{key}: {phase}, {text}")

    def for_key(self, key: str) -> list[str]:
        return [line for line in self.lines if line.startswith(f"{key}: ")]


@pytest.fixture
def diagnostics() -> DiagnosticLog:
    return DiagnosticLog()


@pytest.fixture
def hooks(diagnostics: DiagnosticLog) -> EngineHooks:
    return EngineHooks(diagnostic=diagnostics)


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(initial_delay=0.001, max_delay=0.004, multiplier=2.0, max_attempts=5, jitter=0.1)


@pytest.fixture
def fast_settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        access_token="test-token",
        request_gap_ms=0,
        retry_initial_delay=0.001,
        retry_max_delay=0.004,
        retry_jitter=0.0,
        threads=2,
    )


def retryable(message: str = "Backend Error") -> RemoteError:
    return RemoteError(message, status=503, reason="backendError")


def fatal(message: str = "Resource Not Found: memberKey") -> RemoteError:
    return RemoteError(message, status=404, reason="notFound")
