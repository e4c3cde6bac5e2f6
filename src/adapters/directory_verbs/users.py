"""Verbos de `users`."""

from __future__ import annotations

from typing import Any

from core.domain.flags import FlagKind, FlagSpec, FlagTable
from core.domain.values import ArgumentMap
from core.registry import REGISTRY

USER_FLAGS = FlagTable(
    [
        FlagSpec(
            name="userKey",
            description="Identifies the user: primary email, alias email or unique user ID.",
            available_for=frozenset({"delete", "makeAdmin", "signOut", "undelete"}),
            required_for=frozenset({"delete", "makeAdmin", "signOut", "undelete"}),
            exclude_from_all=True,
        ),
        FlagSpec(
            name="orgUnitPath",
            description="Organizational unit the restored user is placed in.",
            available_for=frozenset({"undelete"}),
            required_for=frozenset({"undelete"}),
        ),
        FlagSpec(
            name="status",
            kind=FlagKind.BOOLEAN,
            description="New admin status of the user.",
            available_for=frozenset({"makeAdmin"}),
            defaults={"makeAdmin": False},
            recursive_for=frozenset({"makeAdmin"}),
        ),
    ]
)


def _result(user_key: str, result: Any) -> dict[str, Any]:
    return {"userKey": user_key, "result": result}


@REGISTRY.verb("users", "signOut", flags=USER_FLAGS, recursive_key="userKey", key_options=("userKey",))
async def sign_out_user(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Signs a user out of all web and device sessions."""

    user_key = args.string("userKey")
    return _result(user_key, await directory.sign_out_user(user_key))


@REGISTRY.verb("users", "delete", flags=USER_FLAGS, key_options=("userKey",))
async def delete_user(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Deletes a user."""

    user_key = args.string("userKey")
    return _result(user_key, await directory.delete_user(user_key))


@REGISTRY.verb("users", "makeAdmin", flags=USER_FLAGS, recursive_key="userKey", key_options=("userKey",))
async def make_admin(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Makes a user a super administrator (or revokes it with --no-status)."""

    user_key = args.string("userKey")
    return _result(user_key, await directory.make_admin(user_key, args.boolean("status")))


@REGISTRY.verb("users", "undelete", flags=USER_FLAGS, key_options=("userKey",))
async def undelete_user(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Restores a recently deleted user."""

    user_key = args.string("userKey")
    return _result(user_key, await directory.undelete_user(user_key, args.string("orgUnitPath")))
