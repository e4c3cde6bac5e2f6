"""Verbos de `userPhotos`."""

from __future__ import annotations

from typing import Any

from core.domain.flags import FlagSpec, FlagTable
from core.domain.values import ArgumentMap
from core.registry import REGISTRY

USER_PHOTO_FLAGS = FlagTable(
    [
        FlagSpec(
            name="userKey",
            description="Identifies the user: primary email, alias email or unique user ID.",
            available_for=frozenset({"delete"}),
            required_for=frozenset({"delete"}),
            exclude_from_all=True,
        ),
    ]
)


@REGISTRY.verb("userPhotos", "delete", flags=USER_PHOTO_FLAGS, recursive_key="userKey", key_options=("userKey",))
async def delete_user_photo(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Removes the user's photo."""

    user_key = args.string("userKey")
    return {"userKey": user_key, "result": await directory.delete_user_photo(user_key)}
