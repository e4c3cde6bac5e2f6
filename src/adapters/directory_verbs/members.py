"""Verbos de `members` (miembros de grupo)."""

from __future__ import annotations

from typing import Any

from core.domain.flags import FlagKind, FlagSpec, FlagTable
from core.domain.values import ArgumentMap
from core.registry import REGISTRY

MEMBER_FLAGS = FlagTable(
    [
        FlagSpec(
            name="groupKey",
            description="Identifies the group: email address, alias or unique ID.",
            available_for=frozenset({"delete", "get", "hasMember", "insert", "patch"}),
            required_for=frozenset({"delete", "get", "hasMember", "insert", "patch"}),
            recursive_for=frozenset({"insert", "patch"}),
        ),
        FlagSpec(
            name="memberKey",
            description="Identifies the member (user or group): primary email, alias or unique ID.",
            available_for=frozenset({"delete", "get", "hasMember", "patch"}),
            required_for=frozenset({"delete", "get", "hasMember", "patch"}),
            exclude_from_all=True,
        ),
        FlagSpec(
            name="email",
            description="The member's email address (user or group).",
            available_for=frozenset({"insert"}),
            required_for=frozenset({"insert"}),
            exclude_from_all=True,
        ),
        FlagSpec(
            name="role",
            description="The member's role in the group: OWNER, MANAGER or MEMBER.",
            available_for=frozenset({"insert", "patch"}),
            defaults={"insert": "MEMBER"},
            recursive_for=frozenset({"insert", "patch"}),
        ),
        FlagSpec(
            name="delivery_settings",
            description="Mail delivery preference: ALL_MAIL, DAILY, DIGEST, DISABLED or NONE.",
            available_for=frozenset({"insert", "patch"}),
            recursive_for=frozenset({"insert", "patch"}),
        ),
        FlagSpec(
            name="fields",
            kind=FlagKind.STRING,
            description="Partial response selector.",
            available_for=frozenset({"get", "insert", "patch"}),
            recursive_for=frozenset({"insert", "patch"}),
        ),
    ]
)

# Opción CLI -> campo del recurso Member.
_MEMBER_BODY = {"email": "email", "role": "role", "delivery_settings": "delivery_settings"}


def member_body(args: ArgumentMap) -> dict[str, Any]:
    body = args.request_body(_MEMBER_BODY).to_json()
    body["kind"] = "admin#directory#member"
    return body


@REGISTRY.verb("members", "delete", flags=MEMBER_FLAGS, key_options=("groupKey", "memberKey"))
async def delete_member(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Removes a member from a group."""

    group_key = args.string("groupKey")
    member_key = args.string("memberKey")
    result = await directory.delete_member(group_key, member_key)
    return {"groupKey": group_key, "memberKey": member_key, "result": result}


@REGISTRY.verb("members", "get", flags=MEMBER_FLAGS, key_options=("groupKey", "memberKey"))
async def get_member(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Retrieves a group member's properties."""

    return await directory.get_member(args.string("groupKey"), args.string("memberKey"), fields=args.string("fields"))


@REGISTRY.verb("members", "hasMember", flags=MEMBER_FLAGS, key_options=("groupKey", "memberKey"))
async def has_member(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Checks whether a user is a direct or nested member of a group."""

    group_key = args.string("groupKey")
    member_key = args.string("memberKey")
    result = await directory.has_member(group_key, member_key)
    return {"groupKey": group_key, "memberKey": member_key, "result": result}


@REGISTRY.verb(
    "members",
    "insert",
    flags=MEMBER_FLAGS,
    recursive_key="email",
    key_options=("groupKey", "email"),
)
async def insert_member(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Adds a user or group to a group."""

    return await directory.insert_member(args.string("groupKey"), member_body(args), fields=args.string("fields"))


@REGISTRY.verb(
    "members",
    "patch",
    flags=MEMBER_FLAGS,
    recursive_key="memberKey",
    key_options=("groupKey", "memberKey"),
)
async def patch_member(directory: Any, args: ArgumentMap) -> dict[str, Any]:
    """Updates the membership properties of a group member."""

    return await directory.patch_member(
        args.string("groupKey"),
        args.string("memberKey"),
        member_body(args),
        fields=args.string("fields"),
    )
