"""Workspace administration through the account service."""

from __future__ import annotations

import logging
from typing import Any

from account_client import AccountClient
from huly_errors import HulyError
from huly_operations.shared import clamp_limit

logger = logging.getLogger(__name__)

ROLES = ("READONLYGUEST", "DocGuest", "GUEST", "USER", "MAINTAINER", "OWNER", "ADMIN")

_PROFILE_FIELDS = ("bio", "city", "country", "website", "socialLinks", "isPublic")


def _format_version(info: dict[str, Any]) -> str:
    return f"{info.get('versionMajor', 0)}.{info.get('versionMinor', 0)}.{info.get('versionPatch', 0)}"


async def list_workspace_members(account: AccountClient, *, limit: int | None = None) -> list[dict[str, Any]]:
    members = (await account.get_workspace_members())[: clamp_limit(limit)]
    result: list[dict[str, Any]] = []
    for member in members:
        name = None
        email = None
        try:
            info = await account.get_person_info(member["person"])
        except HulyError as exc:
            logger.warning("Could not load person info for %s: %s", member.get("person"), exc)
            info = None
        if info:
            name = info.get("name")
            email = next(
                (social.get("value") for social in info.get("socialIds") or [] if social.get("type") == "email"),
                None,
            )
        result.append({"person_id": member.get("person"), "role": member.get("role"), "name": name, "email": email})
    return result


async def update_member_role(account: AccountClient, account_id: str, role: str) -> dict[str, Any]:
    if role not in ROLES:
        raise ValueError(f"role must be one of: {', '.join(ROLES)}")
    await account.update_workspace_role(account_id, role)
    return {"account_id": account_id, "role": role, "updated": True}


async def get_workspace_info(account: AccountClient) -> dict[str, Any]:
    info = await account.get_workspace_info()
    return {
        "uuid": info.get("uuid"),
        "name": info.get("name"),
        "url": info.get("url"),
        "region": info.get("region"),
        "created_on": info.get("createdOn"),
        "allow_read_only_guest": info.get("allowReadOnlyGuest"),
        "allow_guest_sign_up": info.get("allowGuestSignUp"),
        "version": _format_version(info),
        "mode": info.get("mode"),
    }


async def list_workspaces(account: AccountClient, *, limit: int | None = None) -> list[dict[str, Any]]:
    workspaces = await account.get_user_workspaces()
    return [
        {
            "uuid": workspace.get("uuid"),
            "name": workspace.get("name"),
            "url": workspace.get("url"),
            "region": workspace.get("region"),
            "created_on": workspace.get("createdOn"),
            "last_visit": workspace.get("lastVisit"),
        }
        for workspace in workspaces[: clamp_limit(limit)]
    ]


async def create_workspace(account: AccountClient, name: str, *, region: str | None = None) -> dict[str, Any]:
    if not name or not name.strip():
        raise ValueError("name must not be empty")
    login_info = await account.create_workspace(name.strip(), region)
    return {"uuid": login_info.get("workspace"), "url": login_info.get("workspaceUrl"), "name": name.strip()}


async def delete_workspace(account: AccountClient) -> dict[str, Any]:
    await account.delete_workspace()
    return {"deleted": True}


async def get_user_profile(account: AccountClient, person_uuid: str | None = None) -> dict[str, Any] | None:
    profile = await account.get_user_profile(person_uuid)
    if not profile:
        return None
    return {
        "person_uuid": profile.get("uuid"),
        "first_name": profile.get("firstName"),
        "last_name": profile.get("lastName"),
        "bio": profile.get("bio"),
        "city": profile.get("city"),
        "country": profile.get("country"),
        "website": profile.get("website"),
        "social_links": profile.get("socialLinks"),
        "is_public": bool(profile.get("isPublic", False)),
    }


async def update_user_profile(
    account: AccountClient,
    *,
    bio: str | None = None,
    city: str | None = None,
    country: str | None = None,
    website: str | None = None,
    social_links: dict[str, str] | None = None,
    is_public: bool | None = None,
) -> dict[str, Any]:
    values = (bio, city, country, website, social_links, is_public)
    update = {field: value for field, value in zip(_PROFILE_FIELDS, values) if value is not None}
    if not update:
        return {"updated": False}
    await account.set_my_profile(update)
    return {"updated": True}


async def update_guest_settings(
    account: AccountClient,
    *,
    allow_read_only: bool | None = None,
    allow_sign_up: bool | None = None,
) -> dict[str, Any]:
    updated = False
    if allow_read_only is not None:
        await account.update_allow_read_only_guests(allow_read_only)
        updated = True
    if allow_sign_up is not None:
        await account.update_allow_guest_sign_up(allow_sign_up)
        updated = True
    return {"updated": updated, "allow_read_only": allow_read_only, "allow_sign_up": allow_sign_up}


async def get_regions(account: AccountClient) -> list[dict[str, Any]]:
    regions = await account.get_region_info()
    return [{"region": region.get("region"), "name": region.get("name")} for region in regions]
