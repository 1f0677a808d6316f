"""Person lookup used to help agents pick assignees and leads."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_operations import classes
from huly_operations.shared import clamp_limit, display_name, escape_like


async def list_persons(
    client: HulyClient,
    *,
    name_search: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    query: dict[str, Any] = {}
    if name_search and name_search.strip():
        query["name"] = {"$like": f"%{escape_like(name_search.strip())}%"}
    persons = await client.find_all(
        classes.PERSON,
        query,
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    if not persons:
        return []

    channels = await client.find_all(
        classes.CHANNEL,
        {
            "attachedTo": {"$in": [person["_id"] for person in persons]},
            "provider": classes.EMAIL_PROVIDER,
        },
    )
    emails: dict[str, str] = {}
    for channel in channels:
        emails.setdefault(channel.get("attachedTo"), channel.get("value"))

    return [
        {
            "id": person["_id"],
            "name": display_name(person.get("name")),
            "email": emails.get(person["_id"]),
            "modified_on": person.get("modifiedOn"),
        }
        for person in persons
    ]
