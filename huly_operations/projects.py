"""Project listing."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_operations import classes
from huly_operations.shared import clamp_limit


async def list_projects(
    client: HulyClient,
    *,
    include_archived: bool = False,
    limit: int | None = None,
) -> dict[str, Any]:
    query: dict[str, Any] = {} if include_archived else {"archived": False}
    projects = await client.find_all(
        classes.PROJECT,
        query,
        limit=clamp_limit(limit),
        sort={"name": classes.ASCENDING},
        total=True,
    )
    summaries = [
        {
            "identifier": project.get("identifier"),
            "name": project.get("name"),
            "description": project.get("description") or None,
            "archived": bool(project.get("archived")),
        }
        for project in projects
    ]
    return {"projects": summaries, "total": projects.total}
