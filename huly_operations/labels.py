"""Workspace-wide label definitions (tag elements targeting issues)."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import LabelNotFoundError
from huly_operations import classes
from huly_operations.shared import clamp_limit

MAX_COLOR = 9


def _check_color(color: int | None) -> int | None:
    if color is not None and not 0 <= color <= MAX_COLOR:
        raise ValueError(f"color must be between 0 and {MAX_COLOR}")
    return color


def _label(element: dict[str, Any]) -> dict[str, Any]:
    try:
        color = min(max(int(element.get("color") or 0), 0), MAX_COLOR)
    except (TypeError, ValueError):
        color = 0
    return {
        "id": element["_id"],
        "title": element.get("title") or "",
        "description": element.get("description") or "",
        "color": color,
    }


async def find_label(client: HulyClient, label: str) -> dict[str, Any]:
    """Look a label up by id first, then by exact title."""

    element = await client.find_one(classes.TAG_ELEMENT, {"_id": label, "targetClass": classes.ISSUE})
    if element is None:
        element = await client.find_one(classes.TAG_ELEMENT, {"title": label, "targetClass": classes.ISSUE})
    if element is None:
        raise LabelNotFoundError(label)
    return element


async def list_labels(client: HulyClient, *, limit: int | None = None) -> list[dict[str, Any]]:
    elements = await client.find_all(
        classes.TAG_ELEMENT,
        {"targetClass": classes.ISSUE},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    return [_label(element) for element in elements]


async def create_label(
    client: HulyClient,
    title: str,
    *,
    color: int | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Create a label, or return the existing one with the same title."""

    title = title.strip()
    if not title:
        raise ValueError("title must not be empty")
    _check_color(color)

    existing = await client.find_one(classes.TAG_ELEMENT, {"title": title, "targetClass": classes.ISSUE})
    if existing is not None:
        return {"id": existing["_id"], "title": existing.get("title"), "created": False}

    label_id = await client.create_doc(
        classes.TAG_ELEMENT,
        classes.SPACE_WORKSPACE,
        {
            "title": title,
            "description": description or "",
            "targetClass": classes.ISSUE,
            "color": color or 0,
            "category": classes.LABEL_CATEGORY,
        },
    )
    return {"id": label_id, "title": title, "created": True}


async def update_label(
    client: HulyClient,
    label: str,
    *,
    title: str | None = None,
    color: int | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    element = await find_label(client, label)
    operations: dict[str, Any] = {}
    if title is not None:
        title = title.strip()
        if not title:
            raise ValueError("title must not be empty")
        operations["title"] = title
    if _check_color(color) is not None:
        operations["color"] = color
    if description is not None:
        operations["description"] = description

    if not operations:
        return {"id": element["_id"], "updated": False}
    await client.update_doc(classes.TAG_ELEMENT, classes.SPACE_WORKSPACE, element["_id"], operations)
    return {"id": element["_id"], "updated": True}


async def delete_label(client: HulyClient, label: str) -> dict[str, Any]:
    element = await find_label(client, label)
    await client.remove_doc(classes.TAG_ELEMENT, classes.SPACE_WORKSPACE, element["_id"])
    return {"id": element["_id"], "deleted": True}
