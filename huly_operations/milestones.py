"""Project milestones."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import MilestoneNotFoundError
from huly_operations import classes
from huly_operations.issues import set_issue_reference
from huly_operations.shared import clamp_limit, find_by_name_or_id, find_project

_STATUS_NAMES = {value: key for key, value in classes.MILESTONE_STATUSES.items()}


def parse_milestone_status(value: str) -> int:
    key = value.strip().lower().replace("_", "-").replace(" ", "-")
    if key == "cancelled":
        key = "canceled"
    try:
        return classes.MILESTONE_STATUSES[key]
    except KeyError:
        allowed = ", ".join(classes.MILESTONE_STATUSES)
        raise ValueError(f"status must be one of: {allowed}") from None


def milestone_status_name(value: Any) -> str:
    return _STATUS_NAMES.get(value, "planned")


async def _find_project_and_milestone(
    client: HulyClient,
    project: str,
    milestone: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    project_doc = await find_project(client, project)
    doc = await find_by_name_or_id(client, classes.MILESTONE, project_doc["_id"], milestone, name_field="label")
    if doc is None:
        raise MilestoneNotFoundError(milestone, project)
    return project_doc, doc


async def list_milestones(client: HulyClient, project: str, *, limit: int | None = None) -> list[dict[str, Any]]:
    project_doc = await find_project(client, project)
    milestones = await client.find_all(
        classes.MILESTONE,
        {"space": project_doc["_id"]},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    return [
        {
            "id": milestone["_id"],
            "label": milestone.get("label"),
            "status": milestone_status_name(milestone.get("status")),
            "target_date": milestone.get("targetDate"),
            "modified_on": milestone.get("modifiedOn"),
        }
        for milestone in milestones
    ]


async def get_milestone(client: HulyClient, project: str, milestone: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_milestone(client, project, milestone)
    return {
        "id": doc["_id"],
        "label": doc.get("label"),
        "description": doc.get("description") or None,
        "status": milestone_status_name(doc.get("status")),
        "target_date": doc.get("targetDate"),
        "project": project_doc["identifier"],
        "created_on": doc.get("createdOn"),
        "modified_on": doc.get("modifiedOn"),
    }


async def create_milestone(
    client: HulyClient,
    project: str,
    label: str,
    target_date: int,
    *,
    description: str | None = None,
) -> dict[str, Any]:
    if not label or not label.strip():
        raise ValueError("label must not be empty")
    project_doc = await find_project(client, project)
    milestone_id = await client.create_doc(
        classes.MILESTONE,
        project_doc["_id"],
        {
            "label": label.strip(),
            "description": description or "",
            "status": classes.MILESTONE_STATUSES["planned"],
            "targetDate": target_date,
            "comments": 0,
        },
    )
    return {"id": milestone_id, "label": label.strip()}


async def update_milestone(
    client: HulyClient,
    project: str,
    milestone: str,
    *,
    label: str | None = None,
    description: str | None = None,
    target_date: int | None = None,
    status: str | None = None,
) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_milestone(client, project, milestone)
    operations: dict[str, Any] = {}
    if label is not None:
        if not label.strip():
            raise ValueError("label must not be empty")
        operations["label"] = label.strip()
    if description is not None:
        operations["description"] = description
    if target_date is not None:
        operations["targetDate"] = target_date
    if status is not None:
        operations["status"] = parse_milestone_status(status)

    if not operations:
        return {"id": doc["_id"], "updated": False}
    await client.update_doc(classes.MILESTONE, project_doc["_id"], doc["_id"], operations)
    return {"id": doc["_id"], "updated": True}


async def set_issue_milestone(
    client: HulyClient,
    project: str,
    identifier: str,
    milestone: str | None,
) -> dict[str, Any]:
    _, issue = await set_issue_reference(client, project, identifier, "milestone", milestone)
    return {"identifier": issue["identifier"], "milestone_set": True}


async def delete_milestone(client: HulyClient, project: str, milestone: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_milestone(client, project, milestone)
    await client.remove_doc(classes.MILESTONE, project_doc["_id"], doc["_id"])
    return {"id": doc["_id"], "deleted": True}
