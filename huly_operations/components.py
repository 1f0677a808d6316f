"""Project components and their leads."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import ComponentNotFoundError, PersonNotFoundError
from huly_operations import classes
from huly_operations.issues import set_issue_reference
from huly_operations.shared import (
    clamp_limit,
    display_name,
    find_by_name_or_id,
    find_person_by_email_or_name,
    find_project,
    person_names,
)


async def _find_project_and_component(
    client: HulyClient,
    project: str,
    component: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    project_doc = await find_project(client, project)
    doc = await find_by_name_or_id(client, classes.COMPONENT, project_doc["_id"], component, name_field="label")
    if doc is None:
        raise ComponentNotFoundError(component, project)
    return project_doc, doc


async def _resolve_lead(client: HulyClient, lead: str) -> str:
    person = await find_person_by_email_or_name(client, lead)
    if person is None:
        raise PersonNotFoundError(lead)
    return person["_id"]


async def list_components(client: HulyClient, project: str, *, limit: int | None = None) -> list[dict[str, Any]]:
    project_doc = await find_project(client, project)
    components = await client.find_all(
        classes.COMPONENT,
        {"space": project_doc["_id"]},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    leads = await person_names(client, (component.get("lead") for component in components))
    return [
        {
            "id": component["_id"],
            "label": component.get("label"),
            "lead": leads.get(component.get("lead")) if component.get("lead") else None,
            "modified_on": component.get("modifiedOn"),
        }
        for component in components
    ]


async def get_component(client: HulyClient, project: str, component: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_component(client, project, component)
    lead_name = None
    if doc.get("lead"):
        person = await client.find_one(classes.PERSON, {"_id": doc["lead"]})
        lead_name = display_name(person.get("name")) if person else None
    return {
        "id": doc["_id"],
        "label": doc.get("label"),
        "description": doc.get("description") or None,
        "lead": lead_name,
        "project": project_doc["identifier"],
        "created_on": doc.get("createdOn"),
        "modified_on": doc.get("modifiedOn"),
    }


async def create_component(
    client: HulyClient,
    project: str,
    label: str,
    *,
    description: str | None = None,
    lead: str | None = None,
) -> dict[str, Any]:
    if not label or not label.strip():
        raise ValueError("label must not be empty")
    project_doc = await find_project(client, project)
    lead_ref = await _resolve_lead(client, lead) if lead else None
    component_id = await client.create_doc(
        classes.COMPONENT,
        project_doc["_id"],
        {
            "label": label.strip(),
            "description": description or "",
            "lead": lead_ref,
            "comments": 0,
        },
    )
    return {"id": component_id, "label": label.strip()}


async def update_component(
    client: HulyClient,
    project: str,
    component: str,
    *,
    label: str | None = None,
    description: str | None = None,
    lead: str | None = None,
) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_component(client, project, component)
    operations: dict[str, Any] = {}
    if label is not None:
        if not label.strip():
            raise ValueError("label must not be empty")
        operations["label"] = label.strip()
    if description is not None:
        operations["description"] = description
    if lead is not None:
        operations["lead"] = await _resolve_lead(client, lead) if lead.strip() else None

    if not operations:
        return {"id": doc["_id"], "updated": False}
    await client.update_doc(classes.COMPONENT, project_doc["_id"], doc["_id"], operations)
    return {"id": doc["_id"], "updated": True}


async def set_issue_component(
    client: HulyClient,
    project: str,
    identifier: str,
    component: str | None,
) -> dict[str, Any]:
    _, issue = await set_issue_reference(client, project, identifier, "component", component)
    return {"identifier": issue["identifier"], "component_set": True}


async def delete_component(client: HulyClient, project: str, component: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_component(client, project, component)
    await client.remove_doc(classes.COMPONENT, project_doc["_id"], doc["_id"])
    return {"id": doc["_id"], "deleted": True}
