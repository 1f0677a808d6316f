"""Issue templates and creating issues from them."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import ComponentNotFoundError, IssueTemplateNotFoundError, PersonNotFoundError
from huly_operations import classes
from huly_operations.issues import create_issue
from huly_operations.shared import (
    clamp_limit,
    display_name,
    find_by_name_or_id,
    find_person_by_email_or_name,
    find_project,
    parse_priority,
    person_names,
    priority_name,
)


async def _find_project_and_template(
    client: HulyClient,
    project: str,
    template: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    project_doc = await find_project(client, project)
    doc = await find_by_name_or_id(client, classes.ISSUE_TEMPLATE, project_doc["_id"], template, name_field="title")
    if doc is None:
        raise IssueTemplateNotFoundError(template, project)
    return project_doc, doc


async def _resolve_person(client: HulyClient, value: str) -> str:
    person = await find_person_by_email_or_name(client, value)
    if person is None:
        raise PersonNotFoundError(value)
    return person["_id"]


async def _resolve_component(client: HulyClient, project_doc: dict[str, Any], value: str) -> str:
    component = await find_by_name_or_id(client, classes.COMPONENT, project_doc["_id"], value, name_field="label")
    if component is None:
        raise ComponentNotFoundError(value, project_doc["identifier"])
    return component["_id"]


async def list_issue_templates(
    client: HulyClient,
    project: str,
    *,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    project_doc = await find_project(client, project)
    templates = await client.find_all(
        classes.ISSUE_TEMPLATE,
        {"space": project_doc["_id"]},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    assignees = await person_names(client, (template.get("assignee") for template in templates))
    return [
        {
            "id": template["_id"],
            "title": template.get("title"),
            "priority": priority_name(template.get("priority")),
            "assignee": assignees.get(template.get("assignee")) if template.get("assignee") else None,
            "modified_on": template.get("modifiedOn"),
        }
        for template in templates
    ]


async def get_issue_template(client: HulyClient, project: str, template: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_template(client, project, template)

    assignee_name = None
    if doc.get("assignee"):
        person = await client.find_one(classes.PERSON, {"_id": doc["assignee"]})
        assignee_name = display_name(person.get("name")) if person else None

    component_label = None
    if doc.get("component"):
        component = await client.find_one(classes.COMPONENT, {"_id": doc["component"]})
        component_label = component.get("label") if component else None

    return {
        "id": doc["_id"],
        "title": doc.get("title"),
        "description": doc.get("description") or None,
        "priority": priority_name(doc.get("priority")),
        "assignee": assignee_name,
        "component": component_label,
        "estimation": doc.get("estimation") or None,
        "project": project_doc["identifier"],
        "modified_on": doc.get("modifiedOn"),
    }


async def create_issue_template(
    client: HulyClient,
    project: str,
    title: str,
    *,
    description: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    component: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    if not title or not title.strip():
        raise ValueError("title must not be empty")
    project_doc = await find_project(client, project)
    assignee_ref = await _resolve_person(client, assignee) if assignee else None
    component_ref = await _resolve_component(client, project_doc, component) if component else None
    template_id = await client.create_doc(
        classes.ISSUE_TEMPLATE,
        project_doc["_id"],
        {
            "title": title.strip(),
            "description": description or "",
            "priority": parse_priority(priority) if priority else 0,
            "assignee": assignee_ref,
            "component": component_ref,
            "milestone": None,
            "estimation": estimation or 0,
            "children": [],
            "comments": 0,
        },
    )
    return {"id": template_id, "title": title.strip()}


async def update_issue_template(
    client: HulyClient,
    project: str,
    template: str,
    *,
    title: str | None = None,
    description: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    component: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_template(client, project, template)
    operations: dict[str, Any] = {}
    if title is not None:
        if not title.strip():
            raise ValueError("title must not be empty")
        operations["title"] = title.strip()
    if description is not None:
        operations["description"] = description
    if priority is not None:
        operations["priority"] = parse_priority(priority)
    if assignee is not None:
        operations["assignee"] = await _resolve_person(client, assignee) if assignee.strip() else None
    if component is not None:
        operations["component"] = await _resolve_component(client, project_doc, component) if component.strip() else None
    if estimation is not None:
        operations["estimation"] = estimation

    if not operations:
        return {"id": doc["_id"], "updated": False}
    await client.update_doc(classes.ISSUE_TEMPLATE, project_doc["_id"], doc["_id"], operations)
    return {"id": doc["_id"], "updated": True}


async def delete_issue_template(client: HulyClient, project: str, template: str) -> dict[str, Any]:
    project_doc, doc = await _find_project_and_template(client, project, template)
    await client.remove_doc(classes.ISSUE_TEMPLATE, project_doc["_id"], doc["_id"])
    return {"id": doc["_id"], "deleted": True}


async def _template_assignee(client: HulyClient, person_id: str) -> str | None:
    person = await client.find_one(classes.PERSON, {"_id": person_id})
    if person is None:
        return None
    channel = await client.find_one(
        classes.CHANNEL,
        {"attachedTo": person["_id"], "provider": classes.EMAIL_PROVIDER},
    )
    if channel is not None and channel.get("value"):
        return channel["value"]
    return person.get("name")


async def create_issue_from_template(
    client: HulyClient,
    project: str,
    template: str,
    *,
    title: str | None = None,
    description: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    status: str | None = None,
) -> dict[str, Any]:
    """Create an issue pre-filled from ``template``; explicit arguments take precedence."""

    project_doc, doc = await _find_project_and_template(client, project, template)

    if assignee is None and doc.get("assignee"):
        assignee = await _template_assignee(client, doc["assignee"])

    result = await create_issue(
        client,
        project,
        title or doc.get("title") or "",
        description=description if description is not None else doc.get("description"),
        priority=priority or priority_name(doc.get("priority")),
        assignee=assignee,
        status=status,
        estimation=doc.get("estimation") or None,
    )

    if doc.get("component"):
        await client.update_doc(
            classes.ISSUE,
            project_doc["_id"],
            result["issue_id"],
            {"component": doc["component"]},
        )
    return result
