"""Issue listing, retrieval, creation, update, deletion and labelling."""

from __future__ import annotations

import logging
from typing import Any

from huly_client import HulyClient, generate_id
from huly_errors import (
    ComponentNotFoundError,
    InvalidStatusError,
    MilestoneNotFoundError,
    PersonNotFoundError,
)
from huly_operations import classes
from huly_operations.shared import (
    StatusInfo,
    clamp_limit,
    display_name,
    escape_like,
    find_by_name_or_id,
    find_issue_in_project,
    find_person_by_email_or_name,
    find_project,
    find_project_and_issue,
    find_project_with_statuses,
    parse_priority,
    person_names,
    priority_name,
    rank_after,
)

logger = logging.getLogger(__name__)


def _status_names(statuses: list[StatusInfo]) -> dict[str, str]:
    return {status.id: status.name for status in statuses}


def _resolve_status(statuses: list[StatusInfo], name: str, project: str) -> StatusInfo:
    lowered = name.strip().lower()
    for status in statuses:
        if status.name.lower() == lowered:
            return status
    raise InvalidStatusError(name, project)


def _status_query(statuses: list[StatusInfo], status: str, project: str) -> Any:
    """Translate a status filter into a query clause, or ``None`` when nothing can match."""

    lowered = status.strip().lower()
    done = [entry.id for entry in statuses if entry.is_done]
    canceled = [entry.id for entry in statuses if entry.is_canceled]
    if lowered == "open":
        return {"$nin": done + canceled}
    if lowered == "done":
        return {"$in": done} if done else None
    if lowered == "canceled":
        return {"$in": canceled} if canceled else None
    return _resolve_status(statuses, status, project).id


async def _resolve_component(client: HulyClient, project: dict[str, Any], value: str) -> dict[str, Any]:
    component = await find_by_name_or_id(client, classes.COMPONENT, project["_id"], value, name_field="label")
    if component is None:
        raise ComponentNotFoundError(value, project["identifier"])
    return component


async def _resolve_milestone(client: HulyClient, project: dict[str, Any], value: str) -> dict[str, Any]:
    milestone = await find_by_name_or_id(client, classes.MILESTONE, project["_id"], value, name_field="label")
    if milestone is None:
        raise MilestoneNotFoundError(value, project["identifier"])
    return milestone


async def _resolve_assignee(client: HulyClient, value: str) -> str:
    person = await find_person_by_email_or_name(client, value)
    if person is None:
        raise PersonNotFoundError(value)
    return person["_id"]


def _summary(issue: dict[str, Any], status_names: dict[str, str], assignees: dict[str, str]) -> dict[str, Any]:
    assignee = issue.get("assignee")
    return {
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "status": status_names.get(issue.get("status"), issue.get("status")),
        "priority": priority_name(issue.get("priority")),
        "assignee": assignees.get(assignee) if assignee else None,
        "modified_on": issue.get("modifiedOn"),
    }


async def list_issues(
    client: HulyClient,
    project: str,
    *,
    status: str | None = None,
    assignee: str | None = None,
    title_search: str | None = None,
    description_search: str | None = None,
    component: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """List issues in ``project`` newest first, applying the optional filters."""

    project_doc, statuses = await find_project_with_statuses(client, project)
    query: dict[str, Any] = {"space": project_doc["_id"]}

    if status:
        clause = _status_query(statuses, status, project)
        if clause is None:
            return []
        query["status"] = clause

    if assignee:
        person = await find_person_by_email_or_name(client, assignee)
        if person is None:
            return []
        query["assignee"] = person["_id"]

    if title_search and title_search.strip():
        query["title"] = {"$like": f"%{escape_like(title_search.strip())}%"}

    if description_search and description_search.strip():
        query["$search"] = description_search.strip()

    if component:
        query["component"] = (await _resolve_component(client, project_doc, component))["_id"]

    issues = await client.find_all(
        classes.ISSUE,
        query,
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    assignees = await person_names(client, (issue.get("assignee") for issue in issues))
    status_names = _status_names(statuses)
    return [_summary(issue, status_names, assignees) for issue in issues]


async def get_issue(client: HulyClient, project: str, identifier: str) -> dict[str, Any]:
    project_doc, statuses = await find_project_with_statuses(client, project)
    issue = await find_issue_in_project(client, project_doc, identifier)

    assignee_ref = None
    assignee_id = issue.get("assignee")
    if assignee_id:
        person = await client.find_one(classes.PERSON, {"_id": assignee_id})
        if person is not None:
            assignee_ref = {"id": person["_id"], "name": display_name(person.get("name"))}

    references = await client.find_all(classes.TAG_REFERENCE, {"attachedTo": issue["_id"]})
    labels = [ref.get("title") for ref in references if ref.get("title")]

    component_label = None
    if issue.get("component"):
        component = await client.find_one(classes.COMPONENT, {"_id": issue["component"]})
        component_label = component.get("label") if component else None

    milestone_label = None
    if issue.get("milestone"):
        milestone = await client.find_one(classes.MILESTONE, {"_id": issue["milestone"]})
        milestone_label = milestone.get("label") if milestone else None

    parents = issue.get("parents") or []
    parent = parents[-1].get("identifier") if parents else None

    description = await client.fetch_markup(classes.ISSUE, issue["_id"], "description", issue.get("description"))

    return {
        "identifier": issue.get("identifier"),
        "title": issue.get("title"),
        "description": description,
        "status": _status_names(statuses).get(issue.get("status"), issue.get("status")),
        "priority": priority_name(issue.get("priority")),
        "assignee": assignee_ref["name"] if assignee_ref else None,
        "assignee_ref": assignee_ref,
        "labels": labels,
        "component": component_label,
        "milestone": milestone_label,
        "parent": parent,
        "sub_issues": issue.get("subIssues") or 0,
        "project": project_doc["identifier"],
        "created_on": issue.get("createdOn"),
        "modified_on": issue.get("modifiedOn"),
        "due_date": issue.get("dueDate"),
        "estimation": issue.get("estimation"),
    }


async def create_issue(
    client: HulyClient,
    project: str,
    title: str,
    *,
    description: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    status: str | None = None,
    parent_issue: str | None = None,
    component: str | None = None,
    milestone: str | None = None,
    due_date: int | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    """Create an issue and return its new identifier.

    The project's ``sequence`` is incremented on the server so concurrent
    creators never hand out the same number.
    """

    if not title or not title.strip():
        raise ValueError("title must not be empty")

    project_doc, statuses = await find_project_with_statuses(client, project)
    status_ref = project_doc.get("defaultIssueStatus")
    if status:
        status_ref = _resolve_status(statuses, status, project).id

    assignee_ref = await _resolve_assignee(client, assignee) if assignee else None
    priority_value = parse_priority(priority) if priority else 0

    parent_doc = None
    if parent_issue:
        parent_doc = await find_issue_in_project(client, project_doc, parent_issue)

    component_ref = None
    if component:
        component_ref = (await _resolve_component(client, project_doc, component))["_id"]
    milestone_ref = None
    if milestone:
        milestone_ref = (await _resolve_milestone(client, project_doc, milestone))["_id"]

    updated = await client.update_doc(
        classes.PROJECT,
        classes.SPACE_SPACE,
        project_doc["_id"],
        {"$inc": {"sequence": 1}},
        retrieve=True,
    )
    sequence = (updated or {}).get("sequence") or (project_doc.get("sequence") or 0) + 1

    last_issue = await client.find_one(
        classes.ISSUE,
        {"space": project_doc["_id"]},
        sort={"rank": classes.DESCENDING},
    )

    issue_id = generate_id()
    description_ref = None
    if description and description.strip():
        description_ref = await client.upload_markup(classes.ISSUE, issue_id, "description", description)

    identifier = f"{project_doc['identifier']}-{sequence}"
    parents: list[dict[str, Any]] = []
    if parent_doc is not None:
        parents = list(parent_doc.get("parents") or []) + [
            {
                "parentId": parent_doc["_id"],
                "identifier": parent_doc.get("identifier"),
                "parentTitle": parent_doc.get("title"),
                "space": project_doc["_id"],
            }
        ]

    attributes = {
        "title": title.strip(),
        "description": description_ref,
        "status": status_ref,
        "number": sequence,
        "kind": classes.ISSUE_TASK_TYPE,
        "identifier": identifier,
        "priority": priority_value,
        "assignee": assignee_ref,
        "component": component_ref,
        "milestone": milestone_ref,
        "estimation": estimation or 0,
        "remainingTime": 0,
        "reportedTime": 0,
        "reports": 0,
        "subIssues": 0,
        "parents": parents,
        "childInfo": [],
        "dueDate": due_date,
        "rank": rank_after(last_issue.get("rank") if last_issue else None),
    }

    if parent_doc is not None:
        await client.add_collection(
            classes.ISSUE,
            project_doc["_id"],
            parent_doc["_id"],
            classes.ISSUE,
            "subIssues",
            attributes,
            issue_id,
        )
    else:
        await client.add_collection(
            classes.ISSUE,
            project_doc["_id"],
            project_doc["_id"],
            classes.PROJECT,
            "issues",
            attributes,
            issue_id,
        )
    logger.info("Created issue %s", identifier)
    return {"identifier": identifier, "issue_id": issue_id}


async def update_issue(
    client: HulyClient,
    project: str,
    identifier: str,
    *,
    title: str | None = None,
    description: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    status: str | None = None,
    component: str | None = None,
    milestone: str | None = None,
    due_date: int | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    """Apply only the provided fields.

    A blank ``description`` clears it; an empty ``assignee``, ``component`` or
    ``milestone`` removes that reference.
    """

    project_doc, statuses = await find_project_with_statuses(client, project)
    issue = await find_issue_in_project(client, project_doc, identifier)
    operations: dict[str, Any] = {}

    if title is not None:
        if not title.strip():
            raise ValueError("title must not be empty")
        operations["title"] = title.strip()

    if description is not None:
        if description.strip():
            operations["description"] = await client.upload_markup(
                classes.ISSUE, issue["_id"], "description", description
            )
        else:
            operations["description"] = None

    if priority is not None:
        operations["priority"] = parse_priority(priority)

    if status is not None:
        operations["status"] = _resolve_status(statuses, status, project).id

    if assignee is not None:
        operations["assignee"] = await _resolve_assignee(client, assignee) if assignee.strip() else None

    if component is not None:
        operations["component"] = (
            (await _resolve_component(client, project_doc, component))["_id"] if component.strip() else None
        )

    if milestone is not None:
        operations["milestone"] = (
            (await _resolve_milestone(client, project_doc, milestone))["_id"] if milestone.strip() else None
        )

    if due_date is not None:
        operations["dueDate"] = due_date

    if estimation is not None:
        operations["estimation"] = estimation

    if not operations:
        return {"identifier": issue["identifier"], "updated": False}

    await client.update_doc(classes.ISSUE, project_doc["_id"], issue["_id"], operations)
    return {"identifier": issue["identifier"], "updated": True}


async def delete_issue(client: HulyClient, project: str, identifier: str) -> dict[str, Any]:
    project_doc, issue = await find_project_and_issue(client, project, identifier)
    await client.remove_doc(classes.ISSUE, project_doc["_id"], issue["_id"])
    logger.info("Deleted issue %s", issue["identifier"])
    return {"identifier": issue["identifier"], "deleted": True}


async def add_label(
    client: HulyClient,
    project: str,
    identifier: str,
    label: str,
    *,
    color: int = 0,
) -> dict[str, Any]:
    label = label.strip()
    if not label:
        raise ValueError("label must not be empty")

    project_doc, issue = await find_project_and_issue(client, project, identifier)
    references = await client.find_all(classes.TAG_REFERENCE, {"attachedTo": issue["_id"]})
    lowered = label.lower()
    if any((ref.get("title") or "").lower() == lowered for ref in references):
        return {"identifier": issue["identifier"], "label_added": False}

    element = await client.find_one(
        classes.TAG_ELEMENT,
        {"title": label, "targetClass": classes.ISSUE},
    )
    if element is None:
        element_id = await client.create_doc(
            classes.TAG_ELEMENT,
            classes.SPACE_WORKSPACE,
            {
                "title": label,
                "description": "",
                "targetClass": classes.ISSUE,
                "color": color,
                "category": classes.LABEL_CATEGORY,
            },
        )
        element_color = color
    else:
        element_id = element["_id"]
        element_color = element.get("color", color)

    await client.add_collection(
        classes.TAG_REFERENCE,
        project_doc["_id"],
        issue["_id"],
        classes.ISSUE,
        "labels",
        {"title": label, "color": element_color, "tag": element_id},
    )
    return {"identifier": issue["identifier"], "label_added": True}


async def remove_label(client: HulyClient, project: str, identifier: str, label: str) -> dict[str, Any]:
    project_doc, issue = await find_project_and_issue(client, project, identifier)
    references = await client.find_all(classes.TAG_REFERENCE, {"attachedTo": issue["_id"]})
    lowered = label.strip().lower()
    match = next((ref for ref in references if (ref.get("title") or "").lower() == lowered), None)
    if match is None:
        return {"identifier": issue["identifier"], "label_removed": False}
    await client.remove_doc(classes.TAG_REFERENCE, project_doc["_id"], match["_id"])
    return {"identifier": issue["identifier"], "label_removed": True}


async def set_issue_reference(
    client: HulyClient,
    project: str,
    identifier: str,
    field: str,
    value: str | None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Point ``field`` (``component`` or ``milestone``) of an issue at ``value`` or clear it."""

    project_doc = await find_project(client, project)
    issue = await find_issue_in_project(client, project_doc, identifier)
    ref = None
    if value:
        if field == "component":
            ref = (await _resolve_component(client, project_doc, value))["_id"]
        else:
            ref = (await _resolve_milestone(client, project_doc, value))["_id"]
    await client.update_doc(classes.ISSUE, project_doc["_id"], issue["_id"], {field: ref})
    return project_doc, issue
