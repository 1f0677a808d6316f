"""Issue relations: blocks, is-blocked-by and relates-to.

Relations are stored as arrays of ``{_id, _class}`` entries on the issue
documents themselves. ``blocks`` is recorded on the blocked issue's
``blockedBy``, and ``relates-to`` is mirrored on both issues.
"""

from __future__ import annotations

from typing import Any, Literal

from huly_client import HulyClient
from huly_operations import classes
from huly_operations.shared import (
    find_issue_in_project,
    find_project,
    find_project_and_issue,
    identifier_prefix,
    parse_issue_identifier,
)

RelationType = Literal["blocks", "is-blocked-by", "relates-to"]

# (side holding the array, array field, side referenced by the entry)
_EDGES: dict[str, list[tuple[str, str, str]]] = {
    "blocks": [("target", "blockedBy", "source")],
    "is-blocked-by": [("source", "blockedBy", "target")],
    "relates-to": [("source", "relations", "target"), ("target", "relations", "source")],
}


def _check_relation_type(relation_type: str) -> None:
    if relation_type not in _EDGES:
        allowed = ", ".join(_EDGES)
        raise ValueError(f"relation_type must be one of: {allowed}")


def _related_doc(issue: dict[str, Any]) -> dict[str, str]:
    return {"_id": issue["_id"], "_class": classes.ISSUE}


def _has_relation(entries: list[dict[str, Any]] | None, target_id: str) -> bool:
    return any(entry.get("_id") == target_id for entry in entries or [])


async def _resolve_target(
    client: HulyClient,
    source_project: dict[str, Any],
    target_issue: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    full_identifier, _ = parse_issue_identifier(target_issue, source_project["identifier"])
    prefix = identifier_prefix(full_identifier)
    if prefix is not None and prefix != source_project["identifier"].upper():
        target_project = await find_project(client, prefix)
        return await find_issue_in_project(client, target_project, target_issue), target_project
    return await find_issue_in_project(client, source_project, target_issue), source_project


async def _load(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    target_issue: str,
) -> dict[str, tuple[dict[str, Any], dict[str, Any]]]:
    source_project, source = await find_project_and_issue(client, project, issue_identifier)
    target, target_project = await _resolve_target(client, source_project, target_issue)
    return {"source": (source, source_project), "target": (target, target_project)}


async def add_issue_relation(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    target_issue: str,
    relation_type: RelationType,
) -> dict[str, Any]:
    _check_relation_type(relation_type)
    sides = await _load(client, project, issue_identifier, target_issue)
    edges = _EDGES[relation_type]
    result = {
        "source_issue": sides["source"][0]["identifier"],
        "target_issue": sides["target"][0]["identifier"],
        "relation_type": relation_type,
    }

    holder, field, member = edges[0]
    if _has_relation(sides[holder][0].get(field), sides[member][0]["_id"]):
        return {**result, "added": False}

    for holder, field, member in edges:
        issue, issue_project = sides[holder]
        await client.update_doc(
            classes.ISSUE,
            issue_project["_id"],
            issue["_id"],
            {"$push": {field: _related_doc(sides[member][0])}},
        )
    return {**result, "added": True}


async def remove_issue_relation(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    target_issue: str,
    relation_type: RelationType,
) -> dict[str, Any]:
    _check_relation_type(relation_type)
    sides = await _load(client, project, issue_identifier, target_issue)
    edges = _EDGES[relation_type]
    result = {
        "source_issue": sides["source"][0]["identifier"],
        "target_issue": sides["target"][0]["identifier"],
        "relation_type": relation_type,
    }

    holder, field, member = edges[0]
    if not _has_relation(sides[holder][0].get(field), sides[member][0]["_id"]):
        return {**result, "removed": False}

    for holder, field, member in edges:
        issue, issue_project = sides[holder]
        await client.update_doc(
            classes.ISSUE,
            issue_project["_id"],
            issue["_id"],
            {"$pull": {field: {"_id": sides[member][0]["_id"]}}},
        )
    return {**result, "removed": True}


async def list_issue_relations(client: HulyClient, project: str, issue_identifier: str) -> dict[str, Any]:
    _, issue = await find_project_and_issue(client, project, issue_identifier)
    blocked_by = issue.get("blockedBy") or []
    relations = issue.get("relations") or []
    ids = sorted({entry["_id"] for entry in blocked_by + relations if entry.get("_id")})
    if not ids:
        return {"blocked_by": [], "relations": []}

    issues = await client.find_all(classes.ISSUE, {"_id": {"$in": ids}})
    identifiers = {doc["_id"]: doc.get("identifier") for doc in issues}

    def entry(ref: dict[str, Any]) -> dict[str, Any]:
        return {
            "identifier": identifiers.get(ref["_id"]) or ref["_id"],
            "id": ref["_id"],
            "class": ref.get("_class", classes.ISSUE),
        }

    return {
        "blocked_by": [entry(ref) for ref in blocked_by],
        "relations": [entry(ref) for ref in relations],
    }
