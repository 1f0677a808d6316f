"""Teamspaces and the documents inside them."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient, generate_id
from huly_errors import DocumentNotFoundError, TeamspaceNotFoundError
from huly_operations import classes
from huly_operations.shared import clamp_limit, rank_after


async def _find_teamspace(client: HulyClient, identifier: str) -> dict[str, Any]:
    teamspace = await client.find_one(classes.TEAMSPACE, {"name": identifier, "archived": False})
    if teamspace is None:
        teamspace = await client.find_one(classes.TEAMSPACE, {"_id": identifier})
    if teamspace is None:
        raise TeamspaceNotFoundError(identifier)
    return teamspace


async def _find_teamspace_and_document(
    client: HulyClient,
    teamspace: str,
    document: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    space = await _find_teamspace(client, teamspace)
    doc = await client.find_one(classes.DOCUMENT, {"space": space["_id"], "title": document})
    if doc is None:
        doc = await client.find_one(classes.DOCUMENT, {"space": space["_id"], "_id": document})
    if doc is None:
        raise DocumentNotFoundError(document, teamspace)
    return space, doc


async def list_teamspaces(
    client: HulyClient,
    *,
    include_archived: bool = False,
    limit: int | None = None,
) -> dict[str, Any]:
    query: dict[str, Any] = {} if include_archived else {"archived": False}
    teamspaces = await client.find_all(
        classes.TEAMSPACE,
        query,
        limit=clamp_limit(limit),
        sort={"name": classes.ASCENDING},
        total=True,
    )
    summaries = [
        {
            "id": teamspace["_id"],
            "name": teamspace.get("name"),
            "description": teamspace.get("description") or None,
            "archived": bool(teamspace.get("archived")),
            "private": bool(teamspace.get("private")),
        }
        for teamspace in teamspaces
    ]
    return {"teamspaces": summaries, "total": teamspaces.total}


async def list_documents(client: HulyClient, teamspace: str, *, limit: int | None = None) -> dict[str, Any]:
    space = await _find_teamspace(client, teamspace)
    documents = await client.find_all(
        classes.DOCUMENT,
        {"space": space["_id"]},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
        total=True,
    )
    summaries = [
        {
            "id": doc["_id"],
            "title": doc.get("title"),
            "teamspace": space.get("name"),
            "modified_on": doc.get("modifiedOn"),
        }
        for doc in documents
    ]
    return {"documents": summaries, "total": documents.total}


async def get_document(client: HulyClient, teamspace: str, document: str) -> dict[str, Any]:
    space, doc = await _find_teamspace_and_document(client, teamspace, document)
    content = await client.fetch_markup(doc.get("_class", classes.DOCUMENT), doc["_id"], "content", doc.get("content"))
    return {
        "id": doc["_id"],
        "title": doc.get("title"),
        "content": content,
        "teamspace": space.get("name"),
        "created_on": doc.get("createdOn"),
        "modified_on": doc.get("modifiedOn"),
    }


async def create_document(
    client: HulyClient,
    teamspace: str,
    title: str,
    *,
    content: str | None = None,
) -> dict[str, Any]:
    if not title or not title.strip():
        raise ValueError("title must not be empty")
    space = await _find_teamspace(client, teamspace)
    document_id = generate_id()
    last_doc = await client.find_one(
        classes.DOCUMENT,
        {"space": space["_id"]},
        sort={"rank": classes.DESCENDING},
    )

    content_ref = None
    if content and content.strip():
        content_ref = await client.upload_markup(classes.DOCUMENT, document_id, "content", content)

    await client.create_doc(
        classes.DOCUMENT,
        space["_id"],
        {
            "title": title.strip(),
            "content": content_ref,
            "parent": classes.DOCUMENT_NO_PARENT,
            "rank": rank_after(last_doc.get("rank") if last_doc else None),
        },
        document_id,
    )
    return {"id": document_id, "title": title.strip()}


async def update_document(
    client: HulyClient,
    teamspace: str,
    document: str,
    *,
    title: str | None = None,
    content: str | None = None,
) -> dict[str, Any]:
    space, doc = await _find_teamspace_and_document(client, teamspace, document)
    operations: dict[str, Any] = {}
    if title is not None:
        if not title.strip():
            raise ValueError("title must not be empty")
        operations["title"] = title.strip()
    if content is not None:
        if content.strip():
            operations["content"] = await client.upload_markup(classes.DOCUMENT, doc["_id"], "content", content)
        else:
            operations["content"] = None

    if not operations:
        return {"id": doc["_id"], "updated": False}
    await client.update_doc(classes.DOCUMENT, space["_id"], doc["_id"], operations)
    return {"id": doc["_id"], "updated": True}


async def delete_document(client: HulyClient, teamspace: str, document: str) -> dict[str, Any]:
    space, doc = await _find_teamspace_and_document(client, teamspace, document)
    await client.remove_doc(classes.DOCUMENT, space["_id"], doc["_id"])
    return {"id": doc["_id"], "deleted": True}
