"""Issue comments, stored as chat messages in the issue's ``comments`` collection."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import CommentNotFoundError, ThreadReplyNotFoundError
from huly_operations import classes
from huly_operations.shared import clamp_limit, find_project_and_issue, now_ms


def _comment(message: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": message["_id"],
        "body": message.get("message") or "",
        "author_id": message.get("modifiedBy"),
        "created_on": message.get("createdOn"),
        "modified_on": message.get("modifiedOn"),
        "edited_on": message.get("editedOn"),
    }


async def _find_comment(client: HulyClient, issue: dict[str, Any], comment_id: str) -> dict[str, Any]:
    comment = await client.find_one(
        classes.CHAT_MESSAGE,
        {"_id": comment_id, "attachedTo": issue["_id"], "attachedToClass": classes.ISSUE},
    )
    if comment is None:
        raise CommentNotFoundError(comment_id, issue["identifier"])
    return comment


async def list_comments(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    *,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    _, issue = await find_project_and_issue(client, project, issue_identifier)
    messages = await client.find_all(
        classes.CHAT_MESSAGE,
        {"attachedTo": issue["_id"], "attachedToClass": classes.ISSUE},
        limit=clamp_limit(limit),
        sort={"createdOn": classes.ASCENDING},
    )
    return [_comment(message) for message in messages]


async def add_comment(client: HulyClient, project: str, issue_identifier: str, body: str) -> dict[str, Any]:
    if not body or not body.strip():
        raise ValueError("body must not be empty")
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    comment_id = await client.add_collection(
        classes.CHAT_MESSAGE,
        project_doc["_id"],
        issue["_id"],
        classes.ISSUE,
        "comments",
        {"message": body},
    )
    return {"comment_id": comment_id, "issue_identifier": issue["identifier"]}


async def update_comment(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    comment_id: str,
    body: str,
) -> dict[str, Any]:
    if not body or not body.strip():
        raise ValueError("body must not be empty")
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    comment = await _find_comment(client, issue, comment_id)
    result = {"comment_id": comment_id, "issue_identifier": issue["identifier"]}
    if comment.get("message") == body:
        return {**result, "updated": False}
    await client.update_doc(
        classes.CHAT_MESSAGE,
        project_doc["_id"],
        comment_id,
        {"message": body, "editedOn": now_ms()},
    )
    return {**result, "updated": True}


async def delete_comment(client: HulyClient, project: str, issue_identifier: str, comment_id: str) -> dict[str, Any]:
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    await _find_comment(client, issue, comment_id)
    await client.remove_doc(classes.CHAT_MESSAGE, project_doc["_id"], comment_id)
    return {"comment_id": comment_id, "issue_identifier": issue["identifier"], "deleted": True}


# Thread replies hang off a comment through its ``replies`` collection.


def _reply(message: dict[str, Any]) -> dict[str, Any]:
    return {**_comment(message), "comment_id": message.get("attachedTo")}


async def _find_reply(client: HulyClient, comment: dict[str, Any], reply_id: str) -> dict[str, Any]:
    reply = await client.find_one(
        classes.THREAD_MESSAGE,
        {"_id": reply_id, "attachedTo": comment["_id"]},
    )
    if reply is None:
        raise ThreadReplyNotFoundError(reply_id, comment["_id"])
    return reply


async def list_replies(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    comment_id: str,
    *,
    limit: int | None = None,
) -> dict[str, Any]:
    _, issue = await find_project_and_issue(client, project, issue_identifier)
    comment = await _find_comment(client, issue, comment_id)
    replies = await client.find_all(
        classes.THREAD_MESSAGE,
        {"attachedTo": comment["_id"]},
        limit=clamp_limit(limit),
        sort={"createdOn": classes.ASCENDING},
        total=True,
    )
    return {"replies": [_reply(reply) for reply in replies], "total": replies.total}


async def add_reply(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    comment_id: str,
    body: str,
) -> dict[str, Any]:
    if not body or not body.strip():
        raise ValueError("body must not be empty")
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    comment = await _find_comment(client, issue, comment_id)
    reply_id = await client.add_collection(
        classes.THREAD_MESSAGE,
        project_doc["_id"],
        comment["_id"],
        classes.CHAT_MESSAGE,
        "replies",
        {"message": body, "attachments": 0, "objectId": issue["_id"], "objectClass": classes.ISSUE},
    )
    return {"reply_id": reply_id, "comment_id": comment["_id"], "issue_identifier": issue["identifier"]}


async def update_reply(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    comment_id: str,
    reply_id: str,
    body: str,
) -> dict[str, Any]:
    if not body or not body.strip():
        raise ValueError("body must not be empty")
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    comment = await _find_comment(client, issue, comment_id)
    reply = await _find_reply(client, comment, reply_id)
    result = {"reply_id": reply_id, "comment_id": comment_id}
    if reply.get("message") == body:
        return {**result, "updated": False}
    await client.update_doc(
        classes.THREAD_MESSAGE,
        project_doc["_id"],
        reply_id,
        {"message": body, "editedOn": now_ms()},
    )
    return {**result, "updated": True}


async def delete_reply(
    client: HulyClient,
    project: str,
    issue_identifier: str,
    comment_id: str,
    reply_id: str,
) -> dict[str, Any]:
    project_doc, issue = await find_project_and_issue(client, project, issue_identifier)
    comment = await _find_comment(client, issue, comment_id)
    await _find_reply(client, comment, reply_id)
    await client.remove_doc(classes.THREAD_MESSAGE, project_doc["_id"], reply_id)
    return {"reply_id": reply_id, "comment_id": comment_id, "deleted": True}
