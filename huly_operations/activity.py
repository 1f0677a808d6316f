"""Activity feed messages, reactions, saved messages and mentions."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_errors import ActivityMessageNotFoundError, ReactionNotFoundError, SavedMessageNotFoundError
from huly_operations import classes
from huly_operations.shared import clamp_limit


async def _find_message(client: HulyClient, message_id: str) -> dict[str, Any]:
    message = await client.find_one(classes.ACTIVITY_MESSAGE, {"_id": message_id})
    if message is None:
        raise ActivityMessageNotFoundError(message_id)
    return message


async def list_activity(
    client: HulyClient,
    object_id: str,
    object_class: str,
    *,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    messages = await client.find_all(
        classes.ACTIVITY_MESSAGE,
        {"attachedTo": object_id, "attachedToClass": object_class},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    return [
        {
            "id": message["_id"],
            "object_id": message.get("attachedTo"),
            "object_class": message.get("attachedToClass"),
            "modified_by": message.get("modifiedBy"),
            "modified_on": message.get("modifiedOn"),
            "is_pinned": message.get("isPinned"),
            "replies": message.get("replies"),
            "reactions": message.get("reactions"),
            "edited_on": message.get("editedOn"),
        }
        for message in messages
    ]


async def add_reaction(client: HulyClient, message_id: str, emoji: str) -> dict[str, Any]:
    if not emoji or not emoji.strip():
        raise ValueError("emoji must not be empty")
    message = await _find_message(client, message_id)
    reaction_id = await client.add_collection(
        classes.REACTION,
        message["space"],
        message["_id"],
        classes.ACTIVITY_MESSAGE,
        "reactions",
        {"emoji": emoji, "createBy": ""},
    )
    return {"reaction_id": reaction_id, "message_id": message_id}


async def remove_reaction(client: HulyClient, message_id: str, emoji: str) -> dict[str, Any]:
    reaction = await client.find_one(classes.REACTION, {"attachedTo": message_id, "emoji": emoji})
    if reaction is None:
        raise ReactionNotFoundError(message_id, emoji)
    await client.remove_doc(classes.REACTION, reaction["space"], reaction["_id"])
    return {"message_id": message_id, "removed": True}


async def list_reactions(client: HulyClient, message_id: str, *, limit: int | None = None) -> list[dict[str, Any]]:
    reactions = await client.find_all(
        classes.REACTION,
        {"attachedTo": message_id},
        limit=clamp_limit(limit),
    )
    return [
        {
            "id": reaction["_id"],
            "message_id": reaction.get("attachedTo"),
            "emoji": reaction.get("emoji"),
            "created_by": reaction.get("createBy") or None,
        }
        for reaction in reactions
    ]


async def save_message(client: HulyClient, message_id: str) -> dict[str, Any]:
    message = await _find_message(client, message_id)
    saved_id = await client.create_doc(
        classes.SAVED_MESSAGE,
        classes.SPACE_WORKSPACE,
        {"attachedTo": message["_id"]},
    )
    return {"saved_id": saved_id, "message_id": message_id}


async def unsave_message(client: HulyClient, message_id: str) -> dict[str, Any]:
    saved = await client.find_one(classes.SAVED_MESSAGE, {"attachedTo": message_id})
    if saved is None:
        raise SavedMessageNotFoundError(message_id)
    await client.remove_doc(classes.SAVED_MESSAGE, saved["space"], saved["_id"])
    return {"message_id": message_id, "removed": True}


async def list_saved_messages(client: HulyClient, *, limit: int | None = None) -> list[dict[str, Any]]:
    saved = await client.find_all(classes.SAVED_MESSAGE, {}, limit=clamp_limit(limit))
    return [{"id": entry["_id"], "message_id": entry.get("attachedTo")} for entry in saved]


async def list_mentions(client: HulyClient, *, limit: int | None = None) -> list[dict[str, Any]]:
    mentions = await client.find_all(
        classes.USER_MENTION_INFO,
        {},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
    )
    return [
        {
            "id": mention["_id"],
            "message_id": mention.get("attachedTo"),
            "user_id": mention.get("user"),
            "content": mention.get("content"),
        }
        for mention in mentions
    ]
