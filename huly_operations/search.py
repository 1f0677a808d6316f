"""Global fulltext search over everything the platform indexes."""

from __future__ import annotations

from typing import Any

from huly_client import HulyClient
from huly_operations import classes
from huly_operations.shared import clamp_limit


async def fulltext_search(client: HulyClient, query: str, *, limit: int | None = None) -> dict[str, Any]:
    query = query.strip()
    if not query:
        raise ValueError("query must not be empty")
    docs = await client.find_all(
        classes.DOC,
        {"$search": query},
        limit=clamp_limit(limit),
        sort={"modifiedOn": classes.DESCENDING},
        total=True,
    )
    items = [
        {
            "id": doc["_id"],
            "class": doc.get("_class"),
            "space": doc.get("space"),
            "title": doc.get("title"),
            "modified_on": doc.get("modifiedOn"),
        }
        for doc in docs
    ]
    return {"items": items, "total": docs.total, "query": query}
