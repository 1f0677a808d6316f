"""Identifier parsing and lookup helpers shared by every operation module."""

from __future__ import annotations

import re
import string
import time
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict

from huly_client import HulyClient
from huly_errors import IssueNotFoundError, ProjectNotFoundError
from huly_operations import classes

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
INITIAL_RANK = "0|hzzzzz:"

PRIORITIES = {
    "no-priority": 0,
    "urgent": 1,
    "high": 2,
    "medium": 3,
    "low": 4,
}
_PRIORITY_NAMES = {value: key for key, value in PRIORITIES.items()}

_FULL_IDENTIFIER = re.compile(r"^([A-Z]+)-(\d+)$", re.IGNORECASE | re.ASCII)
_DIGITS = string.digits + string.ascii_lowercase


class StatusInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    is_done: bool = False
    is_canceled: bool = False


def now_ms() -> int:
    return int(time.time() * 1000)


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    if limit < 1:
        raise ValueError("limit must be a positive integer")
    return min(limit, MAX_LIMIT)


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_priority(value: str) -> int:
    key = value.strip().lower().replace("_", "-").replace(" ", "-")
    if key in ("none", "nopriority"):
        key = "no-priority"
    try:
        return PRIORITIES[key]
    except KeyError:
        allowed = ", ".join(PRIORITIES)
        raise ValueError(f"priority must be one of: {allowed}") from None


def priority_name(value: Any) -> str:
    try:
        return _PRIORITY_NAMES[int(value)]
    except (KeyError, TypeError, ValueError):
        return "no-priority"


def parse_issue_identifier(identifier: str | int, project: str) -> tuple[str, int | None]:
    """Return ``(full_identifier, number)`` for ``HULY-12``, ``12`` or anything else.

    Unrecognised input is returned untouched with no number so callers can
    still try an exact identifier match.
    """

    raw = str(identifier).strip()
    match = _FULL_IDENTIFIER.match(raw)
    if match:
        return f"{match.group(1).upper()}-{match.group(2)}", int(match.group(2))
    if raw.isascii() and raw.isdigit():
        number = int(raw)
        return f"{project.upper()}-{number}", number
    return raw, None


def identifier_prefix(identifier: str) -> str | None:
    match = _FULL_IDENTIFIER.match(str(identifier).strip())
    return match.group(1).upper() if match else None


def _base36(value: str) -> int:
    return int(value, 36)


def _to_base36(number: int, width: int) -> str:
    chars: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        chars.append(_DIGITS[remainder])
    return "".join(reversed(chars)).rjust(width, "0")


def rank_after(previous: str | None) -> str:
    """Produce a rank that sorts after ``previous`` in the platform's ``bucket|value:`` format."""

    if not previous:
        return INITIAL_RANK
    bucket, _, rest = previous.partition("|")
    if not rest:
        return previous + "i"
    value = rest.split(":", 1)[0].lower()
    try:
        bumped = _base36(value) + 8
    except ValueError:
        return f"{previous}i"
    encoded = _to_base36(bumped, len(value))
    if len(encoded) > len(value):
        encoded = value + "i"
    return f"{bucket}|{encoded}:"


async def find_project(client: HulyClient, identifier: str, *, with_type: bool = False) -> dict[str, Any]:
    lookup = {"type": classes.PROJECT_TYPE} if with_type else None
    project = await client.find_one(classes.PROJECT, {"identifier": identifier}, lookup=lookup)
    if project is None:
        raise ProjectNotFoundError(identifier)
    return project


async def find_project_with_statuses(
    client: HulyClient,
    identifier: str,
) -> tuple[dict[str, Any], list[StatusInfo]]:
    project = await find_project(client, identifier, with_type=True)
    project_type = (project.get("$lookup") or {}).get("type") or {}
    refs = [entry.get("_id") for entry in project_type.get("statuses") or [] if entry.get("_id")]

    docs: list[dict[str, Any]] = []
    if refs:
        docs = await client.find_all(classes.STATUS, {"_id": {"$in": refs}})
    if not docs:
        docs = await client.find_all(classes.ISSUE_STATUS, {})

    statuses = [
        StatusInfo(
            id=doc["_id"],
            name=doc.get("name") or "",
            is_done=doc.get("category") == classes.STATUS_CATEGORY_WON,
            is_canceled=doc.get("category") == classes.STATUS_CATEGORY_LOST,
        )
        for doc in docs
    ]
    return project, statuses


async def find_issue_in_project(client: HulyClient, project: dict[str, Any], identifier: str | int) -> dict[str, Any]:
    project_identifier = project["identifier"]
    full_identifier, number = parse_issue_identifier(identifier, project_identifier)
    issue = await client.find_one(classes.ISSUE, {"space": project["_id"], "identifier": full_identifier})
    if issue is None and number is not None:
        issue = await client.find_one(classes.ISSUE, {"space": project["_id"], "number": number})
    if issue is None:
        raise IssueNotFoundError(str(identifier), project_identifier)
    return issue


async def find_project_and_issue(
    client: HulyClient,
    project_identifier: str,
    identifier: str | int,
) -> tuple[dict[str, Any], dict[str, Any]]:
    project = await find_project(client, project_identifier)
    issue = await find_issue_in_project(client, project, identifier)
    return project, issue


def _reversed_name(value: str) -> str | None:
    parts = value.split()
    if len(parts) < 2:
        return None
    return f"{parts[-1]},{' '.join(parts[:-1])}"


async def find_person_by_email_or_name(client: HulyClient, value: str) -> dict[str, Any] | None:
    """Resolve a person by email channel, exact name, then partial name."""

    value = value.strip()
    if not value:
        return None

    channel = await client.find_one(classes.CHANNEL, {"value": value})
    if channel is not None and channel.get("attachedTo"):
        person = await client.find_one(classes.PERSON, {"_id": channel["attachedTo"]})
        if person is not None:
            return person

    candidates = [value]
    reversed_name = _reversed_name(value)
    if reversed_name:
        candidates.append(reversed_name)
    for name in candidates:
        person = await client.find_one(classes.PERSON, {"name": name})
        if person is not None:
            return person

    for name in candidates:
        person = await client.find_one(classes.PERSON, {"name": {"$like": f"%{escape_like(name)}%"}})
        if person is not None:
            return person
    return None


async def find_by_name_or_id(
    client: HulyClient,
    _class: str,
    space: str | None,
    value: str,
    *,
    name_field: str,
) -> dict[str, Any] | None:
    base: dict[str, Any] = {} if space is None else {"space": space}
    doc = await client.find_one(_class, {**base, "_id": value})
    if doc is None:
        doc = await client.find_one(_class, {**base, name_field: value})
    return doc


async def person_names(client: HulyClient, ids: Iterable[str | None]) -> dict[str, str]:
    unique = sorted({person_id for person_id in ids if person_id})
    if not unique:
        return {}
    persons = await client.find_all(classes.PERSON, {"_id": {"$in": unique}})
    return {person["_id"]: display_name(person.get("name")) for person in persons}


def display_name(name: str | None) -> str:
    """Turn the platform's ``Last,First`` person name into ``First Last``."""

    if not name:
        return ""
    if "," in name:
        last, _, first = name.partition(",")
        return f"{first.strip()} {last.strip()}".strip()
    return name
