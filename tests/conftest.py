from __future__ import annotations

import copy
import itertools
import re
from contextlib import asynccontextmanager
from typing import Any, Mapping

import pytest

import app
from huly_client import FindResult
from huly_errors import HulyConnectionError
from huly_operations import classes


def _like_to_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    chars = iter(pattern)
    for char in chars:
        if char == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches(doc: dict[str, Any], query: Mapping[str, Any]) -> bool:
    for key, condition in query.items():
        if key == "$search":
            haystack = f"{doc.get('title') or ''} {doc.get('_search_text') or ''}".lower()
            if str(condition).lower() not in haystack:
                return False
            continue
        value = doc.get(key)
        if isinstance(condition, dict) and condition and all(op.startswith("$") for op in condition):
            for op, arg in condition.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$nin" and value in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
                if op == "$like" and not (isinstance(value, str) and _like_to_regex(arg).match(value)):
                    return False
        elif value != condition:
            return False
    return True


class FakeAccountClient:
    def __init__(self) -> None:
        self.members: list[dict[str, Any]] = [
            {"person": "uuid-john", "role": "OWNER"},
            {"person": "uuid-jane", "role": "USER"},
        ]
        self.person_info: dict[str, dict[str, Any]] = {
            "uuid-john": {
                "name": "John Doe",
                "socialIds": [{"type": "huly", "value": "john"}, {"type": "email", "value": "john@example.com"}],
            },
        }
        self.workspace_info: dict[str, Any] = {
            "uuid": "ws-uuid",
            "name": "Acme",
            "url": "acme",
            "region": "europe",
            "createdOn": 1700000000000,
            "allowReadOnlyGuest": False,
            "allowGuestSignUp": True,
            "versionMajor": 0,
            "versionMinor": 7,
            "versionPatch": 42,
            "mode": "active",
        }
        self.workspaces: list[dict[str, Any]] = [
            {"uuid": "ws-uuid", "name": "Acme", "url": "acme", "region": "europe", "createdOn": 1, "lastVisit": 2},
            {"uuid": "ws-2", "name": "Sandbox", "url": "sandbox", "region": "", "createdOn": 3, "lastVisit": 4},
        ]
        self.profile: dict[str, Any] | None = {
            "uuid": "uuid-john",
            "firstName": "John",
            "lastName": "Doe",
            "city": "Berlin",
        }
        self.regions: list[dict[str, Any]] = [{"region": "europe", "name": "Europe"}, {"region": "", "name": "Default"}]
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    async def get_workspace_members(self) -> list[dict[str, Any]]:
        return [dict(member) for member in self.members]

    async def get_person_info(self, person: str) -> dict[str, Any] | None:
        if person not in self.person_info:
            raise HulyConnectionError(f"No person info for {person}")
        return self.person_info[person]

    async def update_workspace_role(self, account: str, role: str) -> None:
        self.calls.append(("updateWorkspaceRole", (account, role)))

    async def get_workspace_info(self) -> dict[str, Any]:
        return dict(self.workspace_info)

    async def get_user_workspaces(self) -> list[dict[str, Any]]:
        return [dict(ws) for ws in self.workspaces]

    async def create_workspace(self, name: str, region: str | None = None) -> dict[str, Any]:
        self.calls.append(("createWorkspace", (name, region)))
        return {"workspace": "ws-new", "workspaceUrl": name.lower().replace(" ", "-")}

    async def delete_workspace(self) -> None:
        self.calls.append(("deleteWorkspace", ()))

    async def get_user_profile(self, person_uuid: str | None = None) -> dict[str, Any] | None:
        return self.profile

    async def set_my_profile(self, profile: Mapping[str, Any]) -> None:
        self.calls.append(("setMyProfile", (dict(profile),)))

    async def update_allow_read_only_guests(self, allowed: bool) -> None:
        self.calls.append(("updateAllowReadOnlyGuests", (allowed,)))

    async def update_allow_guest_sign_up(self, allowed: bool) -> None:
        self.calls.append(("updateAllowGuestSignUp", (allowed,)))

    async def get_region_info(self) -> list[dict[str, Any]]:
        return list(self.regions)


class FakeHulyClient:
    """In-memory stand-in for ``HulyClient`` that understands the query subset the operations use."""

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.markup: dict[str, str] = {}
        self.updates: list[tuple[str, str, dict[str, Any]]] = []
        self.removed: list[tuple[str, str]] = []
        self.account = FakeAccountClient()
        self._ids = itertools.count(1)
        self._clock = itertools.count(1000)

    def add(self, _class: str, _id: str, **fields: Any) -> dict[str, Any]:
        doc = {"_id": _id, "_class": _class, "modifiedOn": next(self._clock), "createdOn": 0, **fields}
        self.docs[_id] = doc
        return doc

    def of_class(self, _class: str) -> list[dict[str, Any]]:
        if _class == classes.DOC:
            return list(self.docs.values())
        return [doc for doc in self.docs.values() if doc["_class"] == _class]

    async def find_all(
        self,
        _class: str,
        query: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        sort: Mapping[str, int] | None = None,
        lookup: Mapping[str, Any] | None = None,
        projection: Mapping[str, int] | None = None,
        total: bool = False,
    ) -> FindResult:
        docs = [doc for doc in self.of_class(_class) if _matches(doc, query or {})]
        for key, order in reversed(list((sort or {}).items())):
            docs.sort(key=lambda doc: (doc.get(key) is None, doc.get(key) or 0), reverse=order < 0)
        matched = len(docs)
        if limit is not None:
            docs = docs[:limit]
        results = []
        for doc in docs:
            result = copy.deepcopy(doc)
            if lookup:
                result["$lookup"] = {
                    key: copy.deepcopy(self.docs.get(doc.get(key))) for key in lookup if doc.get(key) is not None
                }
            results.append(result)
        return FindResult(results, matched)

    async def find_one(
        self,
        _class: str,
        query: Mapping[str, Any] | None = None,
        *,
        sort: Mapping[str, int] | None = None,
        lookup: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        docs = await self.find_all(_class, query, limit=1, sort=sort, lookup=lookup)
        return docs[0] if docs else None

    async def create_doc(
        self,
        _class: str,
        space: str,
        attributes: Mapping[str, Any],
        object_id: str | None = None,
    ) -> str:
        object_id = object_id or f"generated-{next(self._ids)}"
        self.add(_class, object_id, space=space, **copy.deepcopy(dict(attributes)))
        return object_id

    async def add_collection(
        self,
        _class: str,
        space: str,
        attached_to: str,
        attached_to_class: str,
        collection: str,
        attributes: Mapping[str, Any],
        object_id: str | None = None,
    ) -> str:
        object_id = await self.create_doc(
            _class,
            space,
            {
                **attributes,
                "attachedTo": attached_to,
                "attachedToClass": attached_to_class,
                "collection": collection,
            },
            object_id,
        )
        parent = self.docs.get(attached_to)
        if parent is not None and isinstance(parent.get(collection), int):
            parent[collection] += 1
        return object_id

    async def update_doc(
        self,
        _class: str,
        space: str,
        object_id: str,
        operations: Mapping[str, Any],
        *,
        retrieve: bool = False,
    ) -> dict[str, Any] | None:
        self.updates.append((_class, object_id, copy.deepcopy(dict(operations))))
        doc = self.docs[object_id]
        for key, value in operations.items():
            if key == "$push":
                for field, item in value.items():
                    doc.setdefault(field, []).append(copy.deepcopy(item))
            elif key == "$pull":
                for field, pattern in value.items():
                    doc[field] = [
                        item
                        for item in doc.get(field) or []
                        if not all(item.get(k) == v for k, v in pattern.items())
                    ]
            elif key == "$inc":
                for field, amount in value.items():
                    doc[field] = (doc.get(field) or 0) + amount
            else:
                doc[key] = copy.deepcopy(value)
        doc["modifiedOn"] = next(self._clock)
        return copy.deepcopy(doc) if retrieve else None

    async def remove_doc(self, _class: str, space: str, object_id: str) -> None:
        self.removed.append((_class, object_id))
        self.docs.pop(object_id, None)

    async def upload_markup(self, object_class: str, object_id: str, attribute: str, markdown: str) -> str:
        ref = f"markup-{object_id}-{attribute}-{next(self._ids)}"
        self.markup[ref] = markdown
        return ref

    async def fetch_markup(self, object_class: str, object_id: str, attribute: str, ref: str | None) -> str | None:
        if not ref:
            return None
        return self.markup.get(ref)


def build_workspace() -> FakeHulyClient:
    fake = FakeHulyClient()

    fake.add(
        classes.PROJECT_TYPE,
        "ptype-classic",
        statuses=[
            {"_id": "status-backlog"},
            {"_id": "status-todo"},
            {"_id": "status-done"},
            {"_id": "status-canceled"},
        ],
    )
    fake.add(classes.STATUS, "status-backlog", name="Backlog", category="task:statusCategory:UnStarted")
    fake.add(classes.STATUS, "status-todo", name="Todo", category="task:statusCategory:ToDo")
    fake.add(classes.STATUS, "status-done", name="Done", category=classes.STATUS_CATEGORY_WON)
    fake.add(classes.STATUS, "status-canceled", name="Canceled", category=classes.STATUS_CATEGORY_LOST)

    fake.add(
        classes.PROJECT,
        "project-huly",
        identifier="HULY",
        name="Huly",
        description="Main tracker",
        archived=False,
        sequence=3,
        defaultIssueStatus="status-backlog",
        type="ptype-classic",
        space=classes.SPACE_SPACE,
    )
    fake.add(
        classes.PROJECT,
        "project-ops",
        identifier="OPS",
        name="Operations",
        description="",
        archived=False,
        sequence=1,
        defaultIssueStatus="status-backlog",
        type="ptype-classic",
        space=classes.SPACE_SPACE,
    )
    fake.add(
        classes.PROJECT,
        "project-old",
        identifier="OLD",
        name="Archive",
        archived=True,
        sequence=0,
        defaultIssueStatus="status-backlog",
        type="ptype-classic",
        space=classes.SPACE_SPACE,
    )

    fake.add(classes.PERSON, "person-john", name="Doe,John", space="contact:space:Contacts")
    fake.add(classes.PERSON, "person-jane", name="Smith,Jane", space="contact:space:Contacts")
    fake.add(
        classes.CHANNEL,
        "channel-john",
        attachedTo="person-john",
        attachedToClass=classes.PERSON,
        provider=classes.EMAIL_PROVIDER,
        value="john@example.com",
    )
    fake.add(
        classes.CHANNEL,
        "channel-jane",
        attachedTo="person-jane",
        attachedToClass=classes.PERSON,
        provider=classes.EMAIL_PROVIDER,
        value="jane@example.com",
    )

    fake.add(
        classes.ISSUE,
        "issue-1",
        space="project-huly",
        identifier="HULY-1",
        number=1,
        title="Fix login redirect",
        status="status-todo",
        priority=2,
        assignee="person-john",
        rank="0|hzzzzz:",
        subIssues=0,
        comments=0,
        parents=[],
        description="markup-issue-1",
        _search_text="users bounce back to the login page",
    )
    fake.add(
        classes.ISSUE,
        "issue-2",
        space="project-huly",
        identifier="HULY-2",
        number=2,
        title="Write onboarding docs",
        status="status-done",
        priority=4,
        assignee=None,
        rank="0|i00007:",
        subIssues=0,
        comments=0,
        parents=[],
    )
    fake.add(
        classes.ISSUE,
        "issue-3",
        space="project-huly",
        identifier="HULY-3",
        number=3,
        title="Spike on 100% coverage",
        status="status-canceled",
        priority=0,
        assignee="person-jane",
        rank="0|i0000f:",
        subIssues=0,
        comments=0,
        parents=[],
    )
    fake.add(
        classes.ISSUE,
        "issue-ops-1",
        space="project-ops",
        identifier="OPS-1",
        number=1,
        title="Rotate certificates",
        status="status-todo",
        priority=1,
        assignee=None,
        rank="0|hzzzzz:",
        subIssues=0,
        comments=0,
        parents=[],
    )
    fake.markup["markup-issue-1"] = "Users are sent to **/home** instead of the page they asked for."

    fake.add(
        classes.COMPONENT,
        "component-backend",
        space="project-huly",
        label="Backend",
        description="API and workers",
        lead="person-jane",
        comments=0,
    )
    fake.add(
        classes.MILESTONE,
        "milestone-v1",
        space="project-huly",
        label="v1.0",
        description="First release",
        status=0,
        targetDate=1767225600000,
        comments=0,
    )
    fake.add(
        classes.ISSUE_TEMPLATE,
        "template-bug",
        space="project-huly",
        title="Bug report",
        description="Steps to reproduce",
        priority=1,
        assignee="person-jane",
        component="component-backend",
        estimation=2,
        children=[],
        comments=0,
    )

    fake.add(classes.TEAMSPACE, "teamspace-eng", name="Engineering", description="", archived=False, private=False)
    fake.add(classes.TEAMSPACE, "teamspace-old", name="Legacy", description="", archived=True, private=True)
    fake.add(
        classes.DOCUMENT,
        "doc-runbook",
        space="teamspace-eng",
        title="Runbook",
        content="markup-runbook",
        parent=classes.DOCUMENT_NO_PARENT,
        rank="0|hzzzzz:",
    )
    fake.markup["markup-runbook"] = "# Runbook\n\nRestart the workers."

    fake.add(
        classes.ACTIVITY_MESSAGE,
        "message-1",
        space="project-huly",
        attachedTo="issue-1",
        attachedToClass=classes.ISSUE,
        isPinned=False,
        replies=0,
        reactions=0,
    )
    return fake


@pytest.fixture()
def huly(monkeypatch) -> FakeHulyClient:
    fake = build_workspace()

    @asynccontextmanager
    async def fake_client():
        yield fake

    monkeypatch.setattr(app, "get_huly_client", fake_client)
    return fake


@pytest.fixture()
def anyio_backend():
    return "asyncio"
