import datetime
import functools
import logging
import sys
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Literal

import anyio
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import PlainTextResponse
from starlette.routing import Mount, Route

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.transport_security import TransportSecuritySettings
from mcp.types import ToolAnnotations

from account_client import AccountClient
from huly_client import close_huly_client, get_huly_client
from huly_config import ConfigError, load_config, load_server_settings
from huly_errors import HulyConnectionError, HulyError, format_tool_error, tool_error_result
from huly_operations import (
    activity,
    comments,
    components,
    contacts,
    documents,
    issues,
    labels,
    milestones,
    projects,
    relations,
    search,
    templates,
    workspace,
)

logger = logging.getLogger(__name__)

SETTINGS = load_server_settings()

TOOL_CATEGORIES = (
    "projects",
    "issues",
    "labels",
    "relations",
    "comments",
    "milestones",
    "components",
    "templates",
    "activity",
    "documents",
    "workspace",
    "contacts",
    "search",
)


def _enabled_categories(requested: frozenset[str] | None) -> frozenset[str]:
    if not requested:
        return frozenset(TOOL_CATEGORIES)
    for name in sorted(requested - set(TOOL_CATEGORIES)):
        logger.warning("Ignoring unknown toolset %r; known toolsets: %s", name, ", ".join(TOOL_CATEGORIES))
    return frozenset(requested & set(TOOL_CATEGORIES))


ENABLED_CATEGORIES = _enabled_categories(SETTINGS.toolsets)

# Configure allowed hosts for DNS rebinding protection
_allowed_hosts = ["localhost:*", "127.0.0.1:*", "[::1]:*"]
_allowed_origins = ["http://localhost:*", "http://127.0.0.1:*"]
if SETTINGS.allowed_host:
    _allowed_hosts.insert(0, f"{SETTINGS.allowed_host}:*")
    _allowed_origins.insert(0, f"https://{SETTINGS.allowed_host}:*")


def _root_cause(exc: BaseException) -> BaseException:
    while isinstance(exc, ToolError) and exc.__cause__ is not None:
        exc = exc.__cause__
    return exc


class HulyFastMCP(FastMCP):
    """FastMCP server whose failed tool calls carry ``errorCode`` and ``errorTag`` in ``_meta``."""

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        try:
            return await super().call_tool(name, arguments)
        except ToolError as exc:
            return tool_error_result(_root_cause(exc))


mcp = HulyFastMCP(
    "Huly MCP",
    sse_path="/",
    streamable_http_path="/",
    transport_security=TransportSecuritySettings(
        enable_dns_rebinding_protection=True,
        allowed_hosts=_allowed_hosts,
        allowed_origins=_allowed_origins,
    ),
)

READ_ONLY = ToolAnnotations(openWorldHint=True, readOnlyHint=True, idempotentHint=True)
CREATE = ToolAnnotations(openWorldHint=True, idempotentHint=False, destructiveHint=False)
UPDATE = ToolAnnotations(openWorldHint=True, idempotentHint=True, destructiveHint=False)
DELETE = ToolAnnotations(openWorldHint=True, idempotentHint=True, destructiveHint=True)

ToolFunc = Callable[..., Awaitable[Any]]


def _huly_tool(category: str, *, name: str, annotations: ToolAnnotations) -> Callable[[ToolFunc], ToolFunc]:
    """Register a tool when its category is enabled and map Huly errors to tool errors."""

    def decorator(func: ToolFunc) -> ToolFunc:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return await func(*args, **kwargs)
            except HulyError as exc:
                logger.warning("Tool %s failed: %s", name, exc)
                raise ToolError(format_tool_error(exc)) from exc
            except (ValueError, ToolError):
                raise
            except Exception as exc:  # pragma: no cover - safety net
                logger.exception("Unexpected error in tool %s", name)
                raise ToolError(format_tool_error(exc)) from exc

        if category in ENABLED_CATEGORIES:
            mcp.tool(name=name, annotations=annotations)(wrapper)
        return wrapper

    return decorator


def _parse_timestamp(value: str | None, field: str) -> int | None:
    """Accept ``YYYY-MM-DD`` or an ISO 8601 datetime and return Unix milliseconds."""

    if value is None:
        return None
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"{field} must be an ISO 8601 date (YYYY-MM-DD) or datetime") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return int(parsed.timestamp() * 1000)


def _require_account(client: Any) -> AccountClient:
    account = getattr(client, "account", None)
    if account is None:
        raise HulyConnectionError("Account service is not available")
    return account


# Projects


@_huly_tool("projects", name="huly.projects.list", annotations=READ_ONLY)
async def huly_projects_list(include_archived: bool = False, limit: int | None = None) -> dict[str, Any]:
    """List Huly projects, sorted by name. Archived projects are hidden unless requested."""

    async with get_huly_client() as client:
        return await projects.list_projects(client, include_archived=include_archived, limit=limit)


# Issues


@_huly_tool("issues", name="huly.issues.list", annotations=READ_ONLY)
async def huly_issues_list(
    project: str,
    status: str | None = None,
    assignee: str | None = None,
    title_search: str | None = None,
    description_search: str | None = None,
    component: str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """List issues in a project, most recently modified first.

    ``status`` accepts ``open``, ``done``, ``canceled`` or a status name.
    ``assignee`` accepts an email or a person name.
    """

    async with get_huly_client() as client:
        return await issues.list_issues(
            client,
            project,
            status=status,
            assignee=assignee,
            title_search=title_search,
            description_search=description_search,
            component=component,
            limit=limit,
        )


@_huly_tool("issues", name="huly.issues.get", annotations=READ_ONLY)
async def huly_issues_get(project: str, identifier: str) -> dict[str, Any]:
    """Fetch one issue by identifier (``HULY-123`` or ``123``) with its description as markdown."""

    async with get_huly_client() as client:
        return await issues.get_issue(client, project, identifier)


@_huly_tool("issues", name="huly.issues.create", annotations=CREATE)
async def huly_issues_create(
    project: str,
    title: str,
    description: str | None = None,
    priority: Literal["urgent", "high", "medium", "low", "no-priority"] | None = None,
    assignee: str | None = None,
    status: str | None = None,
    parent_issue: str | None = None,
    component: str | None = None,
    milestone: str | None = None,
    due_date: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    """Create an issue (or a sub-issue when ``parent_issue`` is set) and return its identifier."""

    due = _parse_timestamp(due_date, "due_date")
    async with get_huly_client() as client:
        return await issues.create_issue(
            client,
            project,
            title,
            description=description,
            priority=priority,
            assignee=assignee,
            status=status,
            parent_issue=parent_issue,
            component=component,
            milestone=milestone,
            due_date=due,
            estimation=estimation,
        )


@_huly_tool("issues", name="huly.issues.update", annotations=UPDATE)
async def huly_issues_update(
    project: str,
    identifier: str,
    title: str | None = None,
    description: str | None = None,
    priority: Literal["urgent", "high", "medium", "low", "no-priority"] | None = None,
    assignee: str | None = None,
    status: str | None = None,
    component: str | None = None,
    milestone: str | None = None,
    due_date: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    """Update only the provided issue fields.

    Pass an empty string for ``description`` to clear it, or for ``assignee``,
    ``component`` or ``milestone`` to unset them.
    """

    due = _parse_timestamp(due_date, "due_date")
    async with get_huly_client() as client:
        return await issues.update_issue(
            client,
            project,
            identifier,
            title=title,
            description=description,
            priority=priority,
            assignee=assignee,
            status=status,
            component=component,
            milestone=milestone,
            due_date=due,
            estimation=estimation,
        )


@_huly_tool("issues", name="huly.issues.delete", annotations=DELETE)
async def huly_issues_delete(project: str, identifier: str) -> dict[str, Any]:
    """Permanently delete an issue."""

    async with get_huly_client() as client:
        return await issues.delete_issue(client, project, identifier)


@_huly_tool("issues", name="huly.issues.add_label", annotations=UPDATE)
async def huly_issues_add_label(project: str, identifier: str, label: str, color: int = 0) -> dict[str, Any]:
    """Attach a label to an issue, creating the label if needed. Adding an existing label is a no-op."""

    async with get_huly_client() as client:
        return await issues.add_label(client, project, identifier, label, color=color)


@_huly_tool("issues", name="huly.issues.remove_label", annotations=UPDATE)
async def huly_issues_remove_label(project: str, identifier: str, label: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await issues.remove_label(client, project, identifier, label)


# Labels


@_huly_tool("labels", name="huly.labels.list", annotations=READ_ONLY)
async def huly_labels_list(limit: int | None = None) -> list[dict[str, Any]]:
    """List issue label definitions, newest first. Labels are global, not per project."""

    async with get_huly_client() as client:
        return await labels.list_labels(client, limit=limit)


@_huly_tool("labels", name="huly.labels.create", annotations=CREATE)
async def huly_labels_create(title: str, color: int | None = None, description: str | None = None) -> dict[str, Any]:
    """Create a label definition (color 0-9). An existing label with the same title is returned as is."""

    async with get_huly_client() as client:
        return await labels.create_label(client, title, color=color, description=description)


@_huly_tool("labels", name="huly.labels.update", annotations=UPDATE)
async def huly_labels_update(
    label: str,
    title: str | None = None,
    color: int | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    """Update a label found by id or title. Only the fields given are changed."""

    async with get_huly_client() as client:
        return await labels.update_label(client, label, title=title, color=color, description=description)


@_huly_tool("labels", name="huly.labels.delete", annotations=DELETE)
async def huly_labels_delete(label: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await labels.delete_label(client, label)


# Relations


@_huly_tool("relations", name="huly.relations.add", annotations=UPDATE)
async def huly_relations_add(
    project: str,
    issue_identifier: str,
    target_issue: str,
    relation_type: Literal["blocks", "is-blocked-by", "relates-to"],
) -> dict[str, Any]:
    """Relate two issues. The target may belong to another project (use its full identifier)."""

    async with get_huly_client() as client:
        return await relations.add_issue_relation(client, project, issue_identifier, target_issue, relation_type)


@_huly_tool("relations", name="huly.relations.remove", annotations=UPDATE)
async def huly_relations_remove(
    project: str,
    issue_identifier: str,
    target_issue: str,
    relation_type: Literal["blocks", "is-blocked-by", "relates-to"],
) -> dict[str, Any]:
    """Remove a relation between two issues."""

    async with get_huly_client() as client:
        return await relations.remove_issue_relation(client, project, issue_identifier, target_issue, relation_type)


@_huly_tool("relations", name="huly.relations.list", annotations=READ_ONLY)
async def huly_relations_list(project: str, issue_identifier: str) -> dict[str, Any]:
    """List the issues blocking this issue and the issues related to it."""

    async with get_huly_client() as client:
        return await relations.list_issue_relations(client, project, issue_identifier)


# Comments


@_huly_tool("comments", name="huly.comments.list", annotations=READ_ONLY)
async def huly_comments_list(project: str, issue_identifier: str, limit: int | None = None) -> list[dict[str, Any]]:
    """List comments on an issue, oldest first."""

    async with get_huly_client() as client:
        return await comments.list_comments(client, project, issue_identifier, limit=limit)


@_huly_tool("comments", name="huly.comments.add", annotations=CREATE)
async def huly_comments_add(project: str, issue_identifier: str, body: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await comments.add_comment(client, project, issue_identifier, body)


@_huly_tool("comments", name="huly.comments.update", annotations=UPDATE)
async def huly_comments_update(project: str, issue_identifier: str, comment_id: str, body: str) -> dict[str, Any]:
    """Replace a comment's body. An identical body leaves the comment untouched."""

    async with get_huly_client() as client:
        return await comments.update_comment(client, project, issue_identifier, comment_id, body)


@_huly_tool("comments", name="huly.comments.delete", annotations=DELETE)
async def huly_comments_delete(project: str, issue_identifier: str, comment_id: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await comments.delete_comment(client, project, issue_identifier, comment_id)


@_huly_tool("comments", name="huly.comments.list_replies", annotations=READ_ONLY)
async def huly_comments_list_replies(
    project: str,
    issue_identifier: str,
    comment_id: str,
    limit: int | None = None,
) -> dict[str, Any]:
    """List the thread replies under a comment, oldest first."""

    async with get_huly_client() as client:
        return await comments.list_replies(client, project, issue_identifier, comment_id, limit=limit)


@_huly_tool("comments", name="huly.comments.add_reply", annotations=CREATE)
async def huly_comments_add_reply(project: str, issue_identifier: str, comment_id: str, body: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await comments.add_reply(client, project, issue_identifier, comment_id, body)


@_huly_tool("comments", name="huly.comments.update_reply", annotations=UPDATE)
async def huly_comments_update_reply(
    project: str,
    issue_identifier: str,
    comment_id: str,
    reply_id: str,
    body: str,
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await comments.update_reply(client, project, issue_identifier, comment_id, reply_id, body)


@_huly_tool("comments", name="huly.comments.delete_reply", annotations=DELETE)
async def huly_comments_delete_reply(
    project: str,
    issue_identifier: str,
    comment_id: str,
    reply_id: str,
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await comments.delete_reply(client, project, issue_identifier, comment_id, reply_id)


# Milestones


@_huly_tool("milestones", name="huly.milestones.list", annotations=READ_ONLY)
async def huly_milestones_list(project: str, limit: int | None = None) -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await milestones.list_milestones(client, project, limit=limit)


@_huly_tool("milestones", name="huly.milestones.get", annotations=READ_ONLY)
async def huly_milestones_get(project: str, milestone: str) -> dict[str, Any]:
    """Fetch a milestone by id or label."""

    async with get_huly_client() as client:
        return await milestones.get_milestone(client, project, milestone)


@_huly_tool("milestones", name="huly.milestones.create", annotations=CREATE)
async def huly_milestones_create(
    project: str,
    label: str,
    target_date: str,
    description: str | None = None,
) -> dict[str, Any]:
    """Create a planned milestone. ``target_date`` is an ISO 8601 date."""

    target = _parse_timestamp(target_date, "target_date")
    async with get_huly_client() as client:
        return await milestones.create_milestone(client, project, label, target, description=description)


@_huly_tool("milestones", name="huly.milestones.update", annotations=UPDATE)
async def huly_milestones_update(
    project: str,
    milestone: str,
    label: str | None = None,
    description: str | None = None,
    target_date: str | None = None,
    status: Literal["planned", "in-progress", "completed", "canceled"] | None = None,
) -> dict[str, Any]:
    target = _parse_timestamp(target_date, "target_date")
    async with get_huly_client() as client:
        return await milestones.update_milestone(
            client,
            project,
            milestone,
            label=label,
            description=description,
            target_date=target,
            status=status,
        )


@_huly_tool("milestones", name="huly.milestones.set_for_issue", annotations=UPDATE)
async def huly_milestones_set_for_issue(project: str, identifier: str, milestone: str | None = None) -> dict[str, Any]:
    """Assign an issue to a milestone, or clear it when ``milestone`` is omitted."""

    async with get_huly_client() as client:
        return await milestones.set_issue_milestone(client, project, identifier, milestone)


@_huly_tool("milestones", name="huly.milestones.delete", annotations=DELETE)
async def huly_milestones_delete(project: str, milestone: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await milestones.delete_milestone(client, project, milestone)


# Components


@_huly_tool("components", name="huly.components.list", annotations=READ_ONLY)
async def huly_components_list(project: str, limit: int | None = None) -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await components.list_components(client, project, limit=limit)


@_huly_tool("components", name="huly.components.get", annotations=READ_ONLY)
async def huly_components_get(project: str, component: str) -> dict[str, Any]:
    """Fetch a component by id or label."""

    async with get_huly_client() as client:
        return await components.get_component(client, project, component)


@_huly_tool("components", name="huly.components.create", annotations=CREATE)
async def huly_components_create(
    project: str,
    label: str,
    description: str | None = None,
    lead: str | None = None,
) -> dict[str, Any]:
    """Create a component. ``lead`` accepts an email or a person name."""

    async with get_huly_client() as client:
        return await components.create_component(client, project, label, description=description, lead=lead)


@_huly_tool("components", name="huly.components.update", annotations=UPDATE)
async def huly_components_update(
    project: str,
    component: str,
    label: str | None = None,
    description: str | None = None,
    lead: str | None = None,
) -> dict[str, Any]:
    """Update a component. Pass an empty ``lead`` to remove the lead."""

    async with get_huly_client() as client:
        return await components.update_component(
            client, project, component, label=label, description=description, lead=lead
        )


@_huly_tool("components", name="huly.components.set_for_issue", annotations=UPDATE)
async def huly_components_set_for_issue(project: str, identifier: str, component: str | None = None) -> dict[str, Any]:
    """Set an issue's component, or clear it when ``component`` is omitted."""

    async with get_huly_client() as client:
        return await components.set_issue_component(client, project, identifier, component)


@_huly_tool("components", name="huly.components.delete", annotations=DELETE)
async def huly_components_delete(project: str, component: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await components.delete_component(client, project, component)


# Issue templates


@_huly_tool("templates", name="huly.templates.list", annotations=READ_ONLY)
async def huly_templates_list(project: str, limit: int | None = None) -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await templates.list_issue_templates(client, project, limit=limit)


@_huly_tool("templates", name="huly.templates.get", annotations=READ_ONLY)
async def huly_templates_get(project: str, template: str) -> dict[str, Any]:
    """Fetch an issue template by id or title."""

    async with get_huly_client() as client:
        return await templates.get_issue_template(client, project, template)


@_huly_tool("templates", name="huly.templates.create", annotations=CREATE)
async def huly_templates_create(
    project: str,
    title: str,
    description: str | None = None,
    priority: Literal["urgent", "high", "medium", "low", "no-priority"] | None = None,
    assignee: str | None = None,
    component: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await templates.create_issue_template(
            client,
            project,
            title,
            description=description,
            priority=priority,
            assignee=assignee,
            component=component,
            estimation=estimation,
        )


@_huly_tool("templates", name="huly.templates.update", annotations=UPDATE)
async def huly_templates_update(
    project: str,
    template: str,
    title: str | None = None,
    description: str | None = None,
    priority: Literal["urgent", "high", "medium", "low", "no-priority"] | None = None,
    assignee: str | None = None,
    component: str | None = None,
    estimation: float | None = None,
) -> dict[str, Any]:
    """Update a template. Empty ``assignee`` or ``component`` clears that field."""

    async with get_huly_client() as client:
        return await templates.update_issue_template(
            client,
            project,
            template,
            title=title,
            description=description,
            priority=priority,
            assignee=assignee,
            component=component,
            estimation=estimation,
        )


@_huly_tool("templates", name="huly.templates.delete", annotations=DELETE)
async def huly_templates_delete(project: str, template: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await templates.delete_issue_template(client, project, template)


@_huly_tool("templates", name="huly.templates.create_issue", annotations=CREATE)
async def huly_templates_create_issue(
    project: str,
    template: str,
    title: str | None = None,
    description: str | None = None,
    priority: Literal["urgent", "high", "medium", "low", "no-priority"] | None = None,
    assignee: str | None = None,
    status: str | None = None,
) -> dict[str, Any]:
    """Create an issue from a template. Arguments given here override the template's values."""

    async with get_huly_client() as client:
        return await templates.create_issue_from_template(
            client,
            project,
            template,
            title=title,
            description=description,
            priority=priority,
            assignee=assignee,
            status=status,
        )


# Activity


@_huly_tool("activity", name="huly.activity.list", annotations=READ_ONLY)
async def huly_activity_list(object_id: str, object_class: str, limit: int | None = None) -> list[dict[str, Any]]:
    """List activity messages for a document, e.g. an issue with ``tracker:class:Issue``."""

    async with get_huly_client() as client:
        return await activity.list_activity(client, object_id, object_class, limit=limit)


@_huly_tool("activity", name="huly.activity.add_reaction", annotations=CREATE)
async def huly_activity_add_reaction(message_id: str, emoji: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await activity.add_reaction(client, message_id, emoji)


@_huly_tool("activity", name="huly.activity.remove_reaction", annotations=DELETE)
async def huly_activity_remove_reaction(message_id: str, emoji: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await activity.remove_reaction(client, message_id, emoji)


@_huly_tool("activity", name="huly.activity.list_reactions", annotations=READ_ONLY)
async def huly_activity_list_reactions(message_id: str, limit: int | None = None) -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await activity.list_reactions(client, message_id, limit=limit)


@_huly_tool("activity", name="huly.activity.save_message", annotations=CREATE)
async def huly_activity_save_message(message_id: str) -> dict[str, Any]:
    """Bookmark an activity message."""

    async with get_huly_client() as client:
        return await activity.save_message(client, message_id)


@_huly_tool("activity", name="huly.activity.unsave_message", annotations=DELETE)
async def huly_activity_unsave_message(message_id: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await activity.unsave_message(client, message_id)


@_huly_tool("activity", name="huly.activity.list_saved", annotations=READ_ONLY)
async def huly_activity_list_saved(limit: int | None = None) -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await activity.list_saved_messages(client, limit=limit)


@_huly_tool("activity", name="huly.activity.list_mentions", annotations=READ_ONLY)
async def huly_activity_list_mentions(limit: int | None = None) -> list[dict[str, Any]]:
    """List mentions of the current user, newest first."""

    async with get_huly_client() as client:
        return await activity.list_mentions(client, limit=limit)


# Documents


@_huly_tool("documents", name="huly.documents.list_teamspaces", annotations=READ_ONLY)
async def huly_documents_list_teamspaces(include_archived: bool = False, limit: int | None = None) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await documents.list_teamspaces(client, include_archived=include_archived, limit=limit)


@_huly_tool("documents", name="huly.documents.list", annotations=READ_ONLY)
async def huly_documents_list(teamspace: str, limit: int | None = None) -> dict[str, Any]:
    """List documents in a teamspace (by name or id), most recently modified first."""

    async with get_huly_client() as client:
        return await documents.list_documents(client, teamspace, limit=limit)


@_huly_tool("documents", name="huly.documents.get", annotations=READ_ONLY)
async def huly_documents_get(teamspace: str, document: str) -> dict[str, Any]:
    """Fetch a document by title or id with its content as markdown."""

    async with get_huly_client() as client:
        return await documents.get_document(client, teamspace, document)


@_huly_tool("documents", name="huly.documents.create", annotations=CREATE)
async def huly_documents_create(teamspace: str, title: str, content: str | None = None) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await documents.create_document(client, teamspace, title, content=content)


@_huly_tool("documents", name="huly.documents.update", annotations=UPDATE)
async def huly_documents_update(
    teamspace: str,
    document: str,
    title: str | None = None,
    content: str | None = None,
) -> dict[str, Any]:
    """Update a document. An empty ``content`` clears the body."""

    async with get_huly_client() as client:
        return await documents.update_document(client, teamspace, document, title=title, content=content)


@_huly_tool("documents", name="huly.documents.delete", annotations=DELETE)
async def huly_documents_delete(teamspace: str, document: str) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await documents.delete_document(client, teamspace, document)


# Workspace


@_huly_tool("workspace", name="huly.workspace.members", annotations=READ_ONLY)
async def huly_workspace_members(limit: int | None = None) -> list[dict[str, Any]]:
    """List workspace members with their role, name and email."""

    async with get_huly_client() as client:
        return await workspace.list_workspace_members(_require_account(client), limit=limit)


@_huly_tool("workspace", name="huly.workspace.update_member_role", annotations=UPDATE)
async def huly_workspace_update_member_role(
    account_id: str,
    role: Literal["READONLYGUEST", "DocGuest", "GUEST", "USER", "MAINTAINER", "OWNER", "ADMIN"],
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await workspace.update_member_role(_require_account(client), account_id, role)


@_huly_tool("workspace", name="huly.workspace.info", annotations=READ_ONLY)
async def huly_workspace_info() -> dict[str, Any]:
    async with get_huly_client() as client:
        return await workspace.get_workspace_info(_require_account(client))


@_huly_tool("workspace", name="huly.workspace.list", annotations=READ_ONLY)
async def huly_workspace_list(limit: int | None = None) -> list[dict[str, Any]]:
    """List the workspaces the configured account belongs to."""

    async with get_huly_client() as client:
        return await workspace.list_workspaces(_require_account(client), limit=limit)


@_huly_tool("workspace", name="huly.workspace.create", annotations=CREATE)
async def huly_workspace_create(name: str, region: str | None = None) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await workspace.create_workspace(_require_account(client), name, region=region)


@_huly_tool("workspace", name="huly.workspace.delete", annotations=DELETE)
async def huly_workspace_delete() -> dict[str, Any]:
    """Delete the configured workspace. This cannot be undone."""

    async with get_huly_client() as client:
        return await workspace.delete_workspace(_require_account(client))


@_huly_tool("workspace", name="huly.workspace.profile", annotations=READ_ONLY)
async def huly_workspace_profile(person_uuid: str | None = None) -> dict[str, Any] | None:
    async with get_huly_client() as client:
        return await workspace.get_user_profile(_require_account(client), person_uuid)


@_huly_tool("workspace", name="huly.workspace.update_profile", annotations=UPDATE)
async def huly_workspace_update_profile(
    bio: str | None = None,
    city: str | None = None,
    country: str | None = None,
    website: str | None = None,
    social_links: dict[str, str] | None = None,
    is_public: bool | None = None,
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await workspace.update_user_profile(
            _require_account(client),
            bio=bio,
            city=city,
            country=country,
            website=website,
            social_links=social_links,
            is_public=is_public,
        )


@_huly_tool("workspace", name="huly.workspace.guest_settings", annotations=UPDATE)
async def huly_workspace_guest_settings(
    allow_read_only: bool | None = None,
    allow_sign_up: bool | None = None,
) -> dict[str, Any]:
    async with get_huly_client() as client:
        return await workspace.update_guest_settings(
            _require_account(client), allow_read_only=allow_read_only, allow_sign_up=allow_sign_up
        )


@_huly_tool("workspace", name="huly.workspace.regions", annotations=READ_ONLY)
async def huly_workspace_regions() -> list[dict[str, Any]]:
    async with get_huly_client() as client:
        return await workspace.get_regions(_require_account(client))


# Contacts


@_huly_tool("contacts", name="huly.contacts.list_persons", annotations=READ_ONLY)
async def huly_contacts_list_persons(name_search: str | None = None, limit: int | None = None) -> list[dict[str, Any]]:
    """List people with their email, to help pick assignees and component leads."""

    async with get_huly_client() as client:
        return await contacts.list_persons(client, name_search=name_search, limit=limit)


# Search


@_huly_tool("search", name="huly.search.fulltext", annotations=READ_ONLY)
async def huly_search_fulltext(query: str, limit: int | None = None) -> dict[str, Any]:
    """Search everything the workspace indexes (issues, documents, messages), newest first."""

    async with get_huly_client() as client:
        return await search.fulltext_search(client, query, limit=limit)


# HTTP transport

# Prebuild sub-apps so we can wire their lifespans into the parent Starlette app.
sse_subapp = mcp.sse_app()
streamable_http_subapp = mcp.streamable_http_app()
streamable_http_subapp.router.redirect_slashes = False


class _MountRootMiddleware:
    """Rewrite ``/mcp`` and ``/sse`` to their mounted root so no redirect drops session headers."""

    def __init__(self, app: Any, prefixes: tuple[str, ...] = ("/mcp", "/sse")) -> None:
        self.app = app
        self.prefixes = prefixes

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        if scope["type"] == "http" and scope.get("path") in self.prefixes:
            scope = dict(scope)
            scope["path"] = scope["path"] + "/"
            scope["raw_path"] = scope["path"].encode()
        await self.app(scope, receive, send)


async def healthz(_):
    return PlainTextResponse("ok", status_code=200)


async def root(_):
    return PlainTextResponse("Huly MCP up", status_code=200)


@asynccontextmanager
async def lifespan(_app):
    # The streamable HTTP transport requires its session manager task group to be running.
    try:
        async with mcp.session_manager.run():
            yield
    finally:
        await close_huly_client()


app = Starlette(
    routes=[
        Route("/", root),
        Route("/healthz", healthz),
        Mount("/sse", app=sse_subapp),
        Mount("/mcp", app=streamable_http_subapp),
    ],
    middleware=[Middleware(_MountRootMiddleware)],
    lifespan=lifespan,
)
app.router.redirect_slashes = False


async def _run_stdio() -> None:
    try:
        await mcp.run_stdio_async()
    finally:
        await close_huly_client()


def main() -> None:
    logging.basicConfig(
        level=SETTINGS.log_level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        load_config()
    except ConfigError as exc:
        logger.error("Invalid Huly configuration: %s", exc)
        raise SystemExit(1) from exc

    logger.info("Starting Huly MCP with %s transport", SETTINGS.transport)
    if SETTINGS.transport == "http":
        import uvicorn

        uvicorn.run(app, host=SETTINGS.http_host, port=SETTINGS.http_port)
    else:
        anyio.run(_run_stdio)


if __name__ == "__main__":
    main()
