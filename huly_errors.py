"""Typed errors raised while talking to Huly, plus their MCP error mapping."""

from __future__ import annotations

import enum
import logging
from typing import Any

from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import CallToolResult, TextContent

logger = logging.getLogger(__name__)

__all__ = [
    "ActivityMessageNotFoundError",
    "CommentNotFoundError",
    "ComponentNotFoundError",
    "DocumentNotFoundError",
    "HulyAuthError",
    "HulyConnectionError",
    "HulyError",
    "InvalidStatusError",
    "IssueNotFoundError",
    "IssueTemplateNotFoundError",
    "LabelNotFoundError",
    "McpErrorCode",
    "MilestoneNotFoundError",
    "NotFoundError",
    "PersonNotFoundError",
    "ProjectNotFoundError",
    "ReactionNotFoundError",
    "SavedMessageNotFoundError",
    "TeamspaceNotFoundError",
    "ThreadReplyNotFoundError",
    "error_code_for",
    "format_tool_error",
    "tool_error_result",
]


class McpErrorCode(enum.IntEnum):
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class HulyError(RuntimeError):
    """Base class for every failure reported by the Huly layer."""

    code = McpErrorCode.INTERNAL_ERROR
    prefix: str | None = None

    def __init__(self, message: str, *, cause: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class HulyConnectionError(HulyError):
    """Raised when the platform cannot be reached or rejects a request."""

    prefix = "Connection error"


class HulyAuthError(HulyError):
    """Raised when login or workspace selection is refused."""

    prefix = "Authentication error"


class NotFoundError(HulyError):
    """A lookup by human-readable name or identifier returned nothing."""

    code = McpErrorCode.INVALID_PARAMS


class ProjectNotFoundError(NotFoundError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"Project '{identifier}' not found")
        self.identifier = identifier


class IssueNotFoundError(NotFoundError):
    def __init__(self, identifier: str, project: str) -> None:
        super().__init__(f"Issue '{identifier}' not found in project '{project}'")
        self.identifier = identifier
        self.project = project


class InvalidStatusError(NotFoundError):
    def __init__(self, status: str, project: str) -> None:
        super().__init__(f"Invalid status '{status}' for project '{project}'")
        self.status = status
        self.project = project


class PersonNotFoundError(NotFoundError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"Person '{identifier}' not found")
        self.identifier = identifier


class ComponentNotFoundError(NotFoundError):
    def __init__(self, identifier: str, project: str) -> None:
        super().__init__(f"Component '{identifier}' not found in project '{project}'")
        self.identifier = identifier
        self.project = project


class MilestoneNotFoundError(NotFoundError):
    def __init__(self, identifier: str, project: str) -> None:
        super().__init__(f"Milestone '{identifier}' not found in project '{project}'")
        self.identifier = identifier
        self.project = project


class IssueTemplateNotFoundError(NotFoundError):
    def __init__(self, identifier: str, project: str) -> None:
        super().__init__(f"Issue template '{identifier}' not found in project '{project}'")
        self.identifier = identifier
        self.project = project


class CommentNotFoundError(NotFoundError):
    def __init__(self, comment_id: str, issue_identifier: str) -> None:
        super().__init__(f"Comment '{comment_id}' not found on issue '{issue_identifier}'")
        self.comment_id = comment_id
        self.issue_identifier = issue_identifier


class LabelNotFoundError(NotFoundError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"Label '{identifier}' not found")
        self.identifier = identifier


class ThreadReplyNotFoundError(NotFoundError):
    def __init__(self, reply_id: str, comment_id: str) -> None:
        super().__init__(f"Reply '{reply_id}' not found in thread of comment '{comment_id}'")
        self.reply_id = reply_id
        self.comment_id = comment_id


class TeamspaceNotFoundError(NotFoundError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"Teamspace '{identifier}' not found")
        self.identifier = identifier


class DocumentNotFoundError(NotFoundError):
    def __init__(self, identifier: str, teamspace: str) -> None:
        super().__init__(f"Document '{identifier}' not found in teamspace '{teamspace}'")
        self.identifier = identifier
        self.teamspace = teamspace


class ActivityMessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Activity message '{message_id}' not found")
        self.message_id = message_id


class ReactionNotFoundError(NotFoundError):
    def __init__(self, message_id: str, emoji: str) -> None:
        super().__init__(f"Reaction '{emoji}' not found on message '{message_id}'")
        self.message_id = message_id
        self.emoji = emoji


class SavedMessageNotFoundError(NotFoundError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message '{message_id}' is not saved")
        self.message_id = message_id


def error_code_for(exc: BaseException) -> McpErrorCode:
    if isinstance(exc, HulyError):
        return exc.code
    if isinstance(exc, (ValueError, ToolError)):
        return McpErrorCode.INVALID_PARAMS
    return McpErrorCode.INTERNAL_ERROR


def format_tool_error(exc: BaseException) -> str:
    """Render an exception as the text returned to the MCP client.

    Domain errors keep their message, connection and auth failures get a
    category prefix, and anything unexpected is reduced to a generic message
    so internals never leak to the agent.
    """

    if isinstance(exc, HulyError):
        if exc.prefix:
            return f"{exc.prefix}: {exc.message}"
        return exc.message
    if isinstance(exc, ValueError):
        return f"Invalid parameters: {exc}"
    if isinstance(exc, ToolError):
        return str(exc)
    return "An unexpected error occurred"


def tool_error_result(exc: BaseException) -> CallToolResult:
    """Build the ``isError`` tool result sent to the client, with the error code and tag in ``_meta``."""

    return CallToolResult(
        isError=True,
        content=[TextContent(type="text", text=format_tool_error(exc))],
        _meta={"errorCode": int(error_code_for(exc)), "errorTag": type(exc).__name__},
    )
