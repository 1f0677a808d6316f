"""Conversion between markdown and Huly's ProseMirror markup documents."""

from __future__ import annotations

import json
import re
from typing import Any

__all__ = [
    "empty_markup",
    "markdown_to_markup",
    "markup_to_markdown",
]

_FENCE = re.compile(r"^```\s*([\w+-]*)\s*$")
_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_RULE = re.compile(r"^(?:\*\s*){3,}$|^(?:-\s*){3,}$|^(?:_\s*){3,}$")
_BULLET = re.compile(r"^\s*[-*+]\s+(.*)$")
_ORDERED = re.compile(r"^\s*(\d+)[.)]\s+(.*)$")
_QUOTE = re.compile(r"^\s*>\s?(.*)$")
_INLINE = re.compile(
    r"`(?P<code>[^`]+)`"
    r"|\*\*(?P<bold>.+?)\*\*"
    r"|__(?P<bold_alt>.+?)__"
    r"|\*(?P<italic>[^*]+?)\*"
    r"|(?<!\w)_(?P<italic_alt>[^_]+?)_(?!\w)"
    r"|\[(?P<label>[^\]]+)\]\((?P<href>[^)\s]+)\)"
)


def empty_markup() -> dict[str, Any]:
    return {"type": "doc", "content": [{"type": "paragraph", "content": []}]}


def _text(value: str, marks: list[dict[str, Any]]) -> dict[str, Any]:
    node: dict[str, Any] = {"type": "text", "text": value}
    if marks:
        node["marks"] = [dict(mark) for mark in marks]
    return node


def _parse_inline(text: str, marks: list[dict[str, Any]] | None = None) -> list[dict[str, Any]]:
    marks = marks or []
    nodes: list[dict[str, Any]] = []
    position = 0
    for match in _INLINE.finditer(text):
        if match.start() > position:
            nodes.append(_text(text[position : match.start()], marks))
        groups = match.groupdict()
        if groups["code"] is not None:
            nodes.append(_text(groups["code"], marks + [{"type": "code"}]))
        elif groups["bold"] is not None or groups["bold_alt"] is not None:
            inner = groups["bold"] if groups["bold"] is not None else groups["bold_alt"]
            nodes.extend(_parse_inline(inner, marks + [{"type": "bold"}]))
        elif groups["italic"] is not None or groups["italic_alt"] is not None:
            inner = groups["italic"] if groups["italic"] is not None else groups["italic_alt"]
            nodes.extend(_parse_inline(inner, marks + [{"type": "italic"}]))
        else:
            link = {"type": "link", "attrs": {"href": groups["href"]}}
            nodes.extend(_parse_inline(groups["label"], marks + [link]))
        position = match.end()
    if position < len(text):
        nodes.append(_text(text[position:], marks))
    return nodes


def _paragraph(lines: list[str]) -> dict[str, Any]:
    content: list[dict[str, Any]] = []
    for index, line in enumerate(lines):
        if index:
            content.append({"type": "hardBreak"})
        content.extend(_parse_inline(line.strip()))
    return {"type": "paragraph", "content": content}


def _list_item(text: str) -> dict[str, Any]:
    return {"type": "listItem", "content": [_paragraph([text])]}


def _parse_blocks(lines: list[str]) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    paragraph: list[str] = []
    index = 0

    def flush() -> None:
        if paragraph:
            blocks.append(_paragraph(paragraph))
            paragraph.clear()

    while index < len(lines):
        line = lines[index]
        fence = _FENCE.match(line.strip())
        if fence:
            flush()
            code: list[str] = []
            index += 1
            while index < len(lines) and not lines[index].strip().startswith("```"):
                code.append(lines[index])
                index += 1
            index += 1
            node: dict[str, Any] = {
                "type": "codeBlock",
                "attrs": {"language": fence.group(1) or None},
            }
            if code:
                node["content"] = [{"type": "text", "text": "\n".join(code)}]
            blocks.append(node)
            continue
        if not line.strip():
            flush()
            index += 1
            continue
        heading = _HEADING.match(line)
        if heading:
            flush()
            blocks.append(
                {
                    "type": "heading",
                    "attrs": {"level": len(heading.group(1))},
                    "content": _parse_inline(heading.group(2)),
                }
            )
            index += 1
            continue
        if _RULE.match(line.strip()):
            flush()
            blocks.append({"type": "horizontalRule"})
            index += 1
            continue
        if _QUOTE.match(line):
            flush()
            quoted: list[str] = []
            while index < len(lines) and (match := _QUOTE.match(lines[index])):
                quoted.append(match.group(1))
                index += 1
            blocks.append({"type": "blockquote", "content": _parse_blocks(quoted)})
            continue
        if _BULLET.match(line):
            flush()
            items: list[dict[str, Any]] = []
            while index < len(lines) and (match := _BULLET.match(lines[index])):
                items.append(_list_item(match.group(1)))
                index += 1
            blocks.append({"type": "bulletList", "content": items})
            continue
        ordered = _ORDERED.match(line)
        if ordered:
            flush()
            start = int(ordered.group(1))
            items = []
            while index < len(lines) and (match := _ORDERED.match(lines[index])):
                items.append(_list_item(match.group(2)))
                index += 1
            blocks.append({"type": "orderedList", "attrs": {"order": start}, "content": items})
            continue
        paragraph.append(line)
        index += 1

    flush()
    return blocks


def markdown_to_markup(markdown: str | None) -> dict[str, Any]:
    """Parse markdown into a ProseMirror ``doc`` node."""

    if not markdown or not markdown.strip():
        return empty_markup()
    lines = markdown.replace("\r\n", "\n").split("\n")
    blocks = _parse_blocks(lines)
    return {"type": "doc", "content": blocks or empty_markup()["content"]}


def _render_text(node: dict[str, Any]) -> str:
    value = node.get("text", "")
    marks = {mark.get("type"): mark for mark in node.get("marks") or []}
    if "code" in marks:
        value = f"`{value}`"
    if "italic" in marks:
        value = f"*{value}*"
    if "bold" in marks:
        value = f"**{value}**"
    if "strike" in marks:
        value = f"~~{value}~~"
    link = marks.get("link")
    if link is not None:
        href = (link.get("attrs") or {}).get("href", "")
        value = f"[{value}]({href})"
    return value


def _render_inline(nodes: list[dict[str, Any]]) -> str:
    parts: list[str] = []
    for node in nodes:
        kind = node.get("type")
        if kind == "text":
            parts.append(_render_text(node))
        elif kind == "hardBreak":
            parts.append("\n")
        elif kind in ("reference", "mention"):
            attrs = node.get("attrs") or {}
            parts.append(f"@{attrs.get('label') or attrs.get('id', '')}")
        else:
            parts.append(_render_inline(node.get("content") or []))
    return "".join(parts)


def _render_list(node: dict[str, Any], ordered: bool) -> str:
    start = int((node.get("attrs") or {}).get("order") or 1)
    lines: list[str] = []
    for offset, item in enumerate(node.get("content") or []):
        marker = f"{start + offset}." if ordered else "-"
        body = "\n".join(_render_block(child) for child in item.get("content") or [])
        indented = body.replace("\n", "\n  ")
        lines.append(f"{marker} {indented}")
    return "\n".join(lines)


def _render_block(node: dict[str, Any]) -> str:
    kind = node.get("type")
    content = node.get("content") or []
    if kind == "paragraph":
        return _render_inline(content)
    if kind == "heading":
        level = int((node.get("attrs") or {}).get("level") or 1)
        return f"{'#' * level} {_render_inline(content)}"
    if kind == "bulletList":
        return _render_list(node, ordered=False)
    if kind == "orderedList":
        return _render_list(node, ordered=True)
    if kind == "codeBlock":
        language = (node.get("attrs") or {}).get("language") or ""
        code = "".join(child.get("text", "") for child in content)
        return f"```{language}\n{code}\n```"
    if kind == "blockquote":
        inner = "\n\n".join(_render_block(child) for child in content)
        return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
    if kind == "horizontalRule":
        return "---"
    return _render_inline(content)


def markup_to_markdown(markup: dict[str, Any] | str | None) -> str:
    """Render a ProseMirror document (or its JSON text) back to markdown."""

    if markup is None or markup == "":
        return ""
    if isinstance(markup, str):
        try:
            markup = json.loads(markup)
        except ValueError:
            # Plain text stored without markup.
            return markup
    if not isinstance(markup, dict):
        return ""
    blocks = [_render_block(node) for node in markup.get("content") or []]
    return "\n\n".join(block for block in blocks if block).strip()
