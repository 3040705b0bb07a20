"""Renders foreign UI messages into flat local chat messages.

A foreign message is a list of typed parts (text, reasoning, tool calls,
images and other attachments). Locally a message is a single string, so
parts are rendered and joined with newlines.
"""

import json
import posixpath
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from rikka_import.models.conversation import ChatMessageDTO, MessageRole
from rikka_import.utils.fields import (
    as_int,
    decode_list_of_maps,
    first_non_null,
    parse_datetime,
    pick_nested,
    pick_string,
    pick_value,
)

__all__ = [
    "SYSTEM_PREFIX",
    "convert_message",
    "convert_part",
    "part_type",
]

SYSTEM_PREFIX = "[System]\n"

_ROLES: dict[str, MessageRole] = {"user": "user", "assistant": "assistant", "tool": "tool"}

# Checked in order; "text" must win over e.g. "textfile"
_PART_TYPES = ("text", "reasoning", "think", "image", "document", "video", "audio", "tool", "file")
_FILE_LIKE = frozenset({"image", "document", "video", "audio", "file"})


def part_type(part: dict[str, Any]) -> str:
    """Classify a part by keyword; unknown types are returned lower-cased."""
    raw = (pick_string(part, ["type", "kind", "runtimeType"]) or "").strip().lower()
    for name in _PART_TYPES:
        if name in raw:
            return "reasoning" if name == "think" else name
    return raw


def _dump(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(payload)


def convert_part(
    part: dict[str, Any],
    role: MessageRole,
    rewrite: Callable[[str], str],
) -> str:
    """Render one part.

    Args:
        part: Foreign part record
        role: Local role of the owning message
        rewrite: File reference rewriter

    Returns:
        Rendered text, possibly empty
    """
    kind = part_type(part)
    text = (pick_string(part, ["text", "content", "value", "message"]) or "").strip()

    if kind == "text" or (not kind and text):
        return text
    if kind == "reasoning":
        return f"<think>\n{text}\n</think>" if text else ""
    if kind == "tool":
        return _dump(first_non_null(pick_value(part, ["payload", "tool", "data"]), part))
    if kind not in _FILE_LIKE:
        return text

    raw_path = pick_string(part, ["path", "filePath", "file_path", "url", "uri", "src"]) or ""
    raw_path = raw_path.strip()
    if not raw_path:
        return text
    path = rewrite(raw_path)
    is_image = kind == "image"
    name = (pick_string(part, ["name", "fileName", "filename"]) or "").strip()
    name = name or posixpath.basename(path)
    mime = (pick_string(part, ["mime", "mimeType", "mime_type"]) or "").strip()
    if not mime:
        mime = "image/png" if is_image else "application/octet-stream"

    if role == "assistant":
        return f"![]({path})" if is_image else f"[{name}]({path})"
    if is_image:
        return f"[image:{path}]"
    return f"[file:{path}|{name}|{mime}]"


def convert_message(
    raw: dict[str, Any],
    conversation_id: str,
    group_id: str,
    version: int,
    fallback_timestamp: datetime,
    rewrite: Callable[[str], str],
) -> ChatMessageDTO | None:
    """Convert one message variant; None when nothing renderable is left.

    The local store has no system role: system messages become assistant
    messages prefixed with ``[System]``. Unknown roles become assistant.
    """
    raw_role = (pick_string(raw, ["role", "messageRole", "type"]) or "assistant").strip().lower()
    role = _ROLES.get(raw_role, "assistant")
    prefix = SYSTEM_PREFIX if raw_role == "system" else ""

    rendered: list[str] = []
    for part in decode_list_of_maps(pick_value(raw, ["parts", "messageParts", "contentParts"])):
        text = convert_part(part, role, rewrite).strip()
        if text:
            rendered.append(text)

    if not rendered:
        fallback = (pick_string(raw, ["content", "text", "message"]) or "").strip()
        if fallback:
            rendered.append(fallback)
    if role == "tool" and not rendered:
        payload = pick_value(raw, ["tool", "payload", "data"])
        if payload is not None:
            rendered.append(_dump(payload))

    body = "\n".join(rendered).strip()
    if not body:
        return None

    message_id = (pick_string(raw, ["id", "messageId", "uuid"]) or "").strip() or str(uuid.uuid4())
    timestamp = parse_datetime(
        pick_value(raw, ["timestamp", "createdAt", "created_at", "time", "updatedAt"])
    )
    model_id = (pick_string(raw, ["modelId", "model_id", "model"]) or "").strip()
    provider_id = (pick_string(raw, ["providerId", "provider_id", "provider"]) or "").strip()
    total_tokens = as_int(
        first_non_null(
            pick_value(raw, ["totalTokens", "total_tokens"]),
            pick_nested(raw, ["usage", "totalTokens"]),
            pick_nested(raw, ["usage", "total_tokens"]),
        )
    )
    return ChatMessageDTO(
        id=message_id,
        conversation_id=conversation_id,
        role=role,
        content=f"{prefix}{body}".rstrip(),
        timestamp=timestamp or fallback_timestamp,
        group_id=group_id,
        version=version,
        model_id=model_id or None,
        provider_id=provider_id or None,
        total_tokens=total_tokens,
    )
