"""Conversation model and normalization for chat requests."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal

from logger import LOGGER_NAME

log = logging.getLogger(LOGGER_NAME)

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation."""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


def parse_request_messages(raw_body: bytes | str | None) -> List[Any]:
    """
    Extract the caller's `messages` list from a raw request body.

    Anything unusable (empty body, invalid JSON, a non-object document,
    missing or non-list `messages`) yields an empty conversation.
    """
    if not raw_body:
        return []
    try:
        # NaN/Infinity are not JSON and cannot be re-encoded for the gateway.
        body = json.loads(raw_body, parse_constant=_reject_constant)
    except (ValueError, TypeError) as e:
        log.debug("Request body is not JSON (%s); using empty conversation", type(e).__name__)
        return []
    if not isinstance(body, dict):
        return []
    messages = body.get("messages")
    if not isinstance(messages, list):
        return []
    return messages


def has_system_message(messages: List[Any]) -> bool:
    return any(isinstance(m, dict) and m.get("role") == "system" for m in messages)


def ensure_system_message(messages: List[Any], default: ChatMessage) -> List[Any]:
    """
    Return the conversation with a system message guaranteed.

    If any message already has role "system" the sequence is returned unchanged.
    Otherwise `default` is prepended. The input list is never mutated.
    """
    if has_system_message(messages):
        return list(messages)
    return [default.to_dict(), *messages]


def normalize_conversation(raw_body: bytes | str | None, system_prompt: str) -> List[Any]:
    """Parse a request body and apply the system-message rule."""
    default = ChatMessage(role="system", content=system_prompt)
    return ensure_system_message(parse_request_messages(raw_body), default)
