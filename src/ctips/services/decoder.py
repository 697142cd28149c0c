"""Decode inbound text frames into notices.

Only one shape is recognised:

    {"noticeData": {"message": "<text>", ...}}

Anything else (malformed JSON, other documents) is dropped without raising.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

log = logging.getLogger(__name__)

NOTICE_ENVELOPE = "noticeData"
MESSAGE_FIELD = "message"


class DecodeError(ValueError):
    """Payload is not a JSON object."""


@dataclass(frozen=True)
class Notice:
    message: str
    data: dict[str, Any] = field(default_factory=dict)


def parse_notice(raw: str) -> Optional[Notice]:
    """Parse a frame. Raises DecodeError on malformed input, returns None for other shapes."""
    try:
        doc = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(doc, dict) or not doc:
        raise DecodeError("expected a non-empty JSON object")

    if NOTICE_ENVELOPE not in doc:
        return None
    data = doc[NOTICE_ENVELOPE]
    if not isinstance(data, dict):
        return None
    message = data.get(MESSAGE_FIELD)
    if not isinstance(message, str):
        return None
    return Notice(message=message, data=data)


def decode(raw: str) -> Optional[Notice]:
    """Return the notice carried by `raw`, or None. Never raises."""
    try:
        notice = parse_notice(raw)
    except DecodeError as e:
        log.debug("Dropping websocket message (%s): %r", e, raw[:200])
        return None
    if notice is None:
        log.debug("Ignoring websocket message without %s: %r", NOTICE_ENVELOPE, raw[:200])
    return notice
