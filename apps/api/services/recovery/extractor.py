"""
Structured Response Extractor

Classifies raw collaborator output as either conversation or a candidate
protocol. Lenient by contract: malformed or partial JSON is conversation,
never an exception.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from pydantic import ValidationError

from services.recovery.schemas import QuickReplyEnvelope, RecoveryProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationalReply:
    text: str
    quick_replies: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StructuredCandidate:
    protocol: RecoveryProtocol


Extraction = Union[ConversationalReply, StructuredCandidate]


def find_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} span, starting at the first '{'.

    Braces inside JSON string literals (including escaped quotes) are
    ignored. Returns None when the first object never closes.
    """
    if not text:
        return None
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_json_object(text: str) -> Optional[dict]:
    """First balanced object in text, decoded. None if absent or not valid JSON."""
    span = find_json_object(text)
    if span is None:
        return None
    try:
        parsed: Any = json.loads(span)
    except (json.JSONDecodeError, ValueError, RecursionError):
        # Balanced but too deeply nested for the decoder
        return None
    return parsed if isinstance(parsed, dict) else None


def extract(model_output: str) -> Extraction:
    """
    Classify collaborator output.

    - object with "exercises" that deserializes as a RecoveryProtocol -> StructuredCandidate
    - object with "message" (+ optional "quickReplies") -> ConversationalReply(message, replies)
    - anything else, including a protocol that fails to deserialize -> ConversationalReply(raw text)
    """
    raw = model_output or ""
    parsed = parse_json_object(raw)
    if parsed is None:
        return ConversationalReply(text=raw)

    if "exercises" in parsed:
        try:
            protocol = RecoveryProtocol.model_validate(parsed)
        except ValidationError as e:
            logger.info(
                "Collaborator protocol did not deserialize; treating as conversation",
                extra={"extra_fields": {"errors": e.error_count()}},
            )
            return ConversationalReply(text=raw)
        return StructuredCandidate(protocol=protocol)

    if "message" in parsed:
        try:
            envelope = QuickReplyEnvelope.model_validate(parsed)
        except ValidationError:
            return ConversationalReply(text=raw)
        replies: List[str] = [r.strip() for r in envelope.quick_replies if r and r.strip()]
        return ConversationalReply(text=envelope.message, quick_replies=tuple(replies))

    return ConversationalReply(text=raw)
