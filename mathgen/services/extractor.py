"""
Recover a strict JSON payload from free-form model output.

Models wrap JSON in markdown fences, surround it with prose, use smart
quotes, or break long strings across lines. ``load_generated_json`` handles
all of that and raises ``InvalidGeneratedContent`` when nothing parses.
"""

import json
import re
from typing import Any, Optional

from mathgen.core.errors import InvalidGeneratedContent

FENCED_JSON_RE = re.compile(r"```json(.*?)```", re.IGNORECASE | re.DOTALL)
FENCE_MARKER_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
NEWLINES_RE = re.compile(r"(?:\r?\n)+")

SMART_QUOTES = str.maketrans(
    {"“": '"', "”": '"', "‘": "'", "’": "'"}
)

CLOSERS = {"{": "}", "[": "]"}


def find_balanced_span(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` or ``[...]`` span, skipping string contents."""
    for start, char in enumerate(text):
        if char not in CLOSERS:
            continue
        stack = []
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            current = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif current == "\\":
                    escaped = True
                elif current == '"':
                    in_string = False
                continue
            if current == '"':
                in_string = True
            elif current in CLOSERS:
                stack.append(CLOSERS[current])
            elif current in ("}", "]"):
                if not stack or stack.pop() != current:
                    break
                if not stack:
                    return text[start : index + 1]
    return None


def extract_json(raw: str) -> str:
    fenced = FENCED_JSON_RE.search(raw)
    if fenced and fenced.group(1).strip():
        return fenced.group(1)
    span = find_balanced_span(raw)
    if span is not None:
        return span
    return raw


def normalize_json_text(text: str) -> str:
    text = FENCE_MARKER_RE.sub("", text)
    text = text.translate(SMART_QUOTES)
    text = NEWLINES_RE.sub(" ", text)
    return text.strip()


def parse_strict(candidate: str, raw: Optional[str] = None) -> Any:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise InvalidGeneratedContent(
            f"generated text is not valid JSON: {e.msg}",
            raw=raw if raw is not None else candidate,
        ) from e


def load_generated_json(raw: str) -> Any:
    return parse_strict(normalize_json_text(extract_json(raw)), raw=raw)
