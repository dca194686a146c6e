"""
User-facing cleanup of model replies: markers, their JSON and stray contact JSON go; prose stays.
"""
from __future__ import annotations

import json
import re

from emma_chat.extractor import MARKERS

# Upper-case tokens are always markers. Other casings need a colon or an object after them.
_MARKER_RE = re.compile(
    r"\*{0,2}(?:(?:%(tokens)s)\*{0,2}:?|(?i:%(tokens)s)(?:\*{0,2}:|(?=\*{0,2}\s*\{)))\*{0,2}[ \t]*"
    % {"tokens": "|".join(MARKERS)}
)
_WHITESPACE = re.compile(r"\s*")
_LINE_START_OBJECT = re.compile(r"^[ \t]*(?=\{)", re.MULTILINE)
_LINE_REST = re.compile(r"[ \t]*(?=\n|\Z)")
_CONTACT_KEYS = frozenset({"name", "first_name", "last_name", "family_name", "phone"})
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")
_decoder = json.JSONDecoder()


def _payload_end(text: str, start: int) -> int:
    """End offset of the JSON object starting at text[start] (which is '{')."""
    try:
        _, end = _decoder.raw_decode(text, start)
        return end
    except json.JSONDecodeError:
        pass
    close = text.find("}", start)
    if close != -1:
        return close + 1
    newline = text.find("\n", start)
    return len(text) if newline == -1 else newline


def _strip_markers(text: str) -> str:
    # Removing one block can splice a new marker together; loop until none is left.
    while True:
        match = _MARKER_RE.search(text)
        if match is None:
            return text
        end = match.end()
        brace = _WHITESPACE.match(text, end).end()
        if text.startswith("{", brace):
            end = _payload_end(text, brace)
        text = text[: match.start()] + text[end:]


def _strip_contact_json(text: str) -> str:
    """Drop JSON objects that start a line, end one, and are keyed like a contact record."""
    pos = 0
    while True:
        match = _LINE_START_OBJECT.search(text, pos)
        if match is None:
            return text
        try:
            obj, end = _decoder.raw_decode(text, match.end())
        except json.JSONDecodeError:
            pos = match.end() + 1
            continue
        rest = _LINE_REST.match(text, end)
        if rest is None or not isinstance(obj, dict) or not _CONTACT_KEYS & obj.keys():
            pos = match.end() + 1
            continue
        text = text[: match.start()] + text[rest.end() :]
        pos = match.start()


def sanitize_response(text: str) -> str:
    """Reply text with every structured marker and its payload removed. Idempotent."""
    text = _strip_markers(text)
    text = _strip_contact_json(text)
    text = _EXTRA_BLANK_LINES.sub("\n\n", text)
    return text.strip()
