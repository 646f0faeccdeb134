"""Decoding of generated search payloads into raw record sequences.

Documentation generators ship the search corpus in a few shapes: a bare JSON
array, a JSON object with a ``docs`` array, or a JavaScript assignment such as
``var documenterSearchIndex = {"docs": [ ... ]}`` whose array ends with a
trailing comma. All of them decode to the same list of raw records; record
level validation happens later in the corpus loader.
"""

from __future__ import annotations

import logging
from pathlib import Path
import re
from typing import Any

import orjson

from docs_search_index.errors import InvalidCorpus


logger = logging.getLogger(__name__)

_JS_ASSIGNMENT = re.compile(r"^\s*(?:(?:var|let|const)\s+)?[A-Za-z_$][\w$.]*\s*=\s*", re.ASCII)


def _strip_trailing_commas(source: str) -> str:
    """Drop commas that directly precede ``]`` or ``}`` outside string literals."""

    out: list[str] = []
    in_string = False
    escaped = False
    pending_comma: int | None = None
    for ch in source:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch in "]}" and pending_comma is not None:
            out[pending_comma] = ""
        if ch == ",":
            pending_comma = len(out)
        elif not ch.isspace():
            pending_comma = None
        if ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def _unwrap_javascript(source: str) -> str:
    match = _JS_ASSIGNMENT.match(source)
    if match is None:
        return source
    body = source[match.end() :].strip()
    return body.removesuffix(";").rstrip()


def parse_search_payload(data: str | bytes) -> list[dict[str, Any]]:
    """Decode a search payload into its ordered list of raw records.

    Raises:
        InvalidCorpus: when the payload is not JSON/JavaScript, or does not hold
            an array of records at the top level or under ``docs``.
    """

    if isinstance(data, (bytes, bytearray)):
        try:
            text = bytes(data).decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InvalidCorpus(f"payload is not valid UTF-8: {exc}") from exc
    elif isinstance(data, str):
        text = data.lstrip("\ufeff")
    else:
        raise InvalidCorpus(f"payload must be str or bytes, got {type(data).__name__}")

    if not text.strip():
        raise InvalidCorpus("payload is empty")

    source = _strip_trailing_commas(_unwrap_javascript(text))
    try:
        decoded = orjson.loads(source)
    except orjson.JSONDecodeError as exc:
        raise InvalidCorpus(f"payload could not be decoded: {exc}") from exc

    if isinstance(decoded, dict):
        if "docs" not in decoded:
            raise InvalidCorpus("payload object has no 'docs' array")
        decoded = decoded["docs"]

    if not isinstance(decoded, list):
        raise InvalidCorpus(f"payload records must be an array, got {type(decoded).__name__}")

    logger.debug("Decoded search payload with %d raw records", len(decoded))
    return decoded


def load_payload_file(path: Path | str) -> list[dict[str, Any]]:
    """Read and decode a payload file (host-side helper; the index core does no I/O)."""

    payload_path = Path(path)
    try:
        data = payload_path.read_bytes()
    except OSError as exc:
        raise InvalidCorpus(f"cannot read payload {payload_path}: {exc}") from exc
    return parse_search_payload(data)
