"""Locate and decode the post payload Substack embeds in a page script.

Pages hydrate the client with a script of the form::

    window._preloads = JSON.parse("{\\"post\\": {...}}")

The payload is recovered by text scanning, then un-escaped as a JSON string
literal and decoded into a PostWrapper.
"""
import logging
from typing import Optional

import orjson
from pydantic import ValidationError
from selectolax.parser import HTMLParser

from substack_dl.fetch.errors import DecodeError, ExtractionError
from substack_dl.parse.models import Post, PostWrapper

logger = logging.getLogger(__name__)

PRELOAD_MARKER = "window._preloads"
PARSE_CALL = "JSON.parse("
OPEN_DELIMITER = 'JSON.parse("'
CLOSE_DELIMITER = '")'


def find_preload_script(parser: HTMLParser) -> Optional[str]:
    """Return the text of the first script carrying the preload assignment."""
    for script in parser.css("script"):
        text = script.text(deep=True, separator="", strip=False)
        if PRELOAD_MARKER in text and PARSE_CALL in text:
            return text
    return None


def slice_payload(script_text: str) -> str:
    """Return the escaped payload between the first `JSON.parse("` and the last `")`."""
    open_at = script_text.find(OPEN_DELIMITER)
    if open_at == -1:
        raise ExtractionError("preload script has no JSON.parse(\" delimiter")
    start = open_at + len(OPEN_DELIMITER)

    end = script_text.rfind(CLOSE_DELIMITER)
    if end == -1 or end < start:
        raise ExtractionError("preload script has no closing \") delimiter")

    return script_text[start:end]


def extract_json_string(parser: HTMLParser) -> str:
    """Find the preload script and return its still-escaped JSON payload."""
    script_text = find_preload_script(parser)
    if script_text is None:
        raise ExtractionError("failed to extract JSON string: preload script not found")
    return slice_payload(script_text)


def unescape_payload(escaped: str) -> str:
    """Reverse the string-literal escaping applied when the JSON was embedded."""
    try:
        raw = orjson.loads(f'"{escaped}"')
    except orjson.JSONDecodeError as e:
        raise ExtractionError(f"failed to unescape JSON: {e}") from e
    if not isinstance(raw, str):
        raise ExtractionError("failed to unescape JSON: payload is not a string literal")
    return raw


def decode_post(raw_json: str) -> Post:
    """Decode the raw {"post": ...} document into a Post."""
    try:
        data = orjson.loads(raw_json)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"failed to parse post data: {e}") from e
    try:
        return PostWrapper.model_validate(data).post
    except ValidationError as e:
        raise DecodeError(f"post data has unexpected shape: {e.error_count()} error(s)") from e


def parse_preloaded_post(parser: HTMLParser) -> Post:
    """Extract the embedded post from a parsed page."""
    escaped = extract_json_string(parser)
    return decode_post(unescape_payload(escaped))
