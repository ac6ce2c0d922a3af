"""Mask Substack session cookies before text reaches logs."""
import re

REDACTED = "[REDACTED]"

_SECRET_PATTERNS = (
    (re.compile(r'(substack\.sid|connect\.sid)=([^;,\s"\']+)', re.IGNORECASE), rf"\1={REDACTED}"),
    (re.compile(r'(cookie_value["\']?\s*[:=]\s*["\']?)([^"\',\s]+)', re.IGNORECASE), rf"\1{REDACTED}"),
)


def redact_string(text: str) -> str:
    """Replace session cookie values in `text`."""
    if not text:
        return text
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text
