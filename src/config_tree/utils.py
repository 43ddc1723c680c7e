from __future__ import annotations

import re
from typing import Any, List, Sequence

__all__ = [
    "split_key",
    "join_key",
    "normalize_scheme_prefix",
    "redact_for_log",
]

_SCHEME_PREFIX = re.compile(r"^([A-Za-z][A-Za-z0-9_+-]*):(.*)$", re.DOTALL)


def split_key(key: str, delimiter: str) -> List[str]:
    """Split `key` on `delimiter`, dropping empty segments."""
    if not delimiter:
        raise ValueError("delimiter must be a non-empty string")
    return [segment for segment in key.split(delimiter) if segment]


def join_key(segments: Sequence[str], delimiter: str) -> str:
    return delimiter.join(segments)


def normalize_scheme_prefix(key: str, delimiter: str) -> str:
    """
    Rewrite the legacy `scheme:` notation into an ordinary leading segment.

        java:          -> java
        java:/         -> java
        java:/comp/env -> java<delim>comp<delim>env
        java:<delim>x  -> java<delim>x

    Keys whose colon is not followed by nothing, `/` or the delimiter are returned untouched.
    """
    match = _SCHEME_PREFIX.match(key)
    if match is None:
        return key
    scheme, rest = match.groups()
    if rest == "":
        return scheme
    if rest.startswith("/"):
        rest = rest.lstrip("/").replace("/", delimiter)
        return scheme + delimiter + rest if rest else scheme
    if rest.startswith(delimiter):
        return scheme + rest
    return key


def redact_for_log(name: str, value: Any) -> str:
    """
    Redact likely secrets in logs.
    """
    lowered = name.lower()
    if any(s in lowered for s in ("secret", "password", "token", "passwd", "api_key", "credential")):
        return "***"
    try:
        return repr(value)
    except Exception:
        return "<unreprable>"
