"""Helpers for safe debug logging.

Privileged region requests carry a bearer credential, and MQTT settings can
carry broker passwords. Everything logged at DEBUG that may hold either goes
through :func:`redact_for_log` first.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from typing import Any

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "accesstoken",
        "authorization",
        "cookie",
        "password",
        "refresh_token",
        "secret",
        "token",
    }
)

_BEARER_RE = re.compile(r"(?i)\b(bearer\s+)[A-Za-z0-9._~+/=-]+")
_REDACTED = "<redacted>"
_MAX_DEPTH = 20


def _scrub_text(text: str, max_string: int) -> str:
    text = _BEARER_RE.sub(rf"\1{_REDACTED}", text)
    if len(text) > max_string:
        return f"{text[:max_string]}…<truncated>"
    return text


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of *value* with credentials masked.

    * mapping keys such as ``authorization`` or ``password`` are masked
      regardless of their value's type
    * ``Bearer <token>`` fragments are masked inside any string
    * dataclass instances (e.g. :class:`~pylivemap.config.LiveMapConfig`)
      are expanded to dicts first
    * long strings are truncated, bytes are summarized by length
    """

    def walk(node: Any, depth: int) -> Any:
        if depth > _MAX_DEPTH:
            return "<max-depth>"
        if node is None or isinstance(node, (bool, int, float)):
            return node
        if isinstance(node, str):
            return _scrub_text(node, max_string)
        if isinstance(node, (bytes, bytearray)):
            return f"<bytes:{len(node)}b>"
        if dataclasses.is_dataclass(node) and not isinstance(node, type):
            node = dataclasses.asdict(node)
        if isinstance(node, Mapping):
            return {
                str(key): _REDACTED if str(key).lower() in _SENSITIVE_KEYS and item else walk(item, depth + 1)
                for key, item in node.items()
            }
        if isinstance(node, (list, tuple, set, frozenset)):
            return [walk(item, depth + 1) for item in node]
        return repr(node)

    return walk(value, 0)
