"""Redaction of secret-shaped values before entries are stored or shipped.

Policies:
- Mapping keys that look like credentials have their value replaced whole
- Free-text leaves that mention a credential are replaced whole
- Messages keep their text; only ``name=value`` credentials are masked
"""
from __future__ import annotations

import dataclasses
import re
from typing import Any, Mapping, Pattern

from blackbox_agent.models import CallContext, HttpInfo, LogEntry

MASK = "***"
TRUNCATED = "[Truncated]"
CIRCULAR = "[Circular]"
UNSERIALIZABLE = "[Unserializable]"
MAX_DEPTH = 32
# Upper bound on values visited per walk; shared sub-objects can fan out
# exponentially without forming a cycle.
MAX_NODES = 10_000

REDACT_MASK_SECRETS = "maskSecrets"
REDACT_NONE = "none"
REDACT_MODES = (REDACT_MASK_SECRETS, REDACT_NONE)

# Precompiled patterns (case-insensitive)
_SECRET_KEY: Pattern[str] = re.compile(r"(?i)api_key|token|authorization|secret|password")
_SECRET_TEXT: Pattern[str] = re.compile(r"(?i)api_key|token|authorization")
# name=value pairs in free text: key=..., api_key=..., access_token=..., client_secret=...
_INLINE_SECRET: Pattern[str] = re.compile(
    r"(?i)\b(api[_-]?key|key|[\w-]*(?:token|secret|password))=[^\s&;]+"
)


def redact_message(text: str) -> str:
    """Mask the value part of ``key=...`` / ``token=...`` pairs in a message.

    ``"login with api_key=SECRET123"`` becomes ``"login with api_key=***"``.
    """
    if not text:
        return text
    return _INLINE_SECRET.sub(lambda m: f"{m.group(1)}={MASK}", text)


class _Walk:
    """One bounded traversal of a JSON-like value.

    Containers already on the current path become CIRCULAR, values nested
    deeper than MAX_DEPTH or visited after MAX_NODES become TRUNCATED.
    """

    def __init__(self, mask: bool) -> None:
        self.mask = mask
        self.path: set[int] = set()
        self.visited = 0

    def visit(self, value: Any, depth: int = 0) -> Any:
        if depth > MAX_DEPTH:
            return TRUNCATED
        self.visited += 1
        if self.visited > MAX_NODES:
            return TRUNCATED
        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, str):
            return self._text(value)
        if isinstance(value, (Mapping, list, tuple, set, frozenset)):
            marker = id(value)
            if marker in self.path:
                return CIRCULAR
            self.path.add(marker)
            try:
                return self._container(value, depth)
            finally:
                self.path.discard(marker)
        return self._text(_stringify(value))

    def _text(self, text: str) -> str:
        if self.mask and _SECRET_TEXT.search(text):
            return MASK
        return text

    def _container(self, value, depth: int):
        if not isinstance(value, Mapping):
            return [self.visit(item, depth + 1) for item in value]
        out = {}
        for key, item in value.items():
            name = key if isinstance(key, str) else str(key)
            if self.mask and _SECRET_KEY.search(name):
                out[name] = MASK
            else:
                out[name] = self.visit(item, depth + 1)
        return out


def mask_secrets(value: Any) -> Any:
    """Return a masked deep copy of a JSON-like value.

    Mappings and arrays are the only recursive cases; other leaves are
    stringified.
    """
    return _Walk(mask=True).visit(value)


def copy_value(value: Any) -> Any:
    """Bounded JSON-safe copy without masking."""
    return _Walk(mask=False).visit(value)


def _stringify(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return UNSERIALIZABLE


class Redactor:
    """Produces sanitized copies of entries according to the redact mode."""

    def __init__(self, mode: str = REDACT_MASK_SECRETS) -> None:
        if mode not in REDACT_MODES:
            raise ValueError(f"Unknown redact mode: {mode!r}")
        self.mode = mode

    @property
    def enabled(self) -> bool:
        return self.mode == REDACT_MASK_SECRETS

    def apply(self, entry: LogEntry) -> LogEntry:
        if not self.enabled:
            if entry.payload is None:
                return entry
            return dataclasses.replace(entry, payload=copy_value(entry.payload))

        changes: dict[str, Any] = {"message": redact_message(entry.message)}
        if entry.payload is not None:
            changes["payload"] = mask_secrets(entry.payload)
        if entry.context is not None:
            changes["context"] = CallContext.from_mapping(
                mask_secrets(entry.context.to_dict())
            )
        if entry.http is not None:
            changes["http"] = HttpInfo.from_mapping(mask_secrets(entry.http.to_dict()))
        if entry.stack is not None:
            changes["stack"] = redact_message(entry.stack)
        return dataclasses.replace(entry, **changes)


__all__ = [
    "CIRCULAR",
    "MASK",
    "MAX_DEPTH",
    "MAX_NODES",
    "REDACT_MASK_SECRETS",
    "REDACT_NONE",
    "Redactor",
    "copy_value",
    "mask_secrets",
    "redact_message",
]
