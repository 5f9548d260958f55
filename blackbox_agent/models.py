"""Log entry model — levels, call-site substructures, and the entry factory."""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

# Recursive JSON-compatible value carried in ``payload``.
JsonValue = Union[None, bool, int, float, str, list, dict]


class Level(Enum):
    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40
    FATAL = 50

    @property
    def severity(self) -> int:
        return self.value

    @classmethod
    def parse(cls, value, default: Optional["Level"] = None) -> "Level":
        """Resolve a Level from an enum member, name, or numeric severity.

        Accepts the stdlib spellings WARNING and CRITICAL as aliases.
        Raises ValueError for unknown values unless *default* is given.
        """
        if isinstance(value, Level):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for member in cls:
                if member.value == value:
                    return member
        if isinstance(value, str):
            name = value.strip().upper()
            name = _LEVEL_ALIASES.get(name, name)
            if name in cls.__members__:
                return cls[name]
        if default is not None:
            return default
        raise ValueError(f"Unknown log level: {value!r}")


_LEVEL_ALIASES = {"WARNING": "WARN", "CRITICAL": "FATAL"}


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _pick(data: Mapping, *keys):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class HttpInfo:
    method: Optional[str] = None
    url: Optional[str] = None
    status: Optional[int] = None
    latency_ms: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping) -> "HttpInfo":
        return cls(
            method=_pick(data, "method"),
            url=_pick(data, "url"),
            status=_pick(data, "status"),
            latency_ms=_pick(data, "latencyMs", "latency_ms"),
        )

    def to_dict(self) -> dict:
        return _compact({
            "method": self.method,
            "url": self.url,
            "status": self.status,
            "latencyMs": self.latency_ms,
        })


@dataclass(frozen=True)
class CallContext:
    module: Optional[str] = None
    file: Optional[str] = None
    function: Optional[str] = None
    line: Optional[int] = None
    model: Optional[str] = None
    key_mask: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping) -> "CallContext":
        return cls(
            module=_pick(data, "module"),
            file=_pick(data, "file"),
            function=_pick(data, "function", "func"),
            line=_pick(data, "line"),
            model=_pick(data, "model"),
            key_mask=_pick(data, "keyMask", "key_mask"),
        )

    def to_dict(self) -> dict:
        return _compact({
            "module": self.module,
            "file": self.file,
            "function": self.function,
            "line": self.line,
            "model": self.model,
            "keyMask": self.key_mask,
        })


@dataclass(frozen=True)
class TraceInfo:
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    parent_id: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping) -> "TraceInfo":
        return cls(
            trace_id=_pick(data, "traceId", "trace_id"),
            span_id=_pick(data, "spanId", "span_id"),
            parent_id=_pick(data, "parentId", "parent_id"),
        )

    def to_dict(self) -> dict:
        return _compact({
            "traceId": self.trace_id,
            "spanId": self.span_id,
            "parentId": self.parent_id,
        })


@dataclass(frozen=True)
class LogEntry:
    level: Level
    message: str
    timestamp: str = field(default_factory=utc_timestamp)
    code: Optional[Union[str, int]] = None
    http: Optional[HttpInfo] = None
    context: Optional[CallContext] = None
    trace: Optional[TraceInfo] = None
    stack: Optional[str] = None
    payload: JsonValue = None

    def to_dict(self) -> dict:
        """Wire form of the entry; absent optional fields are omitted."""
        data = {
            "timestamp": self.timestamp,
            "level": self.level.name,
            "message": self.message,
        }
        if self.code is not None:
            data["code"] = self.code
        if self.http is not None:
            data["http"] = self.http.to_dict()
        if self.context is not None:
            data["context"] = self.context.to_dict()
        if self.trace is not None:
            data["trace"] = self.trace.to_dict()
        if self.stack is not None:
            data["stack"] = self.stack
        if self.payload is not None:
            data["payload"] = self.payload
        return data


def _as_substructure(value, cls):
    if value is None or isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        return cls.from_mapping(value)
    return None


def create_log_entry(
    level,
    message: str,
    details: Optional[Mapping] = None,
) -> LogEntry:
    """Factory that stamps and assembles a LogEntry.

    *details* may carry any of ``timestamp``, ``code``, ``http``,
    ``context`` (or ``ctx``), ``trace``, ``stack`` and ``payload``.
    Unknown keys are ignored; every optional field may be missing.
    """
    details = details or {}
    timestamp = details.get("timestamp") or utc_timestamp()
    return LogEntry(
        level=Level.parse(level),
        message=message if isinstance(message, str) else str(message),
        timestamp=timestamp,
        code=details.get("code"),
        http=_as_substructure(details.get("http"), HttpInfo),
        context=_as_substructure(_pick(details, "context", "ctx"), CallContext),
        trace=_as_substructure(details.get("trace"), TraceInfo),
        stack=details.get("stack"),
        payload=details.get("payload"),
    )
