"""Configuration module — frozen dataclass loaded from mappings, YAML, and env vars."""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

import yaml

from blackbox_agent.models import Level
from blackbox_agent.redaction import REDACT_MASK_SECRETS, REDACT_MODES

logger = logging.getLogger(__name__)

MIN_BATCH_SIZE = 1
MIN_FLUSH_INTERVAL_MS = 250

# Environment variable -> configuration key
ENV_VARS = {
    "BLACKBOX_PROJECT_ID": "project_id",
    "BLACKBOX_LEVEL": "level",
    "BLACKBOX_COLLECTOR_URL": "collector_url",
    "BLACKBOX_COLLECTOR_TOKEN": "collector_token",
    "BLACKBOX_BATCH_SIZE": "batch_size",
    "BLACKBOX_FLUSH_INTERVAL_MS": "flush_interval_ms",
    "BLACKBOX_REDACT": "redact_mode",
}

# Accepted spellings for each key, first match wins
_KEY_ALIASES = {
    "project_id": ("project_id", "projectId"),
    "level": ("level",),
    "collector_url": ("collector_url", "collectorUrl"),
    "collector_token": ("collector_token", "collectorToken"),
    "batch_size": ("batch_size", "batchSize"),
    "flush_interval_ms": ("flush_interval_ms", "flushIntervalMs", "flushInterval"),
    "redact_mode": ("redact_mode", "redactMode", "redact"),
    "request_timeout": ("request_timeout", "requestTimeout"),
}


def _parse_int(value, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer %r in logger config, using %d", value, default)
        return default


def _parse_float(value, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Invalid number %r in logger config, using %s", value, default)
        return default


def _lookup(data: Mapping, key: str):
    for alias in _KEY_ALIASES[key]:
        if alias in data:
            return data[alias]
    return None


@dataclass(frozen=True)
class LoggerConfig:
    project_id: Optional[str] = None
    level: Level = Level.INFO
    collector_url: Optional[str] = None
    batch_size: int = 50
    flush_interval_ms: int = 3000
    redact_mode: str = REDACT_MASK_SECRETS
    collector_token: Optional[str] = None
    request_timeout: float = 5.0

    @property
    def delivery_enabled(self) -> bool:
        return bool(self.collector_url)

    @property
    def flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.flush_interval_ms / 1000

    @classmethod
    def from_mapping(cls, data: Mapping) -> "LoggerConfig":
        """Build a config from a loosely-typed mapping.

        Never raises: unparsable values fall back to defaults and the
        batch size / flush interval floors are applied.
        """
        project_id = _lookup(data, "project_id")
        if project_id is None:
            logger.warning("Logger configured without a project id")

        raw_level = _lookup(data, "level")
        level = cls.level
        if raw_level is not None:
            try:
                level = Level.parse(raw_level)
            except ValueError:
                logger.warning("Unknown log level %r, using %s", raw_level, level.name)

        redact_mode = _lookup(data, "redact_mode") or cls.redact_mode
        if redact_mode not in REDACT_MODES:
            logger.warning("Unknown redact mode %r, using %s", redact_mode, REDACT_MASK_SECRETS)
            redact_mode = REDACT_MASK_SECRETS

        return cls(
            project_id=project_id,
            level=level,
            collector_url=_lookup(data, "collector_url") or None,
            batch_size=max(
                MIN_BATCH_SIZE, _parse_int(_lookup(data, "batch_size"), cls.batch_size)
            ),
            flush_interval_ms=max(
                MIN_FLUSH_INTERVAL_MS,
                _parse_int(_lookup(data, "flush_interval_ms"), cls.flush_interval_ms),
            ),
            redact_mode=redact_mode,
            collector_token=_lookup(data, "collector_token") or None,
            request_timeout=_parse_float(
                _lookup(data, "request_timeout"), cls.request_timeout
            ),
        )


def load_config(path: Optional[str] = None, environ: Optional[Mapping] = None) -> LoggerConfig:
    """Build LoggerConfig from a YAML file, then override with env vars.

    The YAML file may hold the settings at top level or under a
    ``blackbox:`` section. A missing file is ignored and invalid YAML
    falls back to defaults. Pass *environ* for testability; when None,
    os.environ is read.
    """
    environ = os.environ if environ is None else environ
    settings: dict = {}

    if path is not None:
        try:
            with open(path, "r") as f:
                user_config = yaml.safe_load(f)
            if isinstance(user_config, dict):
                section = user_config.get("blackbox", user_config)
                if isinstance(section, dict):
                    settings.update(section)
        except FileNotFoundError:
            logger.info("Config file %s not found, using defaults", path)
        except yaml.YAMLError as exc:
            logger.warning("Invalid YAML in %s, using defaults: %s", path, exc)

    for env_name, key in ENV_VARS.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            for alias in _KEY_ALIASES[key]:
                settings.pop(alias, None)
            settings[key] = value

    return LoggerConfig.from_mapping(settings)
