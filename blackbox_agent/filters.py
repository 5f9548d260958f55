"""Level filtering — pure functions for severity comparison."""

from blackbox_agent.models import Level

LEVEL_SEVERITY = {level.name: level.severity for level in Level}


def severity(level) -> int:
    """Return the numeric severity of a level, or -1 if unknown."""
    try:
        return Level.parse(level).severity
    except ValueError:
        return -1


def should_log(level, config) -> bool:
    """Return True if *level* meets the configured minimum level.

    With no configuration nothing is logged.
    """
    if config is None:
        return False
    msg_sev = severity(level)
    if msg_sev == -1:
        return False
    return msg_sev >= severity(config.level)
