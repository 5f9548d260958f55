"""Exception types raised inside the agent."""


class BlackBoxError(Exception):
    """Base class for agent errors."""


class DeliveryError(BlackBoxError):
    """A batch could not be delivered to the collector."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


__all__ = ["BlackBoxError", "DeliveryError"]
