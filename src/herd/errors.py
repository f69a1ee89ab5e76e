"""Exceptions raised by herd."""


class HerdError(Exception):
    """Base class for herd errors."""


class ResolutionError(HerdError):
    """Raised when the name lookup mechanism itself cannot be used."""


class SpawnError(HerdError):
    """Raised when a session for one endpoint cannot be established."""

    def __init__(self, endpoint, reason: str) -> None:
        super().__init__(f"{endpoint}: {reason}")
        self.endpoint = endpoint
        self.reason = reason
