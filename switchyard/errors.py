from typing import Optional


class SwitchyardError(Exception):
    """Base class for errors raised inside switchyard."""


class CommandFailedError(SwitchyardError):
    """An external process could not be spawned, timed out or exited non-zero."""

    def __init__(self, message: str, stderr: str = "", exit_code: Optional[int] = None):
        super().__init__(message)
        self.stderr = stderr
        self.exit_code = exit_code


class DocumentError(SwitchyardError):
    """A config document is not valid JSON once comments are stripped."""


class ProviderNotFoundError(SwitchyardError):
    pass


class InvalidIdentifierError(SwitchyardError, ValueError):
    pass


class ConfigError(SwitchyardError):
    """The switchyard settings file cannot be read or written."""
