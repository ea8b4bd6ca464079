"""Error types raised while building outlines and generating scripts."""

from typing import Optional


class ScriptGenerationError(Exception):
    """Base class for every failure reported by the script generator."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class InputMissingError(ScriptGenerationError):
    """No capture sessions were supplied, or the capture set is empty."""


class MalformedOutlineError(ScriptGenerationError):
    """The outline cannot be built or consumed as a command tree."""


class UnreadableParameterSourceError(ScriptGenerationError):
    """A parameter-source file is empty or cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class UnrecognizedBackendError(ScriptGenerationError):
    """The engine selector does not name a known backend."""


class UnrecognizedCommandTypeError(ScriptGenerationError):
    """A step was requested with a type other than Action, Event or Validation."""


class UninitializedGeneratorError(ScriptGenerationError):
    """A generator operation was called before initialize()."""
