"""Error taxonomy shared by the normalizer, dispatcher and transports."""

from typing import Any, Optional


class ImageServerError(Exception):
    """Base class for all errors surfaced to MCP callers."""

    kind: str = "InternalError"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message
        # Set by the normalizer so replies can still be correlated
        self.envelope: Any = None


class ValidationError(ImageServerError):
    """A recognised command carried a bad or missing field."""

    kind = "ValidationError"

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid '{field}': {reason}")
        self.field = field
        self.reason = reason


class ProtocolError(ImageServerError):
    """The transport envelope itself could not be parsed."""

    kind = "ProtocolError"


class InvalidRequest(ImageServerError):
    """A well-formed message that cannot be accepted (bad id, server shutting down)."""

    kind = "InvalidRequest"


class ConfigError(ImageServerError):
    """An output directory could not be resolved or created."""

    kind = "ConfigError"

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid output directory '{path}': {reason}", detail=reason)
        self.path = path
        self.reason = reason


class CollaboratorError(ImageServerError):
    """The image provider failed or returned no usable image."""

    kind = "CollaboratorError"

    def __init__(self, reason: str):
        super().__init__(f"Image generation failed: {reason}", detail=reason)
        self.reason = reason


class WriteError(ImageServerError):
    """Writing a generated image to disk failed."""

    kind = "WriteError"

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to write image to {path}: {reason}", detail=reason)
        self.path = path
        self.reason = reason


class UnrecognizedCommand(ImageServerError):
    """The inbound message matched no known command shape."""

    kind = "UnrecognizedCommand"

    def __init__(self, raw: Any, reason: str = "Unrecognized command"):
        super().__init__(reason)
        self.raw = raw
