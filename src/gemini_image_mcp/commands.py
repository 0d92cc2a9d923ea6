"""Canonical commands and results.

Every inbound message, whatever transport or wire shape it arrived in, is
normalized into exactly one of the command classes below. The ``envelope``
remembers how it arrived so the reply can be shaped the same way.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union


class Protocol(Enum):
    """Wire shape a message arrived in."""
    LEGACY = "legacy"      # {"lookup": ...} / {"call": ...}
    JSONRPC = "jsonrpc"    # {"jsonrpc": "2.0", "method": ...}
    TOOL = "tool"          # {"name": ..., "arguments": ...}


RequestId = Union[str, int, None]


@dataclass(frozen=True)
class Envelope:
    protocol: Protocol = Protocol.LEGACY
    request_id: RequestId = None
    tool_name: Optional[str] = None
    # The message carried an id that is not a string or integer
    invalid_id: bool = False

    @property
    def expects_reply(self) -> bool:
        # JSON-RPC notifications carry no id and get no reply
        return self.invalid_id or self.protocol != Protocol.JSONRPC or self.request_id is not None


@dataclass(frozen=True)
class GenerateImage:
    tag: ClassVar[str] = "GenerateImage"

    prompt: str
    model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    output_path: Optional[str] = None
    output_filename: Optional[str] = None
    envelope: Envelope = field(default_factory=Envelope)


@dataclass(frozen=True)
class SetOutputDirectory:
    tag: ClassVar[str] = "SetOutputDirectory"

    path: str
    envelope: Envelope = field(default_factory=Envelope)


@dataclass(frozen=True)
class LookupProperties:
    tag: ClassVar[str] = "LookupProperties"

    envelope: Envelope = field(default_factory=Envelope)


@dataclass(frozen=True)
class ListTools:
    tag: ClassVar[str] = "ListTools"

    envelope: Envelope = field(default_factory=Envelope)


@dataclass(frozen=True)
class Passthrough:
    """JSON-RPC lifecycle methods and echo tools."""
    tag: ClassVar[str] = "Passthrough"

    method: str
    payload: Any = None
    envelope: Envelope = field(default_factory=Envelope)


@dataclass(frozen=True)
class Unknown:
    tag: ClassVar[str] = "Unknown"

    raw: Any = None
    reason: str = "Unrecognized command"
    envelope: Envelope = field(default_factory=Envelope)


Command = Union[GenerateImage, SetOutputDirectory, LookupProperties, ListTools, Passthrough, Unknown]


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class CommandResult:
    """Outcome of dispatching one command."""
    outcome: Outcome
    message: Optional[str] = None
    artifact_path: Optional[str] = None
    error_detail: Optional[str] = None
    error_kind: Optional[str] = None

    # Structured payload (descriptor, tool list, echo, image metadata)
    data: Any = None

    # Tag of the command that produced this result, None if normalization failed
    command: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @classmethod
    def ok(cls, message: Optional[str] = None, artifact_path: Optional[str] = None, data: Any = None) -> "CommandResult":
        return cls(Outcome.SUCCESS, message=message, artifact_path=artifact_path, data=data)

    @classmethod
    def failed(cls, kind: str, message: str, detail: Optional[str] = None, data: Any = None) -> "CommandResult":
        return cls(
            Outcome.FAILURE,
            message=message,
            error_detail=detail if detail is not None else message,
            error_kind=kind,
            data=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {"success": self.success}
        if self.message is not None:
            result["message"] = self.message
        if self.artifact_path is not None:
            result["imagePath"] = self.artifact_path
        if not self.success:
            result["error"] = self.error_detail
            result["errorKind"] = self.error_kind
        if self.data is not None:
            result["data"] = self.data
        return result
