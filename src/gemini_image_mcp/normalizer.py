"""
Message Normalizer
==================

Maps every supported wire shape onto one canonical command, independent of
the transport that delivered it. Shapes are tried in priority order:

1. Tool invocations (``tools/call`` or ``{"name"|"tool": ..., "arguments": ...}``)
2. Legacy ``{"lookup": "properties"}``
3. Legacy ``{"call": {"context": {...}, "user_input": ...}}``
4. JSON-RPC lifecycle methods (``initialize``, ``shutdown``, ``exit``, ...)
5. Anything else becomes ``Unknown``

New shapes are added to the tables here; the dispatcher never sees them.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .commands import (
    Command,
    Envelope,
    GenerateImage,
    ListTools,
    LookupProperties,
    Passthrough,
    Protocol,
    SetOutputDirectory,
    Unknown,
)
from .errors import InvalidRequest, ValidationError


# Tools whose arguments are echoed back unchanged
PASSTHROUGH_TOOLS = {"sequential_thinking"}

LIFECYCLE_METHODS = {"initialize", "shutdown", "exit", "notifications/initialized"}

_PATH_SEPARATORS = ("/", "\\")


def _optional_str(args: Mapping[str, Any], *keys: str) -> Optional[str]:
    """First present value among ``keys``; must be a string if present."""
    for key in keys:
        value = args.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(key, f"must be a string, got {type(value).__name__}")
        return value
    return None


def _required_str(args: Mapping[str, Any], key: str) -> str:
    value = _optional_str(args, key)
    if value is None or not value.strip():
        raise ValidationError(key, "must be a non-empty string")
    return value


def _dimension(args: Mapping[str, Any], key: str) -> Optional[int]:
    value = args.get(key)
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(key, f"must be a positive integer, got {value!r}")
    if value <= 0:
        raise ValidationError(key, f"must be a positive integer, got {value}")
    return value


def _filename(args: Mapping[str, Any]) -> Optional[str]:
    value = _optional_str(args, "outputFilename", "output_filename")
    if value is None:
        return None
    if not value.strip():
        raise ValidationError("outputFilename", "must not be empty")
    if any(sep in value for sep in _PATH_SEPARATORS) or "\x00" in value:
        raise ValidationError("outputFilename", "must not contain path separators")
    if value in (".", ".."):
        raise ValidationError("outputFilename", "must name a file")
    return value


def _check_prompt(prompt: Optional[str]) -> str:
    if prompt is None or not prompt.strip():
        raise ValidationError("prompt", "must be a non-empty string")
    return prompt


def _generate_command(args: Mapping[str, Any], envelope: Envelope, prompt: Optional[str] = None) -> GenerateImage:
    if prompt is None:
        prompt = _optional_str(args, "prompt")
    return GenerateImage(
        prompt=_check_prompt(prompt),
        model=_optional_str(args, "model") or None,
        width=_dimension(args, "width"),
        height=_dimension(args, "height"),
        output_path=_optional_str(args, "outputPath", "outputDir", "output_path") or None,
        output_filename=_filename(args),
        envelope=envelope,
    )


def _generate_image_tool(args: Mapping[str, Any], envelope: Envelope) -> Command:
    return _generate_command(args, envelope)


def _generate_from_context_tool(args: Mapping[str, Any], envelope: Envelope) -> Command:
    context = args.get("context", args)
    if not isinstance(context, dict):
        raise ValidationError("context", "must be an object")
    return _generate_command(context, envelope)


def _set_output_directory_tool(args: Mapping[str, Any], envelope: Envelope) -> Command:
    return SetOutputDirectory(path=_required_str(args, "path"), envelope=envelope)


TOOL_TABLE: Dict[str, Callable[[Mapping[str, Any], Envelope], Command]] = {
    "generate_image": _generate_image_tool,
    "generate_from_context": _generate_from_context_tool,
    "set_output_directory": _set_output_directory_tool,
}


def _tool_call(message: Dict[str, Any]) -> Optional[Tuple[Any, Any]]:
    """Return (name, arguments) when the message invokes a tool."""
    if message.get("method") == "tools/call":
        params = message.get("params")
        if not isinstance(params, dict):
            raise ValidationError("params", "must be an object")
        return params.get("name"), params.get("arguments")
    if "method" in message:
        return None
    if "tool" in message:
        return message.get("tool"), message.get("arguments")
    if "name" in message and "arguments" in message:
        return message.get("name"), message.get("arguments")
    return None


def _valid_request_id(request_id: Any) -> bool:
    # bool is an int subclass
    if isinstance(request_id, bool):
        return False
    return request_id is None or isinstance(request_id, (str, int))


def detect_envelope(message: Any) -> Envelope:
    """Work out which protocol variant a parsed message uses."""
    if not isinstance(message, dict):
        return Envelope()
    if message.get("jsonrpc") == "2.0":
        params = message.get("params")
        tool_name = params.get("name") if isinstance(params, dict) and message.get("method") == "tools/call" else None
        request_id = message.get("id")
        invalid_id = not _valid_request_id(request_id)
        return Envelope(
            protocol=Protocol.JSONRPC,
            request_id=None if invalid_id else request_id,
            tool_name=tool_name if isinstance(tool_name, str) else None,
            invalid_id=invalid_id,
        )
    if "tool" in message or ("name" in message and "arguments" in message):
        tool_name = message.get("tool", message.get("name"))
        return Envelope(
            protocol=Protocol.TOOL,
            request_id=message.get("id"),
            tool_name=tool_name if isinstance(tool_name, str) else None,
        )
    return Envelope(request_id=message.get("id"))


def _from_tool(name: Any, arguments: Any, message: Dict[str, Any], envelope: Envelope) -> Command:
    if not isinstance(name, str) or not name:
        raise ValidationError("name", "tool name must be a non-empty string")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise ValidationError("arguments", "must be an object")

    handler = TOOL_TABLE.get(name)
    if handler is not None:
        return handler(arguments, envelope)
    if name in PASSTHROUGH_TOOLS:
        return Passthrough(method=name, payload=arguments, envelope=envelope)
    return Unknown(raw=message, reason=f"Unknown tool: {name}", envelope=envelope)


def _from_call(call: Dict[str, Any], envelope: Envelope) -> Command:
    context = call.get("context")
    if context is None:
        context = {}
    if not isinstance(context, dict):
        raise ValidationError("context", "must be an object")

    prompt = _optional_str(context, "prompt")
    if prompt is None or not prompt.strip():
        prompt = _optional_str(call, "user_input")
    return _generate_command(context, envelope, prompt=prompt if prompt is not None else "")


def _from_jsonrpc(message: Dict[str, Any], envelope: Envelope) -> Command:
    method = message.get("method")
    if method in LIFECYCLE_METHODS:
        return Passthrough(method=method, payload=message.get("params"), envelope=envelope)
    if method == "tools/list":
        return ListTools(envelope=envelope)
    reason = f"Method not found: {method}" if isinstance(method, str) else "Missing JSON-RPC method"
    return Unknown(raw=message, reason=reason, envelope=envelope)


def normalize(message: Any) -> Command:
    """Map a parsed JSON message to exactly one canonical command.

    Raises ``ValidationError`` (with ``envelope`` set) when a recognised
    command carries bad fields, and ``InvalidRequest`` when a JSON-RPC id is
    not a string, an integer or null.
    """
    if not isinstance(message, dict):
        return Unknown(raw=message, reason="Message must be a JSON object")

    envelope = detect_envelope(message)
    if envelope.invalid_id:
        error = InvalidRequest("Invalid Request: id must be a string, an integer or null")
        error.envelope = envelope
        raise error

    try:
        tool = _tool_call(message)
        if tool is not None:
            return _from_tool(tool[0], tool[1], message, envelope)

        if message.get("lookup") == "properties":
            return LookupProperties(envelope=envelope)

        if isinstance(message.get("call"), dict):
            return _from_call(message["call"], envelope)

        if envelope.protocol == Protocol.JSONRPC:
            return _from_jsonrpc(message, envelope)

        return Unknown(raw=message, envelope=envelope)
    except ValidationError as e:
        e.envelope = envelope
        raise
