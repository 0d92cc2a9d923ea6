"""Serialize command results into the envelope the request arrived in."""

import json
from typing import Any, Dict, Optional

import mcp.types as types

from ..commands import CommandResult, Envelope, LookupProperties, Passthrough, Protocol


# Failures of an executed tool are reported inside a CallToolResult
TOOL_EXECUTION_ERRORS = {"CollaboratorError", "WriteError", "ConfigError"}

ERROR_CODES = {
    "ValidationError": types.INVALID_PARAMS,
    "InvalidRequest": types.INVALID_REQUEST,
    "ProtocolError": types.PARSE_ERROR,
    "UnrecognizedCommand": types.METHOD_NOT_FOUND,
}


def _dump(model) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def jsonrpc_error(request_id: Any, code: int, message: str, data: Any = None) -> Dict[str, Any]:
    if request_id is None:
        # JSONRPCError only models string or integer ids
        return {"jsonrpc": "2.0", "id": None, "error": _dump(types.ErrorData(code=code, message=message, data=data))}
    return _dump(types.JSONRPCError(
        jsonrpc="2.0",
        id=request_id,
        error=types.ErrorData(code=code, message=message, data=data),
    ))


def jsonrpc_result(request_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return _dump(types.JSONRPCResponse(jsonrpc="2.0", id=request_id, result=result))


def tool_result(result: CommandResult) -> Dict[str, Any]:
    """MCP ``CallToolResult`` body for a tool invocation."""
    if result.success and result.command == Passthrough.tag:
        text = json.dumps(result.data, indent=2)
    else:
        text = json.dumps(result.to_dict(), indent=2)
    return _dump(types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=not result.success,
    ))


def error_code(result: CommandResult) -> int:
    return ERROR_CODES.get(result.error_kind, types.INTERNAL_ERROR)


def _jsonrpc_reply(envelope: Envelope, result: CommandResult) -> Dict[str, Any]:
    request_id = envelope.request_id
    if envelope.tool_name is not None and (result.success or result.error_kind in TOOL_EXECUTION_ERRORS):
        return jsonrpc_result(request_id, tool_result(result))
    if not result.success:
        return jsonrpc_error(request_id, error_code(result), result.message or "Error", result.error_detail)
    if isinstance(result.data, dict):
        return jsonrpc_result(request_id, result.data)
    return jsonrpc_result(request_id, {})


def build_reply(envelope: Envelope, result: CommandResult) -> Optional[Dict[str, Any]]:
    """JSON body for ``result``, or None when the caller expects no reply."""
    if not envelope.expects_reply:
        return None

    if envelope.protocol == Protocol.JSONRPC:
        return _jsonrpc_reply(envelope, result)

    if result.success and result.command == LookupProperties.tag:
        body: Dict[str, Any] = {"result": result.data}
    else:
        body = {"result": result.to_dict()}
    if envelope.request_id is not None:
        body["id"] = envelope.request_id
    return body


def fallback_reply(envelope: Envelope) -> Dict[str, Any]:
    """Reply used when ``build_reply`` itself failed."""
    if envelope.protocol == Protocol.JSONRPC:
        return jsonrpc_error(envelope.request_id, types.INTERNAL_ERROR, "Internal error", "Reply could not be serialized")
    result = CommandResult.failed("InternalError", "Internal server error", "Reply could not be serialized")
    return {"result": result.to_dict()}
