"""
Stdio Transport
===============

Newline-delimited JSON: one message per input line, one reply per output
line. Lines are handled strictly in order; a slow generation blocks the lines
behind it. Diagnostics go through logging (stderr), never the reply stream.
"""

import asyncio
import json
import logging
import re
import sys
from typing import Any, Dict, Optional, TextIO

import mcp.types as types

from ..dispatcher import Dispatcher
from .replies import build_reply, fallback_reply, jsonrpc_error


logger = logging.getLogger("gemini-image-mcp.stdio")

_ID_PATTERN = re.compile(r'"id"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+)')


def recover_request_id(raw: str) -> Any:
    """Best-effort id extraction from a line that is not valid JSON."""
    match = _ID_PATTERN.search(raw)
    if not match:
        return None
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return None


class StdioServer:
    """Reads requests from ``input_stream`` and writes replies to ``output_stream``."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
    ):
        self.dispatcher = dispatcher
        self.input = input_stream or sys.stdin
        self.output = output_stream or sys.stdout

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Process one line and return the reply, if any."""
        line = line.strip()
        if not line:
            return None

        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            request_id = recover_request_id(line)
            logger.error(f"Error processing message: invalid JSON ({e})")
            if request_id is None:
                return None
            return jsonrpc_error(request_id, types.INTERNAL_ERROR, "Internal error", f"Invalid JSON: {e}")

        envelope, result = await self.dispatcher.handle_message(message)
        try:
            return build_reply(envelope, result)
        except Exception:
            logger.exception("Failed to build reply")
            return fallback_reply(envelope)

    def write(self, reply: Dict[str, Any]):
        self.output.write(json.dumps(reply) + "\n")
        self.output.flush()

    async def run(self):
        """Serve until EOF or an ``exit`` request."""
        logger.info("Starting MCP server in stdio mode")
        while not self.dispatcher.exit_requested.is_set():
            line = await asyncio.to_thread(self.input.readline)
            if not line:
                logger.info("Input closed")
                break
            reply = await self.handle_line(line)
            if reply is not None:
                self.write(reply)
        logger.info("MCP server terminating")
