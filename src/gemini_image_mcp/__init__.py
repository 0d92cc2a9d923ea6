"""
Gemini Image MCP Server
=======================

Google Gemini image generation exposed to MCP clients.

Transports:
- HTTP (aiohttp) on / and /v1/providers/{id}/...
- Line-delimited JSON over stdio

Message shapes:
- Legacy lookup/call envelopes
- JSON-RPC 2.0 (initialize, tools/list, tools/call, shutdown, exit)
- Tool invocations: generate_image, set_output_directory, generate_from_context
"""

__version__ = "1.0.0"
