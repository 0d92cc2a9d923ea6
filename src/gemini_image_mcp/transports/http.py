"""
HTTP Transport
==============

aiohttp application serving MCP requests.

Routes:
- GET/POST /                               route by body shape
- GET      /v1/providers/{id}              provider descriptor
- POST     /v1/providers/{id}/generations  generate from {"context": {...}}
- GET      /health                         provider and config status
- OPTIONS  *                               CORS preflight (204, no body)

Everything else is a JSON 404. Malformed JSON is rejected with 400 before
it reaches the normalizer.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from aiohttp import web

from ..capabilities import PROVIDER_ID
from ..commands import CommandResult, Envelope
from ..dispatcher import Dispatcher
from ..errors import ProtocolError
from .replies import build_reply, fallback_reply


logger = logging.getLogger("gemini-image-mcp.http")

DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

CLIENT_ERRORS = {"ValidationError", "InvalidRequest", "ProtocolError", "ConfigError", "UnrecognizedCommand"}


def status_for(result: CommandResult) -> int:
    """Map a command result to an HTTP status code."""
    if result.success:
        return 200
    if result.error_kind in CLIENT_ERRORS:
        return 400
    return 500


def _json_response(body: Any, status: int = 200) -> web.Response:
    return web.json_response(body, status=status)


def _not_found() -> web.Response:
    return _json_response({"error": "Not found"}, status=404)


def _protocol_failure(reason: str) -> web.Response:
    error = ProtocolError(reason)
    result = CommandResult.failed(error.kind, error.message)
    return _json_response(build_reply(Envelope(), result), status=400)


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflights, add CORS headers, and turn routing errors into JSON 404s."""
    if request.method == "OPTIONS":
        response: web.StreamResponse = web.Response(status=204)
    else:
        try:
            response = await handler(request)
        except (web.HTTPNotFound, web.HTTPMethodNotAllowed):
            response = _not_found()
    response.headers.update(CORS_HEADERS)
    return response


async def _read_json(request: web.Request) -> Optional[Any]:
    """Read the whole body and parse it; None for an empty body.

    Raises ``ProtocolError`` for malformed JSON.
    """
    body = await request.read()
    if not body.strip():
        return None
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON request body: {e}") from e


async def handle_root(request: web.Request) -> web.Response:
    """Route purely by body shape."""
    try:
        message = await _read_json(request)
    except ProtocolError as e:
        logger.warning(e.message)
        return _protocol_failure(e.message)

    if message is None:
        if request.method not in ("GET", "HEAD"):
            return _protocol_failure("Empty request body")
        message = {"lookup": "properties"}

    dispatcher = request.app[DISPATCHER_KEY]
    envelope, result = await dispatcher.handle_message(message)
    try:
        reply = build_reply(envelope, result)
    except Exception:
        logger.exception("Failed to build reply")
        return _json_response(fallback_reply(envelope), status=500)
    if reply is None:
        return web.Response(status=202)
    return _json_response(reply, status=status_for(result))


async def handle_provider(request: web.Request) -> web.Response:
    if request.match_info["provider_id"] != PROVIDER_ID:
        return _not_found()
    dispatcher = request.app[DISPATCHER_KEY]
    _, result = await dispatcher.handle_message({"lookup": "properties"})
    return _json_response(result.data, status=status_for(result))


def _generation_body(result: CommandResult) -> Dict[str, Any]:
    if result.success:
        return {
            "content": f"Image generated successfully: {result.artifact_path}",
            "metadata": {"imagePath": result.artifact_path, **(result.data or {})},
        }
    return {"error": result.error_detail, "errorKind": result.error_kind}


async def handle_generations(request: web.Request) -> web.Response:
    if request.match_info["provider_id"] != PROVIDER_ID:
        return _not_found()
    try:
        body = await _read_json(request)
    except ProtocolError as e:
        logger.warning(e.message)
        return _protocol_failure(e.message)
    if not isinstance(body, dict):
        return _protocol_failure("Request body must be a JSON object")

    call: Dict[str, Any] = {"context": body.get("context", {})}
    if "user_input" in body:
        call["user_input"] = body["user_input"]

    dispatcher = request.app[DISPATCHER_KEY]
    _, result = await dispatcher.handle_message({"call": call})
    return _json_response(_generation_body(result), status=status_for(result))


async def handle_health(request: web.Request) -> web.Response:
    dispatcher = request.app[DISPATCHER_KEY]
    config = dispatcher.config.get()
    return _json_response({
        "status": "ok",
        "outputDirectory": str(config.output_directory),
        "defaultModel": config.default_model,
        "provider": await dispatcher.provider.check_health(),
    })


def create_app(dispatcher: Dispatcher) -> web.Application:
    app = web.Application(middlewares=[cors_middleware])
    app[DISPATCHER_KEY] = dispatcher
    app.router.add_get("/", handle_root)
    app.router.add_post("/", handle_root)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/v1/providers/{provider_id}", handle_provider)
    app.router.add_post("/v1/providers/{provider_id}", handle_provider)
    app.router.add_post("/v1/providers/{provider_id}/generations", handle_generations)
    return app


async def run_http_server(dispatcher: Dispatcher, host: str, port: int):
    """Serve until cancelled; in-flight requests finish during cleanup."""
    runner = web.AppRunner(create_app(dispatcher))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"MCP Gemini Image Generator server running at http://{host}:{port}/")
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
