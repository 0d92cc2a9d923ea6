"""Tests for the aiohttp transport."""

import json
from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from gemini_image_mcp.capabilities import PROVIDER_ID, provider_descriptor
from gemini_image_mcp.dispatcher import Dispatcher
from gemini_image_mcp.transports.http import create_app, status_for
from gemini_image_mcp.commands import CommandResult


@asynccontextmanager
async def serve(dispatcher):
    async with TestClient(TestServer(create_app(dispatcher))) as client:
        yield client


def jsonrpc_generate(arguments, request_id=1):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": "generate_image", "arguments": arguments},
    }


class TestStatusFor:
    """Test result to status mapping."""

    def test_success(self):
        assert status_for(CommandResult.ok()) == 200

    @pytest.mark.parametrize("kind", ["ValidationError", "InvalidRequest", "ProtocolError", "ConfigError", "UnrecognizedCommand"])
    def test_client_errors(self, kind):
        assert status_for(CommandResult.failed(kind, "bad")) == 400

    @pytest.mark.parametrize("kind", ["CollaboratorError", "WriteError", "InternalError"])
    def test_server_errors(self, kind):
        assert status_for(CommandResult.failed(kind, "bad")) == 500


class TestRootRoute:
    """Test routing by body shape on /."""

    @pytest.mark.asyncio
    async def test_lookup(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"lookup": "properties"})
            body = await response.json()

        assert response.status == 200
        assert body == {"result": provider_descriptor()}

    @pytest.mark.asyncio
    async def test_get_without_body_is_lookup(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.get("/")
            body = await response.json()

        assert response.status == 200
        assert body["result"]["id"] == PROVIDER_ID

    @pytest.mark.asyncio
    async def test_legacy_call(self, dispatcher, mock_output_dir):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"call": {"context": {"prompt": "a red cube"}}})
            body = await response.json()

        assert response.status == 200
        assert body["result"]["success"] is True
        assert body["result"]["imagePath"].startswith(str(mock_output_dir))
        assert len(list(mock_output_dir.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_malformed_json(self, dispatcher, mock_provider):
        async with serve(dispatcher) as client:
            response = await client.post(
                "/", data='{"call": {', headers={"Content-Type": "application/json"},
            )
            body = await response.json()

        assert response.status == 400
        assert body["result"]["errorKind"] == "ProtocolError"
        assert mock_provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_post_body(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/")

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_collaborator_failure(self, config_store, failing_provider, mock_output_dir):
        async with serve(Dispatcher(config_store, failing_provider)) as client:
            response = await client.post("/", json={"call": {"context": {"prompt": "x"}}})
            body = await response.json()

        assert response.status == 500
        assert body["result"]["success"] is False
        assert body["result"]["error"] == "safety block"
        assert body["result"]["errorKind"] == "CollaboratorError"
        assert list(mock_output_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_unrecognized_shape(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"hello": "world"})
            body = await response.json()

        assert response.status == 400
        assert body["result"]["errorKind"] == "UnrecognizedCommand"
        assert body["result"]["data"] == {"received": {"hello": "world"}}


class TestJsonRpcOverHttp:
    """Test JSON-RPC replies on /."""

    @pytest.mark.asyncio
    async def test_tools_call_success(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json=jsonrpc_generate({"prompt": "a red cube"}, request_id=42))
            body = await response.json()

        assert response.status == 200
        assert body["jsonrpc"] == "2.0"
        assert body["id"] == 42
        assert body["result"]["isError"] is False
        payload = json.loads(body["result"]["content"][0]["text"])
        assert payload["success"] is True
        assert payload["imagePath"].endswith(".png")

    @pytest.mark.asyncio
    async def test_tools_call_failure_is_tool_error(self, config_store, failing_provider):
        async with serve(Dispatcher(config_store, failing_provider)) as client:
            response = await client.post("/", json=jsonrpc_generate({"prompt": "x"}))
            body = await response.json()

        assert response.status == 500
        assert body["result"]["isError"] is True
        payload = json.loads(body["result"]["content"][0]["text"])
        assert payload["error"] == "safety block"

    @pytest.mark.asyncio
    async def test_validation_error(self, dispatcher, mock_provider):
        async with serve(dispatcher) as client:
            response = await client.post("/", json=jsonrpc_generate({"prompt": ""}, request_id="v1"))
            body = await response.json()

        assert response.status == 400
        assert body["id"] == "v1"
        assert body["error"]["code"] == -32602
        assert mock_provider.calls == []

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"jsonrpc": "2.0", "id": 2, "method": "prompts/list"})
            body = await response.json()

        assert body["error"]["code"] == -32601

    @pytest.mark.asyncio
    async def test_tools_list(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"})
            body = await response.json()

        assert response.status == 200
        assert "generate_image" in [tool["name"] for tool in body["result"]["tools"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_id", [1.5, {"a": 1}, [1], False])
    async def test_non_scalar_id(self, dispatcher, request_id):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"jsonrpc": "2.0", "id": request_id, "method": "initialize"})
            body = await response.json()

        assert response.status == 400
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert body["id"] is None
        assert body["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_reply_serialization_failure(self, dispatcher):
        async with serve(dispatcher) as client:
            with patch("gemini_image_mcp.transports.http.build_reply", side_effect=ValueError("cannot serialize")):
                response = await client.post("/", json={"jsonrpc": "2.0", "id": 4, "method": "tools/list"})
            body = await response.json()

        assert response.status == 500
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert body["id"] == 4
        assert body["error"]["code"] == -32603

    @pytest.mark.asyncio
    async def test_shutdown_then_request_rejected(self, dispatcher):
        async with serve(dispatcher) as client:
            await client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "shutdown"})
            response = await client.post("/", json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
            body = await response.json()

        assert response.status == 400
        assert body["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_notification_gets_no_body(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post("/", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
            text = await response.text()

        assert response.status == 202
        assert text == ""


class TestProviderRoutes:
    """Test the versioned provider routes."""

    @pytest.mark.asyncio
    async def test_descriptor(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.get(f"/v1/providers/{PROVIDER_ID}")
            body = await response.json()

        assert response.status == 200
        assert body == provider_descriptor()

    @pytest.mark.asyncio
    async def test_unknown_provider(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.get("/v1/providers/dall-e")

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_generations(self, dispatcher, mock_output_dir):
        async with serve(dispatcher) as client:
            response = await client.post(
                f"/v1/providers/{PROVIDER_ID}/generations",
                json={"context": {"prompt": "a red cube", "width": 512, "height": 512}},
            )
            body = await response.json()

        assert response.status == 200
        assert body["content"].startswith("Image generated successfully: ")
        assert body["metadata"]["imagePath"].startswith(str(mock_output_dir))
        assert body["metadata"]["model"] == "gemini-test-model"

    @pytest.mark.asyncio
    async def test_generations_without_prompt(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post(f"/v1/providers/{PROVIDER_ID}/generations", json={"context": {}})
            body = await response.json()

        assert response.status == 400
        assert body["errorKind"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_generations_non_object_body(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.post(f"/v1/providers/{PROVIDER_ID}/generations", json=["a red cube"])

        assert response.status == 400

    @pytest.mark.asyncio
    async def test_health(self, dispatcher, mock_output_dir):
        async with serve(dispatcher) as client:
            response = await client.get("/health")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "ok"
        assert body["outputDirectory"] == str(mock_output_dir)
        assert body["provider"]["provider"] == "mock"


class TestCorsAndRouting:
    """Test preflight, CORS headers and unknown routes."""

    @pytest.mark.asyncio
    async def test_preflight(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.options("/v1/providers/anything")
            text = await response.text()

        assert response.status == 204
        assert text == ""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_cors_on_regular_response(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.get("/")

        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_unknown_path(self, dispatcher):
        async with serve(dispatcher) as client:
            response = await client.get("/nope")
            body = await response.json()

        assert response.status == 404
        assert body == {"error": "Not found"}
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_unsupported_method(self, dispatcher, mock_provider):
        async with serve(dispatcher) as client:
            response = await client.put("/", json={"lookup": "properties"})

        assert response.status == 404
        assert mock_provider.calls == []
