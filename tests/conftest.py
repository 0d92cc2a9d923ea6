"""Pytest configuration and fixtures for gemini-image-mcp tests."""

import base64
import pytest
from unittest.mock import AsyncMock, MagicMock

from gemini_image_mcp.config import Configuration, ConfigStore
from gemini_image_mcp.dispatcher import Dispatcher
from gemini_image_mcp.providers.base import (
    ImageProvider,
    GenerationOutcome,
    ProviderModel,
)

# Sample base64-encoded 1x1 PNG image (valid PNG)
SAMPLE_PNG_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="

# Sample base64-encoded 1x1 JPEG image (valid JPEG)
SAMPLE_JPEG_BASE64 = "/9j/4AAQSkZJRgABAQEASABIAAD/2wBDAAEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQH/2wBDAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQEBAQH/wAARCAABAAEDAREAAhEBAxEB/8QAFQABAQAAAAAAAAAAAAAAAAAAAAv/xAAUEAEAAAAAAAAAAAAAAAAAAAAA/8QAFQEBAQAAAAAAAAAAAAAAAAAAAAX/xAAUEQEAAAAAAAAAAAAAAAAAAAAA/9oADAMBAAIRAxEAPwA/wA//2Q=="

DEFAULT_TEST_MODEL = "gemini-test-model"


class MockProvider(ImageProvider):
    """Provider returning a canned outcome and recording every call."""

    name = "mock"
    display_name = "Mock Provider"
    requires_api_key = False

    def __init__(self, outcome: GenerationOutcome):
        super().__init__()
        self.outcome = outcome
        self.calls = []

    async def generate(self, prompt, model, width=1024, height=1024):
        self.calls.append({"prompt": prompt, "model": model, "width": width, "height": height})
        self._record_request()
        return self.outcome

    def list_models(self):
        return [ProviderModel(id="mock-model", name="Mock Model", description="Test model")]


@pytest.fixture
def sample_png_bytes():
    """Return valid PNG image bytes."""
    return base64.b64decode(SAMPLE_PNG_BASE64)


@pytest.fixture
def sample_jpeg_bytes():
    """Return valid JPEG image bytes."""
    return base64.b64decode(SAMPLE_JPEG_BASE64)


@pytest.fixture
def sample_png_base64():
    """Return base64-encoded PNG."""
    return SAMPLE_PNG_BASE64


@pytest.fixture
def mock_output_dir(tmp_path):
    """Create temporary output directory for tests."""
    output_dir = tmp_path / "generated-images"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def config_store(mock_output_dir):
    """Config store pointing at the temporary output directory."""
    return ConfigStore(Configuration(
        api_key="test-key",
        output_directory=mock_output_dir,
        default_model=DEFAULT_TEST_MODEL,
    ))


@pytest.fixture
def mock_provider(sample_png_bytes):
    """Create a mock image provider that succeeds with a 1x1 PNG."""
    return MockProvider(GenerationOutcome.success(sample_png_bytes, "image/png", text="Here is your image"))


@pytest.fixture
def failing_provider():
    """Create a mock image provider that refuses every prompt."""
    return MockProvider(GenerationOutcome.failure("safety block"))


@pytest.fixture
def dispatcher(config_store, mock_provider):
    """Dispatcher wired to the mock provider and temporary directory."""
    return Dispatcher(config_store, mock_provider)


@pytest.fixture
def mock_aiohttp_response():
    """Create mock aiohttp response."""
    def _create_response(status=200, json_data=None, text=""):
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=json_data if json_data is not None else {})
        response.text = AsyncMock(return_value=text)
        return response
    return _create_response


@pytest.fixture
def mock_aiohttp_session(mock_aiohttp_response):
    """Create mock aiohttp ClientSession returning one canned response."""
    def _create_session(status=200, json_data=None, text="", error=None):
        response = mock_aiohttp_response(status=status, json_data=json_data, text=text)

        class SessionContextManager:
            async def __aenter__(self):
                return session

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                return None

        class ResponseContextManager:
            async def __aenter__(self):
                if error is not None:
                    raise error
                return response

            async def __aexit__(self, exc_type, exc_val, exc_tb):
                return None

        session = MagicMock()
        session.post = MagicMock(return_value=ResponseContextManager())
        return SessionContextManager(), session, response
    return _create_session
