"""Static capability descriptor and MCP tool definitions."""

from typing import Any, Dict, List

import mcp.types as types

from . import __version__
from .providers import GeminiProvider


SERVER_NAME = "gemini-image-mcp"
PROVIDER_ID = "gemini-image-generator"


def provider_descriptor() -> Dict[str, Any]:
    """Descriptor returned for ``lookup: properties``. Identical on every call."""
    return {
        "id": PROVIDER_ID,
        "displayName": "Gemini Image Generator",
        "description": "Generate images using Google Gemini API",
        "models": [m.to_dict() for m in GeminiProvider.MODELS.values()],
        "features": ["text-to-image", "set-output-directory", "context-generation"],
        "capabilities": {
            "imageGeneration": True,
        },
    }


_GENERATE_PROPERTIES = {
    "prompt": {
        "type": "string",
        "description": "The prompt to generate an image from"
    },
    "model": {
        "type": "string",
        "description": "The model to use for image generation (default: server default model)"
    },
    "width": {
        "type": "integer",
        "description": "Requested image width in pixels (default: 1024)",
        "minimum": 1
    },
    "height": {
        "type": "integer",
        "description": "Requested image height in pixels (default: 1024)",
        "minimum": 1
    },
    "outputPath": {
        "type": "string",
        "description": "Directory to save the generated image to"
    },
    "outputFilename": {
        "type": "string",
        "description": "Filename to save the generated image as (no directories)"
    },
}


def tool_definitions() -> List[types.Tool]:
    """Tools advertised through ``tools/list``."""
    return [
        types.Tool(
            name="generate_image",
            description="""Generate an image from a text prompt using Google Gemini.

The image is written to the output directory (or outputPath) and its path
is returned.""",
            inputSchema={
                "type": "object",
                "properties": _GENERATE_PROPERTIES,
                "required": ["prompt"]
            }
        ),
        types.Tool(
            name="set_output_directory",
            description="Set the default output directory for saving generated images",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "The directory path where images will be saved"
                    }
                },
                "required": ["path"]
            }
        ),
        types.Tool(
            name="generate_from_context",
            description="Generate an image from a context object (prompt, model, outputPath, outputFilename)",
            inputSchema={
                "type": "object",
                "properties": {
                    "context": {
                        "type": "object",
                        "properties": _GENERATE_PROPERTIES,
                        "required": ["prompt"]
                    }
                },
                "required": ["context"]
            }
        ),
        types.Tool(
            name="sequential_thinking",
            description="Process complex image generation in sequential steps",
            inputSchema={
                "type": "object",
                "properties": {
                    "thought": {
                        "type": "string",
                        "description": "Current thinking step"
                    },
                    "nextThoughtNeeded": {
                        "type": "boolean",
                        "description": "Whether another thought step is needed"
                    },
                    "thoughtNumber": {
                        "type": "integer",
                        "description": "Current thought number",
                        "minimum": 1
                    },
                    "totalThoughts": {
                        "type": "integer",
                        "description": "Estimated total thoughts needed",
                        "minimum": 1
                    }
                },
                "required": ["thought", "nextThoughtNeeded", "thoughtNumber", "totalThoughts"]
            }
        ),
    ]


def initialize_result() -> Dict[str, Any]:
    """Result body for a JSON-RPC ``initialize`` request."""
    return {
        "protocolVersion": types.LATEST_PROTOCOL_VERSION,
        "capabilities": {
            "tools": {"listChanged": False},
        },
        "serverInfo": {
            "name": SERVER_NAME,
            "version": __version__,
        },
    }
