#!/usr/bin/env python3
"""
Gemini Image Generation MCP Server
==================================

Google Gemini image generation for MCP clients over HTTP or stdio.

Provides:
- Text-to-image generation written to a configurable output directory
- Runtime change of the output directory
- Provider property lookup and MCP tool listing

MCP Tools:
- generate_image: Generate image from text prompt
- set_output_directory: Change where images are saved
- generate_from_context: Generate image from a context object
- sequential_thinking: Echo a thinking step back to the caller

Usage:
    gemini-image-mcp                 # HTTP on localhost:23032
    gemini-image-mcp --stdio         # line-delimited JSON on stdin/stdout
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .config import ConfigStore, Settings
from .dispatcher import Dispatcher
from .providers import GeminiProvider
from .transports import StdioServer, run_http_server


logger = logging.getLogger("gemini-image-mcp")


def configure_logging(level: str = "INFO"):
    """Log to stderr so stdout stays reserved for protocol replies."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def build_dispatcher(settings: Settings) -> Dispatcher:
    """Create the config store, provider and dispatcher from startup settings."""
    config = ConfigStore.from_settings(settings)
    provider = GeminiProvider(api_key=settings.api_key, config={"timeout": settings.timeout})
    if not provider.configured:
        logger.warning("GEMINI_API_KEY is not set; image generation will fail until it is provided")
    return Dispatcher(config, provider)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gemini-image-mcp",
        description="Generate images with Google Gemini over MCP",
    )
    parser.add_argument("--stdio", action="store_true", help="Serve line-delimited JSON on stdin/stdout")
    parser.add_argument("--host", default=None, help="Host for the HTTP server")
    parser.add_argument("-p", "--port", type=int, default=None, help="Port for the HTTP server")
    parser.add_argument("-o", "--output", default=None, help="Directory for saving generated images")
    parser.add_argument("-k", "--api-key", default=None, help="Gemini API key (or set GEMINI_API_KEY)")
    parser.add_argument("-m", "--model", default=None, help="Default model")
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace, settings: Settings) -> Settings:
    """Command-line values override environment values."""
    overrides = {
        "api_key": args.api_key,
        "output_dir": args.output,
        "default_model": args.model,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


async def main(argv: Optional[List[str]] = None):
    """Run the MCP server."""
    args = parse_args(argv)
    settings = settings_from_args(args, Settings.from_env())
    configure_logging(settings.log_level)

    logger.info(f"Gemini Image MCP Server {__version__} starting...")
    dispatcher = build_dispatcher(settings)
    logger.info(f"Default model: {settings.default_model}")

    if args.stdio:
        await StdioServer(dispatcher).run()
    else:
        await run_http_server(dispatcher, settings.host, settings.port)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("MCP server terminating")


if __name__ == "__main__":
    run()
