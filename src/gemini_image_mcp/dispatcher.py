"""
Command Dispatcher
==================

Executes one canonical command and produces exactly one ``CommandResult``.

- GenerateImage: latch config, call provider once, name and write artifact
- SetOutputDirectory: update the config store
- LookupProperties / ListTools: static descriptors
- Passthrough: initialize / shutdown / exit / echo tools
- Unknown: UnrecognizedCommand failure

After ``shutdown`` every command except ``exit`` fails with InvalidRequest.

``dispatch`` never raises: taxonomy errors become failures and anything
unexpected is logged and reported as an internal error.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Tuple

from .capabilities import initialize_result, provider_descriptor, tool_definitions
from .commands import (
    Command,
    CommandResult,
    Envelope,
    GenerateImage,
    ListTools,
    LookupProperties,
    Passthrough,
    SetOutputDirectory,
    Unknown,
)
from .config import ConfigStore, ensure_directory
from .errors import (
    CollaboratorError,
    ImageServerError,
    InvalidRequest,
    UnrecognizedCommand,
    ValidationError,
)
from .naming import name_artifact, write_artifact
from .normalizer import normalize
from .providers import ImageFormat, ImageProvider, read_dimensions, resolve_image_format


logger = logging.getLogger("gemini-image-mcp.dispatcher")

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 1024


def _is_exit(command: Command) -> bool:
    return isinstance(command, Passthrough) and command.method == "exit"


class Dispatcher:
    """Routes canonical commands to their handlers."""

    def __init__(self, config: ConfigStore, provider: ImageProvider):
        self.config = config
        self.provider = provider
        self.shutdown_requested = False
        self.exit_requested = asyncio.Event()
        self._handlers: Dict[str, Callable[[Any], Awaitable[CommandResult]]] = {
            GenerateImage.tag: self._generate_image,
            SetOutputDirectory.tag: self._set_output_directory,
            LookupProperties.tag: self._lookup_properties,
            ListTools.tag: self._list_tools,
            Passthrough.tag: self._passthrough,
            Unknown.tag: self._unknown,
        }

    async def handle_message(self, message: Any) -> Tuple[Envelope, CommandResult]:
        """Normalize and dispatch one parsed message."""
        try:
            command = normalize(message)
        except ValidationError as e:
            logger.warning(f"Rejected message: {e.message}")
            result = CommandResult.failed(e.kind, e.message, data={"field": e.field, "reason": e.reason})
            return e.envelope or Envelope(), result
        except InvalidRequest as e:
            logger.warning(f"Rejected message: {e.message}")
            return e.envelope or Envelope(), CommandResult.failed(e.kind, e.message)
        return command.envelope, await self.dispatch(command)

    async def dispatch(self, command: Command) -> CommandResult:
        handler = self._handlers[command.tag]
        try:
            if self.shutdown_requested and not _is_exit(command):
                raise InvalidRequest("Server is shutting down; only exit is accepted")
            result = await handler(command)
        except ImageServerError as e:
            logger.warning(f"{command.tag} failed ({e.kind}): {e.detail}")
            data = {"received": e.raw} if isinstance(e, UnrecognizedCommand) else None
            result = CommandResult.failed(e.kind, e.message, e.detail, data=data)
        except Exception as e:
            logger.exception(f"Unexpected error handling {command.tag}")
            result = CommandResult.failed("InternalError", "Internal server error", str(e))
        result.command = command.tag
        return result

    async def _generate_image(self, command: GenerateImage) -> CommandResult:
        # Latch configuration before the provider await
        config = self.config.get()
        model = command.model or config.default_model
        width = command.width or DEFAULT_WIDTH
        height = command.height or DEFAULT_HEIGHT
        if command.output_path:
            directory = ensure_directory(command.output_path)
        else:
            directory = config.output_directory

        logger.info(f"Generating image: '{command.prompt[:50]}' (model={model}, {width}x{height})")

        outcome = await self.provider.generate(
            prompt=command.prompt,
            model=model,
            width=width,
            height=height,
        )
        if not outcome.ok:
            raise CollaboratorError(outcome.reason or "Unknown error occurred")
        if not outcome.data:
            raise CollaboratorError("Provider returned an empty image")

        name = name_artifact(
            command.prompt,
            directory,
            data=outcome.data,
            mime_type=outcome.mime_type,
            filename=command.output_filename,
        )
        path = write_artifact(name, outcome.data)
        actual_width, actual_height = read_dimensions(outcome.data) or (width, height)
        image_format = resolve_image_format(outcome.data, outcome.mime_type)
        mime_type = outcome.mime_type if image_format == ImageFormat.UNKNOWN else image_format.mime_type

        return CommandResult.ok(
            message="Image generated successfully",
            artifact_path=str(path),
            data={
                "prompt": command.prompt,
                "model": model,
                "width": actual_width,
                "height": actual_height,
                "mimeType": mime_type,
                "text": outcome.text,
            },
        )

    async def _set_output_directory(self, command: SetOutputDirectory) -> CommandResult:
        directory = self.config.set_output_directory(command.path)
        return CommandResult.ok(
            message=f"Output directory successfully set to: {directory}",
            data={"outputDirectory": str(directory)},
        )

    async def _lookup_properties(self, command: LookupProperties) -> CommandResult:
        return CommandResult.ok(data=provider_descriptor())

    async def _list_tools(self, command: ListTools) -> CommandResult:
        return CommandResult.ok(data={
            "tools": [tool.model_dump(mode="json", by_alias=True, exclude_none=True) for tool in tool_definitions()],
        })

    async def _passthrough(self, command: Passthrough) -> CommandResult:
        if command.method == "initialize":
            logger.info("Handling initialize request")
            return CommandResult.ok(data=initialize_result())
        if command.method == "notifications/initialized":
            return CommandResult.ok()
        if command.method == "shutdown":
            logger.info("Shutdown requested")
            self.shutdown_requested = True
            return CommandResult.ok(message="Shutting down")
        if command.method == "exit":
            logger.info("Exit requested")
            self.exit_requested.set()
            return CommandResult.ok(message="Exiting")
        # Echo tools
        return CommandResult.ok(data=command.payload)

    async def _unknown(self, command: Unknown) -> CommandResult:
        raise UnrecognizedCommand(command.raw, command.reason)
