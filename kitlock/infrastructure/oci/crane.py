"""ImageTool wrapping the crane CLI (or a compatible one such as krane)."""

import asyncio
import json
import logging
import tempfile
from pathlib import Path

import logfire

from kitlock.domain.image.model.image import ImageUri
from kitlock.domain.image.port.image_tool import ImageConfig, ImageTool
from kitlock.domain.shared.error import ImageToolError
from kitlock.infrastructure.oci.layout import pack_layout

logger = logging.getLogger(__name__)


class CraneImageTool(ImageTool):
    """Runs crane as a subprocess; crane handles registry credentials itself."""

    def __init__(self, crane_path: str = "crane", insecure_registries: list[str] | None = None):
        self._crane_path = crane_path
        self._insecure = set(insecure_registries or [])

    def _flags(self, image_uri: str) -> list[str]:
        registry = ImageUri.parse(image_uri).registry
        return ["--insecure"] if registry in self._insecure else []

    async def _run(self, *args: str) -> bytes:
        logger.debug("Running %s %s", self._crane_path, " ".join(args))
        try:
            process = await asyncio.create_subprocess_exec(
                self._crane_path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ImageToolError(f"failed to run '{self._crane_path}': {e}") from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            logfire.error(
                "crane command failed",
                command=args[0],
                returncode=process.returncode,
                stderr=message,
            )
            raise ImageToolError(
                f"'{self._crane_path} {args[0]}' failed with exit code {process.returncode}: {message}"
            )
        return stdout

    async def get_manifest(self, image_uri: str) -> bytes:
        return await self._run("manifest", *self._flags(image_uri), image_uri)

    async def get_config(self, image_uri: str) -> ImageConfig:
        output = await self._run("config", *self._flags(image_uri), image_uri)
        try:
            return ImageConfig.from_config_json(json.loads(output))
        except ValueError as e:
            raise ImageToolError(f"image config for {image_uri} is not a valid image config: {e}") from e

    async def pull_oci_image(self, path: Path, image_uri: str) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            layout = Path(tmp) / "layout"
            await self._run("pull", *self._flags(image_uri), "--format", "oci", image_uri, str(layout))
            await asyncio.to_thread(pack_layout, layout, path)
