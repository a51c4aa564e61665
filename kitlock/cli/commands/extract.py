"""Extract a kit image for one architecture."""

from pathlib import Path

import cyclopts
from dishka import AsyncContainer

from kitlock.cli.console import get_console
from kitlock.cli.util import build_project_image, run
from kitlock.config import Config
from kitlock.domain.image.port.archive import ArchiveFactory
from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.domain.image.service.resolver import ImageResolver

app = cyclopts.App(name="extract", help="Pull and unpack a kit image")


@app.default
def extract(
    registry: str,
    /,
    *,
    name: str,
    vendor: str,
    version: str,
    arch: str,
    dest: Path | None = None,
    override_registry: str | None = None,
    override_name: str | None = None,
) -> None:
    """Extract a kit for an architecture.

    Args:
        registry: Registry (and namespace) the vendor publishes to
        name: Kit name
        vendor: Vendor name
        version: Exact version
        arch: Architecture, e.g. x86_64 or aarch64
        dest: Destination directory (default: paths.extract_dir from config)
        override_registry: Query this registry instead of the vendor's
        override_name: Query this repository name instead of the image name
    """

    async def _extract(container: AsyncContainer) -> None:
        image = build_project_image(
            registry, name, vendor, version, override_registry, override_name
        )
        destination = dest or (await container.get(Config)).paths.extract_dir
        image_tool = await container.get(ImageTool)
        archive_factory = await container.get(ArchiveFactory)
        resolver = ImageResolver.from_image(image, archive_factory=archive_factory)
        with get_console().status(f"Extracting {image} for {arch}"):
            await resolver.extract(image_tool, destination, arch)
        get_console().success(f"Extracted {image} to {destination / str(image.vendor_name) / str(image.name) / arch}")

    run(_extract)
