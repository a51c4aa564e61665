"""Resolve a kit or SDK image into a locked entry."""

import cyclopts
from dishka import AsyncContainer

from kitlock.cli.console import get_console
from kitlock.cli.util import build_project_image, print_yaml, run
from kitlock.config import Config
from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.domain.image.service.resolver import ImageResolver
from kitlock.domain.lock.port.lockfile_store import LockfileStore

app = cyclopts.App(name="resolve", help="Resolve an image to its locked digest and kit metadata")


@app.default
def resolve(
    registry: str,
    /,
    *,
    name: str,
    vendor: str,
    version: str,
    sdk: bool = False,
    write: bool = False,
    override_registry: str | None = None,
    override_name: str | None = None,
) -> None:
    """Resolve an image and print its lock entry.

    Args:
        registry: Registry (and namespace) the vendor publishes to, e.g. public.ecr.aws/bottlerocket
        name: Kit or SDK name
        vendor: Vendor name
        version: Exact version, e.g. 2.0.0
        sdk: The image is an SDK and carries no kit metadata
        write: Record the result in the lockfile
        override_registry: Query this registry instead of the vendor's
        override_name: Query this repository name instead of the image name
    """

    async def _resolve(container: AsyncContainer) -> None:
        image = build_project_image(
            registry, name, vendor, version, override_registry, override_name
        )
        image_tool = await container.get(ImageTool)
        resolver = ImageResolver.from_image(image)
        if sdk:
            resolver = resolver.skip_metadata_retrieval()
        locked, metadata = await resolver.resolve(image_tool)

        output: dict = {"locked": locked.model_dump(mode="json")}
        if metadata is not None:
            output["metadata"] = metadata.model_dump(mode="json", by_alias=True)
        print_yaml(output)

        if write:
            store = await container.get(LockfileStore)
            lockfile, update = store.load().upsert(locked)
            store.save(lockfile)
            config = await container.get(Config)
            get_console().success(f"{update.value.capitalize()} {locked} in {config.paths.lockfile}")

    run(_resolve)
