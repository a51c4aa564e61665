"""Lockfile inspection commands."""

import cyclopts
from dishka import AsyncContainer

from kitlock.cli.console import get_console
from kitlock.cli.util import run
from kitlock.domain.lock.port.lockfile_store import LockfileStore
from kitlock.domain.shared.model.artifact import artifact_key

app = cyclopts.App(name="lock", help="Inspect the lockfile")


@app.command
def show() -> None:
    """Print the lockfile."""

    async def _show(container: AsyncContainer) -> None:
        store = await container.get(LockfileStore)
        get_console().raw(store.dumps(store.load()))

    run(_show)


@app.command(name="list")
def list_images() -> None:
    """List locked images as a table."""
    console = get_console()

    async def _list(container: AsyncContainer) -> None:
        lockfile = (await container.get(LockfileStore)).load()
        if not lockfile.images:
            console.info("No locked images")
            return
        console.table(
            [image.model_dump(mode="json") for image in sorted(lockfile.images, key=artifact_key)],
            [("name", "Name"), ("version", "Version"), ("vendor", "Vendor"), ("source", "Source"), ("digest", "Digest")],
            title="Locked images",
        )

    run(_list)
