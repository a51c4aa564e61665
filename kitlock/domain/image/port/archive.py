"""Port for the local, content-addressed image archive cache."""

from abc import abstractmethod
from pathlib import Path
from typing import Protocol, runtime_checkable

from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.domain.shared.port import Port


@runtime_checkable
class ImageArchive(Port, Protocol):
    """A single image, cached by digest and unpacked on demand.

    Both operations are idempotent and safe to repeat after a partial failure.
    """

    @abstractmethod
    async def pull_image(self, image_tool: ImageTool) -> None:
        """Ensure the archive exists locally, pulling only if it is absent."""
        ...

    @abstractmethod
    async def unpack_layers(self, target: Path) -> None:
        """Ensure the image layers are unpacked at target, unpacking only once."""
        ...


class ArchiveFactory(Protocol):
    def __call__(
        self, registry: str, repository: str, digest: str, cache_dir: Path
    ) -> ImageArchive: ...
