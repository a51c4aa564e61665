"""Port for the tool that talks to OCI registries."""

from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ConfigDict, Field

from kitlock.domain.shared.model.value import ValueObject
from kitlock.domain.shared.port import Port


class ImageConfig(ValueObject):
    """The parts of an OCI image configuration kitlock reads."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    labels: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_config_json(cls, data: Any) -> "ImageConfig":
        """Build from an image config document ({"config": {"Labels": ...}, ...}).

        Raises:
            ValueError: If the document or its config section is not an object.
        """
        if not isinstance(data, dict):
            raise ValueError(f"image config must be a JSON object, got {type(data).__name__}")
        inner = data.get("config") or data.get("Config") or {}
        if not isinstance(inner, dict):
            raise ValueError(f"image config section must be a JSON object, got {type(inner).__name__}")
        return cls(labels=inner.get("Labels") or {})


@runtime_checkable
class ImageTool(Port, Protocol):
    """Fetch manifests and configs from, and pull images out of, a registry."""

    @abstractmethod
    async def get_manifest(self, image_uri: str) -> bytes:
        """Return the raw manifest (list) bytes for an image uri."""
        ...

    @abstractmethod
    async def get_config(self, image_uri: str) -> ImageConfig:
        """Return the image configuration of a single-platform image."""
        ...

    @abstractmethod
    async def pull_oci_image(self, path: Path, image_uri: str) -> None:
        """Write the image to `path` as an OCI image layout tarball."""
        ...
