"""Typed view over an OCI image index / Docker manifest list."""

from __future__ import annotations

from enum import Enum

from pydantic import ConfigDict, Field, ValidationError

from kitlock.domain.shared.error import ManifestDecodeError, UnsupportedArchitectureError
from kitlock.domain.shared.model.value import ValueObject


class DockerArchitecture(str, Enum):
    """OCI platform architectures kits are built for."""

    amd64 = "amd64"
    arm64 = "arm64"

    @classmethod
    def parse(cls, arch: str) -> DockerArchitecture:
        """Map a build architecture (x86_64, aarch64) or OCI name to its OCI name."""
        match arch.strip().lower():
            case "x86_64" | "amd64":
                return cls.amd64
            case "aarch64" | "arm64":
                return cls.arm64
            case _:
                raise UnsupportedArchitectureError(f"unsupported architecture '{arch}'")

    def __str__(self) -> str:
        return self.value


class Platform(ValueObject):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    architecture: str
    os: str | None = None
    variant: str | None = None


class ManifestView(ValueObject):
    """One per-platform entry of a manifest list."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    digest: str
    media_type: str | None = Field(default=None, alias="mediaType")
    platform: Platform | None = None


class ManifestListView(ValueObject):
    model_config = ConfigDict(frozen=True, extra="ignore")

    manifests: list[ManifestView]

    @classmethod
    def from_bytes(cls, raw: bytes) -> ManifestListView:
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise ManifestDecodeError(f"failed to deserialize manifest list: {e}") from e

    def for_architecture(self, architecture: str) -> ManifestView | None:
        """First entry whose platform architecture matches exactly."""
        return next(
            (
                m
                for m in self.manifests
                if m.platform is not None and m.platform.architecture == architecture
            ),
            None,
        )
