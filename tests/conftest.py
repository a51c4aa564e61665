"""Global test fixtures."""

import json
import tarfile
from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import pytest

from kitlock.domain.image.model.image import Image, ProjectImage, Vendor
from kitlock.domain.image.model.metadata import KIT_METADATA_LABEL, EncodedKitMetadata, ImageMetadata
from kitlock.domain.image.port.image_tool import ImageConfig, ImageTool
from kitlock.domain.shared.error import ImageToolError
from kitlock.domain.shared.model.artifact import ValidIdentifier, Version
from kitlock.infrastructure.oci.layout import (
    OCI_INDEX,
    OCI_MANIFEST,
    blob_path,
    pack_layout,
    sha256_digest,
    write_layout_index,
)

REGISTRY = "public.ecr.aws/bottlerocket"


class FakeImageTool(ImageTool):
    """In-memory image tool that records every call it receives."""

    def __init__(
        self,
        manifests: dict[str, bytes] | None = None,
        labels: dict[str, dict[str, str]] | None = None,
        layouts: dict[str, Path] | None = None,
    ) -> None:
        self.manifests = manifests or {}
        self.labels = labels or {}
        self.layouts = layouts or {}
        self.calls: list[tuple[str, str]] = []

    def calls_of(self, kind: str) -> list[str]:
        return [uri for k, uri in self.calls if k == kind]

    async def get_manifest(self, image_uri: str) -> bytes:
        self.calls.append(("manifest", image_uri))
        if image_uri not in self.manifests:
            raise ImageToolError(f"manifest unknown: {image_uri}")
        return self.manifests[image_uri]

    async def get_config(self, image_uri: str) -> ImageConfig:
        self.calls.append(("config", image_uri))
        if image_uri not in self.labels:
            raise ImageToolError(f"config unknown: {image_uri}")
        return ImageConfig(labels=self.labels[image_uri])

    async def pull_oci_image(self, path: Path, image_uri: str) -> None:
        self.calls.append(("pull", image_uri))
        if image_uri not in self.layouts:
            raise ImageToolError(f"image unknown: {image_uri}")
        pack_layout(self.layouts[image_uri], path)


def make_manifest_list(entries: list[tuple[str, str]]) -> bytes:
    """Manifest list bytes for (digest, architecture) entries, in order."""
    return json.dumps(
        {
            "schemaVersion": 2,
            "mediaType": OCI_INDEX,
            "manifests": [
                {
                    "mediaType": OCI_MANIFEST,
                    "digest": digest,
                    "size": 1024,
                    "platform": {"architecture": arch, "os": "linux"},
                }
                for digest, arch in entries
            ],
        }
    ).encode()


def make_metadata(
    name: str = "core-kit",
    version: str = "2.0.0",
    sdk_version: str = "0.43.0",
    kits: list[Image] | None = None,
) -> ImageMetadata:
    return ImageMetadata(
        name=name,
        version=Version(version),
        sdk=Image(
            name=ValidIdentifier("thar-be-beta-sdk"),
            version=Version(sdk_version),
            vendor=ValidIdentifier("bottlerocket"),
        ),
        kits=kits or [],
    )


def make_layer(files: dict[str, bytes | None]) -> bytes:
    """Gzipped layer tar; a None value adds a directory."""
    buffer = BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as layer:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                layer.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                layer.addfile(info, BytesIO(content))
    return buffer.getvalue()


def make_layout(directory: Path, layers: list[bytes]) -> Path:
    """Write an OCI image layout holding one image with the given layers."""
    directory.mkdir(parents=True, exist_ok=True)
    config = json.dumps({"architecture": "amd64", "os": "linux", "config": {}}).encode()
    descriptors = []
    for blob in [config, *layers]:
        digest = sha256_digest(blob)
        path = blob_path(directory, digest)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(blob)
        descriptors.append({"digest": digest, "size": len(blob)})
    manifest = {
        "schemaVersion": 2,
        "mediaType": OCI_MANIFEST,
        "config": {"mediaType": "application/vnd.oci.image.config.v1+json", **descriptors[0]},
        "layers": [
            {"mediaType": "application/vnd.oci.image.layer.v1.tar+gzip", **d}
            for d in descriptors[1:]
        ],
    }
    write_layout_index(directory, json.dumps(manifest).encode(), OCI_MANIFEST)
    return directory


@pytest.fixture
def project_image() -> ProjectImage:
    return ProjectImage(
        image=Image(
            name=ValidIdentifier("core-kit"),
            version=Version("2.0.0"),
            vendor=ValidIdentifier("bottlerocket"),
        ),
        vendor=Vendor(registry=REGISTRY),
    )


@pytest.fixture
def kit_labels() -> Callable[[ImageMetadata], dict[str, str]]:
    def _labels(metadata: ImageMetadata) -> dict[str, str]:
        return {KIT_METADATA_LABEL: EncodedKitMetadata.encode(metadata).root}

    return _labels


@pytest.fixture
def fake_image_tool() -> type[FakeImageTool]:
    return FakeImageTool


@pytest.fixture
def manifest_list() -> Callable[[list[tuple[str, str]]], bytes]:
    return make_manifest_list


@pytest.fixture
def metadata_factory() -> Callable[..., ImageMetadata]:
    return make_metadata


@pytest.fixture
def layer_factory() -> Callable[[dict[str, bytes | None]], bytes]:
    return make_layer


@pytest.fixture
def layout_factory() -> Callable[[Path, list[bytes]], Path]:
    return make_layout
