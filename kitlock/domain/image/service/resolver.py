"""ImageResolver - pins kit images to a content digest and extracts them."""

import base64
import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import logfire

from kitlock.domain.image.model.image import ImageUri, ProjectImage
from kitlock.domain.image.model.locked import LockedImage
from kitlock.domain.image.model.manifest import DockerArchitecture, ManifestListView
from kitlock.domain.image.model.metadata import EncodedKitMetadata, ImageMetadata
from kitlock.domain.image.port.archive import ArchiveFactory
from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.domain.shared.error import (
    ArchitectureNotFoundError,
    ConfigurationError,
    ImageReferenceError,
    KitMetadataNotFoundError,
    MetadataMismatchError,
)
from kitlock.domain.shared.service import Service

logger = logging.getLogger(__name__)


class ResolutionState(str, Enum):
    """How far a resolve or extract call got."""

    START = "start"
    MANIFEST_FETCHED = "manifest-fetched"
    DIGEST_COMPUTED = "digest-computed"
    ARCHITECTURE_SELECTED = "architecture-selected"
    METADATA_VALIDATED = "metadata-validated"
    ARCHIVE_PULLED = "archive-pulled"
    ARCHIVE_UNPACKED = "archive-unpacked"
    DONE = "done"


@dataclass
class _Progress:
    state: ResolutionState = ResolutionState.START


@contextmanager
def _failure_context(operation: str, subject: ImageUri, progress: _Progress) -> Iterator[None]:
    """Annotate any escaping error with the operation, subject and state reached."""
    try:
        yield
    except Exception as e:
        e.add_note(f"{operation} of '{subject}' failed after reaching state '{progress.state.value}'")
        raise


def calculate_digest(manifest_bytes: bytes) -> str:
    """Content address of a manifest list: base64 of the SHA-256 of its bytes."""
    return base64.standard_b64encode(hashlib.sha256(manifest_bytes).digest()).decode("ascii")


class ImageResolver(Service):
    """Resolves a project image into a LockedImage and its kit metadata.

    All registry I/O goes through the ImageTool passed to each call; the
    resolver itself only checks integrity, ordering and failure semantics.
    Calls for the same image are not synchronized with each other.
    """

    image: ProjectImage
    skip_metadata: bool = False
    archive_factory: ArchiveFactory | None = None

    @classmethod
    def from_image(
        cls, image: ProjectImage, archive_factory: ArchiveFactory | None = None
    ) -> "ImageResolver":
        return cls(image=image, archive_factory=archive_factory)

    def skip_metadata_retrieval(self) -> "ImageResolver":
        """Skip metadata retrieval when resolving.

        SDK images are leaves and carry no kit metadata.
        """
        return self.with_options(skip_metadata=True)

    def _registry(self, uri: ImageUri) -> str:
        if not uri.registry:
            raise ImageReferenceError(f"no registry found for image {uri}")
        return uri.registry

    async def _get_manifest(self, image_tool: ImageTool) -> tuple[bytes, ManifestListView]:
        uri = self.image.project_image_uri()
        manifest_bytes = await image_tool.get_manifest(str(uri))
        return manifest_bytes, ManifestListView.from_bytes(manifest_bytes)

    async def resolve(
        self, image_tool: ImageTool
    ) -> tuple[LockedImage, ImageMetadata | None]:
        """Pin the image to its manifest list digest and read its kit metadata.

        Returns:
            The locked image, and the kit metadata unless retrieval is skipped.

        Raises:
            ImageReferenceError: If the image uri has no registry.
            KitMetadataNotFoundError: If an image carries no kit metadata.
            MetadataDecodeError: If the canonical or any later metadata is malformed.
            MetadataMismatchError: If architectures disagree on the metadata.
        """
        uri = self.image.project_image_uri()
        progress = _Progress()
        with logfire.span("Resolve kit image {uri}", uri=str(uri)), _failure_context(
            "resolution", uri, progress
        ):
            self._registry(uri)
            manifest_bytes, manifest_list = await self._get_manifest(image_tool)
            progress.state = ResolutionState.MANIFEST_FETCHED

            digest = calculate_digest(manifest_bytes)
            logger.debug("Calculated digest for locked image '%s': '%s'", uri, digest)
            locked_image = LockedImage(
                name=self.image.name,
                version=self.image.version,
                vendor=self.image.vendor_name,
                source=str(self.image.original_source_uri()),
                digest=digest,
            )
            progress.state = ResolutionState.DIGEST_COMPUTED

            if self.skip_metadata:
                progress.state = ResolutionState.DONE
                return locked_image, None

            metadata = await self._resolve_metadata(image_tool, uri, manifest_list)
            progress.state = ResolutionState.METADATA_VALIDATED

            progress.state = ResolutionState.DONE
            return locked_image, metadata

    async def _resolve_metadata(
        self,
        image_tool: ImageTool,
        uri: ImageUri,
        manifest_list: ManifestListView,
    ) -> ImageMetadata:
        logger.debug("Extracting kit metadata from OCI image %s", uri)
        canonical: EncodedKitMetadata | None = None
        canonical_metadata: ImageMetadata | None = None

        # One fetch at a time, in manifest list order; the first entry is canonical
        for manifest in manifest_list.manifests:
            image_uri = str(uri.with_digest(manifest.digest))
            kit_metadata = await EncodedKitMetadata.try_from_image(image_uri, image_tool)

            if canonical_metadata is None:
                canonical = kit_metadata
                canonical_metadata = kit_metadata.decode()
                continue

            if kit_metadata.decode() != canonical_metadata:
                logger.error(
                    "Mismatched kit metadata in manifest list of %s: canonical=%r, %s=%r",
                    uri,
                    canonical,
                    manifest.digest,
                    kit_metadata,
                )
                raise MetadataMismatchError(
                    f"Metadata does not match between images in manifest list of {uri}: "
                    f"{manifest.digest} differs from {manifest_list.manifests[0].digest}"
                )

        if canonical_metadata is None:
            raise KitMetadataNotFoundError(f"could not find metadata for kit {uri}")
        return canonical_metadata

    async def resolve_locked_image(self, image_tool: ImageTool) -> LockedImage:
        locked_image, _ = await self.skip_metadata_retrieval().resolve(image_tool)
        return locked_image

    async def extract(self, image_tool: ImageTool, path: Path, arch: str) -> None:
        """Pull and unpack the image for one architecture below path.

        Layout:
            <path>/<vendor>/<name>/<arch>/   unpacked layers
            <path>/cache/                    archives, keyed by digest

        Safe to call repeatedly: cached archives are not pulled again and
        unpacked targets are not unpacked again.
        """
        uri = self.image.project_image_uri()
        progress = _Progress()
        with logfire.span("Extract kit image {uri}", uri=str(uri), arch=arch), _failure_context(
            "extraction", uri, progress
        ):
            docker_arch = DockerArchitecture.parse(arch)
            registry = self._registry(uri)
            if self.archive_factory is None:
                raise ConfigurationError("no image archive configured for extraction")

            logger.info("Extracting kit '%s' to '%s'", self.image.name, path)
            target_path = Path(path) / str(self.image.vendor_name) / str(self.image.name) / arch
            cache_path = Path(path) / "cache"
            target_path.mkdir(parents=True, exist_ok=True)
            cache_path.mkdir(parents=True, exist_ok=True)

            _, manifest_list = await self._get_manifest(image_tool)
            progress.state = ResolutionState.MANIFEST_FETCHED

            manifest = manifest_list.for_architecture(docker_arch)
            if manifest is None:
                raise ArchitectureNotFoundError(str(docker_arch), str(uri))
            progress.state = ResolutionState.ARCHITECTURE_SELECTED

            archive = self.archive_factory(registry, uri.repo, manifest.digest, cache_path)

            # Reuses a cached archive or pulls and saves it
            await archive.pull_image(image_tool)
            progress.state = ResolutionState.ARCHIVE_PULLED

            # Skips unpacking if the target already carries this digest's marker
            await archive.unpack_layers(target_path)
            progress.state = ResolutionState.ARCHIVE_UNPACKED
            logger.debug("Kit '%s' extracted to '%s'", self.image.name, target_path)

            progress.state = ResolutionState.DONE
