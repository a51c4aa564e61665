"""Kit metadata embedded in the image config label of every kit image."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from pydantic import ConfigDict, Field, ValidationError

from kitlock.domain.image.model.image import Image
from kitlock.domain.shared.error import KitMetadataNotFoundError, MetadataDecodeError
from kitlock.domain.shared.model.artifact import Version
from kitlock.domain.shared.model.value import RootValueObject, ValueObject

if TYPE_CHECKING:
    from kitlock.domain.image.port.image_tool import ImageTool

logger = logging.getLogger(__name__)

KIT_METADATA_LABEL = "dev.bottlerocket.kit.v1"


class ImageMetadata(ValueObject):
    """Dependency manifest of a kit: exactly one SDK plus zero or more kits."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    version: Version
    sdk: Image
    kits: list[Image] = Field(alias="kit")


class EncodedKitMetadata(RootValueObject[str]):
    """Base64-encoded JSON ImageMetadata, as stored in the image config label.

    Equality compares the encoded form. Two encodings of the same metadata
    that differ in field order or whitespace are not equal here; decode both
    to compare by value.
    """

    @classmethod
    async def try_from_image(cls, image_uri: str, image_tool: ImageTool) -> EncodedKitMetadata:
        logger.debug("Extracting kit metadata from OCI image config of %s", image_uri)
        config = await image_tool.get_config(image_uri)
        label = config.labels.get(KIT_METADATA_LABEL)
        if label is None:
            raise KitMetadataNotFoundError(
                f"no metadata stored on image {image_uri}, this image appears to not be a kit"
            )
        kit_metadata = cls(label)
        logger.debug("Kit metadata retrieved from %s: %r", image_uri, kit_metadata)
        return kit_metadata

    @classmethod
    def encode(cls, metadata: ImageMetadata) -> EncodedKitMetadata:
        payload = metadata.model_dump_json(by_alias=True).encode()
        return cls(base64.standard_b64encode(payload).decode("ascii"))

    def decode(self) -> ImageMetadata:
        try:
            payload = base64.b64decode(self.root, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MetadataDecodeError(
                f"failed to decode kit metadata as base64: {e}", stage="base64"
            ) from e
        try:
            return ImageMetadata.model_validate_json(payload)
        except ValidationError as e:
            raise MetadataDecodeError(
                f"failed to parse kit metadata json: {e}", stage="json"
            ) from e

    def debug_image_metadata(self) -> str | None:
        """Decoded rendering of the metadata, or None if it does not decode."""
        try:
            metadata = self.decode()
        except MetadataDecodeError:
            return None
        return f"<ImageMetadata(decoded) [{metadata!r}]>"

    def try_debug_image_metadata(self) -> str:
        """Never fails: decoded rendering if possible, else the escaped encoded form."""
        decoded = self.debug_image_metadata()
        if decoded is not None:
            return decoded
        escaped = self.root.replace("\n", "\\n")
        return f"<ImageMetadata(encoded) [{escaped}]>"

    def __repr__(self) -> str:
        return self.try_debug_image_metadata()
