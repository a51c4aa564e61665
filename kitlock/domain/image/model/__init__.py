from kitlock.domain.image.model.image import Image, ImageUri, ProjectImage, Vendor, VendorOverride
from kitlock.domain.image.model.locked import LockedImage
from kitlock.domain.image.model.manifest import (
    DockerArchitecture,
    ManifestListView,
    ManifestView,
    Platform,
)
from kitlock.domain.image.model.metadata import (
    KIT_METADATA_LABEL,
    EncodedKitMetadata,
    ImageMetadata,
)

__all__ = [
    "DockerArchitecture",
    "EncodedKitMetadata",
    "Image",
    "ImageMetadata",
    "ImageUri",
    "KIT_METADATA_LABEL",
    "LockedImage",
    "ManifestListView",
    "ManifestView",
    "Platform",
    "ProjectImage",
    "Vendor",
    "VendorOverride",
]
