"""Error hierarchy for kitlock.

Error layers:
- KitlockError: Base class for all kitlock errors
- DomainError: Bad references, missing artifacts and integrity failures in
  the kits themselves
- InfrastructureError: Failures surfaced by the image tool, the archive cache
  or the local configuration

The CLI maps every KitlockError to a one-line message and exit status 1.
"""

from typing import Literal


class KitlockError(Exception):
    """Base class for all kitlock errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors
# =============================================================================


class DomainError(KitlockError):
    """Base class for domain errors."""


class ImageReferenceError(DomainError):
    """Image URI is malformed, unqualified or cannot be resolved."""


class UnsupportedArchitectureError(ImageReferenceError):
    """Requested architecture has no OCI platform equivalent."""


class NotFoundError(DomainError):
    """Requested artifact does not exist."""


class ArchitectureNotFoundError(NotFoundError):
    """Manifest list carries no image for the requested architecture."""

    def __init__(self, architecture: str, uri: str) -> None:
        super().__init__(f"could not find image for architecture '{architecture}' at {uri}")
        self.architecture = architecture
        self.uri = uri


class KitMetadataNotFoundError(NotFoundError):
    """Image config carries no kit metadata label, so the image is not a kit."""


class IntegrityError(DomainError):
    """Artifact contents are malformed or inconsistent.

    These represent packaging defects upstream and are never tolerated.
    """


class MetadataDecodeError(IntegrityError):
    """Encoded kit metadata could not be decoded."""

    def __init__(self, message: str, stage: Literal["base64", "json"]) -> None:
        super().__init__(message)
        self.stage = stage


class MetadataMismatchError(IntegrityError):
    """Kit metadata differs between architectures of one manifest list."""


class ManifestDecodeError(IntegrityError):
    """Manifest list bytes are not a valid manifest list."""


class LockfileError(IntegrityError):
    """Lockfile on disk cannot be parsed."""


# =============================================================================
# Infrastructure Errors
# =============================================================================


class InfrastructureError(KitlockError):
    """Base class for infrastructure/system errors."""


class ImageToolError(InfrastructureError):
    """Image tool (registry client or CLI) failed to fetch or pull."""


class ArchiveError(InfrastructureError):
    """Local image archive could not be written, read or unpacked."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected."""
