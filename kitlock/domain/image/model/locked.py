from __future__ import annotations

from functools import total_ordering

from kitlock.domain.shared.model.artifact import ValidIdentifier, Version, describe_artifact
from kitlock.domain.shared.model.value import ValueObject


@total_ordering
class LockedImage(ValueObject):
    """A dependency on an image, pinned to the content of its manifest list.

    Identity is (source, digest) only. Name, version and vendor are
    descriptive: two entries with the same source and digest are the same
    artifact however they were recorded, and the same name/version/vendor at
    a different digest is a different artifact.
    """

    name: ValidIdentifier
    version: Version
    vendor: ValidIdentifier
    source: str  # image uri as published by the vendor
    digest: str  # base64 SHA-256 of the manifest list bytes

    @property
    def identity(self) -> tuple[str, str]:
        return (self.source, self.digest)

    @property
    def artifact_name(self) -> ValidIdentifier:
        return self.name

    @property
    def vendor_name(self) -> ValidIdentifier:
        return self.vendor

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LockedImage):
            return NotImplemented
        return self.identity == other.identity

    def __lt__(self, other: LockedImage) -> bool:
        if not isinstance(other, LockedImage):
            return NotImplemented
        return self.identity < other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        return f"{describe_artifact(self)} ({self.source})"
