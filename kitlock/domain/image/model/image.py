"""Declared image references and the URIs they resolve to."""

from __future__ import annotations

from pydantic import ConfigDict

from kitlock.domain.shared.error import ImageReferenceError
from kitlock.domain.shared.model.artifact import ValidIdentifier, Version, describe_artifact
from kitlock.domain.shared.model.value import ValueObject


class ImageUri(ValueObject):
    """
    Parsed OCI image reference: [registry/]repo[:tag][@digest]
    Examples: public.ecr.aws/bottlerocket/core-kit:v2.0.0, localhost:5000/kit@sha256:...
    """

    registry: str | None = None
    repo: str
    tag: str | None = None
    digest: str | None = None

    @classmethod
    def parse(cls, text: str) -> ImageUri:
        text = text.strip()
        if not text:
            raise ImageReferenceError("empty image reference")

        rest, _, digest = text.partition("@")
        registry = None
        first, sep, remainder = rest.partition("/")
        if sep and ("." in first or ":" in first or first == "localhost"):
            registry = first
            rest = remainder

        tag = None
        last_slash = rest.rfind("/")
        colon = rest.rfind(":")
        if colon > last_slash:
            rest, tag = rest[:colon], rest[colon + 1 :]
            if not tag:
                raise ImageReferenceError(f"empty tag in image reference '{text}'")

        if not rest:
            raise ImageReferenceError(f"no repository in image reference '{text}'")
        if "@" in text and not digest:
            raise ImageReferenceError(f"empty digest in image reference '{text}'")

        return cls(registry=registry, repo=rest, tag=tag, digest=digest or None)

    @property
    def reference(self) -> str:
        """The tag or digest a registry is asked for (digest wins)."""
        return self.digest or self.tag or "latest"

    def with_digest(self, digest: str) -> ImageUri:
        return ImageUri(registry=self.registry, repo=self.repo, digest=digest)

    def __str__(self) -> str:
        out = f"{self.registry}/{self.repo}" if self.registry else self.repo
        if self.tag:
            out += f":{self.tag}"
        if self.digest:
            out += f"@{self.digest}"
        return out


class Image(ValueObject):
    """A declared dependency on a kit or SDK image.

    Kit metadata labels embed locked-image shaped records for their
    dependencies, so unknown fields (source, digest) are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: ValidIdentifier
    version: Version
    vendor: ValidIdentifier

    @property
    def artifact_name(self) -> ValidIdentifier:
        return self.name

    @property
    def vendor_name(self) -> ValidIdentifier:
        return self.vendor

    def uri(self, registry: str, repo_name: ValidIdentifier | None = None) -> ImageUri:
        """Concrete URI of this image in a registry: registry/name:vVERSION."""
        return ImageUri(
            registry=registry,
            repo=str(repo_name or self.name),
            tag=f"v{self.version}",
        )

    def __str__(self) -> str:
        return describe_artifact(self)


class Vendor(ValueObject):
    """Where a vendor publishes its images."""

    registry: str


class VendorOverride(ValueObject):
    """Local override for a vendor, e.g. a development registry."""

    registry: str
    name: ValidIdentifier | None = None  # repository name to use instead of the image name


class ProjectImage(ValueObject):
    """An Image bound to the project's vendor configuration."""

    image: Image
    vendor: Vendor
    override: VendorOverride | None = None

    @property
    def name(self) -> ValidIdentifier:
        return self.image.name

    @property
    def artifact_name(self) -> ValidIdentifier:
        return self.image.name

    @property
    def vendor_name(self) -> ValidIdentifier:
        return self.image.vendor

    @property
    def version(self) -> Version:
        return self.image.version

    def original_source_uri(self) -> ImageUri:
        """URI of the image as published by its vendor."""
        return self.image.uri(self.vendor.registry)

    def project_image_uri(self) -> ImageUri:
        """URI the project actually queries; differs from the source when overridden."""
        if self.override is None:
            return self.original_source_uri()
        return self.image.uri(self.override.registry, self.override.name)

    def __str__(self) -> str:
        return str(self.image)
