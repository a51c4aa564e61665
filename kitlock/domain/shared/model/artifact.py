from __future__ import annotations

import re
from typing import ClassVar, Protocol, runtime_checkable

from pydantic import field_validator

from kitlock.domain.shared.model.value import RootValueObject


class ValidIdentifier(RootValueObject[str]):
    """
    Name of a kit, SDK or vendor.
    Examples: bottlerocket-core-kit, thar-be-beta-sdk, bottlerocket
    """

    _re: ClassVar[re.Pattern] = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9._-]{0,126}[A-Za-z0-9])?$")

    @field_validator("root")
    @classmethod
    def _validate(cls, v: str) -> str:
        v = v.strip()
        if not cls._re.match(v):
            raise ValueError(f"invalid identifier '{v}' (expected [A-Za-z0-9._-], alphanumeric at both ends)")
        return v


class Version(RootValueObject[str]):
    """Semantic version; a leading 'v' (as used in image tags) is stripped."""

    _re: ClassVar[re.Pattern] = re.compile(
        r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-([0-9A-Za-z\-\.]+))?(?:\+([0-9A-Za-z\-\.]+))?$"
    )

    @field_validator("root")
    @classmethod
    def _validate(cls, v: str) -> str:
        v = v.strip()
        if v.startswith("v"):
            v = v[1:]
        if not cls._re.match(v):
            raise ValueError(f"invalid semantic version '{v}'")
        return v

    @property
    def core(self) -> tuple[int, int, int]:
        match = self._re.match(self.root)
        assert match is not None
        return int(match.group(1)), int(match.group(2)), int(match.group(3))

    @property
    def prerelease(self) -> str | None:
        match = self._re.match(self.root)
        assert match is not None
        return match.group(4)

    def _sort_key(self) -> tuple:
        # A release sorts after all of its pre-releases
        pre = self.prerelease
        if pre is None:
            return (self.core, 1, ())
        parts = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in pre.split("."))
        return (self.core, 0, parts)

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._sort_key() < other._sort_key()


@runtime_checkable
class VendedArtifact(Protocol):
    """Identity view shared by anything that can be published and resolved.

    Lets display and lookup code treat declared references and locked records
    alike when only the name, vendor and version matter.
    """

    @property
    def artifact_name(self) -> ValidIdentifier: ...

    @property
    def vendor_name(self) -> ValidIdentifier: ...

    @property
    def version(self) -> Version: ...


def artifact_key(artifact: VendedArtifact) -> tuple[str, str, str]:
    """Lookup key (vendor, name, version) for an artifact."""
    return str(artifact.vendor_name), str(artifact.artifact_name), str(artifact.version)


def describe_artifact(artifact: VendedArtifact) -> str:
    return f"{artifact.artifact_name}-{artifact.version}@{artifact.vendor_name}"
