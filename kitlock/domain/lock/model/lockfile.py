"""The project lockfile: one LockedImage per declared dependency."""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator

from kitlock.domain.image.model.locked import LockedImage
from kitlock.domain.shared.model.value import ValueObject

LOCKFILE_SCHEMA_VERSION = 1


class LockUpdate(str, Enum):
    ADDED = "added"
    UNCHANGED = "unchanged"
    REPLACED = "replaced"


class Lockfile(ValueObject):
    """Immutable set of locked images, kept sorted for stable serialization."""

    schema_version: int = LOCKFILE_SCHEMA_VERSION
    images: list[LockedImage] = Field(default_factory=list)

    @field_validator("images")
    @classmethod
    def _sorted(cls, v: list[LockedImage]) -> list[LockedImage]:
        return sorted(v)

    def find(self, vendor: str, name: str) -> LockedImage | None:
        return next(
            (i for i in self.images if str(i.vendor) == vendor and str(i.name) == name),
            None,
        )

    def upsert(self, locked: LockedImage) -> tuple[Lockfile, LockUpdate]:
        """Return a lockfile holding `locked` and what changed.

        Re-resolving to the same (source, digest) is a no-op; anything else
        replaces the prior entry for the same vendor and name.
        """
        existing = self.find(str(locked.vendor), str(locked.name))
        if existing is None:
            return self.model_copy(update={"images": sorted([*self.images, locked])}), LockUpdate.ADDED
        if existing == locked:
            return self, LockUpdate.UNCHANGED
        images = [locked if i is existing else i for i in self.images]
        return self.model_copy(update={"images": sorted(images)}), LockUpdate.REPLACED
