from typing import Protocol, runtime_checkable

from kitlock.domain.lock.model.lockfile import Lockfile
from kitlock.domain.shared.port import Port


@runtime_checkable
class LockfileStore(Port, Protocol):
    """Load and save the project lockfile."""

    def load(self) -> Lockfile:
        """Load the lockfile; a missing file is an empty lockfile."""
        ...

    def save(self, lockfile: Lockfile) -> None: ...

    def dumps(self, lockfile: Lockfile) -> str:
        """Render the lockfile exactly as it would be saved."""
        ...
