"""YAML-backed lockfile store."""

import logging
import os
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from kitlock.domain.lock.model.lockfile import Lockfile
from kitlock.domain.lock.port.lockfile_store import LockfileStore
from kitlock.domain.shared.error import LockfileError

logger = logging.getLogger(__name__)


class YamlLockfileStore(LockfileStore):
    """Stores the lockfile as sorted, block-style YAML so diffs stay readable."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> Lockfile:
        if not self._path.exists():
            logger.debug("No lockfile at %s, starting empty", self._path)
            return Lockfile()
        try:
            data = yaml.safe_load(self._path.read_text()) or {}
            return Lockfile.model_validate(data)
        except (yaml.YAMLError, ValidationError) as e:
            raise LockfileError(f"failed to parse lockfile {self._path}: {e}") from e

    def dumps(self, lockfile: Lockfile) -> str:
        return yaml.safe_dump(
            lockfile.model_dump(mode="json"),
            sort_keys=True,
            default_flow_style=False,
        )

    def save(self, lockfile: Lockfile) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target then rename, so readers never see a torn file
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(self.dumps(lockfile))
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.info("Wrote lockfile %s (%d images)", self._path, len(lockfile.images))
