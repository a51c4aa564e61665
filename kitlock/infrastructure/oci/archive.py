"""Content-addressed cache of pulled kit images, and unpacking of their layers."""

import asyncio
import json
import logging
import os
import posixpath
import tarfile
import tempfile
from pathlib import Path
from shutil import rmtree

import logfire

from kitlock.domain.image.port.archive import ImageArchive
from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.domain.shared.error import ArchiveError
from kitlock.infrastructure.oci.layout import blob_member, open_member

WHITEOUT_PREFIX = ".wh."
OPAQUE_WHITEOUT = ".wh..wh..opq"

logger = logging.getLogger(__name__)


class OciArchive(ImageArchive):
    """One image, stored as an OCI layout tarball in the cache directory.

    The archive file only appears once a pull has completed, and the digest
    marker in the target directory is written after the last layer, so an
    interrupted pull or unpack is simply redone on the next call.
    """

    MARKER = ".digest"

    def __init__(self, registry: str, repository: str, digest: str, cache_dir: Path):
        algorithm, sep, encoded = digest.partition(":")
        if not sep or not algorithm or not encoded:
            raise ArchiveError(f"invalid image digest '{digest}'")
        self.digest = digest
        self.image_uri = f"{registry}/{repository}@{digest}"
        self.cache_dir = cache_dir
        self.archive_path = cache_dir / f"{algorithm}-{encoded}.tar"

    async def pull_image(self, image_tool: ImageTool) -> None:
        if self.archive_path.exists():
            logger.debug("Using cached archive %s for %s", self.archive_path, self.image_uri)
            return

        logfire.info("Pulling kit image", image=self.image_uri)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.cache_dir, prefix=".pull-", suffix=".tar")
        os.close(fd)
        try:
            await image_tool.pull_oci_image(Path(tmp), self.image_uri)
            os.replace(tmp, self.archive_path)
        finally:
            Path(tmp).unlink(missing_ok=True)
        logger.debug("Saved %s to %s", self.image_uri, self.archive_path)

    def is_unpacked(self, target: Path) -> bool:
        marker = target / self.MARKER
        return marker.exists() and marker.read_text().strip() == self.digest

    async def unpack_layers(self, target: Path) -> None:
        if self.is_unpacked(target):
            logger.debug("%s already unpacked at %s", self.image_uri, target)
            return
        if not self.archive_path.exists():
            raise ArchiveError(f"no archive for {self.image_uri} at {self.archive_path}, pull it first")

        logfire.info("Unpacking kit image", image=self.image_uri, target=str(target))
        await asyncio.to_thread(self._unpack, target)

    def _unpack(self, target: Path) -> None:
        # Start from an empty directory: a previous unpack may have been interrupted
        if target.exists():
            rmtree(target)
        target.mkdir(parents=True)

        try:
            with tarfile.open(self.archive_path) as archive:
                index = json.load(open_member(archive, "index.json"))
                manifest_digest = index["manifests"][0]["digest"]
                manifest = json.load(open_member(archive, blob_member(manifest_digest)))
                for layer in manifest["layers"]:
                    blob = open_member(archive, blob_member(layer["digest"]))
                    with tarfile.open(fileobj=blob, mode="r:*") as layer_archive:
                        self._apply_layer(layer_archive, target)
        except (tarfile.TarError, KeyError, IndexError, ValueError, OSError) as e:
            raise ArchiveError(
                f"failed to unpack {self.archive_path} into {target}: {e}"
            ) from e

        (target / self.MARKER).write_text(self.digest)

    def _apply_layer(self, layer: tarfile.TarFile, target: Path) -> None:
        root = target.resolve()
        members = layer.getmembers()

        # Whiteouts only hide entries from lower layers, so apply them first
        for member in members:
            directory, name = posixpath.split(member.name)
            if name == OPAQUE_WHITEOUT:
                opaque = self._inside(root, directory)
                if opaque.is_dir() and not opaque.is_symlink():
                    for child in opaque.iterdir():
                        _remove(child)
            elif name.startswith(WHITEOUT_PREFIX):
                hidden = name[len(WHITEOUT_PREFIX) :]
                if hidden in ("", ".", ".."):
                    raise ArchiveError(f"invalid whiteout entry '{member.name}'")
                _remove(self._inside(root, directory) / hidden)

        for member in members:
            if posixpath.basename(member.name).startswith(WHITEOUT_PREFIX):
                continue
            layer.extract(member, target, filter="data")

    @staticmethod
    def _inside(root: Path, directory: str) -> Path:
        path = (root / directory.lstrip("/")).resolve()
        if path != root and root not in path.parents:
            raise ArchiveError(f"layer entry '{directory}' points outside of {root}")
        return path


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        rmtree(path)
    else:
        path.unlink(missing_ok=True)
