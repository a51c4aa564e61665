"""OCI image layout helpers shared by the image tools and the archive cache."""

import hashlib
import json
import tarfile
from pathlib import Path
from typing import IO

OCI_LAYOUT_VERSION = "1.0.0"

OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"

MANIFEST_LIST_MEDIA_TYPES = [OCI_INDEX, DOCKER_MANIFEST_LIST]
IMAGE_MANIFEST_MEDIA_TYPES = [OCI_MANIFEST, DOCKER_MANIFEST]


def sha256_digest(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def blob_path(layout_dir: Path, digest: str) -> Path:
    algorithm, _, encoded = digest.partition(":")
    return layout_dir / "blobs" / algorithm / encoded


def blob_member(digest: str) -> str:
    algorithm, _, encoded = digest.partition(":")
    return f"blobs/{algorithm}/{encoded}"


def write_layout_index(layout_dir: Path, manifest: bytes, media_type: str) -> str:
    """Store manifest as a blob and point index.json at it. Returns its digest."""
    digest = sha256_digest(manifest)
    path = blob_path(layout_dir, digest)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(manifest)
    (layout_dir / "oci-layout").write_text(json.dumps({"imageLayoutVersion": OCI_LAYOUT_VERSION}))
    index = {
        "schemaVersion": 2,
        "mediaType": OCI_INDEX,
        "manifests": [{"mediaType": media_type, "digest": digest, "size": len(manifest)}],
    }
    (layout_dir / "index.json").write_text(json.dumps(index))
    return digest


def pack_layout(layout_dir: Path, path: Path) -> None:
    """Pack an OCI image layout directory into an uncompressed tarball."""
    with tarfile.open(path, "w") as archive:
        for entry in sorted(layout_dir.rglob("*")):
            archive.add(entry, arcname=entry.relative_to(layout_dir).as_posix(), recursive=False)


def open_member(archive: tarfile.TarFile, name: str) -> IO[bytes]:
    """Open a file inside a layout tarball, tolerating a leading './'."""
    for candidate in (name, f"./{name}"):
        try:
            member = archive.getmember(candidate)
        except KeyError:
            continue
        f = archive.extractfile(member)
        if f is not None:
            return f
    raise KeyError(f"{name} not found in OCI layout")
