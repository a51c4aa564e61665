"""ImageTool speaking the OCI distribution API directly, using httpx."""

import asyncio
import hashlib
import json
import logging
import re
import tempfile
from pathlib import Path

import httpx
import logfire

from kitlock.domain.image.model.image import ImageUri
from kitlock.domain.image.port.image_tool import ImageConfig, ImageTool
from kitlock.domain.shared.error import ImageReferenceError, ImageToolError
from kitlock.infrastructure.oci.layout import (
    IMAGE_MANIFEST_MEDIA_TYPES,
    MANIFEST_LIST_MEDIA_TYPES,
    OCI_MANIFEST,
    blob_path,
    pack_layout,
    write_layout_index,
)

logger = logging.getLogger(__name__)

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class RegistryImageTool(ImageTool):
    """Fetches manifests, configs and blobs from OCI registries over HTTP.

    Anonymous bearer-token challenges are answered; credentials are not
    supported.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        insecure_registries: list[str] | None = None,
    ) -> None:
        self._client = client
        self._insecure = set(insecure_registries or [])
        self._tokens: dict[tuple[str, str], str] = {}

    def _parse(self, image_uri: str) -> ImageUri:
        uri = ImageUri.parse(image_uri)
        if not uri.registry:
            raise ImageReferenceError(f"image uri '{image_uri}' is not fully qualified")
        return uri

    def _url(self, uri: ImageUri, path: str) -> str:
        scheme = "http" if uri.registry in self._insecure else "https"
        return f"{scheme}://{uri.registry}/v2/{uri.repo}/{path}"

    def _headers(self, uri: ImageUri, accept: list[str] | None) -> dict[str, str]:
        headers = {}
        if accept:
            headers["Accept"] = ", ".join(accept)
        token = self._tokens.get((uri.registry or "", uri.repo))
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _anonymous_token(self, uri: ImageUri, response: httpx.Response) -> bool:
        """Answer a bearer challenge with an anonymous token. Returns True if one was obtained."""
        scheme, _, params = response.headers.get("WWW-Authenticate", "").partition(" ")
        if scheme.lower() != "bearer":
            return False
        fields = dict(_CHALLENGE_PARAM.findall(params))
        realm = fields.pop("realm", None)
        if not realm:
            return False

        logfire.info("Fetching anonymous registry token", realm=realm, scope=fields.get("scope"))
        token_response = await self._client.get(realm, params=fields)
        token_response.raise_for_status()
        try:
            body = token_response.json()
        except ValueError:
            logfire.warning("Token endpoint returned invalid JSON", realm=realm)
            return False
        token = body.get("token") or body.get("access_token")
        if not token:
            return False
        self._tokens[(uri.registry or "", uri.repo)] = token
        return True

    async def _get(self, uri: ImageUri, path: str, accept: list[str] | None = None) -> httpx.Response:
        url = self._url(uri, path)
        try:
            response = await self._client.get(
                url, headers=self._headers(uri, accept), follow_redirects=True
            )
            if response.status_code == 401 and await self._anonymous_token(uri, response):
                response = await self._client.get(
                    url, headers=self._headers(uri, accept), follow_redirects=True
                )
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            logfire.error("Registry request failed", url=url, error=str(e))
            raise ImageToolError(f"failed to fetch {path} for {uri}: {e}") from e

    async def _download_blob(self, uri: ImageUri, digest: str, dest: Path) -> None:
        """Stream a blob to dest, checking it against its digest."""
        url = self._url(uri, f"blobs/{digest}")
        algorithm, _, expected = digest.partition(":")
        if algorithm != "sha256":
            raise ImageToolError(f"unsupported digest algorithm in {digest}")

        hasher = hashlib.sha256()
        await asyncio.to_thread(dest.parent.mkdir, parents=True, exist_ok=True)
        try:
            async with self._client.stream(
                "GET", url, headers=self._headers(uri, None), follow_redirects=True
            ) as response:
                response.raise_for_status()
                with dest.open("wb") as f:
                    async for chunk in response.aiter_bytes():
                        hasher.update(chunk)
                        await asyncio.to_thread(f.write, chunk)
        except httpx.HTTPError as e:
            logfire.error("Blob download failed", url=url, error=str(e))
            raise ImageToolError(f"failed to download blob {digest} for {uri}: {e}") from e

        if hasher.hexdigest() != expected:
            raise ImageToolError(f"blob {digest} for {uri} does not match its digest")

    async def get_manifest(self, image_uri: str) -> bytes:
        uri = self._parse(image_uri)
        response = await self._get(
            uri,
            f"manifests/{uri.reference}",
            MANIFEST_LIST_MEDIA_TYPES + IMAGE_MANIFEST_MEDIA_TYPES,
        )
        return response.content

    async def _get_image_manifest(self, uri: ImageUri) -> tuple[bytes, dict, str]:
        response = await self._get(uri, f"manifests/{uri.reference}", IMAGE_MANIFEST_MEDIA_TYPES)
        try:
            manifest = json.loads(response.content)
        except ValueError as e:
            raise ImageToolError(f"manifest for {uri} is not valid JSON: {e}") from e
        if "config" not in manifest:
            raise ImageToolError(
                f"{uri} does not refer to a single-platform image manifest; address it by digest"
            )
        media_type = manifest.get("mediaType") or response.headers.get("Content-Type", OCI_MANIFEST)
        return response.content, manifest, media_type

    async def get_config(self, image_uri: str) -> ImageConfig:
        uri = self._parse(image_uri)
        _, manifest, _ = await self._get_image_manifest(uri)
        response = await self._get(uri, f"blobs/{manifest['config']['digest']}")
        try:
            return ImageConfig.from_config_json(response.json())
        except ValueError as e:
            raise ImageToolError(f"image config for {uri} is not a valid image config: {e}") from e

    async def pull_oci_image(self, path: Path, image_uri: str) -> None:
        uri = self._parse(image_uri)
        manifest_bytes, manifest, media_type = await self._get_image_manifest(uri)
        logger.debug("Pulling %s (%d layers) to %s", uri, len(manifest.get("layers", [])), path)

        with tempfile.TemporaryDirectory() as tmp:
            layout = Path(tmp)
            await asyncio.to_thread(write_layout_index, layout, manifest_bytes, media_type)
            for descriptor in [manifest["config"], *manifest.get("layers", [])]:
                await self._download_blob(uri, descriptor["digest"], blob_path(layout, descriptor["digest"]))
            await asyncio.to_thread(pack_layout, layout, path)
