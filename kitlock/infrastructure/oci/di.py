from typing import AsyncIterable

import httpx
from dishka import provide

from kitlock.config import Config
from kitlock.domain.image.port.archive import ArchiveFactory
from kitlock.domain.image.port.image_tool import ImageTool
from kitlock.infrastructure.oci.archive import OciArchive
from kitlock.infrastructure.oci.crane import CraneImageTool
from kitlock.infrastructure.oci.registry import RegistryImageTool
from kitlock.util.di.base import Provider
from kitlock.util.di.scope import Scope


class OciProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_http_client(self, config: Config) -> AsyncIterable[httpx.AsyncClient]:
        client = httpx.AsyncClient(timeout=config.image_tool.timeout)
        yield client
        await client.aclose()

    @provide(scope=Scope.APP)
    def get_image_tool(self, config: Config, client: httpx.AsyncClient) -> ImageTool:
        tool_config = config.image_tool
        match tool_config.kind:
            case "crane":
                return CraneImageTool(
                    crane_path=tool_config.crane_path,
                    insecure_registries=tool_config.insecure_registries,
                )
            case _:
                return RegistryImageTool(
                    client=client,
                    insecure_registries=tool_config.insecure_registries,
                )

    @provide(scope=Scope.APP)
    def get_archive_factory(self) -> ArchiveFactory:
        return OciArchive
