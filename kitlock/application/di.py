from dishka import AsyncContainer, make_async_container

from kitlock.config import Config
from kitlock.infrastructure.oci.di import OciProvider
from kitlock.infrastructure.persistence.di import PersistenceProvider
from kitlock.util.di.base import ConfigProvider
from kitlock.util.di.scope import Scope


def create_container(config: Config | None = None) -> AsyncContainer:
    config = config or Config()

    return make_async_container(
        ConfigProvider(),
        OciProvider(),
        PersistenceProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
