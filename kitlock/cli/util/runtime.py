"""Shared plumbing for CLI commands: config, container, error reporting."""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import logfire
import yaml
from dishka import AsyncContainer
from pydantic import ValidationError
from pydantic_settings import SettingsError

from kitlock.application.di import create_container
from kitlock.cli.console import get_console
from kitlock.config import Config, configure_logging
from kitlock.domain.image.model.image import Image, ProjectImage, Vendor, VendorOverride
from kitlock.domain.shared.error import ConfigurationError, KitlockError
from kitlock.domain.shared.model.artifact import ValidIdentifier, Version

T = TypeVar("T")


def load_config() -> Config:
    try:
        config = Config()
    except (yaml.YAMLError, SettingsError) as e:
        raise ConfigurationError(f"failed to load configuration: {e}") from e
    configure_logging(config.logging)
    logfire.configure(send_to_logfire="if-token-present", console=False)
    return config


def build_project_image(
    registry: str,
    name: str,
    vendor: str,
    version: str,
    override_registry: str | None = None,
    override_name: str | None = None,
) -> ProjectImage:
    image = Image(
        name=ValidIdentifier(name),
        version=Version(version),
        vendor=ValidIdentifier(vendor),
    )
    override = None
    if override_registry:
        override = VendorOverride(
            registry=override_registry,
            name=ValidIdentifier(override_name) if override_name else None,
        )
    return ProjectImage(image=image, vendor=Vendor(registry=registry), override=override)


def run(command: Callable[[AsyncContainer], Awaitable[T]], config: Config | None = None) -> T:
    """Load config and run an async command inside a DI container, turning errors into exit 1.

    Commands read the Config from the container.
    """
    console = get_console()

    async def _main(config: Config) -> T:
        container = create_container(config)
        try:
            async with container() as uow:
                return await command(uow)
        finally:
            await container.close()

    try:
        return asyncio.run(_main(config or load_config()))
    except KitlockError as e:
        console.error(e.message, hints=getattr(e, "__notes__", []))
        sys.exit(1)
    except ValidationError as e:
        console.error(f"invalid input: {e}")
        sys.exit(1)


def print_yaml(data: object) -> None:
    get_console().raw(yaml.safe_dump(data, sort_keys=True, default_flow_style=False))
