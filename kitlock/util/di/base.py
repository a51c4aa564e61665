from dishka import Provider as DishkaProvider
from dishka import from_context

from kitlock.config import Config
from kitlock.util.di.scope import Scope


class Provider(DishkaProvider):
    """Base for all kitlock DI providers."""


class ConfigProvider(Provider):
    """Exposes the Config passed as container context."""

    config = from_context(provides=Config, scope=Scope.APP)
