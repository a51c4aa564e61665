from dataclasses import dataclass, replace
from typing import Any, Self, dataclass_transform


@dataclass_transform()
class _ServiceMeta(type):
    """Metaclass that applies @dataclass to subclasses."""

    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if any(isinstance(b, mcs) for b in bases):
            return dataclass(cls)
        return cls


class Service(metaclass=_ServiceMeta):
    """Base class for domain services. Subclasses are automatically dataclasses.

    Services are configured at construction; `with_options` derives a
    differently configured copy instead of mutating a shared instance.
    """

    def with_options(self, **changes: Any) -> Self:
        return replace(self, **changes)  # type: ignore[type-var]
