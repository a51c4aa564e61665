from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, RootModel

T = TypeVar("T")


class ValueObject(BaseModel):
    """Immutable model compared by value."""

    model_config = ConfigDict(frozen=True)


class RootValueObject(RootModel[T], Generic[T]):
    """Immutable wrapper around a single validated value; renders as that value."""

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return str(self.root)
