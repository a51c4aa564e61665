"""Custom Dishka scopes for kitlock."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """kitlock dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Process lifetime (config, http client, image tool)
    - UOW: Unit of Work (one CLI command)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
