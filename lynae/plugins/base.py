"""Base class for command plugins."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from lynae.handler.dispatcher import ExecutionContext
    from lynae.handler.normalizer import NormalizedCommand


class PluginError(Exception):
    """Base error for plugin loading problems."""


class PluginLoadError(PluginError):
    pass


class Plugin(ABC):
    """A chat command.

    Subclasses set ``command`` (a pattern tested against the text after the
    prefix), ``help`` (display names, the first is the primary one),
    ``tags`` (menu categories) and optionally ``description``.
    """

    command: ClassVar[re.Pattern | str | None] = None
    help: ClassVar[list[str]] = []
    tags: ClassVar[list[str]] = []
    description: ClassVar[str] = ""

    def __init__(self) -> None:
        pattern = self.command
        if isinstance(pattern, str):
            pattern = re.compile(pattern, re.IGNORECASE)
        self._pattern: re.Pattern | None = pattern

    @property
    def name(self) -> str:
        if self.help:
            return self.help[0].split(" ")[0]
        return type(self).__name__

    @property
    def aliases(self) -> list[str]:
        return [h.split(" ")[0] for h in self.help[1:]]

    def matches(self, text: str) -> bool:
        return bool(self._pattern and self._pattern.search(text))

    def validate(self) -> list[str]:
        errors = []
        if self._pattern is None:
            errors.append("missing command pattern")
        if not self.help:
            errors.append("missing help names")
        if not isinstance(self.tags, (list, tuple)):
            errors.append("tags should be a list")
        return errors

    @abstractmethod
    async def execute(self, m: NormalizedCommand, ctx: ExecutionContext) -> None:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
