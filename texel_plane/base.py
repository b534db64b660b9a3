from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class TexelId:
    """
    The subset of a texel that identifies it.
    """

    domain: str
    key: str
    locale: str


@dataclass(frozen=True)
class Texel:
    """
    The most basic text element.

    A value of ``None`` is a tombstone: the entry was deleted and the
    deletion must override any previously committed value.
    """

    domain: str
    key: str
    locale: str
    value: str | None

    @property
    def id(self) -> TexelId:
        return TexelId(self.domain, self.key, self.locale)

    @property
    def is_tombstone(self) -> bool:
        return self.value is None

    def with_value(self, value: str | None) -> "Texel":
        return replace(self, value=value)

    def tombstone(self) -> "Texel":
        return replace(self, value=None)


def same_texel_id(t1: Texel | TexelId, t2: Texel | TexelId) -> bool:
    """Compare 2 texels or texel ids by identity, ignoring values."""
    return t1.key == t2.key and t1.domain == t2.domain and t1.locale == t2.locale


@dataclass(frozen=True)
class Project:
    """
    An abstraction over "repositories" and "branches".

    Leaf projects can be listed and updated, other projects only
    contain child projects. The id is opaque outside the driver
    that produced it.
    """

    id: str
    name: str
    parent: "Project | None" = None
    leaf: bool = False


class TexelDriver:
    """
    A storage backend for texels.

    Each backend interprets project ids with its own scheme. All operations
    are coroutines, drivers are async context managers that release their
    resources on exit.
    """

    async def project(self, id: str) -> Project:
        """Return the project with the given id."""
        raise NotImplementedError()

    async def projects(self, parent: str | None = None) -> list[Project]:
        """List the children of a project, or the root projects if no parent is given."""
        raise NotImplementedError()

    async def list(self, id: str) -> list[Texel]:
        """List all texels visible in the given leaf project."""
        raise NotImplementedError()

    async def update(self, id: str, changes: list[Texel]) -> None:
        """
        Write the given texels to the project as one logical change.

        Tombstones delete the entry they identify.
        """
        raise NotImplementedError()

    async def aclose(self) -> None:
        """Release resources held by the driver."""

    async def __aenter__(self) -> "TexelDriver":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
