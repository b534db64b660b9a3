from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from texel_plane.base import Project, Texel, TexelDriver
from texel_plane.impl.change import ChangeDriver
from texel_plane.merge import TexelGroup, collect_locales, group_texels, merge_texels

logger = logging.getLogger(__name__)


@dataclass
class ProjectContent:
    project: Project
    groups: list[TexelGroup]
    locales: list[str]


class TexelWorkspace:
    """
    Pending changes of one project layered over its base driver.

    Edits are staged in the change driver and only reach the base driver
    on :meth:`commit`. Reads merge both, pending changes win.
    """

    def __init__(self, base: TexelDriver, changes: ChangeDriver, project_id: str) -> None:
        self.base = base
        self.changes = changes
        self.project_id = project_id

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("TexelWorkspace(...)")
        else:
            with p.group(4, "TexelWorkspace(", ")"):
                p.breakable()
                p.text(f"project_id='{self.project_id}',")
                p.breakable()
                p.text("base=")
                p.pretty(self.base)
                p.text(",")
                p.breakable()
                p.text("changes=")
                p.pretty(self.changes)
                p.breakable()

    async def view(self) -> list[Texel]:
        committed, pending = await asyncio.gather(
            self.base.list(self.project_id),
            self.changes.list(self.project_id),
        )
        return merge_texels(committed, pending)

    async def content(self) -> ProjectContent:
        project, texels = await asyncio.gather(
            self.base.project(self.project_id),
            self.view(),
        )
        return ProjectContent(project, group_texels(texels), collect_locales(texels))

    async def pending(self) -> list[Texel]:
        return await self.changes.list(self.project_id)

    async def is_dirty(self) -> bool:
        return len(await self.pending()) > 0

    async def stage(self, changes: list[Texel]) -> None:
        await self.changes.update(self.project_id, changes)

    async def commit(self) -> None:
        pending = await self.pending()
        if not pending:
            return

        await self.base.update(self.project_id, pending)
        await self.changes.clear(self.project_id)
        logger.info("Committed %d pending changes of %s", len(pending), self.project_id)

    async def discard(self) -> None:
        await self.changes.clear(self.project_id)
