from __future__ import annotations

from typing import Any

from texel_plane.base import Project, Texel, TexelDriver
from texel_plane.errors import NotFound
from texel_plane.files import FileCodec, default_codec
from texel_plane.merge import group_by, merge_texels

# project id -> path -> file content
MemoryFiles = dict[str, dict[str, str]]


class MemoryDriver(TexelDriver):
    """
    Keeps translation files in a dict, mainly for tests and demos.

    Every key of ``files`` is a leaf project.
    """

    def __init__(self, files: MemoryFiles, codec: FileCodec | None = None) -> None:
        self.files = files
        self.codec = codec or default_codec()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryDriver(...)")
        else:
            with p.group(4, "MemoryDriver(", ")"):
                p.breakable()
                p.text("files=")
                p.pretty(self.files)
                p.breakable()

    def _files(self, id: str) -> dict[str, str]:
        if id not in self.files:
            raise NotFound(f"Project {id!r} does not exist")
        return self.files[id]

    async def project(self, id: str) -> Project:
        self._files(id)
        return Project(id=id, name=id, leaf=True)

    async def projects(self, parent: str | None = None) -> list[Project]:
        if parent:
            return []
        return [Project(id=id, name=id, leaf=True) for id in self.files]

    async def list(self, id: str) -> list[Texel]:
        texels: list[Texel] = []
        for path, content in sorted(self._files(id).items()):
            if self.codec.is_l10n_file(path):
                texels.extend(self.codec.parse_file(path, content))
        return texels

    async def update(self, id: str, changes: list[Texel]) -> None:
        files = self._files(id)
        grouped = group_by(changes, lambda c: self.codec.domain_to_path(c.domain, c.locale))

        # all files are regenerated before any of them is replaced
        new_content = {}
        for path, path_changes in grouped:
            existing = self.codec.parse_file(path, files.get(path, ""))
            new_content[path] = self.codec.generate_file(
                path, merge_texels(existing, path_changes)
            )
        files.update(new_content)


def create_memory_driver(files: MemoryFiles) -> MemoryDriver:
    return MemoryDriver(files)
