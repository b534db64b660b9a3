from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator

import pathspec

from texel_plane.base import Project, Texel, TexelDriver
from texel_plane.errors import DriverError, NotFound, ParseError
from texel_plane.files import FileCodec, L10N_DIRECTORY_DEPTH, default_codec
from texel_plane.merge import group_by, merge_texels

logger = logging.getLogger(__name__)

# Entries that are never scanned, independent of ignore files.
IGNORE_FILE_NAME = re.compile(r"^\.|^(out|build)$|node_modules|vendor")

IGNORE_FILE = ".gitignore"


def _child_name(name: str) -> str:
    """Reject names that would resolve outside of the directory."""
    if name in ("", ".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"{name!r} is not a valid entry name")
    return name


class FileHandle:
    """
    A file the user granted access to.
    """

    kind = "file"
    name: str

    async def read_text(self) -> str:
        """Read the whole file as utf-8 text."""
        raise NotImplementedError()

    async def write_text(self, content: str) -> None:
        """Replace the content of the file."""
        raise NotImplementedError()


class DirectoryHandle:
    """
    A directory the user granted access to.

    Missing entries raise :class:`FileNotFoundError` unless ``create`` is set.
    """

    kind = "directory"
    name: str

    def children(self) -> AsyncIterator[DirectoryHandle | FileHandle]:
        """Iterate the direct children of this directory."""
        raise NotImplementedError()

    async def get_directory(self, name: str, create: bool = False) -> DirectoryHandle:
        raise NotImplementedError()

    async def get_file(self, name: str, create: bool = False) -> FileHandle:
        raise NotImplementedError()


class LocalFileHandle(FileHandle):
    def __init__(self, path: Path) -> None:
        self.path = path
        self.name = path.name

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"

    async def read_text(self) -> str:
        return await asyncio.to_thread(self.path.read_text, encoding="utf-8")

    async def write_text(self, content: str) -> None:
        await asyncio.to_thread(self.path.write_text, content, encoding="utf-8")


class LocalDirectoryHandle(DirectoryHandle):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.name = self.path.name

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"

    async def children(self) -> AsyncIterator[DirectoryHandle | FileHandle]:
        def entries() -> list[tuple[Path, bool]]:
            return [(p, p.is_dir()) for p in sorted(self.path.iterdir())]

        for path, is_dir in await asyncio.to_thread(entries):
            yield LocalDirectoryHandle(path) if is_dir else LocalFileHandle(path)

    async def get_directory(self, name: str, create: bool = False) -> DirectoryHandle:
        path = self.path / _child_name(name)
        if create:
            await asyncio.to_thread(path.mkdir, exist_ok=True)
        elif not await asyncio.to_thread(path.is_dir):
            raise FileNotFoundError(f"No directory {name!r} in {str(self.path)!r}")
        return LocalDirectoryHandle(path)

    async def get_file(self, name: str, create: bool = False) -> FileHandle:
        path = self.path / _child_name(name)
        if create:
            await asyncio.to_thread(path.touch, exist_ok=True)
        elif not await asyncio.to_thread(path.is_file):
            raise FileNotFoundError(f"No file {name!r} in {str(self.path)!r}")
        return LocalFileHandle(path)


@dataclass(frozen=True)
class IgnoreRules:
    """Ignore patterns of one directory, matched relative to that directory."""

    path: str
    spec: pathspec.PathSpec

    def ignores(self, path: str, is_dir: bool) -> bool:
        relative = path[len(self.path) + 1 :] if self.path else path
        return self.spec.match_file(f"{relative}/" if is_dir else relative)


@dataclass(frozen=True)
class _ScanEntry:
    handle: DirectoryHandle
    path: str
    ignores: tuple[IgnoreRules, ...]


def _segments(path: str) -> list[str]:
    segments = [s for s in path.split("/") if s]
    if not segments:
        raise ValueError(f"Can't access file at path {path!r}")
    for segment in segments:
        _child_name(segment)
    return segments


def _join(folder: str, name: str) -> str:
    return f"{folder}/{name}" if folder else name


class DirectoryDriver(TexelDriver):
    """
    Reads and writes translation files in a local directory.

    The directory is a single leaf project named after the directory.
    There is no version control involved, review and commit the changes
    with your own tools.
    """

    def __init__(
        self,
        handle: DirectoryHandle,
        codec: FileCodec | None = None,
        max_depth: int = L10N_DIRECTORY_DEPTH,
        concurrency: int = 8,
    ) -> None:
        self.handle = handle
        self.codec = codec or default_codec()
        self.max_depth = max_depth
        self.concurrency = concurrency

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("DirectoryDriver(...)")
        else:
            with p.group(4, "DirectoryDriver(", ")"):
                p.breakable()
                p.text(f"handle={self.handle!r},")
                p.breakable()

    def _check(self, id: str) -> Project:
        if id != self.handle.name:
            raise NotFound(f"The directory {id!r} is not shared")
        return Project(id=self.handle.name, name=self.handle.name, leaf=True)

    async def project(self, id: str) -> Project:
        return self._check(id)

    async def projects(self, parent: str | None = None) -> list[Project]:
        if parent:
            return []
        return [self._check(self.handle.name)]

    async def list(self, id: str) -> list[Texel]:
        self._check(id)
        semaphore = asyncio.Semaphore(self.concurrency)

        root_rules = await self._load_ignore(self.handle, "")
        level = [_ScanEntry(self.handle, "", (root_rules,) if root_rules else ())]
        depth = 1
        texels: list[Texel] = []

        while level:
            results = await asyncio.gather(*(self._scan(entry, semaphore) for entry in level))
            level = []
            for dir_texels, subdirs in results:
                texels.extend(dir_texels)
                if depth < self.max_depth:
                    level.extend(subdirs)
            depth += 1

        return texels

    async def update(self, id: str, changes: list[Texel]) -> None:
        self._check(id)
        grouped = group_by(changes, lambda c: self.codec.domain_to_path(c.domain, c.locale))
        for path, _ in grouped:
            try:
                _segments(path)
            except ValueError as e:
                raise DriverError(str(e), "update", path) from e

        async def write(path: str, path_changes: list[Texel]) -> None:
            try:
                try:
                    content = await (await self._access(path)).read_text()
                except FileNotFoundError:
                    content = ""
                texels = merge_texels(self.codec.parse_file(path, content), path_changes)
                new_content = self.codec.generate_file(path, texels)

                # only created once the content could be generated
                file = await self._access(path, create=True)
                await file.write_text(new_content)
            except (OSError, UnicodeDecodeError, ParseError) as e:
                raise DriverError("Could not update file", "update", path) from e
            logger.debug("Wrote %d changes to %s", len(path_changes), path)

        await asyncio.gather(*(write(path, c) for path, c in grouped))

    async def _access(self, path: str, create: bool = False) -> FileHandle:
        segments = _segments(path)
        handle = self.handle
        for segment in segments[:-1]:
            handle = await handle.get_directory(segment, create=create)
        return await handle.get_file(segments[-1], create=create)

    async def _scan(
        self, entry: _ScanEntry, semaphore: asyncio.Semaphore
    ) -> tuple[list[Texel], list[_ScanEntry]]:
        async with semaphore:
            try:
                children = [child async for child in entry.handle.children()]
            except OSError as e:
                raise DriverError(f"Could not list directory: {e}", "list", entry.path) from e

        reads = []
        subdirs = []
        for child in children:
            if IGNORE_FILE_NAME.search(child.name):
                continue

            path = _join(entry.path, child.name)
            is_dir = child.kind == "directory"
            blocking = next((r for r in entry.ignores if r.ignores(path, is_dir)), None)
            if blocking is not None:
                logger.debug("Ignored %s because of %s", path, _join(blocking.path, IGNORE_FILE))
                continue

            if is_dir:
                subdirs.append(self._descend(child, path, entry.ignores))
            elif self.codec.is_l10n_file(path):
                reads.append(self._read(child, path, semaphore))

        texel_lists = await asyncio.gather(*reads)
        return [t for texels in texel_lists for t in texels], list(await asyncio.gather(*subdirs))

    async def _descend(
        self, handle: DirectoryHandle, path: str, ignores: tuple[IgnoreRules, ...]
    ) -> _ScanEntry:
        rules = await self._load_ignore(handle, path)
        return _ScanEntry(handle, path, (rules, *ignores) if rules else ignores)

    async def _read(
        self, handle: FileHandle, path: str, semaphore: asyncio.Semaphore
    ) -> list[Texel]:
        async with semaphore:
            try:
                content = await handle.read_text()
            except (OSError, UnicodeDecodeError) as e:
                raise DriverError(f"Could not read file: {e}", "list", path) from e
        try:
            return self.codec.parse_file(path, content)
        except ParseError as e:
            raise DriverError("Could not parse file", "list", path) from e

    async def _load_ignore(self, handle: DirectoryHandle, path: str) -> IgnoreRules | None:
        try:
            file = await handle.get_file(IGNORE_FILE)
            content = await file.read_text()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise DriverError(
                f"Could not read ignore file: {e}", "list", _join(path, IGNORE_FILE)
            ) from e

        lines = [
            line.rstrip()
            for line in content.splitlines()
            if line.strip() and not line.startswith("#")
        ]
        if not lines:
            return None
        return IgnoreRules(path, pathspec.GitIgnoreSpec.from_lines(lines))


def create_directory_driver(path: str | Path, **kwargs: Any) -> DirectoryDriver:
    return DirectoryDriver(LocalDirectoryHandle(path), **kwargs)
