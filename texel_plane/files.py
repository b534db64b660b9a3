"""Conversion between translation files and texels.

A translation file lives at a path that encodes its locale either as a
directory segment (``folder/en/name.json``) or as a file name infix
(``folder/name.en.json``). Removing the locale from the path yields the
*domain*, which together with a locale regenerates the path::

    >>> path_to_domain("hello/de/common.json")
    'hello/common.json.dir'
    >>> domain_to_path("hello/common.json.dir", "en")
    'hello/en/common.json'

File content is a nested mapping that is flattened into dot joined keys
on parse and nested again on generate.
"""

import json
import re
from enum import Enum
from typing import Any, Iterable, Iterator, NamedTuple

import yaml

from texel_plane.base import Texel
from texel_plane.errors import InvalidTree, MalformedDomain, ParseError, UnrecognizedPath
from texel_plane.locales import DEFAULT_LOCALES
from texel_plane.merge import group_by

# File extensions that could be translation files, useful to narrow down file searches.
L10N_FILE_EXTENSIONS = ("yml", "yaml", "json")

# How deep translation files are searched for in a directory tree.
L10N_DIRECTORY_DEPTH = 8


class Pattern(str, Enum):
    LOCALE_IN_DIR = "dir"  # folder/en/name.json
    LOCALE_IN_NAME = "name"  # folder/name.en.json


class PathInfo(NamedTuple):
    folder: str
    name: str
    ext: str
    locale: str
    pattern: Pattern


def _alternation(values: Iterable[str]) -> str:
    # longest first, so "pt-BR" is preferred over "pt"
    return "|".join(re.escape(v) for v in sorted(set(values), key=lambda v: (-len(v), v)))


class FileCodec:
    """
    Maps paths to domains and files to texels for a fixed set of
    locales and file extensions.
    """

    def __init__(
        self,
        locales: Iterable[str] = DEFAULT_LOCALES,
        extensions: Iterable[str] = L10N_FILE_EXTENSIONS,
    ) -> None:
        self.locales = tuple(locales)
        self.extensions = tuple(extensions)
        if not self.locales or not self.extensions:
            raise ValueError("A codec needs at least one locale and one extension")

        locale = _alternation(self.locales)
        ext = _alternation(self.extensions)
        patterns = "|".join(re.escape(p.value) for p in Pattern)

        self._locale_in_dir = re.compile(
            rf"^(?P<folder>.*/)?(?P<locale>{locale})/(?P<name>[^/]+)\.(?P<ext>{ext})$",
            re.DOTALL,
        )
        self._locale_in_name = re.compile(
            rf"^(?P<folder>.*/)?(?P<name>[^/]+)\.(?P<locale>{locale})\.(?P<ext>{ext})$",
            re.DOTALL,
        )
        self._domain = re.compile(
            rf"^(?P<folder>.*/)?(?P<name>[^/]+)\.(?P<ext>{ext})\.(?P<pattern>{patterns})$",
            re.DOTALL,
        )

    def __repr__(self) -> str:
        return f"FileCodec(locales={len(self.locales)}, extensions={self.extensions!r})"

    def path_info(self, path: str) -> PathInfo:
        match = self._locale_in_dir.match(path)
        pattern = Pattern.LOCALE_IN_DIR
        if match is None:
            match = self._locale_in_name.match(path)
            pattern = Pattern.LOCALE_IN_NAME
        if match is None:
            raise UnrecognizedPath(path)

        return PathInfo(
            folder=match.group("folder") or "",
            name=match.group("name"),
            ext=match.group("ext"),
            locale=match.group("locale"),
            pattern=pattern,
        )

    def is_l10n_file(self, path: str) -> bool:
        try:
            self.path_info(path)
        except UnrecognizedPath:
            return False
        return True

    def path_to_domain(self, path: str) -> str:
        """
        Generate the domain of a path.

        The domain loses the locale information of the path.
        """
        info = self.path_info(path)
        return f"{info.folder}{info.name}.{info.ext}.{info.pattern.value}"

    def path_locale(self, path: str) -> str:
        return self.path_info(path).locale

    def domain_to_path(self, domain: str, locale: str) -> str:
        """
        Generate the path of a domain in the given locale.
        """
        match = self._domain.match(domain)
        if match is None:
            raise MalformedDomain(domain)

        folder = match.group("folder") or ""
        name = match.group("name")
        ext = match.group("ext")
        if match.group("pattern") == Pattern.LOCALE_IN_DIR.value:
            return f"{folder}{locale}/{name}.{ext}"
        return f"{folder}{name}.{locale}.{ext}"

    def parse_file(self, path: str, content: str) -> list[Texel]:
        """
        Parse file content into texels, sorted by key at every level.
        """
        info = self.path_info(path)
        domain = self.path_to_domain(path)

        try:
            data = _load(info.ext, content)
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to parse {info.ext} file", path, content) from e

        if data is None:
            return []
        if not isinstance(data, dict):
            raise InvalidTree(path, content, [], data)

        try:
            return list(flatten_keys(domain, info.locale, data))
        except _InvalidNode as e:
            raise InvalidTree(path, content, e.keys, e.node) from None

    def generate_file(self, path: str, texels: Iterable[Texel]) -> str:
        """
        Generate file content from texels.

        Tombstones must be merged away before, their value is written as
        an empty string.
        """
        info = self.path_info(path)
        try:
            return _dump(info.ext, nest_keys(list(texels)))
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to generate {info.ext} file", path) from e


def _load(ext: str, content: str) -> Any:
    if not content.strip():
        return None

    match ext.lower():
        case "json":
            return json.loads(content)
        case "yml" | "yaml":
            return yaml.safe_load(content)
        case _:
            raise ValueError(f"Type {ext!r} has no parse implementation")


def _dump(ext: str, data: dict) -> str:
    match ext.lower():
        case "json":
            return json.dumps(data, indent=2, ensure_ascii=False)
        case "yml" | "yaml":
            return yaml.safe_dump(
                data,
                sort_keys=False,
                allow_unicode=True,
                default_flow_style=False,
            )
        case _:
            raise ValueError(f"Type {ext!r} has no generate implementation")


class _InvalidNode(Exception):
    def __init__(self, keys: list[str], node: object) -> None:
        super().__init__(keys, node)
        self.keys = keys
        self.node = node


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_keys(
    domain: str, locale: str, data: dict, keys: list[str] | None = None
) -> Iterator[Texel]:
    """
    Walk a nested mapping and yield one texel per leaf, keys in sorted order.
    """
    keys = keys or []
    items = sorted(((_scalar(k), v) for k, v in data.items()), key=lambda item: item[0])
    for key, value in items:
        path = [*keys, key]
        if isinstance(value, dict):
            yield from flatten_keys(domain, locale, value, path)
        elif isinstance(value, (list, tuple, set)):
            raise _InvalidNode(path, value)
        else:
            yield Texel(domain, ".".join(path), locale, _scalar(value))


def nest_keys(texels: list[Texel], previous_keys: list[str] | None = None) -> dict[str, Any]:
    """
    Build a nested mapping out of texels with dot joined keys.

    Groups are inserted in sorted key order, so the mapping serializes stably.
    """
    previous_keys = previous_keys or []
    depth = len(previous_keys)
    result: dict[str, Any] = {}

    groups = group_by(texels, lambda texel: texel.key.split(".")[depth])
    for next_key, values in sorted(groups, key=lambda group: group[0]):
        entire_key = ".".join([*previous_keys, next_key])
        leaves = [texel for texel in values if texel.key == entire_key]
        if not leaves:
            result[next_key] = nest_keys(values, [*previous_keys, next_key])
        elif len(leaves) == len(values):
            result[next_key] = leaves[-1].value or ""
        else:
            raise ValueError(f"Key {entire_key!r} is used both as a value and as a group")

    return result


_default_codec = FileCodec()


def default_codec() -> FileCodec:
    return _default_codec


def is_l10n_file(path: str) -> bool:
    """Determine based on a path whether a file is a translation file."""
    return _default_codec.is_l10n_file(path)


def path_to_domain(path: str) -> str:
    return _default_codec.path_to_domain(path)


def path_locale(path: str) -> str:
    return _default_codec.path_locale(path)


def domain_to_path(domain: str, locale: str) -> str:
    return _default_codec.domain_to_path(domain, locale)


def parse_file(path: str, content: str) -> list[Texel]:
    return _default_codec.parse_file(path, content)


def generate_file(path: str, texels: Iterable[Texel]) -> str:
    return _default_codec.generate_file(path, texels)
