from dataclasses import dataclass, field
from typing import Callable, Hashable, Iterable, TypeVar

from texel_plane.base import Texel, TexelId

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def group_by(items: Iterable[T], key: Callable[[T], K]) -> list[tuple[K, list[T]]]:
    """Group items by key, groups in order of first appearance."""
    groups: dict[K, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return list(groups.items())


def merge_texels(*texel_lists: Iterable[Texel]) -> list[Texel]:
    """
    Merge texel lists so that later texels win over earlier texels with
    the same identity.

    A tombstone removes the entry merged so far, so only real values are
    returned.
    """
    merged: dict[TexelId, Texel] = {}
    for texels in texel_lists:
        for texel in texels:
            if texel.is_tombstone:
                merged.pop(texel.id, None)
            else:
                merged[texel.id] = texel
    return list(merged.values())


def subtract_texels(base: Iterable[Texel], to_remove: Iterable[Texel]) -> list[Texel]:
    """
    Return the texels of ``base`` whose identity is absent from ``to_remove``.

    Values are not compared: a texel that exists in both with a different
    value is removed as well.
    """
    removed = {texel.id for texel in to_remove}
    return [texel for texel in base if texel.id not in removed]


@dataclass
class TexelGroup:
    """All locale variants of one key in one domain."""

    domain: str
    key: str
    variants: dict[str, Texel] = field(default_factory=dict)

    @property
    def locales(self) -> list[str]:
        return sorted(self.variants)

    def get(self, locale: str) -> str | None:
        texel = self.variants.get(locale)
        return texel.value if texel else None


def group_texels(texels: Iterable[Texel]) -> list[TexelGroup]:
    groups: dict[tuple[str, str], TexelGroup] = {}
    for texel in texels:
        group = groups.get((texel.domain, texel.key))
        if group is None:
            group = groups[texel.domain, texel.key] = TexelGroup(texel.domain, texel.key)
        group.variants[texel.locale] = texel
    return [groups[k] for k in sorted(groups)]


def collect_locales(texels: Iterable[Texel]) -> list[str]:
    return sorted({texel.locale for texel in texels})
