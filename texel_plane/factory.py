from dataclasses import dataclass, field
from typing import Union

from texel_plane.base import TexelDriver
from texel_plane.cache import RequestCache
from texel_plane.config import BitbucketConfig, ChangeStoreConfig, DirectoryConfig
from texel_plane.files import FileCodec
from texel_plane.impl.bitbucket import BitbucketDriver
from texel_plane.impl.change import create_change_driver
from texel_plane.impl.directory import DirectoryDriver, DirectoryHandle
from texel_plane.impl.memory import MemoryDriver, MemoryFiles


@dataclass(frozen=True)
class BitbucketAuth:
    token: str = field(repr=False)
    config: BitbucketConfig = field(default_factory=BitbucketConfig)


@dataclass(frozen=True)
class DirectoryAuth:
    handle: DirectoryHandle
    config: DirectoryConfig = field(default_factory=DirectoryConfig)


@dataclass(frozen=True)
class ChangeStoreAuth:
    prefix: str
    config: ChangeStoreConfig = field(default_factory=ChangeStoreConfig)


@dataclass(frozen=True)
class MemoryAuth:
    files: MemoryFiles = field(default_factory=dict)


DriverAuth = Union[BitbucketAuth, DirectoryAuth, ChangeStoreAuth, MemoryAuth]


def create_driver(auth: DriverAuth, codec: FileCodec | None = None) -> TexelDriver:
    """Create the driver for a kind of credentials."""
    match auth:
        case BitbucketAuth(token=token, config=config):
            return BitbucketDriver(
                token,
                base_url=config.base_url,
                cache=RequestCache(ttl=config.cache_ttl),
                codec=codec,
                page_length=config.page_length,
                max_depth=config.max_depth,
                timeout=config.timeout,
                commit_host=config.commit_host,
            )
        case DirectoryAuth(handle=handle, config=config):
            return DirectoryDriver(
                handle,
                codec=codec,
                max_depth=config.max_depth,
                concurrency=config.concurrency,
            )
        case ChangeStoreAuth(prefix=prefix, config=config):
            return create_change_driver(config.url, prefix)
        case MemoryAuth(files=files):
            return MemoryDriver(files, codec=codec)
        case _:
            raise ValueError(f"There is no driver for {type(auth).__name__}")


def origin_prefix(auth: DriverAuth) -> str:
    """
    Scope for pending changes of a driver, so that changes of different
    origins never mix. Never contains credentials.
    """
    match auth:
        case BitbucketAuth(config=config):
            return f"bitbucket:{config.base_url}"
        case DirectoryAuth(handle=handle):
            return f"directory:{handle.name}"
        case ChangeStoreAuth(prefix=prefix):
            return prefix
        case MemoryAuth():
            return "memory"
        case _:
            raise ValueError(f"There is no driver for {type(auth).__name__}")
