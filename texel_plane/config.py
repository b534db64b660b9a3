"""Configuration loading from environment variables and texel.toml."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

_CONFIG_FILENAME = "texel.toml"
_DEFAULT_HOME = Path.home() / ".texel"


@dataclass
class BitbucketConfig:
    """Remote API driver configuration."""

    base_url: str = "https://api.bitbucket.org/2.0"
    cache_ttl: float = 5.0
    page_length: int = 100
    max_depth: int = 8
    timeout: float = 30.0
    commit_host: str | None = None


@dataclass
class DirectoryConfig:
    """Local directory driver configuration."""

    max_depth: int = 8
    concurrency: int = 8


@dataclass
class ChangeStoreConfig:
    """Pending change store configuration."""

    url: str = f"sqlite:///{_DEFAULT_HOME / 'changes.db'}"
    prefix: str = "local"


@dataclass
class TexelConfig:
    """Top-level configuration."""

    bitbucket: BitbucketConfig = field(default_factory=BitbucketConfig)
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    changes: ChangeStoreConfig = field(default_factory=ChangeStoreConfig)
    log_level: str = "WARNING"


def _find_config_file(config_path: Path | None) -> Path | None:
    if config_path is not None:
        return config_path if config_path.exists() else None
    for candidate in [Path.cwd() / _CONFIG_FILENAME, _DEFAULT_HOME / _CONFIG_FILENAME]:
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Path | None = None) -> TexelConfig:
    """Load configuration from environment variables and optional texel.toml.

    Priority: environment variables > texel.toml > defaults.
    """
    file_data: dict = {}
    found = _find_config_file(config_path)
    if found is not None:
        file_data = tomllib.loads(found.read_text())

    bitbucket_data = file_data.get("bitbucket", {})
    directory_data = file_data.get("directory", {})
    changes_data = file_data.get("changes", {})

    config = TexelConfig(
        bitbucket=BitbucketConfig(
            base_url=os.getenv(
                "TEXEL_BITBUCKET_URL",
                bitbucket_data.get("base_url", "https://api.bitbucket.org/2.0"),
            ),
            cache_ttl=float(os.getenv("TEXEL_CACHE_TTL", bitbucket_data.get("cache_ttl", 5.0))),
            page_length=int(bitbucket_data.get("page_length", 100)),
            max_depth=int(bitbucket_data.get("max_depth", 8)),
            timeout=float(os.getenv("TEXEL_TIMEOUT", bitbucket_data.get("timeout", 30.0))),
            commit_host=os.getenv("TEXEL_COMMIT_HOST", bitbucket_data.get("commit_host")),
        ),
        directory=DirectoryConfig(
            max_depth=int(os.getenv("TEXEL_SCAN_DEPTH", directory_data.get("max_depth", 8))),
            concurrency=int(
                os.getenv("TEXEL_SCAN_CONCURRENCY", directory_data.get("concurrency", 8))
            ),
        ),
        changes=ChangeStoreConfig(
            url=os.getenv("TEXEL_CHANGES_URL", changes_data.get("url", ChangeStoreConfig.url)),
            prefix=os.getenv("TEXEL_CHANGES_PREFIX", changes_data.get("prefix", "local")),
        ),
        log_level=os.getenv("TEXEL_LOG_LEVEL", file_data.get("log_level", "WARNING")),
    )
    return config


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
