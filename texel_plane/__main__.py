"""Entry point: python -m texel_plane <command> ROOT ...

Edits translation files of a local directory. Changes are staged in the
pending change store until they are committed.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from texel_plane.base import Texel
from texel_plane.config import TexelConfig, load_config, setup_logging
from texel_plane.errors import TexelError
from texel_plane.factory import ChangeStoreAuth, DirectoryAuth, create_driver, origin_prefix
from texel_plane.impl.change import ChangeDriver
from texel_plane.impl.directory import LocalDirectoryHandle
from texel_plane.workspace import TexelWorkspace


def _print_texels(texels: list[Texel]) -> None:
    for texel in sorted(texels, key=lambda t: (t.domain, t.key, t.locale)):
        print(f"{texel.domain}\t{texel.key}\t{texel.locale}\t{texel.value}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="texel", description="Edit translation files")
    parser.add_argument("--config", type=Path, default=None, help="Path to texel.toml")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    commands = parser.add_subparsers(dest="command", required=True)

    projects = commands.add_parser("projects", help="List projects")
    projects.add_argument("root", type=Path)

    list_cmd = commands.add_parser("list", help="List texels including pending changes")
    list_cmd.add_argument("root", type=Path)
    list_cmd.add_argument("--pending", action="store_true", help="Only list pending changes")

    set_cmd = commands.add_parser("set", help="Stage a new value")
    set_cmd.add_argument("root", type=Path)
    set_cmd.add_argument("domain")
    set_cmd.add_argument("key")
    set_cmd.add_argument("locale")
    set_cmd.add_argument("value")

    unset = commands.add_parser("unset", help="Drop a staged value")
    unset.add_argument("root", type=Path)
    unset.add_argument("domain")
    unset.add_argument("key")
    unset.add_argument("locale")

    commit = commands.add_parser("commit", help="Write staged values to the files")
    commit.add_argument("root", type=Path)

    discard = commands.add_parser("discard", help="Drop all staged values")
    discard.add_argument("root", type=Path)

    return parser


async def _run(args: argparse.Namespace, config: TexelConfig) -> None:
    auth = DirectoryAuth(LocalDirectoryHandle(args.root.resolve()), config.directory)
    prefix = f"{config.changes.prefix}/{origin_prefix(auth)}"
    changes = create_driver(ChangeStoreAuth(prefix, config.changes))
    assert isinstance(changes, ChangeDriver)

    async with changes, create_driver(auth) as base:
        project_id = auth.handle.name
        workspace = TexelWorkspace(base, changes, project_id)

        if args.command == "projects":
            for project in await base.projects():
                print(project.id)
        elif args.command == "list":
            _print_texels(await (workspace.pending() if args.pending else workspace.view()))
        elif args.command == "set":
            await workspace.stage([Texel(args.domain, args.key, args.locale, args.value)])
        elif args.command == "unset":
            await workspace.stage([Texel(args.domain, args.key, args.locale, None)])
        elif args.command == "commit":
            await workspace.commit()
        elif args.command == "discard":
            await workspace.discard()


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(args.log_level or config.log_level)

    try:
        asyncio.run(_run(args, config))
    except TexelError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
