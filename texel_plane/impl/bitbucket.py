"""Driver that uses the Bitbucket Cloud 2.0 API as backend.

Repositories are container projects with ids like ``workspace/repo``,
branches are leaf projects with ids like ``workspace/repo/feature/x``.

The token is sent as ``access_token`` query parameter instead of a header,
which avoids preflight requests when the same calls are made from a browser.

See https://developer.atlassian.com/cloud/bitbucket/rest/intro/
"""

from __future__ import annotations

import asyncio
import logging
import re
import socket
from typing import Any, AsyncIterator
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import httpx

from texel_plane.base import Project, Texel, TexelDriver
from texel_plane.cache import RequestCache
from texel_plane.errors import DriverError, HttpError, HttpNotFound, InvalidId, ParseError
from texel_plane.files import FileCodec, L10N_FILE_EXTENSIONS, default_codec
from texel_plane.merge import group_by, merge_texels, subtract_texels

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"

REPOSITORY_ID = re.compile(r"^(?P<repository>(?P<workspace>[^/]+)/(?P<name>[^/]+))$")
BRANCH_ID = re.compile(r"^(?P<repository>(?P<workspace>[^/]+)/(?P<name>[^/]+))/(?P<branch>.+)$")

REPOSITORY_FIELDS = ["uuid", "full_name", "default_branch"]
REF_FIELDS = [
    "name",
    "target.hash",
    "target.date",
    *(f"target.repository.{field}" for field in REPOSITORY_FIELDS),
]
BRANCH_MODEL_FIELDS = [
    *(f"development.branch.{field}" for field in REF_FIELDS),
    *(f"production.branch.{field}" for field in REF_FIELDS),
]
TREE_ENTRY_FIELDS = ["type", "path"]

Ref = dict[str, Any]
Repository = dict[str, Any]


def _paged_fields(fields: list[str]) -> str:
    return ",".join(["next", *(f"values.{field}" for field in fields)])


def _redact(url: str) -> str:
    return re.sub(r"access_token=[^&]*", "access_token=***", url)


def ref_to_project(ref: Ref) -> Project:
    repository = ref["target"]["repository"]
    return Project(
        id=f"{repository['full_name']}/{ref['name']}",
        name=ref["name"],
        parent=repository_to_project(repository),
        leaf=True,
    )


def repository_to_project(repository: Repository) -> Project:
    return Project(id=repository["full_name"], name=repository["full_name"], leaf=False)


class BitbucketDriver(TexelDriver):
    """
    Reads and commits translation files through the Bitbucket API.

    Listing a branch other than the development branch of the branching
    model only returns the texels that don't exist on the development
    branch.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        cache: RequestCache | None = None,
        client: httpx.AsyncClient | None = None,
        codec: FileCodec | None = None,
        page_length: int = 100,
        max_depth: int = 8,
        timeout: float = 30.0,
        commit_host: str | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else RequestCache()
        self.codec = codec or default_codec()
        self.page_length = page_length
        self.max_depth = max_depth
        self.commit_host = commit_host
        self._owns_client = client is None
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("BitbucketDriver(...)")
        else:
            with p.group(4, "BitbucketDriver(", ")"):
                p.breakable()
                p.text(f"base_url='{self.base_url}',")
                p.breakable()

    async def aclose(self) -> None:
        self.cache.clear()
        if self._owns_client:
            await self.client.aclose()

    @property
    def commit_message(self) -> str:
        host = self.commit_host or socket.gethostname() or "unknown host"
        return f"Edited with Texel-Editor - {host}"

    async def project(self, id: str) -> Project:
        if REPOSITORY_ID.match(id):
            return repository_to_project(await self._repository(id))

        if BRANCH_ID.match(id):
            return ref_to_project(await self._branch(id))

        raise InvalidId(id)

    async def projects(self, parent: str | None = None) -> list[Project]:
        if not parent:
            repositories: list[Project] = []
            async for page in self._repositories():
                repositories.extend(repository_to_project(r) for r in page)
            return list(reversed(repositories))

        if not REPOSITORY_ID.match(parent):
            raise InvalidId(parent, "repository id")

        async def collect_branches() -> list[Project]:
            branches: list[Project] = []
            async for page in self._branches(parent):
                branches.extend(ref_to_project(ref) for ref in page)
            return branches

        branches, branch_model = await asyncio.gather(
            collect_branches(), self._branch_model(parent)
        )
        main_name = branch_model["development"]["branch"]["name"]
        main = [branch for branch in branches if branch.name == main_name]
        others = [branch for branch in branches if branch.name != main_name]
        return [*main, *reversed(others)]

    async def list(self, id: str) -> list[Texel]:
        match = BRANCH_ID.match(id)
        if not match:
            raise InvalidId(id, "branch id")
        repository_id = match.group("repository")

        branch, branch_model = await asyncio.gather(
            self._branch(id), self._branch_model(repository_id)
        )
        main_branch = branch_model["development"]["branch"]
        head = branch["target"]["hash"]
        is_main = branch["name"] == main_branch["name"]

        async def branch_texels(path: str) -> list[Texel]:
            texels, main_texels = await asyncio.gather(
                self._read_texels(repository_id, head, path),
                self._read_texels(repository_id, main_branch["target"]["hash"], path),
            )
            return subtract_texels(texels, main_texels)

        reads = []
        async for page in self._files(repository_id, head):
            for entry in page:
                path = entry["path"]
                if not self.codec.is_l10n_file(path):
                    continue
                if is_main:
                    reads.append(self._read_texels(repository_id, head, path))
                else:
                    reads.append(branch_texels(path))

        results = await asyncio.gather(*reads)
        return [texel for texels in results for texel in texels]

    async def update(self, id: str, changes: list[Texel]) -> None:
        if not changes:
            return

        branch = await self._branch(id)
        repository_id = branch["target"]["repository"]["full_name"]
        head = branch["target"]["hash"]

        async def regenerate(path: str, path_changes: list[Texel]) -> tuple[str, str]:
            existing = await self._read_texels(repository_id, head, path)
            texels = merge_texels(existing, path_changes)
            return path, self.codec.generate_file(path, texels)

        grouped = group_by(changes, lambda c: self.codec.domain_to_path(c.domain, c.locale))
        files = await asyncio.gather(*(regenerate(path, c) for path, c in grouped))

        commit = dict(files)
        # written last, since they could otherwise be overwritten by file names
        commit["branch"] = branch["name"]
        commit["parents"] = head
        commit["message"] = self.commit_message

        logger.info("Committing %d files to %s on %s", len(files), branch["name"], repository_id)
        await self._write(repository_id, commit)

    async def _read_texels(self, repository_id: str, commit_hash: str, path: str) -> list[Texel]:
        """Read a file and parse it, a missing file has no texels."""
        try:
            content = await self._read(repository_id, commit_hash, path)
        except HttpNotFound:
            return []

        try:
            return self.codec.parse_file(path, content)
        except ParseError as e:
            raise DriverError(
                f"Could not read texels in {repository_id} at {commit_hash}", "read", path
            ) from e

    def _url(self, path: str, params: dict[str, str] | None = None) -> str:
        query = {**(params or {}), "access_token": self.token}
        return f"{self.base_url}/{path}?{urlencode(query)}"

    def _with_token(self, url: str) -> str:
        parts = urlsplit(url)
        query = dict(parse_qsl(parts.query))
        if "access_token" in query:
            return url
        query["access_token"] = self.token
        return urlunsplit(parts._replace(query=urlencode(query)))

    async def _request(
        self,
        url: str,
        method: str = "GET",
        accept: str = "application/json; charset=utf-8",
        data: dict[str, str] | None = None,
    ) -> Any:
        if method.upper() != "GET":
            try:
                return await self._send(url, method, accept, data)
            finally:
                self.cache.clear()

        return await self.cache.get(url, lambda: self._send(url, method, accept))

    async def _send(
        self, url: str, method: str, accept: str, data: dict[str, str] | None = None
    ) -> Any:
        logger.debug("%s %s", method, _redact(url))
        try:
            response = await self.client.request(
                method, url, headers={"accept": accept}, data=data
            )
        except httpx.HTTPError as e:
            raise DriverError(f"Request failed: {e}", method, _redact(url)) from e

        if response.status_code == 404:
            raise HttpNotFound(_redact(url), response.status_code)
        if not response.is_success:
            raise HttpError(_redact(url), response.status_code)

        if accept.startswith("application/json"):
            return response.json()
        if accept.startswith("text/"):
            return response.text
        return None

    async def _pager(self, url: str) -> AsyncIterator[list[Any]]:
        """
        Iterate a paged result page by page.

        See https://developer.atlassian.com/cloud/bitbucket/rest/intro/#pagination
        """
        page = await self._request(url)
        yield page.get("values", [])

        while page.get("next"):
            page = await self._request(self._with_token(page["next"]))
            yield page.get("values", [])

    async def _read(self, repository_id: str, commit_hash: str, path: str) -> str:
        return await self._request(
            self._url(f"repositories/{repository_id}/src/{commit_hash}/{quote(path)}"),
            accept="text/*; charset=utf-8",
        )

    async def _write(self, repository_id: str, data: dict[str, str]) -> None:
        await self._request(
            self._url(f"repositories/{repository_id}/src"),
            method="POST",
            accept="*/*",
            data=data,
        )

    def _files(self, repository_id: str, commit_hash: str) -> AsyncIterator[list[Any]]:
        extensions = " OR ".join(f'path ~ ".{ext}"' for ext in L10N_FILE_EXTENSIONS)
        return self._pager(
            self._url(
                f"repositories/{repository_id}/src/{commit_hash}/",
                {
                    "q": f'type = "commit_file" AND ({extensions})',
                    "max_depth": str(self.max_depth),
                    "pagelen": str(self.page_length),
                    "fields": _paged_fields(TREE_ENTRY_FIELDS),
                },
            )
        )

    def _branches(self, repository_id: str) -> AsyncIterator[list[Ref]]:
        return self._pager(
            self._url(
                f"repositories/{repository_id}/refs/branches",
                {"pagelen": str(self.page_length), "fields": _paged_fields(REF_FIELDS)},
            )
        )

    async def _branch(self, branch_id: str) -> Ref:
        match = BRANCH_ID.match(branch_id)
        if not match:
            raise InvalidId(branch_id, "branch id")

        return await self._request(
            self._url(
                f"repositories/{match.group('repository')}/refs/branches/"
                f"{quote(match.group('branch'))}",
                {"fields": ",".join(REF_FIELDS)},
            )
        )

    async def _branch_model(self, repository_id: str) -> dict[str, Any]:
        if not REPOSITORY_ID.match(repository_id):
            raise InvalidId(repository_id, "repository id")

        return await self._request(
            self._url(
                f"repositories/{repository_id}/branching-model",
                {"fields": ",".join(BRANCH_MODEL_FIELDS)},
            )
        )

    def _repositories(self) -> AsyncIterator[list[Repository]]:
        return self._pager(
            self._url(
                "repositories",
                {
                    "role": "member",
                    "pagelen": str(self.page_length),
                    "fields": _paged_fields(REPOSITORY_FIELDS),
                },
            )
        )

    async def _repository(self, repository_id: str) -> Repository:
        if not REPOSITORY_ID.match(repository_id):
            raise InvalidId(repository_id, "repository id")

        return await self._request(
            self._url(f"repositories/{repository_id}", {"fields": ",".join(REPOSITORY_FIELDS)})
        )


def create_bitbucket_driver(token: str, **kwargs: Any) -> BitbucketDriver:
    return BitbucketDriver(token, **kwargs)
