from .base import Project, Texel, TexelDriver, TexelId, same_texel_id
from .errors import (
    DriverError,
    HttpError,
    HttpNotFound,
    InvalidId,
    InvalidTree,
    MalformedDomain,
    NotFound,
    ParseError,
    TexelError,
    UnrecognizedPath,
)
from .files import (
    FileCodec,
    L10N_FILE_EXTENSIONS,
    domain_to_path,
    generate_file,
    is_l10n_file,
    parse_file,
    path_to_domain,
)
from .merge import TexelGroup, collect_locales, group_texels, merge_texels, subtract_texels
from .cache import RequestCache
from .factory import (
    BitbucketAuth,
    ChangeStoreAuth,
    DirectoryAuth,
    MemoryAuth,
    create_driver,
    origin_prefix,
)
from .impl.bitbucket import BitbucketDriver
from .impl.change import ChangeDriver, create_change_store
from .impl.directory import DirectoryDriver, DirectoryHandle, LocalDirectoryHandle
from .impl.memory import MemoryDriver
from .workspace import ProjectContent, TexelWorkspace

__all__ = [
    "Project",
    "Texel",
    "TexelDriver",
    "TexelId",
    "same_texel_id",
    "DriverError",
    "HttpError",
    "HttpNotFound",
    "InvalidId",
    "InvalidTree",
    "MalformedDomain",
    "NotFound",
    "ParseError",
    "TexelError",
    "UnrecognizedPath",
    "FileCodec",
    "L10N_FILE_EXTENSIONS",
    "domain_to_path",
    "generate_file",
    "is_l10n_file",
    "parse_file",
    "path_to_domain",
    "TexelGroup",
    "collect_locales",
    "group_texels",
    "merge_texels",
    "subtract_texels",
    "RequestCache",
    "BitbucketAuth",
    "ChangeStoreAuth",
    "DirectoryAuth",
    "MemoryAuth",
    "create_driver",
    "origin_prefix",
    "BitbucketDriver",
    "ChangeDriver",
    "create_change_store",
    "DirectoryDriver",
    "DirectoryHandle",
    "LocalDirectoryHandle",
    "MemoryDriver",
    "ProjectContent",
    "TexelWorkspace",
]
