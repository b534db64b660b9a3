class TexelError(Exception):
    """
    Base class for all errors raised by texel_plane.
    """


class UnrecognizedPath(TexelError, ValueError):
    """The path is not a translation file in any known path convention."""

    def __init__(self, path: str) -> None:
        super().__init__(f"{path!r} is not a recognized translation file path")
        self.path = path


class MalformedDomain(TexelError, ValueError):
    """The domain string cannot be decomposed into folder, name, ext and pattern."""

    def __init__(self, domain: str) -> None:
        super().__init__(f"{domain!r} is not a valid domain")
        self.domain = domain


class ParseError(TexelError):
    """
    File content could not be converted between its serialized form and texels.

    The offending path and raw content are kept for diagnosis, the underlying
    error is available as ``__cause__``.
    """

    def __init__(self, message: str, path: str, content: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.content = content

    def __str__(self) -> str:
        text = f"{self.args[0]} (path={self.path!r})"
        if self.content is not None:
            text += f"\ncontent: {self.content!r}"
        return text


class InvalidTree(ParseError):
    """A node at a branch position is neither a mapping nor a scalar leaf."""

    def __init__(
        self, path: str, content: str | None, keys: list[str], node: object
    ) -> None:
        super().__init__(
            f"Can't recursively iterate keys of {node!r} at key path {keys!r}",
            path,
            content,
        )
        self.keys = keys


class NotFound(TexelError):
    """The requested object does not exist in the backend."""


class InvalidId(NotFound, ValueError):
    """
    The project id does not match the shape this driver expects.

    Raised before any request is made. Nothing can exist under such an id,
    so it is also a :class:`NotFound`.
    """

    def __init__(self, id: str, expected: str = "project id") -> None:
        super().__init__(f"{expected.capitalize()} {id!r} is not valid")
        self.id = id


class HttpError(TexelError):
    """A remote request answered with a non-success status code."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(f"Request to {url!r} got a bad status code {status}")
        self.url = url
        self.status = status


class HttpNotFound(HttpError, NotFound):
    pass


class DriverError(TexelError):
    """
    A storage backend failed while performing an operation.

    The message names the operation and the id or path under operation,
    the original exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, operation: str, target: str) -> None:
        super().__init__(f"{message} ({operation} {target!r})")
        self.operation = operation
        self.target = target
