"""Error taxonomy shared by the storage tiers and the pipelines.

Every error carries the HTTP status it maps to, so the API layer can
translate any of them with a single exception handler.
"""


class HashdropError(Exception):
    """Base class for all expected failures."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)


class InvalidIdentifier(HashdropError):
    """Identifier must be a lowercase hex string."""

    status_code = 400


class InvalidIdentifierLength(InvalidIdentifier):
    """Identifier must be 6 characters or at least 32 characters long."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            f"Invalid identifier length {len(identifier)}: "
            "expected 6 or at least 32 characters",
        )


class FileNotFound(HashdropError):
    """File has expired or does not exist."""

    status_code = 404


class FileExpired(FileNotFound):
    """File has expired."""


class Forbidden(HashdropError):
    """File is locked and you are not allowed to access it."""

    status_code = 403


class NoMatchingRecord(HashdropError):
    """No records found to update."""

    status_code = 404


class UnsupportedAlgorithm(HashdropError):
    """Unsupported hash type."""

    def __init__(self, algorithm: str) -> None:
        self.algorithm = algorithm
        super().__init__(f"Unsupported hash type: {algorithm}")


class IOFailure(HashdropError):
    """Failed to read the uploaded stream."""

    status_code = 400


class BlobNotFound(HashdropError):
    """Blob does not exist."""

    status_code = 404


class BlobWriteFailed(HashdropError):
    """Failed to write file content to the blob store."""


class BlobReadFailed(HashdropError):
    """Failed to read file content from the blob store."""


class StoreUnavailable(HashdropError):
    """A backing store could not be reached."""

    status_code = 503
