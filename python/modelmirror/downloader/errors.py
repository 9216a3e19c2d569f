"""Error taxonomy for repository sync.

Every error may carry the repository and file path it concerns so that a
failure reported to the caller is diagnosable without re-running verbosely.
`is_retryable` is consulted by the single retry loop in transfer.py.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNEXPECTED_CONTENT = "unexpected_content"
    INVALID_RESPONSE = "invalid_response"


class DownloaderError(Exception):
    is_retryable = False

    def __init__(self, message: str, *, repo: Optional[str] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.repo = repo
        self.path = path

    def with_context(self, *, repo: Optional[str] = None, path: Optional[str] = None) -> "DownloaderError":
        if repo and not self.repo:
            self.repo = repo
        if path and not self.path:
            self.path = path
        return self

    def __str__(self) -> str:
        context = []
        if self.repo:
            context.append(f"repo={self.repo}")
        if self.path:
            context.append(f"path={self.path}")
        if context:
            return f"{self.message} [{' '.join(context)}]"
        return self.message


class TransferError(DownloaderError):
    """A single file transfer failed."""


class ContentError(TransferError):
    """The server answered, but not with the payload we asked for."""
    is_retryable = True

    def __init__(self, kind: ErrorKind, detail: str, *, status_code: Optional[int] = None, **context):
        super().__init__(detail, **context)
        self.kind = kind
        self.detail = detail
        self.status_code = status_code


class RateLimited(ContentError):
    def __init__(self, status_code: int, **context):
        super().__init__(ErrorKind.RATE_LIMITED, f"HTTP {status_code}", status_code=status_code, **context)


class UnexpectedContent(ContentError):
    def __init__(self, status_code: int, mime_type: Optional[str], snippet: str, **context):
        self.mime_type = mime_type
        self.snippet = snippet
        detail = f"Unexpected content ({mime_type or 'unknown MIME type'}): {snippet[:100]}"
        super().__init__(ErrorKind.UNEXPECTED_CONTENT, detail, status_code=status_code, **context)


class InvalidResponse(ContentError):
    def __init__(self, detail: str = "Received an invalid response", *, status_code: Optional[int] = None,
                 **context):
        super().__init__(ErrorKind.INVALID_RESPONSE, detail, status_code=status_code, **context)


class RemoteFileError(TransferError):
    """Client error from the remote (401, 403, 404, ...); backoff will not fix it."""

    def __init__(self, status_code: int, **context):
        super().__init__(f"HTTP {status_code} from remote", **context)
        self.status_code = status_code


class ListError(DownloaderError):
    """A tree listing could not be obtained; no partial tree is usable."""


class InstallError(DownloaderError):
    """A completed download could not be placed at its destination."""


class ModelFileNotFoundError(DownloaderError):
    pass


class CorruptBundleError(DownloaderError):
    pass


class SyncCancelled(DownloaderError):
    def __init__(self, message: str = "Download cancelled", **context):
        super().__init__(message, **context)
