"""Response sniffing for hub file downloads.

Servers fronting large binaries sometimes answer an outage or an auth failure
with an HTML page and a 200 status, so status and size alone cannot tell a
real payload from an error page. The first bytes are checked before anything
is written to disk.
"""
from typing import Optional

from .errors import InvalidResponse, RateLimited, RemoteFileError, UnexpectedContent


SNIFF_BYTES = 128
SNIPPET_BYTES = 256
RATE_LIMIT_STATUSES = (429, 503)
# client errors that still deserve a retry
RETRYABLE_CLIENT_STATUSES = (408, 416)


def mime_type_of(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def looks_like_html(data: bytes) -> bool:
    if not data:
        return False
    prefix = data[:SNIFF_BYTES].decode("utf-8", errors="ignore").strip().lower()
    return prefix.startswith("<!doctype html") or prefix.startswith("<html")


def snippet_of(data: bytes) -> str:
    return data[:SNIPPET_BYTES].decode("utf-8", errors="replace")


def validate(status_code: int, mime_type: Optional[str], body_prefix: bytes, *, allow_empty: bool = False) -> None:
    """Raise a ContentError (or RemoteFileError) unless the response carries a usable payload."""
    if status_code in RATE_LIMIT_STATUSES:
        raise RateLimited(status_code)

    mime_type = mime_type_of(mime_type)
    if mime_type == "text/html":
        raise UnexpectedContent(status_code, mime_type, snippet_of(body_prefix))

    if not 200 <= status_code < 300:
        if 400 <= status_code < 500 and status_code not in RETRYABLE_CLIENT_STATUSES:
            raise RemoteFileError(status_code)
        raise InvalidResponse(f"HTTP {status_code}", status_code=status_code)

    if looks_like_html(body_prefix):
        raise UnexpectedContent(status_code, mime_type, snippet_of(body_prefix))

    if not body_prefix and not allow_empty:
        raise InvalidResponse("Empty response body", status_code=status_code)
