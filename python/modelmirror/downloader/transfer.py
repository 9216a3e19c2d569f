import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .entity import DownloadConfig, DownloadTask, RemoteRepository
from .errors import DownloaderError, InvalidResponse, RateLimited, SyncCancelled, UnexpectedContent
from .installer import install
from .registry import resolve_url
from .session import HubSession, get_session
from .utils import ensure_dir, format_bytes
from .validator import SNIPPET_BYTES, mime_type_of, validate

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


class _ProgressLogger:
    """Incremental progress logging for large transfers.

    Logs every 10% when the total is known, otherwise every log_interval
    seconds. Tracks bytes, starting from the resume offset.
    """

    def __init__(self, desc: str, total: int, initial: int = 0, log_interval: float = 10.0):
        self.desc = desc
        self.total = total
        self.n = initial
        self.log_interval = log_interval
        self.last_log_time = time.time()
        self.last_percent = self._percent()

    def _percent(self) -> int:
        if self.total > 0:
            return int(self.n * 100 / self.total)
        return 0

    def reset(self, n: int) -> None:
        self.n = n
        self.last_percent = self._percent()

    def update(self, n: int) -> None:
        self.n += n
        now = time.time()
        if self.total > 0:
            percent = self._percent()
            if percent >= self.last_percent + 10:
                logger.info(f"Progress: {percent}% of {self.desc}")
                self.last_percent = percent
                self.last_log_time = now
        elif now - self.last_log_time >= self.log_interval:
            logger.info(f"{self.desc}: {format_bytes(self.n)} downloaded")
            self.last_log_time = now


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, DownloaderError):
        return error.is_retryable
    return isinstance(error, (httpx.TransportError, OSError))


def _check_cancelled(cancel_event: Optional[asyncio.Event], description: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SyncCancelled(f"Download cancelled: {description}")


async def retry_with_backoff(operation: Callable[[], Awaitable[T]], *, description: str,
                             max_attempts: int = 4, min_backoff: float = 1.0,
                             sleep: Sleep = asyncio.sleep,
                             cancel_event: Optional[asyncio.Event] = None,
                             token_configured: bool = True) -> T:
    """Run operation until it succeeds, retrying retryable failures.

    The delay before attempt k+1 is min_backoff * 2**(k-1). Non-retryable
    errors propagate at once; after the last attempt the last error is raised
    as is.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    for attempt in range(1, max_attempts + 1):
        _check_cancelled(cancel_event, description)
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt == max_attempts:
                raise

            backoff = min_backoff * 2 ** (attempt - 1)
            if isinstance(e, RateLimited):
                hint = "" if token_configured else " Set HF_TOKEN or HUGGINGFACEHUB_API_TOKEN for higher limits."
                logger.warning(f"Rate limit (HTTP {e.status_code}) while downloading {description}.{hint} "
                               f"Retrying in {backoff:.1f}s.")
            elif isinstance(e, UnexpectedContent):
                logger.warning(f"Unexpected content while downloading {description}. "
                               f"Snippet: {e.snippet[:100]}. Retrying in {backoff:.1f}s.")
            else:
                logger.warning(f"Download attempt {attempt} for {description} failed: {e}. "
                               f"Retrying in {backoff:.1f}s.")
            await sleep(backoff)


async def _read_prefix(chunks, size: int) -> bytes:
    buffered = []
    total = 0
    while total < size:
        try:
            chunk = await chunks.__anext__()
        except StopAsyncIteration:
            break
        buffered.append(chunk)
        total += len(chunk)
    return b"".join(buffered)


class TransferClient:
    """Resumable single-file downloads with validation and retry."""

    def __init__(self, session: Optional[HubSession] = None, config: Optional[DownloadConfig] = None,
                 sleep: Sleep = asyncio.sleep):
        self.config = config or DownloadConfig()
        self.session = session or get_session(token=self.config.token, timeout=self.config.timeout)
        self._sleep = sleep

    async def download(self, repo: RemoteRepository, remote_path: str, destination: Path, expected_size: int,
                       *, cancel_event: Optional[asyncio.Event] = None) -> Path:
        """Fetch remote_path into destination, resuming from destination.download if present.

        Returns the destination path. Raises the last TransferError (or
        transport error) when every attempt failed.
        """
        destination = Path(destination)
        ensure_dir(destination.parent)

        if destination.exists() and os.path.getsize(destination) == expected_size:
            logger.info(f"File already downloaded: {remote_path}")
            return destination

        task = DownloadTask(remote_path=remote_path, expected_size=expected_size, destination=destination)
        temp_path = task.temp_path
        if temp_path.exists():
            partial = task.resume_offset
            if expected_size > 0 and partial == expected_size:
                logger.info(f"Found complete partial download for {remote_path}, installing")
                return install(temp_path, destination)
            if partial > expected_size > 0:
                logger.warning(f"Discarding oversized partial download for {remote_path} "
                               f"({format_bytes(partial)} > {format_bytes(expected_size)})")
                temp_path.unlink()
            elif partial:
                logger.info(f"Resuming download of {remote_path} from {format_bytes(partial)}")

        url = resolve_url(repo, remote_path)
        progress = None
        if expected_size > self.config.progress_threshold:
            progress = _ProgressLogger(destination.name, expected_size)

        try:
            await retry_with_backoff(
                lambda: self._fetch_once(url, task, progress),
                description=remote_path,
                max_attempts=self.config.max_attempts,
                min_backoff=self.config.min_backoff,
                sleep=self._sleep,
                cancel_event=cancel_event,
                token_configured=self.session.current_token() is not None,
            )
        except DownloaderError as e:
            logger.error(f"Download failed for {remote_path}: {e}")
            raise e.with_context(repo=repo.remote_path, path=remote_path)
        except Exception as e:
            logger.error(f"Download failed for {remote_path} from {repo.remote_path}: {e}")
            raise

        size = os.path.getsize(temp_path)
        if size != expected_size:
            logger.warning(f"Downloaded file size mismatch for {remote_path}: got {size}, expected {expected_size}")

        install(temp_path, destination)
        logger.debug(f"Downloaded {remote_path}")
        return destination

    async def _fetch_once(self, url: str, task: DownloadTask, progress: Optional[_ProgressLogger]) -> None:
        temp_path = task.temp_path
        start = task.resume_offset
        headers = self.session.download_headers()
        if start:
            headers["Range"] = f"bytes={start}-"

        async with self.session.stream(url, headers=headers, timeout=self.config.timeout) as response:
            if response.status_code == 416:
                # requested range lies past the end of the remote file
                temp_path.unlink(missing_ok=True)
                raise InvalidResponse("Requested range not satisfiable, restarting download",
                                      status_code=416)

            chunks = response.aiter_bytes(self.config.chunk_size).__aiter__()
            prefix = await _read_prefix(chunks, SNIPPET_BYTES)
            validate(response.status_code, mime_type_of(response.headers.get("content-type")), prefix,
                     allow_empty=task.expected_size == 0)

            append = start > 0 and response.status_code == 206
            if progress is not None:
                progress.reset(start if append else 0)
            with open(temp_path, "ab" if append else "wb") as fh:
                fh.write(prefix)
                if progress is not None:
                    progress.update(len(prefix))
                async for chunk in chunks:
                    fh.write(chunk)
                    if progress is not None:
                        progress.update(len(chunk))
