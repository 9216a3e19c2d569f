import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .entity import BundleTask, DownloadConfig, DownloadTask, RemoteRepository
from .errors import SyncCancelled
from .planner import plan, summarize
from .session import HubSession, get_session
from .transfer import TransferClient
from .tree import TreeWalker
from .utils import ensure_dir, format_bytes

logger = logging.getLogger(__name__)

# Only files above this size are announced at info level
LARGE_FILE_BYTES = 10_000_000


class HuggingFaceDownloader:
    """Mirrors the required part of a Hugging Face repository to local disk.

    Lists the repository root, plans which bundles and metadata files are
    needed, then fetches them one at a time. Bundle directories are walked
    with an explicit stack, one listing per directory level.
    """

    def __init__(self, session: Optional[HubSession] = None, config: Optional[DownloadConfig] = None,
                 transfer: Optional[TransferClient] = None, walker: Optional[TreeWalker] = None):
        self.config = config or DownloadConfig()
        session = session or get_session(token=self.config.token, timeout=self.config.timeout)
        self.transfer = transfer or TransferClient(session=session, config=self.config)
        self.walker = walker or TreeWalker(session=session, config=self.config)

    async def download_repo(self, repo: RemoteRepository, base_dir: Union[str, Path], required_files: Iterable[str],
                            *, cancel_event: Optional[asyncio.Event] = None) -> Path:
        repo_path = Path(base_dir) / repo.folder_name
        logger.info(f"Downloading {repo.folder_name} from {repo.remote_path}")
        ensure_dir(repo_path)

        required = set(required_files)
        entries = await self.walker.list_entries(repo)
        items = plan(entries, required, repo_path, self.config.bundle_suffixes)
        files, bundles = summarize(items)
        logger.info(f"Planned {files} files and {bundles} model bundles for {repo}")

        fetched = 0
        for item in items:
            self._check_cancelled(cancel_event, repo)
            if isinstance(item, BundleTask):
                fetched += await self._download_bundle(repo, item, cancel_event)
            else:
                logger.info(f"Downloading {item.remote_path}")
                await self._fetch(repo, item, cancel_event)
                fetched += 1

        logger.info(f"Downloaded all required models for {repo.folder_name} ({fetched} files)")
        return repo_path

    async def _download_bundle(self, repo: RemoteRepository, bundle: BundleTask,
                               cancel_event: Optional[asyncio.Event]) -> int:
        ensure_dir(bundle.destination)
        pending: List[str] = [bundle.remote_path]
        fetched = 0
        while pending:
            self._check_cancelled(cancel_event, repo)
            dir_path = pending.pop()
            entries = await self.walker.list_entries(repo, dir_path)

            subdirs = []
            for entry in entries:
                if entry.is_directory:
                    ensure_dir(bundle.local_root / entry.path)
                    subdirs.append(entry.path)
                elif entry.is_file:
                    self._check_cancelled(cancel_event, repo)
                    task = DownloadTask(remote_path=entry.path, expected_size=entry.expected_size,
                                        destination=bundle.local_root / entry.path)
                    self._announce(task)
                    await self._fetch(repo, task, cancel_event)
                    fetched += 1
            # reversed so the first listed subdirectory is walked first
            pending.extend(reversed(subdirs))
        return fetched

    async def _fetch(self, repo: RemoteRepository, task: DownloadTask,
                     cancel_event: Optional[asyncio.Event]) -> Path:
        return await self.transfer.download(repo, task.remote_path, task.destination, task.expected_size,
                                            cancel_event=cancel_event)

    @staticmethod
    def _announce(task: DownloadTask) -> None:
        if task.expected_size > LARGE_FILE_BYTES:
            logger.info(f"Downloading {task.remote_path} ({format_bytes(task.expected_size)})")
        else:
            logger.debug(f"Downloading {task.remote_path} ({format_bytes(task.expected_size)})")

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event], repo: RemoteRepository) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise SyncCancelled(f"Sync of {repo.folder_name} cancelled", repo=repo.remote_path)
