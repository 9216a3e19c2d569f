"""Repository cache gate.

A repository is downloaded only when its local directory is absent. Presence
says nothing about completeness, so a failed load wipes the directory and
runs exactly one more download-and-load; a second failure is the caller's.
"""
import asyncio
import inspect
import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Union

from .entity import DownloadConfig, RemoteRepository
from .errors import CorruptBundleError, ModelFileNotFoundError
from .huggingface import HuggingFaceDownloader
from .planner import required_bundles
from .utils import ensure_dir

logger = logging.getLogger(__name__)

Loader = Callable[[Path], Any]


def check_bundles(repo_path: Union[str, Path], names: Sequence[str],
                  marker: Optional[str] = "coremldata.bin") -> Dict[str, Path]:
    """Structural check of downloaded bundles; returns {name: path}."""
    repo_path = Path(repo_path)
    found = {}
    for name in names:
        path = repo_path / name
        if not path.exists():
            raise ModelFileNotFoundError(f"Model file not found: {name}", path=str(path))
        if not path.is_dir():
            raise CorruptBundleError(f"Model path is not a directory: {name}", path=str(path))
        if marker and not (path / marker).exists():
            logger.error(f"Missing {marker} in {name}")
            raise CorruptBundleError(f"Missing {marker} in model: {name}", path=str(path / marker))
        found[name] = path
    return found


class RepositoryCache:

    def __init__(self, base_dir: Union[str, Path], downloader: Optional[HuggingFaceDownloader] = None,
                 config: Optional[DownloadConfig] = None):
        self.base_dir = Path(base_dir)
        self.config = config or (downloader.config if downloader else DownloadConfig())
        self.downloader = downloader or HuggingFaceDownloader(config=self.config)

    def repo_path(self, repo: RemoteRepository) -> Path:
        return self.base_dir / repo.folder_name

    def is_cached(self, repo: RemoteRepository) -> bool:
        return self.repo_path(repo).exists()

    def purge(self, repo: RemoteRepository) -> None:
        shutil.rmtree(self.repo_path(repo), ignore_errors=True)

    async def ensure(self, repo: RemoteRepository, required_files: Iterable[str],
                     *, cancel_event: Optional[asyncio.Event] = None) -> Path:
        ensure_dir(self.base_dir)
        repo_path = self.repo_path(repo)
        if repo_path.exists():
            logger.info(f"Found {repo.folder_name} locally, no download needed")
            return repo_path
        logger.info(f"Models not found in cache at {repo_path}")
        return await self.downloader.download_repo(repo, self.base_dir, required_files, cancel_event=cancel_event)

    async def load(self, repo: RemoteRepository, required_files: Iterable[str], loader: Optional[Loader] = None,
                   *, cancel_event: Optional[asyncio.Event] = None) -> Any:
        """Ensure the repository is present and hand it to loader.

        loader receives the repository path and may be sync or async. Without
        one, the required bundles are checked structurally and their paths
        returned.
        """
        required = set(required_files)
        if loader is None:
            loader = self._default_loader(required)

        repo_path = await self.ensure(repo, required, cancel_event=cancel_event)
        try:
            return await _call(loader, repo_path)
        except Exception as e:
            logger.warning(f"First load of {repo.remote_path} failed: {e}")
            logger.info("Deleting cache and re-downloading")

        self.purge(repo)
        repo_path = await self.ensure(repo, required, cancel_event=cancel_event)
        return await _call(loader, repo_path)

    def _default_loader(self, required: Iterable[str]) -> Loader:
        names = required_bundles(required, self.config.bundle_suffixes)
        marker = self.config.bundle_marker
        return lambda repo_path: check_bundles(repo_path, names, marker)


async def _call(loader: Loader, repo_path: Path) -> Any:
    result = loader(repo_path)
    if inspect.isawaitable(result):
        result = await result
    return result
