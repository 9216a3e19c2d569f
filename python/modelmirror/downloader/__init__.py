"""modelmirror.downloader

Mirrors the parts of a Hugging Face style repository a consumer needs into a
local cache directory, with resumable transfers and atomic installs.
Run as module: python -m modelmirror.downloader
"""

__version__ = "0.1.0"

from .cache import RepositoryCache, check_bundles
from .entity import DownloadConfig, DownloadTask, RemoteEntry, RemoteRepository
from .huggingface import HuggingFaceDownloader
from .utils import config_from_env

__all__ = [
    "cache",
    "entity",
    "errors",
    "huggingface",
    "installer",
    "planner",
    "registry",
    "session",
    "transfer",
    "tree",
    "utils",
    "validator",
    "DownloadConfig",
    "DownloadTask",
    "HuggingFaceDownloader",
    "RemoteEntry",
    "RemoteRepository",
    "RepositoryCache",
    "check_bundles",
    "config_from_env",
]
