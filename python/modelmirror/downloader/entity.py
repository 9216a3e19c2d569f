import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, Tuple


TEMP_SUFFIX = ".download"


@dataclass(frozen=True)
class RemoteRepository:
    """A remote hub repository mirrored into one local cache directory.

    remote_path is the hub namespace (e.g. "org/model-coreml"); folder_name is
    the directory created under the cache base directory. variant is an
    informational tag for the caller that computed the required file set.
    """
    remote_path: str
    folder_name: str
    variant: Optional[str] = None
    # "model" or "dataset"
    repo_type: str = "model"

    def __str__(self) -> str:
        if self.variant:
            return f"{self.remote_path} ({self.variant})"
        return self.remote_path


@dataclass(frozen=True)
class RemoteEntry:
    """One node of a tree listing."""
    type: str
    path: str
    size: int = 0
    # large-file storage size, authoritative over size when present
    lfs_size: Optional[int] = None

    @classmethod
    def from_json(cls, item: Dict[str, Any]) -> "RemoteEntry":
        lfs = item.get("lfs") or {}
        lfs_size = lfs.get("size") if isinstance(lfs, dict) else None
        return cls(
            type=str(item["type"]),
            path=str(item["path"]),
            size=int(item.get("size") or 0),
            lfs_size=int(lfs_size) if lfs_size is not None else None,
        )

    @property
    def expected_size(self) -> int:
        return self.lfs_size if self.lfs_size is not None else self.size

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass
class DownloadTask:
    """A single file to fetch into destination."""
    remote_path: str
    expected_size: int
    destination: Path

    @property
    def temp_path(self) -> Path:
        return temp_path_for(self.destination)

    @property
    def resume_offset(self) -> int:
        try:
            return os.path.getsize(self.temp_path)
        except OSError:
            return 0


@dataclass
class BundleTask:
    """A directory bundle fetched recursively into local_root/remote_path."""
    remote_path: str
    local_root: Path

    @property
    def destination(self) -> Path:
        return self.local_root / self.remote_path


@dataclass
class DownloadConfig:
    """Tunables shared by the tree walker, transfer client and cache gate.

    Built from the environment by utils.config_from_env so that callers do not
    need to pass runtime flags.
    """
    # registry base URL override (None: REGISTRY_URL / MODEL_REGISTRY_URL / hub default)
    registry_url: Optional[str] = None
    # explicit bearer token; None falls back to HF_TOKEN and friends
    token: Optional[str] = None
    timeout: float = 1800.0
    list_timeout: float = 30.0
    max_attempts: int = 4
    min_backoff: float = 1.0
    chunk_size: int = 1024 * 1024
    bundle_suffixes: Tuple[str, ...] = (".mlmodelc",)
    # file every complete bundle must contain; None disables the check
    bundle_marker: Optional[str] = "coremldata.bin"
    # files larger than this log incremental progress
    progress_threshold: int = 100_000_000


def temp_path_for(destination: Path) -> Path:
    destination = Path(destination)
    return destination.with_name(destination.name + TEMP_SUFFIX)
