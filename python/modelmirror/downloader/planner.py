"""Decides which remote entries a repository sync fetches and where they land.

Required bundles may be named bare ("Seg.mlmodelc") or behind a variant
sub-folder ("offline/Seg.mlmodelc"); the latter lands in repo_path/offline so
several variants of one repository can coexist on disk.
"""
import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple, Union

from .entity import BundleTask, DownloadTask, RemoteEntry

logger = logging.getLogger(__name__)

PlanItem = Union[DownloadTask, BundleTask]

ESSENTIAL_SUFFIXES = (".json", ".txt")


def is_essential_file(path: str) -> bool:
    return path.endswith(ESSENTIAL_SUFFIXES) or path == "config.json"


def is_bundle(entry: RemoteEntry, suffixes: Sequence[str]) -> bool:
    return entry.is_directory and entry.path.endswith(tuple(suffixes))


def bundle_roots(path: str, required_files: Iterable[str], repo_path: Path) -> List[Path]:
    bare = False
    subfolders = set()
    for member in required_files:
        if member == path:
            bare = True
        elif member.endswith("/" + path):
            subfolders.add(member.split("/", 1)[0])
    roots = [repo_path] if bare else []
    roots.extend(repo_path / name for name in sorted(subfolders))
    return roots


def required_bundles(required_files: Iterable[str], suffixes: Sequence[str]) -> List[str]:
    return sorted(f for f in required_files if f.rstrip("/").endswith(tuple(suffixes)))


def plan(entries: Iterable[RemoteEntry], required_files: Iterable[str], repo_path: Path,
         bundle_suffixes: Sequence[str] = (".mlmodelc",)) -> List[PlanItem]:
    """Turn a root listing into ordered download work.

    Required bundles become BundleTasks (one per local root), essential
    metadata files become DownloadTasks, everything else is skipped.
    """
    required = set(required_files)
    repo_path = Path(repo_path)
    items: List[PlanItem] = []

    for entry in entries:
        if is_bundle(entry, bundle_suffixes):
            roots = bundle_roots(entry.path, required, repo_path)
            if not roots:
                logger.info(f"Skipping unrequired model: {entry.path}")
                continue
            for root in roots:
                logger.info(f"Downloading required model: {entry.path} -> {root}")
                items.append(BundleTask(remote_path=entry.path, local_root=root))
        elif entry.is_file and is_essential_file(entry.path):
            items.append(DownloadTask(remote_path=entry.path, expected_size=entry.expected_size,
                                      destination=repo_path / entry.path))
        else:
            logger.debug(f"Skipping {entry.type} {entry.path}")

    return items


def summarize(items: Iterable[PlanItem]) -> Tuple[int, int]:
    """(file tasks, bundle tasks) in a plan."""
    files = bundles = 0
    for item in items:
        if isinstance(item, BundleTask):
            bundles += 1
        else:
            files += 1
    return files, bundles
