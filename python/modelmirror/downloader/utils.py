import os
from pathlib import Path
from typing import Optional, Union

from .entity import DownloadConfig


DEFAULT_CACHE_DIR = "~/.cache/modelmirror"


def ensure_dir(path: Union[str, Path]) -> None:
    os.makedirs(path, exist_ok=True)

def env_float(key: str, default: Optional[float]) -> Optional[float]:
    v = os.environ.get(key)
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default

def env_int(key: str, default: int) -> int:
    v = os.environ.get(key)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default

def format_bytes(num: int) -> str:
    """Human readable size using binary units (1 KB = 1024 bytes)."""
    size = float(num)
    for unit in ("bytes", "KB", "MB", "GB", "TB"):
        if abs(size) < 1024 or unit == "TB":
            if unit == "bytes":
                return f"{int(size)} bytes"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{num} bytes"

def cache_dir_from_env() -> Path:
    return Path(os.path.expanduser(os.environ.get("MODELMIRROR_CACHE_DIR") or DEFAULT_CACHE_DIR))

def config_from_env() -> DownloadConfig:
    """Build a DownloadConfig from MODELMIRROR_DL_* environment variables.

    - timeout/list_timeout: MODELMIRROR_DL_TIMEOUT / MODELMIRROR_DL_LIST_TIMEOUT (seconds)
    - max_attempts: MODELMIRROR_DL_RETRIES
    - min_backoff: MODELMIRROR_DL_MIN_BACKOFF (seconds)
    - token: MODELMIRROR_DL_TOKEN, otherwise left to the HF_TOKEN discovery chain
    Unparseable values fall back to the defaults.
    """
    defaults = DownloadConfig()
    max_attempts = env_int("MODELMIRROR_DL_RETRIES", defaults.max_attempts)
    if max_attempts < 1:
        max_attempts = 1
    return DownloadConfig(
        token=os.environ.get("MODELMIRROR_DL_TOKEN") or None,
        timeout=env_float("MODELMIRROR_DL_TIMEOUT", defaults.timeout),
        list_timeout=env_float("MODELMIRROR_DL_LIST_TIMEOUT", defaults.list_timeout),
        max_attempts=max_attempts,
        min_backoff=env_float("MODELMIRROR_DL_MIN_BACKOFF", defaults.min_backoff),
    )
