import logging
import os
import shutil
from pathlib import Path
from typing import Union

from .errors import InstallError
from .utils import ensure_dir

logger = logging.getLogger(__name__)


def install(temp_path: Union[str, Path], destination: Union[str, Path]) -> Path:
    """Move a completed download into place.

    Some sandboxed environments refuse the rename; copying and removing the
    source is used there instead. A failed copy raises InstallError.
    """
    temp_path = Path(temp_path)
    destination = Path(destination)
    ensure_dir(destination.parent)

    try:
        os.remove(destination)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not remove stale {destination}: {e}")

    try:
        os.replace(temp_path, destination)
        return destination
    except OSError as e:
        logger.warning(f"Move failed for {destination}, attempting copy: {e}")

    try:
        shutil.copy2(temp_path, destination)
    except OSError as e:
        raise InstallError(f"Failed to install {temp_path} -> {destination}: {e}",
                           path=str(destination)) from e

    try:
        os.remove(temp_path)
    except OSError as e:
        logger.warning(f"Could not remove temporary file {temp_path}: {e}")
    return destination
