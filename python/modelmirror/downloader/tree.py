import logging
from typing import List, Optional

import httpx

from .entity import DownloadConfig, RemoteEntry, RemoteRepository
from .errors import ListError
from .registry import api_tree_url
from .session import HubSession, get_session

logger = logging.getLogger(__name__)


class TreeWalker:
    """Lists one directory level of a remote repository per call.

    Recursion is left to the caller so that only directories that matter are
    ever listed.
    """

    def __init__(self, session: Optional[HubSession] = None, config: Optional[DownloadConfig] = None):
        self.config = config or DownloadConfig()
        self.session = session or get_session(token=self.config.token, timeout=self.config.timeout)

    async def list_entries(self, repo: RemoteRepository, relative_path: str = "") -> List[RemoteEntry]:
        url = api_tree_url(repo, relative_path)
        where = relative_path or "/"
        try:
            response = await self.session.get(url, timeout=self.config.list_timeout)
        except httpx.HTTPError as e:
            raise ListError(f"Failed to list {where}: {e}", repo=repo.remote_path, path=relative_path) from e

        if response.status_code != 200:
            raise ListError(f"Failed to list {where}: HTTP {response.status_code}",
                            repo=repo.remote_path, path=relative_path)

        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise TypeError(f"expected a JSON array, got {type(payload).__name__}")
            entries = [RemoteEntry.from_json(item) for item in payload]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ListError(f"Malformed tree listing for {where}: {e}",
                            repo=repo.remote_path, path=relative_path) from e

        logger.debug(f"Listed {len(entries)} entries under {where} in {repo.remote_path}")
        return entries
