"""In-memory hub used by the unit tests.

Serves tree listings and file bytes through httpx.MockTransport and records
every request so tests can assert on network traffic.
"""
from typing import Dict, List, Optional
from urllib.parse import unquote

import httpx

from .session import HubSession


BASE_URL = "https://hub.test"
OCTET = {"content-type": "application/octet-stream"}


def file_entry(path: str, data: bytes = b"", lfs: bool = False) -> dict:
    entry = {"type": "file", "path": path, "size": len(data), "oid": "0" * 40}
    if lfs:
        entry["size"] = 134
        entry["lfs"] = {"size": len(data), "oid": "f" * 64, "pointer_size": 134}
    return entry


def dir_entry(path: str) -> dict:
    return {"type": "directory", "path": path, "size": 0, "oid": "0" * 40}


class FakeHub:

    def __init__(self, repo: str = "org/repo", kind: str = "models"):
        self.repo = repo
        self.kind = kind
        self.trees: Dict[str, List[dict]] = {}
        self.files: Dict[str, bytes] = {}
        # path -> queued responses (httpx.Response, exception, or callable(request))
        self.scripted: Dict[str, list] = {}
        self.honor_range = True
        self.requests: List[httpx.Request] = []

    def add_file(self, path: str, data: bytes, lfs: bool = False) -> dict:
        self.files[path] = data
        return file_entry(path, data, lfs=lfs)

    def script(self, path: str, *responses) -> None:
        self.scripted.setdefault(path, []).extend(responses)

    def session(self, token: Optional[str] = None) -> HubSession:
        return HubSession(token=token, transport=httpx.MockTransport(self.handler), token_provider=lambda: None)

    @property
    def _tree_prefix(self) -> str:
        return f"/api/{self.kind}/{self.repo}/tree/main"

    @property
    def _resolve_prefix(self) -> str:
        prefix = "/datasets" if self.kind == "datasets" else ""
        return f"{prefix}/{self.repo}/resolve/main/"

    def listed_paths(self) -> List[str]:
        paths = []
        for request in self.requests:
            path = unquote(request.url.path)
            if path.startswith(self._tree_prefix):
                paths.append(path[len(self._tree_prefix):].strip("/"))
        return paths

    def downloaded_paths(self) -> List[str]:
        paths = []
        for request in self.requests:
            path = unquote(request.url.path)
            if path.startswith(self._resolve_prefix):
                paths.append(path[len(self._resolve_prefix):])
        return paths

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = unquote(request.url.path)

        if path.startswith(self._tree_prefix):
            rel = path[len(self._tree_prefix):].strip("/")
            if rel in self.trees:
                return httpx.Response(200, json=self.trees[rel])
            return httpx.Response(404, json={"error": "not found"})

        if path.startswith(self._resolve_prefix):
            rel = path[len(self._resolve_prefix):]
            queue = self.scripted.get(rel)
            if queue:
                item = queue.pop(0)
                if isinstance(item, Exception):
                    raise item
                if callable(item):
                    return item(request)
                return item
            if rel not in self.files:
                return httpx.Response(404, text="Entry not found")
            data = self.files[rel]
            range_header = request.headers.get("range")
            if range_header and self.honor_range:
                start = int(range_header.split("=", 1)[1].rstrip("-"))
                if start >= len(data):
                    return httpx.Response(416)
                return httpx.Response(206, content=data[start:], headers=OCTET)
            return httpx.Response(200, content=data, headers=OCTET)

        return httpx.Response(404)
