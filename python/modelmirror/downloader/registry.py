"""Registry URL construction and credential discovery.

The base URL can point at a hub mirror. Priority: set_base_url() override,
then REGISTRY_URL, then MODEL_REGISTRY_URL, then the public hub.
"""
import os
from typing import Optional
from urllib.parse import quote

from huggingface_hub import hf_hub_url

from .entity import RemoteRepository


DEFAULT_REGISTRY_URL = "https://huggingface.co"
REVISION = "main"
TOKEN_ENV_VARS = ("HF_TOKEN", "HUGGINGFACEHUB_API_TOKEN", "HUGGING_FACE_HUB_TOKEN")

_custom_base_url: Optional[str] = None


def set_base_url(url: Optional[str]) -> None:
    global _custom_base_url
    _custom_base_url = url.rstrip("/") if url else None


def base_url() -> str:
    url = (_custom_base_url
           or os.environ.get("REGISTRY_URL")
           or os.environ.get("MODEL_REGISTRY_URL")
           or DEFAULT_REGISTRY_URL)
    return url.rstrip("/")


def hf_token() -> Optional[str]:
    for key in TOKEN_ENV_VARS:
        token = os.environ.get(key)
        if token:
            return token
    return None


def api_tree_url(repo: RemoteRepository, relative_path: str = "") -> str:
    kind = "datasets" if repo.repo_type == "dataset" else "models"
    url = f"{base_url()}/api/{kind}/{repo.remote_path}/tree/{REVISION}"
    relative_path = relative_path.strip("/")
    if relative_path:
        url += "/" + quote(relative_path)
    return url


def resolve_url(repo: RemoteRepository, file_path: str) -> str:
    return hf_hub_url(
        repo_id=repo.remote_path,
        filename=file_path,
        repo_type=None if repo.repo_type == "model" else repo.repo_type,
        revision=REVISION,
        endpoint=base_url(),
    )
