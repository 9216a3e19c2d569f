import os
import unittest
from unittest.mock import patch

import httpx

from modelmirror.downloader import registry
from modelmirror.downloader.entity import RemoteRepository
from modelmirror.downloader.session import USER_AGENT, HubSession, get_session, reset_session


REPO = RemoteRepository(remote_path="org/seg-coreml", folder_name="seg-coreml")


class TestRegistryURLs(unittest.TestCase):
    """URL construction and registry override priority."""

    def tearDown(self):
        registry.set_base_url(None)

    def test_default_base_url(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(registry.base_url(), "https://huggingface.co")

    def test_env_priority(self):
        env = {"REGISTRY_URL": "https://registry.internal/", "MODEL_REGISTRY_URL": "https://fallback.internal"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(registry.base_url(), "https://registry.internal")
        with patch.dict(os.environ, {"MODEL_REGISTRY_URL": "https://fallback.internal"}, clear=True):
            self.assertEqual(registry.base_url(), "https://fallback.internal")

    def test_programmatic_override_wins(self):
        registry.set_base_url("https://mirror.example.com/")
        with patch.dict(os.environ, {"REGISTRY_URL": "https://registry.internal"}):
            self.assertEqual(registry.base_url(), "https://mirror.example.com")

    def test_api_tree_url(self):
        registry.set_base_url("https://hub.test")
        self.assertEqual(registry.api_tree_url(REPO), "https://hub.test/api/models/org/seg-coreml/tree/main")
        self.assertEqual(registry.api_tree_url(REPO, "Seg.mlmodelc/weights"),
                         "https://hub.test/api/models/org/seg-coreml/tree/main/Seg.mlmodelc/weights")
        dataset = RemoteRepository(remote_path="org/data", folder_name="data", repo_type="dataset")
        self.assertEqual(registry.api_tree_url(dataset, "clips"),
                         "https://hub.test/api/datasets/org/data/tree/main/clips")

    def test_resolve_url(self):
        registry.set_base_url("https://hub.test")
        self.assertEqual(registry.resolve_url(REPO, "Seg.mlmodelc/weights/weight.bin"),
                         "https://hub.test/org/seg-coreml/resolve/main/Seg.mlmodelc/weights/weight.bin")
        dataset = RemoteRepository(remote_path="org/data", folder_name="data", repo_type="dataset")
        self.assertEqual(registry.resolve_url(dataset, "meta.json"),
                         "https://hub.test/datasets/org/data/resolve/main/meta.json")


class TestTokenDiscovery(unittest.TestCase):

    def test_first_non_empty_token_wins(self):
        env = {"HF_TOKEN": "", "HUGGINGFACEHUB_API_TOKEN": "hub-token", "HUGGING_FACE_HUB_TOKEN": "other"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(registry.hf_token(), "hub-token")

    def test_hf_token_has_priority(self):
        env = {"HF_TOKEN": "primary", "HUGGING_FACE_HUB_TOKEN": "other"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(registry.hf_token(), "primary")

    def test_no_token(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertIsNone(registry.hf_token())


class TestHubSession(unittest.IsolatedAsyncioTestCase):

    async def test_download_headers(self):
        session = HubSession(token="abc", token_provider=lambda: None)
        self.assertEqual(session.download_headers(),
                         {"Accept": "application/octet-stream", "Authorization": "Bearer abc"})
        anonymous = HubSession(token_provider=lambda: None)
        self.assertEqual(anonymous.download_headers(), {"Accept": "application/octet-stream"})

    async def test_token_provider_consulted_per_request(self):
        tokens = iter(["first", "second"])
        session = HubSession(token_provider=lambda: next(tokens))
        self.assertEqual(session.auth_headers(), {"Authorization": "Bearer first"})
        self.assertEqual(session.auth_headers(), {"Authorization": "Bearer second"})

    async def test_requests_carry_user_agent(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        session = HubSession(token="abc", transport=httpx.MockTransport(handler), token_provider=lambda: None)
        try:
            await session.get("https://hub.test/api/models/org/repo/tree/main")
        finally:
            await session.aclose()
        self.assertEqual(seen[0].headers["user-agent"], USER_AGENT)
        self.assertEqual(seen[0].headers["authorization"], "Bearer abc")

    async def test_shared_session_is_singleton(self):
        await reset_session()
        try:
            first = get_session(timeout=5.0)
            self.assertIs(get_session(), first)
            self.assertEqual(first.timeout, 5.0)
        finally:
            await reset_session()
        self.assertIsNot(get_session(), first)
        await reset_session()


if __name__ == "__main__":
    unittest.main()
