import tempfile
import unittest
from pathlib import Path

from modelmirror.downloader.entity import BundleTask, DownloadTask, RemoteEntry
from modelmirror.downloader.planner import (
    bundle_roots, is_essential_file, plan, required_bundles, summarize,
)


ROOT = Path("/cache/repo")


def _file(path, size=10):
    return RemoteEntry(type="file", path=path, size=size)


def _dir(path):
    return RemoteEntry(type="directory", path=path)


class TestPlan(unittest.TestCase):
    """Unit tests for selecting what a sync fetches."""

    def test_bare_bundle_goes_to_repo_root(self):
        items = plan([_dir("ModelX.mlmodelc")], {"ModelX.mlmodelc"}, ROOT)
        self.assertEqual(items, [BundleTask("ModelX.mlmodelc", ROOT)])
        self.assertEqual(items[0].destination, ROOT / "ModelX.mlmodelc")

    def test_variant_bundle_goes_to_subfolder(self):
        items = plan([_dir("ModelX.mlmodelc")], {"variant-a/ModelX.mlmodelc"}, ROOT)
        self.assertEqual(items, [BundleTask("ModelX.mlmodelc", ROOT / "variant-a")])
        self.assertEqual(items[0].destination, ROOT / "variant-a" / "ModelX.mlmodelc")

    def test_several_variants_coexist(self):
        required = {"variant-b/ModelX.mlmodelc", "ModelX.mlmodelc", "variant-a/ModelX.mlmodelc"}
        roots = bundle_roots("ModelX.mlmodelc", required, ROOT)
        self.assertEqual(roots, [ROOT, ROOT / "variant-a", ROOT / "variant-b"])

    def test_nested_member_uses_leading_segment(self):
        roots = bundle_roots("ModelX.mlmodelc", {"offline/v2/ModelX.mlmodelc"}, ROOT)
        self.assertEqual(roots, [ROOT / "offline"])

    def test_suffix_match_needs_separator(self):
        """A required OtherModelX.mlmodelc does not select ModelX.mlmodelc."""
        self.assertEqual(bundle_roots("ModelX.mlmodelc", {"OtherModelX.mlmodelc"}, ROOT), [])

    def test_unrequired_bundle_skipped(self):
        items = plan([_dir("ModelX.mlmodelc"), _dir("ModelY.mlmodelc")], {"ModelY.mlmodelc"}, ROOT)
        self.assertEqual([i.remote_path for i in items], ["ModelY.mlmodelc"])

    def test_essential_files_kept_in_listing_order(self):
        entries = [
            _file("README.md", 500),
            _file("config.json", 120),
            _dir("Seg.mlmodelc"),
            _file("vocab.txt", 30),
            _file("weights.bin", 9000),
            _dir("docs"),
        ]
        items = plan(entries, {"Seg.mlmodelc", "docs"}, ROOT)
        self.assertEqual([i.remote_path for i in items], ["config.json", "Seg.mlmodelc", "vocab.txt"])
        self.assertEqual(items[0], DownloadTask("config.json", 120, ROOT / "config.json"))
        self.assertEqual(summarize(items), (2, 1))

    def test_custom_bundle_suffixes(self):
        items = plan([_dir("Encoder.mlpackage"), _dir("Seg.mlmodelc")],
                     {"Encoder.mlpackage", "Seg.mlmodelc"}, ROOT, bundle_suffixes=(".mlpackage",))
        self.assertEqual([i.remote_path for i in items], ["Encoder.mlpackage"])

    def test_lfs_size_used_for_expected_size(self):
        entry = RemoteEntry(type="file", path="tokenizer.json", size=134, lfs_size=2_000_000)
        items = plan([entry], set(), ROOT)
        self.assertEqual(items[0].expected_size, 2_000_000)


class TestHelpers(unittest.TestCase):

    def test_is_essential_file(self):
        for path in ("config.json", "tokenizer.json", "vocab.txt"):
            self.assertTrue(is_essential_file(path), path)
        for path in ("README.md", "model.safetensors", "json"):
            self.assertFalse(is_essential_file(path), path)

    def test_required_bundles(self):
        required = {"a/Seg.mlmodelc", "Emb.mlmodelc", "config.json"}
        self.assertEqual(required_bundles(required, (".mlmodelc",)), ["Emb.mlmodelc", "a/Seg.mlmodelc"])

    def test_download_task_resume_offset(self):
        with tempfile.TemporaryDirectory() as tmp:
            task = DownloadTask("weights.bin", 100, Path(tmp) / "weights.bin")
            self.assertEqual(task.temp_path, Path(tmp) / "weights.bin.download")
            self.assertEqual(task.resume_offset, 0)
            task.temp_path.write_bytes(b"x" * 42)
            self.assertEqual(task.resume_offset, 42)


if __name__ == "__main__":
    unittest.main()
