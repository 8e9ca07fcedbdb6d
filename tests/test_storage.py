# tests/test_storage.py
import json
import shutil
import tempfile
import unittest
from pathlib import Path

from buildfs import FileSnapshot
from buildflow.core.collaborators import DependencyCacheEntry
from buildflow.storage import FileDependencyCache, FileLock, FileProjectStore
from buildflow.storage.project_store import snapshot_checksum

FILES = FileSnapshot({
    "index.html": "<div id='root'></div>",
    "src/main.tsx": "import App from './App';\n",
    "public/logo.png": "base64:iVBORw0KGgo=",
})


class TestFileProjectStore(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.store = FileProjectStore(str(Path(self.test_dir) / "store"))

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_save_and_load(self):
        meta = self.store.save("demo", FILES, name="Demo App")

        self.assertEqual(meta.file_count, 3)
        self.assertEqual(meta.checksum, snapshot_checksum(FILES))
        loaded = self.store.load("demo")
        self.assertEqual(loaded, FILES)
        self.assertTrue(loaded["public/logo.png"].is_binary)

    def test_load_unknown_project(self):
        self.assertIsNone(self.store.load("missing"))

    def test_resave_keeps_name_and_creation_time(self):
        first = self.store.save("demo", FILES, name="Demo App")
        second = self.store.save("demo", FILES.with_files({"a.ts": "x"}))

        self.assertEqual(second.name, "Demo App")
        self.assertEqual(second.created_at, first.created_at)
        self.assertEqual(second.file_count, 4)
        self.assertEqual(self.store.get_metadata("demo").file_count, 4)

    def test_index_survives_reopen(self):
        self.store.save("demo", FILES)
        self.store.save("other", FileSnapshot({"a.txt": "a"}))

        reopened = FileProjectStore(str(Path(self.test_dir) / "store"))
        self.assertEqual(reopened.list_projects(), ["demo", "other"])

    def test_versions(self):
        self.store.save("demo", FILES)
        first = self.store.create_version("demo", FILES, summary="Initial import")
        second = self.store.create_version("demo", FILES.without(["index.html"]), summary="Removed index")

        versions = self.store.list_versions("demo")
        self.assertEqual({v.version_id for v in versions}, {first.version_id, second.version_id})
        self.assertEqual(self.store.load_version("demo", second.version_id), FILES.without(["index.html"]))
        self.assertIsNone(self.store.load_version("demo", "nope"))

    def test_unreadable_version_is_skipped(self):
        info = self.store.create_version("demo", FILES)
        versions_dir = Path(self.test_dir) / "store" / "projects" / "demo" / "versions"
        (versions_dir / "broken.json").write_text("{oops", encoding="utf-8")

        self.assertEqual([v.version_id for v in self.store.list_versions("demo")], [info.version_id])

    def test_corrupt_live_file(self):
        self.store.save("demo", FILES)
        (Path(self.test_dir) / "store" / "projects" / "demo" / "live.json").write_text("not json")
        self.assertIsNone(self.store.load("demo"))

    def test_invalid_project_ids(self):
        for bad in ("", "../escape", ".hidden", "a/b"):
            with self.assertRaises(ValueError):
                self.store.save(bad, FILES)

    def test_no_temp_files_left_behind(self):
        self.store.save("demo", FILES)
        leftovers = list((Path(self.test_dir) / "store").rglob("*.tmp"))
        self.assertEqual(leftovers, [])


class TestFileDependencyCache(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.cache = FileDependencyCache(str(Path(self.test_dir) / "deps"))

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_put_get_invalidate(self):
        self.assertIsNone(self.cache.get("demo"))

        self.cache.put("demo", DependencyCacheEntry("abc", {"_cacache/index": "x"}, 1.5))
        entry = self.cache.get("demo")
        self.assertEqual(entry.manifest_hash, "abc")
        self.assertEqual(entry.files, {"_cacache/index": "x"})

        self.cache.invalidate("demo")
        self.assertIsNone(self.cache.get("demo"))
        self.cache.invalidate("demo")

    def test_unreadable_entry_is_dropped(self):
        entry_file = Path(self.test_dir) / "deps" / "demo.json"
        entry_file.write_text(json.dumps({"unexpected": True}))

        self.assertIsNone(self.cache.get("demo"))
        self.assertFalse(entry_file.exists())


class TestFileLock(unittest.TestCase):

    def test_lock_creates_parent_directory(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            lock_path = Path(temp_dir) / "nested" / "x.lock"
            with FileLock(str(lock_path)):
                self.assertTrue(lock_path.exists())

    def test_lock_is_released_on_error(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            lock_path = str(Path(temp_dir) / "x.lock")
            with self.assertRaises(RuntimeError):
                with FileLock(lock_path):
                    raise RuntimeError("boom")
            with FileLock(lock_path):
                pass


if __name__ == '__main__':
    unittest.main()
