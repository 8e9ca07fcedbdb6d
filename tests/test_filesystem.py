# tests/test_filesystem.py
import base64

import pytest

from buildfs import (
    ContentKind, FileEntry, FileSnapshot, FileSystemModel, has_build_script, manifest_hash,
    materialize, read_directory, read_manifest,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


class TestFileEntry:
    def test_plain_text(self):
        entry = FileEntry.from_wire("hello")
        assert entry.kind is ContentKind.TEXT
        assert entry.to_wire() == "hello"

    def test_binary_prefix_is_parsed_once(self):
        wire = "base64:" + base64.b64encode(PNG_BYTES).decode()
        entry = FileEntry.from_wire(wire)
        assert entry.is_binary
        assert entry.as_bytes() == PNG_BYTES
        assert entry.size == len(PNG_BYTES)
        assert entry.to_wire() == wire

    def test_prefix_with_invalid_payload_stays_text(self):
        entry = FileEntry.from_wire("base64:not valid base64!!")
        assert entry.kind is ContentKind.TEXT
        assert entry.content == "base64:not valid base64!!"

    def test_directory_marker(self):
        entry = FileEntry.from_wire("__DIR__")
        assert entry.is_directory
        assert entry.to_wire() == "__DIR__"

    def test_non_string_rejected(self):
        with pytest.raises(TypeError):
            FileEntry.from_wire(42)


class TestFileSnapshot:
    def test_paths_are_normalized(self):
        snapshot = FileSnapshot({"./src/a.ts": "a", "/src/b.ts": "b"})
        assert sorted(snapshot) == ["src/a.ts", "src/b.ts"]
        assert "src/a.ts" in snapshot
        assert snapshot["./src/b.ts"].content == "b"

    def test_derived_snapshots_leave_the_original_alone(self):
        original = FileSnapshot({"a.txt": "1"})
        updated = original.with_files({"b.txt": "2"})
        removed = updated.without(["a.txt"])

        assert list(original) == ["a.txt"]
        assert sorted(updated) == ["a.txt", "b.txt"]
        assert list(removed) == ["b.txt"]

    def test_binary_kind_survives_wire_round_trip(self):
        wire = {"logo.png": "base64:" + base64.b64encode(PNG_BYTES).decode(), "a.txt": "x"}
        snapshot = FileSnapshot.from_wire_dict(wire)
        assert snapshot["logo.png"].is_binary
        assert snapshot.to_wire_dict() == wire

    def test_paths_hide_directory_placeholders_by_default(self):
        snapshot = FileSnapshot({"a.txt": "x", "assets/": "__DIR__"})
        assert snapshot.paths() == ["a.txt"]
        assert snapshot.paths(include_directories=True) == ["a.txt", "assets/"]

    def test_empty_path_rejected(self):
        with pytest.raises(ValueError):
            FileSnapshot({"  ": "x"})


class TestFileSystemModel:
    def test_draft_edits_do_not_touch_live(self):
        fs = FileSystemModel.from_wire_dict({"a.txt": "1"})
        fs.write_files({"b.txt": "2"})
        fs.delete_paths(["a.txt"])

        assert list(fs.live) == ["a.txt"]
        assert list(fs.draft) == ["b.txt"]
        assert fs.has_pending_changes()

    def test_commit_replaces_live_with_the_whole_draft(self):
        fs = FileSystemModel.from_wire_dict({"a.txt": "1"})
        fs.write_files({"a.txt": "2", "b.txt": "3"})
        before = fs.draft

        live, changes = fs.commit()

        assert live is before
        assert fs.live is before
        assert fs.generation == 1
        assert changes.touched_paths() == ["a.txt", "b.txt"]
        assert not fs.has_pending_changes()

    def test_revert_draft(self):
        fs = FileSystemModel.from_wire_dict({"a.txt": "1"})
        fs.write_files({"a.txt": "changed"})
        fs.revert_draft()
        assert fs.draft == fs.live

    def test_pending_changes(self):
        fs = FileSystemModel.from_wire_dict({"a.txt": "1", "b.txt": "2"})
        fs.write_files({"a.txt": "1!", "c.txt": "3"})
        fs.delete_paths(["b.txt"])

        pending = fs.pending_changes()
        assert list(pending.added) == ["c.txt"]
        assert list(pending.modified) == ["a.txt"]
        assert pending.deleted == ["b.txt"]


class TestManifest:
    def test_hash_follows_manifest_content(self):
        a = FileSnapshot({"package.json": '{"name": "a"}'})
        b = a.with_files({"src/index.ts": "x"})
        c = a.with_files({"package.json": '{"name": "c"}'})

        assert manifest_hash(a) == manifest_hash(b)
        assert manifest_hash(a) != manifest_hash(c)
        assert manifest_hash(FileSnapshot({"index.html": ""})) is None

    def test_build_script_detection(self):
        with_build = FileSnapshot({"package.json": '{"scripts": {"build": "vite build"}}'})
        without = FileSnapshot({"package.json": '{"scripts": {"dev": "vite"}}'})
        broken = FileSnapshot({"package.json": "{not json"})

        assert has_build_script(with_build)
        assert not has_build_script(without)
        assert not has_build_script(broken)
        assert read_manifest(broken) is None


class TestMaterialize:
    def test_directory_round_trip_keeps_kinds(self, tmp_path):
        snapshot = FileSnapshot({
            "src/main.ts": "console.log('hi');\n",
            "public/logo.png": FileEntry.binary(PNG_BYTES),
            "assets/": "__DIR__",
        })
        materialize(snapshot, tmp_path / "out")

        assert (tmp_path / "out" / "public" / "logo.png").read_bytes() == PNG_BYTES
        assert (tmp_path / "out" / "assets").is_dir()

        restored = read_directory(tmp_path / "out")
        assert restored == snapshot

    def test_read_directory_skips_node_modules(self, tmp_path):
        (tmp_path / "node_modules" / "x").mkdir(parents=True)
        (tmp_path / "node_modules" / "x" / "index.js").write_text("x")
        (tmp_path / "index.html").write_text("<html></html>")

        assert list(read_directory(tmp_path)) == ["index.html"]

    def test_escaping_paths_are_refused(self, tmp_path):
        with pytest.raises(ValueError):
            materialize(FileSnapshot({"../evil.txt": "x"}), tmp_path / "out")
