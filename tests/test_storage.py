"""
Tests for the object store backends
"""

import asyncio
import shutil
import tempfile
from pathlib import Path

import pytest

from librosphere.fs import (
    FilesystemObjectStore,
    MAX_NAME_LENGTH,
    PARTIAL_MARKER,
    PARTIAL_SUFFIX,
    safe_join,
)
from librosphere.models import StorageConfig
from librosphere.storage import (
    InvalidKeyError,
    MemoryObjectStore,
    create_object_store,
)


def run(coro):
    return asyncio.run(coro)


class StoreContract:
    """Behaviour shared by every backend"""

    store = None

    def test_get_missing(self):
        assert run(self.store.get("missing.txt")) is None

    def test_put_then_get(self):
        info = run(self.store.put("notes/a.txt", b"hello", "text/plain"))
        assert info.key == "notes/a.txt"
        assert info.size == 5

        obj = run(self.store.get("notes/a.txt"))
        assert obj is not None
        assert obj.data == b"hello"
        assert obj.size == 5
        assert obj.content_type == "text/plain"
        assert obj.uploaded > 0

    def test_put_overwrites(self):
        run(self.store.put("a.txt", b"first", "text/plain"))
        run(self.store.put("a.txt", b"second", "text/plain"))
        assert run(self.store.get("a.txt")).data == b"second"

    def test_delete(self):
        run(self.store.put("a.txt", b"x", "text/plain"))
        run(self.store.delete("a.txt"))
        assert run(self.store.get("a.txt")) is None

    def test_delete_missing_is_noop(self):
        run(self.store.delete("never-existed.pdf"))

    def test_list_prefix(self):
        for key in ("b.epub", "a.pdf", "notes/a.txt", "notes/b.txt", "notesX.txt"):
            run(self.store.put(key, b"data", "application/octet-stream"))

        keys = [o.key for o in run(self.store.list(""))]
        assert keys == ["a.pdf", "b.epub", "notes/a.txt", "notes/b.txt", "notesX.txt"]

        keys = [o.key for o in run(self.store.list("notes/"))]
        assert keys == ["notes/a.txt", "notes/b.txt"]

        # Prefixes are plain string prefixes, not directories
        keys = [o.key for o in run(self.store.list("notes"))]
        assert keys == ["notes/a.txt", "notes/b.txt", "notesX.txt"]

        assert run(self.store.list("nothing")) == []

    def test_key_and_longer_key_coexist(self):
        run(self.store.put("shelf", b"plain", "application/octet-stream"))
        run(self.store.put("shelf/b.txt", b"nested", "text/plain"))

        assert run(self.store.get("shelf")).data == b"plain"
        assert run(self.store.get("shelf/b.txt")).data == b"nested"
        assert [o.key for o in run(self.store.list("shelf"))] == ["shelf", "shelf/b.txt"]

        run(self.store.delete("shelf"))
        assert run(self.store.get("shelf/b.txt")).data == b"nested"

    def test_repeated_slashes_are_distinct_keys(self):
        run(self.store.put("a/b.txt", b"single", "text/plain"))
        run(self.store.put("a//b.txt", b"double", "text/plain"))

        assert run(self.store.get("a/b.txt")).data == b"single"
        assert run(self.store.get("a//b.txt")).data == b"double"
        assert [o.key for o in run(self.store.list("a/"))] == ["a//b.txt", "a/b.txt"]

    def test_list_reports_sizes(self):
        run(self.store.put("a.txt", b"12345", "text/plain"))
        [info] = run(self.store.list(""))
        assert info.size == 5
        assert info.uploaded > 0


class TestMemoryObjectStore(StoreContract):
    """Test MemoryObjectStore"""

    def setup_method(self):
        self.store = MemoryObjectStore()


class TestFilesystemObjectStore(StoreContract):
    """Test FilesystemObjectStore"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root_path = self.temp_dir / "objects"
        self.store = FilesystemObjectStore(self.root_path)

    def teardown_method(self):
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def test_keys_are_flat_files(self):
        run(self.store.put("notes/2024/a.txt", b"x", "text/plain"))

        assert [p.name for p in self.root_path.iterdir()] == ["notes%2F2024%2Fa.txt"]
        assert (self.root_path / "notes%2F2024%2Fa.txt").read_bytes() == b"x"

    def test_delete_leaves_root(self):
        run(self.store.put("notes/2024/a.txt", b"x", "text/plain"))
        run(self.store.delete("notes/2024/a.txt"))

        assert self.root_path.is_dir()
        assert list(self.root_path.iterdir()) == []

    def test_no_partial_files_left(self):
        run(self.store.put("a.pdf", b"%PDF-1.4", "application/pdf"))
        assert not any(p.name.endswith(PARTIAL_SUFFIX) for p in self.root_path.iterdir())

    def test_partial_files_are_not_listed(self):
        (self.root_path / f"a.pdf{PARTIAL_MARKER}1234{PARTIAL_SUFFIX}").write_bytes(b"half")
        assert run(self.store.list("")) == []

    def test_partial_name_never_matches_a_key(self):
        # A key that looks like an in-flight upload is still an ordinary object
        key = f"a.pdf{PARTIAL_MARKER}1234{PARTIAL_SUFFIX}"
        run(self.store.put(key, b"whole", "application/octet-stream"))

        assert [o.key for o in run(self.store.list(""))] == [key]
        assert run(self.store.get(key)).data == b"whole"

    def test_keys_with_escapes_round_trip_through_list(self):
        for key in ("100%.txt", "読書/ノート.md", "a b+c.txt"):
            run(self.store.put(key, b"x", "text/plain"))

        keys = [o.key for o in run(self.store.list(""))]
        assert keys == sorted(["100%.txt", "読書/ノート.md", "a b+c.txt"])

    def test_content_type_from_extension(self):
        run(self.store.put("book.EPUB", b"PK", "application/epub+zip"))
        assert run(self.store.get("book.EPUB")).content_type == "application/epub+zip"

    def test_prefix_is_not_an_object(self):
        run(self.store.put("notes/a.txt", b"x", "text/plain"))
        assert run(self.store.get("notes")) is None
        assert run(self.store.get("notes/")) is None

    def test_foreign_directories_are_not_listed(self):
        (self.root_path / "lost+found").mkdir()
        (self.root_path / "stray").mkdir()
        run(self.store.put("a.txt", b"x", "text/plain"))

        assert [o.key for o in run(self.store.list(""))] == ["a.txt"]


class TestSafeJoin:
    """Test safe_join"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root_path = self.temp_dir.resolve()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_normal_keys(self):
        assert safe_join(self.root_path, "a.txt") == self.root_path / "a.txt"
        assert safe_join(self.root_path, "notes/a.txt") == self.root_path / "notes%2Fa.txt"
        assert safe_join(self.root_path, "notes//a.txt") == self.root_path / "notes%2F%2Fa.txt"
        assert safe_join(self.root_path, "/") == self.root_path / "%2F"

    def test_dot_segments_stay_inside_root(self):
        assert safe_join(self.root_path, "../outside.txt") == self.root_path / "..%2Foutside.txt"
        assert safe_join(self.root_path, "notes/../../x").parent == self.root_path

    def test_dot_names(self):
        with pytest.raises(InvalidKeyError):
            safe_join(self.root_path, ".")
        with pytest.raises(InvalidKeyError):
            safe_join(self.root_path, "..")

    def test_empty_key(self):
        with pytest.raises(InvalidKeyError):
            safe_join(self.root_path, "")

    def test_overlong_key(self):
        with pytest.raises(InvalidKeyError):
            safe_join(self.root_path, "a" * (MAX_NAME_LENGTH + 1))
        # Escaping counts towards the limit
        with pytest.raises(InvalidKeyError):
            safe_join(self.root_path, "/" * 100)

    def test_symlink_escape(self):
        outside = Path(tempfile.mkdtemp())
        try:
            (outside / "secret.txt").write_text("secret")
            (self.root_path / "link").symlink_to(outside / "secret.txt")
            with pytest.raises(InvalidKeyError):
                safe_join(self.root_path, "link")
        finally:
            shutil.rmtree(outside)


class TestCreateObjectStore:
    """Test backend selection"""

    def test_memory(self):
        assert isinstance(create_object_store(StorageConfig(backend="memory")), MemoryObjectStore)

    def test_filesystem(self, tmp_path):
        store = create_object_store(StorageConfig(backend="filesystem", path=str(tmp_path / "objs")))
        assert isinstance(store, FilesystemObjectStore)
        assert (tmp_path / "objs").is_dir()

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_object_store(StorageConfig(backend="s3"))
