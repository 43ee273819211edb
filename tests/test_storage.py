"""로컬 파일 저장소 테스트."""

import pytest

from core.exceptions import ArtifactNotFound, StorageError
from storage.file_storage import LocalFileStorage


@pytest.fixture()
def storage(storage_dir):
    return LocalFileStorage(storage_dir)


def test_save_returns_logical_path(storage, storage_dir):
    path = storage.save("resized", "cat.jpg", b"jpeg-bytes")

    assert path == "resized/cat.jpg"
    assert (storage_dir / "resized" / "cat.jpg").read_bytes() == b"jpeg-bytes"
    assert storage.load(path) == b"jpeg-bytes"


def test_save_leaves_no_temp_files(storage, storage_dir):
    storage.save("original", "a.png", b"1")
    storage.save("original", "a.png", b"2")

    assert [p.name for p in (storage_dir / "original").iterdir()] == ["a.png"]
    assert storage.load("original/a.png") == b"2"


def test_save_strips_directories_from_name(storage):
    assert storage.save("original", "../../etc/passwd", b"x") == "original/passwd"


def test_unknown_namespace(storage):
    with pytest.raises(StorageError):
        storage.save("tmp", "a.png", b"x")


def test_path_outside_root_rejected(storage):
    with pytest.raises(StorageError):
        storage.load("../outside.png")


def test_load_missing(storage):
    with pytest.raises(ArtifactNotFound):
        storage.load("original/missing.png")


def test_delete(storage):
    path = storage.save("thumbnails", "t.jpg", b"x")
    storage.delete(path)

    with pytest.raises(ArtifactNotFound):
        storage.load(path)
    with pytest.raises(ArtifactNotFound):
        storage.delete(path)
