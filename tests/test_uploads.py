from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_image_bytes, open_bytes
from image_ingest.errors import FileUnavailable
from image_ingest.storage import LocalDiskStorage
from image_ingest.transform import TransformConfig
from image_ingest.uploads import (
    FileUploadHandler,
    UploadedFile,
    is_available,
    join_path,
    storage_filename,
)


@pytest.fixture
def storage(tmp_path):
    return LocalDiskStorage(str(tmp_path / "store"))


@pytest.fixture
def upload(tmp_path):
    path = tmp_path / "incoming.bin"
    path.write_bytes(make_image_bytes((1000, 800), "PNG"))
    return UploadedFile(path, "holiday.png", "image/png")


class TestHelpers:

    def test_join_path(self):
        assert join_path("", "a.png") == "a.png"
        assert join_path("uploads/", "a.png") == "uploads/a.png"
        assert join_path("/uploads", "a.png") == "uploads/a.png"
        assert join_path("a/b//", "c.png") == "a/b/c.png"

    def test_generated_name_keeps_extension(self):
        name = storage_filename(UploadedFile(Path("x"), "holiday.PNG"))
        assert name.endswith(".PNG")
        assert name != "holiday.PNG"

    def test_preserved_name_drops_client_dirs(self):
        assert storage_filename(UploadedFile(Path("x"), "../../holiday.png"), True) == "holiday.png"

    def test_missing_file_is_unavailable(self, tmp_path):
        assert is_available(UploadedFile(tmp_path / "gone", "gone.png")) is False

    def test_unreadable_status_is_unavailable(self):
        upload = MagicMock(spec=UploadedFile)
        upload.exists.side_effect = FileUnavailable("permission denied")
        assert is_available(upload) is False

    def test_exists_wraps_os_error(self, tmp_path):
        upload = UploadedFile(tmp_path / "x", "x.png")
        with patch.object(Path, "is_file", side_effect=PermissionError("denied")):
            with pytest.raises(FileUnavailable):
                upload.exists()


class TestFileUploadHandler:

    def test_saves_transformed_image(self, storage, upload):
        handler = FileUploadHandler(storage, TransformConfig(max_width=500, optimize_format="webp"),
                                    directory="uploads", preserve_filenames=True)
        path = handler.save(upload)
        assert path == "uploads/holiday.webp"
        img = open_bytes(storage.full_path(path).read_bytes())
        assert img.format == "WEBP"
        assert img.size == (500, 400)

    def test_store_reports_result(self, storage, upload):
        stored = FileUploadHandler(storage, TransformConfig(max_width=500)).store(upload)
        assert stored.result.transformed is True
        assert stored.path.endswith(".png")
        assert storage.exists(stored.path)

    def test_passes_non_images_through(self, storage, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        handler = FileUploadHandler(storage, TransformConfig(optimize_format="webp"), preserve_filenames=True)
        assert handler.save(UploadedFile(path, "notes.txt", "text/plain")) == "notes.txt"
        assert storage.full_path("notes.txt").read_bytes() == b"hello"

    def test_missing_upload_stores_nothing(self, storage, tmp_path):
        handler = FileUploadHandler(storage, TransformConfig(max_width=10))
        assert handler.save(UploadedFile(tmp_path / "gone", "gone.png", "image/png")) is None
        assert list(storage.root.iterdir()) == []

    def test_visibility_is_forwarded(self, upload):
        storage = MagicMock(spec=LocalDiskStorage)
        FileUploadHandler(storage, TransformConfig(), visibility="public").save(upload)
        assert storage.put.call_args.args[2] == {"visibility": "public"}

        storage.reset_mock()
        FileUploadHandler(storage, TransformConfig()).save(upload)
        assert storage.put.call_args.args[2] == {}
