import pytest

from ingredient_scan.storage import ObjectStorage


def test_upload_notifies_finalize_listeners(storage):
    finalized = []
    remove = storage.on_finalize(finalized.append)

    obj = storage.upload("scan_images/user-1/abc_1.jpg", b"bytes", "image/jpeg")
    remove()
    storage.upload("scan_images/user-1/abc_2.jpg", b"bytes", "image/jpeg")

    assert finalized == [obj]
    assert obj.bucket == "test-bucket"
    assert obj.size == 5


def test_download_and_content_type_round_trip(storage):
    storage.upload("scan_images/user-1/abc_1.png", b"\x89PNG", "image/png")

    assert storage.download("scan_images/user-1/abc_1.png") == b"\x89PNG"
    assert storage.content_type("scan_images/user-1/abc_1.png") == "image/png"


def test_download_missing_object(storage):
    with pytest.raises(FileNotFoundError):
        storage.download("scan_images/user-1/nothing.jpg")


def test_object_names_cannot_escape_bucket(tmp_path):
    storage = ObjectStorage(str(tmp_path), "bucket")
    with pytest.raises(ValueError):
        storage.upload("../outside.jpg", b"x")


def test_public_url(tmp_path):
    storage = ObjectStorage(str(tmp_path), "bucket", public_base_url="https://cdn.example.com/")
    assert storage.public_url("scan_images/u/a_1.jpg") == "https://cdn.example.com/bucket/scan_images/u/a_1.jpg"
