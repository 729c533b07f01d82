import logging

import pytest

from appduka.errors import UploadFailedError
from appduka.services import app_files
from appduka.services.app_files import (
    build_storage_path,
    delete_app_file_by_url,
    next_timestamp_token,
    sanitize_app_name,
    storage_path_from_url,
    upload_app_file,
)


def test_sanitize_app_name():
    assert sanitize_app_name("Redio Tanzania 2.0!") == "redio_tanzania_2_0_"
    assert sanitize_app_name("KALENDA") == "kalenda"


def test_timestamp_tokens_never_repeat():
    tokens = [next_timestamp_token() for _ in range(50)]
    assert len(set(tokens)) == 50
    assert tokens == sorted(tokens)


def test_storage_path_is_folder_token_filename():
    path = build_storage_path("My App", "C:\\uploads\\icon.png")
    folder, rest = path.split("/", 1)
    token, filename = rest.split("_", 1)
    assert folder == "my_app"
    assert token.isdigit()
    assert filename == "icon.png"


def test_upload_returns_public_url(storage):
    url = upload_app_file(storage, b"icon", "icon.png", "Kalenda", "image/png")
    assert url.startswith("https://project.supabase.test/storage/v1/object/public/app_files/kalenda/")
    assert url.endswith("_icon.png")
    assert len(storage.objects) == 1


def test_upload_failure_raises_upload_failed(storage):
    storage.fail_uploads_matching.add("icon")
    with pytest.raises(UploadFailedError):
        upload_app_file(storage, b"icon", "icon.png", "Kalenda")


def test_storage_path_from_url_round_trip(storage):
    url = storage.public_url("kalenda/1700000000000_screen%201.png")
    assert storage_path_from_url(url, "app_files") == "kalenda/1700000000000_screen 1.png"


def test_storage_path_from_url_without_bucket():
    with pytest.raises(ValueError):
        storage_path_from_url("https://cdn.example.com/other/icon.png", "app_files")


def test_delete_missing_object_counts_as_gone(storage):
    assert delete_app_file_by_url(storage, storage.public_url("kalenda/1_gone.png")) is True


def test_delete_empty_url_is_noop(storage):
    assert delete_app_file_by_url(storage, None) is True
    assert storage.events == []


def test_delete_failure_is_logged_not_raised(storage, caplog):
    url = upload_app_file(storage, b"apk", "app.apk", "Kalenda")
    storage.fail_removes_matching.add("app.apk")
    with caplog.at_level(logging.WARNING, logger=app_files.__name__):
        assert delete_app_file_by_url(storage, url) is False
    assert "Could not delete" in caplog.text


def test_unparseable_url_is_logged_not_raised(storage, caplog):
    with caplog.at_level(logging.WARNING, logger=app_files.__name__):
        assert delete_app_file_by_url(storage, "not a url") is False
    assert storage.events == []
