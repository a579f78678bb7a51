"""本地存储后端的单元测试。"""

import pytest

from app.packages.drive.core.exceptions import StorageError, ValidationError
from app.packages.drive.core.security import decode_and_verify_token
from app.packages.drive.services.storage_backends import LocalBackend, S3Backend, build_backend
from app.packages.drive.utils.lease import parse_issued_at


@pytest.fixture()
def backend(tmp_path):
    return LocalBackend(tmp_path / "blobs", public_base_url="http://files.test/", blob_route="/api/v1/blobs")


def test_put_and_open(backend):
    backend.put("3/a.txt", b"abc", "text/plain")

    assert backend.exists("3/a.txt")
    assert backend.open("3/a.txt").read_bytes() == b"abc"


def test_delete_is_idempotent(backend):
    backend.put("3/a.txt", b"abc", "text/plain")

    backend.delete("3/a.txt")
    backend.delete("3/a.txt")

    assert not backend.exists("3/a.txt")


def test_rename_moves_blob(backend):
    backend.put("3/a.txt", b"abc", "text/plain")

    backend.rename("3/a.txt", "3/b.txt")

    assert not backend.exists("3/a.txt")
    assert backend.open("3/b.txt").read_bytes() == b"abc"


def test_rename_missing_source_fails(backend):
    with pytest.raises(StorageError):
        backend.rename("3/missing.txt", "3/b.txt")


def test_rejects_path_traversal(backend):
    with pytest.raises(ValidationError):
        backend.put("../escape.txt", b"x", "text/plain")


def test_open_missing_blob(backend):
    with pytest.raises(FileNotFoundError):
        backend.open("3/none.txt")


def test_signed_read_url_embeds_stamp_and_token(backend):
    url = backend.signed_read_url("3/a.txt", 3600)

    assert url.startswith("http://files.test/api/v1/blobs?issued=")
    assert parse_issued_at(url) is not None
    token = url.split("token=", 1)[1]
    payload = decode_and_verify_token(token)
    assert payload["key"] == "3/a.txt"
    assert payload["purpose"] == "blob_read"


def test_build_backend_selects_implementation(tmp_path):
    local = build_backend(type="local", local_root_path=tmp_path, public_base_url="http://x")

    assert isinstance(local, LocalBackend)
    with pytest.raises(StorageError):
        build_backend(type="S3", region="us-east-1")
    with pytest.raises(StorageError):
        build_backend(type="FTP")


def test_s3_backend_applies_prefix():
    backend = S3Backend(
        bucket="bucket",
        region="us-east-1",
        access_key_id="AKIDEXAMPLE",
        secret_access_key="secret",
        prefix="/drive/",
    )

    assert backend._join_key("7/a.txt") == "drive/7/a.txt"
    url = backend.signed_read_url("7/a.txt", 600)
    assert "X-Amz-Date=" in url
    assert parse_issued_at(url) is not None
