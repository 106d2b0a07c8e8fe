"""Local Object Storage: write-once upload, path confinement, idempotent removal."""

import pytest

from jobboard.infrastructure.object_storage import LocalObjectStorage


@pytest.fixture
def local_storage(tmp_path):
    return LocalObjectStorage(str(tmp_path), "https://files.test/resumes/")


async def test_upload_writes_under_base_path(local_storage, tmp_path):
    await local_storage.upload("u1/a1.pdf", b"%PDF-1.4")
    assert (tmp_path / "u1" / "a1.pdf").read_bytes() == b"%PDF-1.4"


async def test_upload_refuses_to_overwrite(local_storage):
    await local_storage.upload("u1/a1.pdf", b"one")
    with pytest.raises(FileExistsError):
        await local_storage.upload("u1/a1.pdf", b"two")


async def test_keys_cannot_escape_base_path(local_storage):
    with pytest.raises(ValueError):
        await local_storage.upload("../outside.pdf", b"x")


def test_public_url_joins_base_and_key(local_storage):
    assert local_storage.public_url("u1/a1.pdf") == "https://files.test/resumes/u1/a1.pdf"


async def test_remove_ignores_missing_keys(local_storage, tmp_path):
    await local_storage.upload("u1/a1.pdf", b"x")
    await local_storage.remove(["u1/a1.pdf", "u1/missing.pdf"])
    assert not (tmp_path / "u1" / "a1.pdf").exists()
