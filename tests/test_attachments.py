import logging
from types import SimpleNamespace

import pytest

from coursework.core.config import DEFAULT_MAX_FILE_SIZE
from coursework.core.errors import StorageError, ValidationError
from coursework.services.attachments import AttachmentManager, UploadConstraints, UploadedFile
from coursework.storage.blobs import LocalBlobStore
from tests.factories import DOCX, docx, make_file, stored_files


class FlakyBlobStore(LocalBlobStore):
    """Fails every put after the first `ok_puts` calls."""

    def __init__(self, root, ok_puts=0):
        super().__init__(root)
        self.ok_puts = ok_puts

    def put(self, data, *, category, extension=""):
        if self.ok_puts <= 0:
            raise OSError("disk full")
        self.ok_puts -= 1
        return super().put(data, category=category, extension=extension)


@pytest.fixture()
def manager(blob_store):
    return AttachmentManager(blob_store)


# Validate


def test_default_constraints():
    c = UploadConstraints.default()
    assert c.allowed_formats == {"pdf", "doc", "docx", "txt"}
    assert c.max_file_size == 10 * 1024 * 1024


def test_assignment_overrides_fall_back_to_defaults():
    strict = SimpleNamespace(allowed_format_set=frozenset({"zip"}), max_file_size=2048)
    plain = SimpleNamespace(allowed_format_set=None, max_file_size=None)

    assert UploadConstraints.for_assignment(strict) == UploadConstraints(frozenset({"zip"}), 2048)
    assert UploadConstraints.for_assignment(plain) == UploadConstraints.default()


def test_validate_accepts_default_formats(manager):
    files = [
        make_file("a.pdf"),
        make_file("b.DOC", media_type="application/msword"),
        docx("c.docx"),
        make_file("d.txt", media_type="text/plain"),
        make_file("e.pdf", media_type=None),
        make_file("f.pdf", media_type="application/octet-stream"),
    ]
    manager.validate(files, UploadConstraints.default())


def test_validate_rejects_disallowed_extension(manager):
    with pytest.raises(ValidationError, match="virus.exe"):
        manager.validate([make_file("ok.pdf"), make_file("virus.exe")], UploadConstraints.default())


def test_validate_rejects_missing_extension(manager):
    with pytest.raises(ValidationError, match="README"):
        manager.validate([make_file("README", media_type=None)], UploadConstraints.default())


def test_validate_rejects_mismatched_media_type(manager):
    with pytest.raises(ValidationError, match="media type"):
        manager.validate([make_file("essay.pdf", media_type="image/png")], UploadConstraints.default())


def test_validate_rejects_oversized_file(manager):
    big = make_file("big.pdf", size=DEFAULT_MAX_FILE_SIZE + 1)
    with pytest.raises(ValidationError, match="big.pdf"):
        manager.validate([big], UploadConstraints.default())


def test_validate_accepts_exactly_max_size(manager):
    manager.validate([make_file("edge.pdf", size=1024)], UploadConstraints(frozenset({"pdf"}), 1024))


def test_validate_rejects_blank_filename(manager):
    with pytest.raises(ValidationError):
        manager.validate([UploadedFile(filename="", content=b"x")], UploadConstraints.default())


def test_override_formats_without_known_media_type(manager):
    manager.validate(
        [make_file("code.zip", media_type="application/zip")],
        UploadConstraints(frozenset({"zip"}), 4096),
    )


# Store


def test_store_keeps_input_order_and_metadata(manager, blob_store):
    out = manager.store([make_file("essay.pdf", size=10), docx("notes.docx", size=20)])

    assert [a.filename for a in out] == ["essay.pdf", "notes.docx"]
    assert [a.size for a in out] == [10, 20]
    assert out[1].media_type == DOCX
    assert out[0].storage_path.endswith(".pdf")
    assert out[1].storage_path.endswith(".docx")
    assert all(blob_store.exists(a.storage_path) for a in out)
    # generated names, not the client's
    assert "essay" not in out[0].stored_name


def test_store_strips_client_directories(manager):
    [a] = manager.store([make_file("../../etc/essay.pdf")])
    assert a.filename == "essay.pdf"


def test_store_guesses_media_type_when_generic(manager):
    [a] = manager.store([make_file("notes.txt", media_type=None)])
    assert a.media_type == "text/plain"


def test_store_failure_cleans_up_partial_writes(tmp_path):
    flaky = FlakyBlobStore(tmp_path, ok_puts=1)
    manager = AttachmentManager(flaky)

    with pytest.raises(StorageError, match="second.pdf"):
        manager.store([make_file("first.pdf"), make_file("second.pdf")])

    assert stored_files(flaky) == []


# Replace


def test_replace_commits_then_removes_old(manager, blob_store):
    old = manager.store([make_file("old.pdf")])
    seen = {}

    def commit(new):
        # old blobs must still be there while the record is being written
        seen["old_alive"] = all(blob_store.exists(a.storage_path) for a in old)
        seen["new_alive"] = all(blob_store.exists(a.storage_path) for a in new)
        return "committed"

    result = manager.replace(old, [docx("new.docx")], commit)

    assert result == "committed"
    assert seen == {"old_alive": True, "new_alive": True}
    assert not blob_store.exists(old[0].storage_path)
    assert len(stored_files(blob_store)) == 1


def test_replace_failed_commit_keeps_old_and_drops_new(manager, blob_store):
    old = manager.store([make_file("old.pdf")])

    def commit(new):
        raise RuntimeError("db went away")

    with pytest.raises(RuntimeError):
        manager.replace(old, [docx("new.docx")], commit)

    assert blob_store.exists(old[0].storage_path)
    assert stored_files(blob_store) == [old[0].stored_name]


def test_replace_storage_failure_never_reaches_commit(tmp_path):
    flaky = FlakyBlobStore(tmp_path, ok_puts=1)
    manager = AttachmentManager(flaky)
    old = manager.store([make_file("old.pdf")])
    calls = []

    with pytest.raises(StorageError):
        manager.replace(old, [docx("new.docx")], calls.append)

    assert calls == []
    assert flaky.exists(old[0].storage_path)


# Remove


def test_remove_missing_blob_is_logged_not_raised(manager, blob_store, caplog):
    [a] = manager.store([make_file("gone.pdf")])
    blob_store.delete(a.storage_path)

    with caplog.at_level(logging.WARNING, logger="coursework.services.attachments"):
        failed = manager.remove([a])

    assert failed == []
    assert "already absent" in caplog.text


def test_remove_reports_storage_errors(tmp_path, caplog):
    class BrokenDelete(LocalBlobStore):
        def delete(self, handle):
            raise PermissionError("read-only filesystem")

    store = BrokenDelete(tmp_path)
    manager = AttachmentManager(store)
    [a] = manager.store([make_file("stuck.pdf")])

    with caplog.at_level(logging.ERROR, logger="coursework.services.attachments"):
        failed = manager.remove([a])

    assert failed == [a]
    assert a.storage_path in caplog.text
