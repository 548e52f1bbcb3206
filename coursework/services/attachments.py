"""
File attachments bound to a submission.

Blob state never diverges from the recorded attachment list for longer than
one operation: new blobs are written before the record that references
them is committed, and old blobs are only removed after that commit.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, Iterable, Sequence, TypeVar

from coursework.core.config import (
    DEFAULT_ALLOWED_FORMATS,
    DEFAULT_MAX_FILE_SIZE,
    GENERIC_MEDIA_TYPE,
    MEDIA_TYPES,
    SUBMISSION_CATEGORY,
)
from coursework.core.errors import StorageError, ValidationError
from coursework.storage.blobs import BlobStore, blob_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    media_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower().lstrip(".")


@dataclass(frozen=True)
class AttachmentDescriptor:
    filename: str
    storage_path: str
    media_type: str
    size: int

    @property
    def stored_name(self) -> str:
        return blob_name(self.storage_path)


@dataclass(frozen=True)
class UploadConstraints:
    allowed_formats: frozenset[str]
    max_file_size: int

    @classmethod
    def default(cls) -> "UploadConstraints":
        return cls(DEFAULT_ALLOWED_FORMATS, DEFAULT_MAX_FILE_SIZE)

    @classmethod
    def for_assignment(cls, assignment) -> "UploadConstraints":
        """Assignment overrides win; anything unset falls back to the defaults."""
        formats = assignment.allowed_format_set or DEFAULT_ALLOWED_FORMATS
        max_size = assignment.max_file_size or DEFAULT_MAX_FILE_SIZE
        return cls(frozenset(formats), max_size)


def describe(attachment) -> AttachmentDescriptor:
    """Descriptor from anything shaped like an attachment row."""
    return AttachmentDescriptor(
        filename=attachment.filename,
        storage_path=attachment.storage_path,
        media_type=attachment.media_type,
        size=attachment.size,
    )


def _media_type_for(upload: UploadedFile) -> str:
    declared = upload.media_type
    if declared and declared != GENERIC_MEDIA_TYPE:
        return declared
    known = MEDIA_TYPES.get(upload.extension)
    return known[0] if known else GENERIC_MEDIA_TYPE


class AttachmentManager:
    def __init__(self, blobs: BlobStore, category: str = SUBMISSION_CATEGORY):
        self.blobs = blobs
        self.category = category

    def validate(self, files: Sequence[UploadedFile], constraints: UploadConstraints) -> None:
        allowed = ", ".join(sorted(constraints.allowed_formats))
        for f in files:
            if not f.filename or not PurePath(f.filename).name:
                raise ValidationError("Uploaded file is missing a filename")

            ext = f.extension
            if ext not in constraints.allowed_formats:
                raise ValidationError(
                    f"File '{f.filename}' has a disallowed type; allowed formats: {allowed}"
                )

            declared = f.media_type
            expected = MEDIA_TYPES.get(ext)
            if declared and declared != GENERIC_MEDIA_TYPE and expected and declared not in expected:
                raise ValidationError(
                    f"File '{f.filename}' has media type '{declared}' which does not match '.{ext}'"
                )

            if f.size > constraints.max_file_size:
                raise ValidationError(
                    f"File '{f.filename}' is {f.size} bytes; the maximum is {constraints.max_file_size} bytes"
                )

    def store(self, files: Sequence[UploadedFile]) -> list[AttachmentDescriptor]:
        stored: list[AttachmentDescriptor] = []
        for f in files:
            try:
                handle = self.blobs.put(f.content, category=self.category, extension=f.extension)
            except OSError as exc:
                logger.error("Failed to store '%s': %s", f.filename, exc)
                self.remove(stored)
                raise StorageError(f"Could not store file '{f.filename}'") from exc

            stored.append(
                AttachmentDescriptor(
                    filename=PurePath(f.filename).name,
                    storage_path=handle,
                    media_type=_media_type_for(f),
                    size=f.size,
                )
            )
        return stored

    def replace(
        self,
        old: Iterable[AttachmentDescriptor],
        new_files: Sequence[UploadedFile],
        commit: Callable[[list[AttachmentDescriptor]], T],
    ) -> T:
        """Store `new_files`, run `commit` with their descriptors, then drop `old`.

        `commit` must persist the record that references the new attachments.
        If it raises, the new blobs are removed and the old ones stay intact.
        Returns whatever `commit` returns.
        """
        old = list(old)
        new = self.store(new_files)
        try:
            result = commit(new)
        except Exception:
            logger.info("Record update failed; discarding %d new attachment(s)", len(new))
            self.remove(new)
            raise

        self.remove(old)
        return result

    def remove(self, attachments: Iterable[AttachmentDescriptor]) -> list[AttachmentDescriptor]:
        """Delete backing blobs. Returns the ones that could not be deleted."""
        failed: list[AttachmentDescriptor] = []
        for a in attachments:
            try:
                existed = self.blobs.delete(a.storage_path)
            except OSError as exc:
                logger.error("Could not remove attachment blob %s: %s", a.storage_path, exc)
                failed.append(a)
                continue

            if not existed:
                logger.warning("Attachment blob %s was already absent", a.storage_path)
        return failed

    def open(self, attachment: AttachmentDescriptor) -> bytes:
        return self.blobs.get(attachment.storage_path)
