"""
Durable blob storage.

The core only relies on the `BlobStore` contract: ``put`` returns an opaque
handle, ``get`` returns the bytes behind a handle, ``delete`` removes it.
Handles look like ``<category>/<name>`` so the same contract can be met by a
local directory tree or by an object store bucket with key prefixes.

Failures surface as ``OSError`` (``FileNotFoundError`` for absent handles);
callers decide how to classify them.
"""

import logging
import os
import re
import secrets
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def generate_blob_name(extension: str, prefix: str = "submission") -> str:
    """Unique name from a nanosecond timestamp plus a random suffix, keeping the extension."""
    ext = extension.lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return f"{prefix}-{time.time_ns()}-{secrets.token_hex(4)}{ext}"


def blob_name(handle: str) -> str:
    return handle.rsplit("/", 1)[-1]


class BlobStore(ABC):
    @abstractmethod
    def put(self, data: bytes, *, category: str, extension: str = "") -> str:
        ...

    @abstractmethod
    def get(self, handle: str) -> bytes:
        ...

    @abstractmethod
    def delete(self, handle: str) -> bool:
        """Remove the blob. Returns False when it was already absent."""

    @abstractmethod
    def exists(self, handle: str) -> bool:
        ...


class LocalBlobStore(BlobStore):
    """Blobs as files under ``root/<category>/<name>``."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path_for(self, handle: str) -> Path:
        parts = handle.split("/")
        if len(parts) != 2 or not all(_NAME_RE.match(p) for p in parts):
            raise FileNotFoundError(f"Invalid blob handle: {handle!r}")
        return self.root / parts[0] / parts[1]

    def put(self, data: bytes, *, category: str, extension: str = "") -> str:
        handle = f"{category}/{generate_blob_name(extension)}"
        dest = self._path_for(handle)
        dest.parent.mkdir(parents=True, exist_ok=True)

        # write to a temp file in the same directory, then atomically move in place
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(data)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_name, dest)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug("Stored blob %s (%d bytes)", handle, len(data))
        return handle

    def get(self, handle: str) -> bytes:
        return self._path_for(handle).read_bytes()

    def delete(self, handle: str) -> bool:
        try:
            self._path_for(handle).unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, handle: str) -> bool:
        try:
            return self._path_for(handle).is_file()
        except FileNotFoundError:
            return False
