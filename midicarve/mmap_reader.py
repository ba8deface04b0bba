"""
Blob Reader — load an input image into one addressable buffer.

1. Memory-mapped I/O (mmap) when possible: zero-copy, and the map supports
   slicing, find() and rfind() just like bytes.
2. Fallback to a single full read() if mmap fails (empty files, pipes,
   some special files).

The carver only ever sees the buffer; open/size/read failures surface
here as BlobLoadError.
"""

import os
import mmap
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class BlobLoadError(RuntimeError):
    """The input blob could not be opened, sized, or read."""


class BlobReader:
    """
    Read-only view of a whole file.

    Usage:
        with BlobReader(path) as reader:
            data = reader.data
            ...
    """

    def __init__(self, path: str, use_mmap: bool = True):
        self.path = path
        self._mmap: Optional[mmap.mmap] = None
        self._data: Optional[bytes] = None
        self._using_mmap = False

        try:
            self._fd = open(path, "rb")
        except OSError as e:
            raise BlobLoadError(f"Could not open {path}: {e}") from e

        try:
            self._size = os.fstat(self._fd.fileno()).st_size
            logger.info("Opened %s for reading (%d bytes)", path, self._size)
            if use_mmap and self._size > 0:
                self._try_mmap()
            if not self._using_mmap:
                self._data = self._fd.read()
                self._size = len(self._data)
        except OSError as e:
            self._fd.close()
            raise BlobLoadError(f"Could not read {path}: {e}") from e

    def _try_mmap(self):
        try:
            self._mmap = mmap.mmap(self._fd.fileno(), 0, access=mmap.ACCESS_READ)
            self._using_mmap = True
            logger.debug("mmap enabled: %d bytes", self._size)
        except (OSError, ValueError, OverflowError) as e:
            logger.info("mmap unavailable (%s), reading whole file into RAM", e)
            self._mmap = None
            self._using_mmap = False

    @property
    def is_mmap(self) -> bool:
        return self._using_mmap

    @property
    def size(self) -> int:
        return self._size

    @property
    def data(self):
        """The whole blob: an mmap or bytes, both sliceable and searchable."""
        if self._mmap is not None:
            return self._mmap
        if self._data is None:
            raise BlobLoadError(f"{self.path} is closed")
        return self._data

    def close(self):
        """Release the mapping and the file handle."""
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
            self._using_mmap = False
        self._data = None
        self._fd.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def load_blob(path: str) -> bytes:
    """Read an entire file into memory."""
    with BlobReader(path, use_mmap=False) as reader:
        return reader.data
