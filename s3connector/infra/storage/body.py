"""Request body abstraction over in-memory bytes, local files and open streams."""

from __future__ import annotations

import base64
import hashlib
import os
import threading
from pathlib import Path
from typing import BinaryIO

from s3connector.infra.storage.errors import InvalidInputError

DEFAULT_CONTENT_TYPE = "application/octet-stream"

KIND_DATA = "data"
KIND_FILE = "file"
KIND_STREAM = "stream"

_READ_BLOCK = 1024 * 1024


def _content_md5(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


class Body:
    """Payload of an upload.

    Reads are positioned: ``read(offset, length)`` never depends on where a
    previous read left off, so parts may be read concurrently.
    """

    def __init__(
        self,
        *,
        kind: str,
        size_bytes: int,
        content_type: str | None = DEFAULT_CONTENT_TYPE,
        md5: str | None = None,
        data: bytes | None = None,
        path: Path | None = None,
        stream: BinaryIO | None = None,
    ) -> None:
        self.kind = kind
        self.size_bytes = int(size_bytes)
        self.content_type = content_type
        self.md5 = md5
        self._data = data
        self._path = path
        self._stream = stream
        self._lock = threading.Lock()

    @classmethod
    def from_data(
        cls, data: bytes | str, *, content_type: str | None = DEFAULT_CONTENT_TYPE
    ) -> "Body":
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls(
            kind=KIND_DATA,
            size_bytes=len(data),
            content_type=content_type,
            md5=_content_md5(hashlib.md5(data).digest()),
            data=bytes(data),
        )

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        *,
        content_type: str | None = DEFAULT_CONTENT_TYPE,
        compute_md5: bool = False,
    ) -> "Body":
        file_path = Path(path)
        try:
            size = file_path.stat().st_size
        except OSError as exc:
            raise InvalidInputError(f"Cannot read {file_path}: {exc}") from exc
        body = cls(
            kind=KIND_FILE,
            size_bytes=size,
            content_type=content_type,
            path=file_path,
        )
        if compute_md5:
            digest = hashlib.md5()
            for offset in range(0, size, _READ_BLOCK):
                digest.update(body.read(offset, _READ_BLOCK))
            body.md5 = _content_md5(digest.digest())
        return body

    @classmethod
    def from_stream(
        cls,
        stream: BinaryIO,
        *,
        size: int | None = None,
        content_type: str | None = DEFAULT_CONTENT_TYPE,
        md5: str | None = None,
    ) -> "Body":
        if size is None:
            current = stream.tell()
            size = stream.seek(0, os.SEEK_END)
            stream.seek(current)
        return cls(
            kind=KIND_STREAM,
            size_bytes=size,
            content_type=content_type,
            md5=md5,
            stream=stream,
        )

    @property
    def is_empty(self) -> bool:
        if self.kind == KIND_DATA:
            return not self._data
        return self.size_bytes <= 0

    def read(self, offset: int, length: int) -> bytes:
        """Return up to ``length`` bytes starting at ``offset``."""
        if offset < 0 or length < 0:
            raise InvalidInputError("offset and length must not be negative")
        if self.kind == KIND_DATA:
            assert self._data is not None
            return self._data[offset : offset + length]
        if self.kind == KIND_FILE:
            assert self._path is not None
            with self._path.open("rb") as handle:
                handle.seek(offset)
                return handle.read(length)
        assert self._stream is not None
        with self._lock:
            self._stream.seek(offset)
            return self._stream.read(length)

    def slice(self, offset: int, length: int) -> "Body":
        """Return the ``[offset, offset + length)`` range as an untyped in-memory body."""
        chunk = self.read(offset, length)
        if len(chunk) != length:
            raise InvalidInputError(
                f"Body too short: expected {length} bytes at offset {offset}, "
                f"got {len(chunk)}"
            )
        return Body.from_data(chunk, content_type=None)

    def payload(self) -> bytes:
        """Bytes to send as the request entity."""
        return self.read(0, self.size_bytes)
