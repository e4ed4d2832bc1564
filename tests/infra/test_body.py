"""Tests for the request body abstraction."""

import io
from concurrent.futures import ThreadPoolExecutor

import pytest

from s3connector.infra.storage.body import KIND_DATA, KIND_FILE, KIND_STREAM, Body
from s3connector.infra.storage.errors import InvalidInputError


class TestBody:
    """Test Body factories and positioned reads."""

    def test_from_data(self):
        body = Body.from_data("héllo")

        assert body.kind == KIND_DATA
        assert body.size_bytes == 6
        assert body.content_type == "application/octet-stream"
        assert body.md5 is not None
        assert body.read(1, 2) == "é".encode("utf-8")

    def test_from_file(self, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"0123456789")

        body = Body.from_file(path, content_type="text/plain", compute_md5=True)

        assert body.kind == KIND_FILE
        assert body.size_bytes == 10
        assert body.md5 == Body.from_data(b"0123456789").md5
        assert body.read(7, 10) == b"789"
        assert body.payload() == b"0123456789"

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(InvalidInputError):
            Body.from_file(tmp_path / "missing.bin")

    def test_from_stream_measures_size(self):
        stream = io.BytesIO(b"abcdef")
        stream.seek(2)

        body = Body.from_stream(stream)

        assert body.kind == KIND_STREAM
        assert body.size_bytes == 6
        assert stream.tell() == 2
        assert body.md5 is None

    def test_reads_do_not_depend_on_previous_position(self):
        body = Body.from_stream(io.BytesIO(b"abcdef"))

        assert body.read(4, 2) == b"ef"
        assert body.read(0, 2) == b"ab"
        assert body.read(4, 2) == b"ef"

    def test_concurrent_stream_reads(self):
        data = bytes(range(256)) * 64
        body = Body.from_stream(io.BytesIO(data))

        with ThreadPoolExecutor(max_workers=8) as pool:
            chunks = list(pool.map(lambda n: body.read(n * 256, 256), range(64)))

        assert b"".join(chunks) == data

    def test_slice_is_untyped_in_memory_body(self):
        body = Body.from_data(b"abcdef", content_type="text/plain")

        part = body.slice(2, 3)

        assert part.kind == KIND_DATA
        assert part.content_type is None
        assert part.payload() == b"cde"

    def test_short_slice_rejected(self):
        with pytest.raises(InvalidInputError, match="Body too short"):
            Body.from_stream(io.BytesIO(b"abc"), size=10).slice(0, 10)

    def test_is_empty(self):
        assert Body.from_data(b"").is_empty
        assert Body.from_stream(io.BytesIO(b"")).is_empty
        assert not Body.from_data(b"x").is_empty

    def test_negative_offset_rejected(self):
        with pytest.raises(InvalidInputError):
            Body.from_data(b"abc").read(-1, 1)
