"""Storage client data types and collaborator protocols.

This module defines the values exchanged with an S3-compatible REST API:
object and bucket listings, multipart sessions, and the request/response
pair passed to a request executor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, BinaryIO, Mapping, Protocol
from xml.etree import ElementTree as ET

if TYPE_CHECKING:
    from s3connector.infra.storage.body import Body
    from s3connector.infra.storage.errors import ErrorDetail

ACL_PRIVATE = "private"
ACL_PUBLIC_READ = "public-read"
ACL_PUBLIC_READ_WRITE = "public-read-write"
ACL_AUTHENTICATED_READ = "authenticated-read"
ACL_BUCKET_OWNER_READ = "bucket-owner-read"
ACL_BUCKET_OWNER_FULL_CONTROL = "bucket-owner-full-control"


@dataclass(frozen=True, slots=True)
class StorageObjectRef:
    """Identifies a stored object."""

    bucket: str
    key: str


@dataclass(frozen=True, slots=True)
class ObjectMetadata:
    """Snapshot of an object as reported by a bucket listing."""

    name: str
    last_modified: int | None
    size_bytes: int
    content_hash: str


@dataclass(frozen=True, slots=True)
class CommonPrefix:
    """Synthetic directory entry produced when a delimiter groups keys."""

    prefix: str


@dataclass(frozen=True, slots=True)
class ListingPage:
    """One server response of a bucket listing."""

    objects: tuple[ObjectMetadata, ...] = ()
    common_prefixes: tuple[CommonPrefix, ...] = ()
    truncated: bool = False
    next_marker: str | None = None


@dataclass(frozen=True, slots=True)
class BucketOwner:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class BucketInfo:
    name: str
    created: int | None


@dataclass(frozen=True, slots=True)
class BucketListing:
    """Detailed result of listing buckets."""

    owner: BucketOwner | None
    buckets: tuple[BucketInfo, ...] = ()


@dataclass(frozen=True, slots=True)
class MultipartSession:
    """State of a multipart upload, owned and threaded through by the caller.

    Part numbers are 1-based and contiguous. Only the last part may be
    shorter than ``part_size_bytes``.
    """

    upload_id: str
    bucket: str
    key: str
    total_size_bytes: int
    part_size_bytes: int
    completed_parts: Mapping[int, str] = field(default_factory=dict)

    def with_part(self, part_number: int, etag: str) -> "MultipartSession":
        """Return a new session with ``etag`` recorded for ``part_number``."""
        parts = dict(self.completed_parts)
        parts[int(part_number)] = etag
        return MultipartSession(
            upload_id=self.upload_id,
            bucket=self.bucket,
            key=self.key,
            total_size_bytes=self.total_size_bytes,
            part_size_bytes=self.part_size_bytes,
            completed_parts=parts,
        )

    def ordered_etags(self) -> list[str]:
        """ETags in ascending part-number order, as the completion manifest needs."""
        return [self.completed_parts[n] for n in sorted(self.completed_parts)]


@dataclass(frozen=True, slots=True)
class S3Request:
    """A single REST operation handed to a request executor."""

    verb: str
    bucket: str = ""
    key: str = ""
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    amz_headers: Mapping[str, str] = field(default_factory=dict)
    body: "Body | None" = None
    sink: BinaryIO | None = None


@dataclass(slots=True)
class S3Response:
    """Outcome of an executed request.

    ``headers`` keys are lower case. ``parsed`` holds the XML body with
    namespaces stripped, when the body was XML. ``error`` is set when the
    transport failed or the server returned an ``<Error>`` document.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""
    parsed: ET.Element | None = None
    error: "ErrorDetail | None" = None

    @property
    def etag(self) -> str | None:
        value = self.headers.get("etag")
        if value is None:
            return None
        return value.strip('"')


class RequestExecutor(Protocol):
    """Signs and performs one HTTP exchange against the storage endpoint."""

    def execute(self, request: S3Request) -> S3Response:
        """Execute ``request`` and return its response.

        Transport failures are reported through ``S3Response.error``
        rather than raised.
        """
        ...


class Signer(Protocol):
    """Adds authorization material to an outgoing request."""

    def sign(self, request) -> None:
        """Sign a ``botocore.awsrequest.AWSRequest`` in place."""
        ...
