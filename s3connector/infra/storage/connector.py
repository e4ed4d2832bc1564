"""S3-compatible object storage connector.

Every public operation follows the same steps: build an ``S3Request``,
hand it to the request executor, classify the response and extract the
result. Nothing is retried here and no state is kept between calls.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import ExitStack
from typing import Any, BinaryIO, Callable, Mapping, Sequence, Union
from xml.etree import ElementTree as ET

from s3connector.common.config import Settings, get_settings
from s3connector.infra.storage.body import Body
from s3connector.infra.storage.chunking import PART_SIZE_BYTES, NoMoreParts, plan_part
from s3connector.infra.storage.client import (
    ACL_PRIVATE,
    BucketInfo,
    BucketListing,
    BucketOwner,
    ListingPage,
    MultipartSession,
    RequestExecutor,
    S3Request,
)
from s3connector.infra.storage.errors import (
    DeleteObjectError,
    GetObjectError,
    InvalidInputError,
    ListBucketsError,
    ListObjectsError,
    PutObjectError,
    raise_for_response,
)
from s3connector.infra.storage.listing import (
    ListingEntry,
    ListingPaginator,
    parse_listing_page,
    parse_timestamp,
)
from s3connector.infra.storage.presign import (
    DEFAULT_URL_LIFETIME_SECONDS,
    build_authenticated_url,
)
from s3connector.infra.storage.request import HttpRequestExecutor
from s3connector.infra.storage.signature import get_signer, resolve_credentials

logger = logging.getLogger("s3connector.connector")

# S3 may report a timeout after it has already merged the parts.
FINALIZE_BENIGN_ERROR_CODES = ("RequestTimeout",)

Sink = Union[BinaryIO, str, os.PathLike]


def split_headers(
    request_headers: Mapping[str, str] | None,
) -> tuple[dict[str, str], dict[str, str]]:
    """Separate ``x-amz-*`` headers (matched case-insensitively) from plain ones."""
    headers: dict[str, str] = {}
    amz_headers: dict[str, str] = {}
    for name, value in (request_headers or {}).items():
        if name.lower().startswith("x-amz-"):
            amz_headers[name] = value
        else:
            headers[name] = value
    return headers, amz_headers


def _header_value(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _without_header(headers: Mapping[str, str], name: str) -> dict[str, str]:
    lowered = name.lower()
    return {k: v for k, v in headers.items() if k.lower() != lowered}


def range_header(range_from: int | None, range_to: int | None) -> str | None:
    """Return a ``Range`` header value, or ``None`` for the whole object.

    Raises:
        InvalidInputError: If only one bound is given or the bounds are invalid.
    """
    if range_from is None and range_to is None:
        return None
    if range_from is None or range_to is None:
        raise InvalidInputError("Both range_from and range_to are required for a range")
    if range_from < 0 or range_to < range_from:
        raise InvalidInputError(f"Invalid byte range {range_from}-{range_to}")
    return f"bytes={int(range_from)}-{int(range_to)}"


def build_completion_manifest(etags: Sequence[str]) -> bytes:
    """XML body for CompleteMultipartUpload; part numbers follow ``etags`` order."""
    root = ET.Element("CompleteMultipartUpload")
    for part_number, etag in enumerate(etags, start=1):
        part = ET.SubElement(root, "Part")
        ET.SubElement(part, "PartNumber").text = str(part_number)
        quoted = etag.strip('"')
        ET.SubElement(part, "ETag").text = f'"{quoted}"'
    return ET.tostring(root, encoding="utf-8")


class S3Connector:
    """Client for an S3-compatible object storage REST API.

    Works with AWS S3, MinIO, and other services speaking the S3 protocol.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        executor: RequestExecutor | None = None,
        credentials: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the connector.

        Args:
            settings: Connection settings; defaults to ``get_settings()``.
            executor: Request executor; defaults to an ``HttpRequestExecutor``
                signing with ``settings.S3_SIGNATURE_METHOD``.
            credentials: botocore-style credentials; resolved from settings
                when omitted.
            clock: Source of the current epoch time for pre-signed URLs.

        Raises:
            StorageError: If credentials are needed and cannot be resolved.
        """
        self._settings = settings or get_settings()
        self._credentials = credentials
        self._clock = clock
        self._executor = executor or self._build_executor(self._settings)

    def _get_credentials(self) -> Any:
        if self._credentials is None:
            self._credentials = resolve_credentials(self._settings)
        return self._credentials

    def _build_executor(self, settings: Settings) -> RequestExecutor:
        signer = get_signer(
            settings.S3_SIGNATURE_METHOD,
            self._get_credentials(),
            region=settings.S3_REGION,
        )
        return HttpRequestExecutor(settings=settings, signer=signer)

    def put_object(
        self,
        body: Body,
        bucket: str,
        key: str,
        *,
        acl: str = ACL_PRIVATE,
        meta_headers: Mapping[str, str] | None = None,
        request_headers: Mapping[str, str] | None = None,
    ) -> None:
        """Upload an object, overwriting any existing object under ``key``.

        Args:
            body: Object contents.
            bucket: Target bucket name.
            key: Object key (path) in the bucket.
            acl: Canned ACL applied to the object.
            meta_headers: Values sent as ``x-amz-meta-<name>`` headers.
            request_headers: Extra headers such as ``Content-Type`` or
                ``Content-Disposition``.

        Raises:
            InvalidInputError: If the body is empty.
            PutObjectError: If the upload is rejected.
        """
        headers, amz_headers = split_headers(request_headers)
        if body.is_empty:
            raise InvalidInputError("Missing input parameters: empty body")

        content_type = _header_value(headers, "Content-Type") or body.content_type
        headers = _without_header(headers, "Content-Type")
        if content_type:
            headers["Content-Type"] = content_type
        headers["Content-Length"] = str(body.size_bytes)
        if body.md5:
            headers["Content-MD5"] = body.md5

        amz_headers["x-amz-acl"] = acl
        for name, value in (meta_headers or {}).items():
            amz_headers[f"x-amz-meta-{name}"] = value

        response = self._executor.execute(
            S3Request(
                verb="PUT",
                bucket=bucket,
                key=key,
                headers=headers,
                amz_headers=amz_headers,
                body=body,
            )
        )
        raise_for_response(response, expected=(200,), error_cls=PutObjectError)

    def get_object(
        self,
        bucket: str,
        key: str,
        *,
        sink: Sink | None = None,
        range_from: int | None = None,
        range_to: int | None = None,
    ) -> bytes | None:
        """Download an object, optionally a byte range of it.

        Args:
            bucket: Bucket name.
            key: Object key.
            sink: File path or writable binary stream to save into.
            range_from: First byte of the range (inclusive).
            range_to: Last byte of the range (inclusive).

        Returns:
            The object bytes, or ``None`` when written to ``sink``.

        Raises:
            InvalidInputError: If the range is incomplete or ``sink`` cannot
                be opened for writing.
            GetObjectError: If the download fails.
        """
        headers: dict[str, str] = {}
        value = range_header(range_from, range_to)
        if value is not None:
            headers["Range"] = value

        with ExitStack() as stack:
            stream: BinaryIO | None = None
            if isinstance(sink, (str, os.PathLike)):
                try:
                    stream = stack.enter_context(open(sink, "wb"))
                except OSError as exc:
                    raise InvalidInputError(
                        f"Cannot open {os.fspath(sink)} for writing: {exc}"
                    ) from exc
            elif sink is not None:
                stream = sink

            response = self._executor.execute(
                S3Request(verb="GET", bucket=bucket, key=key, headers=headers, sink=stream)
            )

        raise_for_response(response, expected=(200, 206), error_cls=GetObjectError)
        if stream is not None:
            return None
        return response.content

    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object.

        Raises:
            DeleteObjectError: If the operation fails.
        """
        response = self._executor.execute(S3Request(verb="DELETE", bucket=bucket, key=key))
        raise_for_response(response, expected=(204,), error_cls=DeleteObjectError)

    def get_authenticated_url(
        self,
        bucket: str,
        key: str,
        *,
        lifetime: int | None = None,
        host_bucket: bool = False,
        https: bool = False,
    ) -> str:
        """Return a time-limited GET URL for an object. No request is sent."""
        if lifetime is None:
            lifetime = DEFAULT_URL_LIFETIME_SECONDS
        expires = int(self._clock()) + int(lifetime)
        return build_authenticated_url(
            credentials=self._get_credentials(),
            bucket=bucket,
            key=key,
            expires=expires,
            endpoint=self._settings.S3_ENDPOINT,
            host_bucket=host_bucket,
            https=https,
        )

    def get_bucket(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        marker: str | None = None,
        max_keys: int | None = None,
        delimiter: str | None = "/",
        include_common_prefixes: bool = False,
    ) -> dict[str, ListingEntry]:
        """List the contents of a bucket.

        Without ``max_keys`` truncated listings are followed to the end.
        With ``max_keys`` only the first page is returned.

        Returns:
            Mapping of key to ``ObjectMetadata``, plus ``CommonPrefix``
            entries when ``include_common_prefixes`` is set.

        Raises:
            ListObjectsError: If the first page cannot be retrieved.
        """

        def fetch(page_marker: str | None, first: bool) -> ListingPage:
            params: dict[str, str] = {}
            if prefix:
                params["prefix"] = prefix
            if page_marker:
                params["marker"] = page_marker
            if first and max_keys:
                params["max-keys"] = str(int(max_keys))
            if delimiter:
                params["delimiter"] = delimiter

            response = self._executor.execute(
                S3Request(verb="GET", bucket=bucket, params=params)
            )
            raise_for_response(response, expected=(200,), error_cls=ListObjectsError)
            return parse_listing_page(response.parsed)

        paginator = ListingPaginator(
            fetch,
            include_common_prefixes=include_common_prefixes,
            follow_truncation=not max_keys,
        )
        return paginator.collect(marker)

    def list_buckets(self, *, detailed: bool = False) -> list[str] | BucketListing:
        """List the buckets owned by the authenticated user.

        Raises:
            ListBucketsError: If the operation fails.
        """
        response = self._executor.execute(S3Request(verb="GET"))
        raise_for_response(response, expected=(200,), error_cls=ListBucketsError)

        root = response.parsed
        entries = root.findall("Buckets/Bucket") if root is not None else []
        if not detailed:
            return [(entry.findtext("Name") or "").strip() for entry in entries]

        owner = None
        owner_node = root.find("Owner") if root is not None else None
        if owner_node is not None:
            owner_id = owner_node.findtext("ID")
            owner_name = owner_node.findtext("DisplayName")
            if owner_id is not None and owner_name is not None:
                owner = BucketOwner(id=owner_id.strip(), name=owner_name.strip())

        return BucketListing(
            owner=owner,
            buckets=tuple(
                BucketInfo(
                    name=(entry.findtext("Name") or "").strip(),
                    created=parse_timestamp(entry.findtext("CreationDate")),
                )
                for entry in entries
            ),
        )

    def start_multipart(
        self,
        body: Body,
        bucket: str,
        key: str,
        *,
        acl: str = ACL_PRIVATE,
        meta_headers: Mapping[str, str] | None = None,
        request_headers: Mapping[str, str] | None = None,
    ) -> MultipartSession:
        """Initiate a multipart upload.

        ``body`` is only consulted for its content type and size.

        Raises:
            PutObjectError: If the upload cannot be started.
        """
        headers, amz_headers = split_headers(request_headers)
        amz_headers["x-amz-acl"] = acl
        for name, value in (meta_headers or {}).items():
            amz_headers[f"x-amz-meta-{name}"] = value

        content_type = _header_value(headers, "Content-Type") or body.content_type
        headers = _without_header(headers, "Content-Type")
        if content_type:
            headers["Content-Type"] = content_type

        response = self._executor.execute(
            S3Request(
                verb="POST",
                bucket=bucket,
                key=key,
                params={"uploads": ""},
                headers=headers,
                amz_headers=amz_headers,
            )
        )
        raise_for_response(response, expected=(200,), error_cls=PutObjectError)

        upload_id = None
        if response.parsed is not None:
            upload_id = response.parsed.findtext("UploadId")
        if not upload_id:
            raise PutObjectError("S3 response missing UploadId")

        return MultipartSession(
            upload_id=upload_id.strip(),
            bucket=bucket,
            key=key,
            total_size_bytes=body.size_bytes,
            part_size_bytes=PART_SIZE_BYTES,
        )

    def upload_multipart(
        self,
        body: Body,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        *,
        request_headers: Mapping[str, str] | None = None,
    ) -> str | None:
        """Upload one part of ``body``.

        The part's byte range is derived from ``part_number`` and the full
        body size, so the same call can be repeated safely.

        Returns:
            The part ETag, or ``None`` once ``part_number`` is past the last part.

        Raises:
            InvalidInputError: If ``upload_id`` or ``part_number`` is missing.
            PutObjectError: If the part upload is rejected.
        """
        if not upload_id:
            raise InvalidInputError("No UploadID specified")
        if not part_number:
            raise InvalidInputError("No PartNumber specified")

        try:
            plan = plan_part(body.size_bytes, int(part_number))
        except NoMoreParts:
            logger.debug(
                "multipart_no_more_parts bucket=%s key=%s part_number=%s",
                bucket,
                key,
                part_number,
            )
            return None

        part = body.slice(plan.offset, plan.size_bytes)
        headers, amz_headers = split_headers(request_headers)
        # Parts carry no content type.
        headers = _without_header(headers, "Content-Type")
        headers["Content-Length"] = str(plan.size_bytes)

        response = self._executor.execute(
            S3Request(
                verb="PUT",
                bucket=bucket,
                key=key,
                params={"partNumber": str(plan.part_number), "uploadId": upload_id},
                headers=headers,
                amz_headers=amz_headers,
                body=part,
            )
        )
        raise_for_response(response, expected=(200,), error_cls=PutObjectError)

        etag = response.etag
        if not etag:
            raise PutObjectError("S3 response missing ETag")
        return etag

    def finalize_multipart(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        etags: Sequence[str],
    ) -> None:
        """Complete a multipart upload.

        ``etags`` must be in ascending part order; part numbers in the
        manifest are their 1-based positions. A ``RequestTimeout`` error is
        treated as success.

        Raises:
            InvalidInputError: If ``etags`` or ``upload_id`` is missing.
            PutObjectError: If the upload cannot be completed.
        """
        if not etags:
            raise InvalidInputError("No ETags array specified")
        if not upload_id:
            raise InvalidInputError("No UploadID specified")

        manifest = Body.from_data(
            build_completion_manifest(etags), content_type="application/xml"
        )
        response = self._executor.execute(
            S3Request(
                verb="POST",
                bucket=bucket,
                key=key,
                params={"uploadId": upload_id},
                headers={
                    "Content-Type": "application/xml",
                    "Content-Length": str(manifest.size_bytes),
                },
                body=manifest,
            )
        )
        raise_for_response(
            response,
            expected=(200,),
            error_cls=PutObjectError,
            benign_codes=FINALIZE_BENIGN_ERROR_CODES,
        )
