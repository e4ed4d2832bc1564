"""Drive a complete multipart upload: start, upload every part, finalize."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Mapping

from s3connector.infra.storage.body import Body
from s3connector.infra.storage.chunking import count_parts
from s3connector.infra.storage.client import ACL_PRIVATE, MultipartSession
from s3connector.infra.storage.errors import PutObjectError

if TYPE_CHECKING:
    from s3connector.infra.storage.connector import S3Connector

logger = logging.getLogger("s3connector.multipart")


class MultipartUploader:
    """Upload a body as a multipart object.

    Parts are independent byte ranges, so with ``max_workers > 1`` they are
    uploaded across a bounded thread pool. ETags are reassembled in
    ascending part order before finalizing regardless of completion order.
    A failed part propagates its error; the upload is left unfinished.
    """

    def __init__(self, connector: "S3Connector", *, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._connector = connector
        self._max_workers = max_workers

    def upload(
        self,
        body: Body,
        bucket: str,
        key: str,
        *,
        acl: str = ACL_PRIVATE,
        meta_headers: Mapping[str, str] | None = None,
        request_headers: Mapping[str, str] | None = None,
    ) -> MultipartSession:
        session = self._connector.start_multipart(
            body,
            bucket,
            key,
            acl=acl,
            meta_headers=meta_headers,
            request_headers=request_headers,
        )
        total_parts = count_parts(session.total_size_bytes, session.part_size_bytes)
        logger.info(
            "multipart_started bucket=%s key=%s upload_id=%s parts=%s",
            bucket,
            key,
            session.upload_id,
            total_parts,
        )

        part_numbers = range(1, total_parts + 1)
        if self._max_workers == 1:
            results = [self._upload_part(body, session, n) for n in part_numbers]
        else:
            with ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="s3connector-part"
            ) as pool:
                results = list(
                    pool.map(lambda n: self._upload_part(body, session, n), part_numbers)
                )

        for part_number, etag in results:
            session = session.with_part(part_number, etag)

        self._connector.finalize_multipart(
            bucket, key, session.upload_id, session.ordered_etags()
        )
        logger.info(
            "multipart_finalized bucket=%s key=%s upload_id=%s",
            bucket,
            key,
            session.upload_id,
        )
        return session

    def _upload_part(
        self, body: Body, session: MultipartSession, part_number: int
    ) -> tuple[int, str]:
        etag = self._connector.upload_multipart(
            body,
            session.bucket,
            session.key,
            session.upload_id,
            part_number,
        )
        if etag is None:
            raise PutObjectError(
                f"Part {part_number} lies outside a {session.total_size_bytes}-byte body"
            )
        logger.debug(
            "multipart_part_uploaded upload_id=%s part_number=%s",
            session.upload_id,
            part_number,
        )
        return part_number, etag
