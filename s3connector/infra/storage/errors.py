"""Storage error kinds and response classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Collection

from s3connector.infra.storage.client import S3Response

logger = logging.getLogger("s3connector.errors")


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    """Error code and message reported by the server or the transport."""

    code: str
    message: str


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message if code is None else f"[{code}] {message}")
        self.code = code
        self.message = message
        self.status_code = status_code


class InvalidInputError(StorageError, ValueError):
    """Raised when a local precondition fails before any request is sent."""


class PutObjectError(StorageError):
    """Raised when an upload (single or multipart) is rejected."""


class GetObjectError(StorageError):
    """Raised when an object cannot be downloaded."""


class DeleteObjectError(StorageError):
    """Raised when an object cannot be deleted."""


class ListObjectsError(StorageError):
    """Raised when the contents of a bucket cannot be listed."""


class ListBucketsError(StorageError):
    """Raised when the bucket list cannot be retrieved."""


def classify(response: S3Response, expected: Collection[int]) -> ErrorDetail | None:
    """Return the error carried by ``response``, if any.

    A response without a reported error but with a status outside
    ``expected`` gets a synthesized error naming the status.
    """
    if response.error is None and response.status_code not in expected:
        return ErrorDetail(
            code=str(response.status_code),
            message=f"Unexpected HTTP status {response.status_code}",
        )
    return response.error


def raise_for_response(
    response: S3Response,
    *,
    expected: Collection[int],
    error_cls: type[StorageError],
    benign_codes: Collection[str] = (),
) -> None:
    """Raise ``error_cls`` for an erroneous response.

    Errors whose code is listed in ``benign_codes`` are logged and ignored.
    """
    error = classify(response, expected)
    if error is None:
        return
    if error.code in benign_codes:
        logger.info(
            "storage_error_ignored code=%s status=%s message=%s",
            error.code,
            response.status_code,
            error.message,
        )
        return
    raise error_cls(
        error.message,
        code=error.code,
        status_code=response.status_code or None,
    )
