"""Request signing schemes.

Signing is delegated to botocore; this module only selects the scheme
and resolves the credentials it signs with.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import boto3
from botocore.auth import HmacV1Auth, HmacV1QueryAuth, S3SigV4Auth
from botocore.credentials import Credentials

from s3connector.infra.storage.errors import StorageError

if TYPE_CHECKING:
    from botocore.awsrequest import AWSRequest

    from s3connector.common.config import Settings
    from s3connector.infra.storage.client import Signer


def resolve_credentials(settings: "Settings") -> Any:
    """Return credentials from settings, or from the boto3 default chain.

    Raises:
        StorageError: If no credentials can be found.
    """
    if settings.S3_ACCESS_KEY_ID and settings.S3_SECRET_ACCESS_KEY:
        return Credentials(
            access_key=settings.S3_ACCESS_KEY_ID,
            secret_key=settings.S3_SECRET_ACCESS_KEY,
            token=settings.S3_SESSION_TOKEN,
        )

    session = boto3.Session(region_name=settings.S3_REGION)
    credentials = session.get_credentials()
    if credentials is None:
        raise StorageError(
            "No S3 credentials configured. Set S3_ACCESS_KEY_ID and "
            "S3_SECRET_ACCESS_KEY or provide an AWS credential source."
        )
    return credentials.get_frozen_credentials()


class SignatureV2:
    """AWS signature version 2 (HMAC-SHA1)."""

    name = "v2"

    def __init__(self, credentials: Any) -> None:
        self._auth = HmacV1Auth(credentials)

    def sign(self, request: "AWSRequest") -> None:
        self._auth.add_auth(request)


class QueryStringAuth(HmacV1QueryAuth):
    """Signature version 2 query-string auth expiring at a fixed epoch second.

    botocore derives ``Expires`` from the wall clock at signing time; this
    variant takes the absolute value so callers control the clock. A session
    token, when present, is carried as ``x-amz-security-token``.
    """

    def __init__(self, credentials: Any, expires_at: int) -> None:
        super().__init__(credentials)
        self._expires_at = int(expires_at)

    def _get_date(self) -> str:
        return str(self._expires_at)


class SignatureV4:
    """AWS signature version 4 for the ``s3`` service."""

    name = "v4"

    def __init__(self, credentials: Any, region: str) -> None:
        self._auth = S3SigV4Auth(credentials, "s3", region)

    def sign(self, request: "AWSRequest") -> None:
        self._auth.add_auth(request)


def get_signer(method: str, credentials: Any, *, region: str) -> "Signer":
    """Select a signing scheme by name (``v2`` or ``v4``)."""
    normalized = (method or "").strip().lower()
    if normalized == SignatureV2.name:
        return SignatureV2(credentials)
    if normalized == SignatureV4.name:
        return SignatureV4(credentials, region)
    raise StorageError(f"Unsupported signature method: {method}")
