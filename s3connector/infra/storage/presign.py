"""Query-string authenticated (pre-signed) object URLs."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote, unquote

from botocore.awsrequest import AWSRequest

from s3connector.infra.storage.signature import QueryStringAuth

DEFAULT_URL_LIFETIME_SECONDS = 10


def normalize_key(key: str) -> str:
    """Percent-decode then re-encode ``key``, keeping ``/`` literal."""
    return quote(unquote(key.lstrip("/")), safe="/~")


def build_authenticated_url(
    *,
    credentials: Any,
    bucket: str,
    key: str,
    expires: int,
    endpoint: str,
    host_bucket: bool = False,
    https: bool = False,
) -> str:
    """Build a GET URL valid until the epoch second ``expires``.

    Always signed with signature version 2 query parameters
    (``AWSAccessKeyId``, ``Expires``, ``Signature`` and, for temporary
    credentials, ``x-amz-security-token``). The signed resource is
    ``/{bucket}/{key}`` whichever host form is used. With ``host_bucket``
    the bucket name itself is used as the host name.
    """
    encoded_key = normalize_key(key)
    scheme = "https" if https else "http"
    domain = bucket if host_bucket else f"{bucket}.{endpoint}"

    request = AWSRequest(
        method="GET",
        url=f"{scheme}://{domain}/{encoded_key}",
        headers={},
        auth_path=f"/{bucket}/{encoded_key}",
    )
    QueryStringAuth(credentials, expires).add_auth(request)
    return request.url
