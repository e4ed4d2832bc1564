"""HTTP request executor for S3-compatible endpoints.

Dependencies:
    - requests
    - botocore
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping
from urllib.parse import quote
from xml.etree import ElementTree as ET

import requests
from botocore.awsrequest import AWSRequest

from s3connector.infra.storage.client import S3Request, S3Response
from s3connector.infra.storage.errors import ErrorDetail

if TYPE_CHECKING:
    from s3connector.common.config import Settings
    from s3connector.infra.storage.client import Signer

logger = logging.getLogger("s3connector.request")

_DOWNLOAD_CHUNK_BYTES = 64 * 1024


def encode_key(key: str) -> str:
    return quote(key, safe="/~")


def build_query(params: Mapping[str, str]) -> str:
    """Encode query parameters; empty values become bare sub-resources (``?uploads``)."""
    items = []
    for name in sorted(params):
        value = params[name]
        encoded_name = quote(str(name), safe="-_.~")
        if value is None or value == "":
            items.append(encoded_name)
        else:
            items.append(f"{encoded_name}={quote(str(value), safe='-_.~')}")
    return "&".join(items)


def strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def parse_xml(content: bytes, content_type: str | None) -> ET.Element | None:
    stripped = content.lstrip()
    if not stripped.startswith(b"<"):
        return None
    declared_xml = bool(content_type) and "xml" in content_type.lower()
    if not declared_xml and not stripped.startswith(b"<?xml"):
        return None
    try:
        return strip_namespaces(ET.fromstring(content))
    except ET.ParseError:
        logger.debug("response_xml_unparseable content_type=%s", content_type)
        return None


def error_from_document(root: ET.Element | None) -> ErrorDetail | None:
    if root is None or root.tag != "Error":
        return None
    return ErrorDetail(
        code=(root.findtext("Code") or "UnknownError").strip(),
        message=(root.findtext("Message") or "").strip(),
    )


class HttpRequestExecutor:
    """Sign requests and send them with ``requests``.

    Transport failures are returned as an ``S3Response`` whose error code
    is the exception class name and whose status code is 0.
    """

    def __init__(
        self,
        *,
        settings: "Settings",
        signer: "Signer",
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._signer = signer
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    def build_url(self, request: S3Request) -> tuple[str, str]:
        """Return the request URL and the resource path used for v2 signing."""
        settings = self._settings
        encoded_key = encode_key(request.key.lstrip("/")) if request.key else ""
        host = settings.S3_ENDPOINT
        if not request.bucket:
            path = "/"
            auth_path = "/"
        elif settings.S3_ADDRESSING_STYLE == "virtual":
            host = f"{request.bucket}.{settings.S3_ENDPOINT}"
            path = f"/{encoded_key}"
            auth_path = f"/{request.bucket}/{encoded_key}"
        else:
            path = f"/{request.bucket}/{encoded_key}"
            auth_path = path

        url = f"{settings.scheme}://{host}{path}"
        query = build_query(request.params)
        if query:
            url = f"{url}?{query}"
        return url, auth_path

    def execute(self, request: S3Request) -> S3Response:
        url, auth_path = self.build_url(request)
        headers: dict[str, str] = {}
        headers.update({k: str(v) for k, v in request.headers.items()})
        headers.update({k: str(v) for k, v in request.amz_headers.items()})
        payload = request.body.payload() if request.body is not None else b""

        aws_request = AWSRequest(
            method=request.verb,
            url=url,
            headers=headers,
            data=payload,
            auth_path=auth_path,
        )
        self._signer.sign(aws_request)

        # Streamed bodies can still fail after the status line arrives.
        try:
            response = self._session.request(
                request.verb,
                aws_request.url,
                headers=dict(aws_request.headers.items()),
                data=payload or None,
                stream=request.sink is not None,
                timeout=self._settings.S3_REQUEST_TIMEOUT,
            )
            with response:
                status = response.status_code
                response_headers = {k.lower(): v for k, v in response.headers.items()}
                if request.sink is not None and 200 <= status < 300:
                    for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK_BYTES):
                        request.sink.write(chunk)
                    content = b""
                else:
                    content = response.content
        except requests.RequestException as exc:
            logger.warning(
                "request_transport_error verb=%s bucket=%s key=%s error=%s",
                request.verb,
                request.bucket,
                request.key,
                exc,
            )
            return S3Response(
                status_code=0,
                error=ErrorDetail(code=type(exc).__name__, message=str(exc)),
            )

        parsed = parse_xml(content, response_headers.get("content-type"))
        error = None
        # Object downloads may legitimately be XML documents named <Error>.
        if status >= 300 or request.verb != "GET":
            error = error_from_document(parsed)

        logger.debug(
            "request_executed verb=%s bucket=%s key=%s status=%s",
            request.verb,
            request.bucket,
            request.key,
            status,
        )
        return S3Response(
            status_code=status,
            headers=response_headers,
            content=content,
            parsed=parsed,
            error=error,
        )
