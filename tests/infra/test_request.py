"""Tests for the HTTP request executor."""

import io
from unittest.mock import MagicMock, PropertyMock

import pytest
import requests

from s3connector.common.config import Settings
from s3connector.infra.storage.body import Body
from s3connector.infra.storage.client import S3Request
from s3connector.infra.storage.connector import S3Connector
from s3connector.infra.storage.errors import GetObjectError
from s3connector.infra.storage.request import (
    HttpRequestExecutor,
    build_query,
    error_from_document,
    parse_xml,
)

ERROR_XML = (
    b'<?xml version="1.0" encoding="UTF-8"?>'
    b"<Error><Code>NoSuchKey</Code><Message>The specified key does not exist.</Message></Error>"
)


def _http_response(status_code=200, content=b"", headers=None, chunks=None):
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.headers = headers or {}
    response.iter_content.return_value = chunks or []
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


class TestHelpers:
    """Test URL and XML helpers."""

    def test_build_query_sorts_and_keeps_bare_subresources(self):
        assert build_query({"uploads": ""}) == "uploads"
        assert build_query({"uploadId": "a/b+c", "partNumber": "2"}) == (
            "partNumber=2&uploadId=a%2Fb%2Bc"
        )

    def test_parse_xml_strips_namespaces(self):
        root = parse_xml(
            b'<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">'
            b"<Name>b</Name></ListBucketResult>",
            "application/xml",
        )

        assert root.tag == "ListBucketResult"
        assert root.findtext("Name") == "b"

    def test_parse_xml_ignores_non_xml(self):
        assert parse_xml(b"plain text", "text/plain") is None
        assert parse_xml(b"<html>", "text/html") is None
        assert parse_xml(b"", "application/xml") is None
        assert parse_xml(b"<broken", "application/xml") is None

    def test_error_from_document(self):
        error = error_from_document(parse_xml(ERROR_XML, None))

        assert error.code == "NoSuchKey"
        assert error.message == "The specified key does not exist."


class TestHttpRequestExecutor:
    """Test HttpRequestExecutor with a mocked requests session."""

    @pytest.fixture
    def session(self):
        return MagicMock(spec=requests.Session)

    @pytest.fixture
    def signer(self):
        signer = MagicMock()
        signer.sign.side_effect = lambda request: request.headers.__setitem__(
            "Authorization", "signed"
        )
        return signer

    @pytest.fixture
    def executor(self, settings, signer, session):
        return HttpRequestExecutor(settings=settings, signer=signer, session=session)

    def test_path_style_url(self, executor):
        url, auth_path = executor.build_url(
            S3Request(verb="PUT", bucket="bucket", key="dir/a b.txt", params={"uploads": ""})
        )

        assert url == "https://s3.example.test/bucket/dir/a%20b.txt?uploads"
        assert auth_path == "/bucket/dir/a%20b.txt"

    def test_virtual_host_url(self, signer, session):
        settings = Settings(S3_ENDPOINT="s3.example.test", S3_ADDRESSING_STYLE="virtual", S3_USE_SSL=False)
        executor = HttpRequestExecutor(settings=settings, signer=signer, session=session)

        url, auth_path = executor.build_url(S3Request(verb="GET", bucket="bucket", key="k"))

        assert url == "http://bucket.s3.example.test/k"
        assert auth_path == "/bucket/k"

    def test_service_url(self, executor):
        url, auth_path = executor.build_url(S3Request(verb="GET"))

        assert url == "https://s3.example.test/"
        assert auth_path == "/"

    def test_execute_signs_and_sends(self, executor, session, signer):
        session.request.return_value = _http_response(
            200, headers={"ETag": '"abc"', "Content-Type": "text/plain"}
        )

        response = executor.execute(
            S3Request(
                verb="PUT",
                bucket="bucket",
                key="k",
                headers={"Content-Length": "3"},
                amz_headers={"x-amz-acl": "private"},
                body=Body.from_data(b"abc"),
            )
        )

        assert response.status_code == 200
        assert response.etag == "abc"
        assert response.error is None
        signer.sign.assert_called_once()
        args, kwargs = session.request.call_args
        assert args == ("PUT", "https://s3.example.test/bucket/k")
        assert kwargs["headers"]["Authorization"] == "signed"
        assert kwargs["headers"]["x-amz-acl"] == "private"
        assert kwargs["data"] == b"abc"
        assert kwargs["stream"] is False
        assert kwargs["timeout"] == 30

    def test_error_document_is_reported(self, executor, session):
        session.request.return_value = _http_response(
            404, content=ERROR_XML, headers={"Content-Type": "application/xml"}
        )

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k"))

        assert response.status_code == 404
        assert response.error.code == "NoSuchKey"

    def test_error_document_with_200_on_post(self, executor, session):
        session.request.return_value = _http_response(
            200,
            content=b"<Error><Code>RequestTimeout</Code><Message>slow</Message></Error>",
            headers={"Content-Type": "application/xml"},
        )

        response = executor.execute(S3Request(verb="POST", bucket="bucket", key="k"))

        assert response.error.code == "RequestTimeout"

    def test_downloaded_xml_object_is_not_an_error(self, executor, session):
        session.request.return_value = _http_response(
            200, content=ERROR_XML, headers={"Content-Type": "application/xml"}
        )

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="error.xml"))

        assert response.error is None
        assert response.content == ERROR_XML

    def test_streams_into_sink(self, executor, session):
        sink = io.BytesIO()
        session.request.return_value = _http_response(200, chunks=[b"ab", b"cd"])

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k", sink=sink))

        assert sink.getvalue() == b"abcd"
        assert response.content == b""
        assert session.request.call_args[1]["stream"] is True

    def test_sink_untouched_on_error(self, executor, session):
        sink = io.BytesIO()
        session.request.return_value = _http_response(
            404, content=ERROR_XML, headers={"Content-Type": "application/xml"}
        )

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k", sink=sink))

        assert sink.getvalue() == b""
        assert response.error.code == "NoSuchKey"

    def test_transport_exception_becomes_error(self, executor, session):
        session.request.side_effect = requests.ConnectionError("refused")

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k"))

        assert response.status_code == 0
        assert response.error.code == "ConnectionError"
        assert "refused" in response.error.message

    def test_reset_while_streaming_becomes_error(self, executor, session):
        sink = io.BytesIO()
        http_response = _http_response(200)
        http_response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError(
            "connection reset"
        )
        session.request.return_value = http_response

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k", sink=sink))

        assert response.status_code == 0
        assert response.error.code == "ChunkedEncodingError"
        assert "connection reset" in response.error.message
        http_response.__exit__.assert_called_once()

    def test_reset_while_reading_body_becomes_error(self, executor, session):
        http_response = _http_response(500)
        type(http_response).content = PropertyMock(
            side_effect=requests.exceptions.ConnectionError("connection reset")
        )
        session.request.return_value = http_response

        response = executor.execute(S3Request(verb="GET", bucket="bucket", key="k"))

        assert response.status_code == 0
        assert response.error.code == "ConnectionError"

    def test_reset_while_streaming_raises_get_object_error(
        self, settings, credentials, signer, session
    ):
        http_response = _http_response(200)
        http_response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError(
            "connection reset"
        )
        session.request.return_value = http_response
        connector = S3Connector(
            settings=settings,
            executor=HttpRequestExecutor(settings=settings, signer=signer, session=session),
            credentials=credentials,
        )

        with pytest.raises(GetObjectError, match="ChunkedEncodingError"):
            connector.get_object("bucket", "k", sink=io.BytesIO())

    def test_close(self, executor, session):
        executor.close()

        session.close.assert_called_once()
