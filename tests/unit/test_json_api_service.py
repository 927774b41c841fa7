import io
import json
from typing import Callable
from unittest.mock import patch

import httpx
import pytest

from cloudstore.config import Config
from cloudstore.errors import AuthenticationError
from cloudstore.errors import NotFoundError
from cloudstore.errors import TransportError
from cloudstore.models.object import ObjectResource
from cloudstore.models.object import RewriteResponse
from cloudstore.services.json_api_service import JsonApiStorageService
from tests.unit.mocks.mock_storage_service import CONTENT
from tests.unit.mocks.mock_storage_service import done_rewrite
from tests.unit.mocks.mock_storage_service import random_file_hash
from tests.unit.mocks.mock_storage_service import undone_rewrite


@pytest.fixture
def api_config() -> Config:
    return Config(
        storage_api_url="http://storage.test",
        access_token="secret-token",
        http_max_retries=2,
        http_retry_backoff_seconds=0.5,
        download_chunk_size_bytes=2,
    )


@pytest.fixture(autouse=True)
def sleep():
    with patch("cloudstore.services.json_api_service.time.sleep") as mock_sleep:
        yield mock_sleep


def _service(config: Config, handler: Callable[[httpx.Request], httpx.Response]) -> JsonApiStorageService:
    client = httpx.Client(base_url=config.storage_api_url, transport=httpx.MockTransport(handler))
    return JsonApiStorageService(config, client=client)


def _path(request: httpx.Request) -> str:
    return request.url.raw_path.decode("ascii").split("?")[0]


def test_get_metadata(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=random_file_hash("bucket", "file.ext"))

    resource = _service(api_config, handler).get_object("bucket", "file.ext")

    assert isinstance(resource, ObjectResource)
    assert resource.name == "file.ext"
    assert requests[0].method == "GET"
    assert _path(requests[0]) == "/storage/v1/b/bucket/o/file.ext"
    assert requests[0].headers["Authorization"] == "Bearer secret-token"
    assert "generation" not in requests[0].url.params


def test_get_metadata_with_generation(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=random_file_hash("bucket", "file.ext", generation=9))

    _service(api_config, handler).get_object("bucket", "file.ext", generation=9)

    assert requests[0].url.params["generation"] == "9"


def test_object_names_are_percent_encoded(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(204)

    _service(api_config, handler).delete_object("bucket", "dir/file name.ext")

    assert requests[0].method == "DELETE"
    assert _path(requests[0]) == "/storage/v1/b/bucket/o/dir%2Ffile%20name.ext"


def test_no_authorization_without_token(api_config):
    api_config.access_token = ""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(204)

    _service(api_config, handler).delete_object("bucket", "file.ext")

    assert "Authorization" not in requests[0].headers


def test_option_headers_are_sent(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=random_file_hash("bucket", "file.ext"))

    options = {"header": {"x-goog-encryption-algorithm": "AES256"}}
    _service(api_config, handler).get_object("bucket", "file.ext", options=options)

    assert requests[0].headers["x-goog-encryption-algorithm"] == "AES256"


def test_not_found(api_config, sleep):
    def handler(request):
        return httpx.Response(404, json={"error": {"message": "No such object"}})

    with pytest.raises(NotFoundError) as exc_info:
        _service(api_config, handler).get_object("bucket", "missing.ext")

    assert exc_info.value.status_code == 404
    sleep.assert_not_called()


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_errors_are_not_retried(api_config, sleep, status_code):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(status_code)

    with pytest.raises(AuthenticationError) as exc_info:
        _service(api_config, handler).delete_object("bucket", "file.ext")

    assert exc_info.value.status_code == status_code
    assert len(calls) == 1
    sleep.assert_not_called()


def test_other_client_errors_are_transport_errors(api_config):
    def handler(request):
        return httpx.Response(400)

    with pytest.raises(TransportError) as exc_info:
        _service(api_config, handler).delete_object("bucket", "file.ext")

    assert exc_info.value.status_code == 400
    assert not isinstance(exc_info.value, AuthenticationError)


@pytest.mark.parametrize("status_code", [429, 503])
def test_retryable_status_is_retried(api_config, sleep, status_code):
    responses = [httpx.Response(status_code), httpx.Response(200, json=random_file_hash("bucket", "file.ext"))]

    def handler(request):
        return responses.pop(0)

    resource = _service(api_config, handler).get_object("bucket", "file.ext")

    assert resource.bucket == "bucket"
    sleep.assert_called_once_with(0.5)


def test_retries_are_bounded(api_config, sleep):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(TransportError) as exc_info:
        _service(api_config, handler).delete_object("bucket", "file.ext")

    assert exc_info.value.status_code == 500
    assert len(calls) == 3
    assert sleep.call_count == 2


def test_network_errors_become_transport_errors(api_config):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError) as exc_info:
        _service(api_config, handler).delete_object("bucket", "file.ext")

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


def test_download_to_stream(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, content=CONTENT)

    stream = io.BytesIO()
    result = _service(api_config, handler).get_object("bucket", "file.ext", generation=5, download_dest=stream)

    assert result is stream
    assert stream.getvalue() == CONTENT
    assert _path(requests[0]) == "/download/storage/v1/b/bucket/o/file.ext"
    assert requests[0].url.params["alt"] == "media"
    assert requests[0].url.params["generation"] == "5"


def test_download_to_path(api_config, tmp_path):
    def handler(request):
        return httpx.Response(200, content=CONTENT)

    destination = tmp_path / "downloaded.ext"
    result = _service(api_config, handler).get_object("bucket", "file.ext", download_dest=str(destination))

    assert result == str(destination)
    assert destination.read_bytes() == CONTENT


def test_download_error_is_mapped(api_config):
    def handler(request):
        return httpx.Response(404, text="No such object")

    with pytest.raises(NotFoundError):
        _service(api_config, handler).get_object("bucket", "file.ext", download_dest=io.BytesIO())


def test_interrupted_download_restarts_at_stream_offset(api_config, sleep):
    attempts = []

    def broken_body():
        yield CONTENT[:2]
        raise httpx.ReadError("connection reset")

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(200, content=broken_body())
        return httpx.Response(200, content=CONTENT)

    stream = io.BytesIO()
    stream.write(b"head:")

    _service(api_config, handler).get_object("bucket", "file.ext", download_dest=stream)

    assert len(attempts) == 2
    assert stream.getvalue() == b"head:" + CONTENT
    sleep.assert_called_once()


def test_rewrite_request(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=undone_rewrite("next-token"))

    response = _service(api_config, handler).rewrite_object(
        "bucket",
        "file.ext",
        "new-bucket",
        "new file.ext",
        {"contentType": "application/json"},
        destination_predefined_acl="publicRead",
        source_generation=123,
        rewrite_token="token",
        options={"header": {"x-goog-copy-source-encryption-algorithm": "AES256"}},
    )

    request = requests[0]
    assert isinstance(response, RewriteResponse)
    assert response.rewrite_token == "next-token"
    assert request.method == "POST"
    assert _path(request) == "/storage/v1/b/bucket/o/file.ext/rewriteTo/b/new-bucket/o/new%20file.ext"
    assert dict(request.url.params) == {
        "destinationPredefinedAcl": "publicRead",
        "sourceGeneration": "123",
        "rewriteToken": "token",
    }
    assert json.loads(request.content) == {"contentType": "application/json"}
    assert request.headers["x-goog-copy-source-encryption-algorithm"] == "AES256"


def test_rewrite_without_options(api_config):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=done_rewrite(random_file_hash("new-bucket", "new-file.ext")))

    response = _service(api_config, handler).rewrite_object("bucket", "file.ext", "new-bucket", "new-file.ext", None)

    assert response.done is True
    assert response.resource.bucket == "new-bucket"
    assert len(requests[0].url.params) == 0
    assert json.loads(requests[0].content) == {}


def test_context_manager_closes_client(api_config):
    service = _service(api_config, lambda request: httpx.Response(204))

    with service:
        pass

    assert service._client.is_closed
