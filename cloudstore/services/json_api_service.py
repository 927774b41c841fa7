"""
Storage JSON API client.

Implements the StorageService protocol over a synchronous httpx client.
Authentication is limited to an optional pre-issued bearer token; callers
needing anything else pass an already authenticated ``httpx.Client``.
"""

import functools
import logging
import time
from typing import Any
from typing import Callable
from typing import Dict
from typing import Optional
from typing import TypeVar
from urllib.parse import quote

import httpx

from cloudstore.config import Config
from cloudstore.config import get_config
from cloudstore.errors import AuthenticationError
from cloudstore.errors import NotFoundError
from cloudstore.errors import TransportError
from cloudstore.models.object import ObjectResource
from cloudstore.models.object import RewriteResponse


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


def _error_for_status(e: httpx.HTTPStatusError) -> Exception:
    status_code = e.response.status_code
    message = f"{e.request.method} {e.request.url} failed with {status_code}: {e.response.text}"
    if status_code == 404:
        return NotFoundError(message)
    if status_code in (401, 403):
        return AuthenticationError(message, status_code=status_code)
    return TransportError(message, status_code=status_code)


def retry_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Retry a service call on network errors and retryable HTTP statuses.

    Retry count and backoff come from the service's config. Errors that are
    not worth retrying (401, 403, 404, other 4xx) are mapped straight to the
    cloudstore error types.
    """

    @functools.wraps(func)
    def wrapper(self: "JsonApiStorageService", *args: Any, **kwargs: Any) -> T:
        retries = self.config.http_max_retries
        backoff = self.config.http_retry_backoff_seconds

        for attempt in range(retries + 1):
            try:
                return func(self, *args, **kwargs)
            except httpx.HTTPStatusError as e:
                if e.response.status_code not in RETRYABLE_STATUS_CODES or attempt == retries:
                    raise _error_for_status(e) from e
                logger.warning(
                    f"Request failed (attempt {attempt + 1}/{retries + 1}): {e} | Function: {func.__name__}"
                )
            except httpx.TransportError as e:
                if attempt == retries:
                    raise TransportError(f"{func.__name__} failed after {retries + 1} attempts: {e}") from e
                logger.warning(
                    f"Network error (attempt {attempt + 1}/{retries + 1}): {e!r} | Function: {func.__name__}"
                )
            time.sleep(backoff)

        raise TransportError(f"{func.__name__}: all retries failed")

    return wrapper


def _object_path(bucket: str, name: str) -> str:
    return f"/b/{quote(bucket, safe='')}/o/{quote(name, safe='')}"


class JsonApiStorageService:
    """
    HTTP client for the storage JSON API.
    """

    def __init__(self, config: Optional[Config] = None, client: Optional[httpx.Client] = None) -> None:
        self.config = config or get_config()
        self._client = client or httpx.Client(
            base_url=self.config.storage_api_url,
            timeout=self.config.httpx_timeout,
            follow_redirects=True,
        )

    def __enter__(self) -> "JsonApiStorageService":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def _get_headers(self, options: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        if options and options.get("header"):
            headers.update(options["header"])
        return headers

    @retry_on_error
    def delete_object(self, bucket: str, name: str) -> None:
        """
        Maps to: DELETE /storage/v1/b/{bucket}/o/{object}
        """
        response = self._client.delete(
            f"/storage/v1{_object_path(bucket, name)}",
            headers=self._get_headers(),
        )
        response.raise_for_status()
        logger.debug(f"Deleted {bucket}/{name}")

    def get_object(
        self,
        bucket: str,
        name: str,
        generation: Optional[int] = None,
        download_dest: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Fetch object metadata, or its content when ``download_dest`` is given.

        Metadata maps to: GET /storage/v1/b/{bucket}/o/{object}
        Content maps to: GET /download/storage/v1/b/{bucket}/o/{object}?alt=media

        Returns:
            ObjectResource for metadata requests, ``download_dest`` otherwise
        """
        if download_dest is None:
            return self._get_metadata(bucket, name, generation, options)

        # A retried download rewinds a seekable stream to where it started
        start = None
        if hasattr(download_dest, "write") and getattr(download_dest, "seekable", lambda: False)():
            start = download_dest.tell()
        self._download(bucket, name, generation, download_dest, options, start)
        return download_dest

    @retry_on_error
    def _get_metadata(
        self,
        bucket: str,
        name: str,
        generation: Optional[int],
        options: Optional[Dict[str, Any]],
    ) -> ObjectResource:
        params = {"generation": str(generation)} if generation is not None else {}
        response = self._client.get(
            f"/storage/v1{_object_path(bucket, name)}",
            params=params,
            headers=self._get_headers(options),
        )
        response.raise_for_status()
        return ObjectResource.model_validate(response.json())

    @retry_on_error
    def _download(
        self,
        bucket: str,
        name: str,
        generation: Optional[int],
        download_dest: Any,
        options: Optional[Dict[str, Any]],
        start: Optional[int] = None,
    ) -> None:
        if start is not None:
            download_dest.seek(start)
            download_dest.truncate()

        params = {"alt": "media"}
        if generation is not None:
            params["generation"] = str(generation)

        with self._client.stream(
            "GET",
            f"/download/storage/v1{_object_path(bucket, name)}",
            params=params,
            headers=self._get_headers(options),
        ) as response:
            if response.is_error:
                response.read()
            response.raise_for_status()

            if hasattr(download_dest, "write"):
                self._write_chunks(response, download_dest)
            else:
                with open(download_dest, "wb") as fp:
                    self._write_chunks(response, fp)

    def _write_chunks(self, response: httpx.Response, fp: Any) -> None:
        written = 0
        for chunk in response.iter_bytes(chunk_size=self.config.download_chunk_size_bytes):
            fp.write(chunk)
            written += len(chunk)
        logger.debug(f"Downloaded {written} bytes")

    @retry_on_error
    def rewrite_object(
        self,
        source_bucket: str,
        source_name: str,
        destination_bucket: str,
        destination_name: str,
        resource: Optional[Dict[str, Any]],
        destination_predefined_acl: Optional[str] = None,
        source_generation: Optional[int] = None,
        rewrite_token: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> RewriteResponse:
        """
        Perform one step of a rewrite.

        Maps to: POST /storage/v1/b/{sb}/o/{so}/rewriteTo/b/{db}/o/{do}
        """
        params: Dict[str, str] = {}
        if destination_predefined_acl is not None:
            params["destinationPredefinedAcl"] = destination_predefined_acl
        if source_generation is not None:
            params["sourceGeneration"] = str(source_generation)
        if rewrite_token is not None:
            params["rewriteToken"] = rewrite_token

        response = self._client.post(
            f"/storage/v1{_object_path(source_bucket, source_name)}"
            f"/rewriteTo{_object_path(destination_bucket, destination_name)}",
            params=params,
            json=resource or {},
            headers=self._get_headers(options),
        )
        response.raise_for_status()
        return RewriteResponse.model_validate(response.json())
