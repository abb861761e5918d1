"""Async REST client for the remote search service."""

import json
from typing import Any, Dict, Optional, Type

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ._utils import logger
from .config import RequestConfig, SearchServiceConfig
from .errors import (
    IndexCreateError,
    IndexDeleteError,
    MirrorError,
    QueryError,
    SchemaFetchError,
    TransientServiceError,
    UploadError,
)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}


class SearchServiceClient:
    """Thin wrapper over httpx.AsyncClient speaking the index REST contract.

    Every request carries the api-key header and the api-version query
    parameter. Throttling, 5xx responses, timeouts and transport errors are
    retried with exponential backoff before being surfaced as the error type
    of the calling operation.
    """

    def __init__(
        self,
        service: SearchServiceConfig,
        request_config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            service: Service endpoint, key and index name
            request_config: Timeout and retry policy
            transport: Optional httpx transport (used by tests)
        """
        self.service = service
        self.request_config = request_config or RequestConfig()
        self._client = httpx.AsyncClient(
            base_url=service.url,
            headers={"api-key": service.api_key},
            params={"api-version": service.api_version},
            timeout=self.request_config.timeout,
            transport=transport,
        )
        # Cache retry decorator to avoid recreation overhead
        self._retry_decorator = self._get_retry_decorator()

    async def __aenter__(self) -> "SearchServiceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _get_retry_decorator(self):
        """Get retry decorator for transient service failures."""
        return retry(
            stop=stop_after_attempt(self.request_config.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.request_config.retry_min_wait,
                max=self.request_config.retry_max_wait,
            ),
            retry=retry_if_exception_type(TransientServiceError),
            reraise=True,
        )

    async def _send_once(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientServiceError(
                f"{method} {path} timed out after {self.request_config.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise TransientServiceError(f"{method} {path} failed: {e}") from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            logger.warning(f"{method} {path} returned {response.status_code}, will retry")
            raise TransientServiceError(
                f"{method} {path} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response

    async def _send(
        self,
        method: str,
        path: str,
        error_cls: Type[MirrorError],
        retryable: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, mapping exhausted retries onto error_cls."""
        send = self._retry_decorator(self._send_once) if retryable else self._send_once
        try:
            return await send(method, path, **kwargs)
        except TransientServiceError as e:
            raise error_cls(str(e), status_code=e.status_code) from e

    @staticmethod
    def _check(response: httpx.Response, error_cls: Type[MirrorError], action: str) -> None:
        if not response.is_success:
            raise error_cls(
                f"{action} failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

    async def get_index(self, index_name: str) -> str:
        """Fetch an index definition, returning the response body verbatim."""
        response = await self._send("GET", f"/indexes/{index_name}", SchemaFetchError)
        self._check(response, SchemaFetchError, f"Fetching schema of {index_name}")
        return response.text

    async def create_index(self, raw_schema: str) -> None:
        """Create an index from a raw JSON definition.

        Not retried: a create that timed out may still have succeeded.
        """
        response = await self._send(
            "POST",
            "/indexes",
            IndexCreateError,
            retryable=False,
            content=raw_schema.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        self._check(response, IndexCreateError, "Creating index")

    async def delete_index(self, index_name: str) -> bool:
        """Delete an index.

        Returns:
            True if the index was deleted, False if it did not exist
        """
        response = await self._send("DELETE", f"/indexes/{index_name}", IndexDeleteError)
        if response.status_code == 404:
            return False
        self._check(response, IndexDeleteError, f"Deleting index {index_name}")
        return True

    async def search(self, index_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Run one search request and return the decoded response."""
        response = await self._send(
            "POST", f"/indexes/{index_name}/docs/search", QueryError, json=body
        )
        self._check(response, QueryError, f"Searching {index_name}")
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise QueryError(f"Search response from {index_name} is not JSON: {e}") from e

    async def count_documents(self, index_name: str) -> int:
        """Total number of documents in an index."""
        result = await self.search(
            index_name, {"search": "*", "searchMode": "all", "count": True, "top": 0}
        )
        return int(result.get("@odata.count", 0))

    async def upload_documents(self, index_name: str, payload: bytes) -> int:
        """Upload a {"value": [...]} batch as-is.

        Returns:
            Number of documents accepted by the service
        """
        response = await self._send(
            "POST",
            f"/indexes/{index_name}/docs/index",
            UploadError,
            content=payload,
            headers={"Content-Type": "application/json"},
        )
        self._check(response, UploadError, f"Uploading to {index_name}")

        try:
            results = response.json().get("value", [])
        except json.JSONDecodeError:
            results = []

        failed = [r for r in results if not r.get("status", False)]
        if response.status_code == 207 or failed:
            sample = "; ".join(
                f"{r.get('key')}: {r.get('errorMessage')}" for r in failed[:3]
            )
            raise UploadError(
                f"{len(failed)} of {len(results)} documents rejected by {index_name} ({sample})",
                status_code=response.status_code,
            )
        return len(results)
