"""
Async REST client base shared by the provider and ticketing platform clients.

- one lazily created ``httpx.AsyncClient`` per instance, closed with ``aclose``
- transport errors (timeouts, connection failures) optionally retried with
  tenacity; HTTP error answers are never retried
- non-2xx answers raise ``APIError`` carrying the response body
- a custom ``transport`` can be injected (``httpx.MockTransport`` in tests)
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class HTTPMethod(Enum):
    GET = "GET"
    POST = "POST"


@dataclass
class APIResponse:
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)

    def text(self) -> str:
        return self.raw_content.decode("utf-8", errors="replace")


class APIError(Exception):
    """Upstream answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.request_id = request_id
        super().__init__(self.message)

    @property
    def body(self) -> Optional[str]:
        return self.response.text() if self.response is not None else None

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class TransportError(APIError):
    """No HTTP answer at all: timeout or network failure."""


class BaseAPIClient:
    user_agent = "vivenu-payment-gateway/1.0"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 0,
        retry_delay: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: scheme and host, trailing slash optional
            timeout: per-request timeout in seconds
            max_retries: extra attempts after a transport error (0 disables)
            retry_delay: base of the exponential backoff in seconds
            headers: default headers merged into every request
            auth_token: sent as ``Authorization: Bearer <token>``
            transport: custom httpx transport
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if headers:
            self.default_headers.update(headers)
        if auth_token:
            self.set_auth_token(auth_token)

        self._client: Optional[httpx.AsyncClient] = None

    def set_auth_token(self, token: str, header_name: str = "Authorization", prefix: str = "Bearer"):
        self.default_headers[header_name] = f"{prefix} {token}" if prefix else token

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self._transport)
        return self._client

    async def aclose(self):
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_delay, min=self.retry_delay, max=self.retry_delay * 8),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
        )

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        json_data: Optional[Dict[str, Any]],
        headers: Dict[str, str],
    ) -> APIResponse:
        start_time = datetime.now()
        response = await self.client.request(method=method, url=url, params=params, json=json_data, headers=headers)
        elapsed = (datetime.now() - start_time).total_seconds() * 1000

        data = None
        if "application/json" in response.headers.get("content-type", ""):
            try:
                data = response.json()
            except json.JSONDecodeError:
                data = None

        logger.debug("API Response: %s %s -> %s (%.1fms)", method, url, response.status_code, elapsed)
        return APIResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=data,
            raw_content=response.content,
            elapsed_ms=elapsed,
            request_id=response.headers.get("x-request-id"),
        )

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> APIResponse:
        """
        Raises:
            APIError: non-2xx answer
            TransportError: timeout or network failure after all attempts
        """
        if isinstance(method, HTTPMethod):
            method = method.value
        url = self._build_url(endpoint)
        request_headers = {**self.default_headers, **(headers or {})}

        logger.debug("API Request: %s %s", method, url)
        try:
            async for attempt in self._retrying():
                with attempt:
                    api_response = await self._send(method, url, params, json_data, request_headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timeout after {self.timeout}s: {method} {url}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Network error: {exc}") from exc

        if not api_response.is_success:
            raise APIError(
                message=f"API request failed with status {api_response.status_code}",
                status_code=api_response.status_code,
                response=api_response,
                request_id=api_response.request_id,
            )
        return api_response

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.GET, endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.POST, endpoint, **kwargs)
