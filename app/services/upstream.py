"""Client for the upstream document-processing service (FastAPI-compatible).

Every call is a single attempt. The caller's identity travels in an explicit
CallerContext argument; nothing about the caller is stored on the client.
Outcomes are returned, not raised:

- UpstreamOk: 2xx/3xx response (redirects are not followed; Location is kept)
- UpstreamError: the upstream answered with 4xx/5xx
- TransportError: no usable answer (unreachable, timeout, not configured)
"""

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class CallerContext(BaseModel):
    """Identity of the authenticated caller, passed to each outbound call."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str


class UpstreamOk(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    content: bytes = b""
    content_type: str = DEFAULT_CONTENT_TYPE
    location: str | None = None


class UpstreamError(BaseModel):
    model_config = ConfigDict(frozen=True)

    status_code: int
    content: bytes = b""
    content_type: str = DEFAULT_CONTENT_TYPE
    location: str | None = None


class TransportError(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


UpstreamResult = UpstreamOk | UpstreamError | TransportError


class UpstreamClient:
    """Forwards requests to the upstream base URL with the service API key."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None = None,
        timeout_sec: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout_sec)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: "Settings") -> "UpstreamClient":
        api_key = (
            settings.FASTAPI_API_KEY.get_secret_value()
            if settings.FASTAPI_API_KEY is not None
            else None
        )
        return cls(
            base_url=settings.FASTAPI_URL,
            api_key=api_key,
            timeout_sec=settings.PROXY_TIMEOUT_SEC,
        )

    def _headers(self) -> dict[str, str]:
        if self.api_key:
            return {API_KEY_HEADER: self.api_key}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        ctx: CallerContext,
        *,
        params: Any = None,
        json: Any = None,
        files: Any = None,
    ) -> UpstreamResult:
        """Send one request to {base_url}{path} and classify the outcome."""
        log_extra: dict[str, str | int | float] = {
            "upstream_method": method,
            "upstream_path": path,
            "user_id": ctx.user_id,
        }
        if not self.base_url:
            logger.warning("Upstream call skipped: FASTAPI_URL is not set", extra=log_extra)
            return TransportError(reason="Upstream service URL is not configured.")

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, path, params=params, json=json, files=files
                )
        except httpx.TimeoutException as e:
            log_extra["latency_seconds"] = time.perf_counter() - start
            logger.warning("Upstream request timed out", extra=log_extra)
            return TransportError(reason=f"Upstream request timed out: {e!s}")
        except httpx.ConnectError as e:
            log_extra["latency_seconds"] = time.perf_counter() - start
            logger.warning("Upstream service unreachable", extra=log_extra)
            return TransportError(reason=f"Upstream service unreachable: {e!s}")
        except httpx.HTTPError as e:
            log_extra["latency_seconds"] = time.perf_counter() - start
            logger.warning("Upstream request failed", extra=log_extra)
            return TransportError(reason=f"Upstream request failed: {e!s}")

        log_extra["latency_seconds"] = time.perf_counter() - start
        log_extra["status"] = response.status_code
        logger.info("Upstream request completed", extra=log_extra)

        content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        location = response.headers.get("location")
        if response.is_error:
            return UpstreamError(
                status_code=response.status_code,
                content=response.content,
                content_type=content_type,
                location=location,
            )
        return UpstreamOk(
            status_code=response.status_code,
            content=response.content,
            content_type=content_type,
            location=location,
        )
