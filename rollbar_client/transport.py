"""Delivery of an encoded payload with a single HTTPS POST."""

from typing import Any, Optional

import httpx
import structlog

from .api.codec import decode_response, encode_payload, mask_token, pretty
from .api.models import Payload, Response
from .config import Settings
from .errors import ApiError, TransportError
from .version import USER_AGENT


class Transport:
    """
    POST payloads to the items endpoint.

    There is no retry: every call makes exactly one request and either
    returns the parsed response or raises.

    Caller-supplied httpx clients are used as-is and never closed here;
    otherwise a short-lived client is opened for each send.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        async_http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[Any] = None,
    ):
        self.settings = settings
        self.http_client = http_client
        self.async_http_client = async_http_client
        self.logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.settings.timeout if timeout is None else timeout

    def post(self, payload: Payload, timeout: Optional[float] = None) -> Response:
        """
        Send a payload and return the service response.

        Raises:
            EncodingError: Payload could not be serialized, nothing was sent
            TransportError: Network failure, timeout or non-2xx status
            ApiError: Service accepted the request but reported an error
            DecodingError: Response body is not a valid response document
        """
        content = encode_payload(payload)
        self._log_request(content)

        try:
            if self.http_client is not None:
                resp = self.http_client.post(
                    self.settings.endpoint,
                    content=content,
                    headers=self.headers,
                    timeout=self._timeout(timeout),
                )
            else:
                with httpx.Client() as client:
                    resp = client.post(
                        self.settings.endpoint,
                        content=content,
                        headers=self.headers,
                        timeout=self._timeout(timeout),
                    )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"failed to POST to rollbar: {e}") from e

        return self._handle_response(resp)

    async def post_async(self, payload: Payload, timeout: Optional[float] = None) -> Response:
        """Async variant of :meth:`post` using ``httpx.AsyncClient``."""
        content = encode_payload(payload)
        self._log_request(content)

        try:
            if self.async_http_client is not None:
                resp = await self.async_http_client.post(
                    self.settings.endpoint,
                    content=content,
                    headers=self.headers,
                    timeout=self._timeout(timeout),
                )
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self.settings.endpoint,
                        content=content,
                        headers=self.headers,
                        timeout=self._timeout(timeout),
                    )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"failed to POST to rollbar: {e}") from e

        return self._handle_response(resp)

    def _handle_response(self, resp: httpx.Response) -> Response:
        if not resp.is_success:
            raise TransportError(
                f"received response: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
                body=resp.text,
            )

        self._log_response(resp.content)
        result = decode_response(resp.content)

        if result.err != 0:
            raise ApiError(
                f"rollbar rejected item: {result.message or 'unknown error'}",
                err=result.err,
                status_code=resp.status_code,
                body=resp.text,
            )

        return result

    def _log_request(self, content: bytes) -> None:
        if not self.settings.debug:
            return
        self.logger.debug(
            "rollbar_request",
            endpoint=self.settings.endpoint,
            body=pretty(mask_token(content)),
        )

    def _log_response(self, content: bytes) -> None:
        if not self.settings.debug:
            return
        self.logger.debug(
            "rollbar_response",
            endpoint=self.settings.endpoint,
            body=pretty(content),
        )
