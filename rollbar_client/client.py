"""Rollbar REST API client."""

from typing import Any, Dict, Optional, Union

import httpx
import structlog

from .api.models import Level, Payload, Person, Request, Response
from .config import Settings
from .core.builder import PayloadBuilder, crash_body, message_body
from .core.sanitizer import InboundRequest, RequestSanitizer
from .core.stack import Stack, create_stack, create_stack_from_traceback
from .errors import RollbarError
from .transport import Transport


class Client:
    """
    Client for the Rollbar items API.

    Settings are frozen at construction and shared read-only by every call,
    so a single client can report from many threads or tasks at once.

    Example:
        client = Client.new("POST_SERVER_ITEM_TOKEN", environment="production")
        try:
            charge(order)
        except PaymentError as e:
            client.error(e).custom({"order_id": order.id}).do()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        async_http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[Any] = None,
    ):
        self.settings = settings if settings is not None else Settings()
        self.logger = logger if logger is not None else structlog.get_logger(__name__)
        self.builder = PayloadBuilder(self.settings)
        self.sanitizer = RequestSanitizer.from_settings(self.settings)
        self.transport = Transport(
            self.settings,
            http_client=http_client,
            async_http_client=async_http_client,
            logger=self.logger,
        )

    @classmethod
    def new(
        cls,
        token: str,
        *,
        http_client: Optional[httpx.Client] = None,
        async_http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[Any] = None,
        **options: Any,
    ) -> "Client":
        """
        Create a client for ``token``.

        Any other Settings field can be passed by name, e.g.
        ``Client.new(token, environment="production", code_version="2.1.12")``.
        Fields not given fall back to ROLLBAR_* environment variables and
        then to the defaults.
        """
        return cls(
            Settings(access_token=token, **options),
            http_client=http_client,
            async_http_client=async_http_client,
            logger=logger,
        )

    def debug(self, err: Any) -> "Call":
        """Report ``err`` with debug level."""
        return Call(self, Level.DEBUG, err)

    def info(self, err: Any) -> "Call":
        """Report ``err`` with info level."""
        return Call(self, Level.INFO, err)

    def warning(self, err: Any) -> "Call":
        """Report ``err`` with warning level."""
        return Call(self, Level.WARNING, err)

    def error(self, err: Any) -> "Call":
        """Report ``err`` with error level."""
        return Call(self, Level.ERROR, err)

    def critical(self, err: Any) -> "Call":
        """Report ``err`` with critical level."""
        return Call(self, Level.CRITICAL, err)

    def message(self, level: Union[Level, str], text: str) -> "Call":
        """Report a plain text message instead of an error."""
        return Call(self, Level(level), message=text)

    def crash_report(self, level: Union[Level, str], raw: str) -> "Call":
        """Report a raw crash dump (e.g. an iOS crash log)."""
        return Call(self, Level(level), crash=raw)

    def send(self, payload: Payload, timeout: Optional[float] = None) -> Response:
        """POST a built payload. Errors propagate to the caller."""
        try:
            resp = self.transport.post(payload, timeout=timeout)
        except RollbarError as e:
            self.logger.info("rollbar_send_failed", error=str(e), level=payload.data.level)
            raise
        self._log_sent(payload, resp)
        return resp

    async def send_async(self, payload: Payload, timeout: Optional[float] = None) -> Response:
        try:
            resp = await self.transport.post_async(payload, timeout=timeout)
        except RollbarError as e:
            self.logger.info("rollbar_send_failed", error=str(e), level=payload.data.level)
            raise
        self._log_sent(payload, resp)
        return resp

    def _log_sent(self, payload: Payload, resp: Response) -> None:
        self.logger.info(
            "rollbar_item_sent",
            level=payload.data.level,
            uuid=resp.result.uuid if resp.result else None,
        )


class Call:
    """
    One pending report. Options are chainable and nothing is sent until
    :meth:`do` (or :meth:`do_async`) is called.

    The live stack is captured inside ``do``; with the default
    ``stack_skip`` its first frame is the line that called ``do``.
    """

    def __init__(
        self,
        client: Client,
        level: Level,
        err: Any = None,
        *,
        message: Optional[str] = None,
        crash: Optional[str] = None,
    ):
        self.client = client
        self.level = level
        self.err = err
        self._message = message
        self._crash = crash
        self._custom: Optional[Dict[str, Any]] = None
        self._uuid: Optional[str] = None
        self._person: Optional[Person] = None
        self._request: Optional[Request] = None
        self._context: Optional[str] = None
        self._stack: Optional[Stack] = None

    def custom(self, custom: Dict[str, Any]) -> "Call":
        """Arbitrary metadata sent as ``data.custom``. Must be JSON serializable."""
        self._custom = custom
        return self

    def uuid(self, id: str) -> "Call":
        """
        Up to 36 characters uniquely identifying this occurrence.

        The server discards a second payload with the same UUID, so it doubles
        as a deduplication key. A UUID4 is recommended.
        """
        self._uuid = id
        return self

    def person(self, id: Any, username: Optional[str] = None, email: Optional[str] = None) -> "Call":
        """The user affected by this occurrence."""
        self._person = Person(id=str(id), username=username, email=email)
        return self

    def request(self, request: Union[InboundRequest, Request]) -> "Call":
        """Attach the HTTP request, with sensitive headers and fields redacted."""
        self._request = self.client.sanitizer.sanitize(request)
        return self

    def context(self, context: str) -> "Call":
        """Identifier for the part of the application, e.g. ``"orders#create"``."""
        self._context = context
        return self

    def stack(self, stack: Stack) -> "Call":
        """Use a stack captured earlier instead of the live or traceback stack."""
        self._stack = stack
        return self

    def payload(self) -> Payload:
        """Build the payload that :meth:`do` would send, without sending it."""
        return self._build(create_stack(self.client.settings.stack_skip))

    def do(self, timeout: Optional[float] = None) -> Response:
        """
        Build and send the item.

        Args:
            timeout: Seconds before the POST is abandoned, defaults to settings.timeout

        Raises:
            ConfigurationError, EncodingError, TransportError, DecodingError
        """
        payload = self._build(create_stack(self.client.settings.stack_skip))
        return self.client.send(payload, timeout=timeout)

    async def do_async(self, timeout: Optional[float] = None) -> Response:
        """Async variant of :meth:`do`."""
        payload = self._build(create_stack(self.client.settings.stack_skip))
        return await self.client.send_async(payload, timeout=timeout)

    def _error_stack(self, live: Stack) -> Stack:
        if self._stack is not None:
            return self._stack
        tb = getattr(self.err, "__traceback__", None)
        if tb is not None and self.client.settings.use_exception_traceback:
            return create_stack_from_traceback(tb)
        return live

    def _build(self, live: Stack) -> Payload:
        options = dict(
            request=self._request,
            person=self._person,
            custom=self._custom,
            uuid=self._uuid,
            context=self._context,
        )
        builder = self.client.builder

        if self._message is not None:
            return builder.build(self.level, message_body(self._message), self._message, **options)
        if self._crash is not None:
            return builder.build(self.level, crash_body(self._crash), None, **options)
        return builder.build_error(self.level, self.err, self._error_stack(live), **options)
