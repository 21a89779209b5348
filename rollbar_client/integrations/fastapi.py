"""FastAPI / Starlette integration: report unhandled exceptions with request context."""

from typing import Union

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..api.models import Level
from ..client import Call, Client
from ..core.sanitizer import InboundRequest
from ..errors import RollbarError

logger = structlog.get_logger(__name__)


async def inbound_request(request: Request, with_body: bool = False) -> InboundRequest:
    """
    Convert a Starlette request for the sanitizer.

    The body and form are only read when ``with_body`` is set, because a
    request stream that the endpoint already consumed cannot be read again.
    """
    headers = {key: request.headers.getlist(key) for key in request.headers.keys()}

    body = b""
    form = {}
    if with_body:
        body = await request.body()
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            data = await request.form()
            form = {
                key: [v for v in data.getlist(key) if isinstance(v, str)]
                for key in data.keys()
            }

    return InboundRequest(
        url=str(request.url),
        method=request.method,
        headers=headers,
        form=form,
        body=body,
        remote_addr=request.client.host if request.client else None,
    )


class RollbarMiddleware(BaseHTTPMiddleware):
    """
    Report exceptions escaping the application, then re-raise them.

    Exceptions turned into responses by FastAPI exception handlers
    (``HTTPException`` and friends) are not reported.
    """

    def __init__(self, app, client: Client, level: Union[Level, str] = Level.ERROR):
        super().__init__(app)
        self.client = client
        self.level = Level(level)

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            await self._report(request, exc)
            raise

    async def _report(self, request: Request, exc: Exception) -> None:
        try:
            call = (
                Call(self.client, self.level, exc)
                .request(await inbound_request(request))
                .context(f"{request.method} {request.url.path}")
            )
            await call.do_async()
        except RollbarError as e:
            # the application's exception is re-raised by dispatch either way
            logger.warning("rollbar_report_failed", error=str(e), path=request.url.path)
