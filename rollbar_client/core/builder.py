"""Assembly of the item payload from an error, a stack and optional context."""

import time
from typing import Any, Dict, Optional

from ..api.models import (
    Body,
    CrashReport,
    Data,
    ExceptionInfo,
    Level,
    Message,
    Notifier,
    Payload,
    Person,
    Request,
    Server,
    Trace,
)
from ..config import Settings
from ..errors import ConfigurationError
from ..version import LANGUAGE, NAME, VERSION
from .classifier import classify
from .stack import Stack

MAX_TITLE_LENGTH = 255
MAX_UUID_LENGTH = 36


def _description(err: Any) -> Optional[str]:
    notes = getattr(err, "__notes__", None)
    if not notes or not isinstance(notes, list):
        return None
    return "\n".join(str(note) for note in notes)


def error_body(err: Any, stack: Stack) -> Body:
    """Trace body for an error and the stack it was reported from."""
    variant = classify(err)
    return Body(
        trace=Trace(
            frames=list(stack),
            exception=ExceptionInfo(
                class_=variant.label,
                message=variant.message,
                description=_description(err),
            ),
        )
    )


def message_body(text: str) -> Body:
    return Body(message=Message(body=text))


def crash_body(raw: str) -> Body:
    return Body(crash_report=CrashReport(raw=raw))


class PayloadBuilder:
    """
    Build payloads from immutable client settings.

    The builder holds no per-item state and is safe to share between threads.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.server = self._server(settings)
        self.notifier = Notifier(name=NAME, version=VERSION)

    @staticmethod
    def _server(settings: Settings) -> Optional[Server]:
        server = Server(
            host=settings.server_host,
            root=settings.server_root,
            branch=settings.server_branch,
            code_version=settings.code_version,
        )
        if not any((server.host, server.root, server.branch, server.code_version)):
            return None
        return server

    def build(
        self,
        level: Level,
        body: Body,
        title: Optional[str] = None,
        *,
        fingerprint: Optional[str] = None,
        request: Optional[Request] = None,
        person: Optional[Person] = None,
        custom: Optional[Dict[str, Any]] = None,
        uuid: Optional[str] = None,
        context: Optional[str] = None,
    ) -> Payload:
        """
        Assemble a payload around an already built body.

        Raises:
            ConfigurationError: If no access token is configured
            ValueError: If ``uuid`` is longer than 36 characters
        """
        if not self.settings.access_token:
            raise ConfigurationError("empty access token")
        if uuid is not None and len(uuid) > MAX_UUID_LENGTH:
            raise ValueError(f"uuid must be at most {MAX_UUID_LENGTH} characters")

        if title:
            title = title[:MAX_TITLE_LENGTH]

        data = Data(
            environment=self.settings.environment,
            body=body,
            level=level,
            timestamp=int(time.time()),
            code_version=self.settings.code_version,
            platform=self.settings.platform,
            language=LANGUAGE,
            framework=self.settings.framework,
            context=context,
            request=request,
            person=person,
            server=self.server,
            custom=dict(custom) if custom else None,
            fingerprint=fingerprint,
            title=title,
            uuid=uuid,
            notifier=self.notifier,
        )

        return Payload(access_token=self.settings.access_token, data=data)

    def build_error(self, level: Level, err: Any, stack: Stack, **options: Any) -> Payload:
        """
        Payload for an error: trace body, stack fingerprint and the error
        message as title (``"<nil>"`` when ``err`` is None).
        """
        return self.build(
            level,
            error_body(err, stack),
            classify(err).message,
            fingerprint=stack.fingerprint(),
            **options,
        )
