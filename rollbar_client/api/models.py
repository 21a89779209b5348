"""
Rollbar items API wire models.

Data format reference: https://docs.rollbar.com/reference/create-item

Optional fields left at their zero value (None, "", 0, empty list or dict)
are dropped from the serialized document instead of being sent as null.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
    model_validator,
)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


class WireModel(BaseModel):
    """Base model that omits empty optional fields when serialized."""

    model_config = ConfigDict(populate_by_name=True)

    @model_serializer(mode="wrap")
    def serialize_omit_empty(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        data = handler(self)
        for name, field in type(self).model_fields.items():
            if field.is_required():
                continue
            key = field.alias if field.alias and field.alias in data else name
            if key in data and _is_empty(data[key]):
                del data[key]
        return data


class Level(str, Enum):
    """Item severity, ordered by increasing urgency."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, Level):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Level):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Level):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Level):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_ORDER = [Level.DEBUG, Level.INFO, Level.WARNING, Level.ERROR, Level.CRITICAL]


class Frame(WireModel):
    """One call site. Frames are immutable once captured."""

    model_config = ConfigDict(frozen=True)

    filename: str
    lineno: Optional[int] = None
    colno: Optional[int] = None
    method: Optional[str] = None
    code: Optional[str] = None
    class_name: Optional[str] = None
    argspec: Optional[List[str]] = None
    varargspec: Optional[str] = None
    keywordspec: Optional[str] = None
    locals: Optional[Dict[str, Any]] = None


class ExceptionInfo(WireModel):
    """The ``trace.exception`` object."""

    class_: str = Field(alias="class")
    message: str
    description: Optional[str] = None


class Trace(WireModel):
    frames: List[Frame]
    exception: ExceptionInfo


class Message(WireModel):
    body: str


class CrashReport(WireModel):
    raw: str


class Body(WireModel):
    """Item body. Exactly one of the variants is populated."""

    trace: Optional[Trace] = None
    trace_chain: Optional[List[Trace]] = None
    message: Optional[Message] = None
    crash_report: Optional[CrashReport] = None

    @model_validator(mode="after")
    def check_single_variant(self) -> "Body":
        populated = [
            name
            for name in ("trace", "trace_chain", "message", "crash_report")
            if not _is_empty(getattr(self, name))
        ]
        if len(populated) != 1:
            raise ValueError(f"body needs exactly one of trace, trace_chain, message, crash_report; got {populated}")
        return self


class Request(WireModel):
    """HTTP request the item occurred in, already sanitized."""

    url: str
    method: str
    headers: Dict[str, List[str]]
    params: Optional[Dict[str, Any]] = None
    get: Dict[str, List[str]] = Field(alias="GET")
    query_string: str
    post: Dict[str, List[str]] = Field(alias="POST")
    body: str
    user_ip: str


class Person(WireModel):
    """The affected user. ``id`` is required, the rest are indexed when present."""

    id: str
    username: Optional[str] = None
    email: Optional[str] = None


class Server(WireModel):
    host: Optional[str] = None
    root: Optional[str] = None
    branch: Optional[str] = None
    code_version: Optional[str] = None
    sha: Optional[str] = None


class Javascript(WireModel):
    browser: Optional[str] = None
    code_version: Optional[str] = None
    source_map_enabled: bool = False
    guess_uncaught_frames: bool = False


class Client(WireModel):
    javascript: Optional[Javascript] = None


class Notifier(WireModel):
    name: str
    version: str


class Data(WireModel):
    """Main item data."""

    environment: str
    body: Body
    level: Optional[Level] = None
    timestamp: Optional[int] = None
    code_version: Optional[str] = Field(default=None, max_length=40)
    platform: Optional[str] = None
    language: Optional[str] = None
    framework: Optional[str] = None
    context: Optional[str] = None
    request: Optional[Request] = None
    person: Optional[Person] = None
    server: Optional[Server] = None
    client: Optional[Client] = None
    custom: Optional[Dict[str, Any]] = None
    fingerprint: Optional[str] = Field(default=None, max_length=40)
    title: Optional[str] = Field(default=None, max_length=255)
    uuid: Optional[str] = Field(default=None, max_length=36)
    notifier: Optional[Notifier] = None


class Payload(WireModel):
    """Top-level document POSTed to the items endpoint."""

    access_token: str
    data: Data


class Result(BaseModel):
    uuid: Optional[str] = None


class Response(BaseModel):
    """Items endpoint response. ``err`` is non-zero when the item was rejected."""

    model_config = ConfigDict(extra="allow")

    err: int
    result: Optional[Result] = None
    message: Optional[str] = None
