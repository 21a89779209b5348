"""
Exception classification.

Every value handed to the client is mapped to one of a small, closed set of
variants. Each variant knows its own class label and message:

- NoError: nothing was passed.
- OpaqueError: a bare ``Exception`` or a plain string. It carries no type
  information, so the label is a checksum of the message text and identical
  messages group together wherever they were raised.
- TypedError: any other exception; the label is its type name.
- UnknownError: something that is not an exception at all.
"""

import zlib
from dataclasses import dataclass
from typing import Any, Union

NIL = "<nil>"
PANIC = "panic"


def _safe_str(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__} object>"


def _type_name(cls: type) -> str:
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


@dataclass(frozen=True)
class NoError:
    message: str = NIL

    @property
    def label(self) -> str:
        return NIL


@dataclass(frozen=True)
class OpaqueError:
    message: str

    @property
    def label(self) -> str:
        checksum = zlib.adler32(self.message.encode("utf-8", "surrogateescape"))
        return "{%x}" % checksum


@dataclass(frozen=True)
class TypedError:
    type_name: str
    message: str

    @property
    def label(self) -> str:
        return self.type_name


@dataclass(frozen=True)
class UnknownError:
    message: str

    @property
    def label(self) -> str:
        return PANIC


ErrorVariant = Union[NoError, OpaqueError, TypedError, UnknownError]


def classify(err: Any) -> ErrorVariant:
    """Map an error-like value to its variant. Never raises."""
    if err is None:
        return NoError()
    if isinstance(err, str):
        return OpaqueError(err)
    if type(err) is Exception:
        return OpaqueError(_safe_str(err))
    if isinstance(err, BaseException):
        return TypedError(_type_name(type(err)), _safe_str(err))
    return UnknownError(_safe_str(err))


def error_class(err: Any) -> str:
    """Class label for ``err`` as sent in ``trace.exception.class``."""
    return classify(err).label


def error_message(err: Any) -> str:
    """Message text for ``err``, ``"<nil>"`` when there is no error."""
    return classify(err).message
