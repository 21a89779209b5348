"""Call stack capture and fingerprinting."""

import os
import sys
import traceback
import zlib
from types import CodeType, FrameType, TracebackType
from typing import Any, Iterable, List, Optional

from ..api.models import Frame


class Stack(tuple):
    """Captured frames, innermost first."""

    def fingerprint(self) -> str:
        """
        Create a fingerprint that uniquely identifies this call stack.

        Every frame is used, including file names, so there are no false
        duplicates. Adding or removing lines in reported code changes the
        fingerprint and starts a new group on the server.
        """
        checksum = 0
        for frame in self:
            key = f"{frame.filename}{frame.method or ''}{frame.lineno or 0}"
            checksum = zlib.crc32(key.encode("utf-8", "surrogateescape"), checksum)
        return format(checksum, "x")


def func_name(code: Optional[CodeType]) -> str:
    """Display name for a code object: its qualified name when available."""
    if code is None:
        return "???"
    return getattr(code, "co_qualname", code.co_name)


def _filename(code: CodeType) -> str:
    filename = code.co_filename
    # "<string>", "<stdin>" and friends are not paths
    if filename.startswith("<"):
        return filename
    return os.path.abspath(filename)


def _to_frame(frame: Any, lineno: Optional[int]) -> Optional[Frame]:
    code = getattr(frame, "f_code", None)
    if not isinstance(code, CodeType):
        return None
    return Frame(filename=_filename(code), lineno=lineno, method=func_name(code))


def create_stack(skip: int) -> Stack:
    """
    Capture the live call stack, dropping the innermost ``skip`` frames.

    ``skip=0`` starts at ``create_stack`` itself, ``skip=1`` at its caller and
    so on. A skip deeper than the stack yields an empty Stack.
    """
    if skip < 0:
        raise ValueError(f"skip must be >= 0, got {skip}")

    current: Optional[FrameType] = sys._getframe()
    for _ in range(skip):
        if current is None:
            break
        current = current.f_back

    frames: List[Frame] = []
    while current is not None:
        frames.append(_to_frame(current, current.f_lineno))
        current = current.f_back

    return Stack(frames)


def _resolve(caller: Any) -> Optional[Frame]:
    if isinstance(caller, TracebackType):
        return _to_frame(caller.tb_frame, caller.tb_lineno)
    if isinstance(caller, FrameType):
        return _to_frame(caller, caller.f_lineno)
    if isinstance(caller, tuple) and len(caller) == 2:
        frame, lineno = caller
        return _to_frame(frame, lineno if isinstance(lineno, int) else None)
    return None


def create_stack_from_callers(callers: Iterable[Any]) -> Stack:
    """
    Build a Stack from references captured earlier.

    Accepts frame objects, traceback entries and the ``(frame, lineno)`` pairs
    yielded by ``traceback.walk_stack``/``traceback.walk_tb``. Entries that do
    not resolve to a code object are skipped.
    """
    frames = []
    for caller in callers:
        frame = _resolve(caller)
        if frame is not None:
            frames.append(frame)
    return Stack(frames)


def create_stack_from_traceback(tb: Optional[TracebackType]) -> Stack:
    """Build a Stack from an exception traceback, innermost frame first."""
    if tb is None:
        return Stack()
    entries = list(traceback.walk_tb(tb))
    entries.reverse()
    return create_stack_from_callers(entries)
