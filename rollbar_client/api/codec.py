"""JSON encoding of payloads and decoding of API responses."""

from typing import Any, Dict

import orjson
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ..errors import DecodingError, EncodingError
from .models import Payload, Response

TOKEN_MASK = "xxxxxxxxxxxx (redacted)"


def payload_to_dict(payload: Payload) -> Dict[str, Any]:
    """Dump a payload to plain JSON types using the wire field names."""
    try:
        return payload.model_dump(mode="json", by_alias=True)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise EncodingError(f"failed to encode payload: {e}") from e


def encode_payload(payload: Payload) -> bytes:
    """
    Encode a payload as JSON bytes.

    Raises:
        EncodingError: If any value (typically in ``custom``) is not JSON serializable
    """
    data = payload_to_dict(payload)
    try:
        return orjson.dumps(data)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise EncodingError(f"failed to encode payload: {e}") from e


def decode_response(body: bytes) -> Response:
    """
    Parse a response body from the items endpoint.

    Raises:
        DecodingError: If the body is not JSON or lacks the ``err`` field
    """
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise DecodingError(f"failed to decode response: {e}") from e

    if not isinstance(data, dict):
        raise DecodingError(f"unexpected response document: {type(data).__name__}")

    try:
        return Response.model_validate(data)
    except ValidationError as e:
        raise DecodingError(f"invalid response document: {e}") from e


def pretty(body: bytes) -> str:
    """Indent a JSON body for debug output, falling back to the raw text."""
    try:
        return orjson.dumps(orjson.loads(body), option=orjson.OPT_INDENT_2).decode()
    except orjson.JSONDecodeError:
        return body.decode("utf-8", errors="replace")


def mask_token(body: bytes) -> bytes:
    """Replace the access token in an encoded payload, for debug output."""
    try:
        document = orjson.loads(body)
    except orjson.JSONDecodeError:
        return body
    if isinstance(document, dict) and document.get("access_token"):
        document["access_token"] = TOKEN_MASK
    return orjson.dumps(document)
