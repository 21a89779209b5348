"""Request context extraction with redaction of sensitive values."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from ..api.models import Request
from ..config import Settings

REDACTED = "xxxxxxxxxxxx (redacted)"

# Tells the server to use the source address it observed for the POST
REMOTE_IP = "$remote_ip"

Values = Union[str, Sequence[str]]


@dataclass
class InboundRequest:
    """
    Framework-neutral view of the HTTP request an error happened in.

    Header and form values may be single strings or lists of strings.
    """

    url: str
    method: str = "GET"
    headers: Mapping[str, Values] = field(default_factory=dict)
    form: Mapping[str, Values] = field(default_factory=dict)
    body: Union[str, bytes] = ""
    remote_addr: Optional[str] = None


def canonical_header_key(name: str) -> str:
    """Canonical MIME header form: ``x-forwarded-for`` -> ``X-Forwarded-For``."""
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def canonical_headers(headers: Mapping[str, Values]) -> Dict[str, List[str]]:
    """Canonicalize header names, merging values of names that collapse together."""
    merged: Dict[str, List[str]] = {}
    for name, value in headers.items():
        merged.setdefault(canonical_header_key(name), []).extend(_as_list(value))
    return merged


def _as_list(value: Values) -> List[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def filter_params(pattern: "re.Pattern[str]", values: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
    """Return a copy of ``values`` with every key matching ``pattern`` redacted."""
    filtered = {}
    for key, value in values.items():
        if pattern.search(key):
            filtered[key] = [REDACTED]
        else:
            filtered[key] = list(value)
    return filtered


class RequestSanitizer:
    """
    Build the ``request`` section of an item with secrets redacted.

    Header names are matched case-sensitively against ``sensitive_headers``
    after canonicalization. Query and form parameter names are matched
    case-insensitively against ``sensitive_fields``. Form bodies are
    re-encoded from the redacted fields and other bodies are dropped.
    Inputs are never modified; new mappings are returned.
    """

    def __init__(
        self,
        sensitive_headers: str = "Authorization",
        sensitive_fields: str = "password|secret|token",
        capture_ip: bool = False,
    ):
        self.header_pattern = re.compile(sensitive_headers)
        self.field_pattern = re.compile(sensitive_fields, re.IGNORECASE)
        self.capture_ip = capture_ip

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestSanitizer":
        return cls(
            sensitive_headers=settings.sensitive_headers,
            sensitive_fields=settings.sensitive_fields,
            capture_ip=settings.capture_ip,
        )

    def sanitize(self, request: Union[InboundRequest, Request]) -> Request:
        """
        Convert and redact a request.

        Passing an already built ``Request`` re-applies redaction, which is
        idempotent.
        """
        if isinstance(request, InboundRequest):
            request = self._build(request)
        return self._redact(request)

    def _build(self, inbound: InboundRequest) -> Request:
        query = urlsplit(inbound.url).query
        body = inbound.body
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")

        return Request(
            url=inbound.url,
            method=inbound.method.upper(),
            headers=canonical_headers(inbound.headers),
            get=parse_qs(query, keep_blank_values=True),
            query_string=query,
            post={k: _as_list(v) for k, v in inbound.form.items()},
            body=body,
            user_ip=inbound.remote_addr or REMOTE_IP,
        )

    def _redact(self, request: Request) -> Request:
        query = filter_params(self.field_pattern, request.get)
        query_string = urlencode(sorted(query.items()), doseq=True)
        url = urlunsplit(urlsplit(request.url)._replace(query=query_string))
        post = filter_params(self.field_pattern, request.post)

        return Request(
            url=url,
            method=request.method,
            headers=filter_params(self.header_pattern, canonical_headers(request.headers)),
            params=request.params,
            get=query,
            query_string=query_string,
            post=post,
            body=self._redact_body(request.body, post),
            user_ip=request.user_ip if self.capture_ip else REMOTE_IP,
        )

    def _redact_body(self, body: str, post: Mapping[str, Sequence[str]]) -> str:
        """
        Re-encode a form body from its redacted fields.

        A body that is neither parsed form data nor urlencoded text is
        dropped, since its fields cannot be matched.
        """
        if post:
            return urlencode(list(post.items()), doseq=True)
        if not body:
            return ""
        try:
            pairs = parse_qsl(body, keep_blank_values=True, strict_parsing=True)
        except ValueError:
            return ""
        return urlencode([(k, REDACTED if self.field_pattern.search(k) else v) for k, v in pairs])
