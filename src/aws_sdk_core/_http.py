#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from .interfaces import http as http_interface

DEFAULT_PORTS: Mapping[str, int] = MappingProxyType({"http": 80, "https": 443})

# RFC 3986 section 2.3 unreserved characters, besides alphanumerics.
_UNRESERVED = "-_.~"


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Look up a header in a plain mapping, ignoring the case of ``name``."""
    normalized = name.lower()
    for key, value in headers.items():
        if key.lower() == normalized:
            return value
    return None


def percent_encode(value: str) -> str:
    """Percent-encodes everything except RFC 3986 unreserved characters.

    Spaces become ``%20`` and ``*`` becomes ``%2A``, while ``~`` is left as-is.
    """
    return quote(value, safe=_UNRESERVED)


@dataclass(kw_only=True, frozen=True)
class SdkHttpRequest:
    """An immutable snapshot of an HTTP request ready for signing or sending.

    Use :py:meth:`to_builder` to derive a modified copy. Snapshots are never mutated,
    so a single request can safely be shared between signing attempts.
    """

    method: str = "GET"
    """The HTTP method, such as ``GET`` or ``POST``."""

    scheme: str = "https"
    """For example ``http`` or ``https``."""

    host: str
    """The hostname, for example ``amazonaws.com``."""

    port: int | None = None
    """An explicit port number."""

    path: str = "/"
    """The URL-encoded path component. Never empty."""

    query: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    """Raw (unencoded) query parameters in insertion order, each with its values."""

    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    """Header fields. Lookups through :py:meth:`header` are case-insensitive."""

    body: bytes | None = None
    """The request payload."""

    def __post_init__(self) -> None:
        if not self.path:
            object.__setattr__(self, "path", "/")

    @property
    def netloc(self) -> str:
        """The ``{host}:{port}`` pair, omitting the port when it is not set.

        IPv6 literals are enclosed in brackets.
        """
        host = f"[{self.host}]" if ":" in self.host else self.host
        if self.port is not None:
            return f"{host}:{self.port}"
        return host

    @property
    def is_using_non_default_port(self) -> bool:
        """Whether the port is set and differs from the scheme's default port."""
        if self.port is None:
            return False
        return DEFAULT_PORTS.get(self.scheme.lower()) != self.port

    def header(self, name: str) -> str | None:
        """Retrieve a header value, ignoring the case of ``name``."""
        return header_value(self.headers, name)

    def query_parameter(self, name: str) -> str | None:
        """The first value of a query parameter, or None if it is not present."""
        values = self.query.get(name)
        if not values:
            return None
        return values[0]

    def encoded_query(self) -> str:
        """The query string with names and values percent-encoded, in insertion
        order."""
        return "&".join(
            f"{percent_encode(name)}={percent_encode(value)}"
            for name, values in self.query.items()
            for value in values
        )

    def build_url(self) -> str:
        """Construct the full URL of the request.

        Returns a string of the form ``{scheme}://{host}:{port}{path}?{query}``.
        """
        return urlunsplit(
            (self.scheme, self.netloc, self.path, self.encoded_query(), "")
        )

    def to_builder(self) -> SdkHttpRequestBuilder:
        """Create a mutable builder initialized with a copy of this request."""
        return SdkHttpRequestBuilder(
            method=self.method,
            scheme=self.scheme,
            host=self.host,
            port=self.port,
            path=self.path,
            query={name: list(values) for name, values in self.query.items()},
            headers=dict(self.headers),
            body=self.body,
        )


class SdkHttpRequestBuilder:
    """Mutable builder producing :py:class:`SdkHttpRequest` snapshots.

    A builder must not be shared between signing stages; call :py:meth:`build` and
    hand over the snapshot instead.
    """

    def __init__(
        self,
        *,
        host: str,
        method: str = "GET",
        scheme: str = "https",
        port: int | None = None,
        path: str = "/",
        query: Mapping[str, Iterable[str]] | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ):
        self.method = method
        self.scheme = scheme
        self.host = host
        self.port = port
        self.path = path
        self._query: dict[str, list[str]] = {
            name: list(values) for name, values in (query or {}).items()
        }
        self._headers: dict[str, str] = dict(headers or {})
        self.body = body

    @classmethod
    def from_url(cls, url: str, *, method: str = "GET") -> SdkHttpRequestBuilder:
        """Create a builder from a URL, decoding its query string into parameters."""
        parts = urlsplit(url)
        if not parts.hostname:
            raise ValueError(f"URL has no host: {url!r}")
        builder = cls(
            method=method,
            scheme=parts.scheme or "https",
            host=parts.hostname,
            port=parts.port,
            path=parts.path or "/",
        )
        for name, value in parse_qsl(parts.query, keep_blank_values=True):
            builder.add_query_parameter(name, value)
        return builder

    def add_query_parameter(self, name: str, value: str) -> SdkHttpRequestBuilder:
        """Append a value to a query parameter, keeping any existing values."""
        self._query.setdefault(name, []).append(value)
        return self

    def set_query_parameter(
        self, name: str, values: str | Iterable[str]
    ) -> SdkHttpRequestBuilder:
        """Overwrite all values of a query parameter."""
        if isinstance(values, str):
            values = [values]
        self._query[name] = list(values)
        return self

    def remove_query_parameter(self, name: str) -> SdkHttpRequestBuilder:
        self._query.pop(name, None)
        return self

    def set_header(self, name: str, value: str) -> SdkHttpRequestBuilder:
        """Set a header, replacing any existing header whose name differs only in
        case."""
        self.remove_header(name)
        self._headers[name] = value
        return self

    def remove_header(self, name: str) -> SdkHttpRequestBuilder:
        normalized = name.lower()
        for key in [k for k in self._headers if k.lower() == normalized]:
            del self._headers[key]
        return self

    def build(self) -> SdkHttpRequest:
        """Produce an immutable snapshot of the builder's current state."""
        return SdkHttpRequest(
            method=self.method,
            scheme=self.scheme,
            host=self.host,
            port=self.port,
            path=self.path or "/",
            query=MappingProxyType(
                {name: tuple(values) for name, values in self._query.items()}
            ),
            headers=MappingProxyType(dict(self._headers)),
            body=self.body,
        )


@dataclass(kw_only=True)
class HTTPResponse(http_interface.HTTPResponse):
    """A fully buffered HTTP response."""

    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    headers: Mapping[str, str] = field(default_factory=dict)
    """Response header fields."""

    body: bytes = b""
    """The response payload."""

    reason: str | None = None
    """Optional string provided by the server explaining the status."""

    def header(self, name: str) -> str | None:
        """Retrieve a header value, ignoring the case of ``name``."""
        return header_value(self.headers, name)

    async def consume_body_async(self) -> bytes:
        return self.body
