#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .._http import SdkHttpRequest


@runtime_checkable
class HTTPResponse(Protocol):
    """A response received from an :py:class:`HTTPClient`."""

    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    headers: Mapping[str, str]
    """Response header fields."""

    reason: str | None
    """Optional string provided by the server explaining the status."""

    async def consume_body_async(self) -> bytes:
        """Read the response body fully into memory."""
        ...


class HTTPClient(Protocol):
    """An asynchronous HTTP client that sends signed requests."""

    async def send(self, request: SdkHttpRequest) -> HTTPResponse:
        """Send an HTTP request over the wire and return the response.

        Failures to reach the service (connection resets, timeouts) are raised as
        exceptions. Error responses from the service are returned, not raised.

        :param request: The request including destination, headers, and payload.
        """
        ...
