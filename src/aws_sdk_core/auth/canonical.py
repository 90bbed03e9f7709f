#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Canonical string-to-sign for the version 2 query string signature scheme."""

from collections.abc import Mapping

from .._http import SdkHttpRequest, percent_encode

SIGNED_METHOD = "POST"


def canonicalized_endpoint(request: SdkHttpRequest) -> str:
    """The lower-cased host, with ``:port`` appended for non-default ports."""
    endpoint = request.host.lower()
    if request.is_using_non_default_port:
        endpoint += f":{request.port}"
    return endpoint


def canonicalized_resource_path(request: SdkHttpRequest) -> str:
    return request.path or "/"


def canonicalized_query_string(query: Mapping[str, tuple[str, ...]]) -> str:
    """Encode and sort query parameters.

    Names and values are percent-encoded, leaving only RFC 3986 unreserved
    characters as-is, then sorted by encoded name and, for repeated names, by
    encoded value.
    """
    pairs = sorted(
        (percent_encode(name), percent_encode(value))
        for name, values in query.items()
        for value in values
    )
    return "&".join(f"{name}={value}" for name, value in pairs)


def canonicalize(request: SdkHttpRequest) -> str:
    """Build the string to sign for ``request``.

    The result is independent of the order in which query parameters were added,
    and never includes the request's own HTTP method: version 2 signatures always
    sign as ``POST``.
    """
    return "\n".join(
        (
            SIGNED_METHOD,
            canonicalized_endpoint(request),
            canonicalized_resource_path(request),
            canonicalized_query_string(request.query),
        )
    )
