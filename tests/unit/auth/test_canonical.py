#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import pytest
from aws_sdk_core._http import SdkHttpRequestBuilder
from aws_sdk_core.auth.canonical import (
    canonicalize,
    canonicalized_endpoint,
    canonicalized_query_string,
    canonicalized_resource_path,
)


@pytest.mark.parametrize(
    "scheme, host, port, expected",
    [
        ("https", "SQS.us-east-1.AmazonAWS.com", None, "sqs.us-east-1.amazonaws.com"),
        ("https", "example.com", 443, "example.com"),
        ("http", "example.com", 80, "example.com"),
        ("https", "example.com", 8443, "example.com:8443"),
        ("http", "example.com", 443, "example.com:443"),
    ],
)
def test_canonicalized_endpoint(
    scheme: str, host: str, port: int | None, expected: str
) -> None:
    request = SdkHttpRequestBuilder(scheme=scheme, host=host, port=port).build()
    assert canonicalized_endpoint(request) == expected


@pytest.mark.parametrize(
    "path, expected", [("", "/"), ("/", "/"), ("/foo/bar%20baz", "/foo/bar%20baz")]
)
def test_canonicalized_resource_path(path: str, expected: str) -> None:
    request = SdkHttpRequestBuilder(host="example.com", path=path).build()
    assert canonicalized_resource_path(request) == expected


@pytest.mark.parametrize(
    "query, expected",
    [
        ({}, ""),
        ({"b": ("2",), "a": ("1",)}, "a=1&b=2"),
        ({"key": ("a b",)}, "key=a%20b"),
        ({"star": ("*",)}, "star=%2A"),
        ({"tilde": ("~x",)}, "tilde=~x"),
        ({"k": ("a/b:c",)}, "k=a%2Fb%3Ac"),
        ({"k": ("z", "a")}, "k=a&k=z"),
        ({"é": ("ü",)}, "%C3%A9=%C3%BC"),
        # Sorting happens on the encoded form.
        ({"a b": ("1",), "a+b": ("2",)}, "a%20b=1&a%2Bb=2"),
        ({"AWSAccessKeyId": ("x",), "Action": ("y",)}, "AWSAccessKeyId=x&Action=y"),
    ],
)
def test_canonicalized_query_string(
    query: dict[str, tuple[str, ...]], expected: str
) -> None:
    assert canonicalized_query_string(query) == expected


def test_canonicalize() -> None:
    request = (
        SdkHttpRequestBuilder(method="GET", host="Example.com", port=8080, path="/p")
        .add_query_parameter("Version", "2012-11-05")
        .add_query_parameter("Action", "List Queues")
        .build()
    )
    assert canonicalize(request) == (
        "POST\nexample.com:8080\n/p\nAction=List%20Queues&Version=2012-11-05"
    )


def test_canonicalize_is_independent_of_insertion_order() -> None:
    first = (
        SdkHttpRequestBuilder(host="example.com")
        .add_query_parameter("a", "1")
        .add_query_parameter("b", "2")
        .add_query_parameter("c", "3")
        .build()
    )
    second = (
        SdkHttpRequestBuilder(host="example.com")
        .add_query_parameter("c", "3")
        .add_query_parameter("a", "1")
        .add_query_parameter("b", "2")
        .build()
    )
    assert canonicalize(first) == canonicalize(second)
