#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0

"""Shared utilities for aws-sdk-core tests."""

from .mockhttp import MockHTTPClient, MockHTTPClientError, create_test_request

__all__ = (
    "MockHTTPClient",
    "MockHTTPClientError",
    "create_test_request",
)
