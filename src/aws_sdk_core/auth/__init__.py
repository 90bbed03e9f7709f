#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from .algorithms import SigningAlgorithm
from .cloudfront import (
    CustomPolicy,
    SignedUrlProtocol,
    get_signed_url_with_canned_policy,
    get_signed_url_with_custom_policy,
)
from .query_string import QueryStringSigner, QueryStringSigningProperties

__all__ = (
    "CustomPolicy",
    "QueryStringSigner",
    "QueryStringSigningProperties",
    "SignedUrlProtocol",
    "SigningAlgorithm",
    "get_signed_url_with_canned_policy",
    "get_signed_url_with_custom_policy",
)
