#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
__version__ = "0.1.0"

from ._http import HTTPResponse, SdkHttpRequest, SdkHttpRequestBuilder
from .auth import (
    CustomPolicy,
    QueryStringSigner,
    SignedUrlProtocol,
    get_signed_url_with_canned_policy,
    get_signed_url_with_custom_policy,
)
from .config import SdkConfig
from .credentials_resolvers import CredentialsProviderChain, create_default_chain
from .identity import ANONYMOUS_CREDENTIALS, AWSCredentialIdentity
from .retries import (
    DEFAULT_BACKOFF_STRATEGY,
    DEFAULT_THROTTLING_BACKOFF_STRATEGY,
    NO_BACKOFF,
    RetryPolicy,
    RetryPolicyContext,
)

__all__ = (
    "ANONYMOUS_CREDENTIALS",
    "AWSCredentialIdentity",
    "CredentialsProviderChain",
    "CustomPolicy",
    "DEFAULT_BACKOFF_STRATEGY",
    "DEFAULT_THROTTLING_BACKOFF_STRATEGY",
    "HTTPResponse",
    "NO_BACKOFF",
    "QueryStringSigner",
    "RetryPolicy",
    "RetryPolicyContext",
    "SdkConfig",
    "SdkHttpRequest",
    "SdkHttpRequestBuilder",
    "SignedUrlProtocol",
    "create_default_chain",
    "get_signed_url_with_canned_policy",
    "get_signed_url_with_custom_policy",
)
