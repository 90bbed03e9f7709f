#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from .chain import CredentialsProviderChain, create_default_chain
from .container import ContainerCredentialsResolver
from .environment import EnvironmentCredentialsResolver
from .imds import IMDSCredentialsResolver
from .profile import ProfileCredentialsResolver
from .refresh import RefreshingCredentialsResolver
from .static import StaticCredentialsResolver

__all__ = (
    "ContainerCredentialsResolver",
    "CredentialsProviderChain",
    "EnvironmentCredentialsResolver",
    "IMDSCredentialsResolver",
    "ProfileCredentialsResolver",
    "RefreshingCredentialsResolver",
    "StaticCredentialsResolver",
    "create_default_chain",
)
