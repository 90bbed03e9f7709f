#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Final

from ..exceptions import CredentialsChainError, SdkConfigurationError
from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.http import HTTPClient
from ..interfaces.identity import ClosableResolver, IdentityResolver
from .container import ContainerCredentialsResolver
from .environment import EnvironmentCredentialsResolver
from .imds import Config as IMDSConfig
from .imds import IMDSCredentialsResolver
from .profile import ProfileCredentialsResolver
from .static import StaticCredentialsResolver

if TYPE_CHECKING:
    from ..config import SdkConfig

logger: Final = logging.getLogger(__name__)

type CredentialsResolver = IdentityResolver[
    AWSCredentialIdentity, AWSIdentityProperties
]


class CredentialsProviderChain(
    IdentityResolver[AWSCredentialIdentity, AWSIdentityProperties]
):
    """Resolves AWS Credentials from the first resolver in a sequence that succeeds.

    When ``reuse_last_provider_enabled`` is set, the resolver that last succeeded
    is tried first on later calls. If it fails, it is forgotten and the whole
    chain is walked again from the start.
    """

    def __init__(
        self,
        resolvers: Sequence[CredentialsResolver],
        *,
        reuse_last_provider_enabled: bool = True,
    ) -> None:
        """Construct a CredentialsProviderChain.

        :param resolvers: The resolvers to try, in order.
        :param reuse_last_provider_enabled: Whether to start with the resolver that
            succeeded last time.
        """
        if not resolvers:
            raise SdkConfigurationError("At least one credentials resolver is required.")
        self._resolvers = tuple(resolvers)
        self._reuse_last_provider_enabled = reuse_last_provider_enabled
        self._last_used_index: int | None = None
        self._lock = threading.Lock()

    @property
    def resolvers(self) -> tuple[CredentialsResolver, ...]:
        return self._resolvers

    def _swap_last_used(self, expected: int | None, new: int | None) -> None:
        with self._lock:
            if self._last_used_index == expected:
                self._last_used_index = new

    async def get_identity(
        self, *, properties: AWSIdentityProperties | None = None
    ) -> AWSCredentialIdentity:
        properties = properties if properties is not None else {}
        errors: list[Exception] = []

        cached_index = self._last_used_index
        if self._reuse_last_provider_enabled and cached_index is not None:
            resolver = self._resolvers[cached_index]
            try:
                return await resolver.get_identity(properties=properties)
            except Exception as e:
                logger.debug(
                    "Previously successful resolver %s failed, retrying the whole "
                    "chain: %s",
                    type(resolver).__name__,
                    e,
                )
                self._swap_last_used(cached_index, None)

        logger.debug("Attempting to resolve credentials from resolver chain.")
        for index, resolver in enumerate(self._resolvers):
            try:
                logger.debug(
                    "Attempting to resolve credentials from %s.",
                    type(resolver).__name__,
                )
                credentials = await resolver.get_identity(properties=properties)
            except Exception as e:
                logger.debug(
                    "Failed to resolve credentials from %s: %s",
                    type(resolver).__name__,
                    e,
                )
                errors.append(e)
                continue

            logger.debug("Resolved credentials from %s.", type(resolver).__name__)
            if self._reuse_last_provider_enabled:
                with self._lock:
                    self._last_used_index = index
            return credentials

        summary = "; ".join(
            f"{type(resolver).__name__}: {error}"
            for resolver, error in zip(self._resolvers, errors)
        )
        raise CredentialsChainError(
            f"Unable to load credentials from any resolver in the chain: [{summary}]",
            errors,
        )

    async def close(self) -> None:
        """Close every resolver in the chain that holds background resources.

        Every resolver is closed even when an earlier one fails.

        :raises ExceptionGroup: If any resolver failed to close.
        """
        errors: list[Exception] = []
        for resolver in self._resolvers:
            if not isinstance(resolver, ClosableResolver):
                continue
            try:
                await resolver.close()
            except Exception as e:
                logger.debug("Failed to close %s: %s", type(resolver).__name__, e)
                errors.append(e)
        if errors:
            raise ExceptionGroup("Failed to close credentials resolvers", errors)


def create_default_chain(
    http_client: HTTPClient,
    *,
    config: SdkConfig | None = None,
    reuse_last_provider_enabled: bool | None = None,
    async_credential_update_enabled: bool | None = None,
) -> CredentialsProviderChain:
    """Build the default credentials chain.

    Resolvers are tried in this order: explicitly configured credentials,
    environment variables, the shared credentials file, the container credentials
    endpoint and the instance metadata service.

    :param http_client: The client used to reach the container and instance
        metadata endpoints.
    :param config: Resolved configuration. Explicit credentials, the profile, the
        credentials file and the instance metadata settings are taken from it.
    :param reuse_last_provider_enabled: Overrides the configured value, which
        defaults to True.
    :param async_credential_update_enabled: Overrides the configured value, which
        defaults to False.
    """
    if reuse_last_provider_enabled is None:
        reuse_last_provider_enabled = (
            config.reuse_last_provider_enabled if config is not None else True
        )
    if async_credential_update_enabled is None:
        async_credential_update_enabled = (
            config.async_credential_update_enabled if config is not None else False
        )

    static_credentials = None
    profile_name = None
    credentials_file = None
    imds_config = IMDSConfig()
    imds_disabled = False
    if config is not None:
        properties = config.identity_properties()
        access_key_id = properties.get("access_key_id")
        secret_access_key = properties.get("secret_access_key")
        if access_key_id is not None and secret_access_key is not None:
            static_credentials = AWSCredentialIdentity(
                access_key_id=access_key_id,
                secret_access_key=secret_access_key,
                session_token=properties.get("session_token"),
            )
        profile_name = config.profile
        credentials_file = config.shared_credentials_file
        imds_config = IMDSConfig(
            endpoint_uri=config.ec2_metadata_service_endpoint,
            endpoint_mode=config.ec2_metadata_service_endpoint_mode,
        )
        imds_disabled = config.ec2_metadata_disabled

    resolvers: list[CredentialsResolver] = [
        StaticCredentialsResolver(credentials=static_credentials),
        EnvironmentCredentialsResolver(),
        ProfileCredentialsResolver(
            profile_name=profile_name, credentials_file=credentials_file
        ),
        ContainerCredentialsResolver(
            http_client,
            async_credential_update_enabled=async_credential_update_enabled,
        ),
    ]
    if not imds_disabled:
        resolvers.append(
            IMDSCredentialsResolver(
                http_client,
                imds_config,
                async_credential_update_enabled=async_credential_update_enabled,
            )
        )

    return CredentialsProviderChain(
        resolvers, reuse_last_provider_enabled=reuse_last_provider_enabled
    )
