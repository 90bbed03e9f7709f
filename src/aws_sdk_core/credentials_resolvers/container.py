#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import ipaddress
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final

from .._http import SdkHttpRequest, SdkHttpRequestBuilder
from ..exceptions import CredentialsError
from ..identity import AWSCredentialIdentity
from ..interfaces.http import HTTPClient
from ..utils import ensure_utc
from .refresh import RefreshingCredentialsResolver

logger: Final = logging.getLogger(__name__)

_CONTAINER_METADATA_IP = "169.254.170.2"
_CONTAINER_METADATA_ALLOWED_HOSTS = {
    _CONTAINER_METADATA_IP,
    "169.254.170.23",
    "fd00:ec2::23",
    "localhost",
}
_DEFAULT_TIMEOUT = 2
_DEFAULT_RETRIES = 3
_SLEEP_SECONDS = 1


@dataclass
class ContainerCredentialConfig:
    """Configuration for container credential retrieval operations."""

    timeout: int = _DEFAULT_TIMEOUT
    retries: int = _DEFAULT_RETRIES
    retry_delay: float = _SLEEP_SECONDS


def parse_credentials_document(
    document: dict[str, Any], source: str
) -> AWSCredentialIdentity:
    """Build credentials from the JSON document served by the container and instance
    metadata services."""
    access_key_id = document.get("AccessKeyId")
    secret_access_key = document.get("SecretAccessKey")
    if access_key_id is None or secret_access_key is None:
        raise CredentialsError(
            f"AccessKeyId and SecretAccessKey are required for {source} credentials"
        )

    expiration = document.get("Expiration")
    if isinstance(expiration, str):
        try:
            expiration = ensure_utc(datetime.fromisoformat(expiration))
        except ValueError as e:
            raise CredentialsError(
                f"Invalid Expiration in {source} credentials: {expiration}"
            ) from e

    return AWSCredentialIdentity(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=document.get("Token"),
        expiration=expiration,
        account_id=document.get("AccountId"),
    )


class ContainerMetadataClient:
    """Client for remote credential retrieval in Container environments like ECS/EKS."""

    def __init__(self, http_client: HTTPClient, config: ContainerCredentialConfig):
        self._http_client = http_client
        self._config = config

    def _validate_allowed_url(self, request: SdkHttpRequest) -> None:
        if self._is_loopback(request.host):
            return

        if not self._is_allowed_container_metadata_host(request.host):
            raise CredentialsError(
                f"Unsupported host '{request.host}'. "
                f"Can only retrieve metadata from a loopback address or "
                f"one of: {', '.join(sorted(_CONTAINER_METADATA_ALLOWED_HOSTS))}"
            )

    async def get_credentials(self, request: SdkHttpRequest) -> dict[str, Any]:
        self._validate_allowed_url(request)
        request = request.to_builder().set_header("Accept", "application/json").build()

        attempts = 0
        last_exc = None
        while attempts < self._config.retries:
            try:
                response = await asyncio.wait_for(
                    self._http_client.send(request), self._config.timeout
                )
                body = await response.consume_body_async()
                if response.status != 200:
                    raise CredentialsError(
                        f"Container metadata service returned {response.status}: "
                        f"{body.decode('utf-8')}"
                    )
                try:
                    return json.loads(body.decode("utf-8"))
                except ValueError as e:
                    raise CredentialsError(
                        "Unable to parse JSON from container metadata: "
                        f"{body.decode('utf-8', errors='replace')}"
                    ) from e
            except Exception as e:
                logger.debug("Container metadata request failed: %s", e)
                last_exc = e
                attempts += 1
                if attempts < self._config.retries:
                    await asyncio.sleep(self._config.retry_delay)

        raise CredentialsError(
            f"Failed to retrieve container metadata after {self._config.retries} "
            "attempt(s)"
        ) from last_exc

    def _is_loopback(self, hostname: str) -> bool:
        try:
            return ipaddress.ip_address(hostname).is_loopback
        except ValueError:
            return False

    def _is_allowed_container_metadata_host(self, hostname: str) -> bool:
        return hostname in _CONTAINER_METADATA_ALLOWED_HOSTS


class ContainerCredentialsResolver(RefreshingCredentialsResolver):
    """Resolves AWS Credentials from container credential sources."""

    ENV_VAR = "AWS_CONTAINER_CREDENTIALS_RELATIVE_URI"
    ENV_VAR_FULL = "AWS_CONTAINER_CREDENTIALS_FULL_URI"
    ENV_VAR_AUTH_TOKEN = "AWS_CONTAINER_AUTHORIZATION_TOKEN"  # noqa: S105
    ENV_VAR_AUTH_TOKEN_FILE = "AWS_CONTAINER_AUTHORIZATION_TOKEN_FILE"  # noqa: S105

    def __init__(
        self,
        http_client: HTTPClient,
        config: ContainerCredentialConfig | None = None,
        *,
        async_credential_update_enabled: bool = False,
    ):
        super().__init__(
            async_credential_update_enabled=async_credential_update_enabled
        )
        self._http_client = http_client
        self._config = config or ContainerCredentialConfig()
        self._client = ContainerMetadataClient(http_client, self._config)

    def _resolve_request_from_env(self) -> SdkHttpRequestBuilder:
        if self.ENV_VAR in os.environ:
            return SdkHttpRequestBuilder(
                scheme="http",
                host=_CONTAINER_METADATA_IP,
                path=os.environ[self.ENV_VAR],
            )
        elif self.ENV_VAR_FULL in os.environ:
            try:
                return SdkHttpRequestBuilder.from_url(os.environ[self.ENV_VAR_FULL])
            except ValueError as e:
                raise CredentialsError(
                    f"Invalid {self.ENV_VAR_FULL}: {os.environ[self.ENV_VAR_FULL]}"
                ) from e
        else:
            raise CredentialsError(
                f"Neither {self.ENV_VAR} or {self.ENV_VAR_FULL} environment "
                "variables are set. Unable to resolve credentials."
            )

    async def _resolve_auth_token_from_env(self) -> str | None:
        if self.ENV_VAR_AUTH_TOKEN_FILE in os.environ:
            filename = os.environ[self.ENV_VAR_AUTH_TOKEN_FILE]
            try:
                return await asyncio.to_thread(self._read_file, filename)
            except (FileNotFoundError, PermissionError) as e:
                raise CredentialsError(f"Unable to open {filename}.") from e
        return os.environ.get(self.ENV_VAR_AUTH_TOKEN)

    def _read_file(self, filename: str) -> str:
        with open(filename) as f:
            try:
                return f.read().strip()
            except UnicodeDecodeError as e:
                raise CredentialsError(
                    f"Unable to read valid utf-8 bytes from {filename}."
                ) from e

    async def _fetch_credentials(self) -> AWSCredentialIdentity:
        builder = self._resolve_request_from_env()
        auth_token = await self._resolve_auth_token_from_env()
        if auth_token is not None:
            builder.set_header("Authorization", auth_token)

        document = await self._client.get_credentials(builder.build())
        return parse_credentials_document(document, "container")
