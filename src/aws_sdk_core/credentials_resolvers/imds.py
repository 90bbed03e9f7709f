#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Final, Literal

from .. import __version__
from .._http import SdkHttpRequest, SdkHttpRequestBuilder
from ..exceptions import CredentialsError, RetryError, ServiceError
from ..identity import AWSCredentialIdentity
from ..interfaces.http import HTTPClient
from ..interfaces.retries import RetryStrategy
from ..retries import FullJitterBackoffStrategy, RetryPolicy
from .container import parse_credentials_document
from .refresh import RefreshingCredentialsResolver

logger: Final = logging.getLogger(__name__)

_USER_AGENT = f"aws-sdk-python-imds-client/{__version__}"

DISABLED_ENV_VAR = "AWS_EC2_METADATA_DISABLED"

type EndpointMode = Literal["IPv4", "IPv6"]


@dataclass(init=False)
class Config:
    """Configuration for EC2Metadata."""

    _HOST_MAPPING = MappingProxyType(
        {"IPv4": "169.254.169.254", "IPv6": "[fd00:ec2::254]"}
    )
    _MIN_TTL = 5
    _MAX_TTL = 21600

    retry_strategy: RetryStrategy
    endpoint_uri: str
    endpoint_mode: EndpointMode
    token_ttl: int
    ec2_instance_profile_name: str | None

    def __init__(
        self,
        *,
        retry_strategy: RetryStrategy | None = None,
        endpoint_uri: str | None = None,
        endpoint_mode: EndpointMode = "IPv4",
        token_ttl: int = _MAX_TTL,
        ec2_instance_profile_name: str | None = None,
    ):
        self.retry_strategy = retry_strategy or RetryPolicy(
            num_retries=2,
            backoff_strategy=FullJitterBackoffStrategy(
                base_delay=1, max_backoff_time=20, max_retries=2
            ),
        )
        self.endpoint_mode = endpoint_mode
        self.endpoint_uri = self._resolve_endpoint(endpoint_uri, endpoint_mode)
        self.token_ttl = self._validate_token_ttl(token_ttl)
        self.ec2_instance_profile_name = ec2_instance_profile_name

    def _validate_token_ttl(self, ttl: int) -> int:
        if not self._MIN_TTL <= ttl <= self._MAX_TTL:
            raise ValueError(
                f"Token TTL must be between {self._MIN_TTL} and {self._MAX_TTL} seconds."
            )
        return ttl

    def _resolve_endpoint(
        self, endpoint_uri: str | None, endpoint_mode: EndpointMode
    ) -> str:
        if endpoint_uri is not None:
            return endpoint_uri.rstrip("/")

        if endpoint_mode not in self._HOST_MAPPING:
            raise ValueError(
                f"Invalid endpoint mode {endpoint_mode!r}, expected IPv4 or IPv6."
            )
        return f"http://{self._HOST_MAPPING[endpoint_mode]}:80"

    def request(self, *, method: str, path: str) -> SdkHttpRequestBuilder:
        """A request builder addressed to ``path`` on the metadata endpoint."""
        builder = SdkHttpRequestBuilder.from_url(self.endpoint_uri, method=method)
        builder.path = path
        return builder.set_header("User-Agent", _USER_AGENT)


class Token:
    """Represents an IMDSv2 session token with a value and method for checking
    expiration."""

    def __init__(self, value: str, ttl: int):
        self._value = value
        self._ttl = ttl
        self._created_time = datetime.now()

    def is_expired(self) -> bool:
        return datetime.now() - self._created_time >= timedelta(seconds=self._ttl)

    @property
    def value(self) -> str:
        return self._value


class TokenCache:
    """Holds the token needed to fetch instance metadata.

    In addition, it knows how to refresh itself.
    """

    _TOKEN_PATH = "/latest/api/token"  # noqa: S105

    def __init__(self, http_client: HTTPClient, config: Config):
        self._http_client = http_client
        self._config = config
        self._refresh_lock = asyncio.Lock()
        self._token: Token | None = None

    def _should_refresh(self) -> bool:
        return self._token is None or self._token.is_expired()

    def invalidate(self) -> None:
        self._token = None

    async def _refresh(self) -> None:
        async with self._refresh_lock:
            if not self._should_refresh():
                return
            request = (
                self._config.request(method="PUT", path=self._TOKEN_PATH)
                .set_header(
                    "x-aws-ec2-metadata-token-ttl-seconds", str(self._config.token_ttl)
                )
                .build()
            )
            response = await self._http_client.send(request)
            token_value = await response.consume_body_async()
            if response.status != 200:
                raise ServiceError(
                    f"Failed to fetch an IMDS session token: {response.status}",
                    status_code=response.status,
                )
            self._token = Token(token_value.decode("utf-8"), self._config.token_ttl)

    async def get_token(self) -> Token:
        if self._should_refresh():
            await self._refresh()
        assert self._token is not None  # noqa: S101
        return self._token


class EC2Metadata:
    def __init__(self, http_client: HTTPClient, config: Config | None = None):
        self._http_client = http_client
        self._config = config or Config()
        self._token_cache = TokenCache(
            http_client=self._http_client, config=self._config
        )

    async def get(self, *, path: str) -> str:
        """GET a metadata path, retrying failures through the configured retry
        strategy."""
        retry_strategy = self._config.retry_strategy
        retry_token = retry_strategy.acquire_initial_retry_token()

        while True:
            if retry_token.retry_delay:
                await asyncio.sleep(retry_token.retry_delay)

            try:
                return await self._get_once(path=path)
            except Exception as e:
                try:
                    retry_token = retry_strategy.refresh_retry_token_for_retry(
                        token_to_renew=retry_token, error=e
                    )
                except RetryError:
                    raise e

                logger.debug(
                    "Retry needed. Attempting metadata request #%s in %.4f seconds.",
                    retry_token.retry_count + 1,
                    retry_token.retry_delay,
                )

    async def _get_once(self, *, path: str) -> str:
        token = await self._token_cache.get_token()
        request: SdkHttpRequest = (
            self._config.request(method="GET", path=path)
            .set_header("x-aws-ec2-metadata-token", token.value)
            .build()
        )
        response = await self._http_client.send(request)
        body = await response.consume_body_async()
        if response.status == 401:
            # The token expired or was revoked, so fetch a new one on retry.
            self._token_cache.invalidate()
            raise ServiceError(
                "IMDS rejected the session token.", status_code=401, is_retry_safe=True
            )
        if response.status != 200:
            raise ServiceError(
                f"IMDS returned {response.status} for {path}",
                status_code=response.status,
            )
        return body.decode("utf-8")


class IMDSCredentialsResolver(RefreshingCredentialsResolver):
    """Resolves AWS Credentials from an EC2 Instance Metadata Service (IMDS) client."""

    _METADATA_PATH_BASE = "/latest/meta-data/iam/security-credentials"

    def __init__(
        self,
        http_client: HTTPClient,
        config: Config | None = None,
        *,
        async_credential_update_enabled: bool = False,
    ):
        super().__init__(
            async_credential_update_enabled=async_credential_update_enabled
        )
        self._http_client = http_client
        self._config = config or Config()
        self._ec2_metadata_client = EC2Metadata(
            http_client=http_client, config=self._config
        )
        self._profile_name = self._config.ec2_instance_profile_name

    async def _fetch_credentials(self) -> AWSCredentialIdentity:
        if os.getenv(DISABLED_ENV_VAR, "").lower() == "true":
            raise CredentialsError(
                f"Instance metadata access is disabled by {DISABLED_ENV_VAR}."
            )

        try:
            profile = self._profile_name
            if profile is None:
                profile = (
                    await self._ec2_metadata_client.get(path=self._METADATA_PATH_BASE)
                ).strip()

            creds_str = await self._ec2_metadata_client.get(
                path=f"{self._METADATA_PATH_BASE}/{profile}"
            )
        except (ServiceError, OSError) as e:
            raise CredentialsError(
                f"Unable to load credentials from instance metadata: {e}"
            ) from e

        try:
            creds = json.loads(creds_str)
        except ValueError as e:
            raise CredentialsError(
                "Unable to parse JSON from instance metadata credentials."
            ) from e
        return parse_credentials_document(creds, "instance metadata")
