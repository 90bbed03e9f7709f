#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from typing import Final

from .._http import SdkHttpRequest, header_value
from ..auth.query_string import QueryStringSigner
from ..exceptions import RetryError, ServiceError
from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.http import HTTPClient, HTTPResponse
from ..interfaces.identity import IdentityResolver
from ..retries import (
    RetryPolicy,
    compute_time_offset,
    is_clock_skew_error,
    is_throttling_error,
)
from ..utils import Clock, parse_http_date, utc_now

logger: Final = logging.getLogger(__name__)

ERROR_TYPE_HEADER: Final = "x-amzn-ErrorType"


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


async def parse_service_error(response: HTTPResponse) -> ServiceError:
    """Classify an error response.

    The error code is read from the ``x-amzn-ErrorType`` header and the service's
    clock from the ``Date`` header.
    """
    body = await response.consume_body_async()
    error_code = None
    if error_type := header_value(response.headers, ERROR_TYPE_HEADER):
        error_code = error_type.split(":", 1)[0].strip() or None

    message = f"Service returned {response.status}"
    if response.reason:
        message += f" {response.reason}"
    if error_code:
        message += f" ({error_code})"
    if body:
        message += f": {body.decode('utf-8', errors='replace')}"

    error = ServiceError(
        message,
        status_code=response.status,
        error_code=error_code,
        server_time=parse_http_date(header_value(response.headers, "Date")),
        retry_after=_parse_retry_after(header_value(response.headers, "Retry-After")),
    )
    error.is_throttling_error = is_throttling_error(error)
    return error


class RetryingRequestSender:
    """Sends requests signed with the query string signer, retrying failures.

    Every attempt resolves credentials and signs the original request again, so a
    refreshed identity or a corrected clock offset is picked up. When the service
    rejects a request for clock skew, the offset between the local clock and the
    service's ``Date`` header is applied to later signing times.
    """

    def __init__(
        self,
        *,
        http_client: HTTPClient,
        credentials_resolver: IdentityResolver[
            AWSCredentialIdentity, AWSIdentityProperties
        ],
        signer: QueryStringSigner | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
    ):
        """
        :param http_client: The transport to send signed requests with.
        :param credentials_resolver: Source of the credentials to sign with, usually
            a :py:class:`CredentialsProviderChain`.
        :param signer: Defaults to a :py:class:`QueryStringSigner` sharing ``clock``.
        :param retry_policy: Defaults to :py:class:`RetryPolicy` with 3 retries.
        :param clock: Source of the current time, used to compute clock offsets.
        """
        self._http_client = http_client
        self._credentials_resolver = credentials_resolver
        self._signer = signer or QueryStringSigner(clock=clock)
        self._retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._time_offset = 0

    @property
    def time_offset(self) -> int:
        """Seconds the local clock is ahead of the service, as last reported."""
        return self._time_offset

    async def send(
        self,
        request: SdkHttpRequest,
        *,
        properties: AWSIdentityProperties | None = None,
    ) -> HTTPResponse:
        """Sign and send ``request`` until it succeeds or retries are exhausted.

        :param request: The unsigned request.
        :param properties: Passed to the credentials resolver.
        :raises ServiceError: If the final attempt received an error response.
        :raises CredentialsError: If credentials could not be resolved.
        """
        retry_token = self._retry_policy.acquire_initial_retry_token()

        while True:
            if retry_token.retry_delay:
                await asyncio.sleep(retry_token.retry_delay)

            identity = await self._credentials_resolver.get_identity(
                properties=properties if properties is not None else {}
            )
            try:
                response = await self._attempt(request, identity)
            except Exception as e:
                error = e
            else:
                self._retry_policy.record_success(token=retry_token)
                return response

            if is_clock_skew_error(error):
                self._correct_time_offset(error)

            try:
                retry_token = self._retry_policy.refresh_retry_token_for_retry(
                    token_to_renew=retry_token, error=error, request=request
                )
            except RetryError as retry_error:
                logger.debug("Not retrying request: %s", retry_error)
                attempts = retry_token.retry_count + 1
            else:
                logger.debug(
                    "Retry needed. Attempting request #%s in %.4f seconds.",
                    retry_token.retry_count + 1,
                    retry_token.retry_delay,
                )
                continue

            error.add_note(f"Request failed after {attempts} attempt(s).")
            raise error

    async def _attempt(
        self, request: SdkHttpRequest, identity: AWSCredentialIdentity
    ) -> HTTPResponse:
        signed = self._signer.sign(
            request=request,
            identity=identity,
            properties={"time_offset": self._time_offset},
        )
        response = await self._http_client.send(signed)
        if response.status >= 300:
            raise await parse_service_error(response)
        return response

    def _correct_time_offset(self, error: Exception) -> None:
        server_time = getattr(error, "server_time", None)
        if server_time is None:
            return
        self._time_offset = compute_time_offset(server_time, self._clock())
        logger.debug(
            "Detected clock skew, adjusting signing time offset to %s seconds.",
            self._time_offset,
        )
