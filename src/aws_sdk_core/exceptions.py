#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal


class SdkError(Exception):
    """Base exception type for all exceptions raised by aws-sdk-core."""


class SdkClientError(SdkError):
    """An error that happened on the client side, before or while building a request.

    These errors are never caused by the service and are not retried by the signers.
    """


class SdkConfigurationError(SdkClientError, ValueError):
    """A required value is missing or a configured value is out of range."""


class SigningError(SdkError):
    """Key material could not be used to compute a signature."""


class CredentialsError(SdkClientError):
    """A credentials resolver was unable to resolve credentials."""


class CredentialsChainError(CredentialsError):
    """None of the resolvers in a credentials chain could resolve credentials."""

    def __init__(self, message: str, errors: list[Exception]) -> None:
        super().__init__(message)
        self.errors = errors
        """The failure raised by each resolver, in chain order."""


class RetryError(SdkError):
    """Base exception type for all exceptions raised in retry strategies."""


type Fault = Literal["client", "server"] | None
"""Whether the client or server is at fault.

If None, then there was not enough information to determine fault.
"""


@dataclass(kw_only=True)
class CallError(SdkError):
    """Base exception for a failed call to a service.

    Implements :py:class:`.interfaces.retries.ErrorRetryInfo`.
    """

    fault: Fault = None
    """Whether the client or server is at fault.

    If None, then there was not enough information to determine fault.
    """

    message: str = field(default="", kw_only=False)
    """The message of the error."""

    is_retry_safe: bool | None = None
    """Whether the exception is safe to retry.

    A value of True does not mean a retry will occur, but rather that a retry is allowed
    to occur.

    A value of None indicates that there is not enough information available to
    determine if a retry is safe.
    """

    retry_after: float | None = None
    """The amount of time, in seconds, that should pass before a retry.

    Retry strategies MAY choose to wait longer.
    """

    is_throttling_error: bool = False
    """Whether the error is a throttling error."""

    error_code: str | None = None
    """The service-defined error code, such as ``RequestTimeTooSkewed``."""

    def __post_init__(self):
        super().__init__(self.message)


@dataclass(kw_only=True)
class ServiceError(CallError):
    """A call that reached the service and received an error response."""

    status_code: int = 500
    """The HTTP status code of the error response."""

    server_time: datetime | None = None
    """The time reported by the service in the response's ``Date`` header."""

    def __post_init__(self):
        if self.fault is None:
            self.fault = "server" if self.status_code >= 500 else "client"
        super().__post_init__()
