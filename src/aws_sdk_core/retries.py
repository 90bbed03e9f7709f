#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from ._http import SdkHttpRequest
from .exceptions import RetryError, SdkConfigurationError
from .interfaces import retries as retries_interface
from .utils import ensure_utc

logger: Final = logging.getLogger(__name__)

_SYSTEM_RANDOM: Final = random.SystemRandom()

DEFAULT_BASE_DELAY: Final = 0.1
"""Base delay, in seconds, for non-throttling failures."""

DEFAULT_THROTTLED_BASE_DELAY: Final = 0.5
"""Base delay, in seconds, for throttling failures."""

DEFAULT_MAX_BACKOFF_IN_SECONDS: Final = 20.0

DEFAULT_NUM_RETRIES: Final = 3

RETRYABLE_STATUS_CODES: Final = frozenset({500, 502, 503, 504})

THROTTLING_STATUS_CODE: Final = 429

THROTTLING_ERROR_CODES: Final = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottledException",
        "TooManyRequestsException",
        "ProvisionedThroughputExceededException",
        "TransactionInProgressException",
        "RequestLimitExceeded",
        "BandwidthLimitExceeded",
        "LimitExceededException",
        "RequestThrottled",
        "SlowDown",
        "PriorRequestNotComplete",
        "EC2ThrottledException",
    }
)

CLOCK_SKEW_ERROR_CODES: Final = frozenset(
    {
        "RequestTimeTooSkewed",
        "RequestExpired",
        "InvalidSignatureException",
        "SignatureDoesNotMatch",
        "AuthFailure",
        "RequestInTheFuture",
    }
)


@dataclass(kw_only=True, frozen=True)
class RetryPolicyContext:
    """The state of a failed attempt, as seen by retry conditions and backoff
    strategies."""

    retries_attempted: int = 0
    """The number of retries already made. Zero after the initial attempt fails."""

    exception: Exception | None = None
    """The failure that triggered the retry decision."""

    original_request: SdkHttpRequest | None = None
    """The unsigned request being retried."""

    http_status_code: int | None = None
    """The status code of the error response, if a response was received."""

    def __post_init__(self) -> None:
        if self.retries_attempted < 0:
            raise SdkConfigurationError(
                f"retries_attempted must not be negative, got {self.retries_attempted}"
            )

    @property
    def status_code(self) -> int | None:
        """The status code of the context, falling back to the exception's."""
        if self.http_status_code is not None:
            return self.http_status_code
        return getattr(self.exception, "status_code", None)


def _millis(seconds: float) -> int:
    return int(round(seconds * 1000))


def _require_positive(name: str, value: float) -> None:
    if value <= 0:
        raise SdkConfigurationError(f"{name} must be positive, got {value}")


def _exponential_delay_millis(
    retries_attempted: int, base_delay_ms: int, max_backoff_ms: int, max_retries: int
) -> int:
    retries = min(retries_attempted, max_retries)
    return min((1 << retries) * base_delay_ms, max_backoff_ms)


def calculate_exponential_delay(
    retries_attempted: int,
    base_delay: float,
    max_backoff_time: float,
    max_retries: int,
) -> float:
    """The truncated binary exponential delay, without jitter:

    .. code-block:: python

        min(base_delay * 2 ** min(retries_attempted, max_retries), max_backoff_time)

    Durations are in seconds, and the result is rounded to whole milliseconds.
    """
    return (
        _exponential_delay_millis(
            retries_attempted, _millis(base_delay), _millis(max_backoff_time), max_retries
        )
        / 1000
    )


class _ExponentialBackoffStrategy:
    def __init__(
        self,
        *,
        base_delay: float,
        max_backoff_time: float,
        max_retries: int,
        random: Callable[[], float] = _SYSTEM_RANDOM.random,
    ):
        _require_positive("base_delay", base_delay)
        _require_positive("max_backoff_time", max_backoff_time)
        _require_positive("max_retries", max_retries)
        self.base_delay = base_delay
        self.max_backoff_time = max_backoff_time
        self.max_retries = max_retries
        self._random = random

    def _ceiling_millis(self, context: RetryPolicyContext) -> int:
        return _exponential_delay_millis(
            context.retries_attempted,
            _millis(self.base_delay),
            _millis(self.max_backoff_time),
            self.max_retries,
        )

    def _next_int(self, bound: int) -> int:
        """A uniformly distributed integer in ``[0, bound)``, or 0 for an empty
        range."""
        if bound <= 0:
            return 0
        return min(int(self._random() * bound), bound - 1)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(base_delay={self.base_delay}, "
            f"max_backoff_time={self.max_backoff_time}, "
            f"max_retries={self.max_retries})"
        )


class FullJitterBackoffStrategy(_ExponentialBackoffStrategy):
    """Exponential backoff with full jitter:

    .. code-block:: python

        random_between(0, calculate_exponential_delay(...))

    .. seealso:: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
    """

    def compute_delay_before_next_retry(self, context: RetryPolicyContext) -> float:
        return self._next_int(self._ceiling_millis(context)) / 1000


class EqualJitterBackoffStrategy(_ExponentialBackoffStrategy):
    """Exponential backoff with equal jitter:

    .. code-block:: python

        ceiling = calculate_exponential_delay(...)
        ceiling / 2 + random_between(0, ceiling / 2 + 1ms)

    Similar to :py:class:`FullJitterBackoffStrategy` but always keeps at least half
    of the exponential delay.
    """

    def compute_delay_before_next_retry(self, context: RetryPolicyContext) -> float:
        half = self._ceiling_millis(context) // 2
        return (half + self._next_int(half + 1)) / 1000


class FixedDelayBackoffStrategy:
    """Waits the same amount of time before every retry."""

    def __init__(self, delay: float):
        """
        :param delay: The delay in seconds. Zero disables waiting.
        """
        if delay < 0:
            raise SdkConfigurationError(f"delay must not be negative, got {delay}")
        self.delay = delay

    def compute_delay_before_next_retry(self, context: RetryPolicyContext) -> float:
        return self.delay

    def __repr__(self) -> str:
        return f"FixedDelayBackoffStrategy(delay={self.delay})"


DEFAULT_BACKOFF_STRATEGY: Final = FullJitterBackoffStrategy(
    base_delay=DEFAULT_BASE_DELAY,
    max_backoff_time=DEFAULT_MAX_BACKOFF_IN_SECONDS,
    max_retries=DEFAULT_NUM_RETRIES,
)

DEFAULT_THROTTLING_BACKOFF_STRATEGY: Final = EqualJitterBackoffStrategy(
    base_delay=DEFAULT_THROTTLED_BASE_DELAY,
    max_backoff_time=DEFAULT_MAX_BACKOFF_IN_SECONDS,
    max_retries=DEFAULT_NUM_RETRIES,
)

NO_BACKOFF: Final = FixedDelayBackoffStrategy(0.001)


def _error_code(error: Exception | None) -> str | None:
    return getattr(error, "error_code", None)


def is_throttling_error(
    error: Exception | None, status_code: int | None = None
) -> bool:
    """Whether the service asked the client to slow down."""
    if getattr(error, "is_throttling_error", False):
        return True
    if status_code is None:
        status_code = getattr(error, "status_code", None)
    return (
        status_code == THROTTLING_STATUS_CODE
        or _error_code(error) in THROTTLING_ERROR_CODES
    )


def is_clock_skew_error(error: Exception | None) -> bool:
    """Whether the service rejected the request because of the signing time."""
    return _error_code(error) in CLOCK_SKEW_ERROR_CODES


def compute_time_offset(server_time: datetime, now: datetime) -> int:
    """Seconds the local clock is ahead of the server, to be subtracted from the
    signing time of later requests."""
    return int((ensure_utc(now) - ensure_utc(server_time)).total_seconds())


class SdkRetryCondition:
    """The default classification of retryable failures.

    A failure is retryable when the error says so, or when it is a throttling error,
    a clock skew error, a 500, 502, 503 or 504 response, or a transient I/O error.
    """

    def should_retry(self, context: RetryPolicyContext) -> bool:
        error = context.exception
        if isinstance(error, retries_interface.ErrorRetryInfo):
            if error.is_retry_safe is not None:
                return error.is_retry_safe

        status_code = context.status_code
        if is_throttling_error(error, status_code) or is_clock_skew_error(error):
            return True
        if status_code in RETRYABLE_STATUS_CODES:
            return True
        return isinstance(error, ConnectionError | TimeoutError)


@dataclass(kw_only=True)
class RetryPolicyToken:
    """Retry token issued by :py:class:`RetryPolicy`."""

    retry_count: int
    """Retry count is the total number of attempts minus the initial attempt."""

    retry_delay: float
    """Delay in seconds to wait before the retry attempt."""

    @property
    def attempt_count(self) -> int:
        """The total number of attempts including the initial attempt and retries."""
        return self.retry_count + 1


class RetryPolicy(retries_interface.RetryStrategy):
    def __init__(
        self,
        *,
        num_retries: int = DEFAULT_NUM_RETRIES,
        backoff_strategy: retries_interface.BackoffStrategy = DEFAULT_BACKOFF_STRATEGY,
        throttling_backoff_strategy: retries_interface.BackoffStrategy = (
            DEFAULT_THROTTLING_BACKOFF_STRATEGY
        ),
        retry_condition: retries_interface.RetryCondition | None = None,
    ):
        """Decides whether and when a failed request is retried.

        :param num_retries: Upper limit on the number of retries after the initial
            attempt. Zero disables retries.

        :param backoff_strategy: Computes the delay before retrying non-throttling
            failures.

        :param throttling_backoff_strategy: Computes the delay before retrying
            throttling failures.

        :param retry_condition: Classifies failures as retryable. Defaults to
            :py:class:`SdkRetryCondition`.
        """
        if num_retries < 0:
            raise SdkConfigurationError(
                f"num_retries must not be negative, got {num_retries}"
            )
        self.num_retries = num_retries
        self.max_attempts = num_retries + 1
        self.backoff_strategy = backoff_strategy
        self.throttling_backoff_strategy = throttling_backoff_strategy
        self.retry_condition = retry_condition or SdkRetryCondition()

    def should_retry(self, context: RetryPolicyContext) -> bool:
        """Whether another attempt should be made after the failure in ``context``."""
        if context.retries_attempted >= self.num_retries:
            return False
        return self.retry_condition.should_retry(context)

    def compute_delay_before_next_retry(self, context: RetryPolicyContext) -> float:
        """The delay in seconds before the next attempt.

        A ``retry_after`` hint carried by the error takes precedence over the backoff
        strategies.
        """
        retry_after = getattr(context.exception, "retry_after", None)
        if retry_after is not None:
            return retry_after
        if is_throttling_error(context.exception, context.status_code):
            return self.throttling_backoff_strategy.compute_delay_before_next_retry(
                context
            )
        return self.backoff_strategy.compute_delay_before_next_retry(context)

    def acquire_initial_retry_token(
        self, *, token_scope: str | None = None
    ) -> RetryPolicyToken:
        """Called before the first attempt.

        :param token_scope: This argument is ignored by this retry strategy.
        """
        return RetryPolicyToken(retry_count=0, retry_delay=0)

    def refresh_retry_token_for_retry(
        self,
        *,
        token_to_renew: retries_interface.RetryToken,
        error: Exception,
        request: SdkHttpRequest | None = None,
    ) -> RetryPolicyToken:
        """Replace an existing retry token from a failed attempt with a new token.

        :param token_to_renew: The token used for the previous failed attempt.

        :param error: The error that triggered the need for a retry.

        :param request: The unsigned request that failed, made available to the
            retry condition.

        :raises RetryError: If no further retry attempts are allowed.
        """
        context = RetryPolicyContext(
            retries_attempted=token_to_renew.retry_count,
            exception=error,
            original_request=request,
        )
        if not self.should_retry(context):
            raise RetryError(
                f"Not retrying after {token_to_renew.retry_count + 1} attempt(s): "
                f"{type(error).__name__}"
            )
        retry_delay = self.compute_delay_before_next_retry(context)
        return RetryPolicyToken(
            retry_count=token_to_renew.retry_count + 1, retry_delay=retry_delay
        )

    def record_success(self, *, token: retries_interface.RetryToken) -> None:
        """Not used by this retry strategy."""
        pass
