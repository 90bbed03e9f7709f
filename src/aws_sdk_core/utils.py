#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime

type Clock = Callable[[], datetime]
"""A zero-argument callable returning the current time as an aware datetime."""


def utc_now() -> datetime:
    """The default :py:data:`Clock`, backed by the system time."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Ensures that the given datetime is a UTC timezone-aware datetime.

    If the datetime isn't timezone-aware, its timezone is set to UTC. If it is aware,
    it's replaced with the equivalent datetime under UTC.

    :param value: A datetime object that may or may not be timezone-aware.
    :returns: A UTC timezone-aware equivalent datetime.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    else:
        return value.astimezone(UTC)


def epoch_seconds(value: datetime) -> int:
    """Whole seconds since the Unix epoch, truncating any sub-second part."""
    return int(ensure_utc(value).timestamp())


def format_iso8601_millis(value: datetime) -> str:
    """Formats a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    value = ensure_utc(value)
    return f"{value:%Y-%m-%dT%H:%M:%S}.{value.microsecond // 1000:03d}Z"


def signing_time(clock: Clock, time_offset: int = 0) -> datetime:
    """The time to sign with, corrected by a server-reported clock skew.

    :param clock: Source of the current time.
    :param time_offset: Seconds the local clock is ahead of the service's clock.
    """
    now = ensure_utc(clock())
    if time_offset:
        now -= timedelta(seconds=time_offset)
    return now


def parse_http_date(value: str | None) -> datetime | None:
    """Parses an RFC 7231 ``Date`` header value, returning None if it is unusable."""
    if not value:
        return None
    try:
        return ensure_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError):
        return None
