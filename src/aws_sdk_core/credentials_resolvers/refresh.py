#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import suppress
from datetime import timedelta
from typing import Final

from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.identity import IdentityResolver
from ..utils import Clock, utc_now

logger: Final = logging.getLogger(__name__)

DEFAULT_STALE_TIME: Final = timedelta(minutes=1)
DEFAULT_PREFETCH_TIME: Final = timedelta(minutes=5)


class RefreshingCredentialsResolver(
    IdentityResolver[AWSCredentialIdentity, AWSIdentityProperties], ABC
):
    """Base for resolvers whose credentials expire and must be fetched again.

    Credentials are cached until they are within ``stale_time`` of their
    expiration, at which point callers wait for fresh credentials. When
    ``async_credential_update_enabled`` is set, credentials within ``prefetch_time``
    of expiring are refreshed on a background task while callers keep receiving
    the cached value.

    Subclasses implement :py:meth:`_fetch_credentials`.
    """

    def __init__(
        self,
        *,
        async_credential_update_enabled: bool = False,
        stale_time: timedelta = DEFAULT_STALE_TIME,
        prefetch_time: timedelta = DEFAULT_PREFETCH_TIME,
        clock: Clock = utc_now,
    ) -> None:
        self._async_credential_update_enabled = async_credential_update_enabled
        self._stale_time = stale_time
        self._prefetch_time = prefetch_time
        self._clock = clock
        self._credentials: AWSCredentialIdentity | None = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None

    @abstractmethod
    async def _fetch_credentials(self) -> AWSCredentialIdentity:
        """Retrieve fresh credentials from the underlying source."""
        ...

    def _expires_within(
        self, credentials: AWSCredentialIdentity, window: timedelta
    ) -> bool:
        if credentials.expiration is None:
            return False
        return self._clock() >= credentials.expiration - window

    async def get_identity(
        self, *, properties: AWSIdentityProperties
    ) -> AWSCredentialIdentity:
        credentials = self._credentials
        if credentials is None or self._expires_within(credentials, self._stale_time):
            return await self._refresh()

        if self._async_credential_update_enabled and self._expires_within(
            credentials, self._prefetch_time
        ):
            self._start_background_refresh()
        return credentials

    async def _refresh(self) -> AWSCredentialIdentity:
        async with self._refresh_lock:
            # Another caller may have refreshed while this one waited on the lock.
            credentials = self._credentials
            if credentials is not None and not self._expires_within(
                credentials, self._stale_time
            ):
                return credentials
            credentials = await self._fetch_credentials()
            self._credentials = credentials
            logger.debug(
                "%s refreshed credentials expiring at %s",
                type(self).__name__,
                credentials.expiration,
            )
            return credentials

    def _start_background_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        logger.debug("Prefetching credentials for %s", type(self).__name__)
        self._refresh_task = asyncio.create_task(self._refresh_in_background())

    async def _refresh_in_background(self) -> None:
        try:
            async with self._refresh_lock:
                self._credentials = await self._fetch_credentials()
        except Exception as e:
            logger.warning(
                "Failed to refresh credentials in the background, keeping cached "
                "credentials: %s",
                e,
            )

    async def close(self) -> None:
        """Cancel any in-flight background refresh."""
        task, self._refresh_task = self._refresh_task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
