#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
# pyright: reportPrivateUsage=false
import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from aws_sdk_core.credentials_resolvers import RefreshingCredentialsResolver
from aws_sdk_core.exceptions import CredentialsError
from aws_sdk_core.identity import AWSCredentialIdentity, AWSIdentityProperties

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class CountingResolver(RefreshingCredentialsResolver):
    def __init__(self, clock: FakeClock, lifetime: timedelta, **kwargs):
        super().__init__(clock=clock, **kwargs)
        self._test_clock = clock
        self.lifetime = lifetime
        self.fetch_count = 0
        self.fail = False

    async def _fetch_credentials(self) -> AWSCredentialIdentity:
        if self.fail:
            raise CredentialsError("fetch failed")
        self.fetch_count += 1
        return AWSCredentialIdentity(
            access_key_id=f"akid-{self.fetch_count}",
            secret_access_key="secret",
            expiration=self._test_clock.now + self.lifetime,
        )


async def get(resolver: RefreshingCredentialsResolver) -> AWSCredentialIdentity:
    return await resolver.get_identity(properties=AWSIdentityProperties())


async def test_credentials_are_cached():
    resolver = CountingResolver(FakeClock(), timedelta(hours=1))

    first = await get(resolver)
    second = await get(resolver)

    assert first is second
    assert resolver.fetch_count == 1


async def test_stale_credentials_are_refreshed():
    clock = FakeClock()
    resolver = CountingResolver(clock, timedelta(hours=1))
    await get(resolver)

    clock.now = NOW + timedelta(minutes=59, seconds=30)
    credentials = await get(resolver)

    assert credentials.access_key_id == "akid-2"
    assert resolver.fetch_count == 2


async def test_prefetch_disabled_keeps_cached_credentials():
    clock = FakeClock()
    resolver = CountingResolver(clock, timedelta(hours=1))
    await get(resolver)

    clock.now = NOW + timedelta(minutes=57)
    credentials = await get(resolver)

    assert credentials.access_key_id == "akid-1"
    assert resolver._refresh_task is None


async def test_prefetch_refreshes_in_background():
    clock = FakeClock()
    resolver = CountingResolver(
        clock, timedelta(hours=1), async_credential_update_enabled=True
    )
    await get(resolver)

    clock.now = NOW + timedelta(minutes=57)
    credentials = await get(resolver)
    # The caller is not blocked on the refresh.
    assert credentials.access_key_id == "akid-1"

    assert resolver._refresh_task is not None
    await resolver._refresh_task
    assert (await get(resolver)).access_key_id == "akid-2"


async def test_background_failure_keeps_cached_credentials():
    clock = FakeClock()
    resolver = CountingResolver(
        clock, timedelta(hours=1), async_credential_update_enabled=True
    )
    await get(resolver)
    resolver.fail = True

    clock.now = NOW + timedelta(minutes=57)
    await get(resolver)
    assert resolver._refresh_task is not None
    await resolver._refresh_task

    assert (await get(resolver)).access_key_id == "akid-1"


async def test_credentials_without_expiration_never_refresh():
    class NoExpiration(RefreshingCredentialsResolver):
        calls = 0

        async def _fetch_credentials(self) -> AWSCredentialIdentity:
            NoExpiration.calls += 1
            return AWSCredentialIdentity(access_key_id="a", secret_access_key="s")

    resolver = NoExpiration()
    await get(resolver)
    await get(resolver)
    assert NoExpiration.calls == 1


async def test_concurrent_callers_share_one_fetch():
    resolver = CountingResolver(FakeClock(), timedelta(hours=1))

    results = await asyncio.gather(*(get(resolver) for _ in range(5)))

    assert resolver.fetch_count == 1
    assert all(r is results[0] for r in results)


async def test_fetch_failure_propagates():
    resolver = CountingResolver(FakeClock(), timedelta(hours=1))
    resolver.fail = True

    with pytest.raises(CredentialsError):
        await get(resolver)


async def test_close_cancels_background_refresh():
    started = asyncio.Event()

    class SlowResolver(CountingResolver):
        async def _fetch_credentials(self) -> AWSCredentialIdentity:
            if self.fetch_count:
                started.set()
                await asyncio.sleep(3600)
            return await super()._fetch_credentials()

    clock = FakeClock()
    resolver = SlowResolver(
        clock, timedelta(hours=1), async_credential_update_enabled=True
    )
    await get(resolver)
    clock.now = NOW + timedelta(minutes=57)
    await get(resolver)
    task = resolver._refresh_task
    assert task is not None
    await started.wait()

    await resolver.close()

    assert task.cancelled()
    assert resolver._refresh_task is None


def test_subclass_must_implement_fetch():
    class Incomplete(RefreshingCredentialsResolver):
        pass

    with pytest.raises(TypeError):
        Incomplete()  # type: ignore[abstract]
