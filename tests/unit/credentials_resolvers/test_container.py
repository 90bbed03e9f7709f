#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
# pyright: reportPrivateUsage=false
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from aws_sdk_core.credentials_resolvers import ContainerCredentialsResolver
from aws_sdk_core.credentials_resolvers.container import (
    ContainerCredentialConfig,
    ContainerMetadataClient,
)
from aws_sdk_core.exceptions import CredentialsError
from aws_sdk_core.identity import AWSIdentityProperties
from aws_sdk_core.testing import MockHTTPClient, create_test_request

EXPIRATION = datetime.now(UTC).replace(microsecond=0) + timedelta(hours=6)
DEFAULT_RESPONSE_DATA = {
    "AccessKeyId": "akid123",
    "SecretAccessKey": "s3cr3t",
    "Token": "session_token",
    "Expiration": EXPIRATION.isoformat().replace("+00:00", "Z"),
    "AccountId": "123456789012",
}
NO_DELAY = ContainerCredentialConfig(retry_delay=0)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        ContainerCredentialsResolver.ENV_VAR,
        ContainerCredentialsResolver.ENV_VAR_FULL,
        ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN,
        ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN_FILE,
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def http_client() -> MockHTTPClient:
    return MockHTTPClient()


def add_credentials_response(http_client: MockHTTPClient) -> None:
    http_client.add_response(body=json.dumps(DEFAULT_RESPONSE_DATA).encode("utf-8"))


def test_config_defaults():
    config = ContainerCredentialConfig()
    assert config.timeout == 2
    assert config.retries == 3
    assert config.retry_delay == 1


@pytest.mark.parametrize(
    "host",
    ["169.254.170.2", "169.254.170.23", "fd00:ec2::23", "localhost", "127.0.0.1"],
)
async def test_allowed_hosts(http_client: MockHTTPClient, host: str):
    add_credentials_response(http_client)
    client = ContainerMetadataClient(http_client, NO_DELAY)

    document = await client.get_credentials(create_test_request(host=host))

    assert document == DEFAULT_RESPONSE_DATA
    assert http_client.captured_requests[0].header("Accept") == "application/json"


async def test_disallowed_host(http_client: MockHTTPClient):
    client = ContainerMetadataClient(http_client, NO_DELAY)

    with pytest.raises(CredentialsError, match="Unsupported host"):
        await client.get_credentials(create_test_request(host="example.com"))
    assert http_client.call_count == 0


async def test_client_retries_then_succeeds(http_client: MockHTTPClient):
    http_client.add_error(ConnectionError("reset"))
    http_client.add_response(status=500, body=b"oops")
    add_credentials_response(http_client)
    client = ContainerMetadataClient(http_client, NO_DELAY)

    document = await client.get_credentials(create_test_request(host="localhost"))

    assert document["AccessKeyId"] == "akid123"
    assert http_client.call_count == 3


async def test_client_gives_up_after_retries(http_client: MockHTTPClient):
    for _ in range(3):
        http_client.add_response(status=500, body=b"oops")
    client = ContainerMetadataClient(http_client, NO_DELAY)

    with pytest.raises(CredentialsError, match="after 3 attempt"):
        await client.get_credentials(create_test_request(host="localhost"))
    assert http_client.call_count == 3


async def test_client_invalid_json(http_client: MockHTTPClient):
    http_client.add_response(body=b"not json")
    client = ContainerMetadataClient(
        http_client, ContainerCredentialConfig(retries=1, retry_delay=0)
    )

    with pytest.raises(CredentialsError) as exc_info:
        await client.get_credentials(create_test_request(host="localhost"))
    assert "Unable to parse JSON" in str(exc_info.value.__cause__)


async def test_relative_uri(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR, "/v2/credentials/abc")
    add_credentials_response(http_client)
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    credentials = await resolver.get_identity(properties=AWSIdentityProperties())

    assert credentials.access_key_id == "akid123"
    assert credentials.secret_access_key == "s3cr3t"
    assert credentials.session_token == "session_token"
    assert credentials.account_id == "123456789012"
    assert credentials.expiration == EXPIRATION
    request = http_client.captured_requests[0]
    assert request.build_url() == "http://169.254.170.2/v2/credentials/abc"
    assert request.header("Authorization") is None


async def test_full_uri_with_token(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv(
        ContainerCredentialsResolver.ENV_VAR_FULL, "http://localhost:8080/creds"
    )
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN, "token")
    add_credentials_response(http_client)
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    await resolver.get_identity(properties=AWSIdentityProperties())

    request = http_client.captured_requests[0]
    assert request.host == "localhost"
    assert request.port == 8080
    assert request.path == "/creds"
    assert request.header("Authorization") == "token"


async def test_token_file_takes_precedence(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
):
    token_file = tmp_path / "token"
    token_file.write_text("file-token\n")
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR, "/creds")
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN, "env-token")
    monkeypatch.setenv(
        ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN_FILE, str(token_file)
    )
    add_credentials_response(http_client)
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    await resolver.get_identity(properties=AWSIdentityProperties())

    assert http_client.captured_requests[0].header("Authorization") == "file-token"


async def test_missing_token_file(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
):
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR, "/creds")
    monkeypatch.setenv(
        ContainerCredentialsResolver.ENV_VAR_AUTH_TOKEN_FILE, str(tmp_path / "nope")
    )
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    with pytest.raises(CredentialsError):
        await resolver.get_identity(properties=AWSIdentityProperties())


async def test_no_environment(http_client: MockHTTPClient):
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    with pytest.raises(CredentialsError, match="Unable to resolve credentials"):
        await resolver.get_identity(properties=AWSIdentityProperties())
    assert http_client.call_count == 0


async def test_missing_keys_in_document(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR, "/creds")
    http_client.add_response(body=b'{"AccessKeyId": "akid"}')
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    with pytest.raises(CredentialsError, match="SecretAccessKey"):
        await resolver.get_identity(properties=AWSIdentityProperties())


async def test_credentials_are_cached_until_stale(
    http_client: MockHTTPClient, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv(ContainerCredentialsResolver.ENV_VAR, "/creds")
    add_credentials_response(http_client)
    resolver = ContainerCredentialsResolver(http_client, NO_DELAY)

    first = await resolver.get_identity(properties=AWSIdentityProperties())
    second = await resolver.get_identity(properties=AWSIdentityProperties())

    assert first is second
    assert http_client.call_count == 1
