#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from pathlib import Path

import pytest
from aws_sdk_core.credentials_resolvers import ProfileCredentialsResolver
from aws_sdk_core.exceptions import CredentialsError
from aws_sdk_core.identity import AWSIdentityProperties

CREDENTIALS_FILE = """\
[default]
aws_access_key_id = default_akid
aws_secret_access_key = default_secret

[dev]
aws_access_key_id = dev_akid
aws_secret_access_key = dev%secret
aws_session_token = dev_token

[incomplete]
aws_access_key_id = incomplete_akid
"""


@pytest.fixture
def credentials_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "credentials"
    path.write_text(CREDENTIALS_FILE)
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(path))
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    return path


async def test_default_profile(credentials_file: Path):
    credentials = await ProfileCredentialsResolver().get_identity(
        properties=AWSIdentityProperties()
    )
    assert credentials.access_key_id == "default_akid"
    assert credentials.secret_access_key == "default_secret"
    assert credentials.session_token is None


async def test_profile_from_environment(
    credentials_file: Path, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("AWS_PROFILE", "dev")
    credentials = await ProfileCredentialsResolver().get_identity(
        properties=AWSIdentityProperties()
    )
    assert credentials.access_key_id == "dev_akid"
    # Values are read without interpolation.
    assert credentials.secret_access_key == "dev%secret"
    assert credentials.session_token == "dev_token"


async def test_explicit_profile_and_file(tmp_path: Path, credentials_file: Path):
    other = tmp_path / "other"
    other.write_text("[ci]\naws_access_key_id = ci\naws_secret_access_key = s\n")
    credentials = await ProfileCredentialsResolver(
        profile_name="ci", credentials_file=other
    ).get_identity(properties=AWSIdentityProperties())
    assert credentials.access_key_id == "ci"


async def test_missing_profile(credentials_file: Path):
    with pytest.raises(CredentialsError, match="missing-profile"):
        await ProfileCredentialsResolver(profile_name="missing-profile").get_identity(
            properties=AWSIdentityProperties()
        )


async def test_incomplete_profile(credentials_file: Path):
    with pytest.raises(CredentialsError):
        await ProfileCredentialsResolver(profile_name="incomplete").get_identity(
            properties=AWSIdentityProperties()
        )


async def test_missing_file(tmp_path: Path):
    resolver = ProfileCredentialsResolver(credentials_file=tmp_path / "nope")
    with pytest.raises(CredentialsError):
        await resolver.get_identity(properties=AWSIdentityProperties())


async def test_malformed_file(tmp_path: Path):
    path = tmp_path / "credentials"
    path.write_text("aws_access_key_id = no section header\n")
    resolver = ProfileCredentialsResolver(credentials_file=path)
    with pytest.raises(CredentialsError):
        await resolver.get_identity(properties=AWSIdentityProperties())
