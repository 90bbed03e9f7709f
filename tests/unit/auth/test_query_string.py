#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from datetime import UTC, datetime

import pytest
from aws_sdk_core._http import SdkHttpRequest, SdkHttpRequestBuilder
from aws_sdk_core.auth.query_string import QueryStringSigner
from aws_sdk_core.exceptions import SdkClientError
from aws_sdk_core.identity import ANONYMOUS_CREDENTIALS, AWSCredentialIdentity
from freezegun import freeze_time

SIGNING_TIME = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)
SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"


def fixed_clock() -> datetime:
    return SIGNING_TIME


@pytest.fixture
def request_to_sign() -> SdkHttpRequest:
    return (
        SdkHttpRequestBuilder(method="POST", host="sqs.us-east-1.amazonaws.com")
        .add_query_parameter("Action", "ListQueues")
        .add_query_parameter("Version", "2012-11-05")
        .build()
    )


@pytest.fixture
def signer() -> QueryStringSigner:
    return QueryStringSigner(clock=fixed_clock)


def test_sign_adds_authentication_parameters(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    signed = signer.sign(request=request_to_sign, identity=identity)

    assert signed.query_parameter("AWSAccessKeyId") == "AKIDEXAMPLE"
    assert signed.query_parameter("SignatureVersion") == "2"
    assert signed.query_parameter("SignatureMethod") == "HmacSHA256"
    assert signed.query_parameter("Timestamp") == "2024-01-02T03:04:05.678Z"
    assert signed.query_parameter("SecurityToken") is None
    assert (
        signed.query_parameter("Signature")
        == "91VmKi8197tinaLVW+wg/9GgoM0mgVMp0tKtiSrL8ng="
    )


def test_sign_with_session_credentials(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE",
        secret_access_key=SECRET_KEY,
        session_token="session+token",
    )
    signed = signer.sign(request=request_to_sign, identity=identity)

    assert signed.query_parameter("SecurityToken") == "session+token"
    assert (
        signed.query_parameter("Signature")
        == "bPBts/3Mj/54vVD1cTSm7PvvC0IPC4mEU9OzgVZ3zdY="
    )


def test_sign_trims_credentials(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    padded = AWSCredentialIdentity(
        access_key_id=" AKIDEXAMPLE\n", secret_access_key=f"\t{SECRET_KEY} "
    )
    signed = signer.sign(request=request_to_sign, identity=padded)

    assert signed.query_parameter("AWSAccessKeyId") == "AKIDEXAMPLE"
    assert (
        signed.query_parameter("Signature")
        == "91VmKi8197tinaLVW+wg/9GgoM0mgVMp0tKtiSrL8ng="
    )


def test_sign_does_not_mutate_the_request(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    original_query = dict(request_to_sign.query)
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    signed = signer.sign(request=request_to_sign, identity=identity)

    assert signed is not request_to_sign
    assert dict(request_to_sign.query) == original_query
    assert request_to_sign.query_parameter("Signature") is None


def test_sign_is_stable_for_a_fixed_clock(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    first = signer.sign(request=request_to_sign, identity=identity)
    second = signer.sign(request=request_to_sign, identity=identity)
    assert first == second


def test_anonymous_credentials_skip_signing(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    signed = signer.sign(request=request_to_sign, identity=ANONYMOUS_CREDENTIALS)
    assert signed is request_to_sign


def test_time_offset_shifts_timestamp(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    signed = signer.sign(
        request=request_to_sign, identity=identity, properties={"time_offset": 900}
    )
    assert signed.query_parameter("Timestamp") == "2024-01-02T02:49:05.678Z"

    signed = signer.sign(
        request=request_to_sign, identity=identity, properties={"time_offset": -60}
    )
    assert signed.query_parameter("Timestamp") == "2024-01-02T03:05:05.678Z"


@freeze_time("2023-06-15 12:30:45.123456")
def test_default_clock_uses_current_time(request_to_sign: SdkHttpRequest) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    signed = QueryStringSigner().sign(request=request_to_sign, identity=identity)
    assert signed.query_parameter("Timestamp") == "2023-06-15T12:30:45.123Z"


def test_non_default_port_is_signed(signer: QueryStringSigner) -> None:
    identity = AWSCredentialIdentity(
        access_key_id="AKIDEXAMPLE", secret_access_key=SECRET_KEY
    )
    default_port = SdkHttpRequestBuilder(host="example.com").build()
    custom_port = SdkHttpRequestBuilder(host="example.com", port=8443).build()

    assert signer.sign(request=default_port, identity=identity).query_parameter(
        "Signature"
    ) != signer.sign(request=custom_port, identity=identity).query_parameter(
        "Signature"
    )


def test_empty_secret_key_raises_client_error(
    signer: QueryStringSigner, request_to_sign: SdkHttpRequest
) -> None:
    identity = AWSCredentialIdentity(access_key_id="AKIDEXAMPLE", secret_access_key="")
    with pytest.raises(SdkClientError):
        signer.sign(request=request_to_sign, identity=identity)
