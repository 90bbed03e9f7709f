#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from typing import Final, TypedDict

from .._http import SdkHttpRequest
from ..exceptions import SdkClientError, SigningError
from ..identity import AWSCredentialIdentity, AnonymousCredentialIdentity, is_anonymous
from ..utils import Clock, format_iso8601_millis, signing_time, utc_now
from .algorithms import SigningAlgorithm, sign_and_base64_encode
from .canonical import canonicalize

logger: Final = logging.getLogger(__name__)

SIGNATURE_VERSION: Final = "2"


class QueryStringSigningProperties(TypedDict, total=False):
    time_offset: int
    """Seconds the local clock is ahead of the service, as reported by a clock skew
    error. The signing time is the current time minus this offset."""


class QueryStringSigner:
    """Request signer for the version 2 query string signature scheme.

    Authentication parameters are added to the query string of a copy of the
    request, and the signature is an HMAC-SHA256 of the canonical string to sign.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        """Initialize the signer.

        :param clock: Source of the current time. Tests inject a fixed clock here.
        """
        self._clock = clock

    def sign(
        self,
        *,
        request: SdkHttpRequest,
        identity: AWSCredentialIdentity | AnonymousCredentialIdentity,
        properties: QueryStringSigningProperties | None = None,
    ) -> SdkHttpRequest:
        """Generate and apply a version 2 signature to a copy of the request.

        :param request: The request to sign. It is never modified.
        :param identity: The credentials to sign with. Anonymous credentials return
            ``request`` itself, unsigned.
        :param properties: Per-call signing context such as the clock offset.
        :raises SdkClientError: If the secret key cannot be used for signing.
        """
        if is_anonymous(identity):
            logger.debug("Anonymous credentials, skipping query string signing.")
            return request
        if not isinstance(identity, AWSCredentialIdentity):
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )

        properties = properties or {}
        credentials = identity.sanitized()
        timestamp = signing_time(self._clock, properties.get("time_offset", 0))

        builder = request.to_builder()
        builder.set_query_parameter("AWSAccessKeyId", credentials.access_key_id)
        builder.set_query_parameter("SignatureVersion", SIGNATURE_VERSION)
        builder.set_query_parameter("Timestamp", format_iso8601_millis(timestamp))
        if credentials.session_token:
            builder.set_query_parameter("SecurityToken", credentials.session_token)
        builder.set_query_parameter(
            "SignatureMethod", SigningAlgorithm.HmacSHA256.value
        )

        string_to_sign = canonicalize(builder.build())
        logger.debug("Calculated string to sign:\n%s", string_to_sign)
        try:
            signature = sign_and_base64_encode(
                string_to_sign,
                credentials.secret_access_key,
                SigningAlgorithm.HmacSHA256,
            )
        except SigningError as e:
            raise SdkClientError(
                f"Unable to calculate a request signature: {e}"
            ) from e

        builder.set_query_parameter("Signature", signature)
        return builder.build()
