#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from ..exceptions import CredentialsError
from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.identity import IdentityResolver


class StaticCredentialsResolver(
    IdentityResolver[AWSCredentialIdentity, AWSIdentityProperties]
):
    """Resolve explicitly configured AWS Credentials.

    Credentials passed to the constructor take precedence. Otherwise they are read
    from the identity properties, which carry the values passed to
    :py:class:`aws_sdk_core.config.SdkConfig`.
    """

    def __init__(self, *, credentials: AWSCredentialIdentity | None = None) -> None:
        self._credentials = credentials

    async def get_identity(
        self, *, properties: AWSIdentityProperties
    ) -> AWSCredentialIdentity:
        if self._credentials is not None:
            return self._credentials

        access_key_id = properties.get("access_key_id")
        secret_access_key = properties.get("secret_access_key")
        if access_key_id is not None and secret_access_key is not None:
            return AWSCredentialIdentity(
                access_key_id=access_key_id,
                secret_access_key=secret_access_key,
                session_token=properties.get("session_token"),
            )
        raise CredentialsError(
            "Attempted to resolve AWS credentials from config, but credentials "
            "weren't configured."
        )
