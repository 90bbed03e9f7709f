#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import os

from ..exceptions import CredentialsError
from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.identity import IdentityResolver

ACCESS_KEY_ENV_VAR = "AWS_ACCESS_KEY_ID"
SECRET_KEY_ENV_VAR = "AWS_SECRET_ACCESS_KEY"
ALTERNATE_SECRET_KEY_ENV_VAR = "AWS_SECRET_KEY"
SESSION_TOKEN_ENV_VAR = "AWS_SESSION_TOKEN"
ACCOUNT_ID_ENV_VAR = "AWS_ACCOUNT_ID"


class EnvironmentCredentialsResolver(
    IdentityResolver[AWSCredentialIdentity, AWSIdentityProperties]
):
    """Resolves AWS Credentials from system environment variables.

    The environment is read on every call, so changes made after construction are
    picked up.
    """

    async def get_identity(
        self, *, properties: AWSIdentityProperties
    ) -> AWSCredentialIdentity:
        access_key_id = os.getenv(ACCESS_KEY_ENV_VAR)
        secret_access_key = os.getenv(SECRET_KEY_ENV_VAR) or os.getenv(
            ALTERNATE_SECRET_KEY_ENV_VAR
        )

        if not access_key_id or not secret_access_key:
            raise CredentialsError(
                f"{ACCESS_KEY_ENV_VAR} and {SECRET_KEY_ENV_VAR} "
                f"(or {ALTERNATE_SECRET_KEY_ENV_VAR}) are required"
            )

        return AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=os.getenv(SESSION_TOKEN_ENV_VAR) or None,
            account_id=os.getenv(ACCOUNT_ID_ENV_VAR) or None,
        )
