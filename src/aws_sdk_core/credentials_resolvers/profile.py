#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import configparser
import logging
import os
from pathlib import Path
from typing import Final

from ..exceptions import CredentialsError
from ..identity import AWSCredentialIdentity, AWSIdentityProperties
from ..interfaces.identity import IdentityResolver

logger: Final = logging.getLogger(__name__)

CREDENTIALS_FILE_ENV_VAR = "AWS_SHARED_CREDENTIALS_FILE"
PROFILE_ENV_VAR = "AWS_PROFILE"
DEFAULT_PROFILE = "default"


def default_credentials_file() -> Path:
    """The shared credentials file, honoring ``AWS_SHARED_CREDENTIALS_FILE``."""
    if path := os.getenv(CREDENTIALS_FILE_ENV_VAR):
        return Path(path).expanduser()
    return Path.home() / ".aws" / "credentials"


def default_profile_name() -> str:
    return os.getenv(PROFILE_ENV_VAR) or DEFAULT_PROFILE


def read_profile(path: Path, profile_name: str) -> dict[str, str] | None:
    """Read a single section from an INI file, or None if the file or section is
    missing."""
    if not path.is_file():
        return None
    parser = configparser.ConfigParser(interpolation=None)
    try:
        parser.read(path, encoding="utf-8")
    except configparser.Error as e:
        raise CredentialsError(f"Unable to parse {path}.") from e
    if profile_name not in parser:
        return None
    return dict(parser[profile_name])


class ProfileCredentialsResolver(
    IdentityResolver[AWSCredentialIdentity, AWSIdentityProperties]
):
    """Resolves AWS Credentials from a profile in the shared credentials file."""

    def __init__(
        self,
        *,
        profile_name: str | None = None,
        credentials_file: str | os.PathLike[str] | None = None,
    ) -> None:
        """
        :param profile_name: The profile to read. Defaults to ``AWS_PROFILE``, or
            ``default`` when that is unset.
        :param credentials_file: The file to read. Defaults to
            ``AWS_SHARED_CREDENTIALS_FILE``, or ``~/.aws/credentials``.
        """
        self._profile_name = profile_name
        self._credentials_file = credentials_file

    async def get_identity(
        self, *, properties: AWSIdentityProperties
    ) -> AWSCredentialIdentity:
        profile_name = self._profile_name or default_profile_name()
        path = (
            Path(self._credentials_file).expanduser()
            if self._credentials_file is not None
            else default_credentials_file()
        )
        logger.debug("Reading profile %s from %s", profile_name, path)

        values = await asyncio.to_thread(read_profile, path, profile_name)
        if values is None:
            raise CredentialsError(f"Profile {profile_name} not found in {path}.")

        access_key_id = values.get("aws_access_key_id")
        secret_access_key = values.get("aws_secret_access_key")
        if not access_key_id or not secret_access_key:
            raise CredentialsError(
                f"Profile {profile_name} in {path} is missing aws_access_key_id or "
                "aws_secret_access_key."
            )

        return AWSCredentialIdentity(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=values.get("aws_session_token") or None,
            account_id=values.get("aws_account_id") or None,
        )
