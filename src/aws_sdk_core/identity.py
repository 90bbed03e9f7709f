#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypedDict

from .interfaces.identity import AWSCredentialsIdentity, Identity, IdentityResolver


@dataclass(kw_only=True, frozen=True)
class AWSCredentialIdentity(AWSCredentialsIdentity):
    access_key_id: str
    """A unique identifier for an AWS user or role."""

    secret_access_key: str
    """A secret key used in conjunction with the access key ID to authenticate
    programmatic access to AWS services."""

    session_token: str | None = None
    """A temporary token used to specify the current session for the supplied
    credentials."""

    expiration: datetime | None = None
    """The expiration time of the identity.

    If time zone is provided, it is updated to UTC. The value must always be in UTC.
    """

    account_id: str | None = None
    """The AWS account's ID."""

    def __repr__(self) -> str:
        # Never expose the secret or session token in logs.
        return (
            f"AWSCredentialIdentity(access_key_id={self.access_key_id!r}, "
            f"expiration={self.expiration!r}, account_id={self.account_id!r})"
        )

    def sanitized(self) -> "AWSCredentialIdentity":
        """A copy with surrounding whitespace stripped from every credential
        component."""
        return AWSCredentialIdentity(
            access_key_id=self.access_key_id.strip(),
            secret_access_key=self.secret_access_key.strip(),
            session_token=(
                self.session_token.strip() if self.session_token is not None else None
            ),
            expiration=self.expiration,
            account_id=self.account_id,
        )


@dataclass(kw_only=True, frozen=True)
class AnonymousCredentialIdentity(Identity):
    """Credentials meaning "do not sign this request"."""

    expiration: datetime | None = None


ANONYMOUS_CREDENTIALS = AnonymousCredentialIdentity()


def is_anonymous(identity: Any) -> bool:
    """Whether ``identity`` opts the request out of signing.

    Besides :py:class:`AnonymousCredentialIdentity`, any identity with neither an
    access key nor a secret key is treated as anonymous.
    """
    if isinstance(identity, AnonymousCredentialIdentity):
        return True
    return (
        getattr(identity, "access_key_id", None) is None
        and getattr(identity, "secret_access_key", None) is None
    )


class AWSIdentityProperties(TypedDict, total=False):
    access_key_id: str | None
    secret_access_key: str | None
    session_token: str | None


type AWSCredentialsResolver = IdentityResolver[
    AWSCredentialIdentity, AWSIdentityProperties
]
