#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Presigned URLs for private content served through a CloudFront distribution.

Two flavors of signed URL are supported. A canned policy only restricts the
expiration time, and the policy itself is not included in the URL. A custom policy
can additionally restrict the source IP range and an activation time, and is
embedded in the URL in URL-safe base64.

Policies are signed with SHA1withRSA using the private key of a CloudFront key
pair, and the key pair ID tells the service which public key to verify against.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from os import PathLike
from typing import Final

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ..exceptions import SdkClientError, SdkConfigurationError, SigningError
from ..utils import epoch_seconds
from .algorithms import (
    load_private_key,
    make_bytes_url_safe,
    make_string_url_safe,
    sign_with_sha1_rsa,
)

logger: Final = logging.getLogger(__name__)

ANY_RESOURCE: Final = "*"
ANY_IP_ADDRESS: Final = "0.0.0.0/0"


class SignedUrlProtocol(Enum):
    """Protocols that content can be served over through a distribution."""

    HTTP = "http"
    HTTPS = "https"
    RTMP = "rtmp"


def generate_resource_path(
    protocol: SignedUrlProtocol, distribution_domain: str, s3_object_key: str
) -> str:
    """Build the resource path to sign for an object in a distribution.

    HTTP and HTTPS resources are full URLs. RTMP resources are only the object key.

    :param protocol: The protocol the content will be served over.
    :param distribution_domain: The distribution's domain, such as
        ``d1234.cloudfront.net``.
    :param s3_object_key: The key of the object, without a leading slash.
    """
    match protocol:
        case SignedUrlProtocol.HTTP | SignedUrlProtocol.HTTPS:
            return f"{protocol.value}://{distribution_domain}/{s3_object_key}"
        case SignedUrlProtocol.RTMP:
            return s3_object_key


_UNQUOTABLE = frozenset('"\\')


def _check_resource(resource: str) -> None:
    if not _UNQUOTABLE.isdisjoint(resource):
        raise SdkConfigurationError(
            f"Resource {resource!r} must not contain double quotes or backslashes."
        )


def build_canned_policy(resource_url_or_path: str, date_less_than: datetime) -> str:
    """Build the JSON policy implied by a canned policy signed URL.

    :param resource_url_or_path: The URL or path that uniquely identifies the
        resource. Wildcards are not allowed. Double quotes and backslashes
        are rejected.
    :param date_less_than: The time after which the URL stops working.
    """
    if not resource_url_or_path:
        raise SdkConfigurationError("A resource URL or path is required.")
    _check_resource(resource_url_or_path)
    if date_less_than is None:
        raise SdkConfigurationError("An expiration time is required.")
    return (
        '{"Statement":[{"Resource":"'
        + resource_url_or_path
        + '","Condition":{"DateLessThan":{"AWS:EpochTime":'
        + str(epoch_seconds(date_less_than))
        + "}}}]}"
    )


def build_custom_policy(
    resource_path: str,
    epoch_date_less_than: datetime,
    epoch_date_greater_than: datetime | None,
    ip_address: str,
) -> str:
    """Render a custom policy statement with every value already resolved.

    :raises SdkConfigurationError: If the resource contains a double quote or a
        backslash, which the policy document cannot carry.
    """
    _check_resource(resource_path)
    policy = (
        '{"Statement": [{"Resource":"'
        + resource_path
        + '","Condition":{"DateLessThan":{"AWS:EpochTime":'
        + str(epoch_seconds(epoch_date_less_than))
        + '},"IpAddress":{"AWS:SourceIp":"'
        + ip_address
        + '"}'
    )
    if epoch_date_greater_than is not None:
        policy += (
            ',"DateGreaterThan":{"AWS:EpochTime":'
            + str(epoch_seconds(epoch_date_greater_than))
            + "}"
        )
    return policy + "}}]}"


def build_custom_policy_for_signed_url(
    resource_path: str | None,
    epoch_date_less_than: datetime | None,
    limit_to_ip_address_cidr: str | None = None,
    epoch_date_greater_than: datetime | None = None,
) -> str:
    """Build a policy document for a custom policy signed URL.

    :param resource_path: The resource to grant access to. May contain ``*`` and
        ``?`` wildcards. Defaults to every resource in the distribution.
    :param epoch_date_less_than: The time after which the URL stops working.
    :param limit_to_ip_address_cidr: An IPv4 CIDR block allowed to use the URL.
        Defaults to any address.
    :param epoch_date_greater_than: The time before which the URL does not work
        yet. Omitted from the policy when not set.
    :raises SdkConfigurationError: If no expiration time is provided.
    """
    if epoch_date_less_than is None:
        raise SdkConfigurationError(
            "epoch_date_less_than must be provided to sign CloudFront URLs."
        )
    return build_custom_policy(
        resource_path if resource_path is not None else ANY_RESOURCE,
        epoch_date_less_than,
        epoch_date_greater_than,
        (
            limit_to_ip_address_cidr
            if limit_to_ip_address_cidr is not None
            else ANY_IP_ADDRESS
        ),
    )


@dataclass(kw_only=True, frozen=True)
class CustomPolicy:
    """The restrictions of a custom policy signed URL."""

    date_less_than: datetime
    """The time after which the URL stops working."""

    resource_path: str = ANY_RESOURCE
    """The resource, or a pattern with ``*`` and ``?`` wildcards."""

    date_greater_than: datetime | None = None
    """The time before which the URL does not work yet."""

    ip_range: str = ANY_IP_ADDRESS
    """The IPv4 CIDR block allowed to use the URL."""

    def to_json(self) -> str:
        return build_custom_policy_for_signed_url(
            self.resource_path,
            self.date_less_than,
            self.ip_range,
            self.date_greater_than,
        )


def _append_query(resource_url_or_path: str, query: str) -> str:
    separator = "&" if "?" in resource_url_or_path else "?"
    return f"{resource_url_or_path}{separator}{query}"


def _load_signing_key(private_key_file: str | PathLike[str]) -> RSAPrivateKey:
    try:
        return load_private_key(private_key_file)
    except SigningError as e:
        raise SdkClientError(f"Couldn't load private key for signing url: {e}") from e


def _sign_policy(policy: str, private_key: RSAPrivateKey | str | bytes) -> str:
    try:
        signature = sign_with_sha1_rsa(private_key, policy.encode("utf-8"))
    except SigningError as e:
        raise SdkClientError(f"Couldn't sign url: {e}") from e
    return make_bytes_url_safe(signature)


def get_signed_url_with_canned_policy(
    resource_url_or_path: str,
    key_pair_id: str,
    private_key: RSAPrivateKey | str | bytes,
    date_less_than: datetime,
) -> str:
    """Create a signed URL governed by a canned policy.

    :param resource_url_or_path: The URL or path of the resource. Query parameters
        already present are kept and the signing parameters are appended after them.
    :param key_pair_id: The ID of the CloudFront key pair.
    :param private_key: The key pair's RSA private key, or its PEM encoding.
    :param date_less_than: The time after which the URL stops working.
    :raises SdkClientError: If the private key cannot be used for signing.
    """
    policy = build_canned_policy(resource_url_or_path, date_less_than)
    signature = _sign_policy(policy, private_key)
    logger.debug("Signed %s with a canned policy.", resource_url_or_path)
    return _append_query(
        resource_url_or_path,
        f"Expires={epoch_seconds(date_less_than)}"
        f"&Signature={signature}"
        f"&Key-Pair-Id={key_pair_id}",
    )


def get_signed_url_with_custom_policy(
    resource_url_or_path: str,
    key_pair_id: str,
    private_key: RSAPrivateKey | str | bytes,
    policy: str | CustomPolicy,
) -> str:
    """Create a signed URL governed by a custom policy.

    :param resource_url_or_path: The URL or path of the resource.
    :param key_pair_id: The ID of the CloudFront key pair.
    :param private_key: The key pair's RSA private key, or its PEM encoding.
    :param policy: The policy document, as built by
        :py:func:`build_custom_policy_for_signed_url`, or a :py:class:`CustomPolicy`.
    :raises SdkClientError: If the private key cannot be used for signing.
    """
    if isinstance(policy, CustomPolicy):
        policy = policy.to_json()
    signature = _sign_policy(policy, private_key)
    logger.debug("Signed %s with a custom policy.", resource_url_or_path)
    return _append_query(
        resource_url_or_path,
        f"Policy={make_string_url_safe(policy)}"
        f"&Signature={signature}"
        f"&Key-Pair-Id={key_pair_id}",
    )


def sign_url_with_canned_policy(
    *,
    protocol: SignedUrlProtocol,
    distribution_domain: str,
    private_key_file: str | PathLike[str],
    s3_object_key: str,
    key_pair_id: str,
    date_less_than: datetime,
) -> str:
    """Create a canned policy signed URL for an object, loading the private key
    from a PEM or DER file.

    :raises SdkClientError: If the key file cannot be read or parsed, or the key
        cannot be used for signing.
    """
    resource_path = generate_resource_path(
        protocol, distribution_domain, s3_object_key
    )
    private_key = _load_signing_key(private_key_file)
    return get_signed_url_with_canned_policy(
        resource_path, key_pair_id, private_key, date_less_than
    )


def sign_url_with_custom_policy(
    *,
    protocol: SignedUrlProtocol,
    distribution_domain: str,
    private_key_file: str | PathLike[str],
    s3_object_key: str,
    key_pair_id: str,
    date_less_than: datetime,
    date_greater_than: datetime | None = None,
    ip_range: str | None = None,
) -> str:
    """Create a custom policy signed URL for an object, loading the private key
    from a PEM or DER file.

    :raises SdkClientError: If the key file cannot be read or parsed, or the key
        cannot be used for signing.
    """
    private_key = _load_signing_key(private_key_file)
    resource_path = generate_resource_path(
        protocol, distribution_domain, s3_object_key
    )
    policy = build_custom_policy_for_signed_url(
        resource_path, date_less_than, ip_range, date_greater_than
    )
    return get_signed_url_with_custom_policy(
        resource_path, key_pair_id, private_key, policy
    )
