#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Signing primitives shared by the query string and presigned URL signers."""

import base64
import hmac
from enum import Enum
from hashlib import sha1, sha256
from os import PathLike
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ..exceptions import SigningError

_URL_UNSAFE = str.maketrans({"+": "-", "=": "_", "/": "~"})


class SigningAlgorithm(Enum):
    """Keyed-hash algorithms, named as they appear in the ``SignatureMethod``
    parameter."""

    HmacSHA1 = "HmacSHA1"
    HmacSHA256 = "HmacSHA256"

    @property
    def digestmod(self):
        match self:
            case SigningAlgorithm.HmacSHA1:
                return sha1
            case SigningAlgorithm.HmacSHA256:
                return sha256


def sign_hmac(
    secret_key: str | bytes,
    algorithm: SigningAlgorithm,
    data: str | bytes,
) -> bytes:
    """Compute a keyed hash of ``data``.

    :param secret_key: The secret key. Text keys are encoded as UTF-8.
    :param algorithm: The keyed-hash algorithm to use.
    :param data: The bytes to sign. Text is encoded as UTF-8.
    :raises SigningError: If the key is empty or not text or bytes.
    """
    if isinstance(secret_key, str):
        secret_key = secret_key.encode("utf-8")
    if not isinstance(secret_key, bytes | bytearray):
        raise SigningError(
            f"Unable to sign with a key of type {type(secret_key).__name__}."
        )
    if not secret_key:
        raise SigningError(f"Unable to sign with an empty {algorithm.value} key.")
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hmac.new(key=secret_key, msg=data, digestmod=algorithm.digestmod).digest()


def sign_and_base64_encode(
    data: str | bytes,
    secret_key: str | bytes,
    algorithm: SigningAlgorithm = SigningAlgorithm.HmacSHA256,
) -> str:
    """Sign ``data`` and return the standard base64 encoding of the signature."""
    signature = sign_hmac(secret_key, algorithm, data)
    return base64.b64encode(signature).decode("ascii")


def load_private_key(source: str | bytes | PathLike[str]) -> RSAPrivateKey:
    """Load an RSA private key.

    PEM encoded keys in either PKCS#1 (``BEGIN RSA PRIVATE KEY``) or PKCS#8 form are
    supported, as well as DER encoded PKCS#8 keys.

    :param source: A path to a key file, or the key material itself as bytes.
    :raises SigningError: If the key cannot be parsed or is not an RSA key.
    """
    if isinstance(source, bytes):
        data = source
    else:
        try:
            data = Path(source).read_bytes()
        except OSError as e:
            raise SigningError(f"Unable to read private key file {source}.") from e

    loader = (
        serialization.load_pem_private_key
        if data.lstrip().startswith(b"-----BEGIN")
        else serialization.load_der_private_key
    )
    try:
        key = loader(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError("Unable to parse the supplied private key.") from e

    if not isinstance(key, RSAPrivateKey):
        raise SigningError(
            f"Expected an RSA private key but found {type(key).__name__}."
        )
    return key


def sign_with_sha1_rsa(
    private_key: RSAPrivateKey | str | bytes, data: str | bytes
) -> bytes:
    """Sign ``data`` with SHA1withRSA (RSASSA-PKCS1-v1_5 using SHA-1).

    PKCS#1 v1.5 signatures are deterministic, so the same key and data always
    produce the same bytes.

    :param private_key: An RSA private key, or PEM key material.
    :param data: The bytes to sign. Text is encoded as UTF-8.
    :raises SigningError: If the key material is malformed.
    """
    if isinstance(private_key, str):
        private_key = private_key.encode("utf-8")
    if isinstance(private_key, bytes):
        private_key = load_private_key(private_key)
    if not isinstance(private_key, RSAPrivateKey):
        raise SigningError(
            f"Expected an RSA private key but found {type(private_key).__name__}."
        )
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA1())
    except (ValueError, UnsupportedAlgorithm) as e:
        raise SigningError("Unable to sign with the supplied private key.") from e


def make_bytes_url_safe(data: bytes) -> str:
    """Base64 encode ``data`` and replace the characters that are illegal or
    ambiguous in URLs: ``+`` becomes ``-``, ``=`` becomes ``_`` and ``/`` becomes
    ``~``."""
    return base64.b64encode(data).decode("ascii").translate(_URL_UNSAFE)


def make_string_url_safe(text: str) -> str:
    """URL-safe base64 of the UTF-8 encoding of ``text``.

    See :py:func:`make_bytes_url_safe`.
    """
    return make_bytes_url_safe(text.encode("utf-8"))
