# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Offline RSA signing with a service-account private key.

Used where a keyfile is mounted (local development, CI).  The key never
leaves the process and signing performs no I/O.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from urlsigner.errors import SigningFailed, SigningUnavailable
from urlsigner.logging import SecretFilter
from urlsigner.signers.base import BackendKind, SignerIdentity


logger = logging.getLogger(__name__)


class LocalKeySigner:
    """Signs with RSA-PKCS#1 v1.5 over SHA-256 using a local private key.

    Attributes:
        key_id: Optional private key id from the keyfile (informational).
    """

    def __init__(
        self,
        private_key_pem: str | bytes,
        access_id: str,
        *,
        key_id: str | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            private_key_pem: PEM-encoded RSA private key (unencrypted).
            access_id: Service-account email the key belongs to.
            key_id: Optional key id, for logging only.

        Raises:
            SigningUnavailable: If the key cannot be loaded or is not RSA.
        """
        pem = (
            private_key_pem.encode("utf-8")
            if isinstance(private_key_pem, str)
            else private_key_pem
        )
        SecretFilter.register_secret(pem.decode("utf-8", errors="replace"))

        try:
            key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningUnavailable(
                f"Cannot load private key for {access_id}: {e}"
            ) from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise SigningUnavailable(
                f"Private key for {access_id} is not an RSA key"
            )

        self._key = key
        self._identity = SignerIdentity(access_id, BackendKind.LOCAL)
        self.key_id = key_id
        logger.debug(
            "Initialized local signer: access_id=%s, key_id=%s",
            access_id,
            key_id,
        )

    @classmethod
    def from_keyfile(cls, path: Path) -> "LocalKeySigner":
        """Build a signer from a service-account JSON keyfile.

        The keyfile must contain ``client_email`` and ``private_key``;
        ``private_key_id`` is optional.

        Raises:
            SigningUnavailable: If the file is unreadable or incomplete.
        """
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SigningUnavailable(
                f"Cannot read signer keyfile {path}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise SigningUnavailable(f"Signer keyfile {path} is not an object")
        email = data.get("client_email")
        pem = data.get("private_key")
        if not email or not pem:
            raise SigningUnavailable(
                f"Signer keyfile {path} lacks client_email or private_key"
            )
        return cls(pem, email, key_id=data.get("private_key_id"))

    @property
    def identity(self) -> SignerIdentity:
        """Identity signatures are issued under."""
        return self._identity

    def public_key(self) -> rsa.RSAPublicKey:
        """Return the public half of the signing key."""
        return self._key.public_key()

    def sign(self, payload: bytes, *, timeout: float | None = None) -> bytes:
        """Sign a payload with RSA-SHA256.

        Args:
            payload: Bytes to sign.
            timeout: Ignored; local signing does no I/O.

        Returns:
            Raw PKCS#1 v1.5 signature.

        Raises:
            SigningFailed: If the cryptography backend rejects the operation.
        """
        del timeout
        try:
            return self._key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise SigningFailed(f"Local RSA signing failed: {e}") from e
