# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signing backend capability shared by every signer variant."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable

from urlsigner.errors import SigningUnavailable


class BackendKind(StrEnum):
    """Where the private key lives."""

    LOCAL = "local"
    DELEGATED = "delegated"


@dataclass(frozen=True)
class SignerIdentity:
    """Identity a signature is issued under.

    Attributes:
        access_id: Service-account email embedded in ``X-Goog-Credential``.
        backend_kind: Which backend variant produces signatures.
    """

    access_id: str
    backend_kind: BackendKind

    def __post_init__(self) -> None:
        """Validate identity.

        Raises:
            SigningUnavailable: If the access id is empty.
        """
        if not self.access_id.strip():
            raise SigningUnavailable(
                f"{self.backend_kind} signer has no access id configured"
            )


@runtime_checkable
class SigningBackend(Protocol):
    """Produces RSA-SHA256 signatures over a byte payload.

    Implementations raise ``SigningFailed`` when signing itself fails and
    ``SigningUnavailable`` when they hold no usable credential.
    """

    @property
    def identity(self) -> SignerIdentity: ...

    def sign(self, payload: bytes, *, timeout: float | None = None) -> bytes:
        """Sign a payload.

        Args:
            payload: Bytes to sign (the V4 string to sign).
            timeout: Deadline in seconds for backends that do I/O.

        Returns:
            Raw signature bytes.
        """
        ...
