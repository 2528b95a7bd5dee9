# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signing backends.

Exactly one backend is selected at startup from ``SignerConfig``: a
keyfile selects ``LocalKeySigner``, otherwise a signer email selects
``DelegatedSigner``.
"""

from __future__ import annotations

import logging

import httpx

from urlsigner.config import ENV_KEYFILE, ENV_SIGNER_EMAIL, SignerConfig
from urlsigner.errors import SigningUnavailable
from urlsigner.signers.base import BackendKind, SignerIdentity, SigningBackend
from urlsigner.signers.delegated import DelegatedSigner
from urlsigner.signers.local import LocalKeySigner
from urlsigner.signers.tokens import (
    AccessTokenSource,
    GoogleAuthTokenSource,
    StaticTokenSource,
)


__all__ = [
    "AccessTokenSource",
    "BackendKind",
    "DelegatedSigner",
    "GoogleAuthTokenSource",
    "LocalKeySigner",
    "SignerIdentity",
    "SigningBackend",
    "StaticTokenSource",
    "signer_from_config",
]

logger = logging.getLogger(__name__)


def signer_from_config(
    config: SignerConfig,
    *,
    http_client: httpx.Client | None = None,
    token_source: AccessTokenSource | None = None,
) -> SigningBackend:
    """Build the signing backend selected by configuration.

    Args:
        config: Signer configuration.
        http_client: Shared client for delegated signing.
        token_source: Token source for delegated signing.  Defaults to
            Application Default Credentials.

    Returns:
        The configured backend.

    Raises:
        SigningUnavailable: If no backend can be built.
    """
    if config.keyfile_path is not None:
        signer: SigningBackend = LocalKeySigner.from_keyfile(
            config.keyfile_path
        )
    elif config.signer_email:
        signer = DelegatedSigner(
            config.signer_email,
            token_source or GoogleAuthTokenSource(),
            client=http_client,
            timeout=config.timeout_seconds,
        )
    else:
        raise SigningUnavailable(
            "No signer configured: set signer.keyfile "
            f"(or {ENV_KEYFILE}) for local signing, or signer.email "
            f"(or {ENV_SIGNER_EMAIL}) for delegated signing"
        )

    logger.info(
        "Signing backend: %s as %s",
        signer.identity.backend_kind,
        signer.identity.access_id,
    )
    return signer
