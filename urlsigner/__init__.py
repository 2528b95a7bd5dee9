# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signed URL issuance for direct client-to-storage uploads and downloads.

Provides:
- Object path rules per resource domain (ObjectPathPolicy)
- Local and delegated RSA signing backends (LocalKeySigner, DelegatedSigner)
- GCS V4 canonical request construction
- Signed URL issuance (SignedURLIssuer) and public URL resolution
- Configuration loading
"""

from urlsigner.config import (
    BucketConfig,
    ConfigError,
    SignerConfig,
    SigningConfig,
    TTLConfig,
)
from urlsigner.errors import (
    InvalidInput,
    NotFound,
    SignedURLError,
    SigningFailed,
    SigningUnavailable,
)
from urlsigner.issuer import (
    SignedURLIssuer,
    SignedURLResult,
    SigningRequest,
    UploadViewPair,
)
from urlsigner.paths import ObjectPathPolicy, ResourceDomain
from urlsigner.signers import (
    BackendKind,
    DelegatedSigner,
    LocalKeySigner,
    SignerIdentity,
    SigningBackend,
    signer_from_config,
)


__all__ = [
    # config
    "BucketConfig",
    "ConfigError",
    "SignerConfig",
    "SigningConfig",
    "TTLConfig",
    # errors
    "InvalidInput",
    "NotFound",
    "SignedURLError",
    "SigningFailed",
    "SigningUnavailable",
    # issuer
    "SignedURLIssuer",
    "SignedURLResult",
    "SigningRequest",
    "UploadViewPair",
    # paths
    "ObjectPathPolicy",
    "ResourceDomain",
    # signers
    "BackendKind",
    "DelegatedSigner",
    "LocalKeySigner",
    "SignerIdentity",
    "SigningBackend",
    "signer_from_config",
]
