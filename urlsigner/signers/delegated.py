# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Keyless signing through the IAM Credentials ``signBlob`` API.

The runtime identity asks IAM to sign on behalf of a service account, so
no private key is ever held locally.  Requires
``roles/iam.serviceAccountTokenCreator`` on the target account.

Each call is a single HTTP round trip bounded by a timeout.  Failures are
surfaced once as ``SigningFailed``; retrying is the caller's decision.
"""

from __future__ import annotations

import base64
import logging
import urllib.parse

import httpx

from urlsigner.config import DEFAULT_SIGN_TIMEOUT_SECONDS
from urlsigner.errors import (
    SignedURLError,
    SigningFailed,
    SigningUnavailable,
)
from urlsigner.signers.base import BackendKind, SignerIdentity
from urlsigner.signers.tokens import AccessTokenSource


logger = logging.getLogger(__name__)

IAM_CREDENTIALS_BASE = "https://iamcredentials.googleapis.com/v1"


def sign_blob_url(
    access_id: str, *, base_url: str = IAM_CREDENTIALS_BASE
) -> str:
    """Return the ``signBlob`` endpoint for a service account."""
    account = urllib.parse.quote(access_id, safe="@")
    return f"{base_url}/projects/-/serviceAccounts/{account}:signBlob"


class DelegatedSigner:
    """Signs payloads by calling ``signBlob`` on a service account.

    Args:
        access_id: Service-account email to sign as.
        token_source: Provides the caller's bearer token.
        client: Shared HTTP client.  Created (and owned) if not given.
        timeout: Default per-call deadline in seconds.
        base_url: IAM Credentials API base URL.
    """

    def __init__(
        self,
        access_id: str,
        token_source: AccessTokenSource,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_SIGN_TIMEOUT_SECONDS,
        base_url: str = IAM_CREDENTIALS_BASE,
    ) -> None:
        self._identity = SignerIdentity(access_id, BackendKind.DELEGATED)
        self._token_source = token_source
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()
        self._timeout = timeout
        self._url = sign_blob_url(access_id, base_url=base_url)

    @property
    def identity(self) -> SignerIdentity:
        """Identity signatures are issued under."""
        return self._identity

    def sign(self, payload: bytes, *, timeout: float | None = None) -> bytes:
        """Sign a payload remotely.

        Args:
            payload: Bytes to sign.
            timeout: Deadline in seconds for this call.  Defaults to the
                signer's configured timeout.

        Returns:
            Raw signature bytes decoded from ``signedBlob``.

        Raises:
            SigningUnavailable: If the token source has no credentials.
            SigningFailed: On token refresh errors, transport errors,
                timeouts, non-2xx responses or a malformed response body.
        """
        try:
            token = self._token_source.token()
        except (SigningFailed, SigningUnavailable):
            raise
        except SignedURLError as e:
            raise SigningFailed(f"Cannot obtain access token: {e}") from e

        effective_timeout = self._timeout if timeout is None else timeout
        try:
            response = self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {token}"},
                json={"payload": base64.b64encode(payload).decode("ascii")},
                timeout=effective_timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise SigningFailed(
                f"signBlob timed out after {effective_timeout}s"
            ) from e
        except httpx.HTTPStatusError as e:
            raise SigningFailed(
                f"signBlob returned HTTP {e.response.status_code} for "
                f"{self._identity.access_id}"
            ) from e
        except httpx.HTTPError as e:
            raise SigningFailed(f"signBlob request failed: {e}") from e

        try:
            signed_blob = response.json()["signedBlob"]
            signature = base64.b64decode(signed_blob, validate=True)
        except (ValueError, KeyError, TypeError) as e:
            raise SigningFailed("signBlob returned a malformed response") from e
        if not signature:
            raise SigningFailed("signBlob returned an empty signature")

        logger.debug(
            "Delegated signature obtained for %s", self._identity.access_id
        )
        return signature

    def close(self) -> None:
        """Close the HTTP client if this signer created it."""
        if self._owns_client:
            self._client.close()
