# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""OAuth2 access tokens for the IAM Credentials API.

``DelegatedSigner`` needs a bearer token for the runtime's ambient
identity.  On Cloud Run and GCE that comes from the metadata server via
Application Default Credentials; elsewhere from ``gcloud`` user
credentials.  google-auth owns credential caching and refresh.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

import google.auth
import google.auth.credentials
import google.auth.exceptions
import google.auth.transport.requests

from urlsigner.errors import SigningFailed, SigningUnavailable
from urlsigner.logging import SecretFilter


logger = logging.getLogger(__name__)

#: Scope sufficient for ``iamcredentials.signBlob``.
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class AccessTokenSource(Protocol):
    """Supplies a currently valid OAuth2 access token."""

    def token(self) -> str: ...


class StaticTokenSource:
    """Returns a fixed token.  For tests and local emulators."""

    def __init__(self, token: str) -> None:
        if not token:
            raise SigningUnavailable("Static access token is empty")
        SecretFilter.register_secret(token)
        self._token = token

    def token(self) -> str:
        return self._token


class GoogleAuthTokenSource:
    """Access tokens from Application Default Credentials.

    Credentials are discovered lazily on first use so constructing the
    source never touches the network.  Refresh happens only when the
    cached token is missing or expired.
    """

    def __init__(self, scopes: list[str] | None = None) -> None:
        self._scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self._credentials: google.auth.credentials.Credentials | None = None
        self._lock = threading.Lock()

    def token(self) -> str:
        """Return a valid access token, refreshing if needed.

        Raises:
            SigningUnavailable: If no default credentials exist.
            SigningFailed: If refreshing the token fails.
        """
        with self._lock:
            if self._credentials is None:
                try:
                    self._credentials, project = google.auth.default(
                        scopes=self._scopes
                    )
                except google.auth.exceptions.DefaultCredentialsError as e:
                    raise SigningUnavailable(
                        f"No application default credentials: {e}"
                    ) from e
                logger.debug("Loaded default credentials (project=%s)", project)

            credentials = self._credentials
            if not credentials.valid:
                try:
                    request = google.auth.transport.requests.Request()
                    credentials.refresh(request)
                except google.auth.exceptions.GoogleAuthError as e:
                    raise SigningFailed(
                        f"Failed to refresh access token: {e}"
                    ) from e
                logger.debug("Refreshed access token")

            token = credentials.token
            if not token:
                raise SigningFailed("Default credentials returned no token")
            SecretFilter.register_secret(token)
            return token
