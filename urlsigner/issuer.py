# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signed URL issuance.

``SignedURLIssuer`` turns a request for access to one object into a
time-bounded V4 signed URL plus the object's stable public URL.  The
server decides bucket, path, method, content type and lifetime; the client
only ever sees the resulting URLs and sends bytes straight to storage.

Issuance is stateless.  The only blocking step is the signing backend
call, which for delegated signing is bounded by a timeout.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from urlsigner import public_url
from urlsigner.canonical import (
    DEFAULT_HOST,
    MAX_EXPIRES_SECONDS,
    SUPPORTED_METHODS,
    build_canonical_request,
)
from urlsigner.config import DEFAULT_TTL_SECONDS, SigningConfig
from urlsigner.errors import InvalidInput
from urlsigner.paths import ObjectPathPolicy, ResourceDomain
from urlsigner.signers import SigningBackend, signer_from_config


logger = logging.getLogger(__name__)

#: Content type bound into uploads when the caller gives none.
DEFAULT_UPLOAD_CONTENT_TYPE = "application/octet-stream"

_REPEATED_SLASHES = re.compile(r"/{2,}")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def normalize_object_path(object_path: str) -> str:
    """Normalize an object path for signing.

    Strips whitespace and leading slashes and collapses repeated slashes.

    Raises:
        InvalidInput: If the path is empty or contains a ``..`` segment.
    """
    path = _REPEATED_SLASHES.sub("/", object_path.strip()).lstrip("/")
    if not path:
        raise InvalidInput("Object path is empty")
    if ".." in path.split("/"):
        raise InvalidInput(
            f"Object path must not contain '..': {object_path!r}"
        )
    return path


def format_expiry(when: datetime) -> str:
    """Format an expiry as RFC 3339 UTC with a ``Z`` suffix."""
    return when.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SigningRequest:
    """Request for a signed URL to one object.

    Attributes:
        bucket: Bucket name.
        object_path: Object path within the bucket.
        method: ``PUT`` (upload) or ``GET`` (download).
        expires_at: Aware datetime at which the URL stops working.
        content_type: Content type an upload must send.  Ignored for GET.
    """

    bucket: str
    object_path: str
    method: str
    expires_at: datetime
    content_type: str | None = None

    @classmethod
    def for_ttl(
        cls,
        bucket: str,
        object_path: str,
        *,
        method: str,
        ttl_seconds: int,
        content_type: str | None = None,
        now: datetime | None = None,
    ) -> SigningRequest:
        """Build a request expiring ``ttl_seconds`` after ``now``."""
        start = now if now is not None else _utcnow()
        return cls(
            bucket=bucket,
            object_path=object_path,
            method=method,
            expires_at=start + timedelta(seconds=ttl_seconds),
            content_type=content_type,
        )


@dataclass(frozen=True)
class SignedURLResult:
    """An issued signed URL.  Handed to the client, never persisted.

    Attributes:
        url: The signed URL.
        public_url: Stable unsigned URL of the object.
        object_path: Normalized object path.
        bucket: Bucket name.
        method: ``PUT`` or ``GET``.
        content_type: Content type bound into the signature (PUT only).
        expires_at: Aware UTC expiry, whole seconds.
    """

    url: str
    public_url: str
    object_path: str
    bucket: str
    method: str
    content_type: str | None
    expires_at: datetime

    @property
    def upload_url(self) -> str | None:
        """The signed URL if this is an upload grant."""
        return self.url if self.method == "PUT" else None

    @property
    def view_url(self) -> str | None:
        """The signed URL if this is a download grant."""
        return self.url if self.method == "GET" else None

    def to_dict(self) -> dict[str, Any]:
        """Render as the JSON shape returned to clients."""
        url_key = "uploadUrl" if self.method == "PUT" else "viewUrl"
        return {
            url_key: self.url,
            "publicUrl": self.public_url,
            "objectPath": self.object_path,
            "expiresAt": format_expiry(self.expires_at),
        }


@dataclass(frozen=True)
class UploadViewPair:
    """Upload and view grants for the same object.

    Used for private buckets, where the public URL is not readable and the
    client needs a signed GET to preview what it uploaded.
    """

    upload: SignedURLResult
    view: SignedURLResult

    def to_dict(self) -> dict[str, Any]:
        data = self.upload.to_dict()
        data["viewUrl"] = self.view.url
        data["viewExpiresAt"] = format_expiry(self.view.expires_at)
        return data


# ---------------------------------------------------------------------------
# Issuer
# ---------------------------------------------------------------------------


class SignedURLIssuer:
    """Issues V4 signed URLs through one signing backend.

    Args:
        backend: Signing backend; fixed for the issuer's lifetime.
        path_policy: Object path rules for ``issue_for``.
        host: Storage endpoint host.
        max_ttl: Longest lifetime a request may ask for, in seconds.
        default_ttl: Lifetime used when a caller gives none.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        backend: SigningBackend,
        path_policy: ObjectPathPolicy | None = None,
        *,
        host: str = DEFAULT_HOST,
        max_ttl: int = MAX_EXPIRES_SECONDS,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not 1 <= max_ttl <= MAX_EXPIRES_SECONDS:
            raise ValueError(
                f"max_ttl must be within 1..{MAX_EXPIRES_SECONDS}s: {max_ttl}"
            )
        if not 1 <= default_ttl <= max_ttl:
            raise ValueError(
                f"default_ttl must be within 1..{max_ttl}s: {default_ttl}"
            )
        self._backend = backend
        self._policy = path_policy or ObjectPathPolicy()
        self._host = host
        self._max_ttl = max_ttl
        self._default_ttl = default_ttl
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: SigningConfig, **signer_kwargs: Any
    ) -> SignedURLIssuer:
        """Build an issuer and its backend from configuration.

        Keyword arguments are passed to ``signer_from_config``.
        """
        return cls(
            signer_from_config(config.signer, **signer_kwargs),
            host=config.signer.host,
            max_ttl=config.ttl.max_seconds,
            default_ttl=config.ttl.default_seconds,
        )

    @property
    def backend(self) -> SigningBackend:
        return self._backend

    @property
    def path_policy(self) -> ObjectPathPolicy:
        return self._policy

    def issue(
        self, request: SigningRequest, *, timeout: float | None = None
    ) -> SignedURLResult:
        """Issue a signed URL for a request.

        Args:
            request: What to grant.
            timeout: Deadline for the signing backend call.

        Returns:
            The signed URL and the object's public URL.

        Raises:
            InvalidInput: If the request is malformed or its expiry is not
                within ``(now, now + max_ttl]``.
            SigningUnavailable: If the backend has no usable credential.
            SigningFailed: If the backend fails to sign.
        """
        return self._issue(request, self._now(), timeout)

    def issue_path(
        self,
        bucket: str,
        object_path: str,
        *,
        method: str,
        content_type: str | None = None,
        ttl_seconds: int | None = None,
        timeout: float | None = None,
    ) -> SignedURLResult:
        """Issue a signed URL for an explicit object path.

        Also used to overwrite an existing object, e.g. one whose path was
        recovered from its public URL.
        """
        now = self._now()
        request = SigningRequest.for_ttl(
            bucket,
            object_path,
            method=method,
            ttl_seconds=self._ttl(ttl_seconds),
            content_type=content_type,
            now=now,
        )
        return self._issue(request, now, timeout)

    def issue_for(
        self,
        bucket: str,
        domain: ResourceDomain | str,
        *ids: str,
        method: str,
        content_type: str | None = None,
        ttl_seconds: int | None = None,
        timeout: float | None = None,
    ) -> SignedURLResult:
        """Issue a signed URL for a resource identified by domain and ids.

        The object path comes from the path policy.
        """
        object_path = self._policy.derive(
            domain, *ids, content_type=content_type
        )
        return self.issue_path(
            bucket,
            object_path,
            method=method,
            content_type=content_type,
            ttl_seconds=ttl_seconds,
            timeout=timeout,
        )

    def issue_upload_and_view(
        self,
        bucket: str,
        object_path: str,
        *,
        content_type: str | None = None,
        ttl_seconds: int | None = None,
        view_ttl_seconds: int | None = None,
        timeout: float | None = None,
    ) -> UploadViewPair:
        """Issue a PUT and a GET grant for the same object.

        Args:
            bucket: Bucket name.
            object_path: Object path.
            content_type: Upload content type.
            ttl_seconds: Upload URL lifetime.
            view_ttl_seconds: View URL lifetime.  Defaults to
                ``ttl_seconds``.
            timeout: Deadline for each signing call.
        """
        upload = self.issue_path(
            bucket,
            object_path,
            method="PUT",
            content_type=content_type,
            ttl_seconds=ttl_seconds,
            timeout=timeout,
        )
        view = self.issue_path(
            bucket,
            upload.object_path,
            method="GET",
            ttl_seconds=(
                ttl_seconds if view_ttl_seconds is None else view_ttl_seconds
            ),
            timeout=timeout,
        )
        return UploadViewPair(upload=upload, view=view)

    # -- internals ---------------------------------------------------------

    def _now(self) -> datetime:
        # V4 timestamps have whole-second resolution.
        return self._clock().astimezone(UTC).replace(microsecond=0)

    def _ttl(self, ttl_seconds: int | None) -> int:
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        if isinstance(ttl, bool) or not isinstance(ttl, int):
            raise InvalidInput(
                f"TTL must be an integer number of seconds: {ttl!r}"
            )
        return ttl

    def _issue(
        self,
        request: SigningRequest,
        signed_at: datetime,
        timeout: float | None,
    ) -> SignedURLResult:
        bucket = request.bucket.strip()
        if not bucket:
            raise InvalidInput("Bucket is empty")
        object_path = normalize_object_path(request.object_path)

        method = request.method.strip().upper()
        if method not in SUPPORTED_METHODS:
            raise InvalidInput(f"Unsupported method: {request.method!r}")

        content_type: str | None = None
        if method == "PUT":
            content_type = (
                request.content_type or ""
            ).strip() or DEFAULT_UPLOAD_CONTENT_TYPE

        expires_seconds = self._expires_seconds(request.expires_at, signed_at)

        canonical = build_canonical_request(
            method=method,
            bucket=bucket,
            object_path=object_path,
            access_id=self._backend.identity.access_id,
            expires_seconds=expires_seconds,
            signed_at=signed_at,
            content_type=content_type,
            host=self._host,
        )
        signature = self._backend.sign(
            canonical.string_to_sign.encode("utf-8"), timeout=timeout
        )

        expires_at = signed_at + timedelta(seconds=expires_seconds)
        logger.debug(
            "Issued signed URL: bucket=%s, path=%s, method=%s, expires=%s",
            bucket,
            object_path,
            method,
            format_expiry(expires_at),
        )
        return SignedURLResult(
            url=canonical.signed_url(signature),
            public_url=public_url.resolve(bucket, object_path, host=self._host),
            object_path=object_path,
            bucket=bucket,
            method=method,
            content_type=content_type,
            expires_at=expires_at,
        )

    def _expires_seconds(
        self, expires_at: datetime, signed_at: datetime
    ) -> int:
        if expires_at.tzinfo is None:
            raise InvalidInput("expires_at must be timezone-aware")
        seconds = int((expires_at - signed_at).total_seconds())
        if seconds < 1:
            raise InvalidInput(
                f"Expiry {format_expiry(expires_at)} is not in the future"
            )
        if seconds > self._max_ttl:
            raise InvalidInput(
                f"Requested lifetime {seconds}s exceeds maximum "
                f"{self._max_ttl}s"
            )
        return seconds
