# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Canonical request construction for GCS V4 query-string signing.

Builds the exact byte sequence a signing backend must sign so that Cloud
Storage accepts a signed URL:

- Canonical URI (path-style ``/{bucket}/{object}``, RFC 3986 encoding)
- Canonical query string (sorted ``X-Goog-*`` parameters)
- Canonical headers (``host``, plus ``content-type`` for PUT only)
- String to sign (``GOOG4-RSA-SHA256`` envelope around the SHA-256 of
  the canonical request)

Only the string to sign is handed to a backend; the raw canonical request
never is.  No I/O happens here.
"""

from __future__ import annotations

import hashlib
import urllib.parse
from dataclasses import dataclass
from datetime import datetime

from urlsigner.errors import InvalidInput


#: Signing algorithm identifier for RSA-SHA256 V4 signatures.
ALGORITHM = "GOOG4-RSA-SHA256"

#: Default storage endpoint (path-style addressing).
DEFAULT_HOST = "storage.googleapis.com"

#: Payload marker; signed URLs never commit to the body hash.
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"

#: Upper bound for ``X-Goog-Expires`` accepted by V4 signing (7 days).
MAX_EXPIRES_SECONDS = 7 * 24 * 60 * 60

#: Methods a grant may authorize.
SUPPORTED_METHODS = frozenset({"PUT", "GET"})

#: Query parameter carrying the signature (excluded from the canonical form).
SIGNATURE_PARAM = "X-Goog-Signature"

_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)


# ---------------------------------------------------------------------------
# URI encoding (RFC 3986 unreserved set)
# ---------------------------------------------------------------------------


def _uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """URI-encode a value using the V4 signing rules.

    - Unreserved characters are not encoded: A-Z, a-z, 0-9, -, _, ., ~
    - Every other byte of the UTF-8 encoding becomes %XX (uppercase hex)
    - Forward slashes (/) are optionally preserved

    Args:
        value: String to encode.
        encode_slash: If True, encode '/'; if False, preserve '/'.

    Returns:
        URI-encoded string.
    """
    result: list[str] = []
    for ch in value:
        if ch in _UNRESERVED:
            result.append(ch)
        elif ch == "/" and not encode_slash:
            result.append("/")
        else:
            result.extend(f"%{b:02X}" for b in ch.encode("utf-8"))
    return "".join(result)


# ---------------------------------------------------------------------------
# Canonical request pieces
# ---------------------------------------------------------------------------


def canonical_uri(bucket: str, object_path: str) -> str:
    """Build the path-style canonical URI for an object.

    Args:
        bucket: Bucket name.
        object_path: Object path without a leading slash.

    Returns:
        ``/{bucket}/{object_path}`` with each segment percent-encoded and
        slashes in the object path preserved.
    """
    return (
        "/"
        + _uri_encode(bucket)
        + "/"
        + _uri_encode(object_path, encode_slash=False)
    )


def canonical_query_string(params: dict[str, str]) -> str:
    """Build canonical query string.

    Args:
        params: Query parameters (unencoded).  ``X-Goog-Signature`` is
            dropped if present.

    Returns:
        Canonical query string (encoded, sorted by encoded name then value).
    """
    encoded = [
        (_uri_encode(k), _uri_encode(v))
        for k, v in params.items()
        if k != SIGNATURE_PARAM
    ]
    encoded.sort()
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers_string(headers: dict[str, str]) -> str:
    """Build canonical headers string.

    Args:
        headers: Headers to sign (name -> value).

    Returns:
        Canonical headers string (each line: "name:value" + newline),
        sorted by lowercase header name.
    """
    lower_headers = {name.lower(): value for name, value in headers.items()}
    lines: list[str] = []
    for name in sorted(lower_headers):
        # Trim leading/trailing whitespace, collapse sequential spaces
        trimmed = " ".join(lower_headers[name].split())
        lines.append(f"{name}:{trimmed}\n")
    return "".join(lines)


def signed_headers_list(headers: dict[str, str]) -> str:
    """Return the semicolon-separated, sorted list of signed header names."""
    return ";".join(sorted(name.lower() for name in headers))


def format_timestamp(when: datetime) -> str:
    """Format an aware datetime as a V4 request timestamp (YYYYMMDDTHHMMSSZ)."""
    return when.strftime("%Y%m%dT%H%M%SZ")


def credential_scope(when: datetime) -> str:
    """Build the fixed credential scope for a signing date."""
    return f"{when.strftime('%Y%m%d')}/auto/storage/goog4_request"


def build_string_to_sign(
    timestamp: str, scope: str, canonical_request: str
) -> str:
    """Build the V4 string to sign.

    Args:
        timestamp: Request timestamp (``X-Goog-Date``).
        scope: Credential scope.
        canonical_request: The canonical request string.

    Returns:
        String to sign.  Its last line is the hex SHA-256 of the
        canonical request.
    """
    return "\n".join(
        [
            ALGORITHM,
            timestamp,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CanonicalRequest:
    """A fully determined request awaiting a signature.

    Attributes:
        method: HTTP method (PUT or GET).
        host: Storage endpoint host.
        uri: Canonical URI (``/{bucket}/{object}``, encoded).
        query_params: Unencoded ``X-Goog-*`` parameters, signature excluded.
        headers: Signed headers (lowercase name -> value).
        timestamp: Request timestamp (``X-Goog-Date``).
        scope: Credential scope.
    """

    method: str
    host: str
    uri: str
    query_params: dict[str, str]
    headers: dict[str, str]
    timestamp: str
    scope: str

    @property
    def signed_headers(self) -> str:
        """Semicolon-separated signed header names."""
        return signed_headers_list(self.headers)

    @property
    def query_string(self) -> str:
        """Canonical query string (also the query of the final URL)."""
        return canonical_query_string(self.query_params)

    @property
    def text(self) -> str:
        """The canonical request string."""
        return "\n".join(
            [
                self.method,
                self.uri,
                self.query_string,
                canonical_headers_string(self.headers),
                self.signed_headers,
                UNSIGNED_PAYLOAD,
            ]
        )

    @property
    def hashed(self) -> str:
        """Hex SHA-256 of the canonical request."""
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()

    @property
    def string_to_sign(self) -> str:
        """The exact string a signing backend must sign."""
        return build_string_to_sign(self.timestamp, self.scope, self.text)

    def signed_url(self, signature: bytes, *, scheme: str = "https") -> str:
        """Assemble the final URL with the hex-encoded signature appended."""
        return (
            f"{scheme}://{self.host}{self.uri}?{self.query_string}"
            f"&{SIGNATURE_PARAM}={signature.hex()}"
        )


def validate_expires(expires_seconds: int) -> int:
    """Validate an ``X-Goog-Expires`` value.

    Raises:
        InvalidInput: Unless 1 <= expires_seconds <= MAX_EXPIRES_SECONDS.
            Out-of-range values are never clamped.
    """
    if isinstance(expires_seconds, bool) or not isinstance(
        expires_seconds, int
    ):
        raise InvalidInput(
            f"Expiry must be an integer number of seconds: {expires_seconds!r}"
        )
    if expires_seconds < 1:
        raise InvalidInput(f"Expiry must be positive: {expires_seconds}s")
    if expires_seconds > MAX_EXPIRES_SECONDS:
        raise InvalidInput(
            f"Expiry {expires_seconds}s exceeds maximum "
            f"{MAX_EXPIRES_SECONDS}s (7 days)"
        )
    return expires_seconds


def build_canonical_request(
    *,
    method: str,
    bucket: str,
    object_path: str,
    access_id: str,
    expires_seconds: int,
    signed_at: datetime,
    content_type: str | None = None,
    host: str = DEFAULT_HOST,
) -> CanonicalRequest:
    """Build the canonical request for a single-object grant.

    Args:
        method: HTTP method (PUT or GET).
        bucket: Bucket name.
        object_path: Normalized object path (no leading slash).
        access_id: Signer identity (service-account email).
        expires_seconds: Lifetime of the URL, 1..604800.
        signed_at: Aware UTC signing time (``X-Goog-Date``).
        content_type: Content type bound into a PUT.  Ignored for GET:
            browser GETs send no Content-Type and would fail verification.
        host: Storage endpoint host.

    Returns:
        CanonicalRequest ready to be signed.

    Raises:
        InvalidInput: On unsupported method, missing PUT content type or
            out-of-range expiry.
    """
    method = method.upper()
    if method not in SUPPORTED_METHODS:
        raise InvalidInput(f"Unsupported method: {method!r}")
    validate_expires(expires_seconds)

    headers = {"host": host}
    if method == "PUT":
        if not content_type:
            raise InvalidInput("PUT grants require a content type")
        headers["content-type"] = content_type

    timestamp = format_timestamp(signed_at)
    scope = credential_scope(signed_at)
    query_params = {
        "X-Goog-Algorithm": ALGORITHM,
        "X-Goog-Credential": f"{access_id}/{scope}",
        "X-Goog-Date": timestamp,
        "X-Goog-Expires": str(expires_seconds),
        "X-Goog-SignedHeaders": signed_headers_list(headers),
    }
    return CanonicalRequest(
        method=method,
        host=host,
        uri=canonical_uri(bucket, object_path),
        query_params=query_params,
        headers=headers,
        timestamp=timestamp,
        scope=scope,
    )


def decode_object_path(encoded_path: str) -> tuple[str, str]:
    """Split an encoded path-style URL path into (bucket, object_path).

    Returns:
        Tuple of unencoded bucket and object path.  Either may be empty
        when the path does not name an object.
    """
    stripped = encoded_path.lstrip("/")
    bucket, _, obj = stripped.partition("/")
    return urllib.parse.unquote(bucket), urllib.parse.unquote(obj)
