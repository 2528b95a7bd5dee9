# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Offline inspection and verification of V4 signed URLs.

Reconstructs the string to sign from a signed URL and checks the signature
against a service account's public key.  Storage performs the real check;
this exists for diagnostics and tests.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from urlsigner.canonical import (
    ALGORITHM,
    SIGNATURE_PARAM,
    CanonicalRequest,
    canonical_uri,
    decode_object_path,
)
from urlsigner.errors import InvalidInput


_REQUIRED_PARAMS = (
    "X-Goog-Algorithm",
    "X-Goog-Credential",
    "X-Goog-Date",
    "X-Goog-Expires",
    "X-Goog-SignedHeaders",
)


@dataclass(frozen=True)
class ParsedSignedURL:
    """Method-independent parts of a signed URL.

    Attributes:
        scheme: URL scheme.
        host: Host (with port, if any).
        bucket: Unencoded bucket name.
        object_path: Unencoded object path.
        params: ``X-Goog-*`` query parameters, signature excluded.
        signature: Raw signature bytes.
    """

    scheme: str
    host: str
    bucket: str
    object_path: str
    params: dict[str, str]
    signature: bytes

    @property
    def access_id(self) -> str:
        return self.params["X-Goog-Credential"].partition("/")[0]

    @property
    def scope(self) -> str:
        return self.params["X-Goog-Credential"].partition("/")[2]

    @property
    def signed_at(self) -> datetime:
        return datetime.strptime(
            self.params["X-Goog-Date"], "%Y%m%dT%H%M%SZ"
        ).replace(tzinfo=UTC)

    @property
    def expires_at(self) -> datetime:
        """Moment the URL stops being accepted."""
        return self.signed_at + timedelta(
            seconds=int(self.params["X-Goog-Expires"])
        )


def parse_signed_url(url: str) -> ParsedSignedURL:
    """Split a signed URL into its parts.

    Raises:
        InvalidInput: If the URL is not a V4 signed URL for an object.
    """
    parts = urllib.parse.urlsplit(url.strip())
    if not parts.netloc:
        raise InvalidInput(f"Not an absolute URL: {url!r}")

    bucket, object_path = decode_object_path(parts.path)
    if not bucket or not object_path:
        raise InvalidInput(f"URL does not name an object: {url!r}")

    params = dict(urllib.parse.parse_qsl(parts.query, keep_blank_values=True))
    signature_hex = params.pop(SIGNATURE_PARAM, "")
    missing = [name for name in _REQUIRED_PARAMS if name not in params]
    if missing:
        raise InvalidInput(f"Signed URL lacks {', '.join(missing)}")
    if params["X-Goog-Algorithm"] != ALGORITHM:
        raise InvalidInput(
            f"Unsupported algorithm: {params['X-Goog-Algorithm']!r}"
        )
    try:
        signature = bytes.fromhex(signature_hex)
        int(params["X-Goog-Expires"])
        datetime.strptime(params["X-Goog-Date"], "%Y%m%dT%H%M%SZ")
    except ValueError as e:
        raise InvalidInput(f"Malformed signed URL: {e}") from e
    if not signature:
        raise InvalidInput(f"Signed URL has no {SIGNATURE_PARAM}")

    return ParsedSignedURL(
        scheme=parts.scheme,
        host=parts.netloc,
        bucket=bucket,
        object_path=object_path,
        params=params,
        signature=signature,
    )


def _canonical_request(
    parsed: ParsedSignedURL, method: str, content_type: str | None
) -> CanonicalRequest:
    method = method.upper()
    headers = {"host": parsed.host}
    if method == "PUT" and content_type:
        headers["content-type"] = content_type
    return CanonicalRequest(
        method=method,
        host=parsed.host,
        uri=canonical_uri(parsed.bucket, parsed.object_path),
        query_params=parsed.params,
        headers=headers,
        timestamp=parsed.params["X-Goog-Date"],
        scope=parsed.scope,
    )


def rebuild_string_to_sign(
    url: str, method: str, content_type: str | None = None
) -> str:
    """Reconstruct the string to sign that produced a signed URL.

    Args:
        url: Signed URL.
        method: Method the URL is used with.
        content_type: Content type sent with a PUT.

    Raises:
        InvalidInput: If the URL cannot be parsed.
    """
    parsed = parse_signed_url(url)
    return _canonical_request(parsed, method, content_type).string_to_sign


def verify_rsa_signature(
    public_key: rsa.RSAPublicKey,
    url: str,
    method: str,
    content_type: str | None = None,
) -> bool:
    """Check a signed URL against a service account's public key.

    Returns:
        True if the signature matches the request as described by
        ``method`` and ``content_type``.  Expiry is not checked.
    """
    parsed = parse_signed_url(url)
    string_to_sign = _canonical_request(
        parsed, method, content_type
    ).string_to_sign
    try:
        public_key.verify(
            parsed.signature,
            string_to_sign.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature:
        return False
    return True
