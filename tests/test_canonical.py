# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for urlsigner/canonical.py."""

from datetime import UTC, datetime

import pytest

from urlsigner.canonical import (
    MAX_EXPIRES_SECONDS,
    _uri_encode,
    build_canonical_request,
    canonical_headers_string,
    canonical_query_string,
    canonical_uri,
    credential_scope,
    decode_object_path,
    format_timestamp,
    signed_headers_list,
    validate_expires,
)
from urlsigner.errors import InvalidInput


ACCESS_ID = "signer@example-project.iam.gserviceaccount.com"
SIGNED_AT = datetime(2026, 3, 14, 9, 26, 53, tzinfo=UTC)
CREDENTIAL = (
    "signer%40example-project.iam.gserviceaccount.com"
    "%2F20260314%2Fauto%2Fstorage%2Fgoog4_request"
)


class TestUriEncode:
    """Tests for _uri_encode."""

    def test_unreserved_untouched(self) -> None:
        assert _uri_encode("AZaz09-_.~") == "AZaz09-_.~"

    def test_space_and_reserved(self) -> None:
        assert _uri_encode("a b+c=d&e") == "a%20b%2Bc%3Dd%26e"

    def test_slash_modes(self) -> None:
        assert _uri_encode("a/b") == "a%2Fb"
        assert _uri_encode("a/b", encode_slash=False) == "a/b"

    def test_utf8_bytes(self) -> None:
        """Non-ASCII characters encode each UTF-8 byte in uppercase hex."""
        assert _uri_encode("é") == "%C3%A9"
        assert _uri_encode("画") == "%E7%94%BB"


class TestCanonicalPieces:
    """Tests for the individual canonical request components."""

    def test_canonical_uri(self) -> None:
        assert canonical_uri("b", "dir/file name.png") == (
            "/b/dir/file%20name.png"
        )

    def test_query_sorted_and_signature_dropped(self) -> None:
        query = canonical_query_string(
            {
                "X-Goog-Date": "20260314T092653Z",
                "X-Goog-Signature": "ff",
                "X-Goog-Algorithm": "GOOG4-RSA-SHA256",
            }
        )
        assert query == (
            "X-Goog-Algorithm=GOOG4-RSA-SHA256&X-Goog-Date=20260314T092653Z"
        )

    def test_headers_lowercased_sorted_trimmed(self) -> None:
        headers = {"Host": "h", "Content-Type": "  image/png  "}
        assert canonical_headers_string(headers) == (
            "content-type:image/png\nhost:h\n"
        )
        assert signed_headers_list(headers) == "content-type;host"

    def test_timestamp_and_scope(self) -> None:
        assert format_timestamp(SIGNED_AT) == "20260314T092653Z"
        assert credential_scope(SIGNED_AT) == (
            "20260314/auto/storage/goog4_request"
        )


class TestValidateExpires:
    """Tests for validate_expires."""

    def test_bounds_accepted(self) -> None:
        assert validate_expires(1) == 1
        assert validate_expires(MAX_EXPIRES_SECONDS) == MAX_EXPIRES_SECONDS

    @pytest.mark.parametrize("value", [0, -5, MAX_EXPIRES_SECONDS + 1])
    def test_out_of_range_rejected(self, value: int) -> None:
        """Out-of-range expiries raise instead of being clamped."""
        with pytest.raises(InvalidInput):
            validate_expires(value)

    @pytest.mark.parametrize("value", [True, 1.5, "900"])
    def test_non_int_rejected(self, value: object) -> None:
        with pytest.raises(InvalidInput, match="integer"):
            validate_expires(value)  # type: ignore[arg-type]


class TestBuildCanonicalRequest:
    """Tests for build_canonical_request."""

    def test_put_known_answer(self) -> None:
        """PUT binds content-type and host into the canonical request."""
        creq = build_canonical_request(
            method="put",
            bucket="b",
            object_path="avatar1/abc123.png",
            access_id=ACCESS_ID,
            expires_seconds=900,
            signed_at=SIGNED_AT,
            content_type="image/png",
        )
        assert creq.method == "PUT"
        assert creq.text == (
            "PUT\n"
            "/b/avatar1/abc123.png\n"
            "X-Goog-Algorithm=GOOG4-RSA-SHA256"
            f"&X-Goog-Credential={CREDENTIAL}"
            "&X-Goog-Date=20260314T092653Z"
            "&X-Goog-Expires=900"
            "&X-Goog-SignedHeaders=content-type%3Bhost\n"
            "content-type:image/png\n"
            "host:storage.googleapis.com\n"
            "\n"
            "content-type;host\n"
            "UNSIGNED-PAYLOAD"
        )
        assert creq.hashed == (
            "1444d27319e31f55d99f54eb1cedcfb2bcca7a099f9649012862044cbb9b3cb2"
        )
        assert creq.string_to_sign == (
            "GOOG4-RSA-SHA256\n"
            "20260314T092653Z\n"
            "20260314/auto/storage/goog4_request\n"
            "1444d27319e31f55d99f54eb1cedcfb2bcca7a099f9649012862044cbb9b3cb2"
        )

    def test_get_known_answer(self) -> None:
        """GET signs only the host header."""
        creq = build_canonical_request(
            method="GET",
            bucket="b",
            object_path="tb-1/icon",
            access_id=ACCESS_ID,
            expires_seconds=900,
            signed_at=SIGNED_AT,
        )
        assert creq.signed_headers == "host"
        assert "content-type" not in creq.text
        assert creq.hashed == (
            "e54cd80fd967f01b1afff3c1f27034596639f93c7ba5343d7652a3591c893a07"
        )

    def test_get_ignores_content_type(self) -> None:
        """A content type given for GET never reaches the signature."""
        with_ct = build_canonical_request(
            method="GET",
            bucket="b",
            object_path="tb-1/icon",
            access_id=ACCESS_ID,
            expires_seconds=900,
            signed_at=SIGNED_AT,
            content_type="image/png",
        )
        without_ct = build_canonical_request(
            method="GET",
            bucket="b",
            object_path="tb-1/icon",
            access_id=ACCESS_ID,
            expires_seconds=900,
            signed_at=SIGNED_AT,
        )
        assert with_ct.text == without_ct.text

    def test_put_requires_content_type(self) -> None:
        with pytest.raises(InvalidInput, match="content type"):
            build_canonical_request(
                method="PUT",
                bucket="b",
                object_path="x",
                access_id=ACCESS_ID,
                expires_seconds=900,
                signed_at=SIGNED_AT,
            )

    @pytest.mark.parametrize("method", ["DELETE", "POST", "HEAD"])
    def test_unsupported_method(self, method: str) -> None:
        with pytest.raises(InvalidInput, match="Unsupported method"):
            build_canonical_request(
                method=method,
                bucket="b",
                object_path="x",
                access_id=ACCESS_ID,
                expires_seconds=900,
                signed_at=SIGNED_AT,
            )

    def test_expiry_over_seven_days(self) -> None:
        with pytest.raises(InvalidInput, match="exceeds maximum"):
            build_canonical_request(
                method="GET",
                bucket="b",
                object_path="x",
                access_id=ACCESS_ID,
                expires_seconds=MAX_EXPIRES_SECONDS + 1,
                signed_at=SIGNED_AT,
            )

    def test_signed_url_appends_hex_signature(self) -> None:
        creq = build_canonical_request(
            method="GET",
            bucket="b",
            object_path="dir/a b.png",
            access_id=ACCESS_ID,
            expires_seconds=60,
            signed_at=SIGNED_AT,
        )
        url = creq.signed_url(b"\x01\xab")
        assert url.startswith("https://storage.googleapis.com/b/dir/a%20b.png?")
        assert url.endswith(f"?{creq.query_string}&X-Goog-Signature=01ab")

    def test_custom_host(self) -> None:
        creq = build_canonical_request(
            method="GET",
            bucket="b",
            object_path="x",
            access_id=ACCESS_ID,
            expires_seconds=60,
            signed_at=SIGNED_AT,
            host="localhost:4443",
        )
        assert "host:localhost:4443\n" in creq.text
        assert creq.signed_url(b"\x00", scheme="http").startswith(
            "http://localhost:4443/b/x?"
        )


class TestDecodeObjectPath:
    """Tests for decode_object_path."""

    def test_splits_and_unquotes(self) -> None:
        assert decode_object_path("/b/dir/a%20b.png") == ("b", "dir/a b.png")

    def test_bucket_only(self) -> None:
        assert decode_object_path("/b") == ("b", "")
