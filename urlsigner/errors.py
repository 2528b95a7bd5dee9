# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Error taxonomy for signed-URL issuance.

Every failure is raised to the caller unchanged.  Callers decide whether
a failed issuance blocks their own operation or merely degrades it.
"""


class SignedURLError(Exception):
    """Base exception for signed-URL issuance errors."""


class InvalidInput(SignedURLError, ValueError):
    """Raised for malformed bucket, object path, method or TTL.

    Always the caller's fault; never retried automatically.
    """


class SigningUnavailable(SignedURLError):
    """Raised when no signing backend or credential is configured."""


class SigningFailed(SignedURLError):
    """Raised when a configured backend fails to produce a signature.

    The upstream exception is chained as ``__cause__``.  Callers may retry.
    """


class NotFound(SignedURLError):
    """Raised by callers when the referenced business resource is missing.

    Existence is checked before issuance is requested; the issuer itself
    never raises this.
    """
