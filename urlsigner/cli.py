# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""urlsigner CLI: multi-command entry point.

Subcommands:

* ``issue``: issue a signed upload or download URL
* ``public-url``: print the public URL of an object
* ``check``: load configuration and report the signer identity
* ``verify``: check a signed URL against the local signing key

Exit codes: 0 ok, 1 configuration error, 2 invalid input, 3 signing error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from urlsigner import public_url
from urlsigner.config import ConfigError, SigningConfig, get_config_path
from urlsigner.errors import InvalidInput, SigningFailed, SigningUnavailable
from urlsigner.issuer import SignedURLIssuer, format_expiry
from urlsigner.logging import configure_logging
from urlsigner.paths import ResourceDomain
from urlsigner.signers import (
    DelegatedSigner,
    LocalKeySigner,
    SigningBackend,
    signer_from_config,
)
from urlsigner.verify import parse_signed_url, verify_rsa_signature


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_INPUT = 2
EXIT_SIGNING = 3

_USAGE = """\
usage: urlsigner <command> [args]

commands:
  issue       Issue a signed upload or download URL
  public-url  Print the public URL of an object
  check       Load configuration and report the signer identity
  verify      Check a signed URL against the local signing key

Run 'urlsigner <command> --help' for command-specific help.\
"""


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Path to urlsigner.yaml (default: ~/.config/urlsigner/"
            "urlsigner.yaml, or environment variables if absent)"
        ),
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )


def _setup(args: argparse.Namespace) -> None:
    configure_logging(
        level=logging.DEBUG if args.debug else logging.WARNING,
        add_secret_filter=True,
    )


def _load_config(config_path: Path | None) -> SigningConfig:
    """Load config from an explicit file, the default file, or env."""
    if config_path is not None:
        return SigningConfig.from_yaml(config_path)
    if get_config_path().exists():
        return SigningConfig.from_yaml()
    return SigningConfig.from_env()


def _fail(message: str, code: int) -> int:
    print(f"urlsigner: {message}", file=sys.stderr)
    return code


def _close(signer: SigningBackend) -> None:
    if isinstance(signer, DelegatedSigner):
        signer.close()


# ── issue subcommand ────────────────────────────────────────────────


def cmd_issue(argv: list[str]) -> int:
    """Issue a signed URL and print it as JSON.

    Args:
        argv: Subcommand arguments.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="urlsigner issue",
        description="Issue a signed upload or download URL.",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--domain",
        choices=[d.value for d in ResourceDomain],
        help="Resource domain; the object path is derived from --id",
    )
    target.add_argument(
        "--path",
        help="Explicit object path (e.g. to overwrite an existing object)",
    )
    parser.add_argument(
        "--id",
        dest="ids",
        action="append",
        default=[],
        metavar="ID",
        help="Domain identifier, in path order (repeatable)",
    )
    parser.add_argument(
        "--bucket",
        help="Bucket name (default: configured bucket for --domain)",
    )
    parser.add_argument(
        "--method",
        type=str.upper,
        choices=["PUT", "GET"],
        default="PUT",
        help="HTTP method to grant (default: PUT)",
    )
    parser.add_argument("--content-type", help="Upload content type")
    parser.add_argument(
        "--ttl",
        type=int,
        default=None,
        metavar="SECONDS",
        help="URL lifetime in seconds (default: configured TTL)",
    )
    parser.add_argument(
        "--with-view",
        action="store_true",
        help="Also issue a GET URL for the uploaded object",
    )
    _add_common_args(parser)
    args = parser.parse_args(argv)
    _setup(args)

    if args.path is not None and args.ids:
        return _fail("--id cannot be combined with --path", EXIT_INPUT)
    if args.path is not None and not args.bucket:
        return _fail("--bucket is required with --path", EXIT_INPUT)

    try:
        config = _load_config(args.config)
        issuer = SignedURLIssuer.from_config(config)
    except ConfigError as e:
        return _fail(f"configuration error: {e}", EXIT_CONFIG)
    except SigningUnavailable as e:
        return _fail(f"signing unavailable: {e}", EXIT_SIGNING)

    try:
        return _issue(issuer, config, args)
    finally:
        _close(issuer.backend)


def _issue(
    issuer: SignedURLIssuer, config: SigningConfig, args: argparse.Namespace
) -> int:
    try:
        if args.domain is not None:
            bucket = args.bucket or config.buckets.bucket_for(args.domain)
            object_path = issuer.path_policy.derive(
                args.domain, *args.ids, content_type=args.content_type
            )
        else:
            bucket = args.bucket
            object_path = args.path

        if args.with_view:
            if args.method != "PUT":
                return _fail("--with-view requires --method PUT", EXIT_INPUT)
            pair = issuer.issue_upload_and_view(
                bucket,
                object_path,
                content_type=args.content_type,
                ttl_seconds=args.ttl,
            )
            output = pair.to_dict()
        else:
            result = issuer.issue_path(
                bucket,
                object_path,
                method=args.method,
                content_type=args.content_type,
                ttl_seconds=args.ttl,
            )
            output = result.to_dict()
    except InvalidInput as e:
        return _fail(f"invalid input: {e}", EXIT_INPUT)
    except (SigningUnavailable, SigningFailed) as e:
        return _fail(f"signing failed: {e}", EXIT_SIGNING)

    print(json.dumps(output, indent=2))
    return EXIT_OK


# ── public-url subcommand ───────────────────────────────────────────


def cmd_public_url(argv: list[str]) -> int:
    """Print the public URL of an object."""
    parser = argparse.ArgumentParser(
        prog="urlsigner public-url",
        description="Print the public (unsigned) URL of an object.",
    )
    parser.add_argument("--bucket", required=True, help="Bucket name")
    parser.add_argument("--path", required=True, help="Object path")
    args = parser.parse_args(argv)

    try:
        print(public_url.resolve(args.bucket, args.path))
    except InvalidInput as e:
        return _fail(f"invalid input: {e}", EXIT_INPUT)
    return EXIT_OK


# ── check subcommand ────────────────────────────────────────────────


def cmd_check(argv: list[str]) -> int:
    """Load configuration, build the backend and report what was found.

    With ``--probe`` a test payload is signed, which for delegated
    signing verifies IAM permissions end to end.
    """
    parser = argparse.ArgumentParser(
        prog="urlsigner check",
        description="Verify configuration and report the signer identity.",
    )
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Sign a test payload to verify the backend works",
    )
    _add_common_args(parser)
    args = parser.parse_args(argv)
    _setup(args)

    try:
        config = _load_config(args.config)
        signer = signer_from_config(config.signer)
    except ConfigError as e:
        return _fail(f"configuration error: {e}", EXIT_CONFIG)
    except SigningUnavailable as e:
        return _fail(f"signing unavailable: {e}", EXIT_SIGNING)

    try:
        return _report(config, signer, probe=args.probe)
    finally:
        _close(signer)


def _report(
    config: SigningConfig, signer: SigningBackend, *, probe: bool
) -> int:
    identity = signer.identity
    print(f"Signer:      {identity.backend_kind}")
    print(f"Access id:   {identity.access_id}")
    print(f"Host:        {config.signer.host}")
    print(
        f"TTL:         default {config.ttl.default_seconds}s, "
        f"max {config.ttl.max_seconds}s"
    )
    print("Buckets:")
    for domain in ResourceDomain:
        print(f"  {domain.value:<14} {config.buckets.bucket_for(domain)}")

    if probe:
        try:
            signature = signer.sign(b"urlsigner probe")
        except (SigningUnavailable, SigningFailed) as e:
            return _fail(f"probe failed: {e}", EXIT_SIGNING)
        print(f"Probe:       ok ({len(signature)}-byte signature)")
    return EXIT_OK


# ── verify subcommand ───────────────────────────────────────────────


def cmd_verify(argv: list[str]) -> int:
    """Check a signed URL with the public half of the local key."""
    parser = argparse.ArgumentParser(
        prog="urlsigner verify",
        description="Check a signed URL against the local signing key.",
    )
    parser.add_argument("url", help="Signed URL")
    parser.add_argument(
        "--method",
        type=str.upper,
        choices=["PUT", "GET"],
        default="GET",
        help="Method the URL is used with (default: GET)",
    )
    parser.add_argument("--content-type", help="Content type sent with PUT")
    _add_common_args(parser)
    args = parser.parse_args(argv)
    _setup(args)

    try:
        config = _load_config(args.config)
        signer = signer_from_config(config.signer)
    except ConfigError as e:
        return _fail(f"configuration error: {e}", EXIT_CONFIG)
    except SigningUnavailable as e:
        return _fail(f"signing unavailable: {e}", EXIT_SIGNING)
    if not isinstance(signer, LocalKeySigner):
        _close(signer)
        return _fail("verify requires a local keyfile signer", EXIT_CONFIG)

    try:
        parsed = parse_signed_url(args.url)
        valid = verify_rsa_signature(
            signer.public_key(), args.url, args.method, args.content_type
        )
    except InvalidInput as e:
        return _fail(f"invalid input: {e}", EXIT_INPUT)

    expired = parsed.expires_at <= datetime.now(UTC)
    print(f"Object:      {parsed.bucket}/{parsed.object_path}")
    print(f"Access id:   {parsed.access_id}")
    print(
        f"Expires:     {format_expiry(parsed.expires_at)}"
        + (" (expired)" if expired else "")
    )
    print(f"Signature:   {'valid' if valid else 'INVALID'}")
    return EXIT_OK if valid else EXIT_INPUT


# ── dispatch ────────────────────────────────────────────────────────


_DISPATCH: dict[str, str] = {
    "issue": "cmd_issue",
    "public-url": "cmd_public_url",
    "check": "cmd_check",
    "verify": "cmd_verify",
}


def main(argv: list[str] | None = None) -> int:
    """Run a subcommand.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code.
    """
    if argv is None:
        argv = sys.argv[1:]

    if not argv or argv[0] in ("-h", "--help"):
        print(_USAGE)
        return EXIT_OK

    if argv[0] not in _DISPATCH:
        print(f"urlsigner: unknown command '{argv[0]}'", file=sys.stderr)
        print(_USAGE, file=sys.stderr)
        return EXIT_INPUT

    # Look up handler by name so tests can mock individual commands.
    import urlsigner.cli as _self

    handler = getattr(_self, _DISPATCH[argv[0]])
    return handler(argv[1:])


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())
