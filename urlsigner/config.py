# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Configuration for signed-URL issuance.

Configuration is resolved once at process start and passed explicitly into
the issuer.  It is loaded from a YAML file whose default location follows
the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/urlsigner/urlsigner.yaml``
    (typically ``~/.config/urlsigner/urlsigner.yaml``)

``!env`` tags resolve values from environment variables::

    signer:
      keyfile: !env GOOGLE_APPLICATION_CREDENTIALS   # local signing
      email: !env GCS_SIGNER_EMAIL                   # delegated signing
      timeout: 10
    buckets:
      avatar-icon: !env AVATAR_ICON_BUCKET
      token-icon: !env TOKEN_ICON_BUCKET
      token-content: !env TOKEN_CONTENTS_BUCKET
      list-image: !env LIST_IMAGE_BUCKET
    ttl:
      default: 900
      max: 604800

Deployments without a config file use ``SigningConfig.from_env()``, which
reads the same environment variables directly.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import user_config_path

from urlsigner.canonical import DEFAULT_HOST, MAX_EXPIRES_SECONDS
from urlsigner.dotenv_loader import load_dotenv_once
from urlsigner.paths import ResourceDomain


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "urlsigner"

#: Default lifetime of an issued URL (15 minutes).
DEFAULT_TTL_SECONDS = 15 * 60

#: Default timeout for a delegated signing round trip.
DEFAULT_SIGN_TIMEOUT_SECONDS = 10.0

#: Bucket used per domain when none is configured.
DEFAULT_BUCKETS: dict[ResourceDomain, str] = {
    ResourceDomain.AVATAR_ICON: "narratives-development_avatar_icon",
    ResourceDomain.TOKEN_ICON: "narratives-development_token_icon",
    ResourceDomain.TOKEN_CONTENT: "narratives-development-token-contents",
    ResourceDomain.LIST_IMAGE: "narratives-development-list",
}

#: Environment variable naming each domain's bucket.
BUCKET_ENV_VARS: dict[ResourceDomain, str] = {
    ResourceDomain.AVATAR_ICON: "AVATAR_ICON_BUCKET",
    ResourceDomain.TOKEN_ICON: "TOKEN_ICON_BUCKET",
    ResourceDomain.TOKEN_CONTENT: "TOKEN_CONTENTS_BUCKET",
    ResourceDomain.LIST_IMAGE: "LIST_IMAGE_BUCKET",
}

ENV_SIGNER_EMAIL = "GCS_SIGNER_EMAIL"
ENV_KEYFILE = "GCS_KEYFILE"
ENV_DEFAULT_TTL = "SIGNED_URL_TTL"
ENV_MAX_TTL = "SIGNED_URL_MAX_TTL"

def get_config_path() -> Path:
    """Return the default config file path.

    Uses XDG: ``$XDG_CONFIG_HOME/urlsigner/urlsigner.yaml``.

    Returns:
        Path to the config file.
    """
    return user_config_path(_APP_NAME) / "urlsigner.yaml"


def get_dotenv_path() -> Path:
    """Return the default ``.env`` file path inside the XDG config directory.

    Returns:
        Path to the ``.env`` file.
    """
    return user_config_path(_APP_NAME) / ".env"


class ConfigError(Exception):
    """Base exception for configuration errors."""


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None, or the env var is unset or empty.
    """
    if isinstance(value, _EnvVar):
        raw = os.environ.get(value.var_name)
        if raw is None or not raw.strip():
            return None
        return raw.strip()
    if value is None:
        return None
    return str(value)


_MISSING = object()

_T = TypeVar("_T")


@overload
def _resolve(value: object, coerce: type[_T], *, default: _T) -> _T: ...


@overload
def _resolve(
    value: object,
    coerce: type[_T],
    *,
    required: str,
) -> _T: ...


@overload
def _resolve(value: object, coerce: type[_T]) -> _T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = _MISSING,
    required: str = "",
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``int``, ``float`` or ``Path``).
        default: Default when value is absent.  Not allowed together
            with *required*.
        required: Human-readable field name.  When set, raises
            ``ConfigError`` if the value is absent.

    Returns:
        The resolved, coerced value, or None when optional and absent.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)

    if resolved is None:
        if required:
            if isinstance(value, _EnvVar):
                raise ConfigError(
                    f"Required config '{required}': environment variable "
                    f"'{value.var_name}' is not set"
                )
            raise ConfigError(f"Required config '{required}' is missing")
        if default is not _MISSING:
            return default
        return None

    if coerce is Path:
        return Path(resolved).expanduser()
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


# ---------------------------------------------------------------------------
# Configuration objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignerConfig:
    """Signing backend selection.

    A keyfile path selects local RSA signing; otherwise a signer email
    selects delegated signing.  With neither, ``signer_from_config``
    raises ``SigningUnavailable``.

    Attributes:
        keyfile_path: Service-account JSON keyfile (local mode).
        signer_email: Service-account email to sign as (delegated mode).
        timeout_seconds: Default deadline for one delegated signing call.
        host: Storage endpoint host used in URLs and signatures.
    """

    keyfile_path: Path | None = None
    signer_email: str | None = None
    timeout_seconds: float = DEFAULT_SIGN_TIMEOUT_SECONDS
    host: str = DEFAULT_HOST

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if self.keyfile_path is not None and not self.keyfile_path.is_file():
            raise ConfigError(f"Signer keyfile not found: {self.keyfile_path}")
        if self.timeout_seconds <= 0:
            raise ConfigError(
                f"Signer timeout must be > 0s: {self.timeout_seconds}"
            )
        if not self.host:
            raise ConfigError("Storage host cannot be empty")

    @property
    def mode(self) -> str:
        """Return ``"local"``, ``"delegated"`` or ``"none"``."""
        if self.keyfile_path is not None:
            return "local"
        return "delegated" if self.signer_email else "none"


@dataclass(frozen=True)
class TTLConfig:
    """Signed URL lifetimes.

    Attributes:
        default_seconds: Lifetime used when a caller gives none.
        max_seconds: Longest lifetime a caller may request.
    """

    default_seconds: int = DEFAULT_TTL_SECONDS
    max_seconds: int = MAX_EXPIRES_SECONDS

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not (1 <= self.max_seconds <= MAX_EXPIRES_SECONDS):
            raise ConfigError(
                f"Max TTL must be within 1..{MAX_EXPIRES_SECONDS}s: "
                f"{self.max_seconds}"
            )
        if not (1 <= self.default_seconds <= self.max_seconds):
            raise ConfigError(
                f"Default TTL must be within 1..{self.max_seconds}s: "
                f"{self.default_seconds}"
            )


@dataclass(frozen=True)
class BucketConfig:
    """Bucket name per resource domain.

    Attributes:
        buckets: Mapping of domain to bucket name.  Missing domains use
            ``DEFAULT_BUCKETS``.
    """

    buckets: dict[ResourceDomain, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If a configured bucket name is blank.
        """
        for domain, bucket in self.buckets.items():
            if not bucket.strip():
                raise ConfigError(f"Bucket for '{domain}' cannot be empty")

    def bucket_for(self, domain: ResourceDomain | str) -> str:
        """Return the bucket that stores objects of a domain."""
        domain = ResourceDomain(domain)
        return self.buckets.get(domain) or DEFAULT_BUCKETS[domain]


@dataclass(frozen=True)
class SigningConfig:
    """Complete signed-URL configuration.

    Attributes:
        signer: Signing backend selection.
        buckets: Bucket per resource domain.
        ttl: URL lifetimes.
    """

    signer: SignerConfig
    buckets: BucketConfig = field(default_factory=BucketConfig)
    ttl: TTLConfig = field(default_factory=TTLConfig)

    def __post_init__(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Signing config loaded: mode=%s, host=%s, default_ttl=%ds, "
            "max_ttl=%ds",
            self.signer.mode,
            self.signer.host,
            self.ttl.default_seconds,
            self.ttl.max_seconds,
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "SigningConfig":
        """Load configuration from a YAML file.

        Values tagged with ``!env VAR_NAME`` are resolved from the
        environment at load time.  A ``.env`` file is loaded first if
        present.

        Args:
            config_path: Path to YAML config file.  Defaults to
                ``~/.config/urlsigner/urlsigner.yaml`` (XDG).

        Returns:
            SigningConfig instance.

        Raises:
            ConfigError: If the file is missing or values are invalid.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            raw = yaml.load(f, Loader=_make_loader())

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        return cls._from_raw(raw)

    @classmethod
    def from_env(cls) -> "SigningConfig":
        """Build configuration from environment variables only.

        Reads ``GCS_KEYFILE`` (or ``GOOGLE_APPLICATION_CREDENTIALS``),
        ``GCS_SIGNER_EMAIL``, the per-domain bucket variables,
        ``SIGNED_URL_TTL`` and ``SIGNED_URL_MAX_TTL``.

        Raises:
            ConfigError: If a value is invalid.
        """
        load_dotenv_once()
        return cls._from_raw(
            {
                "signer": {
                    "keyfile": _EnvVar(ENV_KEYFILE),
                    "email": _EnvVar(ENV_SIGNER_EMAIL),
                },
                "buckets": {
                    str(domain): _EnvVar(var)
                    for domain, var in BUCKET_ENV_VARS.items()
                },
                "ttl": {
                    "default": _EnvVar(ENV_DEFAULT_TTL),
                    "max": _EnvVar(ENV_MAX_TTL),
                },
            },
            keyfile_fallback=_EnvVar("GOOGLE_APPLICATION_CREDENTIALS"),
        )

    @classmethod
    def _from_raw(
        cls, raw: dict, *, keyfile_fallback: object = None
    ) -> "SigningConfig":
        """Build config from parsed (but unresolved) YAML dict.

        Args:
            raw: Parsed YAML mapping.
            keyfile_fallback: Keyfile used only when neither
                ``signer.keyfile`` nor ``signer.email`` is set.
        """
        signer_raw = _section(raw, "signer")
        buckets_raw = _section(raw, "buckets")
        ttl_raw = _section(raw, "ttl")

        keyfile = _resolve(signer_raw.get("keyfile"), Path)
        email = _resolve(signer_raw.get("email"), str)
        if keyfile is None and not email:
            # GOOGLE_APPLICATION_CREDENTIALS selects local signing only when
            # no explicit signer email asks for delegation.
            keyfile = _resolve(keyfile_fallback, Path)

        signer = SignerConfig(
            keyfile_path=keyfile,
            signer_email=email,
            timeout_seconds=_resolve(
                signer_raw.get("timeout"),
                float,
                default=DEFAULT_SIGN_TIMEOUT_SECONDS,
            ),
            host=_resolve(signer_raw.get("host"), str, default=DEFAULT_HOST),
        )

        buckets: dict[ResourceDomain, str] = {}
        for key, value in buckets_raw.items():
            try:
                domain = ResourceDomain(str(key))
            except ValueError:
                raise ConfigError(
                    f"Unknown resource domain in buckets: {key!r}"
                ) from None
            bucket = _resolve(value, str)
            if bucket is not None:
                buckets[domain] = bucket

        ttl = TTLConfig(
            default_seconds=_resolve(
                ttl_raw.get("default"), int, default=DEFAULT_TTL_SECONDS
            ),
            max_seconds=_resolve(
                ttl_raw.get("max"), int, default=MAX_EXPIRES_SECONDS
            ),
        )

        return cls(signer=signer, buckets=BucketConfig(buckets), ttl=ttl)


def _section(raw: dict, name: str) -> dict:
    """Return a mapping section of the config, empty if absent."""
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a YAML mapping")
    return value
