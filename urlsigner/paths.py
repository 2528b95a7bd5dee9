# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Object path policy for resource domains.

Maps a resource domain plus identifiers to a bucket-relative object path.
Each domain is either *fixed-name* (same ids always give the same path, so
a public URL stays valid after the bytes are replaced) or *unique-name*
(every call mints a random id, so concurrent uploads for one parent never
collide).

Rules::

    avatar-icon    {avatarId}/{randomId}{ext}          unique
    token-icon     {tokenBlueprintId}/icon             fixed
    token-content  {tokenBlueprintId}/{contentId}      fixed
    list-image     lists/{listId}/images/{imageId}     unique if imageId omitted
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from enum import StrEnum

from urlsigner.errors import InvalidInput


#: Random object ids are 16 bytes (32 hex chars).
RANDOM_ID_BYTES = 16

#: File name used for every token icon so its URL never changes.
TOKEN_ICON_NAME = "icon"

_EXTENSIONS_BY_MIME: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
}


class ResourceDomain(StrEnum):
    """Resource domains that receive signed upload/download grants."""

    AVATAR_ICON = "avatar-icon"
    TOKEN_ICON = "token-icon"
    TOKEN_CONTENT = "token-content"
    LIST_IMAGE = "list-image"


#: Number of (required, optional) ids each domain takes.
_ARITY: dict[ResourceDomain, tuple[int, int]] = {
    ResourceDomain.AVATAR_ICON: (1, 0),
    ResourceDomain.TOKEN_ICON: (1, 0),
    ResourceDomain.TOKEN_CONTENT: (2, 0),
    ResourceDomain.LIST_IMAGE: (1, 1),
}

_FIXED_DOMAINS = frozenset(
    {ResourceDomain.TOKEN_ICON, ResourceDomain.TOKEN_CONTENT}
)


def new_object_id() -> str:
    """Return a cryptographically random hex object id."""
    return secrets.token_hex(RANDOM_ID_BYTES)


def sanitize_segment(value: str) -> str:
    """Sanitize an identifier for use as a single path segment.

    Separators become ``_`` and surrounding dots/spaces are trimmed, so a
    segment can never escape its parent directory.
    """
    s = value.strip().replace("\\", "_").replace("/", "_")
    return s.strip(". ")


def extension_for(content_type: str | None) -> str:
    """Return the file extension for an image content type, or ``""``."""
    if not content_type:
        return ""
    return _EXTENSIONS_BY_MIME.get(content_type.strip().lower(), "")


class ObjectPathPolicy:
    """Derives canonical object paths for resource domains.

    Args:
        id_factory: Source of random ids for unique-name domains.  Defaults
            to ``new_object_id``; override only in tests.
    """

    def __init__(self, id_factory: Callable[[], str] = new_object_id) -> None:
        self._new_id = id_factory

    @staticmethod
    def is_fixed(domain: ResourceDomain | str) -> bool:
        """Return True if repeated derivations reuse one stable path."""
        return ResourceDomain(domain) in _FIXED_DOMAINS

    def derive(
        self,
        domain: ResourceDomain | str,
        *ids: str,
        content_type: str | None = None,
    ) -> str:
        """Derive the object path for a resource.

        Args:
            domain: Resource domain.
            *ids: Domain identifiers, in template order.
            content_type: Upload content type; selects the avatar icon
                extension.

        Returns:
            Object path without a leading slash.

        Raises:
            InvalidInput: On unknown domain, wrong number of ids or an id
                that is empty after sanitizing.
        """
        try:
            domain = ResourceDomain(domain)
        except ValueError:
            raise InvalidInput(f"Unknown resource domain: {domain!r}") from None

        required, optional = _ARITY[domain]
        if not required <= len(ids) <= required + optional:
            raise InvalidInput(
                f"{domain} takes {required} id(s)"
                + (f" plus {optional} optional" if optional else "")
                + f", got {len(ids)}"
            )
        segments = [self._segment(domain, value) for value in ids]

        if domain is ResourceDomain.AVATAR_ICON:
            ext = extension_for(content_type)
            return f"{segments[0]}/{self._new_id()}{ext}"
        if domain is ResourceDomain.TOKEN_ICON:
            return f"{segments[0]}/{TOKEN_ICON_NAME}"
        if domain is ResourceDomain.TOKEN_CONTENT:
            return f"{segments[0]}/{segments[1]}"
        image_id = segments[1] if len(segments) > 1 else self._new_id()
        return f"lists/{segments[0]}/images/{image_id}"

    @staticmethod
    def _segment(domain: ResourceDomain, value: str) -> str:
        if not isinstance(value, str):
            raise InvalidInput(f"{domain}: identifiers must be strings")
        segment = sanitize_segment(value)
        if not segment:
            raise InvalidInput(f"{domain}: identifier is empty: {value!r}")
        return segment
