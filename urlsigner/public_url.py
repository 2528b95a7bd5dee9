# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Stable, unsigned reference URLs for stored objects.

The public URL is what callers persist and cache.  It never carries a
signature, so it stays the same for a fixed-name object across uploads.
"""

from __future__ import annotations

import urllib.parse

from urlsigner.canonical import DEFAULT_HOST, canonical_uri
from urlsigner.errors import InvalidInput


#: Hosts recognized when parsing a stored public URL back into a path.
_KNOWN_HOSTS = frozenset({"storage.googleapis.com", "storage.cloud.google.com"})


def resolve(bucket: str, object_path: str, *, host: str = DEFAULT_HOST) -> str:
    """Return the public URL for an object.

    Args:
        bucket: Bucket name.
        object_path: Object path; leading slashes are ignored.  Segments
            are percent-encoded the same way as in signed URLs.
        host: Storage endpoint host.

    Raises:
        InvalidInput: If bucket or object path is empty.
    """
    bucket = bucket.strip()
    obj = object_path.strip().lstrip("/")
    if not bucket:
        raise InvalidInput("Bucket is empty")
    if not obj:
        raise InvalidInput("Object path is empty")
    return f"https://{host}{canonical_uri(bucket, obj)}"


def parse(url: str) -> tuple[str, str] | None:
    """Parse a public object URL into ``(bucket, object_path)``.

    Accepts ``storage.googleapis.com`` and ``storage.cloud.google.com``
    URLs.  Any query string is ignored.

    Returns:
        Tuple of bucket and unescaped object path, or None if the URL does
        not point at an object in a known storage host.
    """
    parsed = urllib.parse.urlsplit(url.strip())
    if (parsed.hostname or "").lower() not in _KNOWN_HOSTS:
        return None
    bucket, _, obj = parsed.path.lstrip("/").partition("/")
    if not bucket or not obj:
        return None
    return bucket, urllib.parse.unquote(obj)
