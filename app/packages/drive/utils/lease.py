"""Access-lease and naming helpers for file records.

- A signed read URL carries its own issuance stamp (``YYYYMMDDTHHMMSSZ``):
  ``X-Amz-Date`` for S3 SigV4 URLs, ``issued`` for local URLs;
- A lease is valid for ``ttl`` seconds after that stamp; a missing URL or one
  without a parseable stamp is treated as expired;
- Storage keys are owner scoped: ``{owner_id}/{original_name}``.
"""

from __future__ import annotations

import os
import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlsplit

STAMP_FORMAT = "%Y%m%dT%H%M%SZ"
_STAMP_RE = re.compile(r"\d{8}T\d{6}Z")


def format_stamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(STAMP_FORMAT)


def parse_issued_at(url: Optional[str]) -> Optional[datetime]:
    """Extract the issuance stamp embedded in ``url`` as an aware UTC datetime.

    The query string is searched first so that a stamp-like object name in the
    path cannot shadow the real one.
    """
    if not url:
        return None
    match = _STAMP_RE.search(urlsplit(url).query) or _STAMP_RE.search(url)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(0), STAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def is_expired(url: Optional[str], *, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
    issued_at = parse_issued_at(url)
    if issued_at is None:
        return True
    current = now or datetime.now(timezone.utc)
    return current > issued_at + timedelta(seconds=ttl_seconds)


def build_storage_key(owner_id: int, original_name: str) -> str:
    return f"{owner_id}/{original_name}"


def apply_original_extension(original_name: str, new_name: str) -> str:
    """Keep the original extension: ``report.pdf`` + ``summary`` -> ``summary.pdf``.

    Extensions compare case-sensitively; a new name carrying a different
    extension gets the original one appended (``summary.txt`` -> ``summary.txt.pdf``).
    Names without an original extension are returned unchanged.
    """
    _, original_ext = os.path.splitext(original_name)
    if not original_ext:
        return new_name
    _, new_ext = os.path.splitext(new_name)
    if new_ext == original_ext:
        return new_name
    return f"{new_name}{original_ext}"
