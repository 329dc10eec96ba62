"""Content hashing and canonical artifact naming.

Two digests are derived from the built bytes:
- a short SHA-1 prefix used in the artifact filename (cache busting)
- a full SHA-384 digest used for subresource integrity

Every component that needs the artifact name derives it through
canonical_filename() so the names always agree.
"""

from __future__ import annotations

import base64
import hashlib
import re

# Length of the hex prefix used in artifact filenames
HASH_LENGTH = 8

ARTIFACT_PREFIX = "core."
ARTIFACT_SUFFIX = ".min.css"

# Matches any hashed artifact name, e.g. core.1a2b3c4d.min.css
HASHED_FILENAME_RE = re.compile(r"core\.[a-f0-9]{8}\.min\.css")

# Same, anchored, for filtering directory listings (optionally compressed)
HASHED_ARTIFACT_FILE_RE = re.compile(
    r"^core\.(?P<hash>[a-f0-9]{8})\.min\.css(?:\.gz|\.br)?$"
)


def compute_hash(data: bytes) -> str:
    """Compute the short content hash of artifact bytes.

    Args:
        data: Built stylesheet bytes.

    Returns:
        First 8 lowercase hex characters of the SHA-1 digest.
    """
    return hashlib.sha1(data).hexdigest()[:HASH_LENGTH]


def compute_integrity_digest(data: bytes) -> str:
    """Compute a subresource-integrity value for artifact bytes.

    Args:
        data: Built stylesheet bytes.

    Returns:
        Integrity string of the form ``sha384-<base64 digest>``.
    """
    digest = hashlib.sha384(data).digest()
    return "sha384-" + base64.b64encode(digest).decode("ascii")


def canonical_filename(content_hash: str) -> str:
    """Derive the artifact filename for a content hash.

    Args:
        content_hash: Hash value (surrounding whitespace is ignored).

    Returns:
        Filename of the form ``core.<hash>.min.css``.
    """
    return f"{ARTIFACT_PREFIX}{content_hash.strip()}{ARTIFACT_SUFFIX}"


def replace_hashed_references(text: str, content_hash: str) -> str:
    """Point every hashed artifact reference in text at content_hash."""
    return HASHED_FILENAME_RE.sub(canonical_filename(content_hash), text)


__all__ = [
    "ARTIFACT_PREFIX",
    "ARTIFACT_SUFFIX",
    "HASHED_ARTIFACT_FILE_RE",
    "HASHED_FILENAME_RE",
    "HASH_LENGTH",
    "canonical_filename",
    "compute_hash",
    "compute_integrity_digest",
    "replace_hashed_references",
]
