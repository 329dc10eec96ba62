"""Build orchestration module.

This module handles:
- Content hashing and canonical filename derivation
- Running the external CSS processor (or the copy fallback)
- Persisting the hash record
- Injecting the current hash into HTML and package assets
"""

from qorecss_deploy.builds.hashing import (
    canonical_filename,
    compute_hash,
    compute_integrity_digest,
)

__all__ = ["canonical_filename", "compute_hash", "compute_integrity_digest"]
