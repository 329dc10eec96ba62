"""CDN interaction module.

This module handles:
- Purging the hashed artifact from the CDN cache
- Sampling download performance from the CDN and its mirror
"""

from qorecss_deploy.cdn.purge import MISSING_HASH_STATUS, CdnPurgeClient, build_purge_url

__all__ = ["MISSING_HASH_STATUS", "CdnPurgeClient", "build_purge_url"]
