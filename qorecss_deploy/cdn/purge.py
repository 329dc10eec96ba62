"""CDN cache purge client.

Builds the provider purge URL for the current artifact and requests it
through the retrying HTTP client. Offline mode returns a simulated
success without touching the network.
"""

from __future__ import annotations

import logging

from qorecss_deploy.builds.hash_record import read_hash_record
from qorecss_deploy.builds.hashing import canonical_filename
from qorecss_deploy.config import Settings, normalize_base_url
from qorecss_deploy.net.retry import RetryClient

logger = logging.getLogger(__name__)

# Status reported in offline mode
SIMULATED_STATUS = 200

# Returned by run() when no hash record exists yet
MISSING_HASH_STATUS = 1


def build_purge_url(purge_base_url: str, repository: str, filename: str) -> str:
    """Compose the purge endpoint for a file.

    Args:
        purge_base_url: Provider purge base, e.g. https://purge.jsdelivr.net/gh.
        repository: Repository coordinates, e.g. owner/repo.
        filename: File to purge.

    Returns:
        Full purge URL.
    """
    base = normalize_base_url(purge_base_url)
    return f"{base}/{repository.strip('/')}/{filename.lstrip('/')}"


class CdnPurgeClient:
    """Purges hashed artifacts from the CDN."""

    def __init__(
        self,
        settings: Settings,
        http_client: RetryClient | None = None,
    ) -> None:
        """Initialize the purge client.

        Args:
            settings: Application settings.
            http_client: Retrying client; one is created per request if omitted.
        """
        self.settings = settings
        self.offline = settings.offline
        self.http_client = http_client

    def purge_url(self, filename: str) -> str:
        return build_purge_url(
            self.settings.purge_base_url, self.settings.repository, filename
        )

    async def purge(self, filename: str) -> int:
        """Purge one file from the CDN.

        Args:
            filename: File to purge.

        Returns:
            HTTP status code of the purge request.

        Raises:
            NetworkError: If the request fails after all retries.
        """
        url = self.purge_url(filename)
        if self.offline:
            logger.info("Offline mode: simulating purge of %s", url)
            return SIMULATED_STATUS

        try:
            if self.http_client is not None:
                response = await self.http_client.fetch_with_retry(url)
            else:
                async with RetryClient(self.settings) as client:
                    response = await client.fetch_with_retry(url)
        except Exception as e:
            logger.error("purge failed (file=%s, url=%s): %s", filename, url, e)
            raise

        logger.info("Purge of %s returned %d", filename, response.status_code)
        return response.status_code

    async def run(self) -> int:
        """Purge the artifact named by the hash record.

        Returns:
            Purge status code, or MISSING_HASH_STATUS if no hash record exists.
        """
        hash_path = self.settings.path_for(self.settings.hash_file)
        try:
            content_hash = read_hash_record(hash_path)
        except FileNotFoundError as e:
            logger.error("run missing hash (hash_file=%s): %s", hash_path, e)
            return MISSING_HASH_STATUS

        return await self.purge(canonical_filename(content_hash))


__all__ = [
    "CdnPurgeClient",
    "MISSING_HASH_STATUS",
    "SIMULATED_STATUS",
    "build_purge_url",
]
