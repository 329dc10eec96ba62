"""Network access module.

This module handles:
- HTTP GET with bounded exponential-backoff retry
- Connection pooling across calls
- Batched concurrent requests
"""

from qorecss_deploy.net.retry import (
    InvalidArgumentError,
    NetworkError,
    RequestTimeoutError,
    RetryClient,
)

__all__ = [
    "InvalidArgumentError",
    "NetworkError",
    "RequestTimeoutError",
    "RetryClient",
]
