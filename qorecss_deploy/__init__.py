"""qoreCSS deploy - build, versioning, and CDN tooling for the qoreCSS stylesheet.

This package turns the source stylesheet into a content-hashed artifact,
rewrites HTML and package references to it, and purges CDN caches.
"""

__version__ = "1.0.1"
__all__ = ["__version__"]
