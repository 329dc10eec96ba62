"""HTML reference rewriting.

This module handles:
- Pointing hashed stylesheet references at the current hash
- Replacing a plain source stylesheet link on first setup
- Adding integrity, crossorigin and onerror fallback attributes, or
  dropping an integrity value when the current digest is unknown
- Substituting the CDN base URL template placeholder

All rewrites are idempotent: running them again with the same hash
leaves the document unchanged.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from qorecss_deploy.builds.hash_record import read_hash_record
from qorecss_deploy.builds.hashing import canonical_filename, replace_hashed_references
from qorecss_deploy.config import Settings, normalize_base_url

logger = logging.getLogger(__name__)

CDN_PLACEHOLDER = "{{CDN_BASE_URL}}"

_LINK_TAG_RE = re.compile(r"<link\b[^>]*>", re.IGNORECASE)


def _source_href_re(source_name: str) -> re.Pattern[str]:
    """Match href attributes pointing at the plain source stylesheet."""
    return re.compile(
        r"(?P<prefix>\bhref\s*=\s*[\"'](?:[^\"']*/)?)"
        + re.escape(source_name)
        + r"(?P<suffix>[\"'])",
        re.IGNORECASE,
    )


def _attribute_re(name: str) -> re.Pattern[str]:
    # Value is optional so bare attributes such as `crossorigin` match too
    return re.compile(
        r"\s"
        + re.escape(name)
        + r"(?:\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s>]+))?(?=[\s/>])",
        re.IGNORECASE,
    )


def set_attribute(tag: str, name: str, value: str) -> str:
    """Set an attribute on a single start tag, replacing any existing value.

    Args:
        tag: Start tag text such as ``<link href="a.css">``.
        name: Attribute name.
        value: Attribute value (must not contain double quotes).

    Returns:
        The tag with the attribute set.
    """
    rendered = f' {name}="{value}"'
    pattern = _attribute_re(name)
    if pattern.search(tag):
        return pattern.sub(lambda _m: rendered, tag, count=1)
    if tag.endswith("/>"):
        return f"{tag[:-2].rstrip()}{rendered} />"
    return f"{tag[:-1].rstrip()}{rendered}>"


def remove_attribute(tag: str, name: str) -> str:
    """Remove an attribute from a single start tag, if present."""
    return _attribute_re(name).sub("", tag)


def fallback_onerror(filename: str) -> str:
    """onerror handler that reloads the stylesheet from the local copy."""
    return f"this.onerror=null;this.href='{filename}'"


def add_integrity_attributes(html: str, filename: str, integrity: str) -> str:
    """Add integrity and fallback attributes to links referencing filename."""

    def repl(match: re.Match[str]) -> str:
        tag = match.group(0)
        if filename not in tag:
            return tag
        tag = set_attribute(tag, "integrity", integrity)
        tag = set_attribute(tag, "crossorigin", "anonymous")
        return set_attribute(tag, "onerror", fallback_onerror(filename))

    return _LINK_TAG_RE.sub(repl, html)


def strip_integrity_attributes(html: str, filename: str) -> str:
    """Drop integrity values from links referencing filename.

    Used when the digest of the current artifact is not known, so a
    value computed for an earlier artifact never stays on the new name.
    """

    def repl(match: re.Match[str]) -> str:
        tag = match.group(0)
        if filename not in tag:
            return tag
        return remove_attribute(tag, "integrity")

    return _LINK_TAG_RE.sub(repl, html)


def rewrite_html(
    html: str,
    content_hash: str,
    source_name: str = "qore.css",
    cdn_base_url: str | None = None,
    integrity: str | None = None,
) -> str:
    """Rewrite stylesheet references in an HTML document.

    Args:
        html: Document text.
        content_hash: Current content hash.
        source_name: Unhashed source stylesheet name replaced on first setup.
        cdn_base_url: CDN base URL for the template placeholder. When None
            the placeholder is left in place so the gap stays visible.
        integrity: Integrity value for the stylesheet link. When None any
            existing integrity attribute on the link is removed.

    Returns:
        The rewritten document text.
    """
    filename = canonical_filename(content_hash)

    updated = replace_hashed_references(html, content_hash)
    updated = _source_href_re(source_name).sub(
        lambda m: f"{m.group('prefix')}{filename}{m.group('suffix')}", updated
    )

    if integrity:
        updated = add_integrity_attributes(updated, filename, integrity)
    else:
        updated = strip_integrity_attributes(updated, filename)

    if CDN_PLACEHOLDER in updated:
        if cdn_base_url is None:
            logger.warning(
                "CDN base URL is not configured; leaving %s in place", CDN_PLACEHOLDER
            )
        else:
            updated = updated.replace(
                CDN_PLACEHOLDER, normalize_base_url(cdn_base_url)
            )

    return updated


class HtmlRewriter:
    """Rewrites the configured HTML document in place."""

    def __init__(self, settings: Settings) -> None:
        self.html_path: Path = settings.path_for(settings.html_file)
        self.hash_path: Path = settings.path_for(settings.hash_file)
        self.source_name = settings.source_css
        self.cdn_base_url = settings.configured_cdn_base

    def update_references(
        self,
        content_hash: str | None = None,
        integrity: str | None = None,
    ) -> str:
        """Point the HTML document at the current artifact.

        Args:
            content_hash: Hash to use; read from the hash record if omitted.
            integrity: Integrity value for the stylesheet link; any stale
                value is removed when omitted.

        Returns:
            The trimmed hash that was applied.

        Raises:
            FileNotFoundError: If the hash record or HTML document is missing.
        """
        try:
            current = (
                content_hash.strip()
                if content_hash
                else read_hash_record(self.hash_path)
            )
            html = self.html_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(
                "update_references failed (html=%s, hash_file=%s): %s",
                self.html_path,
                self.hash_path,
                e,
            )
            raise

        updated = rewrite_html(
            html,
            current,
            source_name=self.source_name,
            cdn_base_url=self.cdn_base_url,
            integrity=integrity,
        )
        if updated != html:
            self.html_path.write_text(updated, encoding="utf-8")
            logger.info(
                "Updated %s to reference %s",
                self.html_path,
                canonical_filename(current),
            )
        else:
            logger.info("%s already references %s", self.html_path, current)
        return current


__all__ = [
    "CDN_PLACEHOLDER",
    "HtmlRewriter",
    "add_integrity_attributes",
    "fallback_onerror",
    "remove_attribute",
    "rewrite_html",
    "set_attribute",
    "strip_integrity_attributes",
]
