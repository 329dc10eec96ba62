"""HTML reference rewriting module."""

from qorecss_deploy.html.rewrite import (
    CDN_PLACEHOLDER,
    HtmlRewriter,
    rewrite_html,
)

__all__ = ["CDN_PLACEHOLDER", "HtmlRewriter", "rewrite_html"]
