"""Tests for html/rewrite.py module."""

import logging

import pytest

from qorecss_deploy.builds.processor import CopyTransform
from qorecss_deploy.builds.service import build
from qorecss_deploy.config import Settings
from qorecss_deploy.html.rewrite import (
    CDN_PLACEHOLDER,
    HtmlRewriter,
    add_integrity_attributes,
    fallback_onerror,
    remove_attribute,
    rewrite_html,
    set_attribute,
    strip_integrity_attributes,
)

INTEGRITY = "sha384-abc"


class TestRewriteHtml:
    """Tests for rewrite_html function."""

    def test_replaces_hashed_reference(self):
        html = '<link rel="stylesheet" href="core.aaaaaaaa.min.css">'
        result = rewrite_html(html, "abcd1234")
        assert "core.abcd1234.min.css" in result
        assert "aaaaaaaa" not in result

    def test_replaces_source_link(self):
        """A plain source link is replaced on first setup."""
        html = '<link rel="stylesheet" href="qore.css">'
        result = rewrite_html(html, "abcd1234")
        assert result == '<link rel="stylesheet" href="core.abcd1234.min.css">'

    def test_replaces_source_link_with_path(self):
        html = "<link rel='stylesheet' href='/static/qore.css'>"
        result = rewrite_html(html, "abcd1234")
        assert "href='/static/core.abcd1234.min.css'" in result

    def test_other_stylesheets_untouched(self):
        html = '<link rel="stylesheet" href="variables.css">'
        assert rewrite_html(html, "abcd1234") == html

    def test_no_links_unchanged(self):
        html = "<html><body><p>hi</p></body></html>"
        assert rewrite_html(html, "abcd1234", integrity=INTEGRITY) == html

    def test_multiple_links(self):
        html = (
            '<link href="core.aaaaaaaa.min.css">\n'
            '<link href="https://cdn.example/core.bbbbbbbb.min.css">'
        )
        result = rewrite_html(html, "abcd1234")
        assert result.count("core.abcd1234.min.css") == 2

    def test_idempotent(self):
        html = '<link rel="stylesheet" href="core.aaaaaaaa.min.css">'
        once = rewrite_html(html, "abcd1234")
        assert rewrite_html(once, "abcd1234") == once

    def test_idempotent_with_integrity(self):
        html = '<link rel="stylesheet" href="core.aaaaaaaa.min.css">'
        once = rewrite_html(html, "abcd1234", integrity=INTEGRITY)
        twice = rewrite_html(once, "abcd1234", integrity=INTEGRITY)
        assert twice == once
        assert twice.count("integrity=") == 1

    def test_without_integrity_drops_stale_value(self):
        """A digest for the previous artifact must not stay on the new name."""
        html = (
            '<link href="core.aaaaaaaa.min.css" integrity="sha384-old" '
            'crossorigin="anonymous">'
        )
        result = rewrite_html(html, "abcd1234")
        assert "integrity" not in result
        assert 'href="core.abcd1234.min.css"' in result
        assert 'crossorigin="anonymous"' in result

    def test_substitutes_cdn_base(self):
        html = f'<link href="{CDN_PLACEHOLDER}/core.aaaaaaaa.min.css">'
        result = rewrite_html(html, "abcd1234", cdn_base_url="http://testcdn/////")
        assert result == '<link href="http://testcdn/core.abcd1234.min.css">'

    def test_unset_cdn_keeps_placeholder(self, caplog):
        html = f'<link href="{CDN_PLACEHOLDER}/core.aaaaaaaa.min.css">'
        with caplog.at_level(logging.WARNING):
            result = rewrite_html(html, "abcd1234")
        assert CDN_PLACEHOLDER in result
        assert "not configured" in caplog.text


class TestIntegrityAttributes:
    """Tests for integrity attribute helpers."""

    def test_adds_attributes(self):
        html = '<link rel="stylesheet" href="core.abcd1234.min.css">'
        result = add_integrity_attributes(html, "core.abcd1234.min.css", INTEGRITY)
        assert f'integrity="{INTEGRITY}"' in result
        assert 'crossorigin="anonymous"' in result
        assert "this.href='core.abcd1234.min.css'" in result

    def test_replaces_existing_integrity(self):
        html = '<link href="core.abcd1234.min.css" integrity="sha384-old">'
        result = add_integrity_attributes(html, "core.abcd1234.min.css", INTEGRITY)
        assert "sha384-old" not in result
        assert result.count("integrity=") == 1

    def test_self_closing(self):
        html = '<link href="core.abcd1234.min.css" />'
        result = add_integrity_attributes(html, "core.abcd1234.min.css", INTEGRITY)
        assert result.endswith(" />")
        assert f'integrity="{INTEGRITY}"' in result

    def test_other_links_untouched(self):
        html = '<link href="fonts.css">'
        assert add_integrity_attributes(html, "core.abcd1234.min.css", INTEGRITY) == html

    def test_bare_attribute_replaced(self):
        html = '<link href="core.abcd1234.min.css" crossorigin>'
        result = add_integrity_attributes(html, "core.abcd1234.min.css", INTEGRITY)
        assert result.count("crossorigin") == 1
        assert 'crossorigin="anonymous"' in result

    def test_remove_attribute(self):
        tag = '<link href="a.css" integrity="sha384-x" crossorigin>'
        assert remove_attribute(tag, "integrity") == '<link href="a.css" crossorigin>'
        assert remove_attribute(tag, "crossorigin") == (
            '<link href="a.css" integrity="sha384-x">'
        )

    def test_strip_leaves_other_links(self):
        html = '<link href="fonts.css" integrity="sha384-x">'
        assert strip_integrity_attributes(html, "core.abcd1234.min.css") == html

    def test_set_attribute_insert(self):
        assert set_attribute("<link>", "a", "b") == '<link a="b">'

    def test_fallback_onerror(self):
        assert fallback_onerror("x.css") == "this.onerror=null;this.href='x.css'"


class TestHtmlRewriter:
    """Tests for HtmlRewriter."""

    def test_reads_hash_record(self, settings):
        (settings.work_dir / "build.hash").write_text("abcd1234\n")
        html = settings.work_dir / "index.html"
        html.write_text('<link href="core.aaaaaaaa.min.css">')

        applied = HtmlRewriter(settings).update_references()

        assert applied == "abcd1234"
        assert html.read_text() == '<link href="core.abcd1234.min.css">'

    def test_explicit_hash_trimmed(self, settings):
        html = settings.work_dir / "index.html"
        html.write_text('<link href="core.aaaaaaaa.min.css">')

        assert HtmlRewriter(settings).update_references(" abcd1234\n") == "abcd1234"
        assert "core.abcd1234.min.css" in html.read_text()

    def test_uses_configured_cdn(self, tmp_path):
        settings = Settings(work_dir=tmp_path, cdn_base_url="https://cdn.example/")
        html = tmp_path / "index.html"
        html.write_text(f'<link href="{CDN_PLACEHOLDER}/core.aaaaaaaa.min.css">')

        HtmlRewriter(settings).update_references("abcd1234")

        assert html.read_text() == (
            '<link href="https://cdn.example/core.abcd1234.min.css">'
        )

    def test_explicit_hash_after_build_drops_integrity(self, settings):
        (settings.work_dir / "qore.css").write_text("body{}")
        html = settings.work_dir / "index.html"
        html.write_text('<link rel="stylesheet" href="qore.css">')
        build(settings, transform=CopyTransform())
        assert "integrity=" in html.read_text()

        HtmlRewriter(settings).update_references("abcd1234")

        text = html.read_text()
        assert "core.abcd1234.min.css" in text
        assert "integrity=" not in text

    def test_missing_html(self, settings):
        with pytest.raises(FileNotFoundError):
            HtmlRewriter(settings).update_references("abcd1234")

    def test_missing_hash_record(self, settings):
        (settings.work_dir / "index.html").write_text("<html></html>")
        with pytest.raises(FileNotFoundError):
            HtmlRewriter(settings).update_references()

    def test_unchanged_file_not_rewritten(self, settings):
        html = settings.work_dir / "index.html"
        html.write_text('<link href="core.abcd1234.min.css">')
        before = html.stat().st_mtime_ns

        HtmlRewriter(settings).update_references("abcd1234")

        assert html.stat().st_mtime_ns == before
