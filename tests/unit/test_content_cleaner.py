"""
Unit Tests for Content Cleaner
==============================

Tests for markup stripping, HTML sanitization and text field cleaning.
"""

import pytest

from csl_importer.ingestion.content_cleaner import (
    ContentCleaner,
    strip_all_tags,
    sanitize_html,
    sanitize_text_field,
)


class TestStripAllTags:
    """Test cases for plain text extraction."""

    def setup_method(self):
        self.cleaner = ContentCleaner()

    def test_removes_tags_and_trims(self):
        assert self.cleaner.strip_all_tags("  <p>Hello <b>world</b></p>  ") == "Hello world"

    def test_drops_script_and_style_content(self):
        html = "<script>alert('x')</script>Title<style>p {color: red}</style>"
        assert self.cleaner.strip_all_tags(html) == "Title"

    def test_removes_escaped_markup_left_after_parsing(self):
        assert self.cleaner.strip_all_tags("&lt;b&gt;Bold&lt;/b&gt; news") == "Bold news"

    def test_plain_text_unchanged(self):
        assert self.cleaner.strip_all_tags("CSL Spring Finals") == "CSL Spring Finals"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_input(self, value):
        assert self.cleaner.strip_all_tags(value) == ""

    def test_comments_removed(self):
        assert self.cleaner.strip_all_tags("Team<!-- hidden --> news") == "Team news"


class TestSanitizeHtml:
    """Test cases for allow-list HTML sanitization."""

    def setup_method(self):
        self.cleaner = ContentCleaner()

    def test_safe_markup_kept(self):
        html = "<p>Recap of the <strong>finals</strong></p>"
        assert self.cleaner.sanitize_html(html) == html

    def test_dangerous_elements_removed_with_content(self):
        html = "<p>Text</p><script>alert(1)</script><iframe src='https://evil.example'>x</iframe>"
        result = self.cleaner.sanitize_html(html)

        assert "script" not in result
        assert "alert" not in result
        assert "iframe" not in result
        assert "<p>Text</p>" in result

    def test_event_handlers_removed(self):
        result = self.cleaner.sanitize_html('<p onclick="steal()">Click</p>')
        assert "onclick" not in result
        assert "Click" in result

    def test_javascript_urls_removed(self):
        result = self.cleaner.sanitize_html('<a href="javascript:alert(1)">link</a>')
        assert "javascript" not in result
        assert "link" in result

    def test_data_image_source_removes_image(self):
        result = self.cleaner.sanitize_html('<img src="data:image/png;base64,AAAA" alt="x">')
        assert "<img" not in result

    def test_http_links_kept(self):
        result = self.cleaner.sanitize_html('<a href="https://cstarleague.com/news" title="News">News</a>')
        assert 'href="https://cstarleague.com/news"' in result
        assert 'title="News"' in result

    def test_disallowed_tags_unwrapped(self):
        result = self.cleaner.sanitize_html("<section><custom>Kept text</custom></section>")
        assert result == "Kept text"

    def test_disallowed_attributes_dropped(self):
        result = self.cleaner.sanitize_html('<p style="color:red" data-x="1" class="lead">Hi</p>')
        assert result == '<p class="lead">Hi</p>'

    def test_blank_target_gets_noopener(self):
        result = self.cleaner.sanitize_html('<a href="/news" target="_blank">News</a>')
        assert 'rel="noopener noreferrer"' in result

    def test_empty_input(self):
        assert self.cleaner.sanitize_html("") == ""
        assert self.cleaner.sanitize_html(None) == ""


class TestSanitizeTextField:
    """Test cases for single-line text fields."""

    def setup_method(self):
        self.cleaner = ContentCleaner()

    def test_collapses_whitespace_and_line_breaks(self):
        assert self.cleaner.sanitize_text_field("  csl\n\tnews   1 ") == "csl news 1"

    def test_strips_tags(self):
        assert self.cleaner.sanitize_text_field("<b>guid-1</b>") == "guid-1"

    def test_removes_percent_encoded_octets(self):
        assert self.cleaner.sanitize_text_field("news%20item%2F1") == "newsitem1"

    def test_plain_url_guid_kept(self):
        guid = "https://cstarleague.com/news/spring-finals"
        assert self.cleaner.sanitize_text_field(guid) == guid

    def test_empty_input(self):
        assert self.cleaner.sanitize_text_field(None) == ""


class TestDecodeEntities:

    def test_decodes_escaped_markup(self):
        cleaner = ContentCleaner()
        assert cleaner.decode_entities("&lt;p&gt;Hi &amp; bye&lt;/p&gt;") == "<p>Hi & bye</p>"


def test_module_level_helpers():
    assert strip_all_tags("<i>x</i>") == "x"
    assert sanitize_html("<p>x</p>") == "<p>x</p>"
    assert sanitize_text_field(" a\nb ") == "a b"
