"""
Content Cleaner
===============

HTML cleaning for untrusted feed content.

This module provides:
- Markup stripping for plain text fields (title, excerpt)
- Allow-list HTML sanitization for the article body
- Text field sanitization for identifiers such as the item guid
"""

import re
import html
from typing import Optional

from bs4 import BeautifulSoup, Comment
from bs4.element import CData, ProcessingInstruction, Doctype, Declaration

from csl_importer.utils.logging import get_logger_for_component


class ContentCleaner:
    """
    HTML content cleaner with a security focus.

    Features:
    - Removes dangerous elements together with their content
    - Keeps an allow-listed subset of tags and attributes
    - Drops event handler attributes and script/data URLs
    - Unwraps disallowed tags, preserving their text
    """

    # HTML elements to completely remove (including content)
    DANGEROUS_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "frame",
        "frameset",
        "embed",
        "object",
        "applet",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "meta",
        "link",
        "base",
        "noscript",
        "canvas",
        "svg",
        "math",
        "template",
    }

    # HTML elements that are safe to keep in a post body
    SAFE_ELEMENTS = {
        "p",
        "br",
        "hr",
        "div",
        "span",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "strong",
        "b",
        "em",
        "i",
        "u",
        "s",
        "del",
        "ins",
        "sub",
        "sup",
        "small",
        "abbr",
        "cite",
        "code",
        "pre",
        "blockquote",
        "q",
        "ul",
        "ol",
        "li",
        "dl",
        "dt",
        "dd",
        "table",
        "tr",
        "td",
        "th",
        "thead",
        "tbody",
        "tfoot",
        "caption",
        "figure",
        "figcaption",
        "a",
        "img",
    }

    # Attributes allowed on every safe element
    GLOBAL_ATTRIBUTES = {"class", "title"}

    # Attributes to keep for specific elements
    SAFE_ATTRIBUTES = {
        "a": {"href", "rel", "target"},
        "img": {"src", "alt", "width", "height"},
        "blockquote": {"cite"},
        "q": {"cite"},
        "td": {"colspan", "rowspan"},
        "th": {"colspan", "rowspan", "scope"},
        "abbr": set(),
    }

    URL_ATTRIBUTES = {"href", "src", "cite"}
    ALLOWED_URL_SCHEMES = {"http", "https", "mailto"}

    WHITESPACE_PATTERN = re.compile(r"\s+")
    LINE_BREAK_PATTERN = re.compile(r"[\r\n\t ]+")
    TAG_PATTERN = re.compile(r"<[^>]*>")
    PERCENT_OCTET_PATTERN = re.compile(r"%[a-fA-F0-9]{2}")
    URL_SCHEME_PATTERN = re.compile(r"^\s*([a-zA-Z][a-zA-Z0-9+.\-]*):")
    CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x1f\x7f]")

    def __init__(self):
        self.logger = get_logger_for_component("content_cleaner")
        self.parser = "html.parser"  # Built-in parser, no external deps

    def strip_all_tags(self, content: Optional[str]) -> str:
        """
        Remove every tag, dropping script and style content entirely.

        Args:
            content: Text that may contain markup

        Returns:
            Trimmed plain text
        """
        if not content or not content.strip():
            return ""

        soup = BeautifulSoup(content, self.parser)
        for element in soup(["script", "style"]):
            element.decompose()
        self._remove_non_content_elements(soup)

        text = soup.get_text()

        # Escaped markup decoded by the parser is still markup
        text = self.TAG_PATTERN.sub("", text)

        return text.strip()

    def sanitize_html(self, html_content: Optional[str]) -> str:
        """
        Reduce HTML to the allow-listed subset.

        Args:
            html_content: Untrusted HTML

        Returns:
            Sanitized HTML, or an empty string if nothing remains
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)

        self._remove_dangerous_elements(soup)
        self._remove_non_content_elements(soup)
        self._unwrap_disallowed_elements(soup)
        self._clean_attributes(soup)

        cleaned = str(soup).strip()

        self.logger.debug(
            f"Sanitized HTML: {len(html_content)} -> {len(cleaned)} chars"
        )
        return cleaned

    def sanitize_text_field(self, value: Optional[str]) -> str:
        """
        Sanitize a single-line text value such as an identifier.

        Strips tags, removes line breaks and tabs, collapses whitespace and
        drops percent-encoded octets.
        """
        if not value:
            return ""

        text = value
        if "<" in text:
            text = self.strip_all_tags(text)

        text = self.LINE_BREAK_PATTERN.sub(" ", text)
        text = self.CONTROL_CHAR_PATTERN.sub("", text)

        # Repeat until no octet is left (e.g. "%2%41")
        previous = None
        while previous != text:
            previous = text
            text = self.PERCENT_OCTET_PATTERN.sub("", text)

        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def decode_entities(self, content: Optional[str]) -> str:
        """Decode HTML entities such as &lt;p&gt; into characters."""
        if not content:
            return ""
        return html.unescape(content)

    def _remove_dangerous_elements(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(list(self.DANGEROUS_ELEMENTS)):
            element.decompose()

    def _remove_non_content_elements(self, soup: BeautifulSoup) -> None:
        """Remove comments, CDATA, doctypes and processing instructions."""
        for element in soup.find_all(
            string=lambda text: isinstance(
                text, (Comment, CData, ProcessingInstruction, Doctype, Declaration)
            )
        ):
            element.extract()

    def _unwrap_disallowed_elements(self, soup: BeautifulSoup) -> None:
        """Unwrap tags outside the allow-list but keep their text."""
        for element in soup.find_all(True):
            if element.name.lower() not in self.SAFE_ELEMENTS:
                element.unwrap()

    def _clean_attributes(self, soup: BeautifulSoup) -> None:
        for element in soup.find_all(True):
            element_name = element.name.lower()
            allowed = self.GLOBAL_ATTRIBUTES | self.SAFE_ATTRIBUTES.get(element_name, set())

            for attr_name in list(element.attrs):
                name = attr_name.lower()
                if name not in allowed or name.startswith("on"):
                    del element[attr_name]
                    continue

                if name in self.URL_ATTRIBUTES and not self._is_safe_url(element.get(attr_name)):
                    del element[attr_name]

            if element_name == "img" and not element.get("src"):
                element.decompose()
            elif element_name == "a" and element.get("target") == "_blank":
                element["rel"] = "noopener noreferrer"

    def _is_safe_url(self, value) -> bool:
        if isinstance(value, list):
            value = " ".join(value)
        if not value:
            return False

        # Browsers ignore control characters inside the scheme
        candidate = self.CONTROL_CHAR_PATTERN.sub("", html.unescape(value))
        match = self.URL_SCHEME_PATTERN.match(candidate)
        if match is None:
            # Relative URL
            return True
        return match.group(1).lower() in self.ALLOWED_URL_SCHEMES


_default_cleaner: Optional[ContentCleaner] = None


def _get_cleaner() -> ContentCleaner:
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = ContentCleaner()
    return _default_cleaner


def strip_all_tags(content: Optional[str]) -> str:
    """Quick function to strip all markup from text."""
    return _get_cleaner().strip_all_tags(content)


def sanitize_html(html_content: Optional[str]) -> str:
    """Quick function to sanitize HTML to the allow-listed subset."""
    return _get_cleaner().sanitize_html(html_content)


def sanitize_text_field(value: Optional[str]) -> str:
    """Quick function to sanitize a single-line text value."""
    return _get_cleaner().sanitize_text_field(value)
