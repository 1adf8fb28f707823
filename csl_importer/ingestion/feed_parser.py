"""
Feed Parser
===========

Strict RSS parsing of the fetched feed document into RawFeedItem values.

The document must be well-formed XML with an ``rss`` root. Only the direct
children of each ``item`` that the importer uses are read; anything else in
the document is ignored.
"""

from typing import List, Optional
from xml.etree import ElementTree as ET

from ..database.models import RawFeedItem
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedParseError

# item child element -> RawFeedItem field
ITEM_FIELDS = {
    "title": "title",
    "description": "description",
    "body": "body",
    "author": "author",
    "pubDate": "pub_date",
    "guid": "guid",
}


class _FeedTreeBuilder(ET.TreeBuilder):
    """Tree builder that records DOCTYPE declarations."""

    def __init__(self):
        super().__init__()
        self.has_doctype = False

    def doctype(self, name, pubid, system):
        self.has_doctype = True


class FeedParser:
    """Parses RSS documents into RawFeedItem lists."""

    def __init__(self, feed_url: Optional[str] = None):
        self.feed_url = feed_url
        self.logger = get_logger_for_component("feed_parser")

    def parse(self, content: bytes) -> List[RawFeedItem]:
        """Parse a feed document.

        Args:
            content: Raw document bytes

        Returns:
            Items in document order; empty if the channel has no items

        Raises:
            FeedParseError: If the document is not well-formed XML, declares
                a DTD, or is not an RSS document
        """
        root = self._parse_document(content)

        if _local_name(root.tag) != "rss":
            raise FeedParseError(
                f"Unexpected document root <{_local_name(root.tag)}>, expected <rss>",
                feed_url=self.feed_url,
            )

        channel = root.find("channel")
        if channel is None:
            self.logger.warning("Feed has no <channel> element")
            return []

        items = [self._parse_item(element) for element in channel.findall("item")]

        self.logger.debug(f"Parsed {len(items)} items from feed")
        return items

    def _parse_document(self, content: bytes) -> ET.Element:
        if not content:
            raise FeedParseError("Feed document is empty", feed_url=self.feed_url)

        builder = _FeedTreeBuilder()
        parser = ET.XMLParser(target=builder)

        try:
            parser.feed(content)
            root = parser.close()
        except ET.ParseError as e:
            raise FeedParseError(
                f"Feed is not well-formed XML: {e}",
                feed_url=self.feed_url,
                context={"position": getattr(e, "position", None)},
            ) from e

        if builder.has_doctype:
            raise FeedParseError(
                "Feed declares a DTD, which is not accepted",
                feed_url=self.feed_url,
            )

        return root

    def _parse_item(self, element: ET.Element) -> RawFeedItem:
        values = {}
        for child in element:
            field_name = ITEM_FIELDS.get(child.tag) if isinstance(child.tag, str) else None
            if field_name is not None and field_name not in values:
                values[field_name] = _inner_text(child)

        return RawFeedItem(**values)


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _inner_text(element: ET.Element) -> str:
    """Text of an element, with any child elements serialized back to markup."""
    parts = [element.text or ""]
    for child in element:
        # tostring includes the child's tail
        parts.append(ET.tostring(child, encoding="unicode"))
    return "".join(parts)


def parse_feed(content: bytes, feed_url: Optional[str] = None) -> List[RawFeedItem]:
    """Convenience function to parse a feed document."""
    return FeedParser(feed_url).parse(content)
