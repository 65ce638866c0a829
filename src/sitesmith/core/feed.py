"""RSS feed assembly and serialization."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING
from xml.etree.ElementTree import Element, SubElement, register_namespace, tostring

from pydantic import BaseModel, ConfigDict

from sitesmith.core.identifier import Identifier
from sitesmith.core.item import dated
from sitesmith.core.urls import externalize_url

if TYPE_CHECKING:
    from sitesmith.config import FeedSettings
    from sitesmith.core.item import Content, Item

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
DC_NS = "http://purl.org/dc/elements/1.1/"


class FeedEntry(BaseModel):
    """Feed view of one item: its metadata plus the designated content snapshot."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    identifier: Identifier
    title: str
    url: str
    published: datetime
    content: str
    author: str | None = None


def assemble_feed(
    items: Iterable[Item],
    snapshot_name: str,
    *,
    loader: Callable[[Identifier, str], Content],
    url_for: Callable[[Identifier], str | None],
    limit: int | None = None,
) -> list[FeedEntry]:
    """Build feed entries, newest first.

    Content always comes from ``snapshot_name``, never from the rendered page.
    Undated items are left out with a warning. Entries with equal dates keep
    their input order.
    """
    entries: list[FeedEntry] = []
    for item, published in dated(items):
        content = loader(item.identifier, snapshot_name)
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        entries.append(
            FeedEntry(
                identifier=item.identifier,
                title=item.metadata.get("title", item.identifier.stem),
                url=url_for(item.identifier) or "/" + item.identifier.path,
                published=published,
                content=content,
                author=item.metadata.get("author"),
            )
        )

    entries.sort(key=lambda entry: entry.published, reverse=True)
    if limit is not None:
        entries = entries[:limit]
    logger.debug("Assembled %d feed entries from snapshot '%s'", len(entries), snapshot_name)
    return entries


def render_rss(config: FeedSettings, entries: Iterable[FeedEntry], *, feed_url: str = "/rss.xml") -> str:
    """Serialize entries as an RSS 2.0 document."""
    entries = list(entries)
    register_namespace("atom", ATOM_NS)
    register_namespace("dc", DC_NS)

    root = Element("rss", attrib={"version": "2.0"})
    channel = SubElement(root, "channel")
    SubElement(channel, "title").text = config.title
    SubElement(channel, "link").text = config.root + "/"
    SubElement(channel, "description").text = config.description
    SubElement(
        channel,
        f"{{{ATOM_NS}}}link",
        attrib={
            "href": externalize_url(feed_url, config.root),
            "rel": "self",
            "type": "application/rss+xml",
        },
    )
    if config.author_email:
        SubElement(channel, "managingEditor").text = f"{config.author_email} ({config.author_name})"

    updated = entries[0].published if entries else datetime.now(UTC)
    SubElement(channel, "lastBuildDate").text = format_datetime(updated)

    for entry in entries:
        link = externalize_url(entry.url, config.root)
        item_el = SubElement(channel, "item")
        SubElement(item_el, "title").text = entry.title
        SubElement(item_el, "link").text = link
        SubElement(item_el, "description").text = entry.content
        SubElement(item_el, "pubDate").text = format_datetime(entry.published)
        SubElement(item_el, "guid", attrib={"isPermaLink": "true"}).text = link
        if entry.author:
            SubElement(item_el, f"{{{DC_NS}}}creator").text = entry.author

    return "<?xml version='1.0' encoding='UTF-8'?>\n" + tostring(root, encoding="unicode")
