"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

import requests

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 10.0


@dataclass
class RSSItem:
    """One entry of a feed's channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """A feed's channel and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: List[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    return (child for child in element if _local_name(child.tag) == name)


def _own_text(element: ET.Element) -> str:
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


def _child_text(element: ET.Element, name: str) -> str:
    """Text of the last child called ``name``, or an empty string."""
    text = ""
    for child in _children(element, name):
        text = _own_text(child)
    return text


def _item(element: ET.Element) -> RSSItem:
    return RSSItem(
        title=html.unescape(_child_text(element, "title")),
        link=_child_text(element, "link"),
        description=html.unescape(_child_text(element, "description")),
        pub_date=_child_text(element, "pubDate"),
    )


def parse_feed(data: Union[bytes, str]) -> RSSFeed:
    """Parse an RSS document; titles and descriptions have HTML entities decoded."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc

    channel: Optional[ET.Element] = next(_children(root, "channel"), None)
    if channel is None:
        return RSSFeed()
    return RSSFeed(
        title=html.unescape(_child_text(channel, "title")),
        link=_child_text(channel, "link"),
        description=html.unescape(_child_text(channel, "description")),
        items=[_item(element) for element in _children(channel, "item")],
    )


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download the feed at ``url`` and parse it."""
    response = requests.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    return parse_feed(response.content)