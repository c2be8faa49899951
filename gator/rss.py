"""Downloading and parsing RSS feeds."""

from __future__ import annotations

import html
import http.client
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from xml.etree import ElementTree

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 10.0


class FeedFetchError(Exception):
    """A feed could not be downloaded or parsed."""


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _text(element: ElementTree.Element) -> str:
    """Character data directly inside ``element``, nested elements skipped."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _child_text(parent: ElementTree.Element, name: str) -> str:
    value = ""
    for child in parent:
        if _local(child.tag) == name:
            value = _text(child)
    return value


def _item(element: ElementTree.Element) -> RSSItem:
    return RSSItem(
        title=html.unescape(_child_text(element, "title")),
        link=_child_text(element, "link"),
        description=html.unescape(_child_text(element, "description")),
        pub_date=_child_text(element, "pubDate"),
    )


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; titles and descriptions are HTML-unescaped."""
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as exc:
        raise FeedFetchError(f"failed to unmarshal data {exc}") from exc

    channel = None
    for child in root:
        if _local(child.tag) == "channel":
            channel = child
    if channel is None:
        return RSSFeed()

    return RSSFeed(
        title=html.unescape(_child_text(channel, "title")),
        link=_child_text(channel, "link"),
        description=html.unescape(_child_text(channel, "description")),
        items=[_item(child) for child in channel if _local(child.tag) == "item"],
    )


def fetch_feed(feed_url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download the feed at ``feed_url`` and parse it."""
    scheme = urllib.parse.urlsplit(feed_url).scheme
    if scheme not in ("http", "https"):
        raise FeedFetchError(f'failed to get a response: unsupported protocol scheme "{scheme}"')
    try:
        request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    except ValueError as exc:
        raise FeedFetchError(f"failed to create a request: {exc}") from exc

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        # The body of an error response is still parsed, as for any other status.
        try:
            data = exc.read()
        except OSError as read_exc:
            raise FeedFetchError(f"failed to read response body: {read_exc}") from read_exc
        finally:
            exc.close()
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        raise FeedFetchError(f"failed to get a response: {exc}") from exc

    return parse_feed(data)