import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from gator.rss import FeedFetchError, RSSFeed, RSSItem, fetch_feed, parse_feed

SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts about things</description>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <description>The first one</description>
      <pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate>
    </item>
    <item>
      <title>Second post</title>
      <link>https://example.com/second</link>
    </item>
  </channel>
</rss>
"""


def test_parse_feed_reads_channel_and_items():
    feed = parse_feed(SAMPLE.encode())
    assert feed.title == "Example Blog"
    assert feed.link == "https://example.com/"
    assert feed.description == "Posts about things"
    assert feed.items == [
        RSSItem(
            title="First post",
            link="https://example.com/first",
            description="The first one",
            pub_date="Mon, 02 Jan 2006 15:04:05 -0700",
        ),
        RSSItem(title="Second post", link="https://example.com/second"),
    ]


def test_parse_feed_unescapes_html_in_titles_and_descriptions():
    doc = (
        "<rss><channel><title>Tom &amp;amp; Jerry</title>"
        "<item><title>A &amp;lt;b&amp;gt; tag</title>"
        "<description><![CDATA[&lt;p&gt;hi&lt;/p&gt;]]></description></item>"
        "</channel></rss>"
    )
    feed = parse_feed(doc)
    assert feed.title == "Tom & Jerry"
    assert feed.items[0].title == "A <b> tag"
    assert feed.items[0].description == "<p>hi</p>"


def test_parse_feed_without_channel_is_empty():
    assert parse_feed("<rss></rss>") == RSSFeed()


def test_parse_feed_rejects_broken_xml():
    with pytest.raises(FeedFetchError, match="failed to unmarshal data"):
        parse_feed("<rss><channel>")


def test_parse_feed_rejects_empty_document():
    with pytest.raises(FeedFetchError):
        parse_feed(b"")


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.server.agents.append(self.headers.get("User-Agent"))
        body = SAMPLE.encode()
        self.send_response(404 if self.path == "/missing" else 200)
        self.send_header("Content-Type", "application/rss+xml")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    httpd.agents = []
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()
    thread.join()


def _base(httpd):
    host, port = httpd.server_address[:2]
    return f"http://{host}:{port}"


def test_fetch_feed_downloads_and_sends_user_agent(server):
    feed = fetch_feed(_base(server) + "/feed.xml")
    assert feed == parse_feed(SAMPLE)
    assert server.agents == ["gator"]


def test_fetch_feed_parses_body_of_error_response(server):
    feed = fetch_feed(_base(server) + "/missing")
    assert [item.title for item in feed.items] == ["First post", "Second post"]


def test_fetch_feed_connection_refused():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    with pytest.raises(FeedFetchError, match="failed to get a response"):
        fetch_feed(f"http://127.0.0.1:{port}/feed", timeout=2)


def test_fetch_feed_rejects_other_schemes():
    with pytest.raises(FeedFetchError, match="unsupported protocol scheme"):
        fetch_feed("ftp://example.com/feed.xml")