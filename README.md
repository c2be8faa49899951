# gator

`gator` is a small command-line RSS aggregator. You register users, add
and follow feeds, let the aggregator collect posts from them, and browse
the newest posts from the feeds you follow. Everything is kept in a
SQLite database; no libraries beyond the Python standard library are
needed.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run; create it yourself:

```json
{"db_url": "gator.db", "current_user_name": ""}
```

- `db_url` is where the database lives: either a file path
  (`gator.db`, `/home/me/gator.db`) or a `sqlite://` URL
  (`sqlite:///gator.db`; a bare `sqlite://` is an in-memory database).
  The tables are created on first use.
- `current_user_name` is the logged-in user. A missing key counts as
  empty. `gator` rewrites the file whenever you run `register` or
  `login`.

## Usage

```
gator <command> [args...]
```

### Users

```
gator register alice      # create a user and log in as them
gator login alice         # switch to an existing user
gator users               # list users, marking the current one
gator reset               # delete every user, with their feeds, follows and posts
```

User names are unique.

### Feeds

```
gator addfeed "Example News" https://example.com/rss.xml
gator feeds                               # list all feeds and who added them
gator follow https://example.com/rss.xml  # follow a feed someone else added
gator following                           # feeds the current user follows
gator unfollow https://example.com/rss.xml
```

A feed URL can be added only once. `addfeed` also makes the current user
follow the new feed. `addfeed`, `follow`, `following`, `unfollow` and
`browse` need a logged-in user.

### Collecting posts

```
gator agg 1m30s
```

`agg` runs until interrupted (Ctrl-C). On each tick it takes the feed
that was fetched longest ago (feeds never fetched come first), downloads
it over HTTP or HTTPS with a 10-second timeout, stores its new posts and
marks it fetched. The interval is a positive duration made of numbers
and units `ns`, `us`, `ms`, `s`, `m`, `h`, for example `30s`, `1.5m` or
`1h15m`. Posts whose link is already stored are skipped. Publication
dates are read in the `Mon, 02 Jan 2006 15:04:05 -0700` form; others
are stored without a date.

### Reading posts

```
gator browse        # the 2 newest posts from followed feeds
gator browse 10     # the 10 newest
```

Each post shows its title, description (when present), link and
publication date. Posts without a date are listed before dated ones.

## Errors

If no command is given, the command is unknown, it gets the wrong
number of arguments, the configuration cannot be read, or the database
refuses an operation, `gator` prints the reason to standard error and
exits with status 1. Interrupting `agg` exits with status 130. Progress
of `agg` is logged to standard error.

## Using it from Python

The pieces behind the command can be used directly:

```python
from gator.database import connect
from gator.rss import parse_feed

with connect("sqlite://") as db:
    print(db.get_users())

feed = parse_feed(b"<rss><channel><title>News</title></channel></rss>")
print(feed.title)
```

- `gator.config` — `Config`, `read_config`, `write_config`,
  `default_config_path`.
- `gator.database` — `connect` and `Queries`; failures raise
  `DatabaseError`, `NotFoundError` or `DuplicateError`.
- `gator.rss` — `fetch_feed`, `parse_feed`, `RSSFeed`, `RSSItem`,
  `FeedFetchError`.
- `gator.commands` — `Commands`, `Command`, `State`, `logged_in`,
  `CommandError`.
- `gator.handlers` — one `handle_*` function per command,
  `scrape_feeds` and `parse_duration`.

## What it does not do

Only SQLite is supported: a `db_url` with any other scheme (such as a
PostgreSQL server URL) is refused. There is no web interface and no
background service; `agg` runs in the foreground of a terminal.

## Running the tests

```
pip install ".[test]"
pytest
```