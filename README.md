# gator

gator is a small RSS aggregator library. Users follow RSS feeds. The
aggregator fetches those feeds one at a time, starting with the one fetched
longest ago, and stores each new item as a post in an SQLite database. Each
user can then browse the newest posts from the feeds they follow.

It uses only the Python standard library and needs Python 3.10 or newer.

## Modules

- `gator.config` reads and writes the user configuration file.
- `gator.models` holds the stored records: `User`, `Feed`, `FeedFollow`,
  `Post` and `FeedFollowRow`.
- `gator.database` holds the SQLite storage and its queries.
- `gator.feed` fetches and parses RSS and turns the items into posts.
- `gator.commands` holds the command registry and the command handlers.

## Configuration

Settings are kept in a JSON file named `.gatorconfig.json` in your home
directory:

```json
{"db_url":"gator.db","current_user_name":"alice"}
```

- `gator.config.config_file_path()` returns the location of that file.
- `gator.config.read()` loads the file into a `Config`. Unknown keys are
  ignored. A missing key becomes an empty string, and a value that is not a
  string raises `ValueError`.
- `Config.set_user(name)` sets `current_user_name` and writes the file back.

`db_url` is only stored. To open the database, pass the path to
`gator.database.connect` yourself.

## Working with the database

```python
from gator.config import read
from gator.database import connect

cfg = read()
queries = connect(cfg.db_url)   # opens the file and creates the tables

alice = queries.create_user("alice")
feed = queries.create_feed("Example blog", "https://example.com/rss.xml", alice.id)
queries.create_feed_follow(alice.id, feed.id)

for follow in queries.get_feed_follows_for_user(alice.id):
    print(follow.feed_name)
```

`Queries` wraps an `sqlite3.Connection`. It takes an optional `clock` that
supplies the timestamps for new and updated rows. The methods are:

- Users: `create_user`, `get_user`, `get_users`, `get_user_by_id`, and
  `reset`. `reset` deletes every user together with their feeds, follows and
  posts.
- Feeds: `create_feed`, `get_feed`, `get_feed_from_url`, `get_feeds`,
  `get_next_feed_to_fetch` and `mark_feed_fetched`.
  `get_next_feed_to_fetch` returns feeds that were never fetched first, then
  the one fetched longest ago.
- Follows: `create_feed_follow`, `get_feed_follows_for_user` and `unfollow`.
- Posts: `create_post`, and `get_posts_for_user(user_id, limit)`, which
  returns the newest posts first. A negative limit raises `ValueError`.
- `create_schema()` creates the tables if they are missing.
- `transaction()` is a context manager. It commits when the block ends and
  rolls back if the block raises. Nested transactions are refused.

Failures raise exceptions:

- `DatabaseError` is the base class.
- `UniqueViolation` is raised for a duplicate user name, feed URL, follow or
  post URL.
- `NotFound` is raised when a lookup that expects one row finds none.

## Fetching feeds

- `gator.feed.fetch_feed(url, timeout=None)` downloads a document with the
  User-Agent `gator` and parses it. The body of an HTTP error response is
  parsed as well.
- `gator.feed.parse_feed(data)` parses bytes or text you already have and
  returns an `RSSFeed` holding `RSSItem`s. HTML entities in titles and
  descriptions are unescaped. A document that is not well-formed XML raises
  `ValueError`.
- `gator.feed.parse_pub_date(text)` reads RFC 1123 dates with a numeric zone,
  for example `Mon, 02 Jan 2006 15:04:05 -0700`. It returns `None` for
  anything else.

`gator.feed.scrape_feeds(queries, fetch=fetch_feed)` does one round of
aggregation:

1. It picks the next feed due.
2. It marks that feed as fetched.
3. It fetches the feed with `fetch`.
4. It stores each item as a post and returns the posts it created.

Items whose URL is already stored are skipped silently. Other database
errors are logged and the item is skipped.

## Commands

`gator.commands` provides the pieces of a command set:

- `Command(name, args)`.
- `State(config, db, fetch=fetch_feed, sleep=time.sleep)`.
- `Commands`, a name-to-handler registry. It starts empty. `register(name,
  handler)` adds a handler, and `run(state, cmd)` calls it. An unknown name
  raises `CommandError`.

The handlers are:

| Handler             | Arguments              | What it does                                                        |
|---------------------|------------------------|---------------------------------------------------------------------|
| `handler_register`  | name                   | Creates a user and makes them current.                              |
| `handler_login`     | name                   | Makes an existing user current; exits with status 1 if there is none. |
| `handler_get_users` |                        | Prints all users and marks the current one.                         |
| `handler_reset`     |                        | Deletes all users and everything that belongs to them.              |
| `handler_add_feed`  | name, url              | Adds a feed and makes the user follow it.                           |
| `handler_feeds`     |                        | Prints every feed with the user who added it.                       |
| `handler_follow`    | url                    | Follows an existing feed.                                           |
| `handler_following` |                        | Prints the feeds the user follows.                                  |
| `handler_unfollow`  | url                    | Stops following a feed.                                             |
| `handler_browse`    | optional limit         | Prints the newest posts from followed feeds. The limit defaults to 2. |
| `handler_agg`       | interval, e.g. `1m30s` | Calls `scrape_feeds` forever, once per interval.                    |

The handlers that take a `user` are meant to be wrapped with
`middleware_logged_in`. The wrapper looks up the current user named in the
configuration and passes that user to the handler.

```python
from gator.commands import Command, Commands, State, handler_register, handler_browse, middleware_logged_in

commands = Commands()
commands.register("register", handler_register)
commands.register("browse", middleware_logged_in(handler_browse))
commands.run(State(cfg, queries), Command("register", ["alice"]))
```

`parse_duration(text)` reads intervals such as `1m30s`, `1.5h` or `250ms`
and returns a `timedelta`.

Bad or missing arguments raise `CommandError`. So does a non-positive `agg`
interval.

## What it does not do

- gator has no command-line program. No command names are registered for
  you, and no handler is bound to a process's arguments. You build the
  `Commands` registry and call `run` yourself.
- The configuration's `db_url` is not opened automatically.
- Storage is a local SQLite file only.