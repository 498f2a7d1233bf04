# gator

`gator` is a small command-line RSS aggregator. You register users, add
RSS feeds, follow the feeds you care about, let the aggregator collect
posts, and browse the newest posts from the feeds you follow. Everything
is kept in a SQLite database.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home
directory. The file must exist before the first run and hold a JSON
object with two string keys:

```json
{"db_url": "gator.db", "current_user_name": ""}
```

- `db_url` is the SQLite database to open: a file path, or a URL of the
  form `sqlite:///path/to/file.db`. `sqlite://` with nothing after it
  opens an in-memory database. The tables are created on first use.
- `current_user_name` is the logged-in user. `gator` rewrites the file
  whenever you `register` or `login`.

## Usage

```
gator <command> [args...]
```

Errors are printed to standard error and the command exits with status 1.
Without a command, `gator` prints a usage line and exits with status 1.

### Users

| Command | What it does |
| --- | --- |
| `gator register <name>` | Create a user (names are unique) and log in as them. |
| `gator login <name>` | Switch to an existing user. |
| `gator users` | List all users; the current one is marked `(current)`. |
| `gator reset` | Delete every user and, with them, their feeds, follows and posts. |

### Feeds

| Command | What it does |
| --- | --- |
| `gator addfeed <name> <url>` | Add a feed (URLs are unique) and follow it as the current user. |
| `gator feeds` | List every feed and the user who added it. |
| `gator follow <url>` | Follow an existing feed by its URL. |
| `gator following` | List the feeds the current user follows. |
| `gator unfollow <url>` | Stop following a feed. |

`addfeed`, `follow`, `following`, `unfollow` and `browse` need a logged-in
user; without one they fail with `user not logged in`.

### Collecting posts

```
gator agg 1m
```

`agg` takes the time between requests as a duration made of numbers and
units, such as `30s`, `1m`, `1h30m`, `1.5s` or `500ms` (units `ns`, `us`,
`ms`, `s`, `m`, `h`). The interval must be positive. It scrapes once
straight away and then once per interval until interrupted with Ctrl-C
(exit status 130).

On each tick it picks the feed that was fetched longest ago (feeds never
fetched come first), marks it fetched, downloads it with a 10 second
timeout and stores each item as a post. Posts whose URL is already stored
are skipped silently. Publication dates are read in the form
`Mon, 02 Jan 2006 15:04:05 -0700`; items with other dates are stored
without one. Progress and failures are logged to standard error.

### Reading posts

```
gator browse 10
```

`browse` shows posts from the feeds the current user follows: posts
without a publication date first, then the rest newest first. The
optional argument is the number of posts to show and defaults to 2; it
must be a non-negative integer.

## Example session

```
gator register alice
gator addfeed "Example News" https://example.com/rss.xml
gator agg 30s        # leave running, stop with Ctrl-C
gator browse 5
```

## Using it as a library

- `gator.config` — `Config`, `read()`, `write()`, `config_file_path()`.
- `gator.database` — `connect()` and `Database`, with the `User`, `Feed`,
  `FeedFollowRow`, `Post` and `PostRow` records and the `DatabaseError`,
  `NotFoundError` and `DuplicateError` exceptions.
- `gator.rss` — `fetch_feed()` and `parse_feed()`, returning `RSSFeed`
  with its `RSSItem`s; HTML entities in titles and descriptions are
  decoded.
- `gator.commands` — `Commands`, `Command`, `State`, `CommandError` and
  the `logged_in` decorator.
- `gator.handlers` — one handler per command, plus `parse_duration()` and
  `parse_pub_date()`.
- `gator.cli` — `build_commands()` and `main()`.

## Limitations

- Storage is SQLite only; `db_url` cannot point at a database server.
- There are no passwords: anyone who can edit the configuration file can
  act as any user.
- `agg` scrapes one feed per tick, one at a time; it does not run in the
  background on its own.
- The HTTP status of a feed download is not checked; a response that is
  not valid XML is logged and skipped.

## Development

```
pip install -e ".[test]"
pytest
```