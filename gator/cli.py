"""The command line entry point."""

from __future__ import annotations

import logging
import sys
from typing import List, Optional

from gator import config
from gator.commands import Command, CommandError, Commands, State, logged_in
from gator.database import DatabaseError, connect
from gator.handlers import (
    handle_add_feed,
    handle_agg,
    handle_browse,
    handle_feeds,
    handle_follow,
    handle_following,
    handle_login,
    handle_register,
    handle_reset,
    handle_unfollow,
    handle_users,
)

USAGE = "Usage: gator <command> [args...]"


def build_commands() -> Commands:
    """Return the registry of every command the program knows."""
    commands = Commands()
    commands.register("login", handle_login)
    commands.register("register", handle_register)
    commands.register("reset", handle_reset)
    commands.register("users", handle_users)
    commands.register("agg", handle_agg)
    commands.register("addfeed", logged_in(handle_add_feed))
    commands.register("feeds", handle_feeds)
    commands.register("follow", logged_in(handle_follow))
    commands.register("following", logged_in(handle_following))
    commands.register("unfollow", logged_in(handle_unfollow))
    commands.register("browse", logged_in(handle_browse))
    return commands


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command named in ``argv`` and return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
    )

    try:
        cfg = config.read()
    except (OSError, ValueError) as exc:
        return _fail(f"error reading config: {exc}")

    try:
        db = connect(cfg.db_url)
    except (DatabaseError, OSError) as exc:
        return _fail(f"error connecting to db: {exc}")

    with db:
        if not args:
            return _fail(USAGE)
        state = State(db=db, cfg=cfg)
        try:
            build_commands().run(state, Command(args[0], tuple(args[1:])))
        except CommandError as exc:
            return _fail(str(exc))
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())