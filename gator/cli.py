"""Entry point of the ``gator`` command."""

from __future__ import annotations

import logging
import sys

from . import handlers
from .commands import Command, CommandError, Commands, State, logged_in
from .config import read_config
from .database import DatabaseError, connect

USAGE = "Usage: gator <command> [args...]"


def build_commands() -> Commands:
    """Return the table of every command the program knows."""
    cmds = Commands()
    cmds.register("login", handlers.handle_login)
    cmds.register("register", handlers.handle_register)
    cmds.register("reset", handlers.handle_reset)
    cmds.register("users", handlers.handle_users)
    cmds.register("agg", handlers.handle_agg)
    cmds.register("addfeed", logged_in(handlers.handle_add_feed))
    cmds.register("feeds", handlers.handle_feeds)
    cmds.register("follow", logged_in(handlers.handle_follow))
    cmds.register("following", logged_in(handlers.handle_following))
    cmds.register("unfollow", logged_in(handlers.handle_unfollow))
    cmds.register("browse", logged_in(handlers.handle_browse))
    return cmds


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
    )
    try:
        cfg = read_config()
    except (OSError, ValueError) as exc:
        return _fail(f"error reading config: {exc}")
    try:
        db = connect(cfg.db_url)
    except DatabaseError as exc:
        return _fail(str(exc))

    with db:
        if not args:
            return _fail(USAGE)
        state = State(db=db, cfg=cfg)
        try:
            build_commands().run(state, Command(args[0], tuple(args[1:])))
        except (CommandError, DatabaseError) as exc:
            return _fail(str(exc))
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())