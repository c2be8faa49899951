"""Registration and dispatch of named commands."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable

from .config import Config
from .database import DatabaseError, Queries
from .models import User


class CommandError(Exception):
    """A command was used wrongly or could not do its work."""


@dataclass(frozen=True)
class Command:
    name: str
    args: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass
class State:
    """What every command works with: the database and the configuration."""

    db: Queries
    cfg: Config


Handler = Callable[[State, Command], Any]
UserHandler = Callable[[State, Command, User], Any]


class Commands:
    """A table of command names and the handlers that run them."""

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> Any:
        try:
            handler = self.handlers[cmd.name]
        except KeyError:
            raise CommandError("command not found") from None
        return handler(state, cmd)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap a handler so that it receives the current user as a third argument."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> Any:
        try:
            user = state.db.get_user(state.cfg.current_user_name)
        except DatabaseError as exc:
            raise CommandError(f"error retrieving current user: {exc}") from exc
        return handler(state, cmd, user)

    return wrapper