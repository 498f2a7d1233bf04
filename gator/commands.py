"""Command dispatch and the state shared by command handlers."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple

from gator.config import Config
from gator.database import Database, DatabaseError, User


class CommandError(Exception):
    """A command failed; the message is meant for the user."""


@dataclass(frozen=True)
class Command:
    """A command name and its arguments."""

    name: str
    args: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))


@dataclass
class State:
    """What every handler works with: the database and the configuration."""

    db: Database
    cfg: Config


Handler = Callable[[State, Command], Any]
UserHandler = Callable[[State, Command, User], Any]


class Commands:
    """A registry of command handlers by name."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> Any:
        try:
            handler = self._handlers[cmd.name]
        except KeyError:
            raise CommandError("command not found") from None
        return handler(state, cmd)

    def __iter__(self):
        return iter(self._handlers)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so that it receives the logged-in user."""

    @functools.wraps(handler)
    def wrapper(state: State, cmd: Command) -> Any:
        try:
            user = state.db.get_user(state.cfg.current_user_name)
        except DatabaseError:
            raise CommandError("user not logged in") from None
        return handler(state, cmd, user)

    return wrapper


def _names(commands: Commands) -> Sequence[str]:
    return list(commands)