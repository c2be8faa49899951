import uuid
from datetime import datetime, timezone

import pytest

from gator.commands import Command, CommandError, Commands, State, logged_in
from gator.config import Config
from gator.database import connect


@pytest.fixture
def state(tmp_path):
    db = connect(":memory:")
    yield State(db=db, cfg=Config(db_url=":memory:", path=tmp_path / "config.json"))
    db.close()


def test_run_dispatches_to_registered_handler(state):
    calls = []
    cmds = Commands()
    cmds.register("echo", lambda s, c: calls.append((s, c)))
    cmd = Command("echo", ["a", "b"])
    cmds.run(state, cmd)
    assert calls == [(state, cmd)]
    assert cmd.args == ("a", "b")


def test_register_replaces_previous_handler(state):
    cmds = Commands()
    cmds.register("x", lambda s, c: "first")
    cmds.register("x", lambda s, c: "second")
    assert cmds.run(state, Command("x")) == "second"


def test_unknown_command(state):
    with pytest.raises(CommandError, match="command not found"):
        Commands().run(state, Command("nope"))


def test_command_args_default_empty():
    assert Command("users").args == ()


def test_logged_in_passes_current_user(state):
    now = datetime.now(timezone.utc)
    created = state.db.create_user(uuid.uuid4(), now, now, "alice")
    state.cfg.current_user_name = "alice"
    seen = []
    wrapped = logged_in(lambda s, c, user: seen.append(user))
    wrapped(state, Command("follow"))
    assert seen == [created]


def test_logged_in_without_user(state):
    state.cfg.current_user_name = "ghost"
    wrapped = logged_in(lambda s, c, user: None)
    with pytest.raises(CommandError, match="error retrieving current user"):
        wrapped(state, Command("follow"))