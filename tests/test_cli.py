import pytest

from gator.cli import build_commands, main
from gator.config import Config, default_config_path, read_config, write_config


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    return tmp_path


@pytest.fixture
def configured(home):
    write_config(Config(db_url=str(home / "gator.db")), default_config_path())
    return home


def test_build_commands_registers_every_command():
    assert set(build_commands().handlers) == {
        "login", "register", "reset", "users", "agg", "addfeed",
        "feeds", "follow", "following", "unfollow", "browse",
    }


def test_missing_config(home, capsys):
    assert main(["users"]) == 1
    assert "error reading config" in capsys.readouterr().err


def test_no_command(configured, capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err


def test_unknown_command(configured, capsys):
    assert main(["bogus"]) == 1
    assert "command not found" in capsys.readouterr().err


def test_register_then_list_users(configured, capsys):
    assert main(["register", "alice"]) == 0
    assert read_config().current_user_name == "alice"
    capsys.readouterr()
    assert main(["users"]) == 0
    assert capsys.readouterr().out.splitlines() == ["* alice (current)"]


def test_addfeed_requires_login_then_lists(configured, capsys):
    assert main(["addfeed", "Blog", "https://example.com/rss"]) == 1
    assert "error retrieving current user" in capsys.readouterr().err
    assert main(["register", "alice"]) == 0
    assert main(["addfeed", "Blog", "https://example.com/rss"]) == 0
    capsys.readouterr()
    assert main(["following"]) == 0
    assert "- Blog" in capsys.readouterr().out


def test_handler_usage_error_exits_nonzero(configured, capsys):
    assert main(["register"]) == 1
    assert "usage: register <name>" in capsys.readouterr().err