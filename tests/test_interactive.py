import io
import logging
from datetime import datetime

import pytest

from ambros.base import AmbrosError, Command
from ambros.interactive import InteractiveCommand


class FakeRepository:
    def __init__(self, commands=None, fail=False):
        self.commands = list(commands or [])
        self.fail = fail
        self.limits = []

    def get_all_commands(self):
        if self.fail:
            raise RuntimeError("boom")
        return list(self.commands)

    def get_limit_commands(self, limit):
        self.limits.append(limit)
        if self.fail:
            raise RuntimeError("boom")
        return self.commands[:limit]

    def search_by_tag(self, tag):
        if self.fail:
            raise RuntimeError("boom")
        return [c for c in self.commands if tag in c.tags]


def make(commands=None, text="", fail=False):
    out = io.StringIO()
    repo = FakeRepository(commands, fail)
    cmd = InteractiveCommand(
        logging.getLogger("test"), repo, out=out, stdin=io.StringIO(text)
    )
    return cmd, repo, out


def sample():
    moment = datetime(2024, 1, 1, 10, 0, 0)
    return [
        Command(id="a", name="echo", command="echo hi", status=True, created_at=moment),
        Command(id="b", name="ls", command="ls -la", status=False, created_at=moment),
    ]


def test_unknown_mode_raises():
    cmd, _, _ = make()
    with pytest.raises(AmbrosError) as info:
        cmd.run(["bogus"])
    assert "unknown mode: bogus" in str(info.value)


def test_too_many_arguments_raise():
    cmd, _, _ = make()
    with pytest.raises(AmbrosError):
        cmd.run(["search", "select"])


def test_main_menu_exit():
    cmd, _, out = make(text="5\n")
    assert cmd.run([]) is None
    assert "👋 Goodbye!" in out.getvalue()


def test_main_menu_retries_after_invalid_choice():
    cmd, _, out = make(text="x\n5\n")
    assert cmd.show_main_menu() is None
    assert "Invalid choice" in out.getvalue()
    assert out.getvalue().count("Ambros Interactive Mode") == 2


def test_main_menu_end_of_input_raises():
    cmd, _, _ = make(text="")
    with pytest.raises(EOFError):
        cmd.show_main_menu()


def test_search_builds_filters():
    cmd, _, _ = make(text="ls\n\nbuild\n2024-01-01\n\n")
    assert cmd.run(["search"]) == ["text:ls", "tag:build", "from:2024-01-01"]


def test_search_with_status_filter():
    cmd, _, _ = make(text="\nfailed\n\n\n\n")
    assert cmd.interactive_search() == ["status:failed"]


def test_search_tolerates_end_of_input():
    cmd, _, _ = make(text="")
    assert cmd.interactive_search() == []


def test_select_returns_chosen_command():
    commands = sample()
    cmd, repo, out = make(commands, text="2\n")
    selected = cmd.run(["select"])
    assert selected is commands[1]
    assert repo.limits == [20]
    assert "Would execute: ls -la" in out.getvalue()


def test_select_cancel():
    cmd, _, out = make(sample(), text="0\n")
    assert cmd.interactive_select() is None
    assert "Operation cancelled" in out.getvalue()


@pytest.mark.parametrize("choice", ["3\n", "abc\n", "-1\n"])
def test_select_invalid(choice):
    cmd, _, out = make(sample(), text=choice)
    assert cmd.interactive_select() is None
    assert "Invalid selection" in out.getvalue()


def test_select_empty_repository():
    cmd, _, out = make([], text="")
    assert cmd.interactive_select() is None
    assert "No commands found" in out.getvalue()


def test_select_repository_error():
    cmd, _, _ = make(fail=True)
    with pytest.raises(AmbrosError) as info:
        cmd.interactive_select()
    assert "failed to get commands" in str(info.value)


def test_cleanup_counts_failures():
    cmd, _, out = make(sample(), text="1\n")
    analysis = cmd.run(["cleanup"])
    assert analysis["total"] == 2
    assert analysis["failed"] == 1
    assert analysis["choice"] == "1"
    assert "Selected: Option 1" in out.getvalue()


def test_cleanup_empty():
    cmd, _, _ = make([], text="")
    assert cmd.interactive_cleanup() is None


def test_cleanup_repository_error():
    cmd, _, _ = make(fail=True)
    with pytest.raises(AmbrosError):
        cmd.interactive_cleanup()


def test_manage_templates():
    template = Command(id="t", name="deploy", command="make", tags=["template"])
    cmd, _, out = make([template], text="1\n")
    assert cmd.run(["manage"]) == [template]
    assert "deploy" in out.getvalue()


def test_manage_environments_counts_variables():
    records = [
        Command(id="m", name="env:prod:meta", category="environment", tags=["environment"]),
        Command(id="v", name="env:prod:var:KEY", category="environment", tags=["environment"]),
        Command(id="o", name="other", category="misc", tags=["environment"]),
    ]
    cmd, _, _ = make(records, text="2\n")
    assert cmd.interactive_manage() == {"prod": 1}


def test_manage_environments_empty():
    cmd, _, out = make([])
    assert cmd.manage_environments() == {}
    assert "ambros env create development" in out.getvalue()


def test_manage_back_to_main_menu():
    cmd, _, out = make(text="9\n5\n5\n")
    assert cmd.interactive_manage() is None
    assert "Invalid selection" in out.getvalue()
    assert "Goodbye" in out.getvalue()


def test_system_settings_mentions_configuration():
    cmd, _, out = make()
    assert cmd.system_settings() is None
    assert "~/.ambros.yaml" in out.getvalue()


def test_extract_env_name():
    cmd, _, _ = make()
    assert cmd.extract_env_name("env:prod:meta") == "prod"
    assert cmd.extract_env_name("plain") == "plain"
    assert cmd.extract_env_name("other:prod") == "other:prod"