import io
from datetime import datetime, timedelta

import pytest

from ambros.analytics import AnalyticsCommand
from ambros.base import AmbrosError, Command, ErrorCode

BASE = datetime(2024, 5, 1, 12, 0, 0)


class FakeRepository:
    def __init__(self, commands=(), error=None):
        self.commands = list(commands)
        self.error = error

    def get_all_commands(self):
        if self.error is not None:
            raise self.error
        return list(self.commands)


def make(name, status=True, duration=timedelta(seconds=1), tags=(), cid=""):
    return Command(
        id=cid or name,
        name=name,
        status=status,
        created_at=BASE,
        terminated_at=BASE + duration,
        tags=list(tags),
    )


def build(commands=(), error=None):
    out = io.StringIO()
    return AnalyticsCommand(repository=FakeRepository(commands, error), out=out), out


def test_unknown_action_raises():
    cmd, _ = build()
    with pytest.raises(AmbrosError) as info:
        cmd.run(["bogus"])
    assert info.value.code is ErrorCode.INVALID_COMMAND
    assert "unknown action: bogus" in str(info.value)


def test_repository_error_is_wrapped():
    cmd, _ = build(error=RuntimeError("boom"))
    with pytest.raises(AmbrosError) as info:
        cmd.run(["most-used"])
    assert info.value.code is ErrorCode.REPOSITORY_READ
    assert "failed to retrieve commands" in str(info.value)


def test_summary_empty_repository():
    cmd, out = build()
    assert cmd.run([]) is None
    assert "No commands found." in out.getvalue()


def test_summary_counts_and_duration():
    commands = [
        make("a", status=True, duration=timedelta(milliseconds=1500), tags=["template"]),
        make("b", status=True, duration=timedelta(milliseconds=1500)),
    ]
    cmd, out = build(commands)
    summary = cmd.show_summary()
    assert summary["total_commands"] == len(commands)
    assert summary["success_count"] == len(commands)
    assert summary["success_rate"] == 100.0
    assert summary["average_duration"] == timedelta(milliseconds=1500)
    assert summary["template_runs"] == 1
    text = out.getvalue()
    assert "Command Analytics Summary" in text
    assert "1.5s" in text


def test_summary_default_action_is_summary():
    cmd, out = build([make("x", status=False)])
    summary = cmd.run([])
    assert summary["success_count"] == 0
    assert summary["success_rate"] == 0.0
    assert "Success Rate: " in out.getvalue()


def test_most_used_sorted_and_counted():
    names = ["ls", "echo", "ls", "pwd", "ls", "echo"]
    cmd, out = build([make(n, cid=f"{n}{i}") for i, n in enumerate(names)])
    ranked = cmd.run(["most-used"])
    counts = [count for _, count in ranked]
    assert counts == sorted(counts, reverse=True)
    assert sum(counts) == len(names)
    assert dict(ranked) == {name: names.count(name) for name in set(names)}
    assert "Most Used Commands" in out.getvalue()


def test_most_used_limited_to_ten():
    cmd, _ = build([make(f"cmd{i}") for i in range(15)])
    assert len(cmd.show_most_used()) == 10


def test_slowest_skips_short_and_sorts():
    durations = [timedelta(milliseconds=5), timedelta(seconds=3), timedelta(seconds=1)]
    commands = [make(f"c{i}", duration=d) for i, d in enumerate(durations)]
    cmd, out = build(commands)
    ranked = cmd.run(["slowest"])
    assert [c.name for c, _ in ranked] == ["c1", "c2"]
    assert [d for _, d in ranked] == [durations[1], durations[2]]
    assert "Slowest Commands" in out.getvalue()


def test_slowest_limited_to_ten():
    commands = [make(f"c{i}", duration=timedelta(seconds=i + 1)) for i in range(12)]
    cmd, _ = build(commands)
    ranked = cmd.show_slowest()
    assert len(ranked) == 10
    assert ranked[0][1] == timedelta(seconds=12)


def test_failures_none():
    cmd, out = build([make("ok", status=True)])
    assert cmd.run(["failures"]) == []
    assert "No command failures found!" in out.getvalue()


def test_failures_ranked():
    commands = [
        make("bad", status=False, cid="1"),
        make("bad", status=False, cid="2"),
        make("flaky", status=False, cid="3"),
        make("good", status=True, cid="4"),
    ]
    cmd, out = build(commands)
    ranked = cmd.show_failures()
    assert ranked[0][0] == "bad"
    assert dict(ranked) == {"bad": 2, "flaky": 1}
    assert "good" not in dict(ranked)
    assert "Commands with Failures" in out.getvalue()


def test_execute_parses_flags():
    cmd, _ = build([make("ls")])
    ranked = cmd.execute(["-p", "30d", "--detail", "most-used"])
    assert cmd.period == "30d"
    assert cmd.detail is True
    assert ranked == [("ls", 1)]