import io
import json
from datetime import datetime, timedelta

import pytest
import yaml

from ambros.base import AmbrosError, Command, ErrorCode
from ambros.export import ExportCommand, ExportData


class FakeRepository:
    def __init__(self, commands=(), error=None):
        self.commands = list(commands)
        self.error = error
        self.calls = []

    def _check(self):
        if self.error is not None:
            raise self.error

    def get_all_commands(self):
        self.calls.append(("get_all_commands",))
        self._check()
        return list(self.commands)

    def search_by_tag(self, tag):
        self.calls.append(("search_by_tag", tag))
        self._check()
        return [c for c in self.commands if tag in c.tags]

    def search_by_status(self, status):
        self.calls.append(("search_by_status", status))
        self._check()
        return [c for c in self.commands if c.status == status]


def sample_commands():
    now = datetime.now()
    return [
        Command(
            id="cmd1", created_at=now - timedelta(hours=1), name="echo",
            arguments=["hello"], tags=["test"], status=True, output="hello\n",
        ),
        Command(
            id="cmd2", created_at=now - timedelta(hours=2), name="ls",
            arguments=["-la"], tags=["file"], status=False, error="permission denied",
        ),
    ]


def build(repo=None):
    return ExportCommand(repository=repo or FakeRepository(), out=io.StringIO())


@pytest.mark.parametrize(
    "fmt, filt, start, end, want_error",
    [
        ("json", "", "", "", False),
        ("yaml", "", "", "", False),
        ("csv", "", "", "", True),
        ("json", "success", "", "", False),
        ("json", "failed", "", "", False),
        ("json", "invalid", "", "", True),
        ("json", "", "2024-01-01", "2024-01-31", False),
        ("json", "", "2024/01/01", "", True),
        ("json", "", "", "2024/01/31", True),
    ],
)
def test_validate_flags(fmt, filt, start, end, want_error):
    cmd = build()
    cmd.format, cmd.filter, cmd.from_date, cmd.to_date = fmt, filt, start, end
    if want_error:
        with pytest.raises(AmbrosError) as info:
            cmd.validate_flags()
        assert info.value.code is ErrorCode.INVALID_COMMAND
    else:
        assert cmd.validate_flags() is None


def test_export_all_as_json(tmp_path):
    repo = FakeRepository(sample_commands())
    cmd = build(repo)
    cmd.output_file = str(tmp_path / "all.json")
    cmd.format = "json"
    cmd.run([])
    exported = json.loads((tmp_path / "all.json").read_text(encoding="utf-8"))
    assert len(exported["commands"]) == 2
    assert exported["metadata"]["total"] == 2
    assert exported["metadata"]["format"] == "json"
    assert repo.calls == [("get_all_commands",)]


def test_export_by_tag(tmp_path):
    repo = FakeRepository(sample_commands())
    cmd = build(repo)
    cmd.output_file = str(tmp_path / "tagged.json")
    cmd.tag = "test"
    cmd.run([])
    exported = json.loads((tmp_path / "tagged.json").read_text(encoding="utf-8"))
    assert len(exported["commands"]) == 1
    assert exported["metadata"]["tag"] == "test"
    assert repo.calls == [("search_by_tag", "test")]


def test_export_by_status(tmp_path):
    repo = FakeRepository(sample_commands())
    cmd = build(repo)
    cmd.output_file = str(tmp_path / "success.json")
    cmd.filter = "success"
    cmd.run([])
    exported = json.loads((tmp_path / "success.json").read_text(encoding="utf-8"))
    assert len(exported["commands"]) == 1
    assert repo.calls == [("search_by_status", True)]


def test_export_repository_error(tmp_path):
    cmd = build(FakeRepository(error=RuntimeError("boom")))
    cmd.output_file = str(tmp_path / "error.json")
    with pytest.raises(AmbrosError) as info:
        cmd.run([])
    assert info.value.code is ErrorCode.REPOSITORY_READ
    assert not (tmp_path / "error.json").exists()


def test_export_yaml_round_trip(tmp_path):
    target = tmp_path / "nested" / "history.yaml"
    cmd = build(FakeRepository(sample_commands()))
    cmd.output_file = str(target)
    cmd.format = "yaml"
    cmd.history = True
    cmd.run([])
    loaded = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert [c["id"] for c in loaded["commands"]] == ["cmd1", "cmd2"]
    assert loaded["metadata"]["format"] == "yaml"
    assert loaded["metadata"]["history"] is True
    assert "filter" not in loaded["metadata"]
    restored = [Command.from_dict(c) for c in loaded["commands"]]
    assert restored == sample_commands_like(restored)


def sample_commands_like(restored):
    originals = {c.id: c for c in sample_commands()}
    return [
        Command(**{**originals[c.id].__dict__, "created_at": c.created_at})
        for c in restored
    ]


def test_filter_by_date():
    now = datetime.now()
    yesterday = now - timedelta(hours=24)
    two_days_ago = now - timedelta(hours=48)
    commands = [
        Command(id="cmd1", created_at=now, name="test1"),
        Command(id="cmd2", created_at=yesterday, name="test2"),
        Command(id="cmd3", created_at=two_days_ago, name="test3"),
    ]
    cases = [
        ("", "", 3),
        (yesterday.strftime("%Y-%m-%d"), "", 2),
        ("", yesterday.strftime("%Y-%m-%d"), 2),
        (two_days_ago.strftime("%Y-%m-%d"), yesterday.strftime("%Y-%m-%d"), 2),
    ]
    for start, end, expected in cases:
        cmd = build()
        cmd.from_date, cmd.to_date = start, end
        assert len(cmd.filter_by_date(commands)) == expected


def test_filter_by_date_invalid_returns_input():
    commands = [Command(id="a", created_at=datetime(2020, 1, 1))]
    cmd = build()
    cmd.from_date = "not-a-date"
    assert cmd.filter_by_date(commands) == commands


def test_prepare_export_data():
    cmd = build()
    cmd.format = "json"
    cmd.tag = "test"
    cmd.filter = "success"
    cmd.from_date = "2024-01-01"
    cmd.to_date = "2024-01-31"
    cmd.history = True
    data = cmd.prepare_export_data([Command(id="cmd1", name="echo", status=True)])
    assert isinstance(data, ExportData)
    assert len(data.commands) == 1
    assert data.metadata.total == 1
    assert data.metadata.format == "json"
    assert data.metadata.tag == "test"
    assert data.metadata.filter == "success"
    assert data.metadata.from_date == "2024-01-01"
    assert data.metadata.to_date == "2024-01-31"
    assert data.metadata.history is True


def test_to_dict_omits_empty_optional_metadata():
    cmd = build()
    data = cmd.prepare_export_data([])
    meta = data.to_dict()["metadata"]
    assert meta == {"total": 0, "format": "json", "history": False}


def test_execute_with_flags(tmp_path):
    target = tmp_path / "out.json"
    cmd = build(FakeRepository(sample_commands()))
    cmd.execute(["-o", str(target), "-t", "file"])
    exported = json.loads(target.read_text(encoding="utf-8"))
    assert [c["id"] for c in exported["commands"]] == ["cmd2"]


def test_execute_requires_output():
    cmd = build(FakeRepository(sample_commands()))
    with pytest.raises(AmbrosError) as info:
        cmd.execute(["-f", "json"])
    assert info.value.code is ErrorCode.INVALID_COMMAND