import io
import json

import pytest
import yaml

from ambros.base import ZERO_TIME, AmbrosError, Command
from ambros.importer import ImportCommand


class FakeRepository:
    def __init__(self, existing=()):
        self.store = {c.id: c for c in existing}
        self.put_calls = []
        self.get_calls = []

    def put(self, command):
        self.put_calls.append(command)
        self.store[command.id] = command

    def get(self, command_id):
        self.get_calls.append(command_id)
        if command_id not in self.store:
            raise KeyError(command_id)
        return self.store[command_id]


def write_json(path, commands):
    path.write_text(json.dumps({"commands": [c.to_dict() for c in commands]}), encoding="utf-8")
    return str(path)


def make(repo, **attrs):
    cmd = ImportCommand(repository=repo, out=io.StringIO())
    for key, value in attrs.items():
        setattr(cmd, key, value)
    return cmd


def test_successful_json_import(tmp_path):
    repo = FakeRepository()
    commands = [Command(id="cmd1", name="echo", status=True), Command(id="cmd2", name="ls")]
    path = write_json(tmp_path / "test.json", commands)
    result = make(repo, input_file=path, format="json").run([])
    assert [c.id for c in repo.put_calls] == ["cmd1", "cmd2"]
    assert result["imported"] == 2
    assert repo.put_calls[0].status is True
    assert repo.put_calls[1].status is False


def test_successful_yaml_import(tmp_path):
    repo = FakeRepository()
    path = tmp_path / "test.yaml"
    path.write_text(
        yaml.safe_dump({"commands": [Command(id="cmd1", name="echo", status=True).to_dict()]}),
        encoding="utf-8",
    )
    result = make(repo, input_file=str(path), format="yaml").run([])
    assert [c.id for c in repo.put_calls] == ["cmd1"]
    assert repo.put_calls[0].name == "echo"
    assert result["imported"] == 1


def test_import_sets_timestamps(tmp_path):
    repo = FakeRepository()
    path = write_json(tmp_path / "t.json", [Command(id="cmd1", name="echo")])
    make(repo, input_file=path).run([])
    stored = repo.put_calls[0]
    assert stored.created_at != ZERO_TIME
    assert stored.terminated_at == stored.created_at


def test_dry_run_mode(tmp_path):
    repo = FakeRepository()
    path = write_json(tmp_path / "dryrun.json", [Command(id="cmd1", name="echo", status=True)])
    result = make(repo, input_file=path, dry_run=True).run([])
    assert repo.put_calls == []
    assert "cmd1" in repo.get_calls
    assert result == {"total": 1, "existing": 0}


def test_skip_existing_commands(tmp_path):
    repo = FakeRepository(existing=[Command(id="existing")])
    commands = [Command(id="existing", name="echo", status=True), Command(id="new", name="ls")]
    path = write_json(tmp_path / "skip.json", commands)
    result = make(repo, input_file=path, skip_existing=True).run([])
    assert [c.id for c in repo.put_calls] == ["new"]
    assert result["skipped"] == 1
    assert result["imported"] == 1


def test_file_not_found_error():
    cmd = make(FakeRepository(), input_file="/nonexistent/file.json", format="json")
    with pytest.raises(AmbrosError) as info:
        cmd.run([])
    assert "input file does not exist" in str(info.value)


def test_invalid_format_error(tmp_path):
    path = tmp_path / "test.txt"
    path.write_text("test", encoding="utf-8")
    cmd = make(FakeRepository(), input_file=str(path), format="invalid")
    with pytest.raises(AmbrosError) as info:
        cmd.run([])
    assert "unsupported format" in str(info.value)


def test_invalid_json_file(tmp_path):
    path = tmp_path / "invalid.json"
    path.write_text("invalid json", encoding="utf-8")
    cmd = make(FakeRepository(), input_file=str(path), format="json")
    with pytest.raises(AmbrosError) as info:
        cmd.run([])
    assert "failed to parse input file" in str(info.value)


def test_command_structure_and_flags(tmp_path):
    path = write_json(tmp_path / "flags.json", [Command(id="cmd1", name="echo")])
    repo = FakeRepository()
    cmd = ImportCommand(repository=repo, out=io.StringIO())
    assert cmd.use == "import"
    assert cmd.short == "Import commands from file"
    result = cmd.execute(["-i", path, "--dry-run", "--skip-existing", "--merge"])
    assert cmd.format == "json"
    assert cmd.input_file == path
    assert cmd.dry_run is True and cmd.skip_existing is True and cmd.merge is True
    assert result["total"] == 1


def test_missing_input_flag_is_an_error():
    cmd = ImportCommand(repository=FakeRepository(), out=io.StringIO())
    with pytest.raises(AmbrosError):
        cmd.execute([])


def test_command_exists():
    repo = FakeRepository(existing=[Command(id="existing")])
    cmd = make(repo)
    assert cmd.command_exists("existing") is True
    assert cmd.command_exists("nonexistent") is False
    assert repo.get_calls == ["existing", "nonexistent"]


@pytest.mark.parametrize("status, expected", [(True, "✅ Success"), (False, "❌ Failed")])
def test_format_status(status, expected):
    assert make(FakeRepository()).format_status(status) == expected