# ambros

`ambros` is a library of command objects that work on a record of shell
commands. Each record holds:

- what was run and with which arguments,
- when it started and when it finished,
- what it printed, and any error text,
- whether it succeeded,
- its tags, category and variables.

With these objects you can list and analyse the records, export and import
them, run and store new commands, group records into chains, and keep named
sets of environment variables.

## Building blocks (`ambros.base`)

- `Command` is a dataclass for one record. `as_stored_command()` returns the
  name followed by the arguments. `to_dict()` and `Command.from_dict()`
  convert a record to and from plain dictionaries. Timestamps in those
  dictionaries are ISO 8601 strings.
- `CommandChain` is a named list of command IDs. It also has `to_dict()` and
  `from_dict()`.
- `Repository` is a protocol. Any object you pass as a repository must
  provide these methods:
  - `put`
  - `push`
  - `get`
  - `delete`
  - `get_all_commands`
  - `get_limit_commands`
  - `search_by_tag`
  - `search_by_status`

  `get` must raise an exception for an unknown ID.
- `BaseCommand` is the base class of every command object. Its constructor
  takes `logger`, `repository` and the keyword `out`, which is a text stream
  and defaults to standard output. It provides:
  - `execute(argv)`: parses flags from `argv` onto the object, then calls
    `run()` with the remaining positional arguments. It returns whatever
    `run()` returns.
  - `run(args)`: runs the command with positional arguments, using the flag
    values already set on the object.
  - `has_repository()`: tells you whether a repository was given.
- `AmbrosError` is raised for every reported failure. Its `code` is an
  `ErrorCode`, one of:
  - `INVALID_COMMAND`
  - `COMMAND_NOT_FOUND`
  - `REPOSITORY_READ`
  - `REPOSITORY_WRITE`
  - `INTERNAL_SERVER`

  The underlying exception, if any, is kept in `cause`. Flag parsing errors
  in `execute()` are raised as `AmbrosError` with `INVALID_COMMAND`.

## Commands

### `ambros.logs.LogsCommand`

Prints one line per record, in the form
`[YYYY-MM-DD HH:MM:SS] name (ID: id) - Status: SUCCESS|FAILED`.

Flags:
- `-s/--since YYYY-MM-DD`: show only records from that date on.
- `-f/--failed`: show only failed records.

It returns the records it printed. `format_status(status)` returns
`"SUCCESS"` or `"FAILED"`.

### `ambros.output.OutputCommand`

Prints the stored output and error text of the record given by
`-i/--id`, which is required.

It returns the record. It raises `COMMAND_NOT_FOUND` for an unknown ID.

### `ambros.last.LastCommand`

Lists the newest records first. `-n/--limit` sets how many are taken; the
default is 10. `-f/--failed` keeps only the failed records among those
taken.

A negative limit is rejected.

### `ambros.analytics.AnalyticsCommand`

Takes an action as its first argument:

| Action | What it does |
| --- | --- |
| `summary` (default) | Shows the total, the success rate, the average duration and the number of template runs. |
| `most-used` | Shows the top 10 names by count. |
| `slowest` | Shows the top 10 records taking longer than 10 ms. |
| `failures` | Shows the top 10 names by number of failures. |

Each action returns the figures it printed. The `-p/--period`,
`-f/--format` and `-d/--detail` flags are accepted and stored, but they do
not change the result.

### `ambros.export.ExportCommand`

Writes an `ExportData` document to `-o/--output`, which is required. The
document holds:

- `export_date`,
- `commands`,
- `metadata`, which is an `ExportMetadata`.

Flags:
- `-f/--format json|yaml`
- `--filter success|failed`
- `-t/--tag`
- `--from YYYY-MM-DD`
- `--to YYYY-MM-DD`: the whole of this end day is included.
- `-H/--history`

If a tag is given, the records come from the tag. Otherwise, if a filter is
given, they come from the status. Otherwise all records are exported. The
date range is applied after that.

Missing parent directories of the output file are created.

### `ambros.importer.ImportCommand`

Reads the `commands` list from `-i/--input`, which is required. The file is
JSON, or YAML with `-f yaml`.

Flags:
- `--dry-run`: prints a preview and stores nothing.
- `--skip-existing`: leaves out IDs that `get` already finds.
- `--merge`: accepted, but it has no effect.

Imported records get the current time as their creation time.

It returns a dictionary of counts.

### `ambros.wrapper.CommandWrapper`

A helper, not a command. It has these methods:

- `initialize_command` and `initialize_commands` create records with new
  random IDs.
- `execute_command` runs one program and records its stdout, stderr and
  status. Any stderr output marks the record as failed.
- `execute_commands` runs records as a pipeline. Each program's combined
  output is fed to the next one. Each record is stored with `put`. At the
  first failure it raises `AmbrosError("command pipeline failed")`.
- `finalize_command` / `finalize_commands` stamp the end time and store the
  records with `put`.
- `push_command` / `push_commands` do the same with `push`.
- `commands_from_arguments` splits joined arguments on `|`.
- `command_from_arguments`, `strings_from_arguments`,
  `string_from_arguments` and `int_from_arguments` validate positional
  arguments.

### `ambros.env.EnvCommand`

Actions:
- `list`
- `create <name>`
- `delete <name>`
- `set <name> <key> <value>`
- `unset <name> <key>`
- `show <name>`
- `apply <name> <command...>`

Environments are stored as records in the `environment` category. Their
names look like `env:<name>:meta` or `env:<name>:var:<key>`.
`extract_env_name()` returns the `<name>` part, or `""`.

### `ambros.chain.ChainCommand`

Subcommands:
- `exec <name>`
- `create <name> <id,id,...>`
- `list`
- `delete <name>`
- `show <name>`
- `export <name>`
- `import <file>`
- `analytics`
- `template`

Flags:
- `-c/--conditional`: keep going after a failure.
- `-p/--parallel`
- `-r/--retry N`: waits 1 s, 2 s, … between attempts.
- `-t/--timeout`: a duration such as `30m` or `1h30m`. The default is 30
  minutes.
- `--dry-run`
- `-i/--interactive`: asks before each next command.
- `-s/--store`: saves the `ChainExecutionResult` as a record tagged
  `chain`.
- `-n/--name` and `-d/--desc`

If `exec` is given an unknown name, it builds a demo chain from the three
latest records. Each command string is split on whitespace and run without
a shell.

### `ambros.interactive.InteractiveCommand`

Offers menus on standard input, or on the `stdin` stream you pass to the
constructor. The modes are:

- `search`
- `select`
- `cleanup`
- `manage`

## Example

```python
from ambros.base import Command
from ambros.last import LastCommand
from ambros.export import ExportCommand
from ambros.wrapper import CommandWrapper


class MemoryRepository:
    def __init__(self):
        self.items = {}

    def put(self, command):
        self.items[command.id] = command

    push = put

    def get(self, command_id):
        return self.items[command_id]

    def delete(self, command_id):
        del self.items[command_id]

    def get_all_commands(self):
        return list(self.items.values())

    def get_limit_commands(self, limit):
        return list(self.items.values())[:limit]

    def search_by_tag(self, tag):
        return [c for c in self.items.values() if tag in c.tags]

    def search_by_status(self, status):
        return [c for c in self.items.values() if c.status == status]


repo = MemoryRepository()
wrapper = CommandWrapper(repository=repo)
record = wrapper.initialize_command("echo", ["hello"])
wrapper.execute_command(record)
wrapper.finalize_command(record)

LastCommand(repository=repo).execute(["-n", "5"])
ExportCommand(repository=repo).execute(["-o", "commands.json"])
```

## What this package does not do

- **No `ambros` program.** The package installs no command-line program;
  you drive the command objects from Python. The usage hints that some
  commands print (such as `ambros env create development`) refer to a
  program that is not included.
- **No storage.** The package ships no storage backend. You supply an
  object that satisfies `Repository`.
- **Chains are kept in memory.** They live on the `ChainCommand` instance
  and are lost when it goes away.
- **Some features only print.** In each of these cases the package prints
  what would happen and nothing more:
  - `env apply` shows the exports and the command but does not run it.
  - `chain template` only prints a notice.
  - The interactive search, select, cleanup and management screens report
    a choice without searching, running or deleting anything.