"""Shared models, errors and the base class for every ambros command."""

from __future__ import annotations

import argparse
import enum
import logging
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, TextIO

ZERO_TIME = datetime(1, 1, 1)
DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_FRACTION = re.compile(r"\.(\d+)")


class ErrorCode(enum.Enum):
    """Categories of failures reported by commands."""

    INVALID_COMMAND = "invalid_command"
    COMMAND_NOT_FOUND = "command_not_found"
    REPOSITORY_READ = "repository_read"
    REPOSITORY_WRITE = "repository_write"
    INTERNAL_SERVER = "internal_server"


class AmbrosError(Exception):
    """Error raised by commands, carrying a code and an optional cause."""

    def __init__(self, code: ErrorCode, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


def _parse_time(value: Any) -> datetime:
    if value is None or value == "":
        return ZERO_TIME
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed
    naive = parsed.replace(tzinfo=None)
    if naive.year <= 1:
        return naive
    return parsed.astimezone().replace(tzinfo=None)


@dataclass
class Command:
    """A stored command together with its execution record."""

    id: str = ""
    created_at: datetime = ZERO_TIME
    terminated_at: datetime = ZERO_TIME
    name: str = ""
    arguments: list[str] = field(default_factory=list)
    command: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    status: bool = False
    output: str = ""
    error: str = ""
    variables: dict[str, str] = field(default_factory=dict)

    def as_stored_command(self) -> str:
        """Return the command line as it was stored: name followed by arguments."""
        return " ".join([self.name, *self.arguments])

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "terminated_at": self.terminated_at.isoformat(),
            "name": self.name,
            "arguments": list(self.arguments),
            "command": self.command,
            "category": self.category,
            "tags": list(self.tags),
            "status": self.status,
            "output": self.output,
            "error": self.error,
            "variables": dict(self.variables),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Command":
        return cls(
            id=str(data.get("id") or ""),
            created_at=_parse_time(data.get("created_at")),
            terminated_at=_parse_time(data.get("terminated_at")),
            name=str(data.get("name") or ""),
            arguments=[str(a) for a in data.get("arguments") or []],
            command=str(data.get("command") or ""),
            category=str(data.get("category") or ""),
            tags=[str(t) for t in data.get("tags") or []],
            status=bool(data.get("status", False)),
            output=str(data.get("output") or ""),
            error=str(data.get("error") or ""),
            variables={str(k): str(v) for k, v in (data.get("variables") or {}).items()},
        )


@dataclass
class CommandChain:
    """A named sequence of command identifiers."""

    id: str = ""
    name: str = ""
    description: str = ""
    commands: list[str] = field(default_factory=list)
    conditional: bool = False
    created_at: datetime = ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "commands": list(self.commands),
            "conditional": self.conditional,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandChain":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            commands=[str(c) for c in data.get("commands") or []],
            conditional=bool(data.get("conditional", False)),
            created_at=_parse_time(data.get("created_at")),
        )


class Repository(Protocol):
    """Storage used by the commands. Lookups of unknown ids raise an exception."""

    def put(self, command: Command) -> None: ...

    def push(self, command: Command) -> None: ...

    def get(self, command_id: str) -> Command: ...

    def delete(self, command_id: str) -> None: ...

    def get_all_commands(self) -> list[Command]: ...

    def get_limit_commands(self, limit: int) -> list[Command]: ...

    def search_by_tag(self, tag: str) -> list[Command]: ...

    def search_by_status(self, status: bool) -> list[Command]: ...


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise AmbrosError(ErrorCode.INVALID_COMMAND, message)


class BaseCommand:
    """Base for all commands: holds the logger, repository and flag parser."""

    use = ""
    short = ""
    long = ""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        repository: Optional[Repository] = None,
        *,
        out: Optional[TextIO] = None,
        action: Optional[Callable[[list[str]], Any]] = None,
    ):
        self.logger = logger if logger is not None else logging.getLogger("ambros")
        self.repository = repository
        self.out = out
        self.action = action
        prog = self.use.split()[0] if self.use else "ambros"
        self.parser = _ArgumentParser(prog=prog, description=self.long or self.short)
        self._configure(self.parser)
        self.parser.add_argument("args", nargs="*")

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        """Add command specific flags; flags use argparse.SUPPRESS as default."""

    def has_repository(self) -> bool:
        return self.repository is not None

    def execute(self, argv: Optional[list[str]] = None) -> Any:
        """Parse flags from argv into attributes, then run with the positional args."""
        if argv is None:
            argv = sys.argv[1:]
        namespace = self.parser.parse_intermixed_args(argv)
        values = vars(namespace)
        args = list(values.pop("args", []) or [])
        for name, value in values.items():
            setattr(self, name, value)
        return self.run(args)

    def run(self, args: list[str]) -> Any:
        """Run the command; the base class delegates to the configured action."""
        if self.action is not None:
            return self.action(args)
        return None

    def _stream(self) -> TextIO:
        return self.out if self.out is not None else sys.stdout

    def _print(self, *values: Any, end: str = "\n") -> None:
        print(*values, end=end, file=self._stream())

    def _cprint(self, text: str, color: str, end: str = "\n") -> None:
        from termcolor import colored

        print(colored(text, color), end=end, file=self._stream())