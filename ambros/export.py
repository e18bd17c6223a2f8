"""The export command: write stored commands to a JSON or YAML file."""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

import yaml

from ambros.base import AmbrosError, BaseCommand, Command, ErrorCode

_FORMATS = ("json", "yaml")
_FILTERS = ("success", "failed")


def _parse_date(text: str) -> datetime:
    day = date.fromisoformat(text)
    return datetime(day.year, day.month, day.day)


@dataclass
class ExportMetadata:
    """Description of how an export was produced."""

    total: int = 0
    format: str = ""
    filter: str = ""
    tag: str = ""
    from_date: str = ""
    to_date: str = ""
    history: bool = False


@dataclass
class ExportData:
    """The document written by an export."""

    export_date: datetime
    commands: list[Command] = field(default_factory=list)
    metadata: ExportMetadata = field(default_factory=ExportMetadata)

    def to_dict(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"total": self.metadata.total, "format": self.metadata.format}
        for key in ("filter", "tag", "from_date", "to_date"):
            value = getattr(self.metadata, key)
            if value:
                meta[key] = value
        meta["history"] = self.metadata.history
        return {
            "export_date": self.export_date.isoformat(),
            "commands": [command.to_dict() for command in self.commands],
            "metadata": meta,
        }


class ExportCommand(BaseCommand):
    """Export stored commands, filtered by tag, status or date range."""

    use = "export"
    short = "Export commands to file"
    long = """Export stored commands to a file in various formats.
Supports filtering by date range, tags, and history status."""

    def __init__(self, logger=None, repository=None, *, out=None):
        self.output_file = ""
        self.format = "json"
        self.filter = ""
        self.tag = ""
        self.from_date = ""
        self.to_date = ""
        self.history = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-o", "--output", dest="output_file", required=True,
            default=argparse.SUPPRESS, help="Output file path",
        )
        parser.add_argument(
            "-f", "--format", dest="format", default=argparse.SUPPRESS,
            help="Output format (json or yaml)",
        )
        parser.add_argument(
            "--filter", dest="filter", default=argparse.SUPPRESS,
            help="Filter commands by status (success|failed)",
        )
        parser.add_argument(
            "-t", "--tag", dest="tag", default=argparse.SUPPRESS,
            help="Filter commands by tag",
        )
        parser.add_argument(
            "--from", dest="from_date", default=argparse.SUPPRESS,
            help="Start date (YYYY-MM-DD)",
        )
        parser.add_argument(
            "--to", dest="to_date", default=argparse.SUPPRESS,
            help="End date (YYYY-MM-DD)",
        )
        parser.add_argument(
            "-H", "--history", dest="history", action="store_true",
            default=argparse.SUPPRESS, help="Export command history",
        )

    def run(self, args: list[str]) -> ExportData:
        """Validate flags, gather commands and write them; return what was written."""
        self.validate_flags()
        commands = self.filtered_commands()
        data = self.prepare_export_data(commands)
        self.export_data(data)
        self.logger.info("Export completed file=%s commands=%d", self.output_file, len(commands))
        return data

    def validate_flags(self) -> None:
        if self.format not in _FORMATS:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "unsupported format")
        if self.filter and self.filter not in _FILTERS:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "invalid filter value")
        for value, label in ((self.from_date, "from"), (self.to_date, "to")):
            if value:
                try:
                    _parse_date(value)
                except ValueError as err:
                    raise AmbrosError(
                        ErrorCode.INVALID_COMMAND, f"invalid {label} date format", err
                    ) from err

    def filtered_commands(self) -> list[Command]:
        """Fetch commands by tag, status or all, then apply the date range."""
        try:
            if self.tag:
                commands = self.repository.search_by_tag(self.tag)
            elif self.filter:
                commands = self.repository.search_by_status(self.filter == "success")
            else:
                commands = self.repository.get_all_commands()
        except Exception as err:
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to retrieve commands", err) from err

        if self.from_date or self.to_date:
            commands = self.filter_by_date(commands)
        return commands

    def filter_by_date(self, commands: list[Command]) -> list[Command]:
        """Keep commands created in the range; the end date includes its whole day."""
        from_time: Optional[datetime] = None
        to_time: Optional[datetime] = None
        try:
            if self.from_date:
                from_time = _parse_date(self.from_date)
            if self.to_date:
                to_time = _parse_date(self.to_date) + timedelta(days=1)
        except ValueError:
            return commands

        return [
            command
            for command in commands
            if not (from_time is not None and command.created_at < from_time)
            and not (to_time is not None and command.created_at > to_time)
        ]

    def prepare_export_data(self, commands: list[Command]) -> ExportData:
        return ExportData(
            export_date=datetime.now(),
            commands=list(commands),
            metadata=ExportMetadata(
                total=len(commands),
                format=self.format,
                filter=self.filter,
                tag=self.tag,
                from_date=self.from_date,
                to_date=self.to_date,
                history=self.history,
            ),
        )

    def export_data(self, data: ExportData) -> None:
        """Serialise the export in the chosen format and write it to the output file."""
        document = data.to_dict()
        try:
            if self.format == "json":
                text = json.dumps(document, indent=2, ensure_ascii=False)
            elif self.format == "yaml":
                text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
            else:
                raise AmbrosError(ErrorCode.INVALID_COMMAND, "unsupported format")
        except (TypeError, ValueError, yaml.YAMLError) as err:
            raise AmbrosError(ErrorCode.INTERNAL_SERVER, "failed to marshal data", err) from err

        directory = os.path.dirname(self.output_file) or "."
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as err:
            raise AmbrosError(
                ErrorCode.INTERNAL_SERVER, "failed to create output directory", err
            ) from err

        try:
            with open(self.output_file, "w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as err:
            raise AmbrosError(ErrorCode.INTERNAL_SERVER, "failed to write output file", err) from err