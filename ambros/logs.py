"""The logs command: list stored command executions."""

from __future__ import annotations

import argparse
from datetime import datetime

from ambros.base import (
    DATE_FORMAT,
    TIMESTAMP_FORMAT,
    AmbrosError,
    BaseCommand,
    Command,
    ErrorCode,
)

_STATUS_LABELS = {True: "SUCCESS", False: "FAILED"}


def format_status(status: bool) -> str:
    """Return the upper-case label for a command's status."""
    label = _STATUS_LABELS[bool(status)]
    return label


class LogsCommand(BaseCommand):
    """Display execution logs of stored commands."""

    use = "logs"
    short = "Show command execution logs"
    long = "Display the execution logs of stored commands, with optional filtering."

    def __init__(self, logger=None, repository=None, *, out=None):
        self.since = ""
        self.failed_only = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-s", "--since", dest="since", default=argparse.SUPPRESS,
            help="Show logs since timestamp (e.g. 2024-01-01)",
        )
        parser.add_argument(
            "-f", "--failed", dest="failed_only", action="store_true",
            default=argparse.SUPPRESS, help="Show only failed commands",
        )

    def run(self, args: list[str]) -> list[Command]:
        """Print matching log lines and return the commands shown."""
        self.logger.debug("Logs command invoked since=%r failed_only=%s", self.since, self.failed_only)

        try:
            commands = self.repository.get_all_commands()
        except Exception as err:
            self.logger.error("Failed to retrieve commands: %s", err)
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to retrieve commands", err) from err

        since_time = None
        if self.since:
            try:
                since_time = datetime.strptime(self.since, DATE_FORMAT)
            except ValueError as err:
                self.logger.error("Invalid date format %r: %s", self.since, err)
                raise AmbrosError(ErrorCode.INVALID_COMMAND, "invalid date format", err) from err

        shown = [
            command
            for command in commands
            if not (since_time is not None and command.created_at < since_time)
            and not (self.failed_only and command.status)
        ]

        for command in shown:
            self._print(
                f"[{command.created_at.strftime(TIMESTAMP_FORMAT)}] {command.name} "
                f"(ID: {command.id}) - Status: {format_status(command.status)}"
            )

        self.logger.info(
            "Logs command completed total=%d displayed=%d", len(commands), len(shown)
        )
        return shown