"""The last command: show the most recently executed commands."""

from __future__ import annotations

import argparse

from ambros.base import TIMESTAMP_FORMAT, AmbrosError, BaseCommand, Command, ErrorCode

_STATUS_LABELS = {True: "Success", False: "Failed"}


class LastCommand(BaseCommand):
    """Display the most recent commands, newest first."""

    use = "last"
    short = "Show last executed commands"
    long = "Display the most recently executed commands with optional filtering."

    def __init__(self, logger=None, repository=None, *, out=None):
        self.limit = 10
        self.failed_only = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-n", "--limit", dest="limit", type=int, default=argparse.SUPPRESS,
            help="Number of commands to show",
        )
        parser.add_argument(
            "-f", "--failed", dest="failed_only", action="store_true",
            default=argparse.SUPPRESS, help="Show only failed commands",
        )

    def format_status(self, status: bool) -> str:
        """Return the label shown for a command's status."""
        label = _STATUS_LABELS[bool(status)]
        return label

    def run(self, args: list[str]) -> list[Command]:
        """Print the latest commands and return the ones shown."""
        self.logger.debug("Last command invoked limit=%d failed_only=%s", self.limit, self.failed_only)

        if self.limit < 0:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "limit must not be negative")

        try:
            commands = self.repository.get_all_commands()
        except Exception as err:
            self.logger.error("Failed to retrieve commands: %s", err)
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to retrieve commands", err) from err

        commands = sorted(commands, key=lambda c: c.created_at, reverse=True)[: self.limit]

        if self.failed_only:
            commands = [command for command in commands if not command.status]

        if not commands:
            self._print("No failed commands found" if self.failed_only else "No commands found")
            return []

        self._print(f"Last {len(commands)} command(s):\n")

        for position, command in enumerate(commands, start=1):
            colour = "green" if command.status else "red"
            self._print(f"{position}. {command.name} {' '.join(command.arguments)}")
            self._cprint(f"   ID: {command.id}", colour)
            self._print(f"   Created: {command.created_at.strftime(TIMESTAMP_FORMAT)}")
            self._print("   Status: ", end="")
            self._cprint(self.format_status(command.status), colour)
            if command.tags:
                self._print(f"   Tags: {', '.join(command.tags)}")
            if command.category:
                self._print(f"   Category: {command.category}")
            if position < len(commands):
                self._print()

        self.logger.info(
            "Last command completed retrieved=%d failed_only=%s", len(commands), self.failed_only
        )
        return commands