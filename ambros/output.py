"""The output command: show the captured output of a stored command."""

from __future__ import annotations

import argparse

from ambros.base import AmbrosError, BaseCommand, Command, ErrorCode


class OutputCommand(BaseCommand):
    """Display the output and error text of a stored command."""

    use = "output"
    short = "Show the output of a stored command"
    long = "Display the output of a previously stored command by its ID."

    def __init__(self, logger=None, repository=None, *, out=None):
        self.command_id = ""
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-i", "--id", dest="command_id", required=True,
            default=argparse.SUPPRESS, help="ID of the command to show output for",
        )

    def run(self, args: list[str]) -> Command:
        """Print the command's output and error, and return the command."""
        if not self.command_id:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "command ID is required")

        try:
            command = self.repository.get(self.command_id)
        except Exception as err:
            self.logger.error("Failed to retrieve command %s: %s", self.command_id, err)
            raise AmbrosError(
                ErrorCode.COMMAND_NOT_FOUND, f"command not found: {self.command_id}", err
            ) from err

        if command.output:
            self._print(f"Output for command {self.command_id}:\n{command.output}")
        else:
            self._print(f"No output available for command {self.command_id}")

        if command.error:
            self._print(f"Error for command {self.command_id}:\n{command.error}")

        self.logger.debug(
            "Command output retrieved id=%s name=%s has_output=%s has_error=%s",
            self.command_id, command.name, bool(command.output), bool(command.error),
        )
        return command