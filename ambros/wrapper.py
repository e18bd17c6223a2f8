"""Helpers to create, run and store commands."""

from __future__ import annotations

import logging
import re
import subprocess
import uuid
from datetime import datetime
from typing import Optional

from ambros.base import AmbrosError, Command, ErrorCode, Repository

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _exit_message(code: int) -> str:
    if code < 0:
        return f"signal: {-code}"
    return f"exit status {code}"


class CommandWrapper:
    """Creates command records, executes them and stores them in a repository."""

    def __init__(self, logger: Optional[logging.Logger] = None, repository: Optional[Repository] = None):
        self.logger = logger if logger is not None else logging.getLogger("ambros")
        self.repository = repository

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    def initialize_command(self, name: str, arguments: list[str]) -> Command:
        return Command(id=self._new_id(), created_at=datetime.now(), name=name, arguments=list(arguments))

    def initialize_commands(self, cmds: list[list[str]]) -> list[Command]:
        """Create one command per non-empty part list: name first, then arguments."""
        return [
            Command(id=self._new_id(), created_at=datetime.now(), name=parts[0], arguments=list(parts[1:]))
            for parts in cmds
            if parts
        ]

    def finalize_command(self, command: Command) -> None:
        command.terminated_at = datetime.now()
        try:
            self.repository.put(command)
        except Exception as err:
            self.logger.error("Failed to store command %s: %s", command.id, err)
            raise
        self.logger.info("Command finalized id=%s", command.id)

    def finalize_commands(self, commands: list[Command]) -> None:
        """Store every command; the last failure, if any, is raised at the end."""
        last_error: Optional[Exception] = None
        for command in commands:
            command.terminated_at = datetime.now()
            try:
                self.repository.put(command)
            except Exception as err:
                self.logger.error("Failed to store command %s: %s", command.id, err)
                last_error = err
                continue
            self.logger.info("Command finalized id=%s", command.id)
        if last_error is not None:
            raise last_error

    def push_command(self, command: Command, show_id: bool) -> None:
        command.terminated_at = datetime.now()
        try:
            self.repository.push(command)
        except Exception as err:
            self.logger.error("Failed to push command %s: %s", command.id, err)
            raise
        if show_id:
            self.logger.info("Command pushed id=%s", command.id)

    def push_commands(self, commands: list[Command], show_id: bool) -> None:
        """Push every command; the last failure, if any, is raised at the end."""
        last_error: Optional[Exception] = None
        for command in commands:
            self.logger.info("Storing command %s", command.as_stored_command())
            command.terminated_at = datetime.now()
            try:
                self.repository.push(command)
            except Exception as err:
                self.logger.error("Failed to push command %s: %s", command.id, err)
                last_error = err
                continue
            if show_id:
                self.logger.info("Command pushed id=%s", command.id)
        if last_error is not None:
            raise last_error

    def execute_command(self, command: Command) -> bool:
        """Run the command, recording output, error and status on it; return the status."""
        self.logger.debug("Executing command %s %s", command.name, command.arguments)
        try:
            completed = subprocess.run(
                [command.name, *command.arguments], capture_output=True, text=True
            )
        except OSError as err:
            self.logger.error("Error starting command: %s", err)
            command.error = str(err)
            command.status = False
            return False

        out_lines = _lines(completed.stdout)
        err_lines = _lines(completed.stderr)
        for line in out_lines:
            self.logger.debug("Command output: %s", line)
        for line in err_lines:
            self.logger.debug("Command error output: %s", line)

        if completed.returncode != 0:
            message = _exit_message(completed.returncode)
            self.logger.error("Error waiting for command: %s", message)
            command.error = message
            command.status = False
            return False

        command.output = "".join(line + "\n" for line in out_lines)
        if err_lines:
            command.error = "".join(line + "\n" for line in err_lines)
            command.status = False
        else:
            command.status = True
        return command.status

    def execute_commands(self, commands: list[Command]) -> None:
        """Run commands as a pipeline, storing each; stop at the first failure."""
        previous = b""
        for command in commands:
            command.created_at = datetime.now()
            failure: Optional[str] = None
            try:
                completed = subprocess.run(
                    [command.name, *command.arguments],
                    input=previous if previous else None,
                    stdin=None if previous else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                )
                previous = completed.stdout or b""
                if completed.returncode != 0:
                    failure = _exit_message(completed.returncode)
            except OSError as err:
                previous = b""
                failure = str(err)

            command.output = previous.decode("utf-8", errors="replace")
            self.logger.debug("Command output: %s", command.output)
            command.error = ""
            if failure is not None:
                self.logger.error("Error running the command: %s", failure)
                command.error = failure
                command.status = False
            else:
                self.logger.info("Command completed successfully")
                command.status = True

            command.terminated_at = datetime.now()
            try:
                self.repository.put(command)
            except Exception as err:
                self.logger.error("Error storing the command: %s", err)
                raise

            self.logger.info("Command stored %s", command.as_stored_command())
            if not command.status:
                raise AmbrosError(ErrorCode.INTERNAL_SERVER, "command pipeline failed")

    def commands_from_arguments(self, args: list[str]) -> list[list[str]]:
        """Split the joined arguments on '|' into the word lists of each command."""
        if not args:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "arguments must be provided")
        joined = " ".join(args)
        return [parts for parts in (segment.split() for segment in joined.split("|")) if parts]

    def command_from_arguments(self, args: list[str]) -> tuple[str, list[str]]:
        if not args:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "arguments must be provided")
        return args[0], list(args[1:])

    def strings_from_arguments(self, args: list[str]) -> list[str]:
        if not args:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "arguments must be provided")
        return list(args)

    def string_from_arguments(self, args: list[str]) -> str:
        if len(args) < 1:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "argument must be provided")
        return args[0]

    def int_from_arguments(self, args: list[str]) -> int:
        if len(args) != 1:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "exactly one argument must be provided")
        if not _INTEGER.fullmatch(args[0]):
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "argument must be a valid integer")
        return int(args[0])