"""The env command: named environments of variables stored as commands."""

from __future__ import annotations

import argparse
import time
from datetime import datetime
from typing import Any

from termcolor import colored

from ambros.base import AmbrosError, BaseCommand, Command, ErrorCode

_CATEGORY = "environment"


def extract_env_name(command_name: str) -> str:
    """Return the environment name in ``env:<name>:...``, or "" for other names."""
    parts = command_name.split(":")
    if len(parts) >= 2 and parts[0] == "env":
        return parts[1]
    return ""


def _timestamp(moment: datetime) -> str:
    return moment.isoformat(sep=" ", timespec="seconds")


def _belongs_to(command: Command, env_name: str) -> bool:
    return command.category == _CATEGORY and extract_env_name(command.name) == env_name


class EnvCommand(BaseCommand):
    """Manage named environments and their variables."""

    use = "env"
    short = "Manage environment variables and contexts"
    long = """Manage environment variables and execution contexts.
Supports creating named environments, setting variables, and applying them to commands.

Subcommands:
  list                         List all environments
  create <name>                Create a new environment
  delete <name>                Delete an environment
  set <name> <key> <value>     Set a variable in an environment
  unset <name> <key>           Remove a variable from an environment
  show <name>                  Show environment details
  apply <name> <command>       Run command with environment variables"""

    def __init__(self, logger=None, repository=None, *, out=None):
        self.global_ = False
        self.interactive = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-g", "--global", dest="global_", action="store_true",
            default=argparse.SUPPRESS, help="Apply to global environment",
        )
        parser.add_argument(
            "-i", "--interactive", dest="interactive", action="store_true",
            default=argparse.SUPPRESS, help="Interactive environment setup",
        )

    def run(self, args: list[str]) -> Any:
        if not args:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "env command requires an action")

        action = args[0]
        if action == "list":
            return self.list_environments()
        if action == "create":
            self._require(args, 2, "usage: env create <name>")
            return self.create_environment(args[1])
        if action == "delete":
            self._require(args, 2, "usage: env delete <name>")
            return self.delete_environment(args[1])
        if action == "set":
            self._require(args, 4, "usage: env set <name> <key> <value>")
            return self.set_variable(args[1], args[2], args[3])
        if action == "unset":
            self._require(args, 3, "usage: env unset <name> <key>")
            return self.unset_variable(args[1], args[2])
        if action == "show":
            self._require(args, 2, "usage: env show <name>")
            return self.show_environment(args[1])
        if action == "apply":
            self._require(args, 3, "usage: env apply <name> <command>")
            return self.apply_environment(args[1], " ".join(args[2:]))
        raise AmbrosError(ErrorCode.INVALID_COMMAND, f"unknown action: {action}")

    @staticmethod
    def _require(args: list[str], count: int, usage: str) -> None:
        if len(args) < count:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, usage)

    def _search(self, tag: str, message: str) -> list[Command]:
        try:
            return self.repository.search_by_tag(tag)
        except Exception as err:
            self.logger.error("Failed to search environments: %s", err)
            raise AmbrosError(ErrorCode.REPOSITORY_READ, message, err) from err

    def list_environments(self) -> dict[str, list[Command]]:
        """Print the environments and return their commands grouped by name, sorted."""
        commands = self._search(_CATEGORY, "failed to list environments")

        if not commands:
            self._cprint("📁 No environments found", "yellow")
            self._cprint("\nCreate your first environment:", "cyan")
            self._cprint("  ambros env create development", "white")
            return {}

        grouped: dict[str, list[Command]] = {}
        for command in commands:
            if command.category == _CATEGORY:
                grouped.setdefault(extract_env_name(command.name), []).append(command)

        environments = {name: grouped[name] for name in sorted(grouped)}
        self._cprint(f"📁 Available Environments ({len(environments)}):", "cyan")

        for position, (name, entries) in enumerate(environments.items(), start=1):
            self._print(f"{position}. {colored(name, 'green')}")
            self._print(f"   Variables: {colored(str(len(entries)), 'cyan')}")
            if entries:
                self._print(f"   Created: {_timestamp(entries[0].created_at)}")
            if position < len(environments):
                self._print()

        return environments

    def create_environment(self, env_name: str) -> Command:
        """Store the metadata record of a new environment and return it."""
        existing = self._search(_CATEGORY, "failed to check existing environments")
        if any(_belongs_to(command, env_name) for command in existing):
            raise AmbrosError(
                ErrorCode.INVALID_COMMAND, f"environment '{env_name}' already exists"
            )

        meta = Command(
            id=f"ENV-{env_name}-{time.time_ns()}",
            name=f"env:{env_name}:meta",
            command="# Environment metadata",
            category=_CATEGORY,
            tags=[_CATEGORY, env_name, "meta"],
            status=True,
            variables={"env_name": env_name, "env_type": "user"},
        )

        try:
            self.repository.put(meta)
        except Exception as err:
            self.logger.error("Failed to create environment %s: %s", env_name, err)
            raise AmbrosError(ErrorCode.REPOSITORY_WRITE, "failed to create environment", err) from err

        self._cprint(f"✅ Environment '{env_name}' created successfully", "green")
        self._cprint("\nNext steps:", "cyan")
        self._cprint(f"  ambros env set {env_name} KEY value", "white")
        self._cprint(f"  ambros env show {env_name}", "white")

        self.logger.info("Environment created %s", env_name)
        return meta

    def delete_environment(self, env_name: str) -> list[Command]:
        """Delete every record of the environment and return them."""
        commands = self._search(env_name, "failed to find environment")
        doomed = [command for command in commands if _belongs_to(command, env_name)]
        if not doomed:
            raise AmbrosError(ErrorCode.COMMAND_NOT_FOUND, f"environment not found: {env_name}")

        for command in doomed:
            try:
                self.repository.delete(command.id)
            except Exception as err:
                self.logger.error("Failed to delete environment command %s: %s", command.id, err)

        self._cprint(f"🗑️  Environment '{env_name}' deleted successfully", "green")
        self._cprint(f"Deleted {len(doomed) - 1} variables", "cyan")

        self.logger.info("Environment deleted %s commands=%d", env_name, len(doomed))
        return doomed

    def set_variable(self, env_name: str, key: str, value: str) -> Command:
        """Store a variable record in an existing environment and return it."""
        if not self.environment_exists(env_name):
            raise AmbrosError(ErrorCode.COMMAND_NOT_FOUND, f"environment not found: {env_name}")

        record = Command(
            id=f"ENV-{env_name}-{key}-{time.time_ns()}",
            name=f"env:{env_name}:var:{key}",
            command=f"export {key}={value}",
            category=_CATEGORY,
            tags=[_CATEGORY, env_name, "variable"],
            status=True,
            variables={"env_name": env_name, "var_key": key, "var_value": value},
        )

        try:
            self.repository.put(record)
        except Exception as err:
            self.logger.error("Failed to set variable %s in %s: %s", key, env_name, err)
            raise AmbrosError(
                ErrorCode.REPOSITORY_WRITE, "failed to set environment variable", err
            ) from err

        self._print(
            colored("✅ Variable set: ", "green")
            + colored(key, "yellow")
            + colored("=", "green")
            + colored(value, "cyan")
        )
        self.logger.info("Environment variable set %s in %s", key, env_name)
        return record

    def unset_variable(self, env_name: str, key: str) -> Command:
        """Delete the first record of the variable and return it."""
        commands = self._search(env_name, "failed to find environment")
        marker = f"var:{key}"
        record = next(
            (c for c in commands if c.category == _CATEGORY and marker in c.name), None
        )
        if record is None:
            raise AmbrosError(
                ErrorCode.COMMAND_NOT_FOUND,
                f"variable '{key}' not found in environment '{env_name}'",
            )

        try:
            self.repository.delete(record.id)
        except Exception as err:
            self.logger.error("Failed to delete environment variable %s: %s", record.id, err)
            raise AmbrosError(
                ErrorCode.REPOSITORY_WRITE, "failed to delete environment variable", err
            ) from err

        self._cprint(f"🗑️  Variable '{key}' removed from environment '{env_name}'", "green")
        self.logger.info("Environment variable removed %s from %s", key, env_name)
        return record

    def show_environment(self, env_name: str) -> tuple[Command, list[Command]]:
        """Print the environment; return its metadata and variables sorted by key."""
        commands = self._search(env_name, "failed to find environment")

        meta = None
        variables: list[Command] = []
        for command in commands:
            if not _belongs_to(command, env_name):
                continue
            if ":meta" in command.name:
                meta = command
            elif ":var:" in command.name:
                variables.append(command)

        if meta is None:
            raise AmbrosError(ErrorCode.COMMAND_NOT_FOUND, f"environment not found: {env_name}")

        variables.sort(key=lambda c: c.variables.get("var_key", ""))

        self._cprint("📄 Environment Details:", "cyan")
        self._print(f"Name: {colored(env_name, 'green')}")
        self._print(f"ID: {meta.id}")
        self._print(f"Created: {_timestamp(meta.created_at)}")
        self._print(f"Variables: {colored(str(len(variables)), 'cyan')}")

        if variables:
            self._print(f"\n{colored('🔧', 'yellow')} Environment Variables:")
            for command in variables:
                key = command.variables.get("var_key", "")
                value = command.variables.get("var_value", "")
                self._print(f"  {colored(key, 'yellow')} = {colored(value, 'cyan')}")
            self._print(f"\n{colored('💡', 'green')} Usage:")
            self._cprint(f'  ambros env apply {env_name} "your-command"', "white")

        return meta, variables

    def apply_environment(self, env_name: str, command: str) -> dict[str, str]:
        """Show the command prefixed by the environment's exports; return the variables."""
        commands = self._search(env_name, "failed to find environment")

        found = False
        env_vars: dict[str, str] = {}
        for record in commands:
            if _belongs_to(record, env_name):
                found = True
                if ":var:" in record.name:
                    env_vars[record.variables.get("var_key", "")] = record.variables.get(
                        "var_value", ""
                    )

        if not found:
            raise AmbrosError(ErrorCode.COMMAND_NOT_FOUND, f"environment not found: {env_name}")

        self._cprint(f"🚀 Applying environment '{env_name}' to command", "cyan")
        if env_vars:
            self._cprint("Environment variables:", "yellow")
            for key, value in env_vars.items():
                self._print(f"  {colored(key, 'yellow')} = {colored(value, 'cyan')}")

        self._cprint("\nCommand with environment:", "green")
        exports = [f"export {key}={value}" for key, value in env_vars.items()]
        if exports:
            self._print(f"  {colored('; '.join(exports), 'cyan')}")
        self._print(f"  {colored(command, 'white')}")

        self._cprint(
            "\n⚠️  Environment application integration with 'run' command coming soon!", "yellow"
        )
        self.logger.info(
            "Environment %s applied to command %r variables=%d", env_name, command, len(env_vars)
        )
        return env_vars

    def environment_exists(self, env_name: str) -> bool:
        try:
            commands = self.repository.search_by_tag(_CATEGORY)
        except Exception:
            return False
        return any(_belongs_to(command, env_name) for command in commands)