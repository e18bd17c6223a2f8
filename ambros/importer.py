"""The import command: load stored commands from a JSON or YAML file."""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import replace
from datetime import datetime
from typing import Any

import yaml

from ambros.base import ZERO_TIME, AmbrosError, BaseCommand, Command, ErrorCode

_FORMATS = ("json", "yaml")
_STATUS_LABELS = {True: "✅ Success", False: "❌ Failed"}


def _timestamp(moment: datetime) -> str:
    return moment.isoformat(sep=" ", timespec="seconds")


class ImportCommand(BaseCommand):
    """Import commands from a file, optionally previewing or skipping existing ones."""

    use = "import"
    short = "Import commands from file"
    long = """Import commands from a file in various formats.
Supports JSON and YAML formats with options for merging and validation."""

    def __init__(self, logger=None, repository=None, *, out=None):
        self.input_file = ""
        self.format = "json"
        self.merge = False
        self.dry_run = False
        self.skip_existing = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-i", "--input", dest="input_file", required=True,
            default=argparse.SUPPRESS, help="Input file path",
        )
        parser.add_argument(
            "-f", "--format", dest="format", default=argparse.SUPPRESS,
            help="Input format (json or yaml)",
        )
        parser.add_argument(
            "--merge", dest="merge", action="store_true",
            default=argparse.SUPPRESS, help="Merge with existing commands",
        )
        parser.add_argument(
            "--dry-run", dest="dry_run", action="store_true",
            default=argparse.SUPPRESS,
            help="Show what would be imported without making changes",
        )
        parser.add_argument(
            "--skip-existing", dest="skip_existing", action="store_true",
            default=argparse.SUPPRESS, help="Skip commands that already exist",
        )

    def run(self, args: list[str]) -> dict[str, int]:
        """Validate, read and import the file; return the counts of the run."""
        self.logger.debug(
            "Import command invoked file=%s format=%s merge=%s dry_run=%s skip_existing=%s",
            self.input_file, self.format, self.merge, self.dry_run, self.skip_existing,
        )
        self.validate_flags()
        commands = self.read_import_file()
        self.logger.info("Parsed import file %s with %d commands", self.input_file, len(commands))
        return self.process_commands(commands)

    def validate_flags(self) -> None:
        if self.format not in _FORMATS:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "unsupported format")
        if not os.path.exists(self.input_file):
            raise AmbrosError(
                ErrorCode.INVALID_COMMAND,
                "input file does not exist",
                FileNotFoundError(self.input_file),
            )

    def read_import_file(self) -> list[Command]:
        """Read the input file and return the commands listed under ``commands``."""
        try:
            with open(self.input_file, encoding="utf-8") as handle:
                text = handle.read()
        except OSError as err:
            self.logger.error("Failed to read input file %s: %s", self.input_file, err)
            raise AmbrosError(ErrorCode.INTERNAL_SERVER, "failed to read input file", err) from err

        if self.format not in _FORMATS:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "unsupported format")

        try:
            return self._parse(text)
        except (ValueError, TypeError, AttributeError, yaml.YAMLError) as err:
            self.logger.error(
                "Failed to parse input file %s as %s: %s", self.input_file, self.format, err
            )
            raise AmbrosError(ErrorCode.INTERNAL_SERVER, "failed to parse input file", err) from err

    def _parse(self, text: str) -> list[Command]:
        document: Any = json.loads(text) if self.format == "json" else yaml.safe_load(text)
        if document is None:
            return []
        if not isinstance(document, dict):
            raise ValueError("expected a mapping at the top level")
        entries = document.get("commands") or []
        if not isinstance(entries, list):
            raise ValueError("'commands' must be a list")
        return [Command.from_dict(entry) for entry in entries]

    def process_commands(self, commands: list[Command]) -> dict[str, int]:
        """Store the commands, or preview them in dry-run mode; return the counts."""
        if self.dry_run:
            return self.preview_import(commands)

        imported = skipped = errors = 0
        for command in commands:
            if self.skip_existing and self.command_exists(command.id):
                skipped += 1
                self.logger.debug("Skipping existing command %s", command.id)
                continue

            now = datetime.now()
            terminated = now if command.terminated_at == ZERO_TIME else command.terminated_at
            record = replace(command, created_at=now, terminated_at=terminated)

            try:
                self.repository.put(record)
            except Exception as err:
                errors += 1
                self.logger.error("Failed to import command %s: %s", command.id, err)
                continue

            imported += 1
            self.logger.debug("Imported command %s (%s)", command.id, command.name)

        self._cprint("📥 Import completed:", "cyan")
        self._print("Total commands: ", end="")
        self._cprint(str(len(commands)), "yellow")
        self._print("Imported: ", end="")
        self._cprint(str(imported), "green")
        if skipped:
            self._print("Skipped: ", end="")
            self._cprint(str(skipped), "yellow")
        if errors:
            self._print("Errors: ", end="")
            self._cprint(str(errors), "red")

        self.logger.info(
            "Import process completed total=%d imported=%d skipped=%d errors=%d",
            len(commands), imported, skipped, errors,
        )
        return {"total": len(commands), "imported": imported, "skipped": skipped, "errors": errors}

    def preview_import(self, commands: list[Command]) -> dict[str, int]:
        """Print what would be imported; return the total and how many already exist."""
        self._cprint(f"📋 Import preview for file: {self.input_file}", "cyan")
        self._print("Format: ", end="")
        self._cprint(self.format, "yellow")
        self._print("Total commands to import: ", end="")
        self._cprint(str(len(commands)), "green")
        self._print()

        existing = 0
        for position, command in enumerate(commands, start=1):
            exists = self.command_exists(command.id)
            if exists:
                existing += 1

            self._print(f"{position}. {command.name} (ID: {command.id})")
            self._print(f"   Created: {_timestamp(command.created_at)}")
            self._print("   Status: ", end="")
            self._cprint(self.format_status(command.status), "green" if command.status else "red")
            if command.tags:
                self._print("   Tags: ", end="")
                self._cprint(f"[{', '.join(command.tags)}]", "yellow")
            if exists:
                self._cprint("   ⚠️  Command already exists", "yellow")
            if position < len(commands):
                self._print()

        if existing:
            self._print(f"\n⚠️ {existing} command(s) already exist")
            if self.skip_existing:
                self._cprint("These will be skipped due to --skip-existing flag", "cyan")
            else:
                self._cprint("These will be overwritten", "red")

        self.logger.info("Import preview completed total=%d existing=%d", len(commands), existing)
        return {"total": len(commands), "existing": existing}

    def command_exists(self, command_id: str) -> bool:
        try:
            self.repository.get(command_id)
        except Exception:
            return False
        return True

    def format_status(self, status: bool) -> str:
        """Return the label, with its mark, shown for a command's status."""
        label = _STATUS_LABELS[bool(status)]
        return label