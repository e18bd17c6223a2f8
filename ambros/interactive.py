"""The interactive command: menu-driven search, selection and cleanup."""

from __future__ import annotations

import sys
from typing import Any, Optional, TextIO

from termcolor import colored

from ambros.base import AmbrosError, BaseCommand, Command, ErrorCode

_MAIN_OPTIONS = (
    "🔍 Interactive Search",
    "📋 Select & Execute Commands",
    "🧹 Cleanup Old Commands",
    "⚙️  Manage Templates & Environments",
    "❌ Exit",
)


class InteractiveCommand(BaseCommand):
    """Menus for searching, selecting, cleaning up and managing commands."""

    use = "interactive"
    short = "Interactive command management"
    long = """Interactive command management with menus and selection.
Provides user-friendly interfaces for command operations.

Modes:
  search    Interactive search with filters
  select    Select and execute from command history
  cleanup   Interactive cleanup of old commands
  manage    Manage templates and environments interactively"""

    def __init__(self, logger=None, repository=None, *, out=None, stdin: Optional[TextIO] = None):
        self.mode = ""
        self.stdin = stdin
        super().__init__(logger, repository, out=out)

    def run(self, args: list[str]) -> Any:
        if len(args) > 1:
            raise AmbrosError(
                ErrorCode.INVALID_COMMAND,
                f"accepts at most 1 arg(s), received {len(args)}",
            )
        if not args:
            return self.show_main_menu()

        self.mode = args[0]
        modes = {
            "search": self.interactive_search,
            "select": self.interactive_select,
            "cleanup": self.interactive_cleanup,
            "manage": self.interactive_manage,
        }
        handler = modes.get(self.mode)
        if handler is None:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, f"unknown mode: {self.mode}")
        return handler()

    def _read_user_input(self) -> str:
        """Read one line; a missing line terminator means input has ended."""
        stream = self.stdin if self.stdin is not None else sys.stdin
        line = stream.readline()
        if not line.endswith("\n"):
            raise EOFError("unexpected end of input")
        return line.strip()

    def _read_optional(self) -> str:
        try:
            return self._read_user_input()
        except EOFError:
            return ""

    def show_main_menu(self) -> Any:
        """Show the main menu until a valid choice is made; return that choice's result."""
        while True:
            self._cprint("🎯 Ambros Interactive Mode", "cyan")
            self._cprint("Select an option:", "white")
            self._print()
            for position, option in enumerate(_MAIN_OPTIONS, start=1):
                self._print(f"{position}. {option}")

            self._print("\nEnter your choice (1-5): ", end="")
            choice = self._read_user_input()

            if choice == "1":
                return self.interactive_search()
            if choice == "2":
                return self.interactive_select()
            if choice == "3":
                return self.interactive_cleanup()
            if choice == "4":
                return self.interactive_manage()
            if choice == "5":
                self._cprint("👋 Goodbye!", "green")
                return None
            self._cprint("❌ Invalid choice. Please try again.", "red")

    def interactive_search(self) -> list[str]:
        """Ask for search criteria and return the filters built from them."""
        self._cprint("🔍 Interactive Search", "cyan")
        self._cprint("Build your search criteria:", "white")
        self._print()

        filters: list[str] = []

        self._print("🔤 Search text (press Enter to skip): ", end="")
        text = self._read_optional()
        if text:
            filters.append(f"text:{text}")

        self._print("✅ Filter by status (success/failed/all) [all]: ", end="")
        status = self._read_optional() or "all"
        if status != "all":
            filters.append(f"status:{status}")

        self._print("🏷️  Filter by tag (press Enter to skip): ", end="")
        tag = self._read_optional()
        if tag:
            filters.append(f"tag:{tag}")

        self._print("📅 From date (YYYY-MM-DD, press Enter to skip): ", end="")
        from_date = self._read_optional()
        if from_date:
            filters.append(f"from:{from_date}")

        self._print("📅 To date (YYYY-MM-DD, press Enter to skip): ", end="")
        to_date = self._read_optional()
        if to_date:
            filters.append(f"to:{to_date}")

        self._cprint(f"\n🔍 Executing search with filters: {', '.join(filters)}", "yellow")
        self._cprint("✅ Search completed! (Integration with search command coming soon)", "green")
        return filters

    def interactive_select(self) -> Optional[Command]:
        """List recent commands and return the one picked, or None."""
        self._cprint("📋 Select & Execute Commands", "cyan")

        try:
            commands = self.repository.get_limit_commands(20)
        except Exception as err:
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to get commands", err) from err

        if not commands:
            self._cprint("📭 No commands found", "yellow")
            return None

        self._cprint("Recent commands:", "white")
        self._print()
        for position, command in enumerate(commands, start=1):
            mark = "✅" if command.status else "❌"
            self._print(
                f"{position}. {mark} {colored(command.command, 'white')} "
                f"{colored('(' + command.created_at.strftime('%H:%M:%S') + ')', 'cyan')}"
            )

        self._print(
            f"\nEnter command number to execute (1-{len(commands)}), or 0 to cancel: ", end=""
        )
        choice = self._read_user_input()

        if choice == "0":
            self._cprint("📫 Operation cancelled", "yellow")
            return None

        try:
            index = int(choice)
        except ValueError:
            index = 0
        if not 1 <= index <= len(commands):
            self._cprint("❌ Invalid selection", "red")
            return None

        selected = commands[index - 1]
        self._cprint(f"🚀 Would execute: {selected.command}", "green")
        self._cprint("⚠️  Command execution integration coming soon!", "yellow")
        return selected

    def interactive_cleanup(self) -> Optional[dict[str, Any]]:
        """Analyse stored commands, ask for a cleanup option; return the analysis."""
        self._cprint("🧹 Interactive Cleanup", "cyan")

        try:
            commands = self.repository.get_all_commands()
        except Exception as err:
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to get commands", err) from err

        if not commands:
            self._cprint("📭 No commands to clean up", "yellow")
            return None

        failed = sum(1 for command in commands if not command.status)
        old = 0
        duplicates = 0

        self._cprint("📊 Cleanup Analysis:", "white")
        self._print(f"Total commands: {colored(str(len(commands)), 'yellow')}")
        self._print(f"Failed commands: {colored(str(failed), 'red')}")
        self._print(f"Commands older than 30 days: {colored(str(old), 'cyan')}")
        self._print(f"Potential duplicates: {colored(str(duplicates), 'magenta')}")

        self._print("\nCleanup options:")
        self._print("1. 🗑️  Remove failed commands")
        self._print("2. 📅 Remove commands older than 30 days")
        self._print("3. 🔄 Remove duplicate commands")
        self._print("4. 🧹 Full cleanup (all above)")
        self._print("5. ❌ Cancel")

        self._print("\nSelect cleanup option (1-5): ", end="")
        choice = self._read_user_input()

        if choice in ("1", "2", "3", "4"):
            self._cprint("⚠️  Cleanup functionality implementation coming soon!", "yellow")
            self._cprint(f"✅ Selected: Option {choice}", "green")
        elif choice == "5":
            self._cprint("📫 Cleanup cancelled", "yellow")
        else:
            self._cprint("❌ Invalid selection", "red")

        return {
            "total": len(commands),
            "failed": failed,
            "old": old,
            "duplicates": duplicates,
            "choice": choice,
        }

    def interactive_manage(self) -> Any:
        """Show the management menu until a valid choice is made."""
        while True:
            self._cprint("⚙️  Interactive Management", "cyan")
            self._print("Management options:")
            self._print("1. 🎯 Manage Templates")
            self._print("2. 🌍 Manage Environments")
            self._print("3. 📊 View Analytics")
            self._print("4. ⚙️  System Settings")
            self._print("5. ❌ Back to main menu")

            self._print("\nSelect option (1-5): ", end="")
            choice = self._read_user_input()

            if choice == "1":
                return self.manage_templates()
            if choice == "2":
                return self.manage_environments()
            if choice == "3":
                return self.view_analytics()
            if choice == "4":
                return self.system_settings()
            if choice == "5":
                return self.show_main_menu()
            self._cprint("❌ Invalid selection", "red")

    def manage_templates(self) -> list[Command]:
        """List stored templates and return them."""
        self._cprint("🎯 Template Management", "cyan")
        templates = self.repository.search_by_tag("template")

        if not templates:
            self._cprint("📭 No templates found", "yellow")
            self._cprint("Create your first template:", "cyan")
            self._cprint('  ambros template save mytemplate "echo hello"', "white")
            return []

        self._cprint("Available templates:", "white")
        for position, template in enumerate(templates, start=1):
            self._print(f"{position}. {colored(template.name, 'green')}")

        self._cprint("\n⚠️  Template management integration coming soon!", "yellow")
        return list(templates)

    def manage_environments(self) -> dict[str, int]:
        """List environments; return each name with its variable count."""
        self._cprint("🌍 Environment Management", "cyan")
        environments = self.repository.search_by_tag("environment")

        if not environments:
            self._cprint("📭 No environments found", "yellow")
            self._cprint("Create your first environment:", "cyan")
            self._cprint("  ambros env create development", "white")
            return {}

        self._cprint("Available environments:", "white")
        counts: dict[str, int] = {}
        for record in environments:
            if record.category == "environment":
                name = self.extract_env_name(record.name)
                counts[name] = counts.get(name, 0) + 1

        variables = {name: count - 1 for name, count in counts.items()}
        for position, (name, count) in enumerate(variables.items(), start=1):
            self._print(f"{position}. {colored(name, 'green')} ({count} variables)")

        self._cprint("\n⚠️  Environment management integration coming soon!", "yellow")
        return variables

    def view_analytics(self) -> None:
        self._cprint("📊 Analytics Dashboard", "cyan")
        self._cprint("⚠️  Interactive analytics coming soon!", "yellow")
        self._cprint("For now, use: ambros analytics", "cyan")

    def system_settings(self) -> None:
        self._cprint("⚙️  System Settings", "cyan")
        self._cprint("⚠️  Interactive settings coming soon!", "yellow")
        self._cprint("Current configuration file: ~/.ambros.yaml", "cyan")

    def extract_env_name(self, command_name: str) -> str:
        """Return the name in ``env:<name>:...``, or the whole name otherwise."""
        parts = command_name.split(":")
        if len(parts) >= 2 and parts[0] == "env":
            return parts[1]
        return command_name