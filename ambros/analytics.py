"""The analytics command: usage statistics over stored commands."""

from __future__ import annotations

import argparse
from collections import Counter
from datetime import timedelta
from typing import Any, Optional

from ambros.base import AmbrosError, BaseCommand, Command, ErrorCode

_TOP = 10
_MEANINGFUL = timedelta(milliseconds=10)
_NS_PER_MS = 10**6
_NS_PER_S = 10**9


def _nanoseconds(delta: timedelta) -> int:
    return (delta.days * 86400 + delta.seconds) * _NS_PER_S + delta.microseconds * 1000


def _round_to_ms(ns: int) -> int:
    sign = -1 if ns < 0 else 1
    whole, rest = divmod(abs(ns), _NS_PER_MS)
    if rest * 2 >= _NS_PER_MS:
        whole += 1
    return sign * whole * _NS_PER_MS


def _fraction(value: int, digits: int) -> str:
    whole, part = divmod(value, 10**digits)
    if part == 0:
        return str(whole)
    return f"{whole}." + f"{part:0{digits}d}".rstrip("0")


def _format_ns(ns: int) -> str:
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    n = abs(ns)
    if n < _NS_PER_S:
        if n < 1000:
            return f"{sign}{n}ns"
        if n < _NS_PER_MS:
            return f"{sign}{_fraction(n, 3)}µs"
        return f"{sign}{_fraction(n, 6)}ms"
    hours, rest = divmod(n, 3600 * _NS_PER_S)
    minutes, rest = divmod(rest, 60 * _NS_PER_S)
    seconds = _fraction(rest, 9) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def _format_duration(delta: timedelta) -> str:
    """Render a duration rounded to milliseconds, e.g. ``1.5s`` or ``2m3s``."""
    return _format_ns(_round_to_ms(_nanoseconds(delta)))


class AnalyticsCommand(BaseCommand):
    """Insights into command usage patterns, performance and failures."""

    use = "analytics [action]"
    short = "View analytics and insights about command usage"
    long = """Get insights into your command usage patterns, performance, and statistics.

Actions:
  summary      Show general usage summary (default)
  most-used    Show most frequently used commands
  slowest      Show slowest commands by execution time
  failures     Show commands that fail most often"""

    def __init__(self, logger=None, repository=None, *, out=None):
        self.period = "7d"
        self.format = "text"
        self.detail = False
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-p", "--period", dest="period", default=argparse.SUPPRESS,
            help="Analysis period (24h, 7d, 30d)",
        )
        parser.add_argument(
            "-f", "--format", dest="format", default=argparse.SUPPRESS,
            help="Output format (text/json/yaml)",
        )
        parser.add_argument(
            "-d", "--detail", dest="detail", action="store_true",
            default=argparse.SUPPRESS, help="Show detailed analytics",
        )

    def run(self, args: list[str]) -> Any:
        action = args[0] if args else "summary"
        self.logger.debug("Analytics command invoked action=%s", action)
        actions = {
            "summary": self.show_summary,
            "most-used": self.show_most_used,
            "slowest": self.show_slowest,
            "failures": self.show_failures,
        }
        handler = actions.get(action)
        if handler is None:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, f"unknown action: {action}")
        return handler()

    def _all_commands(self) -> list[Command]:
        try:
            return self.repository.get_all_commands()
        except Exception as err:
            self.logger.error("Failed to retrieve commands: %s", err)
            raise AmbrosError(ErrorCode.REPOSITORY_READ, "failed to retrieve commands", err) from err

    def show_summary(self) -> Optional[dict[str, Any]]:
        """Print the overall summary and return its figures, or None when empty."""
        commands = self._all_commands()
        if not commands:
            self._print("No commands found.")
            return None

        total = len(commands)
        success_count = sum(1 for command in commands if command.status)
        total_ns = sum(_nanoseconds(c.terminated_at - c.created_at) for c in commands)
        template_runs = sum(1 for command in commands if "template" in command.tags)

        success_rate = success_count / total * 100
        average_ns = (abs(total_ns) // total) * (-1 if total_ns < 0 else 1)
        average = timedelta(microseconds=average_ns / 1000)

        self._cprint("📊 Command Analytics Summary", "cyan")
        self._print("Total Commands: ", end="")
        self._cprint(str(total), "yellow")
        self._print("\nSuccess Rate: ", end="")
        if success_rate >= 80:
            rate_colour = "green"
        elif success_rate >= 60:
            rate_colour = "yellow"
        else:
            rate_colour = "red"
        self._cprint(f"{success_rate:.1f}%", rate_colour)
        self._print("\nAverage Duration: ", end="")
        self._cprint(_format_ns(_round_to_ms(average_ns)), "yellow")
        self._print("\nTemplate Runs: ", end="")
        self._cprint(str(template_runs), "cyan")
        self._print()

        return {
            "total_commands": total,
            "success_count": success_count,
            "success_rate": success_rate,
            "average_duration": average,
            "template_runs": template_runs,
        }

    def show_most_used(self) -> list[tuple[str, int]]:
        """Print and return the most frequently run command names with counts."""
        commands = self._all_commands()
        counts = Counter(command.name for command in commands)
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:_TOP]

        self._cprint("🔥 Most Used Commands:", "cyan")
        for position, (name, count) in enumerate(ranked, start=1):
            self._print(f"{position}. ", end="")
            self._cprint(name, "green")
            self._print(" - ", end="")
            self._cprint(f"{count} times", "yellow")
            self._print()
        return ranked

    def show_slowest(self) -> list[tuple[Command, timedelta]]:
        """Print and return the slowest commands with their durations."""
        commands = self._all_commands()
        timed = [
            (command, command.terminated_at - command.created_at)
            for command in commands
            if command.terminated_at - command.created_at > _MEANINGFUL
        ]
        ranked = sorted(timed, key=lambda item: item[1], reverse=True)[:_TOP]

        self._cprint("🐌 Slowest Commands:", "cyan")
        for position, (command, duration) in enumerate(ranked, start=1):
            self._print(f"{position}. ", end="")
            self._cprint(command.name, "green")
            self._print(" - ", end="")
            self._cprint(_format_duration(duration), "yellow")
            self._print()
        return ranked

    def show_failures(self) -> list[tuple[str, int]]:
        """Print and return command names ranked by how often they failed."""
        commands = self._all_commands()
        failures = Counter(command.name for command in commands if not command.status)

        if not failures:
            self._cprint("🎉 No command failures found!", "green")
            return []

        ranked = sorted(failures.items(), key=lambda item: item[1], reverse=True)[:_TOP]

        self._cprint("💥 Commands with Failures:", "cyan")
        for position, (name, count) in enumerate(ranked, start=1):
            self._print(f"{position}. ", end="")
            self._cprint(name, "red")
            self._print(" - ", end="")
            self._cprint(f"{count} failures", "yellow")
            self._print()
        return ranked