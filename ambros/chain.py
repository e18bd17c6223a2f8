"""The chain command: create, store and run sequences of stored commands."""

from __future__ import annotations

import argparse
import concurrent.futures
import enum
import json
import re
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, TextIO

from ambros.analytics import _format_ns, _nanoseconds
from ambros.base import (
    TIMESTAMP_FORMAT,
    ZERO_TIME,
    AmbrosError,
    BaseCommand,
    Command,
    CommandChain,
    ErrorCode,
)

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``30m``, ``1h30m`` or ``2.5s``."""
    value = text.strip()
    sign = 1
    if value[:1] in "+-" and value:
        sign = -1 if value[0] == "-" else 1
        value = value[1:]
    if value == "0":
        return timedelta(0)
    if not value:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNIT_NS[match.group(2)]
        position = match.end()
    if position != len(value):
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    return timedelta(microseconds=sign * total / 1000)


def _duration_text(delta: timedelta) -> str:
    return _format_ns(_nanoseconds(delta))


class ExecutionStatus(str, enum.Enum):
    """States of a single command run and of a whole chain run."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    PARTIAL = "partial"


class _CommandFailed(Exception):
    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


@dataclass
class CommandExecutionResult:
    """Outcome of one command within a chain run."""

    command_id: str
    command: str = ""
    status: ExecutionStatus = ExecutionStatus.RUNNING
    output: str = ""
    error: str = ""
    duration: timedelta = timedelta(0)
    retry_count: int = 0


@dataclass
class ChainExecutionResult:
    """Outcome of a whole chain run."""

    chain_name: str
    start_time: datetime = ZERO_TIME
    end_time: datetime = ZERO_TIME
    duration: timedelta = timedelta(0)
    total_commands: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[CommandExecutionResult] = field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.RUNNING

    def record(self, result: CommandExecutionResult) -> None:
        self.results.append(result)
        if result.status is ExecutionStatus.SUCCESS:
            self.successful += 1
        elif result.status is ExecutionStatus.FAILED:
            self.failed += 1
        elif result.status is ExecutionStatus.SKIPPED:
            self.skipped += 1

    def to_dict(self) -> dict[str, Any]:
        """Serialisable form; durations are given in nanoseconds."""
        return {
            "chain_name": self.chain_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": _nanoseconds(self.duration),
            "total_commands": self.total_commands,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [
                {
                    "command_id": r.command_id,
                    "command": r.command,
                    "status": r.status.value,
                    "output": r.output,
                    "error": r.error,
                    "duration": _nanoseconds(r.duration),
                    "retry_count": r.retry_count,
                }
                for r in self.results
            ],
            "status": self.status.value,
        }


class ChainCommand(BaseCommand):
    """Create, inspect and execute chains of stored commands."""

    use = "chain"
    short = "🔗 Execute and manage command chains (Phase 3)"
    long = """🔗 Advanced Command Chain Management System

Subcommands:
  exec <name>           Execute a stored chain
  create <name> <ids>   Create a new chain with command IDs
  list                  List all stored chains
  delete <name>         Delete a chain
  show <name>           Show detailed chain information
  export <name>         Export chain to JSON
  import <file>         Import chain from JSON
  template              Manage chain templates
  analytics             View chain execution analytics"""

    def __init__(
        self,
        logger=None,
        repository=None,
        *,
        out: Optional[TextIO] = None,
        stdin: Optional[TextIO] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.name = ""
        self.description = ""
        self.conditional = False
        self.store = False
        self.parallel = False
        self.timeout = timedelta(minutes=30)
        self.retry = 0
        self.dry_run = False
        self.interactive = False
        self.stdin = stdin
        self.sleep = sleep
        self.chains: dict[str, CommandChain] = {}
        self._chains_lock = threading.RLock()
        super().__init__(logger, repository, out=out)

    def _configure(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("-n", "--name", dest="name", default=argparse.SUPPRESS,
                            help="Name of the chain")
        parser.add_argument("-d", "--desc", dest="description", default=argparse.SUPPRESS,
                            help="Description of the chain")
        parser.add_argument("-c", "--conditional", dest="conditional", action="store_true",
                            default=argparse.SUPPRESS, help="Continue on error")
        parser.add_argument("-s", "--store", dest="store", action="store_true",
                            default=argparse.SUPPRESS, help="Store execution results")
        parser.add_argument("-p", "--parallel", dest="parallel", action="store_true",
                            default=argparse.SUPPRESS, help="Execute commands in parallel")
        parser.add_argument("-t", "--timeout", dest="timeout", type=_parse_duration,
                            default=argparse.SUPPRESS, help="Chain execution timeout")
        parser.add_argument("-r", "--retry", dest="retry", type=int, default=argparse.SUPPRESS,
                            help="Number of retry attempts for failed commands")
        parser.add_argument("--dry-run", dest="dry_run", action="store_true",
                            default=argparse.SUPPRESS,
                            help="Show what would be executed without running")
        parser.add_argument("-i", "--interactive", dest="interactive", action="store_true",
                            default=argparse.SUPPRESS, help="Interactive execution with prompts")

    def run(self, args: list[str]) -> Any:
        if not args:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, "requires at least 1 arg(s), only received 0")
        self.logger.debug(
            "Chain command invoked subcommand=%s args=%s parallel=%s conditional=%s",
            args[0], args, self.parallel, self.conditional,
        )
        sub = args[0]
        if sub == "exec":
            self._require(args, 2, "chain name required")
            return self.execute_chain(args[1])
        if sub == "create":
            self._require(args, 3, "chain name and command IDs required")
            return self.create_chain(args[1], args[2].split(","))
        if sub == "list":
            return self.list_chains()
        if sub == "delete":
            self._require(args, 2, "chain name required")
            return self.delete_chain(args[1])
        if sub == "show":
            self._require(args, 2, "chain name required")
            return self.show_chain(args[1])
        if sub == "export":
            self._require(args, 2, "chain name required")
            return self.export_chain(args[1])
        if sub == "import":
            self._require(args, 2, "file path required")
            return self.import_chain(args[1])
        if sub == "analytics":
            return self.show_analytics()
        if sub == "template":
            return self._manage_templates(args[1:])
        raise AmbrosError(ErrorCode.INVALID_COMMAND, f"unknown subcommand: {sub}")

    @staticmethod
    def _require(args: list[str], count: int, message: str) -> None:
        if len(args) < count:
            raise AmbrosError(ErrorCode.INVALID_COMMAND, message)

    def execute_chain(self, name: str) -> Optional[ChainExecutionResult]:
        """Run the named chain (or a demo chain); return the result, or None on dry run."""
        self.logger.info(
            "Executing command chain %s conditional=%s parallel=%s timeout=%s retry=%d",
            name, self.conditional, self.parallel, self.timeout, self.retry,
        )
        deadline = time.monotonic() + self.timeout.total_seconds()

        chain = self.get_chain(name)
        if chain is None:
            chain = self.create_demo_chain(name)

        if self.dry_run:
            self.perform_dry_run(chain)
            return None

        result = ChainExecutionResult(
            chain_name=name,
            start_time=datetime.now(),
            total_commands=len(chain.commands),
        )

        self._cprint(f"🔗 Starting chain execution: {name}", "green")
        self._cprint(
            f"📊 Total commands: {len(chain.commands)} | Parallel: "
            f"{str(self.parallel).lower()} | Conditional: {str(self.conditional).lower()}",
            "cyan",
        )

        if self.parallel and len(chain.commands) > 1:
            self._execute_parallel(deadline, chain, result)
        else:
            self._execute_sequential(deadline, chain, result)

        result.end_time = datetime.now()
        result.duration = result.end_time - result.start_time

        if result.failed == 0:
            result.status = ExecutionStatus.COMPLETED
            self._cprint("✅ Chain execution completed successfully", "green")
        elif result.successful > 0:
            result.status = ExecutionStatus.PARTIAL
            self._cprint("⚠️  Chain execution completed with failures", "yellow")
        else:
            result.status = ExecutionStatus.FAILED
            self._cprint("❌ Chain execution failed", "red")

        self._display_summary(result)
        if self.store:
            self._store_execution_result(result)
        return result

    def _execute_sequential(self, deadline: float, chain: CommandChain,
                            result: ChainExecutionResult) -> None:
        total = len(chain.commands)
        for index, command_id in enumerate(chain.commands):
            if time.monotonic() >= deadline:
                self._cprint("⏰ Chain execution timeout reached", "red")
                return

            outcome = self.execute_command(command_id, index + 1, total)
            result.record(outcome)
            if outcome.status is ExecutionStatus.FAILED and not self.conditional:
                self._cprint("🛑 Stopping chain execution due to failure", "yellow")
                return

            if self.interactive and index < total - 1 and not self._prompt_continue():
                self._cprint("🛑 Chain execution stopped by user", "yellow")
                break

    def _execute_parallel(self, deadline: float, chain: CommandChain,
                          result: ChainExecutionResult) -> None:
        total = len(chain.commands)
        self._cprint(f"🚀 Executing {total} commands in parallel", "cyan")
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=total)
        futures = [
            executor.submit(self.execute_command, command_id, index + 1, total)
            for index, command_id in enumerate(chain.commands)
        ]
        remaining = max(0.0, deadline - time.monotonic())
        try:
            for future in concurrent.futures.as_completed(futures, timeout=remaining):
                result.record(future.result())
        except concurrent.futures.TimeoutError:
            self._cprint("⏰ Parallel execution timeout reached", "red")
        executor.shutdown(wait=False, cancel_futures=True)

    def execute_command(self, command_id: str, current: int, total: int) -> CommandExecutionResult:
        """Look up and run one stored command, retrying on failure."""
        started = time.monotonic()
        result = CommandExecutionResult(command_id=command_id)
        self._cprint(f"📋 [{current}/{total}] Executing: {command_id}", "cyan")

        try:
            stored = self.repository.get(command_id.strip())
        except Exception as err:
            result.status = ExecutionStatus.FAILED
            result.error = f"Command not found: {err}"
            self._cprint(f"❌ Command not found: {command_id}", "red")
            return result

        result.command = stored.command
        last_error: Optional[_CommandFailed] = None
        for attempt in range(self.retry + 1):
            if attempt > 0:
                self._cprint(
                    f"🔄 Retry attempt {attempt}/{self.retry} for command: {command_id}", "yellow"
                )
                self.sleep(attempt)
            try:
                output = self._execute_system_command(stored.command)
            except _CommandFailed as err:
                last_error = err
                result.retry_count = attempt
                continue
            result.status = ExecutionStatus.SUCCESS
            result.output = output
            result.retry_count = attempt
            self._cprint(f"✅ [{current}/{total}] Completed: {command_id}", "green")
            break

        if last_error is not None:
            result.status = ExecutionStatus.FAILED
            result.error = str(last_error)
            self._cprint(f"❌ [{current}/{total}] Failed: {command_id} - {last_error}", "red")

        result.duration = timedelta(seconds=time.monotonic() - started)
        return result

    @staticmethod
    def _execute_system_command(command: str) -> str:
        parts = command.split()
        if not parts:
            raise _CommandFailed("empty command")
        try:
            completed = subprocess.run(
                parts, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, stdin=subprocess.DEVNULL
            )
        except OSError as err:
            raise _CommandFailed(str(err)) from err
        output = completed.stdout.decode("utf-8", errors="replace")
        if completed.returncode != 0:
            code = completed.returncode
            message = f"signal: {-code}" if code < 0 else f"exit status {code}"
            raise _CommandFailed(message, output)
        return output

    def perform_dry_run(self, chain: CommandChain) -> list[Optional[Command]]:
        """Describe the chain without running it; return the resolved commands."""
        self._cprint("🔍 DRY RUN MODE - No commands will be executed", "yellow")
        self._cprint(f"Chain: {chain.name}", "cyan")
        self._cprint(f"Description: {chain.description}", "cyan")
        self._cprint("Commands to execute:", "cyan")

        resolved: list[Optional[Command]] = []
        for position, command_id in enumerate(chain.commands, start=1):
            try:
                stored = self.repository.get(command_id.strip())
            except Exception:
                self._cprint(f"  {position}. ❌ {command_id} (Command not found)", "red")
                resolved.append(None)
                continue
            resolved.append(stored)
            self._cprint(f"  {position}. {stored.command}", "white")
            if stored.name and stored.name != stored.command:
                self._cprint(f"     → {stored.name}", "dark_grey")

        self._cprint(f"Execution mode: {self.execution_mode()}", "yellow")
        self._cprint(f"Continue on failure: {str(self.conditional).lower()}", "yellow")
        self._cprint(f"Retry attempts: {self.retry}", "yellow")
        self._cprint(f"Timeout: {_duration_text(self.timeout)}", "yellow")
        return resolved

    def execution_mode(self) -> str:
        return "Parallel" if self.parallel else "Sequential"

    def _prompt_continue(self) -> bool:
        self._cprint("Continue with next command? [Y/n]: ", "yellow")
        stream = self.stdin if self.stdin is not None else sys.stdin
        line = stream.readline()
        if not line:
            return False
        response = line.strip().lower()
        return response in ("", "y", "yes")

    def _display_summary(self, result: ChainExecutionResult) -> None:
        self._cprint("\n📊 Chain Execution Summary", "cyan")
        self._cprint("═══════════════════════════", "cyan")
        self._cprint(f"Chain: {result.chain_name}", "white")
        self._cprint(f"Duration: {_duration_text(result.duration)}", "white")
        self._cprint(f"Total Commands: {result.total_commands}", "white")
        self._cprint(f"Successful: {result.successful}", "green")
        self._cprint(f"Failed: {result.failed}", "red")
        if result.skipped:
            self._cprint(f"Skipped: {result.skipped}", "yellow")

        rate = (result.successful / result.total_commands * 100
                if result.total_commands else float("nan"))
        self._cprint(f"Success Rate: {rate:.1f}%", "white")

        if result.results:
            self._cprint("\n📋 Command Details:", "cyan")
            marks = {ExecutionStatus.FAILED: "❌", ExecutionStatus.SKIPPED: "⏭️"}
            for position, item in enumerate(result.results, start=1):
                mark = marks.get(item.status, "✅")
                self._cprint(
                    f"  {position}. {mark} {item.command_id} ({_duration_text(item.duration)})",
                    "white",
                )
                if item.retry_count > 0:
                    self._cprint(f"     Retries: {item.retry_count}", "yellow")
                if item.error:
                    self._cprint(f"     Error: {item.error}", "red")

    def _store_execution_result(self, result: ChainExecutionResult) -> Optional[Command]:
        data = json.dumps(result.to_dict(), ensure_ascii=False)
        record = Command(
            id=self.generate_chain_id(),
            created_at=result.start_time,
            terminated_at=result.end_time,
            name=f"chain-execution:{result.chain_name}",
            command="chain-result",
            category="chain-execution",
            status=result.status is ExecutionStatus.COMPLETED,
            tags=["chain", "execution", "result"],
            variables={
                "chain_name": result.chain_name,
                "status": result.status.value,
                "duration": _duration_text(result.duration),
                "data": data,
            },
        )
        try:
            self.repository.put(record)
        except Exception as err:
            self.logger.error("Failed to store execution result: %s", err)
            return None
        self._cprint(f"💾 Execution result stored: {record.id}", "green")
        return record

    def get_chain(self, name: str) -> Optional[CommandChain]:
        with self._chains_lock:
            return self.chains.get(name)

    def create_demo_chain(self, name: str) -> CommandChain:
        """Build a chain of the three latest stored commands, or a fallback of echoes."""
        try:
            commands = self.repository.get_limit_commands(3)
        except Exception:
            commands = []

        if not commands:
            return CommandChain(
                id=self.generate_chain_id(),
                name=name,
                description="Demo chain for testing",
                commands=["echo hello", "echo world", "echo done"],
                conditional=self.conditional,
                created_at=datetime.now(),
            )

        chain = CommandChain(
            id=self.generate_chain_id(),
            name=name,
            description="Auto-generated demo chain",
            commands=[command.id for command in commands],
            conditional=self.conditional,
            created_at=datetime.now(),
        )
        with self._chains_lock:
            self.chains[name] = chain
        return chain

    def show_chain(self, name: str) -> Optional[CommandChain]:
        self._cprint(f"🔍 Chain Details: {name}", "cyan")
        chain = self.get_chain(name)
        if chain is None:
            self._cprint(f"Chain not found: {name}", "red")
            return None

        self._cprint(f"ID: {chain.id}", "white")
        self._cprint(f"Name: {chain.name}", "white")
        self._cprint(f"Description: {chain.description}", "white")
        self._cprint(f"Created: {chain.created_at.strftime(TIMESTAMP_FORMAT)}", "white")
        self._cprint(f"Conditional: {str(chain.conditional).lower()}", "white")
        self._cprint(f"Commands ({len(chain.commands)}):", "white")
        for position, command_id in enumerate(chain.commands, start=1):
            try:
                stored = self.repository.get(command_id)
            except Exception:
                self._cprint(f"  {position}. ❌ {command_id} (not found)", "red")
                continue
            self._cprint(f"  {position}. {stored.command}", "white")
        return chain

    def export_chain(self, name: str) -> str:
        """Print the chain as indented JSON and return that text."""
        chain = self.get_chain(name)
        if chain is None:
            raise AmbrosError(ErrorCode.COMMAND_NOT_FOUND, f"chain not found: {name}")
        text = json.dumps(chain.to_dict(), indent=2, ensure_ascii=False)
        self._print(text, end="")
        return text

    def import_chain(self, file_path: str) -> CommandChain:
        with open(file_path, encoding="utf-8") as handle:
            data = json.load(handle)
        chain = CommandChain.from_dict(data)
        with self._chains_lock:
            self.chains[chain.name] = chain
        self._cprint(f"✅ Chain imported: {chain.name}", "green")
        return chain

    def show_analytics(self) -> dict[str, Any]:
        self._cprint("📊 Chain Execution Analytics", "cyan")
        self._cprint("════════════════════════════", "cyan")
        with self._chains_lock:
            chain_count = len(self.chains)
        self._cprint(f"Total Chains: {chain_count}", "white")

        records = self.repository.search_by_tag("chain")
        executions = [r for r in records if r.category == "chain-execution"]
        successes = sum(1 for r in executions if r.status)

        self._cprint(f"Total Executions: {len(executions)}", "white")
        rate = None
        if executions:
            rate = successes / len(executions) * 100
            self._cprint(f"Success Rate: {rate:.1f}%", "white")
        return {
            "chains": chain_count,
            "executions": len(executions),
            "successes": successes,
            "success_rate": rate,
        }

    def _manage_templates(self, args: list[str]) -> None:
        self._cprint("🎯 Chain templates feature coming soon!", "yellow")
        self._cprint("This will allow saving and sharing chain configurations", "white")

    def create_chain(self, name: str, command_ids: list[str]) -> CommandChain:
        """Check every id exists and build the chain."""
        self.logger.info("Creating command chain %s ids=%s", name, command_ids)
        for command_id in command_ids:
            try:
                self.repository.get(command_id.strip())
            except Exception as err:
                self.logger.error("Command not found for chain %s: %s", command_id, err)
                raise AmbrosError(
                    ErrorCode.COMMAND_NOT_FOUND, f"command not found: {command_id}", err
                ) from err

        chain = CommandChain(
            id=self.generate_chain_id(),
            name=name,
            description=self.description,
            commands=list(command_ids),
            conditional=self.conditional,
            created_at=datetime.now(),
        )
        self._print(f"Chain '{name}' created with {len(command_ids)} commands")
        if self.description:
            self._print(f"Description: {self.description}")
        self.logger.info("Chain created id=%s name=%s", chain.id, name)
        return chain

    def list_chains(self) -> list[CommandChain]:
        with self._chains_lock:
            chains = [self.chains[key] for key in sorted(self.chains)]
        if not chains:
            self._print("No command chains found")
            return []
        for position, chain in enumerate(chains, start=1):
            self._print(f"{position}. {chain.name} ({len(chain.commands)} commands)")
        return chains

    def delete_chain(self, name: str) -> bool:
        """Remove the chain from memory; return whether it existed."""
        self.logger.info("Deleting command chain %s", name)
        with self._chains_lock:
            removed = self.chains.pop(name, None) is not None
        if removed:
            self._print(f"Chain '{name}' deleted")
        else:
            self._print(f"Chain '{name}' not found")
        return removed

    def generate_chain_id(self) -> str:
        return f"CHAIN-{time.time_ns()}"