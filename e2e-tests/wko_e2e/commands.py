"""External command execution for provisioning collaborators.

Commands are always passed as argument lists and run without a shell.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable, Mapping

from .exceptions import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    args: tuple[str, ...]
    stdout: str
    stderr: str
    exit_code: int | None  # None when the command timed out

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


Runner = Callable[..., CommandResult]


def run_command(
    args: list[str],
    input_data: str | None = None,
    timeout: int = 60,
    check: bool = True,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run an external command.

    Args:
        args: Program and arguments
        input_data: Optional stdin data
        timeout: Command timeout in seconds
        check: Whether to raise on non-zero exit
        env: Optional environment (replaces the inherited one)

    Returns:
        CommandResult with stdout/stderr and exit code

    Raises:
        CommandError: On timeout, or on non-zero exit when ``check`` is set
    """
    if isinstance(args, str):
        raise TypeError("run_command expects an argument list, not a string")
    args = [str(a) for a in args]
    logger.debug("Running %s", args)

    try:
        completed = subprocess.run(
            args,
            input=input_data,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=dict(env) if env is not None else None,
        )
    except subprocess.TimeoutExpired as e:
        result = CommandResult(
            args=tuple(args),
            stdout=_text(e.stdout),
            stderr=_text(e.stderr),
            exit_code=None,
        )
        raise CommandError(f"{args[0]} timed out after {timeout}s", result) from e
    except OSError as e:
        raise CommandError(f"cannot run {args[0]}: {e}") from e

    result = CommandResult(
        args=tuple(args),
        stdout=completed.stdout,
        stderr=completed.stderr,
        exit_code=completed.returncode,
    )
    if check and not result.ok:
        raise CommandError(
            f"{args[0]} exited with {result.exit_code}: "
            f"{result.stderr.strip() or result.stdout.strip() or 'no output'}",
            result,
        )
    return result


def _text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data
