"""Exception hierarchy for the e2e harness.

Ordinary non-convergence is never an exception: pollers return a
``PollResult``. Exceptions are reserved for misuse (``ConfigurationError``),
for queries that want to steer the poller (``TransientError``,
``PermanentFailure``), for failed external commands, and for surfacing a
failed wait or cleanup at scenario level.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wko_e2e.commands import CommandResult
    from wko_e2e.resource_tracker import TrackedResource


class HarnessError(Exception):
    """Base class for harness errors."""


class ConfigurationError(HarnessError, ValueError):
    """Invalid configuration, raised before any polling starts."""


class TransientError(HarnessError):
    """A query failure worth retrying (e.g. API temporarily unreachable)."""


class PermanentFailure(HarnessError):
    """A query detected an unrecoverable state; the wait stops immediately."""


class CommandError(HarnessError):
    """An external command failed or timed out."""

    def __init__(self, message: str, result: "CommandResult | None" = None):
        super().__init__(message)
        self.result = result

    @property
    def stderr(self) -> str:
        return self.result.stderr if self.result else ""


class ConditionNotMet(HarnessError, AssertionError):
    """A wait ended in TIMED_OUT or FAILED and the scenario asserts on it."""


class CleanupError(HarnessError):
    """Aggregated failure of a tracker sweep."""

    def __init__(self, failures: "list[tuple[TrackedResource, Exception]]"):
        self.failures = failures
        lines = [f"{len(failures)} resource(s) could not be cleaned up:"]
        for resource, exc in failures:
            lines.append(f"  {resource.describe()}: {exc}")
        super().__init__("\n".join(lines))
