"""Waiting for strings to show up in a growing log.

A log source is pulled repeatedly; every fetch returns the full current text.
Needles seen in any fetch stay matched, so log rotation or ``--tail``
truncation between fetches cannot undo progress.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Protocol

from .exceptions import ConfigurationError
from .poller import (
    CancellationToken,
    Check,
    Condition,
    ConditionPoller,
    PollPolicy,
    PollResult,
)

if TYPE_CHECKING:
    from .k8s_client import K8sClient

TERMINATED_PHASES = ("Succeeded", "Failed")


@dataclass(frozen=True)
class LogSnapshot:
    """Full log text at the time of a fetch."""

    text: str
    terminated: bool = False  # the producing process/pod has exited


class LogSource(Protocol):
    description: str

    def fetch(self) -> LogSnapshot: ...


class PodLogSource:
    """Live log of a pod container, read through ``kubectl logs``."""

    def __init__(
        self,
        k8s: "K8sClient",
        pod: str,
        namespace: str,
        container: str | None = None,
    ):
        self.k8s = k8s
        self.pod = pod
        self.namespace = namespace
        self.container = container
        self.description = f"log of pod {namespace}/{pod}"

    def fetch(self) -> LogSnapshot:
        state = self.k8s.query_resource_state("pod", self.pod, self.namespace)
        if not state.found:
            # Not created yet or being recreated; only a vanished namespace is final
            return LogSnapshot(text="", terminated=state.namespace_missing)
        phase = ((state.obj or {}).get("status") or {}).get("phase")
        text = self.k8s.get_pod_logs(
            self.pod, namespace=self.namespace, container=self.container, since=None
        )
        return LogSnapshot(text=text, terminated=phase in TERMINATED_PHASES)


class FileLogSource:
    """A log file on the local filesystem; a missing file reads as empty."""

    def __init__(self, path: str | Path, encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        self.description = f"log file {self.path}"

    def fetch(self) -> LogSnapshot:
        try:
            return LogSnapshot(self.path.read_text(encoding=self.encoding, errors="replace"))
        except FileNotFoundError:
            return LogSnapshot("")


class CallableLogSource:
    """Adapts a plain ``fetch_text()`` callable."""

    def __init__(self, fetch_text: Callable[[], str], description: str = "log"):
        self.fetch_text = fetch_text
        self.description = description

    def fetch(self) -> LogSnapshot:
        return LogSnapshot(self.fetch_text())


@dataclass(frozen=True)
class LogProgress:
    """Which needles have been seen so far."""

    matched: frozenset[str]
    missing: frozenset[str]


class LogAssertion:
    """Polls a log source until every needle has been observed."""

    def __init__(self, poller: ConditionPoller, logger: logging.Logger | None = None):
        self.poller = poller
        self.logger = logger or logging.getLogger(__name__)

    def condition(self, source: LogSource, needles: Iterable[str]) -> Condition:
        """Build a condition whose matched-needle set only ever grows.

        The returned condition is stateful across its own attempts, so build
        a fresh one per wait.
        """
        wanted = frozenset(needles)
        if not wanted:
            raise ConfigurationError("await_log_contains needs at least one needle")
        matched: set[str] = set()

        def query() -> tuple[LogSnapshot, LogProgress]:
            snapshot = source.fetch()
            matched.update(n for n in wanted - matched if n in snapshot.text)
            return snapshot, LogProgress(frozenset(matched), wanted - matched)

        def evaluate(observed: tuple[LogSnapshot, LogProgress]) -> Check:
            snapshot, progress = observed
            if not progress.missing:
                return Check.satisfied()
            if snapshot.terminated:
                return Check.failed(
                    f"{source.description} ended without {sorted(progress.missing)}"
                )
            return Check.not_yet(f"missing {sorted(progress.missing)}")

        return Condition(
            description=f"{source.description} contains {sorted(wanted)}",
            query=query,
            evaluate=evaluate,
        )

    def await_log_contains(
        self,
        source: LogSource,
        needles: Iterable[str],
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        """Wait until every needle has appeared in ``source``.

        Returns:
            PollResult whose ``last_observed`` is the final ``LogProgress``
        """
        result = self.poller.poll(self.condition(source, needles), policy, cancel)
        if result.last_observed is not None:
            _, progress = result.last_observed
            result = replace(result, last_observed=progress)
        return result
