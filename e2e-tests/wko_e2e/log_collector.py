"""Log collection from the operator and domain pods for failure reports.

Collects and correlates logs from:
- WebLogic operator pods
- Server pods of the domain namespaces a scenario created
- Namespace events
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .exceptions import CommandError

if TYPE_CHECKING:
    from .k8s_client import K8sClient


@dataclass
class LogEntry:
    """A parsed log entry."""

    timestamp: datetime | None
    level: str
    message: str
    source: str
    raw: str


@dataclass
class CollectedLogs:
    """Collection of logs from all sources."""

    operator: str
    pods: dict[str, str]  # "<namespace>/<pod>" -> log text
    events: list[str]
    start_time: datetime
    end_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LogCollector:
    """Collect operator and domain logs when a scenario fails."""

    # Operator logs are JSON lines; server logs use the WebLogic format
    OPERATOR_LOG_PATTERN = re.compile(
        r'"timestamp":"(?P<ts>[^"]+)".*?"level":"(?P<level>\w+)".*?"message":"(?P<msg>[^"]*)"'
    )
    SERVER_LOG_PATTERN = re.compile(r"<(?P<ts>[^>]+)>\s*<(?P<level>\w+)>\s*(?P<msg>.+)")

    ERROR_PATTERNS = [
        re.compile(r"\bSEVERE\b"),
        re.compile(r"<Error>"),
        re.compile(r"exception", re.IGNORECASE),
        re.compile(r"failed", re.IGNORECASE),
    ]

    def __init__(
        self,
        k8s: "K8sClient",
        operator_namespace: str | None = None,
        operator_label: str = "app=weblogic-operator",
        logger: logging.Logger | None = None,
    ):
        """Initialize log collector.

        Args:
            k8s: K8sClient instance
            operator_namespace: Namespace where the operator runs (None to skip)
            operator_label: Label selector for operator pods
            logger: Logger for collection problems
        """
        self.k8s = k8s
        self.operator_namespace = operator_namespace
        self.operator_label = operator_label
        self.logger = logger or logging.getLogger(__name__)
        self.start_time: datetime | None = None
        self.namespaces: list[str] = []

    def start_collection(self) -> None:
        """Mark the start time for log collection."""
        self.start_time = datetime.now(timezone.utc)

    def watch_namespace(self, namespace: str) -> None:
        """Include a domain namespace in the collection."""
        if namespace not in self.namespaces:
            self.namespaces.append(namespace)

    def _since_duration(self) -> str:
        """Calculate duration since start for kubectl --since flag."""
        if not self.start_time:
            return "5m"

        delta = datetime.now(timezone.utc) - self.start_time
        seconds = int(delta.total_seconds()) + 10  # Add buffer
        return f"{seconds}s"

    def _pod_logs(self, namespace: str, label: str | None = None) -> dict[str, str]:
        logs = {}
        try:
            pods = self.k8s.list_resources("pod", label, namespace)
        except CommandError as e:
            self.logger.warning("Cannot list pods in %s: %s", namespace, e)
            return logs

        since = self._since_duration()
        for pod in pods:
            name = pod.get("metadata", {}).get("name")
            if not name:
                continue
            try:
                logs[f"{namespace}/{name}"] = self.k8s.get_pod_logs(
                    name, namespace=namespace, since=since
                )
            except CommandError as e:
                self.logger.warning("Cannot read log of pod %s/%s: %s", namespace, name, e)
        return logs

    def get_operator_logs(self) -> str:
        """Combined operator logs since ``start_collection``."""
        if not self.operator_namespace:
            return ""
        sections = []
        for pod, text in self._pod_logs(self.operator_namespace, self.operator_label).items():
            sections.append(f"=== Pod: {pod} ===")
            sections.append(text)
        return "\n".join(sections)

    def get_events(self, namespace: str) -> list[str]:
        """One line per event in a namespace, oldest first."""
        try:
            events = self.k8s.get_events(namespace)
        except CommandError as e:
            self.logger.warning("Cannot read events in %s: %s", namespace, e)
            return []
        return [
            f"{namespace} {e.get('type', '')} {e.get('reason', '')} "
            f"{e.get('involvedObject', {}).get('name', '')}: {e.get('message', '')}"
            for e in events
        ]

    def collect_all(self) -> CollectedLogs:
        """Collect logs from all sources."""
        end_time = datetime.now(timezone.utc)
        start_time = self.start_time or end_time

        pods: dict[str, str] = {}
        events: list[str] = []
        for namespace in self.namespaces:
            pods.update(self._pod_logs(namespace))
            events.extend(self.get_events(namespace))

        return CollectedLogs(
            operator=self.get_operator_logs(),
            pods=pods,
            events=events,
            start_time=start_time,
            end_time=end_time,
        )

    def parse_log_line(self, line: str, source: str) -> LogEntry:
        """Parse a single log line.

        Args:
            line: Raw log line
            source: Log source identifier

        Returns:
            LogEntry (level UNKNOWN when the format is not recognised)
        """
        for pattern in (self.OPERATOR_LOG_PATTERN, self.SERVER_LOG_PATTERN):
            match = pattern.search(line)
            if match:
                try:
                    ts = datetime.fromisoformat(match.group("ts").replace("Z", "+00:00"))
                except ValueError:
                    ts = None
                return LogEntry(
                    timestamp=ts,
                    level=match.group("level").upper(),
                    message=match.group("msg"),
                    source=source,
                    raw=line,
                )

        return LogEntry(timestamp=None, level="UNKNOWN", message=line, source=source, raw=line)

    def _sources(self, logs: CollectedLogs) -> list[tuple[str, str]]:
        return [("operator", logs.operator)] + list(logs.pods.items())

    def find_errors(self, logs: CollectedLogs) -> list[LogEntry]:
        """Extract error entries from logs."""
        errors = []
        for source, content in self._sources(logs):
            for line in content.split("\n"):
                if not line.strip():
                    continue
                if any(pattern.search(line) for pattern in self.ERROR_PATTERNS):
                    errors.append(self.parse_log_line(line, source))
        return errors

    def format_for_report(self, logs: CollectedLogs, max_lines: int = 50) -> str:
        """Format logs for inclusion in a test report.

        Args:
            logs: Collected logs
            max_lines: Maximum lines per source

        Returns:
            Formatted string for report
        """
        sections = []
        named = [("Operator", logs.operator)]
        named += [(f"Pod {pod}", text) for pod, text in logs.pods.items()]
        named.append(("Events", "\n".join(logs.events)))

        for name, content in named:
            lines = content.strip().split("\n")
            if not lines or (len(lines) == 1 and not lines[0]):
                continue

            sections.append(f"\n{'=' * 60}")
            sections.append(f"{name} Logs" if name != "Events" else name)
            sections.append("=" * 60)

            if len(lines) > max_lines:
                sections.append(f"[Showing last {max_lines} of {len(lines)} lines]")
                lines = lines[-max_lines:]

            sections.extend(lines)

        return "\n".join(sections)
