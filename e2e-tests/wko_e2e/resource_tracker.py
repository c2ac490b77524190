"""Resource tracker for coordinated E2E scenario cleanup.

Resources are swept in dependency order:
1. Pods (domain, database and RCU pods release their volumes and secrets)
2. Ingresses (front domain services)
3. Domains (operator removes the server pods it owns)
4. ConfigMaps
5. Secrets (deleted after domains so the operator can still read credentials)
6. Namespaces (deleted LAST, they take whatever is left with them)

Each scenario owns its own tracker; nothing here is shared between scenarios.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING

from .exceptions import CleanupError

if TYPE_CHECKING:
    from .k8s_client import K8sClient
    from .poller import PollPolicy, PollResult
    from .waiters import ResourceWaiter


class ResourceType(IntEnum):
    """Resource types in cleanup priority order (lower = cleanup first)."""

    POD = 1
    INGRESS = 2
    DOMAIN = 3
    CONFIG_MAP = 4
    SECRET = 5
    NAMESPACE = 6
    OTHER = 7


_KIND_TYPES = {
    "pod": ResourceType.POD,
    "ingress": ResourceType.INGRESS,
    "domain": ResourceType.DOMAIN,
    "configmap": ResourceType.CONFIG_MAP,
    "secret": ResourceType.SECRET,
    "namespace": ResourceType.NAMESPACE,
}


@dataclass(frozen=True)
class TrackedResource:
    """A resource owned by the current scenario."""

    kind: str  # K8s kind: "pod", "secret", "namespace", ...
    name: str
    namespace: str | None = None  # None for cluster-scoped kinds
    resource_type: ResourceType = field(default=ResourceType.OTHER, compare=False)

    @classmethod
    def of(cls, kind: str, name: str, namespace: str | None = None) -> "TrackedResource":
        resource_type = _KIND_TYPES.get(kind.lower(), ResourceType.OTHER)
        if resource_type is ResourceType.NAMESPACE:
            namespace = None
        return cls(kind.lower(), name, namespace, resource_type)

    @property
    def key(self) -> tuple[str, str, str | None]:
        return (self.kind, self.name, self.namespace)

    def describe(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"


@dataclass
class SweepReport:
    """What a sweep attempted and what it could not delete."""

    attempted: list[TrackedResource] = field(default_factory=list)
    failures: list[tuple[TrackedResource, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def error(self) -> CleanupError | None:
        """A single aggregated error for all failures, or None."""
        return CleanupError(self.failures) if self.failures else None


class ResourceTracker:
    """Tracks scenario resources and coordinates cleanup in correct order.

    Usage:
        tracker = ResourceTracker(k8s)
        tracker.track_namespace("e2e-1a2b3c4d")
        tracker.track_secret("weblogic-credentials", "e2e-1a2b3c4d")
        tracker.track_pod("rcu", "e2e-1a2b3c4d")

        # At scenario end (or abort):
        report = tracker.sweep()  # Deletes in correct order, never raises
    """

    def __init__(self, k8s: "K8sClient", logger: logging.Logger | None = None):
        self.k8s = k8s
        self.logger = logger or logging.getLogger(__name__)
        # Insertion-ordered; keys give idempotent track/release
        self._resources: dict[tuple[str, str, str | None], TrackedResource] = {}

    def track(self, resource: TrackedResource) -> TrackedResource:
        """Record a resource as owned by this scenario (idempotent)."""
        if resource.key not in self._resources:
            self._resources[resource.key] = resource
        return self._resources[resource.key]

    def release(self, resource: TrackedResource) -> bool:
        """Stop tracking a resource whose deletion has been confirmed.

        Returns:
            True if the resource was being tracked
        """
        return self._resources.pop(resource.key, None) is not None

    def track_pod(self, name: str, namespace: str) -> TrackedResource:
        return self.track(TrackedResource.of("pod", name, namespace))

    def track_ingress(self, name: str, namespace: str) -> TrackedResource:
        return self.track(TrackedResource.of("ingress", name, namespace))

    def track_domain(self, name: str, namespace: str) -> TrackedResource:
        return self.track(TrackedResource.of("domain", name, namespace))

    def track_config_map(self, name: str, namespace: str) -> TrackedResource:
        return self.track(TrackedResource.of("configmap", name, namespace))

    def track_secret(self, name: str, namespace: str) -> TrackedResource:
        """Track a secret for cleanup.

        Secrets are deleted AFTER domains so the operator can still read
        credentials while it shuts servers down.
        """
        return self.track(TrackedResource.of("secret", name, namespace))

    def track_namespace(self, name: str) -> TrackedResource:
        return self.track(TrackedResource.of("namespace", name))

    def delete_and_release(
        self,
        resource: TrackedResource,
        waiter: "ResourceWaiter",
        policy: "PollPolicy",
    ) -> "PollResult":
        """Delete a tracked resource and release it once deletion is confirmed."""
        self.k8s.delete(resource.kind, resource.name, namespace=resource.namespace, wait=False)
        result = waiter.wait_for_deleted(resource.kind, resource.name, resource.namespace, policy)
        if result.succeeded:
            self.release(resource)
        return result

    def sweep(self, timeout: int = 60) -> SweepReport:
        """Best-effort deletion of everything still tracked.

        A failure to delete one resource is logged and recorded, never
        raised, so it cannot block cleanup of the rest. Resources that could
        not be deleted stay tracked and show up in ``leaks()``.

        Returns:
            SweepReport whose ``error`` aggregates all failures
        """
        report = SweepReport()

        # Sort by resource type (pods first, namespaces last)
        # Within same type, reverse creation order (LIFO)
        ordered = sorted(
            enumerate(list(self._resources.values())),
            key=lambda x: (x[1].resource_type, -x[0]),
        )

        for _, resource in ordered:
            report.attempted.append(resource)
            try:
                self.k8s.delete(
                    resource.kind,
                    resource.name,
                    namespace=resource.namespace,
                    wait=True,
                    timeout=timeout,
                    ignore_not_found=True,
                )
            except Exception as e:  # one failure must not stop the sweep
                self.logger.warning("Failed to delete %s: %s", resource.describe(), e)
                report.failures.append((resource, e))
                continue
            self.release(resource)

        if report.failures:
            self.logger.error("%s", report.error)
        return report

    def leaks(self) -> list[TrackedResource]:
        """Resources still tracked (empty at the end of a clean scenario)."""
        return list(self._resources.values())

    def clear(self) -> None:
        """Clear all tracked resources without deleting them."""
        self._resources.clear()

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, resource: TrackedResource) -> bool:
        return resource.key in self._resources
