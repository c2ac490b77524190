"""Resource existence / readiness / deletion waits."""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .poller import (
    CancellationToken,
    Check,
    Condition,
    ConditionPoller,
    PollPolicy,
    PollResult,
)

DOMAIN_UID_LABEL = "weblogic.domainUID"
READY_CONDITION_TYPES = ("Ready", "Available")
CLUSTER_SCOPED_KINDS = {"namespace", "ns", "pv", "storageclass", "node", "clusterrole"}


@dataclass(frozen=True)
class ResourceState:
    """Observed state of one named resource."""

    found: bool
    obj: dict | None = None
    namespace_missing: bool = False

    def __repr__(self) -> str:
        if self.namespace_missing:
            return "ResourceState(namespace missing)"
        if not self.found:
            return "ResourceState(not found)"
        status = (self.obj or {}).get("status") or {}
        phase = status.get("phase")
        return f"ResourceState(found, phase={phase})" if phase else "ResourceState(found)"


QueryState = Callable[[str, str, str | None], ResourceState]


def is_ready(kind: str, obj: dict) -> bool:
    """Whether every readiness sub-condition of a resource holds."""
    status = obj.get("status") or {}
    conditions = {c.get("type"): c.get("status") for c in status.get("conditions") or []}

    if kind.lower() in ("pod", "pods", "po"):
        if status.get("phase") != "Running":
            return False
        containers = status.get("containerStatuses") or []
        if not containers or not all(c.get("ready") for c in containers):
            return False
        return conditions.get("Ready") == "True"

    relevant = [conditions[t] for t in READY_CONDITION_TYPES if t in conditions]
    return bool(relevant) and all(s == "True" for s in relevant)


class ResourceWaiter:
    """Builds and polls conditions over ``query_state(kind, name, namespace)``.

    Usage:
        waiter = ResourceWaiter(k8s.query_resource_state, poller)
        waiter.pod_ready("domain1-admin-server", "ns1", policy).raise_for_status()
    """

    def __init__(
        self,
        query_state: QueryState,
        poller: ConditionPoller,
        logger: logging.Logger | None = None,
    ):
        self.query_state = query_state
        self.poller = poller
        self.logger = logger or logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # Condition builders
    # -------------------------------------------------------------------------

    def _query(self, kind: str, name: str, namespace: str | None) -> Callable[[], ResourceState]:
        if kind.lower() in CLUSTER_SCOPED_KINDS:
            namespace = None
        return lambda: self.query_state(kind, name, namespace)

    def exists(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        match: Callable[[dict], bool] | None = None,
    ) -> Condition:
        """Satisfied once the resource is found (and ``match`` accepts it)."""

        def evaluate(state: ResourceState) -> Check:
            if state.namespace_missing:
                return Check.failed(f"namespace {namespace} no longer exists")
            if not state.found:
                return Check.not_yet("not found")
            if match is not None and not match(state.obj or {}):
                return Check.not_yet("found but does not match")
            return Check.satisfied()

        return Condition(
            description=f"{kind} {_qualified(name, namespace)} exists",
            query=self._query(kind, name, namespace),
            evaluate=evaluate,
        )

    def ready(self, kind: str, name: str, namespace: str | None) -> Condition:
        """Satisfied once every readiness sub-condition of the resource is true."""

        def evaluate(state: ResourceState) -> Check:
            if not state.found:
                return Check.not_yet("not found")
            if is_ready(kind, state.obj or {}):
                return Check.satisfied()
            return Check.not_yet("not ready")

        return Condition(
            description=f"{kind} {_qualified(name, namespace)} ready",
            query=self._query(kind, name, namespace),
            evaluate=evaluate,
        )

    def deleted(self, kind: str, name: str, namespace: str | None) -> Condition:
        """Satisfied once the resource can no longer be found."""

        def evaluate(state: ResourceState) -> Check:
            if state.found:
                return Check.not_yet("still present")
            return Check.satisfied()

        return Condition(
            description=f"{kind} {_qualified(name, namespace)} deleted",
            query=self._query(kind, name, namespace),
            evaluate=evaluate,
        )

    # -------------------------------------------------------------------------
    # Waits
    # -------------------------------------------------------------------------

    def wait_for_exists(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        return self.poller.poll(self.exists(kind, name, namespace), policy, cancel)

    def wait_for_ready(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        return self.poller.poll(self.ready(kind, name, namespace), policy, cancel)

    def wait_for_deleted(
        self,
        kind: str,
        name: str,
        namespace: str | None,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        return self.poller.poll(self.deleted(kind, name, namespace), policy, cancel)

    # -------------------------------------------------------------------------
    # Shorthands used by scenarios
    # -------------------------------------------------------------------------

    def pod_exists(
        self,
        name: str,
        namespace: str,
        policy: PollPolicy,
        domain_uid: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        """Wait for a pod; with ``domain_uid`` it must also carry that domain label."""
        match = None
        if domain_uid is not None:
            match = lambda obj: _labels(obj).get(DOMAIN_UID_LABEL) == domain_uid  # noqa: E731
        self.logger.info("Checking that pod %s exists in namespace %s", name, namespace)
        return self.poller.poll(self.exists("pod", name, namespace, match), policy, cancel)

    def pod_ready(
        self,
        name: str,
        namespace: str,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        self.logger.info("Checking that pod %s is ready in namespace %s", name, namespace)
        return self.wait_for_ready("pod", name, namespace, policy, cancel)

    def service_exists(
        self,
        name: str,
        namespace: str,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        self.logger.info("Checking that service %s exists in namespace %s", name, namespace)
        return self.wait_for_exists("service", name, namespace, policy, cancel)

    def namespace_deleted(
        self,
        name: str,
        policy: PollPolicy,
        cancel: CancellationToken | None = None,
    ) -> PollResult:
        self.logger.info("Checking that namespace %s is deleted", name)
        return self.wait_for_deleted("namespace", name, None, policy, cancel)


def _labels(obj: dict[str, Any]) -> dict[str, str]:
    return (obj.get("metadata") or {}).get("labels") or {}


def _qualified(name: str, namespace: str | None) -> str:
    return f"{namespace}/{name}" if namespace else name
