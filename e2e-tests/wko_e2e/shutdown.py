"""Server shutdown options layered across domain, cluster and server scope.

A domain resource may set shutdown options on its domain-wide ``serverPod``,
on a cluster, and on an individual server. ``resolve`` merges the layers into
the options a given server pod actually runs with; domain-wide ``SHUTDOWN_*``
environment variables override every layer.
"""

from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .k8s_client import K8sClient

SHUTDOWN_TYPE = "SHUTDOWN_TYPE"
SHUTDOWN_TIMEOUT = "SHUTDOWN_TIMEOUT"
SHUTDOWN_IGNORE_SESSIONS = "SHUTDOWN_IGNORE_SESSIONS"

SHUTDOWN_TYPES = ("Graceful", "Forced")


@dataclass(frozen=True)
class Shutdown:
    """Shutdown options set at one level; None means "not set here"."""

    shutdown_type: str | None = None
    timeout_seconds: int | None = None
    ignore_sessions: bool | None = None

    def __post_init__(self) -> None:
        if self.shutdown_type is not None and self.shutdown_type not in SHUTDOWN_TYPES:
            raise ValueError(f"unknown shutdown type {self.shutdown_type!r}")


@dataclass(frozen=True)
class EffectiveShutdown:
    """Fully resolved shutdown options of one server."""

    shutdown_type: str
    timeout_seconds: int
    ignore_sessions: bool

    def env(self) -> dict[str, str]:
        """The environment variables the operator sets on the server pod."""
        return {
            SHUTDOWN_TYPE: self.shutdown_type,
            SHUTDOWN_TIMEOUT: str(self.timeout_seconds),
            SHUTDOWN_IGNORE_SESSIONS: str(self.ignore_sessions).lower(),
        }


DEFAULT_SHUTDOWN = EffectiveShutdown("Graceful", 30, False)


def _env_overrides(domain_env: Mapping[str, str] | None) -> Shutdown:
    env = domain_env or {}
    timeout = env.get(SHUTDOWN_TIMEOUT)
    ignore = env.get(SHUTDOWN_IGNORE_SESSIONS)
    return Shutdown(
        shutdown_type=env.get(SHUTDOWN_TYPE),
        timeout_seconds=int(timeout) if timeout is not None else None,
        ignore_sessions=ignore.lower() == "true" if ignore is not None else None,
    )


def resolve(
    domain: Shutdown | None = None,
    cluster: Shutdown | None = None,
    server: Shutdown | None = None,
    domain_env: Mapping[str, str] | None = None,
) -> EffectiveShutdown:
    """Merge layered shutdown options for one server.

    Each option takes the most specific value that is set (server, then
    cluster, then domain, then the default). A domain-wide ``SHUTDOWN_*``
    environment variable then replaces that option for every server. When
    the environment replaces a shutdown type chosen at some level, the
    ``ignore_sessions`` chosen at that same level goes with it and the
    option falls back to the less specific levels.

    Args:
        domain: Options on the domain-wide serverPod
        cluster: Options on the server's cluster (None for the admin server
            and independent managed servers)
        server: Options on the server itself
        domain_env: Environment variables of the domain-wide serverPod

    Returns:
        EffectiveShutdown for the server
    """
    layers = [layer for layer in (server, cluster, domain) if layer is not None]
    overrides = _env_overrides(domain_env)

    def pick(name: str, candidates: list[Shutdown]):
        for layer in candidates:
            value = getattr(layer, name)
            if value is not None:
                return value
        return getattr(DEFAULT_SHUTDOWN, name)

    values = {f.name: pick(f.name, layers) for f in fields(Shutdown)}

    if overrides.shutdown_type is not None:
        type_layer = next((layer for layer in layers if layer.shutdown_type is not None), None)
        if type_layer is not None and type_layer.shutdown_type != overrides.shutdown_type:
            remaining = [layer for layer in layers if layer is not type_layer]
            values["ignore_sessions"] = pick("ignore_sessions", remaining)

    for f in fields(Shutdown):
        value = getattr(overrides, f.name)
        if value is not None:
            values[f.name] = value

    return EffectiveShutdown(**values)


def to_manifest(shutdown: Shutdown) -> dict:
    """The ``serverPod.shutdown`` block of a domain resource."""
    block = {}
    if shutdown.shutdown_type is not None:
        block["shutdownType"] = shutdown.shutdown_type
    if shutdown.timeout_seconds is not None:
        block["timeoutSeconds"] = shutdown.timeout_seconds
    if shutdown.ignore_sessions is not None:
        block["ignoreSessions"] = shutdown.ignore_sessions
    return block


def shutdown_env_mismatches(
    k8s: "K8sClient",
    pod_name: str,
    namespace: str,
    expected: EffectiveShutdown,
) -> dict[str, tuple[str, str | None]]:
    """Compare a server pod's SHUTDOWN_* environment with the expected options.

    Returns:
        Mapping of variable name to (expected, actual) for every mismatch;
        empty when the pod runs with the expected options
    """
    actual = k8s.get_pod_env(pod_name, namespace)
    return {
        name: (value, actual.get(name))
        for name, value in expected.env().items()
        if actual.get(name) != value
    }


def verify_pod_shutdown_env(
    k8s: "K8sClient",
    pod_name: str,
    namespace: str,
    expected: EffectiveShutdown,
) -> bool:
    """Whether the pod's SHUTDOWN_* environment matches ``expected``."""
    return not shutdown_env_mismatches(k8s, pod_name, namespace, expected)
