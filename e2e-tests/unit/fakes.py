"""Fakes for hermetic unit tests (no cluster, no kubectl, no real sleeping)."""

import json

from wko_e2e.commands import CommandResult
from wko_e2e.exceptions import CommandError
from wko_e2e.waiters import ResourceState


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def ok(stdout: str | dict = "", stderr: str = "") -> CommandResult:
    if isinstance(stdout, dict):
        stdout = json.dumps(stdout)
    return CommandResult(args=(), stdout=stdout, stderr=stderr, exit_code=0)


def fail(stderr: str, exit_code: int = 1) -> CommandResult:
    return CommandResult(args=(), stdout="", stderr=stderr, exit_code=exit_code)


def not_found(kind: str = "pods", name: str = "x") -> CommandResult:
    return fail(f'Error from server (NotFound): {kind} "{name}" not found')


class FakeRunner:
    """Scripted stand-in for ``run_command``.

    Queued results are returned in order; once the queue is empty every call
    succeeds with empty output. Calls are recorded for assertions.
    """

    def __init__(self, *results: CommandResult | Exception):
        self.results = list(results)
        self.calls: list[dict] = []

    def queue(self, *results: CommandResult | Exception) -> None:
        self.results.extend(results)

    def __call__(self, args, input_data=None, timeout=60, check=True, env=None):
        self.calls.append(
            {"args": list(args), "input_data": input_data, "timeout": timeout, "check": check}
        )
        result = self.results.pop(0) if self.results else ok()
        if isinstance(result, Exception):
            raise result
        result = CommandResult(tuple(args), result.stdout, result.stderr, result.exit_code)
        if check and not result.ok:
            raise CommandError(f"{args[0]} exited with {result.exit_code}", result)
        return result

    @property
    def commands(self) -> list[list[str]]:
        return [call["args"] for call in self.calls]


class FakeK8s:
    """In-memory cluster for tracker, waiter and log tests.

    ``states`` maps (kind, name, namespace) to ResourceState sequences; the
    last state repeats once the sequence is exhausted.
    """

    def __init__(self):
        self.states: dict[tuple, list[ResourceState]] = {}
        self.deleted: list[tuple] = []
        self.delete_errors: dict[str, Exception] = {}
        self.logs: dict[str, list[str]] = {}
        self.pod_env: dict[str, dict[str, str | None]] = {}
        self.applied: list[tuple[dict, str | None]] = []
        self.secrets: dict[tuple[str, str], dict[str, str]] = {}
        self.secret_calls: list[tuple] = []

    def set_states(self, kind, name, namespace, *states: ResourceState) -> None:
        self.states[(kind, name, namespace)] = list(states)

    def query_resource_state(self, kind, name, namespace=None) -> ResourceState:
        sequence = self.states.get((kind, name, namespace))
        if not sequence:
            return ResourceState(found=False)
        if len(sequence) > 1:
            return sequence.pop(0)
        return sequence[0]

    def delete(self, kind, name, namespace=None, wait=True, timeout=120, ignore_not_found=True):
        self.deleted.append((kind, name, namespace))
        if name in self.delete_errors:
            raise self.delete_errors[name]
        self.states[(kind, name, namespace)] = [ResourceState(found=False)]
        return True

    def get_pod_logs(self, pod_name, namespace=None, container=None, since="5m", tail=None):
        texts = self.logs.get(pod_name, [""])
        return texts.pop(0) if len(texts) > 1 else texts[0]

    def get_pod_env(self, pod_name, namespace=None, container_index=0):
        return self.pod_env.get(pod_name, {})

    def apply(self, manifest, namespace=None):
        self.applied.append((manifest, namespace))
        return manifest

    def create_secret(self, name, data, namespace=None, secret_type="Opaque", labels=None):
        self.secret_calls.append(("create", name, namespace))
        self.secrets[(name, namespace)] = dict(data)
        return {"metadata": {"name": name}}

    def delete_secret(self, name, namespace=None):
        self.secret_calls.append(("delete", name, namespace))
        return self.secrets.pop((name, namespace), None) is not None

    def list_ingresses(self, namespace=None):
        return [m["metadata"]["name"] for m, ns in self.applied if m.get("kind") == "Ingress"]


def found(obj: dict | None = None) -> ResourceState:
    return ResourceState(found=True, obj=obj or {})


def missing(namespace_missing: bool = False) -> ResourceState:
    return ResourceState(found=False, namespace_missing=namespace_missing)


def ready_pod(name: str = "pod", labels: dict | None = None) -> dict:
    return {
        "metadata": {"name": name, "labels": labels or {}},
        "status": {
            "phase": "Running",
            "containerStatuses": [{"name": "c", "ready": True}],
            "conditions": [{"type": "Ready", "status": "True"}],
        },
    }
