"""Kubernetes client wrapper using kubectl for E2E tests."""

import json
import logging
import os
from typing import Any

import yaml

from .commands import CommandResult, Runner, run_command
from .exceptions import CommandError
from .waiters import CLUSTER_SCOPED_KINDS, ResourceState


def _is_not_found(stderr: str) -> bool:
    return "NotFound" in stderr or "not found" in stderr.lower()


class K8sClient:
    """Wrapper for kubectl operations with proper error handling."""

    def __init__(
        self,
        namespace: str = "default",
        kubeconfig: str | None = None,
        runner: Runner = run_command,
        logger: logging.Logger | None = None,
    ):
        """Initialize the K8s client.

        Args:
            namespace: Default namespace for operations
            kubeconfig: Path to kubeconfig file (uses KUBECONFIG env or default if None)
            runner: Command runner (replaced by a fake in unit tests)
            logger: Logger for command narration
        """
        self.namespace = namespace
        self.kubeconfig = kubeconfig or os.environ.get("KUBECONFIG")
        self.runner = runner
        self.logger = logger or logging.getLogger(__name__)

    def _ns(self, namespace: str | None) -> str:
        return namespace or self.namespace

    def _kubectl(
        self,
        args: list[str],
        input_data: str | None = None,
        timeout: int = 60,
        check: bool = True,
    ) -> CommandResult:
        """Run kubectl command.

        Args:
            args: kubectl arguments
            input_data: Optional stdin data
            timeout: Command timeout in seconds
            check: Whether to raise on non-zero exit

        Returns:
            CommandResult with stdout/stderr
        """
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd.extend(["--kubeconfig", self.kubeconfig])
        cmd.extend(args)
        return self.runner(cmd, input_data=input_data, timeout=timeout, check=check)

    def _kubectl_json(self, args: list[str], timeout: int = 60) -> dict | list | None:
        """Run kubectl command and parse JSON output.

        Args:
            args: kubectl arguments (without -o json)
            timeout: Command timeout

        Returns:
            Parsed JSON or None if resource not found
        """
        try:
            result = self._kubectl(args + ["-o", "json"], timeout=timeout)
            return json.loads(result.stdout)
        except CommandError as e:
            if _is_not_found(e.stderr):
                return None
            raise

    def _scope(self, kind: str, namespace: str | None) -> list[str]:
        if kind.lower() in CLUSTER_SCOPED_KINDS:
            return []
        return ["-n", self._ns(namespace)]

    # -------------------------------------------------------------------------
    # Generic Resource Operations
    # -------------------------------------------------------------------------

    def apply(self, manifest: str | dict, namespace: str | None = None) -> dict:
        """Apply a manifest (create or update resource).

        Args:
            manifest: YAML string or dict to apply
            namespace: Target namespace (defaults to the client namespace)

        Returns:
            Applied resource as dict
        """
        if isinstance(manifest, dict):
            manifest = yaml.safe_dump(manifest, sort_keys=False)

        result = self._kubectl(
            ["-n", self._ns(namespace), "apply", "-f", "-", "-o", "json"],
            input_data=manifest,
        )
        return json.loads(result.stdout)

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        wait: bool = True,
        timeout: int = 120,
        ignore_not_found: bool = True,
    ) -> bool:
        """Delete a resource.

        Args:
            kind: Resource kind (e.g., "secret", "pod")
            name: Resource name
            namespace: Namespace (ignored for cluster-scoped kinds)
            wait: Whether to wait for deletion
            timeout: Wait timeout in seconds
            ignore_not_found: Don't error if resource doesn't exist

        Returns:
            True if deleted, False if not found
        """
        args = self._scope(kind, namespace) + ["delete", kind, name]
        if wait:
            args.append("--wait=true")
            args.extend(["--timeout", f"{timeout}s"])
        if ignore_not_found:
            args.append("--ignore-not-found=true")

        try:
            result = self._kubectl(args, timeout=timeout + 10)
        except CommandError as e:
            if ignore_not_found and _is_not_found(e.stderr):
                return False
            raise
        # --ignore-not-found exits 0 with empty output when nothing was there
        return bool(result.stdout.strip()) or not ignore_not_found

    def delete_file(self, path: str, namespace: str | None = None) -> None:
        """Delete the resources described by a manifest file, if present."""
        args = ["delete", "-f", path, "--ignore-not-found=true"]
        if namespace:
            args = ["-n", namespace] + args
        self._kubectl(args, timeout=180)

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict | None:
        """Get a resource by name.

        Returns:
            Resource dict or None if not found
        """
        return self._kubectl_json(self._scope(kind, namespace) + ["get", kind, name])

    def list_resources(
        self,
        kind: str,
        label_selector: str | None = None,
        namespace: str | None = None,
    ) -> list[dict]:
        """List resources of a kind.

        Args:
            kind: Resource kind
            label_selector: Optional label selector
            namespace: Namespace (ignored for cluster-scoped kinds)

        Returns:
            List of resource dicts
        """
        args = self._scope(kind, namespace) + ["get", kind]
        if label_selector:
            args.extend(["-l", label_selector])

        result = self._kubectl_json(args)
        if result and "items" in result:
            return result["items"]
        return []

    def patch(
        self,
        kind: str,
        name: str,
        patch: dict | list,
        patch_type: str = "merge",
        namespace: str | None = None,
    ) -> dict:
        """Patch a resource.

        Args:
            kind: Resource kind
            name: Resource name
            patch: Patch data (a list for JSON patches)
            patch_type: Patch type (merge, json, strategic)
            namespace: Namespace

        Returns:
            Patched resource
        """
        result = self._kubectl(
            self._scope(kind, namespace)
            + ["patch", kind, name, "--type", patch_type, "-p", json.dumps(patch), "-o", "json"]
        )
        return json.loads(result.stdout)

    def query_resource_state(
        self, kind: str, name: str, namespace: str | None = None
    ) -> ResourceState:
        """Observe one resource for the waiters.

        A NotFound answer is followed by a namespace lookup, so waits can tell
        "not there yet" apart from "the namespace itself is gone".

        Raises:
            CommandError: For any failure other than NotFound (transient)
        """
        scope = self._scope(kind, namespace)
        result = self._kubectl(scope + ["get", kind, name, "-o", "json"], check=False)
        if result.ok:
            return ResourceState(found=True, obj=json.loads(result.stdout))
        if not _is_not_found(result.stderr):
            raise CommandError(
                f"kubectl get {kind} {name} failed: {result.stderr.strip()}", result
            )
        if not scope:
            return ResourceState(found=False)

        ns_result = self._kubectl(["get", "namespace", scope[1], "-o", "name"], check=False)
        missing = not ns_result.ok and _is_not_found(ns_result.stderr)
        return ResourceState(found=False, namespace_missing=missing)

    # -------------------------------------------------------------------------
    # Namespace Operations
    # -------------------------------------------------------------------------

    def create_namespace(self, name: str, labels: dict[str, str] | None = None) -> None:
        """Create a namespace, removing a leftover one of the same name first.

        The ``default`` namespace is left untouched.
        """
        if name.lower() == "default":
            return
        self.logger.info("Recreating namespace %s", name)
        self.delete("namespace", name, wait=True, timeout=300)
        manifest = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name, "labels": labels or {}},
        }
        self.apply(manifest)

    def delete_namespace(self, name: str, wait: bool = False) -> bool:
        """Delete a namespace (never ``default``)."""
        if name.lower() == "default":
            return False
        self.logger.info("Deleting namespace %s", name)
        return self.delete("namespace", name, wait=wait, timeout=300)

    # -------------------------------------------------------------------------
    # Secret / ConfigMap Operations
    # -------------------------------------------------------------------------

    def create_secret(
        self,
        name: str,
        data: dict[str, str],
        namespace: str | None = None,
        secret_type: str = "Opaque",
        labels: dict[str, str] | None = None,
    ) -> dict:
        """Create a Kubernetes Secret.

        Args:
            name: Secret name
            data: String data (stored as stringData, not base64 encoded)
            namespace: Namespace
            secret_type: Secret type (default: Opaque)
            labels: Optional labels

        Returns:
            Created Secret resource
        """
        secret = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": name, "namespace": self._ns(namespace)},
            "type": secret_type,
            "stringData": data,
        }
        if labels:
            secret["metadata"]["labels"] = labels
        return self.apply(secret, namespace)

    def delete_secret(self, name: str, namespace: str | None = None) -> bool:
        return self.delete("secret", name, namespace=namespace, wait=False)

    def create_config_map(
        self,
        name: str,
        data: dict[str, str],
        namespace: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> dict:
        """Create a ConfigMap."""
        config_map = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": self._ns(namespace), "labels": labels or {}},
            "data": data,
        }
        return self.apply(config_map, namespace)

    # -------------------------------------------------------------------------
    # Pod Operations
    # -------------------------------------------------------------------------

    def run_pod(
        self,
        name: str,
        image: str,
        namespace: str | None = None,
        command: list[str] | None = None,
        labels: dict[str, str] | None = None,
    ) -> dict:
        """Create a single-container pod that idles by default."""
        if command is None:
            command = ["sleep", "100000"]

        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": self._ns(namespace),
                "labels": labels or {"run": name},
            },
            "spec": {
                "containers": [{"name": name, "image": image, "command": command}],
                "restartPolicy": "Never",
            },
        }
        return self.apply(pod, namespace)

    def first_pod_name(
        self,
        namespace: str | None = None,
        label_selector: str | None = None,
        name_prefix: str | None = None,
    ) -> str | None:
        """Name of the first pod matching a label selector and/or name prefix."""
        for pod in self.list_resources("pod", label_selector, namespace):
            name = pod.get("metadata", {}).get("name", "")
            if name_prefix is None or name.startswith(name_prefix):
                return name
        return None

    def get_pod_env(
        self, pod_name: str, namespace: str | None = None, container_index: int = 0
    ) -> dict[str, str | None]:
        """Environment variables declared on a pod container.

        Returns:
            Mapping of variable name to literal value (None for valueFrom)
        """
        pod = self.get("pod", pod_name, namespace)
        if pod is None:
            return {}
        containers = pod.get("spec", {}).get("containers", [])
        if len(containers) <= container_index:
            return {}
        return {
            env["name"]: env.get("value")
            for env in containers[container_index].get("env") or []
        }

    def exec_in_pod(
        self,
        pod_name: str,
        command: list[str],
        namespace: str | None = None,
        container: str | None = None,
        input_data: str | None = None,
        timeout: int = 60,
    ) -> tuple[str, str, int]:
        """Execute command in a Pod.

        Args:
            pod_name: Pod name
            command: Command to execute
            namespace: Namespace
            container: Container name (optional)
            input_data: Optional stdin for the command
            timeout: Execution timeout

        Returns:
            Tuple of (stdout, stderr, return_code)
        """
        args = ["-n", self._ns(namespace), "exec"]
        if input_data is not None:
            args.append("-i")
        args.append(pod_name)
        if container:
            args.extend(["-c", container])
        args.append("--")
        args.extend(command)

        result = self._kubectl(args, input_data=input_data, timeout=timeout, check=False)
        return result.stdout, result.stderr, result.exit_code

    def get_pod_logs(
        self,
        pod_name: str,
        namespace: str | None = None,
        container: str | None = None,
        since: str | None = "5m",
        tail: int | None = None,
    ) -> str:
        """Get logs from a Pod.

        Args:
            pod_name: Pod name
            namespace: Namespace
            container: Container name (optional)
            since: Time duration (e.g., "5m"); None for the whole log
            tail: Number of lines to return

        Returns:
            Log output

        Raises:
            CommandError: If kubectl cannot read the log
        """
        args = ["-n", self._ns(namespace), "logs", pod_name]
        if container:
            args.extend(["-c", container])
        if since:
            args.extend(["--since", since])
        if tail:
            args.extend(["--tail", str(tail)])
        return self._kubectl(args).stdout

    # -------------------------------------------------------------------------
    # Ingress Operations
    # -------------------------------------------------------------------------

    def list_ingresses(self, namespace: str | None = None) -> list[str]:
        """Names of the ingresses in a namespace."""
        return [
            item["metadata"]["name"]
            for item in self.list_resources("ingress", namespace=namespace)
            if item.get("metadata", {}).get("name")
        ]

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def cluster_info(self) -> bool:
        """Check if cluster is accessible."""
        try:
            self._kubectl(["cluster-info"], timeout=10)
            return True
        except CommandError:
            return False

    def get_events(
        self, namespace: str | None = None, field_selector: str | None = None
    ) -> list[dict[str, Any]]:
        """Get events in a namespace, oldest first."""
        args = ["-n", self._ns(namespace), "get", "events", "--sort-by=.lastTimestamp"]
        if field_selector:
            args.extend(["--field-selector", field_selector])

        result = self._kubectl_json(args)
        if result and "items" in result:
            return result["items"]
        return []
