"""K8sClient tests: kubectl invocations and output handling with a scripted runner."""

import pytest
import yaml

from fakes import FakeRunner, fail, not_found, ok, ready_pod
from wko_e2e.exceptions import CommandError
from wko_e2e.k8s_client import K8sClient

KUBECTL = ["kubectl", "--kubeconfig", "/tmp/kubeconfig"]


class TestQueryResourceState:
    """The observation used by every waiter."""

    def test_found(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok(ready_pod("admin")))

        state = client.query_resource_state("pod", "admin", "ns1")

        assert state.found
        assert state.obj["metadata"]["name"] == "admin"
        assert runner.commands == [KUBECTL + ["-n", "ns1", "get", "pod", "admin", "-o", "json"]]
        assert runner.calls[0]["check"] is False

    def test_not_found_in_live_namespace(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found(), ok("namespace/ns1"))

        state = client.query_resource_state("pod", "admin", "ns1")

        assert not state.found
        assert not state.namespace_missing
        assert runner.commands[1] == KUBECTL + ["get", "namespace", "ns1", "-o", "name"]

    def test_namespace_gone(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found(), not_found("namespaces", "ns1"))

        state = client.query_resource_state("pod", "admin", "ns1")

        assert not state.found
        assert state.namespace_missing

    def test_default_namespace_used(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"metadata": {"name": "cm"}}))

        client.query_resource_state("configmap", "cm")

        assert runner.commands[0][3:5] == ["-n", "test-ns"]

    def test_cluster_scoped_kind(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found("namespaces", "ns1"))

        state = client.query_resource_state("namespace", "ns1", "ignored")

        assert not state.found
        assert not state.namespace_missing
        assert runner.commands == [KUBECTL + ["get", "namespace", "ns1", "-o", "json"]]

    def test_other_errors_raise(self, client: K8sClient, runner: FakeRunner):
        runner.queue(fail("Unable to connect to the server: dial tcp: i/o timeout"))

        with pytest.raises(CommandError, match="Unable to connect"):
            client.query_resource_state("pod", "admin", "ns1")


class TestDelete:
    """Resource deletion."""

    def test_delete_waits(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok('pod "db" deleted'))

        assert client.delete("pod", "db", namespace="ns1") is True
        assert runner.commands[0] == KUBECTL + [
            "-n",
            "ns1",
            "delete",
            "pod",
            "db",
            "--wait=true",
            "--timeout",
            "120s",
            "--ignore-not-found=true",
        ]
        assert runner.calls[0]["timeout"] == 130

    def test_nothing_to_delete(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok(""))

        assert client.delete("secret", "creds", namespace="ns1", wait=False) is False
        assert "--wait=true" not in runner.commands[0]

    def test_not_found_error_tolerated(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found("secrets", "creds"))

        assert client.delete("secret", "creds", namespace="ns1") is False

    def test_strict_delete_raises(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found("secrets", "creds"))

        with pytest.raises(CommandError):
            client.delete("secret", "creds", namespace="ns1", ignore_not_found=False)

    def test_namespace_delete_is_cluster_scoped(self, client: K8sClient, runner: FakeRunner):
        client.delete_namespace("ns1")

        assert runner.commands[0][3:6] == ["delete", "namespace", "ns1"]

    def test_default_namespace_never_deleted(self, client: K8sClient, runner: FakeRunner):
        assert client.delete_namespace("default") is False
        assert runner.calls == []

    def test_delete_file(self, client: K8sClient, runner: FakeRunner):
        client.delete_file("samples/rcu.yaml")

        assert runner.commands[0] == KUBECTL + [
            "delete",
            "-f",
            "samples/rcu.yaml",
            "--ignore-not-found=true",
        ]


class TestApply:
    """Manifests are piped to kubectl as YAML."""

    def test_apply_dict(self, client: K8sClient, runner: FakeRunner):
        manifest = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}}
        runner.queue(ok(manifest))

        applied = client.apply(manifest, namespace="ns1")

        assert applied == manifest
        assert runner.commands[0] == KUBECTL + [
            "-n",
            "ns1",
            "apply",
            "-f",
            "-",
            "-o",
            "json",
        ]
        assert yaml.safe_load(runner.calls[0]["input_data"]) == manifest

    def test_create_secret_uses_string_data(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"kind": "Secret"}))

        client.create_secret("creds", {"username": "weblogic"}, namespace="ns1")

        secret = yaml.safe_load(runner.calls[0]["input_data"])
        assert secret["kind"] == "Secret"
        assert secret["type"] == "Opaque"
        assert secret["stringData"] == {"username": "weblogic"}
        assert secret["metadata"] == {"name": "creds", "namespace": "ns1"}

    def test_create_config_map(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"kind": "ConfigMap"}))

        client.create_config_map(
            "domain1-overrides", {"config.xml": "<domain/>"}, labels={"weblogic.domainUID": "domain1"}
        )

        assert runner.commands[0][3:5] == ["-n", "test-ns"]
        config_map = yaml.safe_load(runner.calls[0]["input_data"])
        assert config_map["kind"] == "ConfigMap"
        assert config_map["data"] == {"config.xml": "<domain/>"}
        assert config_map["metadata"] == {
            "name": "domain1-overrides",
            "namespace": "test-ns",
            "labels": {"weblogic.domainUID": "domain1"},
        }

    def test_create_namespace_recreates(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok(""), ok({"kind": "Namespace"}))

        client.create_namespace("ns1", labels={"wko-e2e/owned": "true"})

        delete_args, apply_args = runner.commands
        assert delete_args[3:6] == ["delete", "namespace", "ns1"]
        assert "apply" in apply_args
        namespace = yaml.safe_load(runner.calls[1]["input_data"])
        assert namespace["metadata"] == {"name": "ns1", "labels": {"wko-e2e/owned": "true"}}

    def test_create_default_namespace_is_noop(self, client: K8sClient, runner: FakeRunner):
        client.create_namespace("default")

        assert runner.calls == []

    def test_run_pod_idles(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"kind": "Pod"}))

        client.run_pod("rcu", "fmw:latest", namespace="rcu")

        pod = yaml.safe_load(runner.calls[0]["input_data"])
        container = pod["spec"]["containers"][0]
        assert container["image"] == "fmw:latest"
        assert container["command"] == ["sleep", "100000"]
        assert pod["metadata"]["labels"] == {"run": "rcu"}


class TestPods:
    """Pod helpers."""

    def test_exec_with_stdin(self, client: K8sClient, runner: FakeRunner):
        runner.queue(fail("RCU-6016: The specified prefix already exists", exit_code=2))

        stdout, stderr, code = client.exec_in_pod(
            "rcu", ["/bin/rcu", "-silent"], namespace="rcu", input_data="secret\n"
        )

        assert code == 2
        assert "RCU-6016" in stderr
        assert runner.commands[0] == KUBECTL + [
            "-n",
            "rcu",
            "exec",
            "-i",
            "rcu",
            "--",
            "/bin/rcu",
            "-silent",
        ]
        assert runner.calls[0]["input_data"] == "secret\n"

    def test_exec_without_stdin(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok("hello"))

        assert client.exec_in_pod("p", ["echo", "hello"], container="c") == ("hello", "", 0)
        assert "-i" not in runner.commands[0]
        assert runner.commands[0][-5:] == ["-c", "c", "--", "echo", "hello"]

    def test_get_pod_env(self, client: K8sClient, runner: FakeRunner):
        pod = {
            "spec": {
                "containers": [
                    {
                        "name": "weblogic-server",
                        "env": [
                            {"name": "SHUTDOWN_TYPE", "value": "Graceful"},
                            {"name": "ADMIN_PASSWORD", "valueFrom": {"secretKeyRef": {}}},
                        ],
                    }
                ]
            }
        }
        runner.queue(ok(pod))

        env = client.get_pod_env("domain1-admin-server", "ns1")

        assert env == {"SHUTDOWN_TYPE": "Graceful", "ADMIN_PASSWORD": None}

    def test_get_pod_env_missing_pod(self, client: K8sClient, runner: FakeRunner):
        runner.queue(not_found())

        assert client.get_pod_env("gone", "ns1") == {}

    def test_full_log(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok("line 1\nline 2\n"))

        text = client.get_pod_logs("db", namespace="ns1", since=None)

        assert text == "line 1\nline 2\n"
        assert "--since" not in runner.commands[0]

    def test_log_error_raises(self, client: K8sClient, runner: FakeRunner):
        runner.queue(fail("container is waiting to start"))

        with pytest.raises(CommandError):
            client.get_pod_logs("db", namespace="ns1")

    def test_first_pod_name_by_prefix(self, client: K8sClient, runner: FakeRunner):
        runner.queue(
            ok({"items": [{"metadata": {"name": "rcu"}}, {"metadata": {"name": "oracle-db-7f9"}}]})
        )

        assert client.first_pod_name("db", name_prefix="oracle-db") == "oracle-db-7f9"

    def test_first_pod_name_none(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"items": []}))

        assert client.first_pod_name("db", label_selector="app=db") is None
        assert runner.commands[0][-4:] == ["-l", "app=db", "-o", "json"]


class TestMisc:
    def test_cluster_info_failure(self, client: K8sClient, runner: FakeRunner):
        runner.queue(fail("The connection to the server localhost:8080 was refused"))

        assert client.cluster_info() is False

    def test_cluster_info_success(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok("Kubernetes control plane is running"))

        assert client.cluster_info() is True
        assert runner.calls[0]["timeout"] == 10

    def test_list_ingresses(self, client: K8sClient, runner: FakeRunner):
        runner.queue(ok({"items": [{"metadata": {"name": "domain1-ingress"}}]}))

        assert client.list_ingresses("ns1") == ["domain1-ingress"]

    def test_no_kubeconfig(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("KUBECONFIG", raising=False)
        runner = FakeRunner(ok({"items": []}))
        client = K8sClient(runner=runner)

        client.list_resources("pod")

        assert runner.commands[0] == ["kubectl", "-n", "default", "get", "pod", "-o", "json"]
