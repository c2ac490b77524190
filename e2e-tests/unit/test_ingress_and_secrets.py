"""Ingress manifest and credential secret helper tests."""

from fakes import FakeK8s
from wko_e2e import secrets
from wko_e2e.ingress import (
    INGRESS_API_VERSION,
    build_ingress,
    cluster_service_name,
    create_ingress,
    list_ingresses,
)


class TestIngress:
    """Ingress rules per WebLogic cluster."""

    def test_rule_per_cluster(self):
        manifest, hosts = build_ingress(
            "domain1-ingress", "ns1", "domain1", {"cluster-1": 8001, "cluster_2": 8011}
        )

        assert manifest["apiVersion"] == INGRESS_API_VERSION
        assert manifest["metadata"]["namespace"] == "ns1"
        assert hosts == ["domain1.ns1.cluster-1.test", "domain1.ns1.cluster_2.test"]

        rules = manifest["spec"]["rules"]
        assert [r["host"] for r in rules] == hosts
        backend = rules[1]["http"]["paths"][0]["backend"]["service"]
        assert backend == {"name": "domain1-cluster-cluster-2", "port": {"number": 8011}}
        assert rules[0]["http"]["paths"][0]["pathType"] == "Prefix"

    def test_without_hosts(self):
        manifest, hosts = build_ingress(
            "ing", "ns1", "domain1", {"cluster-1": 8001}, set_host=False
        )

        assert hosts == ["*"]
        assert "host" not in manifest["spec"]["rules"][0]

    def test_annotations(self):
        manifest, _ = build_ingress(
            "ing",
            "ns1",
            "domain1",
            {"cluster-1": 8001},
            annotations={"kubernetes.io/ingress.class": "traefik"},
        )

        assert manifest["metadata"]["annotations"] == {"kubernetes.io/ingress.class": "traefik"}

    def test_service_name(self):
        assert cluster_service_name("domain1", "Cluster_1") == "domain1-cluster-cluster-1"

    def test_create_and_list(self, fake_k8s: FakeK8s):
        hosts = create_ingress(fake_k8s, "domain1-ingress", "ns1", "domain1", {"cluster-1": 8001})

        assert hosts == ["domain1.ns1.cluster-1.test"]
        manifest, namespace = fake_k8s.applied[0]
        assert namespace == "ns1"
        assert manifest["kind"] == "Ingress"
        assert list_ingresses(fake_k8s, "ns1") == ["domain1-ingress"]


class TestSecrets:
    """Secrets are replaced, never merged."""

    def test_username_password(self, fake_k8s: FakeK8s):
        fake_k8s.secrets[("weblogic-credentials", "ns1")] = {"username": "stale"}

        name = secrets.create_username_password_secret(
            fake_k8s, "weblogic-credentials", "ns1", "weblogic", "welcome1"
        )

        assert name == "weblogic-credentials"
        assert fake_k8s.secret_calls == [
            ("delete", "weblogic-credentials", "ns1"),
            ("create", "weblogic-credentials", "ns1"),
        ]
        assert fake_k8s.secrets[("weblogic-credentials", "ns1")] == {
            "username": "weblogic",
            "password": "welcome1",
        }

    def test_rcu_credentials(self, fake_k8s: FakeK8s):
        secrets.create_rcu_credentials_secret(
            fake_k8s, "ns1", "rcu-credentials", "myrcuuser", "pw", "sys", "syspw"
        )

        assert fake_k8s.secrets[("rcu-credentials", "ns1")] == {
            "username": "myrcuuser",
            "password": "pw",
            "sys_username": "sys",
            "sys_password": "syspw",
        }

    def test_rcu_access(self, fake_k8s: FakeK8s):
        secrets.create_rcu_access_secret(
            fake_k8s, "ns1", "rcu-access", "FMW1", "pw", "oracle-db.db:1521/devpdb"
        )

        assert fake_k8s.secrets[("rcu-access", "ns1")] == {
            "rcu_prefix": "FMW1",
            "rcu_schema_password": "pw",
            "rcu_db_conn_string": "oracle-db.db:1521/devpdb",
        }

    def test_wallet_password(self, fake_k8s: FakeK8s):
        secrets.create_wallet_password_secret(fake_k8s, "ns1", "opss-wallet", "walletpw")

        assert fake_k8s.secrets[("opss-wallet", "ns1")] == {"walletPassword": "walletpw"}

    def test_values_not_logged(self, fake_k8s: FakeK8s, caplog):
        with caplog.at_level("DEBUG", logger="wko_e2e.secrets"):
            secrets.create_username_password_secret(fake_k8s, "c", "ns1", "weblogic", "hunter2")

        assert "hunter2" not in caplog.text
        assert "password" in caplog.text

    def test_delete(self, fake_k8s: FakeK8s):
        fake_k8s.secrets[("c", "ns1")] = {}

        assert secrets.delete_secret(fake_k8s, "c", "ns1") is True
        assert secrets.delete_secret(fake_k8s, "c", "ns1") is False
