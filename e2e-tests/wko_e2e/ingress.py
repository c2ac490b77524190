"""Ingress resources routing to WebLogic cluster services."""

import logging
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:
    from .k8s_client import K8sClient

logger = logging.getLogger(__name__)

INGRESS_API_VERSION = "networking.k8s.io/v1"
WILDCARD_HOST = "*"


def cluster_service_name(domain_uid: str, cluster_name: str) -> str:
    """Service the operator creates for a WebLogic cluster."""
    return f"{domain_uid}-cluster-{cluster_name.lower().replace('_', '-')}"


def ingress_host(domain_uid: str, namespace: str, cluster_name: str) -> str:
    return f"{domain_uid}.{namespace}.{cluster_name}.test"


def build_ingress(
    name: str,
    namespace: str,
    domain_uid: str,
    cluster_ports: Mapping[str, int],
    annotations: Mapping[str, str] | None = None,
    set_host: bool = True,
) -> tuple[dict, list[str]]:
    """Build an ingress with one rule per WebLogic cluster.

    Args:
        name: Ingress name
        namespace: Domain namespace
        domain_uid: Domain whose cluster services back the ingress
        cluster_ports: Cluster name -> managed server port
        annotations: Optional ingress annotations
        set_host: If False, rules match any host

    Returns:
        Tuple of (manifest, hosts); hosts is ``"*"`` for host-less rules
    """
    rules = []
    hosts = []
    for cluster_name, port in cluster_ports.items():
        rule: dict = {
            "http": {
                "paths": [
                    {
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {
                            "service": {
                                "name": cluster_service_name(domain_uid, cluster_name),
                                "port": {"number": int(port)},
                            }
                        },
                    }
                ]
            }
        }
        if set_host:
            host = ingress_host(domain_uid, namespace, cluster_name)
            rule["host"] = host
            hosts.append(host)
        else:
            hosts.append(WILDCARD_HOST)
        rules.append(rule)

    manifest = {
        "apiVersion": INGRESS_API_VERSION,
        "kind": "Ingress",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": dict(annotations or {}),
        },
        "spec": {"rules": rules},
    }
    return manifest, hosts


def create_ingress(
    k8s: "K8sClient",
    name: str,
    namespace: str,
    domain_uid: str,
    cluster_ports: Mapping[str, int],
    annotations: Mapping[str, str] | None = None,
    set_host: bool = True,
) -> list[str]:
    """Create an ingress for a domain's clusters.

    Returns:
        The ingress hosts

    Raises:
        CommandError: If the ingress cannot be created
    """
    manifest, hosts = build_ingress(
        name, namespace, domain_uid, cluster_ports, annotations, set_host
    )
    logger.info("Creating ingress %s in namespace %s for hosts %s", name, namespace, hosts)
    k8s.apply(manifest, namespace)
    return hosts


def list_ingresses(k8s: "K8sClient", namespace: str) -> list[str]:
    """Names of the ingresses in a namespace."""
    return k8s.list_ingresses(namespace)
