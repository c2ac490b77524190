"""Credential secrets used by domain and RCU scenarios.

Every helper replaces an existing secret of the same name, so reruns after an
aborted scenario start clean. Secret values are never logged.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .k8s_client import K8sClient

logger = logging.getLogger(__name__)


def _replace_secret(
    k8s: "K8sClient", namespace: str, name: str, data: dict[str, str]
) -> str:
    logger.info("Creating secret %s in namespace %s (keys: %s)", name, namespace, sorted(data))
    k8s.delete_secret(name, namespace)
    k8s.create_secret(name, data, namespace=namespace)
    return name


def create_username_password_secret(
    k8s: "K8sClient", name: str, namespace: str, username: str, password: str
) -> str:
    """Create a ``username``/``password`` secret (e.g. WebLogic admin credentials)."""
    return _replace_secret(k8s, namespace, name, {"username": username, "password": password})


def create_rcu_credentials_secret(
    k8s: "K8sClient",
    namespace: str,
    name: str,
    username: str,
    password: str,
    sys_username: str,
    sys_password: str,
) -> str:
    """Create the schema owner and sys credentials secret for RCU."""
    return _replace_secret(
        k8s,
        namespace,
        name,
        {
            "username": username,
            "password": password,
            "sys_username": sys_username,
            "sys_password": sys_password,
        },
    )


def create_rcu_access_secret(
    k8s: "K8sClient",
    namespace: str,
    name: str,
    rcu_prefix: str,
    schema_password: str,
    connect_string: str,
) -> str:
    """Create the secret a domain uses to reach its RCU schemas."""
    return _replace_secret(
        k8s,
        namespace,
        name,
        {
            "rcu_prefix": rcu_prefix,
            "rcu_schema_password": schema_password,
            "rcu_db_conn_string": connect_string,
        },
    )


def create_wallet_password_secret(
    k8s: "K8sClient", namespace: str, name: str, wallet_password: str
) -> str:
    """Create the OPSS wallet password secret."""
    return _replace_secret(k8s, namespace, name, {"walletPassword": wallet_password})


def delete_secret(k8s: "K8sClient", name: str, namespace: str) -> bool:
    """Delete a secret.

    Returns:
        True if deleted, False if it did not exist
    """
    return k8s.delete_secret(name, namespace)
