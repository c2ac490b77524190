"""Oracle database and RCU schema provisioning for FMW domain scenarios.

Wraps the sample ``create-oracle-db-service`` and ``create-rcu-schema``
scripts. Commands are built as argument lists; passwords travel over stdin,
never on a command line.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .commands import CommandResult, Runner, run_command
from .exceptions import CommandError, HarnessError
from .log_assertion import LogAssertion, PodLogSource

if TYPE_CHECKING:
    from .config import HarnessConfig
    from .k8s_client import K8sClient
    from .poller import CancellationToken, PollPolicy
    from .waiters import ResourceWaiter

DB_READY_MESSAGE = "The database is ready for use"
DB_POD_PREFIX = "oracle-db"
RCU_POD_NAME = "rcu"
RCU_BINARY = "/u01/oracle/oracle_common/bin/rcu"
RCU_COMPONENTS = ("MDS", "IAU", "IAU_APPEND", "IAU_VIEWER", "OPSS", "WLS", "STB")


class DatabaseProvisioner:
    """Starts an Oracle DB in the cluster and loads RCU schemas into it."""

    def __init__(
        self,
        k8s: "K8sClient",
        config: "HarnessConfig",
        waiter: "ResourceWaiter",
        logs: LogAssertion,
        policy: "PollPolicy",
        runner: Runner = run_command,
        logger: logging.Logger | None = None,
        cancel: "CancellationToken | None" = None,
    ):
        """Initialize the provisioner.

        Args:
            k8s: K8sClient instance
            config: Harness configuration (scripts dir, images, credentials)
            waiter: Waiter used for pod readiness
            logs: Log assertion used for the "database ready" message
            policy: Poll policy for the readiness waits
            runner: Command runner for the sample scripts
            logger: Logger for narration
            cancel: Cancellation token of the owning scenario
        """
        self.k8s = k8s
        self.config = config
        self.waiter = waiter
        self.logs = logs
        self.policy = policy
        self.runner = runner
        self.logger = logger or logging.getLogger(__name__)
        self.cancel = cancel

    # -------------------------------------------------------------------------
    # Script locations
    # -------------------------------------------------------------------------

    @property
    def scripts_dir(self) -> Path:
        return Path(self.config.scripts_dir)

    def _script(self, *parts: str) -> str:
        return str(self.scripts_dir.joinpath("scripts", *parts))

    def _run_script(self, args: list[str], timeout: int = 900) -> CommandResult:
        self.logger.info("Running %s", " ".join(args))
        result = self.runner(args, timeout=timeout)
        self.logger.debug("%s output:\n%s", args[1], result.stdout.strip())
        return result

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------

    def start_oracle_db(self, port: int, namespace: str) -> str:
        """Start the Oracle DB pod and service and wait until it is usable.

        Returns:
            Name of the database pod

        Raises:
            CommandError: If the start script fails
            ConditionNotMet: If the pod never becomes ready or usable
        """
        self._run_script(
            [
                "sh",
                self._script("create-oracle-db-service", "start-db-service.sh"),
                "-i",
                self.config.db_image,
                "-p",
                str(port),
                "-n",
                namespace,
            ]
        )
        pod_name = self.k8s.first_pod_name(namespace, name_prefix=DB_POD_PREFIX)
        if pod_name is None:
            raise HarnessError(f"no {DB_POD_PREFIX} pod found in namespace {namespace}")
        self.logger.info("DB pod %s in namespace %s", pod_name, namespace)

        self.waiter.pod_ready(pod_name, namespace, self.policy, self.cancel).raise_for_status()
        self.logs.await_log_contains(
            PodLogSource(self.k8s, pod_name, namespace),
            {DB_READY_MESSAGE},
            self.policy,
            self.cancel,
        ).raise_for_status()
        return pod_name

    def stop_oracle_db(self, namespace: str) -> None:
        """Stop the Oracle DB service."""
        self._run_script(
            [
                "sh",
                self._script("create-oracle-db-service", "stop-db-service.sh"),
                "-n",
                namespace,
            ]
        )

    def delete_db_pod(self) -> None:
        """Remove a database pod left behind by an aborted run."""
        self.k8s.delete_file(
            self._script("create-oracle-db-service", "common", "oracle.db.yaml")
        )

    # -------------------------------------------------------------------------
    # RCU schema via the sample scripts
    # -------------------------------------------------------------------------

    def create_rcu_schema(
        self, prefix: str, namespace: str, db_url: str | None = None
    ) -> None:
        """Create RCU schemas with the sample script."""
        args = [
            "sh",
            self._script("create-rcu-schema", "create-rcu-schema.sh"),
            "-s",
            prefix,
        ]
        if db_url is not None:
            args.extend(["-d", db_url])
        args.extend(["-i", self.config.fmw_image, "-n", namespace])
        self._run_script(args)

    def drop_rcu_schema(self, prefix: str, namespace: str) -> None:
        """Drop RCU schemas with the sample script."""
        self._run_script(
            [
                "sh",
                self._script("create-rcu-schema", "drop-rcu-schema.sh"),
                "-s",
                prefix,
                "-n",
                namespace,
            ]
        )

    def delete_rcu_pod(self) -> None:
        """Remove an RCU pod left behind by an aborted run."""
        self.k8s.delete_file(self._script("create-rcu-schema", "common", "rcu.yaml"))

    # -------------------------------------------------------------------------
    # RCU schema from a pod we manage
    # -------------------------------------------------------------------------

    def create_rcu_pod(self, namespace: str | None = None) -> str:
        """Start an idle FMW infrastructure pod to run RCU from.

        Returns:
            RCU pod name
        """
        namespace = namespace or self.config.rcu_namespace
        self.logger.info("Creating RCU pod in namespace %s", namespace)
        self.k8s.run_pod(RCU_POD_NAME, self.config.fmw_image, namespace)
        self.waiter.pod_ready(RCU_POD_NAME, namespace, self.policy, self.cancel).raise_for_status()
        return RCU_POD_NAME

    def rcu_command(self, connect_string: str, prefix: str) -> list[str]:
        """The silent ``rcu -createRepository`` invocation for a schema prefix."""
        args = [
            RCU_BINARY,
            "-silent",
            "-createRepository",
            "-databaseType",
            "ORACLE",
            "-connectString",
            connect_string,
            "-dbUser",
            self.config.rcu_sys_username,
            "-dbRole",
            "sysdba",
            "-useSamePasswordForAllSchemaUsers",
            "true",
            "-selectDependentsForComponents",
            "true",
            "-schemaPrefix",
            prefix,
        ]
        for component in RCU_COMPONENTS:
            args.extend(["-component", component])
        return args

    def run_rcu(
        self,
        pod_name: str,
        connect_string: str,
        prefix: str,
        namespace: str | None = None,
    ) -> str:
        """Load RCU schemas from inside the RCU pod.

        RCU reads the sys password and then the schema password from stdin.

        Returns:
            RCU output

        Raises:
            CommandError: If RCU exits non-zero
        """
        namespace = namespace or self.config.rcu_namespace
        passwords = f"{self.config.rcu_sys_password}\n{self.config.rcu_schema_password}\n"
        self.logger.info(
            "Running RCU in pod %s for prefix %s against %s", pod_name, prefix, connect_string
        )
        stdout, stderr, code = self.k8s.exec_in_pod(
            pod_name,
            self.rcu_command(connect_string, prefix),
            namespace=namespace,
            input_data=passwords,
            timeout=1800,
        )
        if code != 0:
            raise CommandError(
                f"rcu exited with {code}: {stderr.strip() or stdout.strip()}",
                CommandResult(("rcu",), stdout, stderr, code),
            )
        return stdout

    # -------------------------------------------------------------------------
    # Whole setup
    # -------------------------------------------------------------------------

    def setup_rcu_database(
        self,
        port: int,
        db_url: str | None,
        prefix: str,
        namespace: str,
    ) -> str:
        """Start a database and create RCU schemas in ``namespace``.

        Leftover DB and RCU pods from aborted runs are removed first.

        Returns:
            Name of the database pod
        """
        self.delete_rcu_pod()
        self.delete_db_pod()
        self.k8s.create_namespace(namespace)
        pod_name = self.start_oracle_db(port, namespace)
        self.create_rcu_schema(prefix, namespace, db_url)
        self.logger.info(
            "RCU schema is created for namespace: %s dbUrl: %s dbPort: %s rcuSchemaPrefix: %s",
            namespace,
            db_url,
            port,
            prefix,
        )
        return pod_name
