"""Pytest configuration and fixtures for WebLogic operator E2E tests."""

import logging
import uuid
import warnings
from typing import Callable, Generator

import pytest

from wko_e2e.config import HarnessConfig
from wko_e2e.k8s_client import K8sClient
from wko_e2e.log_assertion import LogAssertion
from wko_e2e.log_collector import LogCollector
from wko_e2e.poller import CancellationToken, ConditionPoller, PollPolicy
from wko_e2e.resource_tracker import ResourceTracker
from wko_e2e.waiters import ResourceWaiter

OWNED_LABEL = "wko-e2e/owned"


# -------------------------------------------------------------------------
# Configuration
# -------------------------------------------------------------------------


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options (override WKO_E2E_* variables)."""
    parser.addoption(
        "--harness-config",
        action="store",
        default=None,
        help="YAML file with harness settings",
    )
    parser.addoption(
        "--namespace",
        action="store",
        default=None,
        help="Default Kubernetes namespace for tests",
    )
    parser.addoption(
        "--kubeconfig",
        action="store",
        default=None,
        help="Path to kubeconfig file",
    )
    parser.addoption(
        "--scripts-dir",
        action="store",
        default=None,
        help="Operator samples directory holding the DB and RCU scripts",
    )
    parser.addoption(
        "--operator-namespace",
        action="store",
        default=None,
        help="Namespace of an installed operator (logs collected on failure)",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "e2e: needs a Kubernetes cluster and kubectl")
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "database: provisions an Oracle database")


# -------------------------------------------------------------------------
# Session-scoped Fixtures
# -------------------------------------------------------------------------


@pytest.fixture(scope="session")
def harness_config(request: pytest.FixtureRequest) -> HarnessConfig:
    """Harness settings: YAML file, then environment, then command line."""
    config = HarnessConfig.load(request.config.getoption("--harness-config")).with_overrides(
        namespace=request.config.getoption("--namespace"),
        kubeconfig=request.config.getoption("--kubeconfig"),
        scripts_dir=request.config.getoption("--scripts-dir"),
    )
    config.configure_logging()
    return config


@pytest.fixture(scope="session")
def k8s(harness_config: HarnessConfig) -> K8sClient:
    """K8s client for the test session."""
    client = K8sClient(namespace=harness_config.namespace, kubeconfig=harness_config.kubeconfig)

    # Verify cluster access
    if not client.cluster_info():
        pytest.fail("Cannot connect to Kubernetes cluster")

    return client


@pytest.fixture(scope="session")
def policy(harness_config: HarnessConfig) -> PollPolicy:
    """Default poll policy for waits."""
    return harness_config.default_policy()


# -------------------------------------------------------------------------
# Function-scoped Fixtures (one set per scenario, never shared)
# -------------------------------------------------------------------------


@pytest.fixture
def scenario_logger(request: pytest.FixtureRequest) -> logging.Logger:
    """Logger dedicated to the running scenario."""
    return logging.getLogger("wko_e2e.scenario").getChild(request.node.name)


@pytest.fixture
def cancel_token() -> Generator[CancellationToken, None, None]:
    """Cancellation token owned by the scenario; cancelled at teardown."""
    token = CancellationToken()
    yield token
    token.cancel()


@pytest.fixture
def poller(scenario_logger: logging.Logger) -> ConditionPoller:
    return ConditionPoller(logger=scenario_logger)


@pytest.fixture
def waiter(
    k8s: K8sClient, poller: ConditionPoller, scenario_logger: logging.Logger
) -> ResourceWaiter:
    return ResourceWaiter(k8s.query_resource_state, poller, logger=scenario_logger)


@pytest.fixture
def log_assertion(poller: ConditionPoller, scenario_logger: logging.Logger) -> LogAssertion:
    return LogAssertion(poller, logger=scenario_logger)


@pytest.fixture
def logs(
    request: pytest.FixtureRequest, k8s: K8sClient, scenario_logger: logging.Logger
) -> LogCollector:
    """Log collector that starts fresh for each test."""
    collector = LogCollector(
        k8s,
        operator_namespace=request.config.getoption("--operator-namespace"),
        logger=scenario_logger,
    )
    collector.start_collection()
    return collector


@pytest.fixture
def unique_name() -> str:
    """Generate unique resource names for this test."""
    return f"e2e-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def resource_tracker(
    k8s: K8sClient, scenario_logger: logging.Logger
) -> Generator[ResourceTracker, None, None]:
    """Per-scenario resource tracker for coordinated cleanup.

    All factory fixtures register resources with this tracker. The sweep at
    teardown never stops early; leftovers are reported once, as a warning.
    """
    tracker = ResourceTracker(k8s=k8s, logger=scenario_logger)
    yield tracker
    report = tracker.sweep(timeout=120)
    if report.error is not None:
        warnings.warn(str(report.error), stacklevel=1)


# -------------------------------------------------------------------------
# Factory Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def namespace_factory(
    k8s: K8sClient,
    unique_name: str,
    resource_tracker: ResourceTracker,
    logs: LogCollector,
) -> Callable[[str], str]:
    """Factory for fresh namespaces, tracked for cleanup and log collection."""
    created_count = 0

    def create(name_suffix: str = "") -> str:
        nonlocal created_count
        suffix = f"-{name_suffix}" if name_suffix else f"-{created_count}"
        name = f"{unique_name}{suffix}"
        k8s.create_namespace(name, labels={OWNED_LABEL: "true"})
        resource_tracker.track_namespace(name)
        logs.watch_namespace(name)
        created_count += 1
        return name

    return create


# -------------------------------------------------------------------------
# Reporting Hooks
# -------------------------------------------------------------------------


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Enhance test reports with tracked resources and log errors on failure."""
    outcome = yield
    report = outcome.get_result()

    if report.when != "call" or not report.failed:
        return

    funcargs = getattr(item, "funcargs", {})
    tracker = funcargs.get("resource_tracker")
    logs = funcargs.get("logs")
    extra_info = []

    if tracker is not None and len(tracker):
        extra_info.append("\n=== Tracked Resources at Failure ===")
        extra_info.extend(r.describe() for r in tracker.leaks())

    if logs is not None:
        try:
            collected = logs.collect_all()
        except Exception as e:  # reporting must not mask the real failure
            extra_info.append(f"\n(log collection failed: {e})")
        else:
            errors = logs.find_errors(collected)
            if errors:
                extra_info.append("\n=== Errors in Logs ===")
                for err in errors[:10]:  # First 10 errors
                    extra_info.append(f"[{err.source}] {err.message[:200]}")

    if extra_info:
        report.longrepr = str(report.longrepr) + "\n" + "\n".join(extra_info)
