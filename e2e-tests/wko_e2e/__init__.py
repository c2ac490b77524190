# WebLogic Kubernetes Operator E2E Test Library
"""Convergence polling, resource tracking and cluster helpers for E2E scenarios."""

from .config import HarnessConfig
from .exceptions import (
    CleanupError,
    CommandError,
    ConditionNotMet,
    ConfigurationError,
    HarnessError,
    PermanentFailure,
    TransientError,
)
from .k8s_client import K8sClient
from .log_assertion import LogAssertion, PodLogSource
from .log_collector import LogCollector
from .poller import (
    Backoff,
    CancellationToken,
    Check,
    Condition,
    ConditionPoller,
    PollPolicy,
    PollResult,
    PollStatus,
    Verdict,
)
from .resource_tracker import ResourceTracker, ResourceType, TrackedResource
from .waiters import ResourceState, ResourceWaiter

__all__ = [
    "Backoff",
    "CancellationToken",
    "Check",
    "CleanupError",
    "CommandError",
    "Condition",
    "ConditionNotMet",
    "ConditionPoller",
    "ConfigurationError",
    "HarnessConfig",
    "HarnessError",
    "K8sClient",
    "LogAssertion",
    "LogCollector",
    "PermanentFailure",
    "PodLogSource",
    "PollPolicy",
    "PollResult",
    "PollStatus",
    "ResourceState",
    "ResourceTracker",
    "ResourceType",
    "ResourceWaiter",
    "TrackedResource",
    "TransientError",
    "Verdict",
]
