"""Fixtures for hermetic unit tests."""

import random

import pytest

from fakes import FakeClock, FakeK8s, FakeRunner
from wko_e2e.k8s_client import K8sClient
from wko_e2e.poller import ConditionPoller


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(clock: FakeClock) -> ConditionPoller:
    """Poller on fake time with a fixed random seed."""
    return ConditionPoller(sleep=clock.sleep, clock=clock, rng=random.Random(7))


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def client(runner: FakeRunner) -> K8sClient:
    return K8sClient(namespace="test-ns", kubeconfig="/tmp/kubeconfig", runner=runner)


@pytest.fixture
def fake_k8s() -> FakeK8s:
    return FakeK8s()
