"""Pytest configuration and shared fixtures."""

import os
from unittest.mock import Mock

import pytest
from hypothesis import Verbosity, settings

from kube_reboot.cluster import KubernetesClusterAPI
from kube_reboot.events import RecordingEventSink
from kube_reboot.models.node import NodeCondition, NodeRecord
from kube_reboot.models.pod import PodRecord
from kube_reboot.models.run import RunConfig
from kube_reboot.remote import SSHRunner

# Render CLI help wide enough that long option names are not truncated
os.environ["COLUMNS"] = "120"

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the default profile
settings.load_profile("default")


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _sequence(items: list):
    """side_effect returning items in order, repeating the last one.

    Exception instances in the list are raised instead of returned.
    """
    remaining = list(items)

    def next_item(*args, **kwargs):
        item = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(item, Exception):
            raise item
        return item

    return next_item


def build_node(
    name: str = "node-1",
    boot_id: str = "boot-a",
    ready: bool = True,
    unschedulable: bool = False,
    labels: dict | None = None,
) -> NodeRecord:
    return NodeRecord(
        name=name,
        boot_id=boot_id,
        unschedulable=unschedulable,
        conditions=[
            NodeCondition(type="MemoryPressure", status="False"),
            NodeCondition(type="Ready", status="True" if ready else "False"),
        ],
        labels=labels or {},
    )


def build_pod(
    name: str,
    namespace: str = "default",
    owner_kinds: list[str] | None = None,
    annotations: dict | None = None,
    deletion_requested: bool = False,
) -> PodRecord:
    return PodRecord(
        namespace=namespace,
        name=name,
        owner_kinds=owner_kinds or ["ReplicaSet"],
        annotations=annotations or {},
        deletion_requested=deletion_requested,
    )


@pytest.fixture
def make_clock():
    """Factory for fake clocks."""
    return FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def node():
    """Factory for NodeRecord objects."""
    return build_node


@pytest.fixture
def pod():
    """Factory for PodRecord objects."""
    return build_pod


@pytest.fixture
def make_cluster():
    """Factory for a mocked ClusterAPI.

    Args (of the returned factory):
        nodes: node name -> NodeRecords returned by successive get_node calls
        pods: node name -> pod listings returned by successive list_pods_on_node calls
        node_names: names returned by list_nodes (defaults to the keys of `nodes`)
    """

    def factory(
        nodes: dict[str, list] | None = None,
        pods: dict[str, list[list[PodRecord]]] | None = None,
        node_names: list[str] | None = None,
    ) -> Mock:
        nodes = nodes or {}
        pods = pods or {}
        node_sequences = {name: _sequence(records) for name, records in nodes.items()}
        pod_sequences = {name: _sequence(listings) for name, listings in pods.items()}

        cluster = Mock(spec=KubernetesClusterAPI)
        cluster.get_node.side_effect = lambda name: node_sequences[name]()
        cluster.list_pods_on_node.side_effect = lambda name: (
            pod_sequences[name]() if name in pod_sequences else []
        )
        cluster.list_nodes.return_value = node_names if node_names is not None else list(nodes)
        cluster.set_unschedulable.return_value = None
        cluster.evict_pod.return_value = None
        return cluster

    return factory


@pytest.fixture
def remote():
    """Mocked RemoteExec."""
    return Mock(spec=SSHRunner)


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def make_config():
    """Factory for RunConfig with fast test defaults."""

    def factory(**overrides) -> RunConfig:
        values = {
            "poll_interval": 1,
            "ready_timeout": 10,
            "boot_id_timeout": 10,
            "drain_timeout": 10,
            "initial_wait": 0,
            "reboot_command": "sudo systemctl reboot",
        }
        values.update(overrides)
        return RunConfig(**values)

    return factory


@pytest.fixture
def make_orchestrator(remote, events, clock):
    """Factory wiring an orchestrator to the fake clock and recording sink."""
    from kube_reboot.eviction import EvictionController
    from kube_reboot.lifecycle import NodeLifecycleOrchestrator
    from kube_reboot.waiter import ConditionWaiter

    def factory(cluster, config, remote=remote, events=events, clock=clock):
        eviction = EvictionController(
            cluster,
            events,
            grace_period=config.eviction_grace_period,
            clock=clock,
            sleep=clock.sleep,
        )
        waiter = ConditionWaiter(cluster, clock=clock, sleep=clock.sleep)
        return NodeLifecycleOrchestrator(cluster, remote, config, events, eviction, waiter)

    return factory
