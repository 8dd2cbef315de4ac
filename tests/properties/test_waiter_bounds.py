"""Property-based tests for bounded polling.

Property: a wait never polls more than ceil(timeout / interval) times, never
runs past its deadline by more than one interval, and stops at the first
poll that satisfies the predicate.
"""

from unittest.mock import Mock

from hypothesis import given
from hypothesis import strategies as st

from kube_reboot.cluster import KubernetesClusterAPI
from kube_reboot.models.node import NodeRecord
from kube_reboot.waiter import ConditionWaiter, boot_id_changed


class StepClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def _waiter(boot_ids, start):
    records = iter(NodeRecord(name="node-1", boot_id=b) for b in boot_ids)
    last = NodeRecord(name="node-1", boot_id=boot_ids[-1])
    cluster = Mock(spec=KubernetesClusterAPI)
    cluster.get_node.side_effect = lambda name: next(records, last)
    clock = StepClock(start)
    return ConditionWaiter(cluster, clock=clock, sleep=clock.sleep), cluster


@given(
    interval=st.integers(min_value=1, max_value=30),
    timeout=st.integers(min_value=0, max_value=300),
    start=st.integers(min_value=0, max_value=10_000),
)
def test_unsatisfied_wait_is_bounded(interval, timeout, start):
    waiter, cluster = _waiter(["boot-a"], start)

    result = waiter.wait_until("node-1", boot_id_changed("boot-a"), interval, timeout)

    max_ticks = -(-timeout // interval)
    assert not result
    assert result.ticks == max_ticks
    assert cluster.get_node.call_count == max_ticks
    assert timeout <= result.elapsed < timeout + interval


@given(
    interval=st.integers(min_value=1, max_value=30),
    timeout=st.integers(min_value=1, max_value=300),
    unchanged_polls=st.integers(min_value=0, max_value=20),
)
def test_wait_stops_at_first_satisfying_poll(interval, timeout, unchanged_polls):
    waiter, cluster = _waiter(["boot-a"] * unchanged_polls + ["boot-b"], 0)

    result = waiter.wait_until("node-1", boot_id_changed("boot-a"), interval, timeout)

    max_ticks = -(-timeout // interval)
    if unchanged_polls < max_ticks:
        assert result
        assert result.ticks == unchanged_polls + 1
    else:
        assert not result
        assert result.ticks == max_ticks
