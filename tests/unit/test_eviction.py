"""Tests for the eviction controller."""

import pytest

from kube_reboot.eviction import EvictionController
from kube_reboot.exceptions import ClusterAPIError, PhaseTimeoutError
from kube_reboot.models.pod import CRITICAL_POD_ANNOTATION, MIRROR_POD_ANNOTATION


def test_daemonset_only_node_drains_immediately(make_cluster, pod, clock, events):
    """One DaemonSet pod and no plain pods succeeds without waiting."""
    cluster = make_cluster(pods={"node-1": [[pod("fluentd-x", owner_kinds=["DaemonSet"])]]})
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    report = controller.drain("node-1", poll_interval=5, timeout=60)

    assert report.evicted == []
    assert report.protected == ["default/fluentd-x"]
    assert report.ticks == 0
    assert clock.sleeps == []
    cluster.evict_pod.assert_not_called()
    assert cluster.list_pods_on_node.call_count == 1


def test_drain_evicts_and_waits_for_pods_to_leave(make_cluster, pod, clock, events):
    web = pod("web-1")
    ds = pod("proxy", owner_kinds=["DaemonSet"])
    cluster = make_cluster(pods={"node-1": [[web, ds], [web, ds], [ds]]})
    controller = EvictionController(
        cluster, events, grace_period=45, clock=clock, sleep=clock.sleep
    )

    report = controller.drain("node-1", poll_interval=5, timeout=60)

    cluster.evict_pod.assert_called_once_with("default", "web-1", 45)
    assert report.evicted == ["default/web-1"]
    assert report.ticks == 2
    assert clock.sleeps == [5]
    assert "pod.evict.sent" in events.names()


def test_eviction_failure_does_not_abort(make_cluster, pod, clock, events):
    first = pod("web-1")
    second = pod("web-2")
    cluster = make_cluster(pods={"node-1": [[first, second], []]})
    cluster.evict_pod.side_effect = [ClusterAPIError("Failed to evict pod default/web-1"), None]
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    report = controller.drain("node-1", poll_interval=1, timeout=10)

    assert cluster.evict_pod.call_count == 2
    assert report.failed == ["default/web-1"]
    assert report.evicted == ["default/web-2"]
    assert "pod.evict.failed" in events.names()


def test_terminating_pods_keep_the_drain_waiting(make_cluster, pod, clock, events):
    """An accepted eviction leaves the pod terminating; the drain waits until it is gone."""
    terminating = pod("web-1", deletion_requested=True)
    cluster = make_cluster(
        pods={"node-1": [[pod("web-1")], [terminating], [terminating], [terminating], []]}
    )
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    report = controller.drain("node-1", poll_interval=1, timeout=10)

    cluster.evict_pod.assert_called_once_with("default", "web-1", 30)
    assert report.ticks == 4
    assert clock.sleeps == [1, 1, 1]
    assert cluster.list_pods_on_node.call_count == 5


def test_already_terminating_pod_is_waited_for_not_evicted(make_cluster, pod, clock, events):
    terminating = pod("web-1", deletion_requested=True)
    cluster = make_cluster(pods={"node-1": [[terminating], [terminating], []]})
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    report = controller.drain("node-1", poll_interval=2, timeout=10)

    cluster.evict_pod.assert_not_called()
    assert report.protected == ["default/web-1"]
    assert report.ticks == 2
    assert clock.sleeps == [2]


def test_terminating_pod_that_never_leaves_times_out(make_cluster, pod, clock, events):
    terminating = pod("web-1", deletion_requested=True)
    cluster = make_cluster(pods={"node-1": [[pod("web-1")], [terminating]]})
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    with pytest.raises(PhaseTimeoutError):
        controller.drain("node-1", poll_interval=1, timeout=3)


def test_drain_timeout_names_node(make_cluster, pod, clock, events):
    cluster = make_cluster(pods={"node-1": [[pod("stubborn")]]})
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    with pytest.raises(PhaseTimeoutError) as exc_info:
        controller.drain("node-1", poll_interval=2, timeout=6)

    assert exc_info.value.node == "node-1"
    assert exc_info.value.phase == "draining"
    assert "node-1" in str(exc_info.value)
    assert clock.now >= 6


def test_list_failure_is_an_api_error(make_cluster, clock, events):
    cluster = make_cluster()
    cluster.list_pods_on_node.side_effect = ClusterAPIError("Failed to list pods on node node-1")
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    with pytest.raises(ClusterAPIError):
        controller.drain("node-1", poll_interval=1, timeout=10)


def test_dry_run_lists_but_never_evicts(make_cluster, pod, clock, events):
    cluster = make_cluster(
        pods={
            "node-1": [
                [
                    pod("web-1"),
                    pod(
                        "kube-proxy",
                        namespace="kube-system",
                        annotations={MIRROR_POD_ANNOTATION: "x"},
                    ),
                    pod(
                        "coredns",
                        namespace="kube-system",
                        annotations={CRITICAL_POD_ANNOTATION: "1"},
                    ),
                ]
            ]
        }
    )
    controller = EvictionController(cluster, events, clock=clock, sleep=clock.sleep)

    report = controller.drain("node-1", poll_interval=1, timeout=10, dry_run=True)

    cluster.evict_pod.assert_not_called()
    assert report.dry_run is True
    assert report.evicted == ["default/web-1"]
    assert sorted(report.protected) == ["kube-system/coredns", "kube-system/kube-proxy"]
    assert events.names() == ["pod.evict.dry-run"]
    assert clock.sleeps == []
