"""Pod eviction for a node being drained.

Eviction requests are best effort; whether the node is drained is decided
by re-listing its pods until no evictable pod is left.
"""

import time
from collections.abc import Callable

from pydantic import BaseModel, Field

from kube_reboot.cluster import ClusterAPI
from kube_reboot.events import EventSink, LoggingEventSink
from kube_reboot.exceptions import ClusterAPIError, PhaseTimeoutError
from kube_reboot.logging_config import get_logger
from kube_reboot.models.pod import TERMINATING, EvictionCandidate
from kube_reboot.models.run import NodeState

logger = get_logger(__name__)

DEFAULT_GRACE_PERIOD = 30


class DrainReport(BaseModel):
    """What a drain did, or would have done in dry-run."""

    node: str
    evicted: list[str] = Field(default_factory=list)
    protected: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    ticks: int = 0
    dry_run: bool = False


def remaining_evictable(candidates: list[EvictionCandidate]) -> list[EvictionCandidate]:
    """Pods still holding up the drain.

    A terminating pod is not evicted again but stays on the node until its
    grace period ends, so it counts as remaining.
    """
    return [c for c in candidates if not c.protected or c.reason == TERMINATING]


class EvictionController:
    """Evict every unprotected pod from a node and wait until they are gone."""

    def __init__(
        self,
        cluster: ClusterAPI,
        events: EventSink | None = None,
        grace_period: int = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cluster = cluster
        self.events = events or LoggingEventSink()
        self.grace_period = grace_period
        self.clock = clock
        self.sleep = sleep

    def classify(self, node: str) -> list[EvictionCandidate]:
        """List and classify the pods scheduled on a node.

        Raises:
            ClusterAPIError: If the pods cannot be listed
        """
        return [EvictionCandidate.classify(pod) for pod in self.cluster.list_pods_on_node(node)]

    def drain(
        self, node: str, poll_interval: float, timeout: float, dry_run: bool = False
    ) -> DrainReport:
        """Evict unprotected pods from `node` and wait for them to leave.

        Args:
            node: Node name
            poll_interval: Seconds between re-lists
            timeout: Seconds to wait for the node to empty
            dry_run: Only report which pods would be evicted

        Returns:
            DrainReport describing the evictions

        Raises:
            ClusterAPIError: If pods cannot be listed
            PhaseTimeoutError: If evictable pods remain after `timeout`
        """
        candidates = self.classify(node)
        report = DrainReport(node=node, dry_run=dry_run)

        for candidate in candidates:
            pod = candidate.pod
            if candidate.protected:
                logger.debug(f"Skipping {pod.key} on {node}: {candidate.reason}")
                report.protected.append(pod.key)
                continue

            if dry_run:
                self.events.info(
                    "pod.evict.dry-run",
                    "DRY-RUN: would evict pod",
                    node=node,
                    namespace=pod.namespace,
                    pod=pod.name,
                )
                report.evicted.append(pod.key)
                continue

            try:
                self.cluster.evict_pod(pod.namespace, pod.name, self.grace_period)
            except ClusterAPIError as e:
                self.events.warning(
                    "pod.evict.failed",
                    "Failed to evict pod",
                    node=node,
                    namespace=pod.namespace,
                    pod=pod.name,
                    error=e.format_message(),
                )
                report.failed.append(pod.key)
            else:
                self.events.info(
                    "pod.evict.sent",
                    "Eviction sent for pod",
                    node=node,
                    namespace=pod.namespace,
                    pod=pod.name,
                )
                report.evicted.append(pod.key)

        if not remaining_evictable(candidates) or dry_run:
            return report

        start = self.clock()
        deadline = start + timeout
        while self.clock() < deadline:
            report.ticks += 1
            left = remaining_evictable(self.classify(node))
            if not left:
                logger.debug(f"Node {node} drained after {report.ticks} checks")
                return report
            logger.debug(f"{len(left)} evictable pods left on {node}")
            self.sleep(poll_interval)

        raise PhaseTimeoutError(
            node,
            NodeState.DRAINING.value,
            timeout,
            f"Pods still running on {node}; check PodDisruptionBudgets blocking eviction",
        )
